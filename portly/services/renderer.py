"""Reverse-proxy config rendering and the files written around it"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Tuple

from portly.errors import PersistenceError

logger = logging.getLogger(__name__)

PORT_PLACEHOLDER = "PORT"


def read_template(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise PersistenceError(f"Error reading template file {path}: {e}") from e


def render_template(template: str, placeholders: Iterable[Tuple[str, object]], port: int) -> str:
    """
    Replace every {{NAME}} in the template, pair by pair in order.

    The PORT placeholder always renders the chosen port, whatever value was
    supplied for it.
    """
    content = template
    for key, value in placeholders:
        replacement = port if key == PORT_PLACEHOLDER else value
        content = content.replace(f"{{{{{key}}}}}", str(replacement))
    return content


def write_config(directory: str | Path, filename: str, content: str) -> Path:
    """
    Write content as the whole of directory/filename, creating the directory.

    Raises:
        PersistenceError: On any I/O failure
    """
    config_path = Path(directory) / filename
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(content, encoding='utf-8')
    except OSError as e:
        raise PersistenceError(f"Cannot write config {config_path}: {e}") from e

    logger.info(f"Config written to {config_path}")
    return config_path


def write_ready_marker(path: str | Path) -> Path:
    """Write the readiness marker holding the current UTC timestamp"""
    marker = Path(path)
    try:
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text(datetime.now(timezone.utc).isoformat() + "\n", encoding='utf-8')
    except OSError as e:
        raise PersistenceError(f"Cannot write readiness marker {marker}: {e}") from e

    logger.debug(f"Readiness marker written to {marker}")
    return marker


def remove_ready_marker(path: str | Path) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove readiness marker {path}: {e}")
