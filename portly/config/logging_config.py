"""
Logging Configuration

Progress lines (port chosen, config written) go to stdout so they can be
piped into supervisor logs; warnings and the one-line failure diagnostic
go to stderr.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from portly.errors import PersistenceError
from portly.settings import Settings

CONSOLE_FORMAT = '[%(levelname)s] %(name)s: %(message)s'
FILE_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] %(message)s'


def parse_level(name: str) -> int:
    """Map a LOG_LEVEL value to a logging level, falling back to INFO"""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


class _BelowWarning(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure the root logger for a Portly run.

    Without settings (they failed to load) only the console handlers are
    installed, at INFO.

    Raises:
        PersistenceError: If LOG_FILE is set and cannot be opened under LOG_DIR
    """
    level = parse_level(settings.log_level) if settings else logging.INFO
    console_formatter = logging.Formatter(CONSOLE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(_BelowWarning())
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    for handler in (stdout_handler, stderr_handler):
        handler.setFormatter(console_formatter)
        root_logger.addHandler(handler)

    if settings and settings.log_file:
        log_path = Path(settings.log_dir) / settings.log_file
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
        except OSError as e:
            raise PersistenceError(f"Cannot open log file {log_path}: {e}") from e
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        root_logger.addHandler(file_handler)

    logging.debug(f"Logging configured: level={logging.getLevelName(level)}")
