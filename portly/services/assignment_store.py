"""
Assignment Store

Persists the last reserved port as a single `export KEY=PORT` line so the
same port can be preferred across restarts.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from portly.errors import PersistenceError
from portly.models.assignment import HIGHEST_PORT, PortAssignment

logger = logging.getLogger(__name__)


class AssignmentStore:
    """Single-writer store for one (key -> port) mapping"""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self, key: str) -> Optional[int]:
        """
        Return the stored port for key, or None.

        A missing, unreadable or non-matching file is a normal first-run
        condition and never raises.
        """
        if not self.path.exists():
            logger.debug(f"No assignment file at {self.path}")
            return None

        try:
            data = self.path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read assignment file {self.path}: {e}")
            return None

        match = re.search(rf"^\s*export\s+{re.escape(key)}=(\d{{1,5}})\s*$", data, re.MULTILINE)
        if not match:
            logger.debug(f"No {key} entry in {self.path}")
            return None

        port = int(match.group(1))
        if not 1 <= port <= HIGHEST_PORT:
            logger.warning(f"Ignoring invalid stored port {port} in {self.path}")
            return None

        return port

    def write(self, key: str, port: int) -> PortAssignment:
        """
        Replace the file contents with the single mapping.

        Raises:
            PersistenceError: If the file cannot be written
        """
        assignment = PortAssignment(key=key, port=port)
        tmp_path = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode='w',
                encoding='utf-8',
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                delete=False
            ) as f:
                tmp_path = f.name
                f.write(assignment.to_line())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistenceError(f"Cannot write assignment file {self.path}: {e}") from e

        logger.info(f"Port {port} written to {self.path}")
        return assignment
