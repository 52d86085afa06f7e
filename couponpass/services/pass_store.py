"""
Storage for signed pass archives, one file per serial number.
"""

import logging
import os
import re
import tempfile
from pathlib import Path

from ..errors import StorageError

logger = logging.getLogger(__name__)

PASS_EXTENSION = ".pkpass"
_SERIAL_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class PassStore:
    """Directory of ``<serial>.pkpass`` files served under /passes"""

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, serial_number: str) -> Path:
        if not _SERIAL_PATTERN.match(serial_number):
            raise StorageError(f"Invalid serial number: {serial_number!r}")
        return self.root / f"{serial_number}{PASS_EXTENSION}"

    def save(self, serial_number: str, archive: bytes) -> Path:
        """
        Persist an archive atomically.

        The bytes go to a temp file in the same directory and are renamed into
        place, so the public path only ever holds a complete archive.
        """
        path = self.path_for(serial_number)
        tmp_path = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(archive)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"Failed to write pass archive {path}: {e}") from e

        logger.info(f"Saved pass archive: {path} ({len(archive)} bytes)")
        return path
