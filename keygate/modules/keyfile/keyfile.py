"""
Key file access for Keygate.

Serves the protected key file and replaces it on request. Every replacement
first copies the current file into the backup directory as
<epoch-ms>-<suffix>.keys so earlier versions can be restored by hand. The new
content goes to a temporary file that is then renamed over the key file, so a
failed write never leaves a truncated key file behind.
"""

import logging
import os
import shutil
import tempfile
import time
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class KeyFileError(Exception):
    """Raised when the key file cannot be backed up or written."""


class KeyFileModule:
    def __init__(self, path: Union[str, Path], backup_dir: Union[str, Path]):
        """
        Initialize key file module.

        Args:
            path: Key file served by GET / and replaced by PUT /
            backup_dir: Directory receiving timestamped copies before each write
        """
        self.path = Path(path)
        self.backup_dir = Path(backup_dir)

    def read(self) -> bytes:
        """
        Read the key file.

        Raises:
            FileNotFoundError: If the key file does not exist yet
        """
        return self.path.read_bytes()

    def backup(self) -> Optional[Path]:
        """
        Copy the current key file into the backup directory.

        Returns:
            Path of the backup, or None if there was no file to back up

        Raises:
            KeyFileError: If the copy fails
        """
        if not self.path.exists():
            return None

        # Unique even for writes landing in the same millisecond
        millis = int(time.time() * 1000)
        target = self.backup_dir / f"{millis}-{uuid.uuid4().hex[:8]}.keys"
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, target)
        except OSError as e:
            logger.error(f"Failed to back up {self.path} to {target}: {e}")
            raise KeyFileError("Failed to backup old key file") from e

        logger.info(f"Backed up {self.path} to {target}")
        return target

    def write(self, data: bytes) -> Optional[Path]:
        """
        Replace the key file, backing up the previous version first.

        Nothing is written if the backup fails. The key file is either fully
        replaced or left as it was.

        Returns:
            Path of the backup, or None if there was no previous file

        Raises:
            KeyFileError: If the backup or the write fails
        """
        backup_path = self.backup()
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            if tmp_name is not None:
                with suppress(FileNotFoundError):
                    os.unlink(tmp_name)
            raise KeyFileError("Failed to write new key file") from e

        logger.info(f"Key file {self.path} updated ({len(data)} bytes)")
        return backup_path
