"""
Durable single-value records.

A record holds one line of text at a fixed path. Writers replace the file
atomically, so a reader sees either the previous value or the new one and
never a partial write. MemoryRecord offers the same interface for tests.
"""

import os
import logging
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class FileRecord:
    """A single line of text stored at `path`."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"FileRecord({str(self.path)!r})"

    def read(self) -> Optional[str]:
        """Return the stored text, or None if the record does not exist."""
        try:
            with open(self.path, 'r') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def write(self, text: str) -> None:
        """Atomically replace the record's contents."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix='.tmp',
            dir=str(self.path.parent),
        )
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(text if text.endswith('\n') else text + '\n')
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, self.path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except FileNotFoundError:
                pass
            raise

        self._fsync_directory()
        logger.debug(f"Wrote record {self.path}")

    def delete(self) -> None:
        """Remove the record. Idempotent."""
        try:
            self.path.unlink()
            logger.debug(f"Deleted record {self.path}")
        except FileNotFoundError:
            pass

    def exists(self) -> bool:
        return self.path.exists()

    def _fsync_directory(self):
        """Persist the rename itself."""
        try:
            dir_fd = os.open(str(self.path.parent), os.O_RDONLY)
        except OSError:
            return
        try:
            os.fsync(dir_fd)
        except OSError as e:
            logger.debug(f"Directory fsync unsupported for {self.path.parent}: {e}")
        finally:
            os.close(dir_fd)


class MemoryRecord:
    """In-memory record with the FileRecord interface."""

    def __init__(self, value: Optional[str] = None):
        self._value = value
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"MemoryRecord({self._value!r})"

    def read(self) -> Optional[str]:
        with self._lock:
            return self._value

    def write(self, text: str) -> None:
        with self._lock:
            self._value = text if text.endswith('\n') else text + '\n'

    def delete(self) -> None:
        with self._lock:
            self._value = None

    def exists(self) -> bool:
        with self._lock:
            return self._value is not None


__all__ = ['FileRecord', 'MemoryRecord']
