"""
Transition Lock - serializes transitions across every invocation on the host.

Acquisition blocks without a timeout. A holder that hangs therefore blocks
every later invocation until it exits and the kernel drops its lock.
"""

import os
import time
import fcntl
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class TransitionLock:
    """
    Exclusive advisory lock on a path-addressed file.

    Usage:
        with TransitionLock("/var/run/netmode/toggle.lock"):
            ...  # runs while no other invocation holds the lock
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Block until the lock is held by this instance."""
        if self._fd is not None:
            raise RuntimeError(f"Lock {self.path} already held by this instance")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.path), os.O_RDWR | os.O_CREAT, 0o600)

        started = time.monotonic()
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                logger.info(f"Waiting for transition lock {self.path}")
                fcntl.flock(fd, fcntl.LOCK_EX)
        except BaseException:
            os.close(fd)
            raise

        self._fd = fd
        waited = time.monotonic() - started
        logger.debug(f"Acquired transition lock {self.path} after {waited:.3f}s")

    def release(self) -> None:
        """Release the lock. Safe to call when not held."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug(f"Released transition lock {self.path}")

    def __enter__(self) -> 'TransitionLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


__all__ = ['TransitionLock']
