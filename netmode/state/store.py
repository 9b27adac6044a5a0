"""
State Store - the committed network mode.

The record holds a single line naming the mode. An absent record means the
host has never transitioned and is treated as maintenance.
"""

import logging

from ..modes import Mode, DEFAULT_MODE

logger = logging.getLogger(__name__)


class StateStore:
    """Reads and commits the current mode through an injected record."""

    def __init__(self, record):
        """
        Args:
            record: FileRecord or MemoryRecord holding the mode
        """
        self._record = record

    @property
    def record(self):
        return self._record

    def read(self) -> Mode:
        """
        Return the committed mode, or maintenance if none was ever written.

        Raises:
            InvalidStateError: if the record holds an unknown value
        """
        text = self._record.read()
        if text is None:
            logger.debug(f"No state record, defaulting to {DEFAULT_MODE}")
            return DEFAULT_MODE
        return Mode.parse(text)

    def write(self, mode: Mode) -> None:
        """Durably commit `mode`."""
        self._record.write(mode.value)
        logger.debug(f"Committed mode {mode}")

    def is_initialized(self) -> bool:
        """Whether a mode was ever committed on this host."""
        return self._record.read() is not None


__all__ = ['StateStore']
