"""
Cooldown Timer - enforces a minimum wait after leaving production.

The marker is a decimal count of seconds since the epoch, written when
production is exited and consumed when maintenance is entered.

Note: the reference clock is wall-clock time. Anyone able to set the host
clock can shorten or lengthen the wait. This is a known limitation.
"""

import time
import logging
from typing import Callable, Optional

from ..constants import Timeouts
from ..exceptions import NoPriorMarkError, CooldownNotElapsedError

logger = logging.getLogger(__name__)


class CooldownTimer:
    """Persists and checks the production-exit timestamp."""

    def __init__(
        self,
        record,
        interval: int = Timeouts.COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            record: FileRecord or MemoryRecord holding the marker
            interval: Minimum seconds between mark() and a passing check()
            clock: Source of seconds since the epoch
        """
        self._record = record
        self.interval = interval
        self._clock = clock

    def mark(self) -> int:
        """Record now as the cooldown reference point, overwriting any prior marker."""
        now = int(self._clock())
        self._record.write(str(now))
        logger.debug(f"Cooldown marker set to {now}")
        return now

    def marked_at(self) -> Optional[int]:
        """Return the marker timestamp, or None if absent or unreadable."""
        text = self._record.read()
        if text is None:
            return None
        try:
            return int(text.strip())
        except ValueError:
            logger.warning(f"Ignoring unreadable cooldown marker: {text.strip()!r}")
            return None

    def remaining(self) -> Optional[int]:
        """Seconds left before check() passes, 0 if elapsed, None if no marker."""
        marked = self.marked_at()
        if marked is None:
            return None
        elapsed = int(self._clock()) - marked
        return max(0, self.interval - elapsed)

    def check(self) -> None:
        """
        Verify that the cooldown interval has elapsed since the marker.

        Raises:
            NoPriorMarkError: no marker exists
            CooldownNotElapsedError: less than `interval` seconds have passed
        """
        marked = self.marked_at()
        if marked is None:
            raise NoPriorMarkError()

        elapsed = int(self._clock()) - marked
        if elapsed < self.interval:
            raise CooldownNotElapsedError(self.interval - elapsed)

        logger.debug(f"Cooldown elapsed ({elapsed}s >= {self.interval}s)")

    def clear(self) -> None:
        """Remove the marker. Idempotent."""
        self._record.delete()


__all__ = ['CooldownTimer']
