"""
Modes - Network postures and the transitions between them.

The host is always in exactly one of three modes. Each mode has a single
legal successor, so a toggle never needs the caller to pick a target:

    production --disconnect--> stopped --connect--> maintenance --promote--> production
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from .exceptions import InvalidStateError


class Mode(Enum):
    """Network posture of the host."""
    PRODUCTION = "production"
    STOPPED = "stopped"
    MAINTENANCE = "maintenance"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> 'Mode':
        """Parse a stored mode value, raising InvalidStateError if unknown."""
        value = text.strip()
        try:
            return cls(value)
        except ValueError:
            raise InvalidStateError(value) from None


# Mode assumed when no state record exists
DEFAULT_MODE = Mode.MAINTENANCE


class Trigger(Enum):
    """Name of the edge taken by a transition."""
    DISCONNECT = "disconnect"
    CONNECT = "connect"
    PROMOTE = "promote"


@dataclass(frozen=True)
class Transition:
    """A legal (source, target) pair."""
    source: Mode
    target: Mode
    trigger: Trigger

    def __str__(self) -> str:
        return f"{self.source} -> {self.target} ({self.trigger.value})"


TRANSITIONS: Dict[Mode, Transition] = {
    Mode.PRODUCTION: Transition(Mode.PRODUCTION, Mode.STOPPED, Trigger.DISCONNECT),
    Mode.STOPPED: Transition(Mode.STOPPED, Mode.MAINTENANCE, Trigger.CONNECT),
    Mode.MAINTENANCE: Transition(Mode.MAINTENANCE, Mode.PRODUCTION, Trigger.PROMOTE),
}


def next_transition(mode: Mode) -> Transition:
    """Return the single legal transition out of `mode`."""
    try:
        return TRANSITIONS[mode]
    except KeyError:
        raise InvalidStateError(str(mode)) from None


def is_legal(source: Mode, target: Mode) -> bool:
    """Check whether (source, target) is one of the three legal transitions."""
    transition = TRANSITIONS.get(source)
    return transition is not None and transition.target == target


__all__ = [
    'Mode',
    'DEFAULT_MODE',
    'Trigger',
    'Transition',
    'TRANSITIONS',
    'next_transition',
    'is_legal',
]
