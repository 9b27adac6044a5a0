"""
State Module - Durable records shared by every invocation.

Components:
- StateStore: the currently committed mode
- CooldownTimer: timestamp of the last production exit
- TransitionLock: host-wide exclusive lock around a transition
"""

from .records import FileRecord, MemoryRecord
from .store import StateStore
from .cooldown import CooldownTimer
from .lock import TransitionLock

__all__ = [
    'FileRecord',
    'MemoryRecord',
    'StateStore',
    'CooldownTimer',
    'TransitionLock',
]
