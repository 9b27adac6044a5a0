"""
netmode - network mode controller.

Moves a host between three mutually exclusive network postures
(production, stopped, maintenance) by reprogramming packet-filter dispatch
chains, tearing down connections of the mode being left, and gating each
transition on a cooldown or on the workload's own egress rules.
"""

from .modes import Mode, Transition, Trigger, DEFAULT_MODE, next_transition
from .orchestrator import ModeTransitionOrchestrator, TransitionResult

__version__ = "1.0.0"

__all__ = [
    'Mode',
    'Transition',
    'Trigger',
    'DEFAULT_MODE',
    'next_transition',
    'ModeTransitionOrchestrator',
    'TransitionResult',
    '__version__',
]
