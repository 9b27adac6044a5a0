"""
Mode Transition Orchestrator - the state machine.

    production --disconnect--> stopped --connect--> maintenance --promote--> production

toggle() takes the host-wide lock, reads the committed mode and runs the one
legal transition out of it. Each transition checks its guard, reprograms the
dispatch chains (which also reaps the exited mode's connections) and only
then commits the new mode. A failure at any step leaves the committed mode
unchanged.

Disconnect writes the cooldown marker before it checks the current mode, so
a disconnect attempted from the wrong mode still restarts the cooldown.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from .exceptions import NetmodeError, WrongModeError
from .logging_config import get_logger
from .modes import Mode, Transition, Trigger, TRANSITIONS, next_transition
from .state.cooldown import CooldownTimer
from .state.lock import TransitionLock
from .state.records import FileRecord
from .state.store import StateStore
from .utils.error_handling import ErrorCategory, ErrorSeverity, safe_execute

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful transition."""
    source: Mode
    target: Mode
    trigger: Trigger
    completed_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, str]:
        return {
            'from': self.source.value,
            'to': self.target.value,
            'trigger': self.trigger.value,
            'completed_at': self.completed_at,
        }


class ModeTransitionOrchestrator:
    """Runs mode transitions under the transition lock."""

    def __init__(
        self,
        store: StateStore,
        cooldown: CooldownTimer,
        configurator,
        verifier,
        lock,
    ):
        """
        Args:
            store: StateStore holding the committed mode
            cooldown: CooldownTimer gating stopped -> maintenance
            configurator: RuleConfigurator reprogramming the dispatch chains
            verifier: NamespaceRuleVerifier gating maintenance -> production
            lock: Context manager held for the whole transition
                (TransitionLock in production use)
        """
        self.store = store
        self.cooldown = cooldown
        self.configurator = configurator
        self.verifier = verifier
        self.lock = lock

        self._handlers: Dict[Trigger, Callable[[], TransitionResult]] = {
            Trigger.DISCONNECT: self._disconnect,
            Trigger.CONNECT: self._connect,
            Trigger.PROMOTE: self._promote,
        }

    @classmethod
    def from_config(cls, config) -> 'ModeTransitionOrchestrator':
        """Wire the production collaborators from a ControllerConfig."""
        from .enforcement.commands import CommandRunner
        from .enforcement.conntrack import ConnectionReaper, ConntrackTool
        from .enforcement.packet_filter import IptablesPacketFilter
        from .enforcement.rule_configurator import RuleConfigurator
        from .enforcement.workload import ContainerRuntimeInspector, NamespaceRuleVerifier

        runner = CommandRunner()
        packet_filter = IptablesPacketFilter(
            runner, binary=config.tools.iptables, nsenter=config.tools.nsenter
        )
        reaper = ConnectionReaper(
            ConntrackTool(runner, binary=config.tools.conntrack), config.teardown
        )
        verifier = NamespaceRuleVerifier(
            inspector=ContainerRuntimeInspector(
                runtime=config.workload.runtime, user=config.workload.user
            ),
            packet_filter=packet_filter,
            workload_name=config.workload.name,
            required_rules=config.workload.block_rules,
        )

        return cls(
            store=StateStore(FileRecord(config.state_file)),
            cooldown=CooldownTimer(
                FileRecord(config.cooldown_file), interval=config.cooldown_seconds
            ),
            configurator=RuleConfigurator(packet_filter, reaper, config.chains),
            verifier=verifier,
            lock=TransitionLock(config.lock_file),
        )

    # ========== Public operations ==========

    def toggle(self) -> TransitionResult:
        """
        Run the single legal transition out of the committed mode.

        Raises:
            InvalidStateError: the state record holds an unknown mode
            GuardViolation: the transition's precondition failed
            RuleApplicationFailure: the dispatch chains could not be reprogrammed
        """
        with self.lock:
            current = self.store.read()
            transition = next_transition(current)
            logger.info(f"Current mode is {current}, next transition: {transition}")
            return self._run(transition)

    def disconnect(self) -> TransitionResult:
        """production -> stopped, under the lock."""
        with self.lock:
            return self._run(TRANSITIONS[Mode.PRODUCTION])

    def connect(self) -> TransitionResult:
        """stopped -> maintenance, under the lock."""
        with self.lock:
            return self._run(TRANSITIONS[Mode.STOPPED])

    def promote(self) -> TransitionResult:
        """maintenance -> production, under the lock."""
        with self.lock:
            return self._run(TRANSITIONS[Mode.MAINTENANCE])

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of the committed mode and cooldown, read without the lock."""
        current = self.store.read()
        transition = next_transition(current)
        return {
            'mode': current.value,
            'initialized': self.store.is_initialized(),
            'next_mode': transition.target.value,
            'next_trigger': transition.trigger.value,
            'cooldown_marked_at': self.cooldown.marked_at(),
            'cooldown_remaining': self.cooldown.remaining(),
        }

    # ========== Transitions (lock held) ==========

    def _run(self, transition: Transition) -> TransitionResult:
        source, target = transition.source.value, transition.target.value
        logger.transition(source, target, "started", trigger=transition.trigger.value)
        try:
            result = self._handlers[transition.trigger]()
        except NetmodeError as e:
            logger.transition(source, target, "failed", reason=str(e))
            raise
        logger.transition(source, target, "completed")
        return result

    def _require_mode(self, expected: Mode) -> None:
        current = self.store.read()
        if current != expected:
            raise WrongModeError(expected, current)

    def _disconnect(self) -> TransitionResult:
        # Marker first: a failed attempt still restarts the cooldown
        self.cooldown.mark()
        self._require_mode(Mode.PRODUCTION)

        self.configurator.apply(Mode.STOPPED, exited_mode=Mode.PRODUCTION)
        self.store.write(Mode.STOPPED)
        return TransitionResult(Mode.PRODUCTION, Mode.STOPPED, Trigger.DISCONNECT)

    def _connect(self) -> TransitionResult:
        self._require_mode(Mode.STOPPED)
        self.cooldown.check()

        self.configurator.apply(Mode.MAINTENANCE, exited_mode=Mode.STOPPED)
        self.store.write(Mode.MAINTENANCE)

        # Committed: a marker left behind is rewritten by the next disconnect
        with safe_execute(
            "cooldown marker removal",
            ErrorCategory.FILESYSTEM,
            severity=ErrorSeverity.WARNING,
        ):
            self.cooldown.clear()
        return TransitionResult(Mode.STOPPED, Mode.MAINTENANCE, Trigger.CONNECT)

    def _promote(self) -> TransitionResult:
        self._require_mode(Mode.MAINTENANCE)
        self.verifier.verify()

        self.configurator.apply(Mode.PRODUCTION, exited_mode=Mode.MAINTENANCE)
        self.store.write(Mode.PRODUCTION)
        return TransitionResult(Mode.MAINTENANCE, Mode.PRODUCTION, Trigger.PROMOTE)


__all__ = ['TransitionResult', 'ModeTransitionOrchestrator']
