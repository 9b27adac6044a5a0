"""
Exceptions raised by the network mode controller.

Every failure that should end an invocation derives from NetmodeError and
carries the exit status the CLI reports for it.
"""

from typing import List, Optional, Sequence

from .constants import ExitCodes


class NetmodeError(Exception):
    """Base exception for all controller errors."""
    exit_code = ExitCodes.FAILURE


class PrivilegeError(NetmodeError):
    """Raised when the controller is invoked without root privileges."""
    exit_code = ExitCodes.NO_PERMISSION


class ConfigError(NetmodeError):
    """Raised when the configuration file cannot be loaded."""
    exit_code = ExitCodes.CONFIG


class InvalidStateError(NetmodeError):
    """Raised when the state record holds an unknown mode."""
    exit_code = ExitCodes.INVALID_STATE

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown mode in state record: {value!r}")


class GuardViolation(NetmodeError):
    """Raised when a transition's precondition is not met."""
    exit_code = ExitCodes.GUARD_VIOLATION


class WrongModeError(GuardViolation):
    """The current mode is not the source mode of the requested transition."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Current mode is {actual}, expected {expected}"
        )


class NoPriorMarkError(GuardViolation):
    """No cooldown marker exists, production was never exited."""

    def __init__(self):
        super().__init__("No cooldown marker found, production exit was never recorded")


class CooldownNotElapsedError(GuardViolation):
    """The cooldown interval since leaving production has not passed yet."""

    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(
            f"Cooldown not elapsed, {remaining_seconds} seconds remaining"
        )


class WorkloadNotRunningError(GuardViolation):
    """The workload is not running or its PID could not be determined."""

    def __init__(self, name: str, detail: str = ""):
        self.name = name
        message = f"Workload {name!r} is not running"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RulesMissingError(GuardViolation):
    """One or more block rules are absent from the workload's namespace."""

    def __init__(self, name: str, missing: Sequence[str]):
        self.name = name
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Workload {name!r} is missing {len(self.missing)} block rule(s): "
            + "; ".join(self.missing)
        )


class RuleApplicationFailure(NetmodeError):
    """Raised when the dispatch point could not be reprogrammed."""
    exit_code = ExitCodes.RULE_APPLICATION


class TeardownFailure(NetmodeError):
    """A connection teardown request failed. Logged, never escalated."""


class CommandError(NetmodeError):
    """Raised when an external command fails or cannot be executed."""

    def __init__(self, cmd: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr or "no output"
        if returncode is None:
            message = f"Could not execute {' '.join(self.cmd)}: {detail}"
        else:
            message = f"{' '.join(self.cmd)} exited with {returncode}: {detail}"
        super().__init__(message)


__all__ = [
    'NetmodeError',
    'PrivilegeError',
    'ConfigError',
    'InvalidStateError',
    'GuardViolation',
    'WrongModeError',
    'NoPriorMarkError',
    'CooldownNotElapsedError',
    'WorkloadNotRunningError',
    'RulesMissingError',
    'RuleApplicationFailure',
    'TeardownFailure',
    'CommandError',
]
