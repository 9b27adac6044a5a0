"""
Error Handling Utilities for the network mode controller.

Hard failures propagate as NetmodeError subclasses and end the invocation.
This module covers the other kind: failures that must be recorded but must
not abort a transition, such as a single conntrack request failing or a
namespace rule check that could not run.

USAGE:
    from netmode.utils.error_handling import ErrorCategory, safe_execute

    with safe_execute("connection teardown", ErrorCategory.NETWORK) as result:
        result.value = tracker.delete(key)
    if not result.success:
        failed.append(key)
"""

import logging
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..exceptions import CommandError, TeardownFailure

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Where a failure originated."""
    NETWORK = "network"     # Packet filter, connection tracking
    SYSTEM = "system"       # External commands, namespaces
    FILESYSTEM = "filesystem"  # State records
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """How loudly a failure is logged."""
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


@dataclass
class ErrorContext:
    """A handled failure and where it happened."""
    error: BaseException
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    details: Dict[str, Any] = field(default_factory=dict)
    stack_trace: str = ""

    def format_log_message(self, include_trace: bool = False) -> str:
        """One line, followed by the indented traceback when requested."""
        message = (
            f"{self.operation} failed [{self.category.value}]: "
            f"{type(self.error).__name__}: {self.error}"
        )
        if self.details:
            items = ', '.join(f"{k}={v}" for k, v in self.details.items())
            message = f"{message} ({items})"

        if include_trace and self.stack_trace:
            trace = '\n'.join(
                f"    {line}" for line in self.stack_trace.splitlines() if line.strip()
            )
            return f"{message}\n{trace}"
        return message


def determine_severity(error: BaseException) -> ErrorSeverity:
    """
    Default severity for a failure.

    Failed tool invocations are soft: the caller has already decided to carry
    on without the result. Interrupts are critical, everything else an error.
    """
    if isinstance(error, (KeyboardInterrupt, SystemExit)):
        return ErrorSeverity.CRITICAL
    if isinstance(error, (TeardownFailure, CommandError)):
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR


def handle_error(
    error: BaseException,
    operation: str,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    severity: Optional[ErrorSeverity] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorContext:
    """
    Log a failure with its context.

    The traceback is included for critical failures and whenever debug
    logging is enabled.

    Returns:
        ErrorContext describing the logged failure
    """
    context = ErrorContext(
        error=error,
        category=category,
        severity=severity or determine_severity(error),
        operation=operation,
        details=details or {},
        stack_trace=''.join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
    )

    include_trace = (
        context.severity is ErrorSeverity.CRITICAL or logger.isEnabledFor(logging.DEBUG)
    )
    logger.log(context.severity.value, context.format_log_message(include_trace))
    return context


class ExecutionResult:
    """Outcome of a block run under safe_execute."""

    def __init__(self, default: Any = None):
        self.value = default
        self.error: Optional[ErrorContext] = None
        self.success = True


@contextmanager
def safe_execute(
    operation: str,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    severity: Optional[ErrorSeverity] = None,
    default_return: Any = None,
    details: Optional[Dict[str, Any]] = None,
):
    """
    Run a block whose failure is logged and recorded instead of raised.

    Usage:
        with safe_execute("namespace rule check", ErrorCategory.SYSTEM) as result:
            result.value = packet_filter.rule_exists_in_namespace(pid, rule)
    """
    result = ExecutionResult(default_return)

    try:
        yield result
    except Exception as e:
        result.success = False
        result.value = default_return
        result.error = handle_error(e, operation, category, severity, details)


__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ExecutionResult',
    'determine_severity',
    'handle_error',
    'safe_execute',
]
