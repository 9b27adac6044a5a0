"""
Utility modules for the network mode controller.
"""

from .error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ExecutionResult,
    determine_severity,
    handle_error,
    safe_execute,
)

__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ExecutionResult',
    'determine_severity',
    'handle_error',
    'safe_execute',
]
