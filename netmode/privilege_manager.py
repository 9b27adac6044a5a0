"""
Privilege Manager - refuses to transition without root.

Every transition rewrites packet-filter chains, deletes conntrack entries,
enters another process's network namespace and switches to the workload's
service account. None of that works unprivileged, and a half-applied
transition is worse than none, so the check happens before the lock is
taken and before any record is touched.
"""

import os
import logging

from .exceptions import PrivilegeError

logger = logging.getLogger(__name__)


def is_elevated() -> bool:
    """Check if running with root privileges."""
    return os.geteuid() == 0


def get_effective_uid() -> int:
    """Get effective user ID."""
    return os.geteuid()


def require_root(operation: str = "mode transition") -> None:
    """
    Fail loudly unless running as root.

    Raises:
        PrivilegeError: effective UID is not 0
    """
    if is_elevated():
        return

    euid = get_effective_uid()
    logger.error(f"{operation} requires root privileges (euid={euid})")
    raise PrivilegeError(f"{operation} must be run as root (current euid={euid})")


__all__ = ['is_elevated', 'get_effective_uid', 'require_root']
