"""
Centralized Constants Module for the network mode controller.

This module consolidates the fixed identifiers, paths, port sets and
timeouts used throughout the controller so that they can be audited in
one place.

Usage:
    from netmode.constants import Timeouts, Paths, Chains

    subprocess.run(cmd, timeout=Timeouts.SUBPROCESS_DEFAULT)
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')

ENV_PREFIX = "NETMODE_"


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    min_value: Optional[T] = None,
    max_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Args:
        env_var: Environment variable name (will be prefixed with NETMODE_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        min_value: Optional minimum allowed value
        max_value: Optional maximum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None or env_value == "":
        return default

    try:
        converted = converter(env_value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value {full_env_var}={env_value!r} ({e}), using default")
        return default

    if min_value is not None and converted < min_value:
        logger.warning(f"{full_env_var}={env_value} below minimum {min_value}, using default")
        return default

    if max_value is not None and converted > max_value:
        logger.warning(f"{full_env_var}={env_value} above maximum {max_value}, using default")
        return default

    return converted


# =============================================================================
# TIMEOUT CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Timeouts:
    """Timeout values in seconds."""
    SUBPROCESS_DEFAULT: float = 10.0    # iptables, conntrack
    SUBPROCESS_INSPECT: float = 30.0    # container runtime inspect

    # Minimum wait after leaving production before maintenance may be entered
    COOLDOWN_SECONDS: int = 120


# =============================================================================
# PATHS
# =============================================================================

class Paths:
    """Filesystem paths for the durable records and the lock."""
    VAR_LIB_BASE: str = "/var/lib/netmode"
    VAR_RUN_BASE: str = "/var/run/netmode"
    ETC_BASE: str = "/etc/netmode"

    STATE_FILE: str = f"{VAR_LIB_BASE}/mode"
    COOLDOWN_FILE: str = f"{VAR_LIB_BASE}/cooldown"
    LOCK_FILE: str = f"{VAR_RUN_BASE}/toggle.lock"
    CONFIG_FILE: str = f"{ETC_BASE}/netmode.yaml"


# =============================================================================
# PACKET FILTER
# =============================================================================

class Chains:
    """Chain names for the dispatch point and the per-mode rule subsets."""
    DISPATCH_IN: str = "NETMODE_IN"
    DISPATCH_OUT: str = "NETMODE_OUT"

    MAINTENANCE_IN: str = "NETMODE_MAINTENANCE_IN"
    MAINTENANCE_OUT: str = "NETMODE_MAINTENANCE_OUT"
    PRODUCTION_IN: str = "NETMODE_PRODUCTION_IN"
    PRODUCTION_OUT: str = "NETMODE_PRODUCTION_OUT"


class Ports:
    """Well-known ports whose connections are torn down on mode exit."""
    STATE_DIFF_STREAM: int = 8547
    SSH_DATA: int = 2222
    DNS: int = 53
    HTTP: int = 80
    HTTPS: int = 443
    PEER_DISCOVERY: int = 30303

    # Ports the workload must not use while the host is in production
    WORKLOAD_BLOCKED_SPORT: int = 9000


# (protocol, port, match) tuples; match is "dport" or "sport"
PRODUCTION_TEARDOWN = (
    ("tcp", Ports.STATE_DIFF_STREAM, "dport"),
)

MAINTENANCE_TEARDOWN = (
    ("tcp", Ports.SSH_DATA, "dport"),
    ("tcp", Ports.DNS, "dport"),
    ("udp", Ports.DNS, "dport"),
    ("tcp", Ports.HTTP, "dport"),
    ("tcp", Ports.HTTPS, "dport"),
    ("tcp", Ports.PEER_DISCOVERY, "dport"),
    ("udp", Ports.PEER_DISCOVERY, "dport"),
)

# Rules that must be present in the workload's OUTPUT chain before production
WORKLOAD_BLOCK_RULES = (
    ("tcp", Ports.PEER_DISCOVERY, "dport"),
    ("udp", Ports.PEER_DISCOVERY, "dport"),
    ("tcp", Ports.WORKLOAD_BLOCKED_SPORT, "sport"),
    ("udp", Ports.WORKLOAD_BLOCKED_SPORT, "sport"),
    ("udp", Ports.DNS, "dport"),
)


# =============================================================================
# WORKLOAD
# =============================================================================

class Workload:
    """Defaults for the containerized workload gating production."""
    NAME: str = "searcher"
    RUNTIME: str = "podman"
    USER: str = "searcher"


# =============================================================================
# EXIT CODES
# =============================================================================

class ExitCodes:
    """Process exit statuses of the invocation surface."""
    SUCCESS: int = 0
    FAILURE: int = 1
    GUARD_VIOLATION: int = 2
    RULE_APPLICATION: int = 3
    INVALID_STATE: int = 4
    CONFIG: int = 5
    NO_PERMISSION: int = 77  # EX_NOPERM


__all__ = [
    '_env_override',
    'ENV_PREFIX',
    'Timeouts',
    'Paths',
    'Chains',
    'Ports',
    'PRODUCTION_TEARDOWN',
    'MAINTENANCE_TEARDOWN',
    'WORKLOAD_BLOCK_RULES',
    'Workload',
    'ExitCodes',
]
