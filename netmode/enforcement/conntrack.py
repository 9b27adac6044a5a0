"""
Connection Reaper - tears down live connections of the mode being exited.

Removing the dispatch jump only stops new connections. Flows that were
already established keep matching conntrack state, so they are deleted
explicitly. Teardown is best effort: an empty match is normal, and a
failing request is logged and skipped because stale flows expire on their
own and the jump has already been removed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from .commands import CommandRunner
from .packet_filter import validate_port_match
from ..exceptions import CommandError, TeardownFailure
from ..modes import Mode
from ..utils.error_handling import ErrorCategory, safe_execute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionKey:
    """Protocol and port identifying the flows of one service."""
    protocol: str
    port: int
    match: str = "dport"  # dport or sport

    def __post_init__(self):
        validate_port_match(self.protocol, self.port, self.match)

    def __str__(self) -> str:
        return f"{self.protocol}/{self.port} ({self.match})"


class ConnectionTracker(ABC):
    """Connection-tracking operations consumed by the controller."""

    @abstractmethod
    def delete(self, key: ConnectionKey) -> int:
        """
        Delete tracked flows matching `key`.

        Returns:
            Number of flows deleted (0 when nothing matched)

        Raises:
            TeardownFailure: the tool failed for another reason
        """


class ConntrackTool(ConnectionTracker):
    """ConnectionTracker backed by the conntrack binary."""

    def __init__(self, runner: Optional[CommandRunner] = None, binary: str = 'conntrack'):
        self._runner = runner or CommandRunner()
        self._binary = binary

    def delete(self, key: ConnectionKey) -> int:
        cmd = [self._binary, '-D', '-p', key.protocol, f'--{key.match}', str(key.port)]
        try:
            result = self._runner.run(cmd, check=False)
        except CommandError as e:
            raise TeardownFailure(str(e)) from e

        # conntrack reports "N flow entries have been deleted." on stderr and
        # exits 1 when N is 0
        deleted = self._parse_deleted(result.stderr)
        if result.returncode == 0:
            return deleted or 0
        if result.returncode == 1 and deleted == 0:
            return 0

        raise TeardownFailure(
            f"{' '.join(cmd)} exited with {result.returncode}: {result.stderr.strip()}"
        )

    @staticmethod
    def _parse_deleted(output: str) -> Optional[int]:
        for line in output.splitlines():
            if 'flow entries have been deleted' in line:
                for token in line.replace(':', ' ').split():
                    if token.isdigit():
                        return int(token)
        return None


class ConnectionReaper:
    """Issues one teardown request per connection key of an exited mode."""

    def __init__(self, tracker: ConnectionTracker, port_sets: Mapping[Mode, Sequence[ConnectionKey]]):
        """
        Args:
            tracker: ConnectionTracker used for deletions
            port_sets: Connection keys per mode; modes absent from the
                mapping tear down nothing
        """
        self._tracker = tracker
        self._port_sets: Dict[Mode, List[ConnectionKey]] = {
            mode: list(keys) for mode, keys in port_sets.items()
        }

    def keys_for(self, mode: Mode) -> List[ConnectionKey]:
        return list(self._port_sets.get(mode, ()))

    def reap(self, exited_mode: Mode) -> List[ConnectionKey]:
        """
        Tear down live connections belonging to `exited_mode`.

        Returns:
            Keys whose teardown request failed
        """
        keys = self.keys_for(exited_mode)
        if not keys:
            logger.debug(f"No connections to reap for {exited_mode}")
            return []

        failed: List[ConnectionKey] = []
        total = 0
        for key in keys:
            with safe_execute(
                "connection teardown",
                ErrorCategory.NETWORK,
                default_return=0,
                details={'mode': exited_mode.value, 'key': str(key)},
            ) as result:
                result.value = self._tracker.delete(key)

            if result.success:
                total += result.value
            else:
                failed.append(key)

        logger.info(
            f"Reaped {total} connection(s) of {exited_mode} mode"
            + (f", {len(failed)} teardown request(s) failed" if failed else "")
        )
        return failed


__all__ = ['ConnectionKey', 'ConnectionTracker', 'ConntrackTool', 'ConnectionReaper']
