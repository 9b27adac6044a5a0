"""
Packet Filter - the operations the controller needs from iptables.

The controller never builds rule sets of its own. The dispatch chains and
the per-mode rule subsets are provisioned separately; this module only
flushes a chain, appends a jump into a subset, and checks whether a
specific rule exists inside another process's network namespace.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .commands import CommandRunner
from ..exceptions import CommandError

logger = logging.getLogger(__name__)


def validate_port_match(protocol: str, port: int, match: str) -> None:
    """Reject protocol/port/match combinations the tools cannot express."""
    if protocol not in ('tcp', 'udp'):
        raise ValueError(f"Unsupported protocol: {protocol}")
    if match not in ('dport', 'sport'):
        raise ValueError(f"Unsupported port match: {match}")
    if not 0 < int(port) < 65536:
        raise ValueError(f"Port out of range: {port}")


@dataclass(frozen=True)
class RuleSpec:
    """A single port-matching rule, e.g. `-p udp --dport 53 -j DROP`."""
    protocol: str
    port: int
    match: str = "dport"  # dport or sport
    target: str = "DROP"
    chain: str = "OUTPUT"

    def __post_init__(self):
        validate_port_match(self.protocol, self.port, self.match)

    def to_args(self) -> List[str]:
        """Rule arguments following the chain name."""
        return [
            '-p', self.protocol,
            '-m', self.protocol,
            f'--{self.match}', str(self.port),
            '-j', self.target,
        ]

    def __str__(self) -> str:
        return f"{self.chain} {self.protocol} {self.match} {self.port} -> {self.target}"


class PacketFilter(ABC):
    """Packet-filter operations consumed by the controller."""

    @abstractmethod
    def flush_chain(self, chain: str) -> None:
        """Remove every rule from `chain`."""

    @abstractmethod
    def append_jump(self, chain: str, target: str) -> None:
        """Append an unconditional jump from `chain` to `target`."""

    @abstractmethod
    def rule_exists_in_namespace(self, pid: int, rule: RuleSpec) -> bool:
        """Check `rule` inside the network namespace of process `pid`."""


class IptablesPacketFilter(PacketFilter):
    """PacketFilter backed by the iptables and nsenter binaries."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        binary: str = 'iptables',
        nsenter: str = 'nsenter',
    ):
        self._runner = runner or CommandRunner()
        self._binary = binary
        self._nsenter = nsenter

    def _run_iptables(self, args: List[str]):
        return self._runner.run([self._binary, '-w'] + args)

    def flush_chain(self, chain: str) -> None:
        self._run_iptables(['-F', chain])
        logger.debug(f"Flushed chain {chain}")

    def append_jump(self, chain: str, target: str) -> None:
        self._run_iptables(['-A', chain, '-j', target])
        logger.debug(f"Installed jump {chain} -> {target}")

    def rule_exists_in_namespace(self, pid: int, rule: RuleSpec) -> bool:
        cmd = [
            self._nsenter, '--target', str(pid), '--net', '--',
            self._binary, '-w', '-C', rule.chain,
        ] + rule.to_args()

        # iptables -C exits 1 when the rule is absent
        result = self._runner.run(cmd, check=False)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise CommandError(cmd, result.returncode, result.stderr.strip())


__all__ = ['validate_port_match', 'RuleSpec', 'PacketFilter', 'IptablesPacketFilter']
