"""
Rule Configurator - points the dispatch chains at the rule subset of a mode.

Every packet evaluated for a new connection passes the two dispatch chains
(inbound and outbound). The configurator empties them, reaps connections of
the mode being left, then installs one jump per direction into the target
mode's subset. Stopped mode gets no jump at all, so the chains' default
policy (deny) applies.

Fail-closed: if anything goes wrong the dispatch chains are left empty.
They are never restored to the previous mode's jumps.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .conntrack import ConnectionReaper
from .packet_filter import PacketFilter
from ..constants import Chains
from ..exceptions import CommandError, RuleApplicationFailure
from ..modes import Mode
from ..utils.error_handling import ErrorCategory, ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainNames:
    """Names of the dispatch chains and the per-mode rule subsets."""
    dispatch_in: str = Chains.DISPATCH_IN
    dispatch_out: str = Chains.DISPATCH_OUT
    maintenance_in: str = Chains.MAINTENANCE_IN
    maintenance_out: str = Chains.MAINTENANCE_OUT
    production_in: str = Chains.PRODUCTION_IN
    production_out: str = Chains.PRODUCTION_OUT

    @property
    def dispatch(self) -> Tuple[str, str]:
        return (self.dispatch_in, self.dispatch_out)

    def subsets(self) -> Dict[Mode, Optional[Tuple[str, str]]]:
        """(inbound, outbound) subset per mode; None installs no jump."""
        return {
            Mode.PRODUCTION: (self.production_in, self.production_out),
            Mode.MAINTENANCE: (self.maintenance_in, self.maintenance_out),
            Mode.STOPPED: None,
        }


class RuleConfigurator:
    """Reprograms the dispatch point for a new mode."""

    def __init__(
        self,
        packet_filter: PacketFilter,
        reaper: ConnectionReaper,
        chains: Optional[ChainNames] = None,
    ):
        self._filter = packet_filter
        self._reaper = reaper
        self.chains = chains or ChainNames()

    def apply(self, new_mode: Mode, exited_mode: Mode) -> None:
        """
        Switch the dispatch chains to `new_mode`.

        Args:
            new_mode: Mode whose rule subset should become active
            exited_mode: Mode being left, whose connections are reaped

        Raises:
            RuleApplicationFailure: a chain could not be flushed, a jump could
                not be installed, or `new_mode` is unknown
        """
        self.clear()

        self._reaper.reap(exited_mode)

        subsets = self.chains.subsets()
        if new_mode not in subsets:
            raise RuleApplicationFailure(f"No rule subset defined for mode {new_mode!r}")

        targets = subsets[new_mode]
        if targets is None:
            logger.info(f"Dispatch chains left empty for {new_mode} mode (default deny)")
            return

        try:
            for chain, target in zip(self.chains.dispatch, targets):
                self._filter.append_jump(chain, target)
        except CommandError as e:
            logger.error(f"Failed to install jump for {new_mode} mode: {e}")
            self._clear_after_failure()
            raise RuleApplicationFailure(
                f"Could not install {new_mode} rules: {e}"
            ) from e

        logger.info(
            f"Dispatch chains now jump to {targets[0]} / {targets[1]}"
        )

    def clear(self) -> None:
        """
        Empty both dispatch chains.

        Raises:
            RuleApplicationFailure: a flush command failed
        """
        for chain in self.chains.dispatch:
            try:
                self._filter.flush_chain(chain)
            except CommandError as e:
                raise RuleApplicationFailure(f"Could not flush {chain}: {e}") from e

    def _clear_after_failure(self):
        """Drop a half-installed jump so no direction keeps the new subset alone."""
        try:
            self.clear()
        except RuleApplicationFailure as e:
            handle_error(
                e,
                "dispatch chain cleanup",
                ErrorCategory.NETWORK,
                severity=ErrorSeverity.CRITICAL,
                details={"chains": " ".join(self.chains.dispatch)},
            )


__all__ = ['ChainNames', 'RuleConfigurator']
