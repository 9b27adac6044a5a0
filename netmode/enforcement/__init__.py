"""
Enforcement Module - the external tools a transition drives.

Components:
- CommandRunner: subprocess wrapper shared by every adapter
- IptablesPacketFilter: dispatch chain flush/jump and namespace rule checks
- ConntrackTool / ConnectionReaper: teardown of live connections on mode exit
- RuleConfigurator: points the dispatch chains at a mode's rule subset
- ContainerRuntimeInspector / NamespaceRuleVerifier: production precondition
"""

from .commands import CommandRunner

from .packet_filter import (
    PacketFilter,
    IptablesPacketFilter,
    RuleSpec,
)

from .conntrack import (
    ConnectionKey,
    ConnectionTracker,
    ConntrackTool,
    ConnectionReaper,
)

from .rule_configurator import (
    ChainNames,
    RuleConfigurator,
)

from .workload import (
    ContainerRuntime,
    WorkloadStatus,
    WorkloadInspector,
    ContainerRuntimeInspector,
    NamespaceRuleVerifier,
)

__all__ = [
    'CommandRunner',
    # Packet filter
    'PacketFilter',
    'IptablesPacketFilter',
    'RuleSpec',
    # Connection teardown
    'ConnectionKey',
    'ConnectionTracker',
    'ConntrackTool',
    'ConnectionReaper',
    # Dispatch point
    'ChainNames',
    'RuleConfigurator',
    # Workload verification
    'ContainerRuntime',
    'WorkloadStatus',
    'WorkloadInspector',
    'ContainerRuntimeInspector',
    'NamespaceRuleVerifier',
]
