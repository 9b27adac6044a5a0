"""
Controller Configuration

Loads the controller's paths, chain names, teardown port sets and workload
settings from an optional YAML file, then applies environment overrides.

Configuration Structure:
    paths:
      state_file: /var/lib/netmode/mode
      cooldown_file: /var/lib/netmode/cooldown
      lock_file: /var/run/netmode/toggle.lock
    cooldown_seconds: 120
    chains:
      dispatch_in: NETMODE_IN
      dispatch_out: NETMODE_OUT
      production_in: NETMODE_PRODUCTION_IN
      ...
    teardown:
      production:
        - {protocol: tcp, port: 8547}
      maintenance:
        - {protocol: udp, port: 53}
        - {protocol: tcp, port: 30303, match: dport}
    workload:
      name: searcher
      runtime: podman
      user: searcher
      block_rules:
        - {protocol: udp, port: 53, match: dport}
    tools:
      iptables: iptables
      conntrack: conntrack
      nsenter: nsenter

Every key is optional; omitted keys keep the defaults from netmode.constants.

Environment overrides (applied last):
    NETMODE_CONFIG            Path to the YAML file
    NETMODE_STATE_FILE        State record path
    NETMODE_COOLDOWN_FILE     Cooldown marker path
    NETMODE_LOCK_FILE         Lock file path
    NETMODE_COOLDOWN_SECONDS  Cooldown interval
    NETMODE_WORKLOAD_NAME     Workload container name
    NETMODE_WORKLOAD_USER     Service account for the container runtime
"""

import os
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .constants import (
    _env_override,
    ENV_PREFIX,
    MAINTENANCE_TEARDOWN,
    PRODUCTION_TEARDOWN,
    WORKLOAD_BLOCK_RULES,
    Paths,
    Timeouts,
    Workload,
)
from .enforcement.conntrack import ConnectionKey
from .enforcement.packet_filter import RuleSpec
from .enforcement.rule_configurator import ChainNames
from .enforcement.workload import ContainerRuntime
from .exceptions import ConfigError
from .modes import Mode

logger = logging.getLogger(__name__)


def _default_teardown() -> Dict[Mode, List[ConnectionKey]]:
    return {
        Mode.PRODUCTION: [ConnectionKey(*entry) for entry in PRODUCTION_TEARDOWN],
        Mode.MAINTENANCE: [ConnectionKey(*entry) for entry in MAINTENANCE_TEARDOWN],
    }


def _default_block_rules() -> List[RuleSpec]:
    return [RuleSpec(*entry) for entry in WORKLOAD_BLOCK_RULES]


@dataclass
class WorkloadConfig:
    """Workload whose namespace rules gate production."""
    name: str = Workload.NAME
    runtime: ContainerRuntime = ContainerRuntime(Workload.RUNTIME)
    user: Optional[str] = Workload.USER
    block_rules: List[RuleSpec] = field(default_factory=_default_block_rules)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkloadConfig':
        config = cls()
        if 'name' in data:
            config.name = str(data['name'])
        if 'runtime' in data:
            try:
                config.runtime = ContainerRuntime(str(data['runtime']).lower())
            except ValueError:
                raise ConfigError(f"Unsupported container runtime: {data['runtime']!r}") from None
        if 'user' in data:
            config.user = str(data['user']) if data['user'] else None
        if 'block_rules' in data:
            config.block_rules = [
                RuleSpec(
                    protocol=str(entry['protocol']).lower(),
                    port=int(entry['port']),
                    match=str(entry.get('match', 'dport')),
                    target=str(entry.get('target', 'DROP')),
                    chain=str(entry.get('chain', 'OUTPUT')),
                )
                for entry in _require_list(data['block_rules'], 'workload.block_rules')
            ]
            if not config.block_rules:
                raise ConfigError("workload.block_rules must list at least one rule")
        return config


@dataclass
class ToolPaths:
    """Binaries of the external tools."""
    iptables: str = 'iptables'
    conntrack: str = 'conntrack'
    nsenter: str = 'nsenter'


@dataclass
class ControllerConfig:
    """Complete controller configuration."""
    state_file: str = Paths.STATE_FILE
    cooldown_file: str = Paths.COOLDOWN_FILE
    lock_file: str = Paths.LOCK_FILE
    cooldown_seconds: int = Timeouts.COOLDOWN_SECONDS
    chains: ChainNames = field(default_factory=ChainNames)
    teardown: Dict[Mode, List[ConnectionKey]] = field(default_factory=_default_teardown)
    workload: WorkloadConfig = field(default_factory=WorkloadConfig)
    tools: ToolPaths = field(default_factory=ToolPaths)
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ControllerConfig':
        """Build a configuration from parsed YAML."""
        config = cls()
        try:
            paths = data.get('paths') or {}
            config.state_file = str(paths.get('state_file', config.state_file))
            config.cooldown_file = str(paths.get('cooldown_file', config.cooldown_file))
            config.lock_file = str(paths.get('lock_file', config.lock_file))

            if 'cooldown_seconds' in data:
                config.cooldown_seconds = int(data['cooldown_seconds'])
                if config.cooldown_seconds < 0:
                    raise ConfigError("cooldown_seconds must not be negative")

            if data.get('chains'):
                known = {f.name for f in fields(ChainNames)}
                unknown = set(data['chains']) - known
                if unknown:
                    raise ConfigError(f"Unknown chain keys: {', '.join(sorted(unknown))}")
                config.chains = replace(config.chains, **{k: str(v) for k, v in data['chains'].items()})

            if data.get('teardown'):
                config.teardown = cls._parse_teardown(data['teardown'])

            if data.get('workload'):
                config.workload = WorkloadConfig.from_dict(data['workload'])

            if data.get('tools'):
                tools = data['tools']
                config.tools = ToolPaths(
                    iptables=str(tools.get('iptables', 'iptables')),
                    conntrack=str(tools.get('conntrack', 'conntrack')),
                    nsenter=str(tools.get('nsenter', 'nsenter')),
                )
        except ConfigError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        return config

    @staticmethod
    def _parse_teardown(data: Dict[str, Any]) -> Dict[Mode, List[ConnectionKey]]:
        teardown = _default_teardown()
        for mode_name, entries in data.items():
            try:
                mode = Mode(str(mode_name).lower())
            except ValueError:
                raise ConfigError(f"Unknown mode in teardown: {mode_name!r}") from None
            if mode == Mode.STOPPED:
                raise ConfigError("Stopped mode has no connections to tear down")
            teardown[mode] = [
                ConnectionKey(
                    protocol=str(entry['protocol']).lower(),
                    port=int(entry['port']),
                    match=str(entry.get('match', 'dport')),
                )
                for entry in _require_list(entries, f"teardown.{mode.value}")
            ]
        return teardown

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'ControllerConfig':
        """
        Load configuration from YAML and the environment.

        Args:
            path: Explicit config file. Must exist if given. Otherwise
                NETMODE_CONFIG or the default path is tried, and a missing
                file means built-in defaults.

        Raises:
            ConfigError: the file is unreadable or invalid
        """
        explicit = path or os.environ.get(f"{ENV_PREFIX}CONFIG")
        config_path = Path(explicit or Paths.CONFIG_FILE)

        if config_path.exists():
            try:
                with open(config_path, 'r') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Could not read {config_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{config_path} must contain a mapping")
            config = cls.from_dict(data)
            config.source = str(config_path)
            logger.debug(f"Loaded configuration from {config_path}")
        elif explicit:
            raise ConfigError(f"Configuration file not found: {config_path}")
        else:
            config = cls()

        config.apply_environment()
        return config

    def apply_environment(self) -> None:
        """Apply NETMODE_* environment overrides."""
        self.state_file = _env_override('STATE_FILE', self.state_file)
        self.cooldown_file = _env_override('COOLDOWN_FILE', self.cooldown_file)
        self.lock_file = _env_override('LOCK_FILE', self.lock_file)
        self.cooldown_seconds = _env_override(
            'COOLDOWN_SECONDS', self.cooldown_seconds, int, min_value=0
        )
        self.workload.name = _env_override('WORKLOAD_NAME', self.workload.name)
        self.workload.user = _env_override('WORKLOAD_USER', self.workload.user)


def _require_list(value: Any, key: str) -> list:
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list")
    return value


__all__ = ['ControllerConfig', 'WorkloadConfig', 'ToolPaths']
