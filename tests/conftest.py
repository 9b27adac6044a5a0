"""
Pytest configuration and shared fixtures for netmode tests.

Provides in-memory records, a controllable clock and recording fakes for
the packet filter, connection tracker and workload inspector so that no test
touches real iptables, conntrack or a container runtime.
"""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Generator, List, Optional, Set, Tuple

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from netmode.config import _default_block_rules, _default_teardown
from netmode.enforcement.conntrack import ConnectionKey, ConnectionReaper, ConnectionTracker
from netmode.enforcement.packet_filter import PacketFilter, RuleSpec
from netmode.enforcement.rule_configurator import ChainNames, RuleConfigurator
from netmode.enforcement.workload import (
    NamespaceRuleVerifier,
    WorkloadInspector,
    WorkloadStatus,
)
from netmode.exceptions import CommandError, TeardownFailure
from netmode.orchestrator import ModeTransitionOrchestrator
from netmode.state.cooldown import CooldownTimer
from netmode.state.lock import TransitionLock
from netmode.state.records import MemoryRecord
from netmode.state.store import StateStore


# ===========================================================================
# Fakes
# ===========================================================================

class FakeClock:
    """Callable clock returning a settable number of seconds since the epoch."""

    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePacketFilter(PacketFilter):
    """Records flush/jump calls into a shared event list."""

    def __init__(self, events: Optional[list] = None):
        self.events: List[Tuple] = events if events is not None else []
        self.fail_flush: Set[str] = set()
        self.fail_jump: Set[str] = set()
        self.namespace_rules: Set[RuleSpec] = set()
        self.namespace_errors: Set[RuleSpec] = set()
        self.chains = {}
        self.namespace_checks: List[Tuple[int, RuleSpec]] = []

    def flush_chain(self, chain: str) -> None:
        if chain in self.fail_flush:
            raise CommandError(['iptables', '-F', chain], 1, 'flush refused')
        self.events.append(('flush', chain))
        self.chains[chain] = []

    def append_jump(self, chain: str, target: str) -> None:
        if chain in self.fail_jump:
            raise CommandError(['iptables', '-A', chain, '-j', target], 1, 'no such target')
        self.events.append(('jump', chain, target))
        self.chains.setdefault(chain, []).append(target)

    def rule_exists_in_namespace(self, pid: int, rule: RuleSpec) -> bool:
        self.namespace_checks.append((pid, rule))
        if rule in self.namespace_errors:
            raise CommandError(['nsenter'], 2, 'iptables: bad arguments')
        return rule in self.namespace_rules


class FakeTracker(ConnectionTracker):
    """Records teardown requests into a shared event list."""

    def __init__(self, events: Optional[list] = None):
        self.events: List[Tuple] = events if events is not None else []
        self.failing: Set[ConnectionKey] = set()
        self.deleted: List[ConnectionKey] = []

    def delete(self, key: ConnectionKey) -> int:
        self.events.append(('reap', key.protocol, key.port))
        if key in self.failing:
            raise TeardownFailure(f"conntrack failed for {key}")
        self.deleted.append(key)
        return 1


class FakeInspector(WorkloadInspector):
    """Returns a fixed workload status."""

    def __init__(self, running: bool = True, pid: Optional[int] = None):
        self.running = running
        self.pid = pid if pid is not None else os.getpid()
        self.inspected: List[str] = []

    def inspect(self, name: str) -> WorkloadStatus:
        self.inspected.append(name)
        return WorkloadStatus(name=name, running=self.running, pid=self.pid)


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    """Build a CompletedProcess as returned by CommandRunner.run."""
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="netmode_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


# ===========================================================================
# State Fixtures
# ===========================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state_record() -> MemoryRecord:
    return MemoryRecord()


@pytest.fixture
def cooldown_record() -> MemoryRecord:
    return MemoryRecord()


@pytest.fixture
def store(state_record) -> StateStore:
    return StateStore(state_record)


@pytest.fixture
def cooldown(cooldown_record, clock) -> CooldownTimer:
    return CooldownTimer(cooldown_record, interval=120, clock=clock)


@pytest.fixture
def lock(temp_dir) -> TransitionLock:
    return TransitionLock(temp_dir / "toggle.lock")


# ===========================================================================
# Enforcement Fixtures
# ===========================================================================

@pytest.fixture
def events() -> list:
    """Shared, ordered log of packet-filter and teardown calls."""
    return []


@pytest.fixture
def packet_filter(events) -> FakePacketFilter:
    return FakePacketFilter(events)


@pytest.fixture
def tracker(events) -> FakeTracker:
    return FakeTracker(events)


@pytest.fixture
def reaper(tracker) -> ConnectionReaper:
    return ConnectionReaper(tracker, _default_teardown())


@pytest.fixture
def chains() -> ChainNames:
    return ChainNames()


@pytest.fixture
def configurator(packet_filter, reaper, chains) -> RuleConfigurator:
    return RuleConfigurator(packet_filter, reaper, chains)


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def block_rules() -> List[RuleSpec]:
    return _default_block_rules()


@pytest.fixture
def verifier(inspector, packet_filter, block_rules) -> NamespaceRuleVerifier:
    return NamespaceRuleVerifier(inspector, packet_filter, "searcher", block_rules)


@pytest.fixture
def workload_rules_installed(packet_filter, block_rules):
    """Make every required block rule present in the workload namespace."""
    packet_filter.namespace_rules.update(block_rules)
    return block_rules


# ===========================================================================
# Orchestrator Fixtures
# ===========================================================================

@pytest.fixture
def orchestrator(store, cooldown, configurator, verifier, lock) -> ModeTransitionOrchestrator:
    return ModeTransitionOrchestrator(
        store=store,
        cooldown=cooldown,
        configurator=configurator,
        verifier=verifier,
        lock=lock,
    )


@pytest.fixture
def netmode_env(temp_dir, monkeypatch):
    """Point every NETMODE_* path at the temporary directory."""
    monkeypatch.delenv("NETMODE_CONFIG", raising=False)
    monkeypatch.setenv("NETMODE_STATE_FILE", str(temp_dir / "mode"))
    monkeypatch.setenv("NETMODE_COOLDOWN_FILE", str(temp_dir / "cooldown"))
    monkeypatch.setenv("NETMODE_LOCK_FILE", str(temp_dir / "toggle.lock"))
    return temp_dir
