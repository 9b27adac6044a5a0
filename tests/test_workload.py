"""
Tests for workload inspection and namespace rule verification.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeInspector, completed
from netmode.enforcement.commands import CommandRunner
from netmode.enforcement.packet_filter import RuleSpec
from netmode.enforcement.workload import (
    ContainerRuntime,
    ContainerRuntimeInspector,
    NamespaceRuleVerifier,
    WorkloadStatus,
)
from netmode.exceptions import (
    CommandError,
    ConfigError,
    GuardViolation,
    RulesMissingError,
    WorkloadNotRunningError,
)


# ===========================================================================
# Container Runtime Inspector Tests
# ===========================================================================

class TestContainerRuntimeInspector:
    """Tests for ContainerRuntimeInspector."""

    @pytest.fixture
    def runner(self):
        return MagicMock(spec=CommandRunner)

    def test_inspect_as_service_user(self, runner):
        runner.run.return_value = completed(0, stdout="true 4242\n")
        status = ContainerRuntimeInspector(runner, user='searcher').inspect('searcher')

        assert status == WorkloadStatus(name='searcher', running=True, pid=4242)
        runner.run.assert_called_once_with([
            'runuser', '-u', 'searcher', '--',
            'podman', 'inspect', '--format', '{{.State.Running}} {{.State.Pid}}', 'searcher',
        ])

    def test_inspect_without_user(self, runner):
        runner.run.return_value = completed(0, stdout="true 10\n")
        ContainerRuntimeInspector(runner, runtime=ContainerRuntime.DOCKER).inspect('searcher')

        assert runner.run.call_args[0][0][:2] == ['docker', 'inspect']

    def test_stopped_container(self, runner):
        """A stopped container reports PID 0."""
        runner.run.return_value = completed(0, stdout="false 0\n")
        status = ContainerRuntimeInspector(runner).inspect('searcher')

        assert not status.running
        assert status.pid is None

    def test_runtime_failure(self, runner):
        runner.run.side_effect = CommandError(['podman'], 125, "Error: no such container searcher")
        with pytest.raises(WorkloadNotRunningError) as exc_info:
            ContainerRuntimeInspector(runner).inspect('searcher')
        assert "no such container" in str(exc_info.value)

    @pytest.mark.parametrize("output", ["", "true", "true abc", "true 1 extra"])
    def test_unexpected_output(self, runner, output):
        runner.run.return_value = completed(0, stdout=output)
        with pytest.raises(WorkloadNotRunningError):
            ContainerRuntimeInspector(runner).inspect('searcher')


# ===========================================================================
# Namespace Rule Verifier Tests
# ===========================================================================

class TestNamespaceRuleVerifier:
    """Tests for NamespaceRuleVerifier."""

    def test_all_rules_present(self, verifier, packet_filter, workload_rules_installed, inspector):
        assert verifier.verify() is True
        assert inspector.pid is not None
        assert [pid for pid, _ in packet_filter.namespace_checks] == [inspector.pid] * 5
        assert [rule for _, rule in packet_filter.namespace_checks] == workload_rules_installed

    def test_one_rule_missing(self, verifier, packet_filter, block_rules):
        packet_filter.namespace_rules.update(block_rules[1:])

        with pytest.raises(RulesMissingError) as exc_info:
            verifier.verify()

        assert exc_info.value.missing == [str(block_rules[0])]
        assert "missing 1 block rule" in str(exc_info.value)

    def test_every_rule_is_checked(self, verifier, packet_filter, block_rules):
        """All rules are checked even after the first one is found missing."""
        with pytest.raises(RulesMissingError) as exc_info:
            verifier.verify()

        assert len(packet_filter.namespace_checks) == len(block_rules)
        assert len(exc_info.value.missing) == 5

    def test_check_error_counts_as_missing(self, verifier, packet_filter, block_rules):
        packet_filter.namespace_rules.update(block_rules)
        packet_filter.namespace_errors.add(block_rules[2])

        with pytest.raises(RulesMissingError) as exc_info:
            verifier.verify()

        assert exc_info.value.missing == [str(block_rules[2])]

    def test_workload_not_running(self, packet_filter, block_rules):
        verifier = NamespaceRuleVerifier(FakeInspector(running=False), packet_filter, "searcher", block_rules)

        with pytest.raises(WorkloadNotRunningError):
            verifier.verify()
        assert packet_filter.namespace_checks == []

    def test_guard_violation_hierarchy(self, packet_filter, block_rules):
        verifier = NamespaceRuleVerifier(FakeInspector(running=False), packet_filter, "searcher", block_rules)
        with pytest.raises(GuardViolation):
            verifier.verify()

    def test_pid_unknown(self, packet_filter, block_rules):
        inspector = MagicMock()
        inspector.inspect.return_value = WorkloadStatus("searcher", running=True, pid=None)
        verifier = NamespaceRuleVerifier(inspector, packet_filter, "searcher", block_rules)

        with pytest.raises(WorkloadNotRunningError) as exc_info:
            verifier.resolve_pid()
        assert "PID could not be determined" in str(exc_info.value)

    @patch('netmode.enforcement.workload.psutil.pid_exists', return_value=False)
    def test_pid_vanished(self, mock_exists, verifier, packet_filter, workload_rules_installed, inspector):
        """A PID reported by the runtime but gone from the host fails the guard."""
        with pytest.raises(WorkloadNotRunningError) as exc_info:
            verifier.verify()

        mock_exists.assert_called_once_with(inspector.pid)
        assert "does not exist" in str(exc_info.value)
        assert packet_filter.namespace_checks == []

    def test_custom_rule_set(self, inspector, packet_filter):
        rule = RuleSpec("tcp", 8545)
        packet_filter.namespace_rules.add(rule)
        verifier = NamespaceRuleVerifier(inspector, packet_filter, "searcher", [rule])

        assert verifier.verify()
        assert inspector.inspected == ["searcher"]

    def test_empty_rule_set_rejected(self, inspector, packet_filter):
        """A verifier with nothing to check would always pass."""
        with pytest.raises(ConfigError):
            NamespaceRuleVerifier(inspector, packet_filter, "searcher", [])
        assert inspector.inspected == []

    def test_check_error_is_logged(self, verifier, packet_filter, block_rules, caplog):
        packet_filter.namespace_rules.update(block_rules)
        packet_filter.namespace_errors.add(block_rules[0])

        with caplog.at_level(logging.WARNING, logger="netmode.utils.error_handling"):
            with pytest.raises(RulesMissingError):
                verifier.verify()

        assert "namespace rule check failed [system]" in caplog.text
        assert str(block_rules[0]) in caplog.text
