"""
Workload Verification - gates production on the workload's own egress rules.

Before the host opens its production-only ports, the containerized workload
must already be unable to reach disallowed endpoints. The verifier resolves
the workload's PID through the container runtime (run under the workload's
service account) and checks, inside the workload's network namespace, that
every required block rule is installed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import psutil

from .commands import CommandRunner
from .packet_filter import PacketFilter, RuleSpec
from ..constants import Timeouts
from ..exceptions import CommandError, ConfigError, RulesMissingError, WorkloadNotRunningError
from ..utils.error_handling import ErrorCategory, safe_execute

logger = logging.getLogger(__name__)


class ContainerRuntime(Enum):
    """Supported container runtimes"""
    PODMAN = "podman"
    DOCKER = "docker"


@dataclass(frozen=True)
class WorkloadStatus:
    """Running state and host PID of a workload."""
    name: str
    running: bool
    pid: Optional[int] = None


class WorkloadInspector(ABC):
    """Workload inspection operations consumed by the controller."""

    @abstractmethod
    def inspect(self, name: str) -> WorkloadStatus:
        """
        Query the running state and PID of workload `name`.

        Raises:
            WorkloadNotRunningError: the workload does not exist or the
                runtime could not be queried
        """


class ContainerRuntimeInspector(WorkloadInspector):
    """WorkloadInspector backed by `podman inspect` or `docker inspect`."""

    INSPECT_FORMAT = '{{.State.Running}} {{.State.Pid}}'

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        runtime: ContainerRuntime = ContainerRuntime.PODMAN,
        user: Optional[str] = None,
    ):
        """
        Args:
            runner: CommandRunner for the runtime CLI
            runtime: Container runtime owning the workload
            user: Service account the runtime is queried as (None = current user)
        """
        self._runner = runner or CommandRunner(timeout=Timeouts.SUBPROCESS_INSPECT)
        self.runtime = runtime
        self.user = user

    def inspect(self, name: str) -> WorkloadStatus:
        cmd = [self.runtime.value, 'inspect', '--format', self.INSPECT_FORMAT, name]
        if self.user:
            cmd = CommandRunner.as_user(self.user, cmd)

        try:
            result = self._runner.run(cmd)
        except CommandError as e:
            raise WorkloadNotRunningError(name, f"{self.runtime.value} inspect failed ({e})") from e

        return self._parse(name, result.stdout)

    @staticmethod
    def _parse(name: str, output: str) -> WorkloadStatus:
        fields = output.strip().split()
        if len(fields) != 2:
            raise WorkloadNotRunningError(name, f"unexpected inspect output {output.strip()!r}")

        running = fields[0].lower() == 'true'
        try:
            pid = int(fields[1])
        except ValueError:
            raise WorkloadNotRunningError(name, f"unparseable PID {fields[1]!r}") from None

        return WorkloadStatus(name=name, running=running, pid=pid if pid > 0 else None)


class NamespaceRuleVerifier:
    """Confirms the workload's block rules are active in its network namespace."""

    def __init__(
        self,
        inspector: WorkloadInspector,
        packet_filter: PacketFilter,
        workload_name: str,
        required_rules: Sequence[RuleSpec],
    ):
        self._inspector = inspector
        self._filter = packet_filter
        self.workload_name = workload_name
        self.required_rules: List[RuleSpec] = list(required_rules)
        if not self.required_rules:
            raise ConfigError(f"No block rules configured for workload {workload_name!r}")

    def resolve_pid(self) -> int:
        """
        Return the host PID of the running workload.

        Raises:
            WorkloadNotRunningError: not running, no PID, or the PID is gone
        """
        status = self._inspector.inspect(self.workload_name)
        if not status.running:
            raise WorkloadNotRunningError(self.workload_name, "container is not in a running state")
        if status.pid is None:
            raise WorkloadNotRunningError(self.workload_name, "PID could not be determined")
        if not psutil.pid_exists(status.pid):
            raise WorkloadNotRunningError(
                self.workload_name, f"PID {status.pid} does not exist on the host"
            )
        return status.pid

    def verify(self) -> bool:
        """
        Check every required rule inside the workload's namespace.

        Returns:
            True when all rules are present

        Raises:
            WorkloadNotRunningError: the workload's PID could not be resolved
            RulesMissingError: at least one rule is absent
        """
        pid = self.resolve_pid()
        logger.debug(f"Workload {self.workload_name} running as PID {pid}")

        missing = []
        for rule in self.required_rules:
            with safe_execute(
                "namespace rule check",
                ErrorCategory.SYSTEM,
                default_return=False,
                details={"pid": pid, "rule": str(rule)},
            ) as result:
                result.value = self._filter.rule_exists_in_namespace(pid, rule)

            if result.value:
                logger.debug(f"Found rule in workload namespace: {rule}")
            else:
                missing.append(str(rule))

        if missing:
            raise RulesMissingError(self.workload_name, missing)

        logger.info(
            f"Workload {self.workload_name}: all {len(self.required_rules)} block rules present"
        )
        return True


__all__ = [
    'ContainerRuntime',
    'WorkloadStatus',
    'WorkloadInspector',
    'ContainerRuntimeInspector',
    'NamespaceRuleVerifier',
]
