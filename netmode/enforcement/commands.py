"""
Command Runner - the single place external tools are executed.

Every adapter (packet filter, connection tracker, container runtime) runs
its commands through a CommandRunner so tests can substitute one recorder
for all of them.
"""

import logging
import subprocess
from typing import List, Optional, Sequence

from ..constants import Timeouts
from ..exceptions import CommandError

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs external commands with captured output and a timeout."""

    def __init__(self, timeout: float = Timeouts.SUBPROCESS_DEFAULT):
        self.timeout = timeout

    @staticmethod
    def as_user(user: str, args: Sequence[str]) -> List[str]:
        """Wrap `args` so they execute under the given service identity."""
        return ['runuser', '-u', user, '--'] + list(args)

    def run(
        self,
        args: Sequence[str],
        check: bool = True,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run a command.

        Args:
            args: Command and arguments
            check: Raise CommandError on a non-zero exit status
            timeout: Override the runner's default timeout

        Returns:
            CompletedProcess with decoded stdout/stderr

        Raises:
            CommandError: the command could not be executed, timed out,
                or (with check) exited non-zero
        """
        cmd = list(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise CommandError(cmd, None, f"timed out after {timeout or self.timeout}s")
        except OSError as e:
            raise CommandError(cmd, None, str(e)) from e

        if result.returncode != 0:
            logger.debug(f"{cmd[0]} exited {result.returncode}: {result.stderr.strip()}")
            if check:
                raise CommandError(cmd, result.returncode, result.stderr.strip())

        return result


__all__ = ['CommandRunner']
