"""
Subprocess Shell Runner

Architectural Intent:
- Implements ShellRunnerPort with subprocess.run
- Never raises for command failures: a missing executable is exit 127 and
  a timeout is exit 124, mirroring what a shell would report
"""

import logging
import subprocess
from typing import Optional

from enisync.domain.ports.shell_runner_port import CommandResult, ShellRunnerPort

logger = logging.getLogger(__name__)


class SubprocessShellRunner(ShellRunnerPort):
    def run(self, argv: list[str], timeout: Optional[float] = None) -> CommandResult:
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            return CommandResult(127, "", str(e))
        except subprocess.TimeoutExpired as e:
            logger.warning("Command timed out after %ss: %s", timeout, " ".join(argv))
            stdout = e.stdout if isinstance(e.stdout, str) else ""
            return CommandResult(124, stdout, f"timed out after {timeout}s")
        return CommandResult(result.returncode, result.stdout, result.stderr)
