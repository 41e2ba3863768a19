"""
Shell Runner Port

Architectural Intent:
- Port interface for executing local OS commands
- Returns the raw outcome; classifying failures (permission denied vs.
  generic failure) is the job of domain.services.ip_command
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ShellRunnerPort(ABC):
    """
    Port interface for running a command line and collecting its output.
    """

    @abstractmethod
    def run(self, argv: list[str], timeout: Optional[float] = None) -> CommandResult:
        """
        Runs argv to completion and returns exit status, stdout and stderr.
        A missing executable is reported as a non-zero result, not raised.
        """
        pass
