"""Execution engine base types and interfaces."""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from duplicity_wrapper.execution.listeners import CommandListener


@dataclass(frozen=True)
class ProcessInvocation:
    """Everything needed to launch one duplicity process.

    Attributes:
        program: Path to the executable.
        args: Arguments following the executable.
        cwd: Optional working directory.
        env: Complete environment for the child process.
        timeout_s: Optional timeout in seconds; ``None`` or 0 disables it.
    """

    program: str
    args: list[str]
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict, repr=False)
    timeout_s: float | None = None

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True)
class ProcessOutcome:
    """Result of executing a command.

    Attributes:
        command: The command executed as a list of strings.
        stdout: Captured standard output.
        stderr: Captured standard error.
        exit_code: Exit code returned by the process.
        duration_s: Duration of the execution in seconds.
    """

    command: list[str]
    stdout: str
    stderr: str
    exit_code: int
    duration_s: float


class CommandExecutor(ABC):
    """Abstract base class for command execution engines."""

    @abstractmethod
    async def run(
        self,
        invocation: ProcessInvocation,
        listener: CommandListener | None = None,
    ) -> ProcessOutcome:
        """Run a command and capture its results.

        Args:
            invocation: The process to launch.
            listener: Optional receiver for lifecycle notifications.

        Returns:
            ProcessOutcome containing stdout, stderr, exit code, and duration.

        Raises:
            SpawnError: If the executable cannot be launched.
            CommandTimeoutError: If the timeout expires before the process exits.
        """
