"""Error types raised by the duplicity wrapper."""

from __future__ import annotations

_EXCERPT_CHARS = 2000


class DuplicityError(RuntimeError):
    """Base class for every failure surfaced by the wrapper."""


class ConfigurationError(DuplicityError, ValueError):
    """Raised when a request cannot be turned into a valid invocation.

    Always raised before any process is spawned.
    """


class SpawnError(DuplicityError):
    """Raised when the duplicity executable cannot be launched."""


class ExecutionError(DuplicityError):
    """Raised when duplicity exits with a non-zero return code.

    Attributes:
        exit_code: Return code reported by the process.
        stderr: Captured standard error, verbatim.
    """

    def __init__(self, exit_code: int, stderr: str) -> None:
        super().__init__(f"Return code = {exit_code}: {stderr}")
        self.exit_code = exit_code
        self.stderr = stderr


class CommandTimeoutError(DuplicityError, TimeoutError):
    """Raised when a command outlives its configured timeout."""

    def __init__(self, command_line: str, timeout_s: float) -> None:
        super().__init__(
            f"Command {command_line} timed out after {timeout_s}s - check for input prompt"
        )
        self.command_line = command_line
        self.timeout_s = timeout_s


class ParseError(DuplicityError):
    """Raised when a successful command produced output that does not match the grammar.

    Attributes:
        stdout: The full captured standard output.
    """

    def __init__(self, message: str, stdout: str) -> None:
        excerpt = stdout if len(stdout) <= _EXCERPT_CHARS else stdout[:_EXCERPT_CHARS] + "..."
        super().__init__(f"Parsing error: {message}\n--- output ---\n{excerpt}")
        self.stdout = stdout


class UnsupportedOperationError(DuplicityError, NotImplementedError):
    """Raised for duplicity commands the wrapper does not implement."""

    def __init__(self, command: str) -> None:
        super().__init__(f"Command '{command}' is not supported")
        self.command = command
