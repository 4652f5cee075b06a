"""Lifecycle notifications emitted around each duplicity process."""

from __future__ import annotations

from duplicity_wrapper.util.observability import EventLogger


class CommandListener:
    """Receives lifecycle notifications for a single command.

    Every hook is a no-op; subclasses override the ones they need. Hooks are
    informational only and never influence the returned result.
    """

    def on_command(self, command_line: str) -> None:
        """Called with the full command line before the process is spawned."""

    def on_stdout(self, text: str) -> None:
        """Called with the complete stdout once the process has settled."""

    def on_stderr(self, text: str) -> None:
        """Called with the complete stderr once the process has settled."""

    def on_close(self, exit_code: int | None) -> None:
        """Called last; ``exit_code`` is ``None`` when the command timed out."""


class LoggingCommandListener(CommandListener):
    """Forward lifecycle notifications to the structured event logger."""

    def __init__(self, logger_name: str = "duplicity_wrapper.commands") -> None:
        self._events = EventLogger(logger_name)

    def on_command(self, command_line: str) -> None:
        self._events.log("command.issued", {"command_line": command_line})

    def on_stdout(self, text: str) -> None:
        self._events.log("command.stdout", {"text": text}, level="DEBUG")

    def on_stderr(self, text: str) -> None:
        self._events.log("command.stderr", {"text": text}, level="DEBUG")

    def on_close(self, exit_code: int | None) -> None:
        self._events.log("command.closed", {"exit_code": exit_code, "timed_out": exit_code is None})


class RecordingCommandListener(CommandListener):
    """Keep every notification in memory, in arrival order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def on_command(self, command_line: str) -> None:
        self.events.append(("command", command_line))

    def on_stdout(self, text: str) -> None:
        self.events.append(("stdout", text))

    def on_stderr(self, text: str) -> None:
        self.events.append(("stderr", text))

    def on_close(self, exit_code: int | None) -> None:
        self.events.append(("close", exit_code))
