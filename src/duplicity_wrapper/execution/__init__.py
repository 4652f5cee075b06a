"""Execution engine package."""

from duplicity_wrapper.execution.base import CommandExecutor, ProcessInvocation, ProcessOutcome
from duplicity_wrapper.execution.listeners import (
    CommandListener,
    LoggingCommandListener,
    RecordingCommandListener,
)
from duplicity_wrapper.execution.local_exec import LocalExecutor

__all__ = [
    "CommandExecutor",
    "CommandListener",
    "LocalExecutor",
    "LoggingCommandListener",
    "ProcessInvocation",
    "ProcessOutcome",
    "RecordingCommandListener",
]
