"""Typed asyncio wrapper around the duplicity backup command line."""

from duplicity_wrapper.errors import (
    CommandTimeoutError,
    ConfigurationError,
    DuplicityError,
    ExecutionError,
    ParseError,
    SpawnError,
    UnsupportedOperationError,
)
from duplicity_wrapper.execution import CommandListener, LoggingCommandListener
from duplicity_wrapper.options import (
    CommonOptions,
    FullOptions,
    IncrOptions,
    ListCurrentFilesOptions,
    RemoveAllButNFullOptions,
    RemoveOlderThanOptions,
    SourceOptions,
    VerifyOptions,
)
from duplicity_wrapper.results import (
    BackupResult,
    BackupStatistics,
    ConsoleOutput,
    FileEntry,
    ListCurrentFilesResult,
    RemoveAllButNFullResult,
    RemoveOlderThanResult,
    VerifyResult,
)
from duplicity_wrapper.timespan import TimeSpan
from duplicity_wrapper.wrapper import DuplicityWrapper

__all__ = [
    "BackupResult",
    "BackupStatistics",
    "CommandListener",
    "CommandTimeoutError",
    "CommonOptions",
    "ConfigurationError",
    "ConsoleOutput",
    "DuplicityError",
    "DuplicityWrapper",
    "ExecutionError",
    "FileEntry",
    "FullOptions",
    "IncrOptions",
    "ListCurrentFilesOptions",
    "ListCurrentFilesResult",
    "LoggingCommandListener",
    "ParseError",
    "RemoveAllButNFullOptions",
    "RemoveAllButNFullResult",
    "RemoveOlderThanOptions",
    "RemoveOlderThanResult",
    "SourceOptions",
    "SpawnError",
    "TimeSpan",
    "UnsupportedOperationError",
    "VerifyOptions",
    "VerifyResult",
]
