"""Typed result records returned by the duplicity wrapper."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ConsoleOutput:
    """Raw text captured from a duplicity run."""

    stdout: str
    stderr: str


@dataclass(frozen=True)
class CommandResult:
    """Fields shared by every typed result.

    Attributes:
        exit_code: Return code of the process.
        command: The duplicity command keyword (e.g. ``full``).
        output: Captured stdout/stderr kept for diagnostics.
    """

    exit_code: int
    command: str
    output: ConsoleOutput

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation of the result."""

        return _jsonable(asdict(self))


@dataclass(frozen=True)
class BackupStatistics:
    """Statistics block printed at the end of a full or incremental backup."""

    elapsed_time: float
    source_files: int
    source_file_size: int
    new_files: int
    new_file_size: int
    deleted_files: int
    changed_files: int
    changed_file_size: int
    delta_entries: int
    total_destination_size_change: int
    errors: int
    full_backup: bool


@dataclass(frozen=True)
class BackupResult(CommandResult):
    statistics: BackupStatistics


@dataclass(frozen=True)
class VerifyResult(CommandResult):
    files_compared: int
    differences_found: int
    last_full_backup_date: datetime


@dataclass(frozen=True)
class FileEntry:
    file_name: str
    file_time: datetime


@dataclass(frozen=True)
class ListCurrentFilesResult(CommandResult):
    entries: list[FileEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RemoveOlderThanResult(CommandResult):
    require_force: bool = False
    entries: list[datetime] = field(default_factory=list)


@dataclass(frozen=True)
class RemoveAllButNFullResult(CommandResult):
    require_force: bool = False


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value
