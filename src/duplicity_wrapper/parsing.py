"""Interpret duplicity's textual output.

The output grammar is modelled as small matchers (labelled statistic lines,
literal marker lines, summary lines and weekday-prefixed listing lines) so a
change in one part of duplicity's output breaks exactly one matcher. A missing
match always raises :class:`ParseError`; nothing defaults to zero or empty.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Final, Generic, TypeVar

from duplicity_wrapper.errors import ExecutionError, ParseError
from duplicity_wrapper.execution.base import ProcessOutcome
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

T = TypeVar("T")

WEEKDAYS: Final[tuple[str, ...]] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAY_PREFIXES: Final[tuple[str, ...]] = tuple(f"{day} " for day in WEEKDAYS)
# asctime output is English regardless of LC_TIME.
MONTHS: Final[dict[str, int]] = {
    name: number
    for number, name in enumerate(
        ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
        start=1,
    )
}
_TIMESTAMP = re.compile(
    rf"(?:{'|'.join(WEEKDAYS)}) (?P<month>[A-Z][a-z]{{2}}) (?P<day>\d{{1,2}}) "
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2}) (?P<year>\d{4})"
)
_TIMESTAMP_TOKENS: Final[int] = 5


@dataclass(frozen=True)
class LabeledValue(Generic[T]):
    """A ``<Label> <number>`` statistics line."""

    label: str
    convert: Callable[[str], T]
    number_pattern: str = r"-?\d+"

    def extract(self, text: str) -> T:
        match = re.search(
            rf"^{re.escape(self.label)} ({self.number_pattern})\b", text, re.MULTILINE
        )
        if match is None:
            raise ParseError(f"missing '{self.label}' statistic", text)
        return self.convert(match.group(1))


@dataclass(frozen=True)
class Marker:
    """A literal marker that may appear anywhere in the output."""

    text: str
    line_start: bool = False

    def present(self, output: str) -> bool:
        if self.line_start:
            return re.search(rf"^{re.escape(self.text)}", output, re.MULTILINE) is not None
        return self.text in output


@dataclass(frozen=True)
class SummaryLine:
    """A summary line whose groups carry the values of interest."""

    pattern: re.Pattern[str]
    description: str

    def extract(self, text: str) -> tuple[str, ...]:
        match = self.pattern.search(text)
        if match is None:
            raise ParseError(f"missing {self.description} line", text)
        return match.groups()


ELAPSED_TIME = LabeledValue("ElapsedTime", float, number_pattern=r"\d+(?:\.\d+)?")
SOURCE_FILES = LabeledValue("SourceFiles", int)
SOURCE_FILE_SIZE = LabeledValue("SourceFileSize", int)
NEW_FILES = LabeledValue("NewFiles", int)
NEW_FILE_SIZE = LabeledValue("NewFileSize", int)
DELETED_FILES = LabeledValue("DeletedFiles", int)
CHANGED_FILES = LabeledValue("ChangedFiles", int)
CHANGED_FILE_SIZE = LabeledValue("ChangedFileSize", int)
DELTA_ENTRIES = LabeledValue("DeltaEntries", int)
TOTAL_DESTINATION_SIZE_CHANGE = LabeledValue("TotalDestinationSizeChange", int)
ERRORS = LabeledValue("Errors", int)

FULL_BACKUP_FORCED = Marker("Last full backup is too old", line_start=True)
FORCE_REQUIRED = Marker("Rerun command with --force")
NO_OLD_SETS = Marker("No old backup sets found")

VERIFY_SUMMARY = SummaryLine(
    re.compile(r"Verify complete: (\d+) files compared, (\d+) "),
    "'Verify complete'",
)
LAST_FULL_BACKUP = SummaryLine(
    re.compile(r"^Last full backup date: (.*)$", re.MULTILINE),
    "'Last full backup date'",
)


def check_exit_code(outcome: ProcessOutcome) -> None:
    """Raise :class:`ExecutionError` for a non-zero exit code."""

    if outcome.exit_code != 0:
        raise ExecutionError(outcome.exit_code, outcome.stderr)


def parse_timestamp(text: str, stdout: str) -> datetime:
    """Parse an asctime-style timestamp such as ``Thu Jan 27 08:00:00 2022``."""

    match = _TIMESTAMP.fullmatch(" ".join(text.split()))
    if match is None or match["month"] not in MONTHS:
        raise ParseError(f"unparseable timestamp {text!r}", stdout)
    try:
        return datetime(
            int(match["year"]),
            MONTHS[match["month"]],
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
        )
    except ValueError as exc:
        raise ParseError(f"unparseable timestamp {text!r}", stdout) from exc


def weekday_lines(text: str) -> Iterator[str]:
    """Yield the lines that start with a weekday abbreviation followed by a space."""

    for line in text.splitlines():
        if line.startswith(WEEKDAY_PREFIXES):
            yield line


def parse_backup_statistics(outcome: ProcessOutcome, command: str) -> BackupResult:
    """Parse the statistics block printed by ``full`` and ``incr``."""

    check_exit_code(outcome)
    text = outcome.stdout
    if command == "full":
        full_backup = True
    else:
        full_backup = FULL_BACKUP_FORCED.present(text)
    statistics = BackupStatistics(
        elapsed_time=ELAPSED_TIME.extract(text),
        source_files=SOURCE_FILES.extract(text),
        source_file_size=SOURCE_FILE_SIZE.extract(text),
        new_files=NEW_FILES.extract(text),
        new_file_size=NEW_FILE_SIZE.extract(text),
        deleted_files=DELETED_FILES.extract(text),
        changed_files=CHANGED_FILES.extract(text),
        changed_file_size=CHANGED_FILE_SIZE.extract(text),
        delta_entries=DELTA_ENTRIES.extract(text),
        total_destination_size_change=TOTAL_DESTINATION_SIZE_CHANGE.extract(text),
        errors=ERRORS.extract(text),
        full_backup=full_backup,
    )
    return BackupResult(
        exit_code=outcome.exit_code,
        command=command,
        output=_console(outcome),
        statistics=statistics,
    )


def parse_verify(outcome: ProcessOutcome) -> VerifyResult:
    check_exit_code(outcome)
    text = outcome.stdout
    compared, differences = VERIFY_SUMMARY.extract(text)
    (last_full,) = LAST_FULL_BACKUP.extract(text)
    return VerifyResult(
        exit_code=outcome.exit_code,
        command="verify",
        output=_console(outcome),
        files_compared=int(compared),
        differences_found=int(differences),
        last_full_backup_date=parse_timestamp(last_full, text),
    )


def parse_file_list(outcome: ProcessOutcome) -> ListCurrentFilesResult:
    """Parse ``list-current-files`` output, ignoring banner lines."""

    check_exit_code(outcome)
    entries: list[FileEntry] = []
    for line in weekday_lines(outcome.stdout):
        tokens = line.split()
        if len(tokens) <= _TIMESTAMP_TOKENS:
            raise ParseError(f"file listing line without a filename: {line!r}", outcome.stdout)
        timestamp = parse_timestamp(" ".join(tokens[:_TIMESTAMP_TOKENS]), outcome.stdout)
        entries.append(
            FileEntry(file_name=" ".join(tokens[_TIMESTAMP_TOKENS:]), file_time=timestamp)
        )
    return ListCurrentFilesResult(
        exit_code=outcome.exit_code,
        command="list-current-files",
        output=_console(outcome),
        entries=entries,
    )


def parse_remove_older_than(outcome: ProcessOutcome) -> RemoveOlderThanResult:
    check_exit_code(outcome)
    text = outcome.stdout
    entries: list[datetime] = []
    if NO_OLD_SETS.present(text):
        entries = [
            parse_timestamp(" ".join(line.split()[:_TIMESTAMP_TOKENS]), text)
            for line in weekday_lines(text)
        ]
    return RemoveOlderThanResult(
        exit_code=outcome.exit_code,
        command="remove-older-than",
        output=_console(outcome),
        require_force=FORCE_REQUIRED.present(text),
        entries=entries,
    )


def parse_remove_all_but_n_full(outcome: ProcessOutcome) -> RemoveAllButNFullResult:
    check_exit_code(outcome)
    return RemoveAllButNFullResult(
        exit_code=outcome.exit_code,
        command="remove-all-but-n-full",
        output=_console(outcome),
        require_force=FORCE_REQUIRED.present(outcome.stdout),
    )


def _console(outcome: ProcessOutcome) -> ConsoleOutput:
    return ConsoleOutput(stdout=outcome.stdout, stderr=outcome.stderr)
