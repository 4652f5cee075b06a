from __future__ import annotations

import locale
from datetime import datetime

import pytest

from duplicity_wrapper.errors import ExecutionError, ParseError
from duplicity_wrapper.execution.base import ProcessOutcome
from duplicity_wrapper.parsing import (
    ERRORS,
    FULL_BACKUP_FORCED,
    parse_backup_statistics,
    parse_file_list,
    parse_remove_all_but_n_full,
    parse_remove_older_than,
    parse_verify,
    weekday_lines,
)

BACKUP_STATS = """\
Local and Remote metadata are synchronized, no sync needed.
Last full backup date: none
--------------[ Backup Statistics ]--------------
StartTime 1706342400.12 (Sat Jan 27 08:00:00 2024)
EndTime 1706342401.46 (Sat Jan 27 08:00:01 2024)
ElapsedTime 1.34 (1.34 seconds)
SourceFiles 12
SourceFileSize 40960 (40.0 KB)
NewFiles 12
NewFileSize 40960 (40.0 KB)
DeletedFiles 0
ChangedFiles 0
ChangedFileSize 0 (0 bytes)
ChangedDeltaSize 0 (0 bytes)
DeltaEntries 12
RawDeltaSize 36864 (36.0 KB)
TotalDestinationSizeChange 1543 (1.51 KB)
Errors 0
-------------------------------------------------
"""


def _outcome(stdout: str, exit_code: int = 0, stderr: str = "") -> ProcessOutcome:
    return ProcessOutcome(
        command=["duplicity"],
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        duration_s=0.1,
    )


def test_full_backup_statistics_are_parsed() -> None:
    result = parse_backup_statistics(_outcome(BACKUP_STATS), "full")

    stats = result.statistics
    assert result.command == "full"
    assert result.exit_code == 0
    assert stats.elapsed_time == pytest.approx(1.34)
    assert stats.source_files == 12
    assert stats.source_file_size == 40960
    assert stats.new_files == 12
    assert stats.new_file_size == 40960
    assert stats.deleted_files == 0
    assert stats.changed_files == 0
    assert stats.changed_file_size == 0
    assert stats.delta_entries == 12
    assert stats.total_destination_size_change == 1543
    assert stats.errors == 0
    assert stats.full_backup is True
    assert result.output.stdout == BACKUP_STATS


def test_incremental_is_not_full_without_marker() -> None:
    result = parse_backup_statistics(_outcome(BACKUP_STATS), "incr")

    assert result.statistics.full_backup is False


def test_incremental_upgraded_to_full_backup() -> None:
    stdout = "Last full backup is too old, forcing full backup\n" + BACKUP_STATS

    result = parse_backup_statistics(_outcome(stdout), "incr")

    assert result.statistics.full_backup is True


def test_missing_errors_label_raises_parse_error() -> None:
    stdout = BACKUP_STATS.replace("Errors 0\n", "")

    with pytest.raises(ParseError) as excinfo:
        parse_backup_statistics(_outcome(stdout), "full")

    assert "Errors" in str(excinfo.value)
    assert excinfo.value.stdout == stdout


def test_labels_must_start_a_line() -> None:
    with pytest.raises(ParseError):
        ERRORS.extract("TotalErrors 0\n")
    assert ERRORS.extract("Errors 3\n") == 3


def test_negative_destination_size_change() -> None:
    stdout = BACKUP_STATS.replace(
        "TotalDestinationSizeChange 1543", "TotalDestinationSizeChange -20"
    )

    result = parse_backup_statistics(_outcome(stdout), "incr")

    assert result.statistics.total_destination_size_change == -20


def test_non_zero_exit_code_is_execution_error_before_parsing() -> None:
    with pytest.raises(ExecutionError) as excinfo:
        parse_backup_statistics(_outcome("", exit_code=23, stderr="No such file"), "full")

    assert excinfo.value.exit_code == 23
    assert excinfo.value.stderr == "No such file"


@pytest.mark.parametrize(
    "parser",
    [parse_verify, parse_file_list, parse_remove_older_than, parse_remove_all_but_n_full],
)
def test_every_parser_checks_exit_code(parser: object) -> None:
    with pytest.raises(ExecutionError):
        parser(_outcome(BACKUP_STATS, exit_code=1, stderr="boom"))  # type: ignore[operator]


def test_verify_output_is_parsed() -> None:
    stdout = (
        "Local and Remote metadata are synchronized, no sync needed.\n"
        "Last full backup date: Thu Jan 27 08:00:00 2022\n"
        "Verify complete: 42 files compared, 1 difference found.\n"
    )

    result = parse_verify(_outcome(stdout))

    assert result.files_compared == 42
    assert result.differences_found == 1
    assert result.last_full_backup_date == datetime(2022, 1, 27, 8, 0, 0)


def test_verify_accepts_space_padded_day() -> None:
    stdout = (
        "Last full backup date: Sun Jan  2 09:15:00 2022\n"
        "Verify complete: 3 files compared, 0 differences found.\n"
    )

    result = parse_verify(_outcome(stdout))

    assert result.last_full_backup_date == datetime(2022, 1, 2, 9, 15, 0)


def test_verify_without_summary_raises_parse_error() -> None:
    stdout = "Last full backup date: Thu Jan 27 08:00:00 2022\n"

    with pytest.raises(ParseError):
        parse_verify(_outcome(stdout))


def test_verify_without_backup_date_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_verify(_outcome("Verify complete: 3 files compared, 0 differences found.\n"))


def test_verify_with_unparseable_backup_date_raises_parse_error() -> None:
    stdout = (
        "Last full backup date: none\n"
        "Verify complete: 3 files compared, 0 differences found.\n"
    )

    with pytest.raises(ParseError):
        parse_verify(_outcome(stdout))


def test_file_list_skips_banner_lines() -> None:
    stdout = (
        "Local and Remote metadata are synchronized, no sync needed.\n"
        "Last full backup date: Mon Jan  1 00:00:00 2024\n"
        "Mon Jan 01 00:00:00 2024  file1.txt\n"
        "Tue Jan 02 00:00:00 2024  a b.txt\n"
    )

    result = parse_file_list(_outcome(stdout))

    assert [entry.file_name for entry in result.entries] == ["file1.txt", "a b.txt"]
    assert result.entries[0].file_time == datetime(2024, 1, 1)
    assert result.entries[1].file_time == datetime(2024, 1, 2)
    assert result.command == "list-current-files"


def test_file_list_accepts_sunday_lines() -> None:
    result = parse_file_list(_outcome("Sun Jan  7 10:11:12 2024 docs/notes.md\n"))

    assert result.entries[0].file_name == "docs/notes.md"
    assert result.entries[0].file_time == datetime(2024, 1, 7, 10, 11, 12)


def test_file_list_with_bad_timestamp_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_file_list(_outcome("Mon Foo 01 00:00:00 2024 file.txt\n"))


def test_empty_file_list_is_valid() -> None:
    result = parse_file_list(_outcome("Last full backup date: none\n"))

    assert result.entries == []


def test_weekday_filter_requires_trailing_space() -> None:
    lines = list(weekday_lines("Monday notes\nMon Jan 01 00:00:00 2024 x\nTuesday\n"))

    assert lines == ["Mon Jan 01 00:00:00 2024 x"]


def test_remove_older_than_requires_force() -> None:
    stdout = (
        "Found old backup chains at the following times:\n"
        "Rerun command with --force option to actually delete.\n"
    )

    result = parse_remove_older_than(_outcome(stdout))

    assert result.require_force is True
    assert result.entries == []


def test_remove_older_than_collects_entries_when_no_old_sets_found() -> None:
    stdout = (
        "Last full backup date: Sat Jan  6 00:00:00 2024\n"
        "No old backup sets found, nothing deleted.\n"
        "Fri Jan 05 10:00:00 2024\n"
        "Sat Jan 06 00:00:00 2024\n"
    )

    result = parse_remove_older_than(_outcome(stdout))

    assert result.require_force is False
    assert result.entries == [datetime(2024, 1, 5, 10, 0, 0), datetime(2024, 1, 6, 0, 0, 0)]


def test_remove_all_but_n_full_force_flag() -> None:
    assert parse_remove_all_but_n_full(
        _outcome("Rerun command with --force option to actually delete.\n")
    ).require_force is True
    assert parse_remove_all_but_n_full(_outcome("Deleting backup chains\n")).require_force is False


def test_full_backup_marker_must_start_a_line() -> None:
    assert FULL_BACKUP_FORCED.present("x\nLast full backup is too old\n")
    assert not FULL_BACKUP_FORCED.present("Note: Last full backup is too old\n")


@pytest.mark.parametrize(
    ("month", "number"),
    [("Jan", 1), ("Feb", 2), ("Jun", 6), ("Sep", 9), ("Dec", 12)],
)
def test_timestamps_use_english_month_names(month: str, number: int) -> None:
    result = parse_file_list(_outcome(f"Wed {month} 03 04:05:06 2021 a.txt\n"))

    assert result.entries[0].file_time == datetime(2021, number, 3, 4, 5, 6)


def test_timestamps_parse_under_a_non_english_locale() -> None:
    previous = locale.setlocale(locale.LC_TIME)
    try:
        locale.setlocale(locale.LC_TIME, "de_DE.UTF-8")
    except locale.Error:
        pytest.skip("de_DE.UTF-8 locale is not installed")
    try:
        result = parse_file_list(_outcome("Tue Mar 05 10:00:00 2024 report.pdf\n"))
    finally:
        locale.setlocale(locale.LC_TIME, previous)

    assert result.entries[0].file_time == datetime(2024, 3, 5, 10, 0, 0)


def test_impossible_calendar_date_raises_parse_error() -> None:
    with pytest.raises(ParseError):
        parse_file_list(_outcome("Fri Feb 30 00:00:00 2024 file.txt\n"))
