from __future__ import annotations

import asyncio
import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from duplicity_wrapper.config import WrapperConfig
from duplicity_wrapper.errors import (
    CommandTimeoutError,
    ConfigurationError,
    ExecutionError,
    ParseError,
    SpawnError,
    UnsupportedOperationError,
)
from duplicity_wrapper.execution.base import CommandExecutor, ProcessInvocation, ProcessOutcome
from duplicity_wrapper.execution.listeners import CommandListener, RecordingCommandListener
from duplicity_wrapper.options import (
    FullOptions,
    IncrOptions,
    ListCurrentFilesOptions,
    RemoveAllButNFullOptions,
    RemoveOlderThanOptions,
    VerifyOptions,
)
from duplicity_wrapper.timespan import TimeSpan
from duplicity_wrapper.wrapper import DuplicityWrapper

STATS = """\
ElapsedTime 0.50 (0.50 seconds)
SourceFiles 3
SourceFileSize 300 (300 bytes)
NewFiles 1
NewFileSize 100 (100 bytes)
DeletedFiles 0
ChangedFiles 2
ChangedFileSize 200 (200 bytes)
DeltaEntries 3
TotalDestinationSizeChange 90 (90 bytes)
Errors 0
"""


class StubExecutor(CommandExecutor):
    def __init__(self, stdout: str = "", exit_code: int = 0, stderr: str = "") -> None:
        self.stdout = stdout
        self.exit_code = exit_code
        self.stderr = stderr
        self.invocations: list[ProcessInvocation] = []

    async def run(
        self,
        invocation: ProcessInvocation,
        listener: CommandListener | None = None,
    ) -> ProcessOutcome:
        self.invocations.append(invocation)
        if listener is not None:
            listener.on_command(invocation.command_line)
            listener.on_stdout(self.stdout)
            listener.on_stderr(self.stderr)
            listener.on_close(self.exit_code)
        return ProcessOutcome(
            command=invocation.argv,
            stdout=self.stdout,
            stderr=self.stderr,
            exit_code=self.exit_code,
            duration_s=0.01,
        )


class TimeoutExecutor(CommandExecutor):
    async def run(
        self,
        invocation: ProcessInvocation,
        listener: CommandListener | None = None,
    ) -> ProcessOutcome:
        raise CommandTimeoutError(invocation.command_line, 1)


def _version_ok(*args: Any, **kwargs: Any) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args[0], 0, stdout="duplicity 2.1.4\n", stderr="")


def _wrapper(executor: CommandExecutor, **kwargs: Any) -> DuplicityWrapper:
    with patch("duplicity_wrapper.wrapper.subprocess.run", side_effect=_version_ok):
        return DuplicityWrapper("/opt/duplicity", executor=executor, **kwargs)


def test_constructor_queries_version() -> None:
    with patch("duplicity_wrapper.wrapper.subprocess.run", side_effect=_version_ok) as run:
        wrapper = DuplicityWrapper("/opt/duplicity", executor=StubExecutor())

    assert wrapper.version == "duplicity 2.1.4"
    assert wrapper.app_path == "/opt/duplicity"
    assert run.call_args.args[0] == ["/opt/duplicity", "--version"]


def test_constructor_fails_for_missing_executable(tmp_path: Path) -> None:
    with pytest.raises(SpawnError):
        DuplicityWrapper(str(tmp_path / "missing-duplicity"))


def test_constructor_fails_for_non_zero_version_exit() -> None:
    def failing(*args: Any, **kwargs: Any) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(args[0], 2, stdout="", stderr="bad install")

    with patch("duplicity_wrapper.wrapper.subprocess.run", side_effect=failing):
        with pytest.raises(ExecutionError) as excinfo:
            DuplicityWrapper("/opt/duplicity")

    assert excinfo.value.stderr == "bad install"


def test_full_backup_returns_statistics() -> None:
    executor = StubExecutor(stdout=STATS)
    wrapper = _wrapper(executor)

    result = wrapper.full(
        FullOptions(url="file:///b", target="src", cwd="/work", passphrase="p")
    )

    assert result.statistics.full_backup is True
    assert result.statistics.changed_files == 2
    invocation = executor.invocations[0]
    assert invocation.args == ["full", "src", "file:///b"]
    assert invocation.cwd == Path("/work")
    assert invocation.env["PASSPHRASE"] == "p"
    assert wrapper.observability.metrics.counters["commands.succeeded"] == 1


def test_incremental_alias_runs_incr() -> None:
    executor = StubExecutor(stdout=STATS)
    wrapper = _wrapper(executor)

    result = asyncio.run(
        wrapper.incremental_async(
            IncrOptions(
                url="file:///b",
                target="src",
                cwd=".",
                passphrase="p",
                full_if_older_than=TimeSpan.from_days(7),
            )
        )
    )

    assert result.command == "incr"
    assert result.statistics.full_backup is False
    assert executor.invocations[0].args[:2] == ["incr", "--full-if-older-than"]


def test_missing_passphrase_fails_before_any_process() -> None:
    executor = StubExecutor(stdout=STATS)
    listener = RecordingCommandListener()
    wrapper = _wrapper(executor, environ={"HOME": "/root"}, listener=listener)

    with pytest.raises(ConfigurationError):
        wrapper.verify(VerifyOptions(url="file:///b", target="src", cwd="."))

    assert executor.invocations == []
    assert listener.events == []


def test_ambient_passphrase_from_environment_snapshot() -> None:
    executor = StubExecutor(stdout="")
    wrapper = _wrapper(executor, environ={"PASSPHRASE": "ambient"})

    wrapper.list_current_files(ListCurrentFilesOptions(url="file:///b"))

    assert executor.invocations[0].env["PASSPHRASE"] == "ambient"


def test_future_cutoff_fails_before_any_process() -> None:
    executor = StubExecutor()
    wrapper = _wrapper(executor)

    with pytest.raises(ConfigurationError):
        wrapper.remove_older_than(
            RemoveOlderThanOptions(url="file:///b", passphrase="p", time=TimeSpan.from_days(-1))
        )

    assert executor.invocations == []


def test_non_zero_exit_raises_execution_error_with_stderr() -> None:
    executor = StubExecutor(stdout=STATS, exit_code=31, stderr="Permission denied")
    wrapper = _wrapper(executor)

    with pytest.raises(ExecutionError) as excinfo:
        wrapper.full(FullOptions(url="file:///b", target="src", cwd=".", passphrase="p"))

    assert "Permission denied" in str(excinfo.value)
    assert wrapper.observability.metrics.counters["commands.failed.ExecutionError"] == 1


def test_parse_failure_surfaces_as_parse_error() -> None:
    wrapper = _wrapper(StubExecutor(stdout="Unexpected banner\n"))

    with pytest.raises(ParseError):
        wrapper.verify(VerifyOptions(url="file:///b", target="src", cwd=".", passphrase="p"))


def test_timeout_propagates_and_is_counted() -> None:
    wrapper = _wrapper(TimeoutExecutor())

    with pytest.raises(CommandTimeoutError):
        wrapper.full(
            FullOptions(url="file:///b", target="src", cwd=".", passphrase="p", timeout_s=1)
        )

    assert wrapper.observability.metrics.counters["commands.failed.CommandTimeoutError"] == 1


def test_per_call_listener_overrides_default() -> None:
    default_listener = RecordingCommandListener()
    call_listener = RecordingCommandListener()
    wrapper = _wrapper(StubExecutor(stdout=""), listener=default_listener)

    wrapper.remove_all_but_n_full(
        RemoveAllButNFullOptions(url="file:///b", count=2, passphrase="p"),
        listener=call_listener,
    )

    assert default_listener.events == []
    assert call_listener.events[0] == ("command", "/opt/duplicity remove-all-but-n-full 2 file:///b")


def test_default_timeout_applies_when_request_has_none() -> None:
    executor = StubExecutor(stdout="")
    wrapper = _wrapper(executor, default_timeout_s=45)

    wrapper.list_current_files(ListCurrentFilesOptions(url="file:///b", passphrase="p"))

    assert executor.invocations[0].timeout_s == 45


@pytest.mark.parametrize(
    "name",
    ["collection_status", "restore", "remove_all_inc_of_but_n_full", "cleanup", "replicate"],
)
def test_unimplemented_commands_are_unsupported(name: str) -> None:
    wrapper = _wrapper(StubExecutor())

    with pytest.raises(UnsupportedOperationError):
        getattr(wrapper, name)()
    with pytest.raises(UnsupportedOperationError):
        asyncio.run(getattr(wrapper, f"{name}_async")())


def test_from_config_layers_env_and_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PASSPHRASE", raising=False)
    executor = StubExecutor(stdout="")
    config = WrapperConfig(app_path="/opt/duplicity", timeout_s=12, env={"TMPDIR": "/scratch"})

    with patch("duplicity_wrapper.wrapper.subprocess.run", side_effect=_version_ok):
        wrapper = DuplicityWrapper.from_config(config, executor=executor)
    wrapper.list_current_files(ListCurrentFilesOptions(url="file:///b", passphrase="p"))

    invocation = executor.invocations[0]
    assert invocation.program == "/opt/duplicity"
    assert invocation.env["TMPDIR"] == "/scratch"
    assert invocation.timeout_s == 12


def test_concurrent_commands_share_no_state() -> None:
    executor = StubExecutor(stdout=STATS)
    wrapper = _wrapper(executor)

    async def run_both() -> None:
        await asyncio.gather(
            wrapper.full_async(FullOptions(url="file:///a", target="a", cwd=".", passphrase="1")),
            wrapper.full_async(FullOptions(url="file:///b", target="b", cwd=".", passphrase="2")),
        )

    asyncio.run(run_both())

    passphrases = sorted(invocation.env["PASSPHRASE"] for invocation in executor.invocations)
    assert passphrases == ["1", "2"]


def test_parse_failure_is_counted_as_failed_not_succeeded() -> None:
    wrapper = _wrapper(StubExecutor(stdout="Unexpected banner\n"))

    with pytest.raises(ParseError):
        wrapper.full(FullOptions(url="file:///b", target="src", cwd=".", passphrase="p"))

    counters = wrapper.observability.metrics.counters
    assert counters["commands.failed.ParseError"] == 1
    assert "commands.succeeded" not in counters


def test_command_duration_is_tracked_per_keyword() -> None:
    wrapper = _wrapper(StubExecutor(stdout=""))

    wrapper.list_current_files(ListCurrentFilesOptions(url="file:///b", passphrase="p"))

    snapshot = wrapper.observability.metrics.snapshot()
    assert snapshot["durations"]["command.list-current-files"]["count"] == 1.0
    assert snapshot["counters"]["commands.succeeded"] == 1
