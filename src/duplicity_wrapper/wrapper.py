"""Public facade that runs duplicity commands and returns typed results."""

from __future__ import annotations

import asyncio
import os
import subprocess
from collections.abc import Callable, Coroutine, Mapping
from typing import TYPE_CHECKING, Any, Final, TypeVar

from duplicity_wrapper.arguments import build_invocation
from duplicity_wrapper.errors import (
    CommandTimeoutError,
    DuplicityError,
    ExecutionError,
    SpawnError,
    UnsupportedOperationError,
)
from duplicity_wrapper.execution.base import CommandExecutor, ProcessOutcome
from duplicity_wrapper.execution.listeners import CommandListener
from duplicity_wrapper.execution.local_exec import LocalExecutor
from duplicity_wrapper.options import (
    CommonOptions,
    FullOptions,
    IncrOptions,
    ListCurrentFilesOptions,
    RemoveAllButNFullOptions,
    RemoveOlderThanOptions,
    VerifyOptions,
)
from duplicity_wrapper.parsing import (
    parse_backup_statistics,
    parse_file_list,
    parse_remove_all_but_n_full,
    parse_remove_older_than,
    parse_verify,
)
from duplicity_wrapper.results import (
    BackupResult,
    ListCurrentFilesResult,
    RemoveAllButNFullResult,
    RemoveOlderThanResult,
    VerifyResult,
)
from duplicity_wrapper.util.logging import get_logger
from duplicity_wrapper.util.observability import ObservabilityManager, create_observability_manager

if TYPE_CHECKING:
    from duplicity_wrapper.config import WrapperConfig

DEFAULT_APP_PATH: Final[str] = "/usr/bin/duplicity"
VERSION_TIMEOUT_S: Final[float] = 30.0

R = TypeVar("R")


class DuplicityWrapper:
    """Run duplicity commands through a bound executable.

    The executable is probed with ``--version`` once, at construction. Every
    command is otherwise independent: arguments and environment are built fresh
    per call and no state is shared between concurrent calls.
    """

    def __init__(
        self,
        app_path: str = DEFAULT_APP_PATH,
        *,
        executor: CommandExecutor | None = None,
        listener: CommandListener | None = None,
        environ: Mapping[str, str] | None = None,
        default_timeout_s: float | None = None,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the wrapper.

        Args:
            app_path: Path to the duplicity executable.
            executor: Execution engine; defaults to :class:`LocalExecutor`.
            listener: Default lifecycle listener for every command.
            environ: Environment snapshot used instead of ``os.environ``.
            default_timeout_s: Timeout applied when a request does not set one.
            observability: Metrics and event sink.

        Raises:
            SpawnError: If the executable cannot be launched.
            ExecutionError: If ``--version`` exits with a non-zero code.
        """

        self._app_path = app_path
        self._executor = executor or LocalExecutor()
        self._listener = listener
        self._environ = dict(environ) if environ is not None else None
        self._default_timeout_s = default_timeout_s
        self._observability = observability or create_observability_manager()
        self._logger = get_logger(self.__class__.__name__)
        self._version = self._query_version()

    @classmethod
    def from_config(
        cls,
        config: WrapperConfig,
        *,
        executor: CommandExecutor | None = None,
        listener: CommandListener | None = None,
    ) -> DuplicityWrapper:
        """Create a wrapper from loaded configuration."""

        environ: dict[str, str] | None = None
        if config.env:
            environ = {**os.environ, **config.env}
        return cls(
            config.app_path,
            executor=executor,
            listener=listener,
            environ=environ,
            default_timeout_s=config.timeout_s,
        )

    @property
    def app_path(self) -> str:
        return self._app_path

    @property
    def version(self) -> str:
        return self._version

    @property
    def observability(self) -> ObservabilityManager:
        return self._observability

    async def full_async(
        self, options: FullOptions, *, listener: CommandListener | None = None
    ) -> BackupResult:
        """Run a full backup of ``options.target`` to ``options.url``."""

        return await self._execute(
            options, listener, lambda outcome: parse_backup_statistics(outcome, "full")
        )

    async def incr_async(
        self, options: IncrOptions, *, listener: CommandListener | None = None
    ) -> BackupResult:
        """Run an incremental backup.

        ``statistics.full_backup`` is true when duplicity upgraded the run to a
        full backup because the last one was older than ``full_if_older_than``.
        """

        return await self._execute(
            options, listener, lambda outcome: parse_backup_statistics(outcome, "incr")
        )

    async def incremental_async(
        self, options: IncrOptions, *, listener: CommandListener | None = None
    ) -> BackupResult:
        return await self.incr_async(options, listener=listener)

    async def verify_async(
        self, options: VerifyOptions, *, listener: CommandListener | None = None
    ) -> VerifyResult:
        return await self._execute(options, listener, parse_verify)

    async def list_current_files_async(
        self, options: ListCurrentFilesOptions, *, listener: CommandListener | None = None
    ) -> ListCurrentFilesResult:
        return await self._execute(options, listener, parse_file_list)

    async def remove_older_than_async(
        self, options: RemoveOlderThanOptions, *, listener: CommandListener | None = None
    ) -> RemoveOlderThanResult:
        return await self._execute(options, listener, parse_remove_older_than)

    async def remove_all_but_n_full_async(
        self, options: RemoveAllButNFullOptions, *, listener: CommandListener | None = None
    ) -> RemoveAllButNFullResult:
        return await self._execute(options, listener, parse_remove_all_but_n_full)

    async def collection_status_async(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("collection-status")

    async def restore_async(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("restore")

    async def remove_all_inc_of_but_n_full_async(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("remove-all-inc-of-but-n-full")

    async def cleanup_async(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("cleanup")

    async def replicate_async(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("replicate")

    def full(self, options: FullOptions, *, listener: CommandListener | None = None) -> BackupResult:
        """Run a full backup, blocking until it settles."""

        return _run_sync(self.full_async, options, listener)

    def incr(self, options: IncrOptions, *, listener: CommandListener | None = None) -> BackupResult:
        """Run an incremental backup, blocking until it settles."""

        return _run_sync(self.incr_async, options, listener)

    def incremental(
        self, options: IncrOptions, *, listener: CommandListener | None = None
    ) -> BackupResult:
        return self.incr(options, listener=listener)

    def verify(self, options: VerifyOptions, *, listener: CommandListener | None = None) -> VerifyResult:
        return _run_sync(self.verify_async, options, listener)

    def list_current_files(
        self, options: ListCurrentFilesOptions, *, listener: CommandListener | None = None
    ) -> ListCurrentFilesResult:
        return _run_sync(self.list_current_files_async, options, listener)

    def remove_older_than(
        self, options: RemoveOlderThanOptions, *, listener: CommandListener | None = None
    ) -> RemoveOlderThanResult:
        return _run_sync(self.remove_older_than_async, options, listener)

    def remove_all_but_n_full(
        self, options: RemoveAllButNFullOptions, *, listener: CommandListener | None = None
    ) -> RemoveAllButNFullResult:
        return _run_sync(self.remove_all_but_n_full_async, options, listener)

    def collection_status(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("collection-status")

    def restore(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("restore")

    def remove_all_inc_of_but_n_full(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("remove-all-inc-of-but-n-full")

    def cleanup(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("cleanup")

    def replicate(self, options: Any = None) -> Any:
        raise UnsupportedOperationError("replicate")

    async def _execute(
        self,
        options: CommonOptions,
        listener: CommandListener | None,
        parse: Callable[[ProcessOutcome], R],
    ) -> R:
        """Run one command and parse its output.

        A command only counts as succeeded once its output has been parsed, so
        a non-zero exit or unexpected output is recorded under its error class.
        """

        invocation = build_invocation(
            self._app_path,
            options,
            environ=self._environ,
            default_timeout_s=self._default_timeout_s,
        )
        keyword = invocation.args[0]
        metrics = self._observability.metrics
        metrics.increment("commands.started")
        try:
            with self._observability.track_duration(f"command.{keyword}"):
                outcome = await self._executor.run(invocation, listener or self._listener)
            self._observability.log_event(
                "command.finished",
                {
                    "command": keyword,
                    "exit_code": outcome.exit_code,
                    "duration_s": outcome.duration_s,
                },
            )
            if outcome.exit_code != 0:
                self._logger.warning(
                    "duplicity %s exited with code %s.", keyword, outcome.exit_code
                )
            result = parse(outcome)
        except DuplicityError as exc:
            metrics.increment(f"commands.failed.{type(exc).__name__}")
            raise
        metrics.increment("commands.succeeded")
        return result

    def _query_version(self) -> str:
        command = [self._app_path, "--version"]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=VERSION_TIMEOUT_S,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandTimeoutError(" ".join(command), VERSION_TIMEOUT_S) from exc
        except OSError as exc:
            raise SpawnError(f"Unable to launch {self._app_path}: {exc}") from exc
        if completed.returncode != 0:
            raise ExecutionError(completed.returncode, completed.stderr or "")
        version = (completed.stdout or "").rstrip()
        self._logger.info("Using %s (%s).", self._app_path, version)
        return version


def _run_sync(
    operation: Callable[..., Coroutine[Any, Any, R]],
    options: CommonOptions,
    listener: CommandListener | None,
) -> R:
    return asyncio.run(operation(options, listener=listener))
