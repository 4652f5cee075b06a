"""CLI entrypoints for duplicity-wrapper."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Optional, TypeVar

import typer

from duplicity_wrapper.config import WrapperConfig, config_to_dict, load_config, update_app_path
from duplicity_wrapper.errors import ConfigurationError, DuplicityError
from duplicity_wrapper.execution.listeners import LoggingCommandListener
from duplicity_wrapper.options import (
    Cutoff,
    FullOptions,
    IncrOptions,
    ListCurrentFilesOptions,
    RemoveAllButNFullOptions,
    RemoveOlderThanOptions,
    VerifyOptions,
)
from duplicity_wrapper.results import BackupResult, CommandResult
from duplicity_wrapper.timespan import TimeSpan
from duplicity_wrapper.util.logging import configure_logging
from duplicity_wrapper.wrapper import DuplicityWrapper

R = TypeVar("R")

app = typer.Typer(help="Run duplicity backups and print typed results.")

_URL = typer.Argument(..., help="Backup repository URL, e.g. file:///backups.")
_TARGET = typer.Option(..., "--target", "-t", help="Source path relative to --cwd.")
_CWD = typer.Option(Path("."), "--cwd", help="Working directory for the command.")
_NAME = typer.Option(None, "--name", help="Backup name passed as --name.")
_DRY_RUN = typer.Option(False, "--dry-run", help="Pass --dryrun to duplicity.")
_VERBOSITY = typer.Option(None, "--verbosity", help="Duplicity verbosity level.")
_EXTRA = typer.Option(None, "--extra", help="Extra raw arguments, whitespace separated.")
_TIMEOUT = typer.Option(None, "--timeout", help="Seconds before the command is terminated.")
_JSON = typer.Option(False, "--json", help="Print the full result as JSON.")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to a duplicity_wrapper.yaml or pyproject.toml.",
    ),
    app_path: Optional[str] = typer.Option(
        None,
        "--app-path",
        help="Path to the duplicity executable.",
    ),
) -> None:
    """Configure CLI-level options."""

    try:
        config = load_config(config_path)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    if app_path:
        config = update_app_path(config, app_path)
    configure_logging(log_level or config.log_level)
    ctx.obj = config


@app.command()
def version(ctx: typer.Context) -> None:
    """Print the version reported by the duplicity executable."""

    wrapper = _create_wrapper(ctx)
    typer.echo(wrapper.version)


@app.command("show-config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration as JSON."""

    typer.echo(json.dumps(config_to_dict(_config(ctx)), indent=2, sort_keys=True))


@app.command()
def full(
    ctx: typer.Context,
    url: str = _URL,
    target: str = _TARGET,
    cwd: Path = _CWD,
    name: Optional[str] = _NAME,
    dry_run: bool = _DRY_RUN,
    verbosity: Optional[str] = _VERBOSITY,
    extra: Optional[str] = _EXTRA,
    timeout: Optional[float] = _TIMEOUT,
    as_json: bool = _JSON,
) -> None:
    """Run a full backup."""

    config = _config(ctx)
    options = FullOptions(
        url=url,
        target=target,
        cwd=cwd,
        name=name,
        dry_run=dry_run,
        verbosity=verbosity or config.verbosity,
        archive_dir=config.archive_dir,
        extra_args=extra,
        timeout_s=timeout,
    )
    result = _run(lambda wrapper: wrapper.full(options), ctx)
    _emit(result, as_json, _backup_summary(result))


@app.command()
def incr(
    ctx: typer.Context,
    url: str = _URL,
    target: str = _TARGET,
    cwd: Path = _CWD,
    full_if_older_than: Optional[str] = typer.Option(
        None,
        "--full-if-older-than",
        help="Duration such as 2W, or an ISO-8601 timestamp.",
    ),
    name: Optional[str] = _NAME,
    dry_run: bool = _DRY_RUN,
    verbosity: Optional[str] = _VERBOSITY,
    extra: Optional[str] = _EXTRA,
    timeout: Optional[float] = _TIMEOUT,
    as_json: bool = _JSON,
) -> None:
    """Run an incremental backup."""

    config = _config(ctx)
    options = IncrOptions(
        url=url,
        target=target,
        cwd=cwd,
        full_if_older_than=_parse_cutoff(full_if_older_than),
        name=name,
        dry_run=dry_run,
        verbosity=verbosity or config.verbosity,
        archive_dir=config.archive_dir,
        extra_args=extra,
        timeout_s=timeout,
    )
    result = _run(lambda wrapper: wrapper.incr(options), ctx)
    _emit(result, as_json, _backup_summary(result))


@app.command()
def verify(
    ctx: typer.Context,
    url: str = _URL,
    target: str = _TARGET,
    cwd: Path = _CWD,
    time: Optional[str] = typer.Option(None, "--time", help="Verify the backup as of this time."),
    compare_data: bool = typer.Option(False, "--compare-data", help="Compare file contents."),
    file_to_restore: Optional[str] = typer.Option(
        None, "--file-to-restore", help="Only verify this path."
    ),
    verbosity: Optional[str] = _VERBOSITY,
    extra: Optional[str] = _EXTRA,
    timeout: Optional[float] = _TIMEOUT,
    as_json: bool = _JSON,
) -> None:
    """Verify a backup against the source tree."""

    config = _config(ctx)
    options = VerifyOptions(
        url=url,
        target=target,
        cwd=cwd,
        time=_parse_cutoff(time),
        compare_data=compare_data,
        file_to_restore=file_to_restore,
        verbosity=verbosity or config.verbosity,
        archive_dir=config.archive_dir,
        extra_args=extra,
        timeout_s=timeout,
    )
    result = _run(lambda wrapper: wrapper.verify(options), ctx)
    _emit(
        result,
        as_json,
        f"Compared {result.files_compared}; differences {result.differences_found}; "
        f"last full backup {result.last_full_backup_date.isoformat()}",
    )


@app.command("list-files")
def list_files(
    ctx: typer.Context,
    url: str = _URL,
    time: Optional[str] = typer.Option(None, "--time", help="List files as of this time."),
    verbosity: Optional[str] = _VERBOSITY,
    extra: Optional[str] = _EXTRA,
    timeout: Optional[float] = _TIMEOUT,
    as_json: bool = _JSON,
) -> None:
    """List the files in the most recent (or a past) backup."""

    config = _config(ctx)
    options = ListCurrentFilesOptions(
        url=url,
        time=_parse_cutoff(time),
        verbosity=verbosity or config.verbosity,
        archive_dir=config.archive_dir,
        extra_args=extra,
        timeout_s=timeout,
    )
    result = _run(lambda wrapper: wrapper.list_current_files(options), ctx)
    lines = [f"{entry.file_time.isoformat()}  {entry.file_name}" for entry in result.entries]
    _emit(result, as_json, "\n".join(lines) if lines else "No files listed.")


@app.command("remove-older-than")
def remove_older_than(
    ctx: typer.Context,
    url: str = _URL,
    time: str = typer.Option(..., "--time", help="Duration such as 6M, or an ISO-8601 timestamp."),
    force: bool = typer.Option(False, "--force", help="Actually delete the backup sets."),
    dry_run: bool = _DRY_RUN,
    extra: Optional[str] = _EXTRA,
    timeout: Optional[float] = _TIMEOUT,
    as_json: bool = _JSON,
) -> None:
    """Delete backup sets older than a cutoff."""

    config = _config(ctx)
    options = RemoveOlderThanOptions(
        url=url,
        time=_parse_required_cutoff(time),
        force=force,
        dry_run=dry_run,
        verbosity=config.verbosity,
        archive_dir=config.archive_dir,
        extra_args=extra,
        timeout_s=timeout,
    )
    result = _run(lambda wrapper: wrapper.remove_older_than(options), ctx)
    _emit(result, as_json, _force_summary(result.require_force))


@app.command("remove-all-but-n-full")
def remove_all_but_n_full(
    ctx: typer.Context,
    url: str = _URL,
    count: int = typer.Option(..., "--count", "-n", min=1, help="Full backups to keep."),
    force: bool = typer.Option(False, "--force", help="Actually delete the backup sets."),
    dry_run: bool = _DRY_RUN,
    extra: Optional[str] = _EXTRA,
    timeout: Optional[float] = _TIMEOUT,
    as_json: bool = _JSON,
) -> None:
    """Delete all but the newest N full backup chains."""

    config = _config(ctx)
    options = RemoveAllButNFullOptions(
        url=url,
        count=count,
        force=force,
        dry_run=dry_run,
        verbosity=config.verbosity,
        archive_dir=config.archive_dir,
        extra_args=extra,
        timeout_s=timeout,
    )
    result = _run(lambda wrapper: wrapper.remove_all_but_n_full(options), ctx)
    _emit(result, as_json, _force_summary(result.require_force))


def _config(ctx: typer.Context) -> WrapperConfig:
    if isinstance(ctx.obj, WrapperConfig):
        return ctx.obj
    return WrapperConfig()


def _create_wrapper(ctx: typer.Context) -> DuplicityWrapper:
    try:
        return DuplicityWrapper.from_config(_config(ctx), listener=LoggingCommandListener())
    except DuplicityError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc


def _run(call: Callable[[DuplicityWrapper], R], ctx: typer.Context) -> R:
    wrapper = _create_wrapper(ctx)
    try:
        return call(wrapper)
    except DuplicityError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc


def _parse_cutoff(value: str | None) -> Cutoff | None:
    if value is None:
        return None
    return _parse_required_cutoff(value)


def _parse_required_cutoff(value: str) -> Cutoff:
    parsers: tuple[Callable[[str], Cutoff], ...] = (TimeSpan.parse, datetime.fromisoformat)
    for parse in parsers:
        try:
            return parse(value)
        except ValueError:
            continue
    raise typer.BadParameter(
        f"{value!r} is neither a duration (e.g. 2W1D) nor an ISO-8601 timestamp."
    )


def _emit(result: CommandResult, as_json: bool, summary: str) -> None:
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
    else:
        typer.echo(summary)


def _backup_summary(result: BackupResult) -> str:
    stats = result.statistics
    kind = "full" if stats.full_backup else "incremental"
    return (
        f"{kind} backup: {stats.source_files} source files, {stats.new_files} new, "
        f"{stats.changed_files} changed, {stats.deleted_files} deleted, "
        f"{stats.errors} errors in {stats.elapsed_time:.2f}s"
    )


def _force_summary(require_force: bool) -> str:
    if require_force:
        return "Nothing deleted: rerun with --force to delete."
    return "Done."
