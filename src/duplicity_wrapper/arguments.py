"""Translate operation requests into duplicity argument vectors and environments.

Everything here is pure: no process is spawned and the ambient environment is
only read when the caller does not supply a snapshot. Validation failures raise
:class:`ConfigurationError` so that nothing reaches the executor.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from duplicity_wrapper.errors import ConfigurationError
from duplicity_wrapper.execution.base import ProcessInvocation
from duplicity_wrapper.options import (
    CommonOptions,
    Cutoff,
    FullOptions,
    IncrOptions,
    ListCurrentFilesOptions,
    RemoveAllButNFullOptions,
    RemoveOlderThanOptions,
    SourceOptions,
    VerifyOptions,
)
from duplicity_wrapper.timespan import TimeSpan

PASSPHRASE_ENV: Final[str] = "PASSPHRASE"


def command_keyword(options: CommonOptions) -> str:
    """Return the duplicity command keyword for a request."""

    # IncrOptions derives from FullOptions, so it is checked first.
    if isinstance(options, IncrOptions):
        return "incr"
    if isinstance(options, FullOptions):
        return "full"
    if isinstance(options, VerifyOptions):
        return "verify"
    if isinstance(options, ListCurrentFilesOptions):
        return "list-current-files"
    if isinstance(options, RemoveOlderThanOptions):
        return "remove-older-than"
    if isinstance(options, RemoveAllButNFullOptions):
        return "remove-all-but-n-full"
    raise ConfigurationError(f"Unsupported options type: {type(options).__name__}")


def build_arguments(options: CommonOptions, *, now: datetime | None = None) -> list[str]:
    """Build the argument vector (without the executable) for a request.

    Args:
        options: The operation request.
        now: Reference instant for relative cutoffs; defaults to the current time.

    Returns:
        Arguments in the order duplicity expects them.

    Raises:
        ConfigurationError: If the request is invalid.
    """

    keyword = command_keyword(options)
    now = now or datetime.now(timezone.utc)
    args = [keyword]
    args.extend(_command_flags(options, now))
    args.extend(common_flags(options))
    args.extend(split_extra_args(options.extra_args))
    args.extend(_positionals(options))
    return args


def common_flags(options: CommonOptions) -> list[str]:
    """Return the generic flags shared by every command."""

    flags: list[str] = []
    if options.name:
        flags.extend(["--name", options.name])
    if options.dry_run:
        flags.append("--dryrun")
    if options.archive_dir:
        flags.extend(["--archive-dir", str(options.archive_dir)])
    if options.verbosity is not None and str(options.verbosity).strip():
        flags.extend(["--verbosity", str(options.verbosity)])
    return flags


def split_extra_args(extra_args: str | Sequence[str] | None) -> list[str]:
    """Return extra arguments as discrete tokens; strings are split on whitespace."""

    if extra_args is None:
        return []
    if isinstance(extra_args, str):
        return extra_args.split()
    return [str(arg) for arg in extra_args]


def format_cutoff(option_name: str | None, value: Cutoff, now: datetime) -> list[str]:
    """Resolve a cutoff to epoch seconds, optionally preceded by its flag.

    A :class:`TimeSpan` means "that long before ``now``". Naive datetimes are
    interpreted as local time.

    Raises:
        ConfigurationError: If the value has the wrong type or is not strictly in the past.
    """

    if not isinstance(value, (TimeSpan, datetime)):
        raise ConfigurationError(f"Invalid type passed for date: {type(value).__name__}")

    label = option_name or "time"
    try:
        cutoff = value.subtract_from_date(now) if isinstance(value, TimeSpan) else value
        cutoff_ts = cutoff.timestamp()
    except (OverflowError, OSError, ValueError) as exc:
        raise ConfigurationError(f"Invalid date passed for {label}: {exc}") from exc

    if math.isnan(cutoff_ts) or cutoff_ts >= now.timestamp():
        raise ConfigurationError(f"Invalid date passed for {label}: {cutoff} is not in the past")

    result = [option_name] if option_name else []
    result.append(str(math.floor(cutoff_ts)))
    return result


def resolve_environment(
    passphrase: str | None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return the child environment with the passphrase resolved.

    Args:
        passphrase: Explicit passphrase; takes precedence over the snapshot.
        environ: Environment snapshot to start from. Defaults to ``os.environ``.

    Raises:
        ConfigurationError: If no passphrase can be resolved.
    """

    env = dict(os.environ if environ is None else environ)
    if passphrase:
        env[PASSPHRASE_ENV] = passphrase
    elif not env.get(PASSPHRASE_ENV):
        raise ConfigurationError("Pass phrase must be provided")
    return env


def build_invocation(
    program: str,
    options: CommonOptions,
    *,
    environ: Mapping[str, str] | None = None,
    now: datetime | None = None,
    default_timeout_s: float | None = None,
) -> ProcessInvocation:
    """Build the complete process invocation for a request."""

    args = build_arguments(options, now=now)
    env = resolve_environment(options.passphrase, environ)
    cwd = getattr(options, "cwd", None)
    timeout = options.timeout_s if options.timeout_s is not None else default_timeout_s
    return ProcessInvocation(
        program=program,
        args=args,
        cwd=Path(cwd) if cwd else None,
        env=env,
        timeout_s=timeout,
    )


def _command_flags(options: CommonOptions, now: datetime) -> list[str]:
    flags: list[str] = []
    if isinstance(options, IncrOptions):
        if options.full_if_older_than is not None:
            flags.extend(format_cutoff("--full-if-older-than", options.full_if_older_than, now))
    elif isinstance(options, VerifyOptions):
        if options.time is not None:
            flags.extend(format_cutoff("--time", options.time, now))
        if options.compare_data:
            flags.append("--compare-data")
        if options.file_to_restore:
            flags.extend(["--file-to-restore", options.file_to_restore])
    elif isinstance(options, ListCurrentFilesOptions):
        if options.time is not None:
            flags.extend(format_cutoff("--time", options.time, now))
    elif isinstance(options, RemoveOlderThanOptions):
        flags.extend(format_cutoff(None, options.time, now))
        if options.force:
            flags.append("--force")
    elif isinstance(options, RemoveAllButNFullOptions):
        if isinstance(options.count, bool) or not isinstance(options.count, int) or options.count < 1:
            raise ConfigurationError(f"count must be a positive integer, got {options.count!r}")
        flags.append(str(options.count))
        if options.force:
            flags.append("--force")
    return flags


def _positionals(options: CommonOptions) -> list[str]:
    if not options.url:
        raise ConfigurationError("A target repository url is required.")
    if isinstance(options, SourceOptions):
        if not options.target:
            raise ConfigurationError("A source target path is required.")
        if isinstance(options, VerifyOptions):
            return [options.url, options.target]
        return [options.target, options.url]
    return [options.url]
