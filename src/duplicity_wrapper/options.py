"""Operation request records passed to the duplicity wrapper."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from duplicity_wrapper.timespan import TimeSpan

Cutoff = datetime | TimeSpan


@dataclass(frozen=True, kw_only=True)
class CommonOptions:
    """Options shared by every duplicity command.

    Attributes:
        url: Target repository URL (e.g. ``file:///backups``).
        passphrase: Passphrase for the backup set. Falls back to ``PASSPHRASE``
            in the environment snapshot when omitted.
        verbosity: Value for ``--verbosity``.
        archive_dir: Value for ``--archive-dir``.
        name: Value for ``--name``.
        dry_run: Emit ``--dryrun`` when true.
        extra_args: Raw arguments appended verbatim; a string is split on whitespace.
        timeout_s: Seconds before the process is terminated. ``None`` or 0 disables it.
    """

    url: str
    passphrase: str | None = None
    verbosity: int | str | None = None
    archive_dir: str | Path | None = None
    name: str | None = None
    dry_run: bool = False
    extra_args: str | Sequence[str] | None = None
    timeout_s: float | None = None


@dataclass(frozen=True, kw_only=True)
class SourceOptions(CommonOptions):
    """Options for commands that read a local source tree."""

    cwd: str | Path
    target: str


@dataclass(frozen=True, kw_only=True)
class FullOptions(SourceOptions):
    """Options for ``duplicity full``."""


@dataclass(frozen=True, kw_only=True)
class IncrOptions(FullOptions):
    """Options for ``duplicity incr``."""

    full_if_older_than: Cutoff | None = None


@dataclass(frozen=True, kw_only=True)
class VerifyOptions(SourceOptions):
    """Options for ``duplicity verify``."""

    time: Cutoff | None = None
    compare_data: bool = False
    file_to_restore: str | None = None


@dataclass(frozen=True, kw_only=True)
class ListCurrentFilesOptions(CommonOptions):
    """Options for ``duplicity list-current-files``."""

    cwd: str | Path | None = None
    time: Cutoff | None = None


@dataclass(frozen=True, kw_only=True)
class RemoveOlderThanOptions(CommonOptions):
    """Options for ``duplicity remove-older-than``."""

    time: Cutoff
    cwd: str | Path | None = None
    force: bool = False


@dataclass(frozen=True, kw_only=True)
class RemoveAllButNFullOptions(CommonOptions):
    """Options for ``duplicity remove-all-but-n-full``."""

    count: int
    cwd: str | Path | None = None
    force: bool = False
