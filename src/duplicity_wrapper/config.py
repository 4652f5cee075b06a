"""Configuration models and loaders for duplicity-wrapper."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from duplicity_wrapper.errors import ConfigurationError

CONFIG_FILE_NAMES: tuple[str, ...] = ("duplicity_wrapper.yaml", "duplicity_wrapper.yml")
PYPROJECT_TABLE = "duplicity_wrapper"


@dataclass(frozen=True)
class WrapperConfig:
    """Defaults applied to every command issued through the wrapper.

    The passphrase is intentionally not configurable here; it comes from the
    request or from ``PASSPHRASE`` in the environment.

    Attributes:
        app_path: Path to the duplicity executable.
        timeout_s: Default timeout in seconds when a request does not set one.
        archive_dir: Default ``--archive-dir`` for CLI commands.
        verbosity: Default ``--verbosity`` for CLI commands.
        log_level: Logging level name for the CLI.
        env: Extra environment variables layered over ``os.environ``.
    """

    app_path: str = "/usr/bin/duplicity"
    timeout_s: float | None = None
    archive_dir: str | None = None
    verbosity: str | None = None
    log_level: str = "INFO"
    env: dict[str, str] = field(default_factory=dict)


def load_config(path: Path | None = None) -> WrapperConfig:
    """Load wrapper configuration from disk.

    Args:
        path: Optional path to a configuration file or a directory containing one.

    Returns:
        Parsed WrapperConfig with defaults applied when no config exists.

    Raises:
        ConfigurationError: If the file is of an unsupported type or malformed.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return WrapperConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ConfigurationError(f"Unsupported config file type: {config_path}")

    return _parse_wrapper_config(raw_data)


def config_to_dict(config: WrapperConfig) -> dict[str, Any]:
    """Serialize a WrapperConfig into a JSON-compatible dictionary."""

    return {
        "app_path": config.app_path,
        "timeout_s": config.timeout_s,
        "archive_dir": config.archive_dir,
        "verbosity": config.verbosity,
        "log_level": config.log_level,
        "env": dict(config.env),
    }


def update_app_path(config: WrapperConfig, app_path: str) -> WrapperConfig:
    """Return a config copy with an updated executable path."""

    return replace(config, app_path=app_path)


def _resolve_config_path(path: Path | None) -> Path | None:
    candidate_paths: list[Path] = []
    if path is None:
        candidate_paths.extend(Path(name) for name in CONFIG_FILE_NAMES)
        candidate_paths.append(Path("pyproject.toml"))
    elif path.is_dir():
        candidate_paths.extend(path / name for name in CONFIG_FILE_NAMES)
        candidate_paths.append(path / "pyproject.toml")
    else:
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        candidate_paths.append(path)

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get(PYPROJECT_TABLE, {})
        if not isinstance(tool_config, dict):
            raise ConfigurationError(f"tool.{PYPROJECT_TABLE} must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("YAML configuration must be a mapping.")
    return data


def _parse_wrapper_config(raw: dict[str, Any]) -> WrapperConfig:
    env = raw.get("env", {})
    if not isinstance(env, dict):
        raise ConfigurationError("env must be a mapping of variable names to values.")
    if "PASSPHRASE" in env:
        raise ConfigurationError("PASSPHRASE must not be stored in the configuration file.")
    defaults = WrapperConfig()
    return WrapperConfig(
        app_path=str(raw.get("app_path", defaults.app_path)),
        timeout_s=_optional_float(raw.get("timeout_s")),
        archive_dir=_optional_str(raw.get("archive_dir")),
        verbosity=_optional_str(raw.get("verbosity")),
        log_level=str(raw.get("log_level", defaults.log_level)),
        env={str(key): str(value) for key, value in env.items()},
    )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Expected a number, got {value!r}") from exc
