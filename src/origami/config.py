"""Configuration loader for origami.

This module centralises the logic for reading configuration values from
multiple sources:

1. Built-in defaults.
2. ``~/.origami/config.yml`` (or an override path).
3. Environment variables prefixed with ``ORIGAMI_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export ORIGAMI_DATABASE__TYPE=postgres
    export ORIGAMI_BINARIES__COMPOSE=docker-compose

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses`` for convenient access and type safety.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import yaml

from .errors import ConfigurationError

ENV_PREFIX = "ORIGAMI_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(ConfigurationError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class BinariesConfig:
    """Names (or paths) of the external binaries origami drives."""

    docker: str = "docker"
    compose: str = "auto"
    mkcert: str = "mkcert"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"docker": self.docker, "compose": self.compose, "mkcert": self.mkcert}


@dataclass(frozen=True)
class DatabaseConfig:
    """Fallback database settings used when an environment leaves them unset."""

    type: str = "mariadb"
    username: str = "origami"
    password: str = "YourPwdShouldBeLongAndSecure"
    name: str = "origami"
    ready_attempts: int = 30
    ready_delay: float = 2.0

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "type": self.type,
            "username": self.username,
            "password": self.password,
            "name": self.name,
            "ready_attempts": self.ready_attempts,
            "ready_delay": self.ready_delay,
        }


@dataclass(frozen=True)
class BackupConfig:
    """Database backup file naming and index location."""

    filename: str
    index: Path

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"filename": self.filename, "index": str(self.index)}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for origami."""

    config_file: Path
    state_dir: Path
    registry_dir: Path
    logs_dir: Path
    templates_dir: Path | None
    installation_dir: str
    php_image: str
    binaries: BinariesConfig
    database: DatabaseConfig
    backups: BackupConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "state_dir": str(self.state_dir),
            "registry_dir": str(self.registry_dir),
            "logs_dir": str(self.logs_dir),
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "installation_dir": self.installation_dir,
            "php_image": self.php_image,
            "binaries": self.binaries.to_dict(),
            "database": self.database.to_dict(),
            "backups": self.backups.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.origami/config.yml",
    "state_dir": "~/.origami",
    "registry_dir": None,  # derived from state_dir when absent
    "logs_dir": None,  # derived from state_dir when absent
    "templates_dir": None,
    "installation_dir": "var/docker",
    "php_image": "default",
    "binaries": {
        "docker": "docker",
        "compose": "auto",
        "mkcert": "mkcert",
    },
    "database": {
        "type": "mariadb",
        "username": "origami",
        "password": "YourPwdShouldBeLongAndSecure",
        "name": "origami",
        "ready_attempts": 30,
        "ready_delay": 2.0,
    },
    "backups": {
        "filename": "origami_backup.sql",
        "index": None,
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_COMPOSE_BINARIES = {"auto", "docker compose", "docker-compose"}
ALLOWED_DATABASE_TYPES = {"mariadb", "mysql", "postgres"}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    installation_dir = raw.get("installation_dir")
    if installation_dir is not None:
        text = str(installation_dir).strip().strip("/")
        if not text or ".." in Path(text).parts:
            raise ConfigError(
                "installation_dir must be a relative path inside the project location."
            )

    binaries = raw.get("binaries")
    if binaries is not None:
        binaries_map = _as_dict(binaries, "binaries")
        unknown = set(binaries_map.keys()) - {"docker", "compose", "mkcert"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown binaries configuration keys: {joined}.")
        compose = binaries_map.get("compose")
        if compose is not None and str(compose) not in ALLOWED_COMPOSE_BINARIES:
            allowed = ", ".join(sorted(ALLOWED_COMPOSE_BINARIES))
            raise ConfigError(f"Unsupported compose binary '{compose}'. Allowed: {allowed}.")

    database = raw.get("database")
    if database is not None:
        database_map = _as_dict(database, "database")
        unknown = set(database_map.keys()) - {
            "type",
            "username",
            "password",
            "name",
            "ready_attempts",
            "ready_delay",
        }
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown database configuration keys: {joined}.")
        engine = database_map.get("type")
        if engine is not None and str(engine) not in ALLOWED_DATABASE_TYPES:
            allowed = ", ".join(sorted(ALLOWED_DATABASE_TYPES))
            raise ConfigError(f"Unsupported database type '{engine}'. Allowed: {allowed}.")

    backups = raw.get("backups")
    if backups is not None:
        backups_map = _as_dict(backups, "backups")
        unknown = set(backups_map.keys()) - {"filename", "index"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown backups configuration keys: {joined}.")
        filename = backups_map.get("filename")
        if filename is not None and (not str(filename).strip() or "/" in str(filename)):
            raise ConfigError("backups.filename must be a plain, non-empty file name.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    state_dir = _to_path(raw.get("state_dir"))

    registry_dir_value = raw.get("registry_dir")
    registry_dir = _to_path(registry_dir_value) if registry_dir_value else state_dir / "registry"
    logs_dir_value = raw.get("logs_dir")
    logs_dir = _to_path(logs_dir_value) if logs_dir_value else state_dir / "logs"
    templates_value = raw.get("templates_dir")
    templates_dir = _to_path(templates_value) if templates_value else None

    installation_dir = str(raw.get("installation_dir", "var/docker")).strip().strip("/")

    binaries_mapping = _as_dict(raw.get("binaries"), "binaries")
    binaries = BinariesConfig(
        docker=str(binaries_mapping.get("docker", "docker")),
        compose=str(binaries_mapping.get("compose", "auto")),
        mkcert=str(binaries_mapping.get("mkcert", "mkcert")),
    )

    database_mapping = _as_dict(raw.get("database"), "database")
    default_database = DatabaseConfig()
    ready_attempts = _expect_int(
        database_mapping.get("ready_attempts"),
        "database.ready_attempts",
        default=default_database.ready_attempts,
    )
    if ready_attempts < 1:
        raise ConfigError("database.ready_attempts must be at least 1.")
    database = DatabaseConfig(
        type=str(database_mapping.get("type", default_database.type)),
        username=str(database_mapping.get("username", default_database.username)),
        password=str(database_mapping.get("password", default_database.password)),
        name=str(database_mapping.get("name", default_database.name)),
        ready_attempts=ready_attempts,
        ready_delay=_expect_non_negative_float(
            database_mapping.get("ready_delay"),
            "database.ready_delay",
            default=default_database.ready_delay,
        ),
    )

    backups_mapping = _as_dict(raw.get("backups"), "backups")
    backups_index_value = backups_mapping.get("index")
    backups = BackupConfig(
        filename=str(backups_mapping.get("filename", "origami_backup.sql")),
        index=(
            _to_path(backups_index_value) if backups_index_value else state_dir / "backups.json"
        ),
    )

    return AppConfig(
        config_file=config_file,
        state_dir=state_dir,
        registry_dir=registry_dir,
        logs_dir=logs_dir,
        templates_dir=templates_dir,
        installation_dir=installation_dir,
        php_image=str(raw.get("php_image", "default")),
        binaries=binaries,
        database=database,
        backups=backups,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_non_negative_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric < 0:
        raise ConfigError(f"{label} must not be negative. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "BackupConfig",
    "BinariesConfig",
    "ConfigError",
    "DatabaseConfig",
    "load_config",
]
