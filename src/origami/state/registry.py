"""Helpers for interacting with the origami state registry.

The registry directory (``~/.origami/registry`` by default) stores YAML
artifacts such as ``environments.yml``. This module provides lightweight
helpers to read and write those files using atomic operations.
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..environment import EnvironmentEntity
from ..errors import OrigamiError

ENVIRONMENTS_FILE = "environments.yml"


class StateRegistryError(OrigamiError):
    """Raised when state registry operations fail."""


@dataclass(frozen=True)
class StateRegistry:
    """High-level interface to the YAML registry."""

    root: Path

    def __post_init__(self) -> None:
        """Normalise the root path after initialisation."""
        object.__setattr__(self, "root", self.root.expanduser())

    def ensure_root(self) -> None:
        """Create the registry directory if it does not yet exist."""
        self.root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    def path_for(self, name: str) -> Path:
        """Return the filesystem path for a named registry file."""
        return self.root / name

    def read(self, name: str, *, default: object | None = None) -> object | None:
        """Read a registry file, returning *default* when missing."""
        path = self.path_for(name)
        if not path.exists():
            return deepcopy(default)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise StateRegistryError(f"Failed to parse registry file {path}: {exc}") from exc
        return data if data is not None else deepcopy(default)

    def write(self, name: str, payload: Mapping[str, object]) -> None:
        """Atomically write *payload* to the given registry file."""
        self.ensure_root()
        path = self.path_for(name)

        tmp_fd, tmp_name = tempfile.mkstemp(dir=str(self.root), prefix=f".{path.name}.")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump(dict(payload), handle, sort_keys=False)
            os.replace(tmp_path, path)
            os.chmod(path, 0o640)
        finally:
            tmp_path.unlink(missing_ok=True)

    # Convenience wrappers -------------------------------------------------
    def read_environments(self) -> Mapping[str, object]:
        """Return the contents of ``environments.yml`` (empty mapping if missing)."""
        value = self.read(ENVIRONMENTS_FILE, default={"environments": []})
        return value if isinstance(value, Mapping) else {"environments": []}

    def write_environments(self, environments: Iterable[object]) -> None:
        """Persist environment entries to ``environments.yml``."""
        self.write(ENVIRONMENTS_FILE, {"environments": list(environments)})

    # Environment helpers -------------------------------------------------
    def list_environments(self) -> list[EnvironmentEntity]:
        """Return every registered environment."""
        environments: list[EnvironmentEntity] = []
        for entry in _load_entries(self.read_environments()):
            try:
                environments.append(EnvironmentEntity.from_mapping(entry))
            except OrigamiError as exc:
                raise StateRegistryError(
                    f"Invalid registry entry {entry.get('name')!r}: {exc}"
                ) from exc
        return environments

    def get_environment(self, name: str) -> EnvironmentEntity | None:
        """Return the environment registered as *name*, if any."""
        normalized = _normalize_name(name)
        for environment in self.list_environments():
            if environment.name == normalized:
                return environment
        return None

    def active_environment(self) -> EnvironmentEntity | None:
        """Return the environment currently flagged as running."""
        for environment in self.list_environments():
            if environment.is_active:
                return environment
        return None

    def add_environment(self, environment: EnvironmentEntity) -> None:
        """Register *environment*, rejecting duplicate names."""
        entries = _load_entries(self.read_environments())
        if any(entry.get("name") == environment.name for entry in entries):
            raise StateRegistryError(
                f"An environment named '{environment.name}' is already registered."
            )
        entries.append(environment.to_dict())
        self.write_environments(entries)

    def update_environment(self, name: str, updates: Mapping[str, object]) -> EnvironmentEntity:
        """Apply *updates* to the registered environment named *name*."""
        normalized = _normalize_name(name)
        entries = _load_entries(self.read_environments())
        updated: dict[str, Any] | None = None
        for entry in entries:
            if entry.get("name") == normalized:
                entry.update(dict(updates))
                updated = entry
                break
        if updated is None:
            raise StateRegistryError(f"Environment '{normalized}' not found in registry")
        self.write_environments(entries)
        return EnvironmentEntity.from_mapping(updated)

    def set_active(self, name: str, active: bool) -> EnvironmentEntity:
        """Flag *name* as running (or stopped)."""
        return self.update_environment(name, {"active": active})

    def remove_environment(self, name: str) -> None:
        """Remove the environment named *name* from the registry."""
        normalized = _normalize_name(name)
        entries = _load_entries(self.read_environments())
        filtered = [entry for entry in entries if entry.get("name") != normalized]
        if len(filtered) == len(entries):
            raise StateRegistryError(f"Environment '{normalized}' not found in registry")
        self.write_environments(filtered)


def _load_entries(raw: Mapping[str, object]) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    raw_entries = raw.get("environments", [])
    if isinstance(raw_entries, list):
        for item in raw_entries:
            if isinstance(item, Mapping):
                entries.append(dict(item))
    return entries


def _normalize_name(name: str) -> str:
    normalized = name.strip()
    if not normalized:
        raise StateRegistryError("Environment name must be a non-empty string.")
    return normalized


__all__ = ["StateRegistry", "StateRegistryError"]
