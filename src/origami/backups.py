"""JSON index of the database dumps taken by origami."""
from __future__ import annotations

import hashlib
import json
import os
import secrets
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from .errors import OrigamiError


class BackupIndexError(OrigamiError):
    """Raised when the dump index cannot be read or written."""


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def file_checksum(path: Path, *, chunk_size: int = 1024 * 1024) -> str:
    """Return the SHA-256 digest of the file at *path*."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass(slots=True)
class BackupIndex:
    """Record every dump in a JSON document (``~/.origami/backups.json``)."""

    path: Path

    def __post_init__(self) -> None:
        """Expand ``~`` in the index path."""
        self.path = Path(self.path).expanduser()

    def read(self) -> dict[str, object]:
        """Return the parsed index (empty structure when missing)."""
        if not self.path.exists():
            return {"backups": []}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise BackupIndexError(f"Backup index corrupted ({self.path}): {exc}") from exc
        if not isinstance(data, Mapping):
            raise BackupIndexError(f"Backup index must be a JSON object ({self.path}).")
        return dict(data)

    def write(self, payload: Mapping[str, object]) -> None:
        """Atomically persist *payload*."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
            )
        except OSError as exc:
            raise BackupIndexError(f"Failed to prepare backup index: {exc}") from exc
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=False)
                handle.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise BackupIndexError(f"Failed to write backup index: {exc}") from exc
        finally:
            tmp_path.unlink(missing_ok=True)

    def list_entries(self) -> list[dict[str, object]]:
        """Return every recorded dump, oldest first."""
        backups = self.read().get("backups", [])
        if not isinstance(backups, list):
            return []
        return [dict(item) for item in backups if isinstance(item, Mapping)]

    def entries_for_environment(self, environment: str) -> list[dict[str, object]]:
        """Return the dumps taken for the environment named *environment*."""
        return [
            entry
            for entry in self.list_entries()
            if str(entry.get("environment", "")).strip() == environment.strip()
        ]

    def latest_for_environment(self, environment: str) -> dict[str, object] | None:
        """Return the most recent dump of *environment*, if any."""
        entries = self.entries_for_environment(environment)
        return entries[-1] if entries else None

    def append(self, entry: Mapping[str, object]) -> None:
        """Record *entry* at the end of the index."""
        entries = self.list_entries()
        entries.append(dict(entry))
        self.write({"backups": entries})

    def generate_identifier(self, environment: str) -> str:
        """Return a unique identifier for a new dump of *environment*."""
        timestamp = datetime.now(tz=UTC).strftime("%Y%m%d-%H%M%S")
        safe_name = "".join(
            char if char.isalnum() or char in {"-", "_"} else "-" for char in environment
        )
        return f"{timestamp}-{safe_name}-{secrets.token_hex(3)}"


@dataclass(slots=True)
class BackupEntryBuilder:
    """Describe a finished dump as an index entry."""

    environment: str
    project_name: str
    path: Path
    engine: str

    def build(self, *, backup_id: str) -> dict[str, object]:
        """Return the JSON-serialisable entry; the dump file must exist."""
        return {
            "id": backup_id,
            "environment": self.environment,
            "project": self.project_name,
            "engine": self.engine,
            "created_at": _now_iso(),
            "path": str(self.path),
            "size_bytes": self.path.stat().st_size,
            "checksum": {"algorithm": "sha256", "value": file_checksum(self.path)},
        }


__all__ = ["BackupEntryBuilder", "BackupIndex", "BackupIndexError", "file_checksum"]
