"""Structured operation logging for origami commands.

Each CLI command opens an operation scope. When the scope closes, one JSON
record is appended to ``operations.jsonl`` and a summary line is written to the
human-readable ``origami.log``. Logging never breaks a command: when the logs
directory cannot be prepared or written the logger disables itself.
"""
from __future__ import annotations

import getpass
import json
import logging
import os
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from . import __version__

OPERATIONS_LOG = "operations.jsonl"
HUMAN_LOG = "origami.log"
_HUMAN_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def _sanitize(value: object) -> object:
    """Return a JSON-safe copy of *value*."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):  # pragma: no cover - depends on host passwd db
        return "unknown"


class OperationScope:
    """Collect steps and the final outcome of a single command."""

    def __init__(
        self,
        logger: StructuredLogger,
        command: str,
        args: Mapping[str, object] | None,
        target: Mapping[str, object] | None,
    ) -> None:
        """Initialise the scope for *command*."""
        self._logger = logger
        self.command = command
        self.args = dict(args or {})
        self.target = dict(target or {})
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None
        self._started = time.monotonic()
        self.started_at = _now_iso()

    @property
    def finished(self) -> bool:
        """Return True once an outcome has been recorded."""
        return self.result is not None

    def add_step(self, name: str, *, status: str = "success", detail: object = None) -> None:
        """Record an intermediate step of the operation."""
        step: dict[str, object] = {"name": name, "status": status}
        if detail is not None:
            step["detail"] = _sanitize(detail)
        self.steps.append(step)

    def success(
        self,
        message: str,
        *,
        changed: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._finish("success", message, changed=changed, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Iterable[str] | None = None,
        errors: Iterable[str] | None = None,
        changed: int | None = None,
        backups: Iterable[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._finish(
            "warning",
            message,
            changed=changed,
            context=context,
            warnings=list(warnings or [message]),
            errors=list(errors or []),
            backups=list(backups or []),
        )

    def error(
        self,
        message: str,
        *,
        errors: Iterable[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed."""
        self._finish(
            "error",
            message,
            context=context,
            errors=list(errors or [message]),
            rc=rc,
        )

    def _finish(self, status: str, message: str, **fields: object) -> None:
        result: dict[str, object] = {"status": status, "message": message}
        for key, value in fields.items():
            if value is None:
                continue
            result[key] = _sanitize(value)
        self.result = result

    def to_record(self) -> dict[str, object]:
        """Return the JSON record persisted for this scope."""
        duration_ms = int((time.monotonic() - self._started) * 1000)
        return {
            "timestamp": self.started_at,
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "steps": list(self.steps),
            "result": self.result or {"status": "unknown"},
            "duration_ms": duration_ms,
            "context": {
                "origami_version": __version__,
                "pid": os.getpid(),
                "user": _current_user(),
            },
        }


class StructuredLogger:
    """Write operation records to the origami logs directory."""

    def __init__(self, logs_dir: Path) -> None:
        """Prepare the log directory, disabling logging when unavailable."""
        self.logs_dir = Path(logs_dir).expanduser()
        self._operations_log_path = self.logs_dir / OPERATIONS_LOG
        self._human_log_path = self.logs_dir / HUMAN_LOG
        self._enabled = True
        self._human: logging.Logger | None = None
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._enabled = False

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Open an operation scope for *command* and persist it on exit."""
        scope = OperationScope(self, command, args, target)
        try:
            yield scope
        except Exception as exc:
            if not scope.finished:
                scope.error(str(exc) or type(exc).__name__)
            raise
        finally:
            if not scope.finished:
                scope.success("Completed.")
            self._write(scope)

    # ------------------------------------------------------------------
    def _write(self, scope: OperationScope) -> None:
        if not self._enabled:
            return
        record = scope.to_record()
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=False))
                handle.write("\n")
        except OSError:
            self._enabled = False
            return
        result = record["result"]
        status = result.get("status") if isinstance(result, dict) else "unknown"
        message = result.get("message", "") if isinstance(result, dict) else ""
        level = logging.ERROR if status == "error" else logging.INFO
        if status == "warning":
            level = logging.WARNING
        self._human_logger().log(level, "%s [%s] %s", scope.command, status, message)

    def _human_logger(self) -> logging.Logger:
        if self._human is None:
            human = logging.Logger(f"origami.operations.{id(self)}")
            handler = logging.FileHandler(self._human_log_path, encoding="utf-8", delay=True)
            handler.setFormatter(logging.Formatter(_HUMAN_FORMAT))
            human.addHandler(handler)
            self._human = human
        return self._human

    def close(self) -> None:
        """Release the human log file handle."""
        if self._human is None:
            return
        for handler in list(self._human.handlers):
            handler.close()
            self._human.removeHandler(handler)
        self._human = None


__all__ = ["OperationScope", "StructuredLogger"]
