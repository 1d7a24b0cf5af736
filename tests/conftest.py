"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from origami.cli import RuntimeContext, build_runtime
from origami.config import AppConfig, load_config
from origami.environment import EnvironmentEntity, EnvironmentType
from origami.executor import ProcessResult


@dataclass
class RecordedCall:
    """One process invocation captured by :class:`RecordingExecutor`."""

    mode: str
    command: list[str] | str
    env: dict[str, str]
    capture_stderr: bool = True

    @property
    def line(self) -> str:
        """Return the command as a single string."""
        if isinstance(self.command, str):
            return self.command
        return " ".join(self.command)


@dataclass
class RecordingExecutor:
    """Process runner double recording every call instead of spawning processes."""

    calls: list[RecordedCall] = field(default_factory=list)
    _responses: list[tuple[str, int, str, str]] = field(default_factory=list)

    def respond(
        self,
        needle: str,
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Return the given outcome for commands containing *needle*."""
        self._responses.append((needle, returncode, stdout, stderr))

    def _result(self, command: list[str] | str) -> ProcessResult:
        line = command if isinstance(command, str) else " ".join(command)
        for needle, returncode, stdout, stderr in reversed(self._responses):
            if needle in line:
                return ProcessResult(command, returncode, stdout, stderr)
        return ProcessResult(command, 0)

    def _record(
        self,
        mode: str,
        command: Sequence[str] | str,
        env: Mapping[str, str] | None,
        capture_stderr: bool = True,
    ) -> ProcessResult:
        recorded = command if isinstance(command, str) else list(command)
        self.calls.append(RecordedCall(mode, recorded, dict(env or {}), capture_stderr))
        result = self._result(recorded)
        if isinstance(recorded, str) and " > " in recorded and result.successful:
            # Emulate the shell redirection of a successful dump.
            target = shlex.split(recorded.rsplit(" > ", 1)[1])[0]
            Path(target).write_text(result.stdout or "-- dump\n", encoding="utf-8")
        return result

    def run_foreground(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        *,
        capture_stderr: bool = True,
    ) -> ProcessResult:
        return self._record("foreground", command, env, capture_stderr)

    def run_background(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        return self._record("background", command, env)

    def run_shell(self, command_line: str, env: Mapping[str, str] | None = None) -> ProcessResult:
        return self._record("shell", command_line, env)

    @property
    def lines(self) -> list[str]:
        """Return every recorded command as a string."""
        return [call.line for call in self.calls]


@pytest.fixture
def executor() -> RecordingExecutor:
    """Return a fresh recording executor."""
    return RecordingExecutor()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Return a configuration rooted in the temporary directory."""
    return load_config(
        config_file=tmp_path / "missing-config.yml",
        env={},
        overrides={
            "state_dir": str(tmp_path / "state"),
            "binaries": {"compose": "docker compose"},
            "database": {"ready_delay": 0},
        },
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Return an existing project directory named ``env1``."""
    path = tmp_path / "projects" / "env1"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def symfony_env(project_dir: Path) -> EnvironmentEntity:
    """Return a Symfony environment located in ``project_dir``."""
    return EnvironmentEntity(name="env1", location=project_dir, type=EnvironmentType.SYMFONY)


@pytest.fixture
def runtime(
    app_config: AppConfig,
    executor: RecordingExecutor,
    project_dir: Path,
) -> RuntimeContext:
    """Return a CLI runtime wired to the recording executor."""
    return build_runtime(
        app_config,
        executor=executor,
        working_directory=project_dir,
        platform="linux",
    )
