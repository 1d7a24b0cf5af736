"""Process execution capability used to drive docker, mkcert and friends."""
from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from .errors import ProcessExecutionError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Outcome of one external command."""

    args: list[str] | str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def successful(self) -> bool:
        """Return True when the command exited with status zero."""
        return self.returncode == 0

    def check(self) -> ProcessResult:
        """Return ``self`` or raise :class:`ProcessExecutionError` on failure."""
        if not self.successful:
            raise ProcessExecutionError(self.args, self.returncode, self.stderr or self.stdout)
        return self


class ProcessRunner(Protocol):
    """Interface implemented by process executors (and their test doubles)."""

    def run_foreground(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        *,
        capture_stderr: bool = True,
    ) -> ProcessResult:
        """Run *command* attached to the terminal."""
        ...

    def run_background(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        """Run *command* with its output captured."""
        ...

    def run_shell(
        self,
        command_line: str,
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        """Run *command_line* through the shell (pipes and redirections)."""
        ...


class SubprocessExecutor:
    """Run commands with :mod:`subprocess`, merging extra environment variables.

    Foreground commands inherit stdin/stdout so interactive sessions and
    ``logs --follow`` stream straight to the terminal; stderr is captured
    unless the caller needs a TTY on it. Interrupting a foreground command
    (Ctrl+C) terminates the child before the interruption propagates.
    """

    def run_foreground(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        *,
        capture_stderr: bool = True,
    ) -> ProcessResult:
        """Run *command* attached to the terminal."""
        args = list(command)
        LOGGER.debug("foreground: %s", " ".join(args))
        try:
            completed = subprocess.run(  # noqa: S603
                args,
                env=_merge_env(env),
                stderr=subprocess.PIPE if capture_stderr else None,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ProcessExecutionError(args, 127, f"{args[0]} not found: {exc}") from exc
        return ProcessResult(args, completed.returncode, "", completed.stderr or "")

    def run_background(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        """Run *command* with its output captured."""
        args = list(command)
        LOGGER.debug("background: %s", " ".join(args))
        try:
            completed = subprocess.run(  # noqa: S603
                args,
                env=_merge_env(env),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ProcessExecutionError(args, 127, f"{args[0]} not found: {exc}") from exc
        return ProcessResult(
            args, completed.returncode, completed.stdout or "", completed.stderr or ""
        )

    def run_shell(
        self,
        command_line: str,
        env: Mapping[str, str] | None = None,
    ) -> ProcessResult:
        """Run *command_line* through the shell (pipes and redirections)."""
        LOGGER.debug("shell: %s", command_line)
        completed = subprocess.run(  # noqa: S602
            command_line,
            shell=True,
            env=_merge_env(env),
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
        return ProcessResult(command_line, completed.returncode, "", completed.stderr or "")


def _merge_env(extra: Mapping[str, str] | None) -> dict[str, str]:
    merged = dict(os.environ)
    if extra:
        merged.update({key: str(value) for key, value in extra.items()})
    return merged


__all__ = ["ProcessResult", "ProcessRunner", "SubprocessExecutor"]
