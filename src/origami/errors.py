"""Exception hierarchy shared by the origami core.

Every error raised by the orchestration layer derives from :class:`OrigamiError`
so the CLI can catch it at the command boundary, print a friendly message and
map it to an :class:`~origami.exit_codes.ExitCode`.
"""
from __future__ import annotations

from collections.abc import Sequence

from .exit_codes import ExitCode


class OrigamiError(RuntimeError):
    """Base class for recoverable origami failures."""

    exit_code: ExitCode = ExitCode.FAILURE


# Configuration ---------------------------------------------------------
class ConfigurationError(OrigamiError):
    """Raised when a location, type, domain list or setting is invalid."""

    exit_code = ExitCode.VALIDATION


class InvalidLocationError(ConfigurationError):
    """Raised when an installation location is not an existing directory."""


class UnsupportedEnvironmentTypeError(ConfigurationError):
    """Raised when an environment type cannot be installed."""


class InvalidDomainsError(ConfigurationError):
    """Raised when the requested certificate domains are not local hostnames."""


class AlreadyInstalledError(ConfigurationError):
    """Raised when the installation directory already exists."""


class MissingBackupError(ConfigurationError):
    """Raised when a backup file is missing or empty."""


# Context ---------------------------------------------------------------
class ContextError(OrigamiError):
    """Raised when the active environment cannot be resolved or used."""

    exit_code = ExitCode.ENVIRONMENT


class ContextNotInitializedError(ContextError):
    """Raised when the active environment is read before being set."""

    def __init__(
        self, message: str = "No active environment has been set for this command."
    ) -> None:
        super().__init__(message)


class ContextAlreadyInitializedError(ContextError):
    """Raised when a second environment is activated within one context."""


class ContextNotRefreshedError(ContextError):
    """Raised when a compose verb runs before the variables were refreshed."""

    def __init__(
        self,
        message: str = "Compose variables must be refreshed before running a command.",
    ) -> None:
        super().__init__(message)


class EnvironmentNotFoundError(ContextError):
    """Raised when no registered environment matches the selector."""


class AmbiguousEnvironmentError(ContextError):
    """Raised when the working directory matches several environments."""


# Processes -------------------------------------------------------------
class ProcessExecutionError(OrigamiError):
    """Raised when an external binary exits with a non-zero status."""

    exit_code = ExitCode.PROVIDER

    def __init__(
        self,
        command: Sequence[str] | str,
        returncode: int,
        stderr: str = "",
    ) -> None:
        self.command = command if isinstance(command, str) else list(command)
        self.returncode = returncode
        self.stderr = stderr
        rendered = command if isinstance(command, str) else " ".join(command)
        message = stderr.strip() or "no output"
        super().__init__(f"{rendered} failed (exit {returncode}): {message}")


class UnsupportedDatabaseEngineError(OrigamiError):
    """Raised when the configured database engine is not supported."""

    exit_code = ExitCode.PROVIDER


__all__ = [
    "AlreadyInstalledError",
    "AmbiguousEnvironmentError",
    "ConfigurationError",
    "ContextAlreadyInitializedError",
    "ContextError",
    "ContextNotInitializedError",
    "ContextNotRefreshedError",
    "EnvironmentNotFoundError",
    "InvalidDomainsError",
    "InvalidLocationError",
    "MissingBackupError",
    "OrigamiError",
    "ProcessExecutionError",
    "UnsupportedDatabaseEngineError",
    "UnsupportedEnvironmentTypeError",
]
