"""Resolution and storage of the environment targeted by one command."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from .environment import EnvironmentEntity
from .errors import (
    AmbiguousEnvironmentError,
    ContextAlreadyInitializedError,
    ContextNotInitializedError,
    EnvironmentNotFoundError,
)
from .state import StateRegistry

LOGGER = logging.getLogger(__name__)


class ApplicationContext:
    """Hold the single active environment for the lifetime of one command.

    A context is created at the start of a command and discarded at its end;
    it is never shared between invocations. Resolution consults the registry
    of known environments: an explicit name wins, otherwise the working
    directory (or one of its parents) must be the location of exactly one
    registered environment. When the working directory matches nothing, the
    environment currently flagged as running is used.
    """

    def __init__(self, registry: StateRegistry, working_directory: Path | None = None) -> None:
        """Bind the context to *registry* and the caller's working directory."""
        self.registry = registry
        self.working_directory = Path(working_directory or os.getcwd())
        self._active: EnvironmentEntity | None = None

    # Resolution --------------------------------------------------------
    def load_environment(self, name: str | None = None) -> EnvironmentEntity:
        """Resolve the environment selected by *name* or the working directory."""
        if name is not None and name.strip():
            environment = self.registry.get_environment(name)
            if environment is None:
                raise EnvironmentNotFoundError(
                    f"No environment named '{name.strip()}' is registered."
                )
            return self._checked(environment)

        environment = self._match_working_directory()
        if environment is None:
            environment = self.registry.active_environment()
        if environment is None:
            raise EnvironmentNotFoundError(
                f"No environment is registered for '{self.working_directory}' "
                "and none is currently running."
            )
        return self._checked(environment)

    def _match_working_directory(self) -> EnvironmentEntity | None:
        cwd = _resolve(self.working_directory)
        candidates: list[tuple[int, EnvironmentEntity]] = []
        for environment in self.registry.list_environments():
            location = _resolve(environment.location)
            if cwd == location or location in cwd.parents:
                candidates.append((len(location.parts), environment))
        if not candidates:
            return None
        deepest = max(depth for depth, _ in candidates)
        matches = [environment for depth, environment in candidates if depth == deepest]
        if len(matches) > 1:
            names = ", ".join(sorted(environment.name for environment in matches))
            raise AmbiguousEnvironmentError(
                f"'{self.working_directory}' matches several environments ({names}); "
                "pass the environment name explicitly."
            )
        LOGGER.debug("Resolved %s from working directory %s", matches[0].name, cwd)
        return matches[0]

    @staticmethod
    def _checked(environment: EnvironmentEntity) -> EnvironmentEntity:
        location = environment.location
        if not location.is_absolute() or not location.is_dir():
            raise EnvironmentNotFoundError(
                f"The location of environment '{environment.name}' ({location}) "
                "is not an existing directory."
            )
        return environment

    # Active environment ------------------------------------------------
    def set_active_environment(self, environment: EnvironmentEntity) -> None:
        """Store *environment* as the target of the current command."""
        if self._active is not None:
            raise ContextAlreadyInitializedError(
                f"Environment '{self._active.name}' is already active for this command."
            )
        self._active = environment

    def get_active_environment(self) -> EnvironmentEntity:
        """Return the environment targeted by the current command."""
        if self._active is None:
            raise ContextNotInitializedError()
        return self._active

    def has_active_environment(self) -> bool:
        """Return True once an environment has been activated."""
        return self._active is not None

    def get_project_name(self) -> str:
        """Return ``{type}_{name}`` for the active environment."""
        return self.get_active_environment().project_name


def _resolve(path: Path) -> Path:
    try:
        return path.expanduser().resolve()
    except OSError:  # pragma: no cover - resolution only fails on broken mounts
        return path.expanduser().absolute()


__all__ = ["ApplicationContext"]
