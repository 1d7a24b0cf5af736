"""Lifecycle events emitted after environment transitions."""
from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass

from .environment import EnvironmentEntity
from .providers.docker_compose import DockerCompose
from .state import StateRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnvironmentEvent:
    """Base class of every lifecycle event."""

    environment: EnvironmentEntity


@dataclass(frozen=True, slots=True)
class EnvironmentStarted(EnvironmentEvent):
    """Dispatched once the services of an environment are up."""


@dataclass(frozen=True, slots=True)
class EnvironmentStopped(EnvironmentEvent):
    """Dispatched once the services of an environment are stopped."""


@dataclass(frozen=True, slots=True)
class EnvironmentRestarted(EnvironmentEvent):
    """Dispatched once the services of an environment are restarted."""


@dataclass(frozen=True, slots=True)
class EnvironmentUninstalled(EnvironmentEvent):
    """Dispatched once the configuration of an environment is removed."""


Listener = Callable[[EnvironmentEvent], None]


class EventDispatcher:
    """Call the listeners subscribed to an event type, in subscription order."""

    def __init__(self) -> None:
        """Start without listeners."""
        self._listeners: list[tuple[type[EnvironmentEvent], Listener]] = []

    def subscribe(self, event_type: type[EnvironmentEvent], listener: Listener) -> None:
        """Call *listener* for every dispatched instance of *event_type*."""
        self._listeners.append((event_type, listener))

    def listeners_for(self, event: EnvironmentEvent) -> list[Listener]:
        """Return the listeners interested in *event*."""
        return [
            listener
            for event_type, listener in self._listeners
            if isinstance(event, event_type)
        ]

    def dispatch(self, event: EnvironmentEvent) -> EnvironmentEvent:
        """Notify every interested listener of *event*."""
        for listener in self.listeners_for(event):
            LOGGER.debug("Dispatching %s to %r", type(event).__name__, listener)
            listener(event)
        return event


@dataclass(slots=True)
class RegistryStateListener:
    """Keep the ``active`` flag of registered environments in sync."""

    registry: StateRegistry

    def on_started(self, event: EnvironmentEvent) -> None:
        """Flag the started environment as the only running one."""
        for environment in self.registry.list_environments():
            if environment.is_active and environment.name != event.environment.name:
                self.registry.set_active(environment.name, False)
        if self.registry.get_environment(event.environment.name) is not None:
            self.registry.set_active(event.environment.name, True)

    def on_stopped(self, event: EnvironmentEvent) -> None:
        """Clear the running flag of the stopped environment."""
        if self.registry.get_environment(event.environment.name) is not None:
            self.registry.set_active(event.environment.name, False)

    def on_uninstalled(self, event: EnvironmentEvent) -> None:
        """Forget the uninstalled environment."""
        if self.registry.get_environment(event.environment.name) is not None:
            self.registry.remove_environment(event.environment.name)


@dataclass(slots=True)
class SshAgentListener:
    """Fix the permissions of the forwarded SSH agent socket on macOS hosts."""

    compose: DockerCompose
    platform: str = sys.platform

    def on_started(self, event: EnvironmentEvent) -> None:
        """Hand the SSH agent socket to the web server user after a start."""
        if self.platform != "darwin" or event.environment.is_custom:
            return
        self.compose.fix_ssh_agent_permissions()


def build_dispatcher(
    registry: StateRegistry,
    compose: DockerCompose,
    *,
    platform: str = sys.platform,
) -> EventDispatcher:
    """Return a dispatcher wired with the default listeners."""
    dispatcher = EventDispatcher()
    state = RegistryStateListener(registry)
    ssh = SshAgentListener(compose, platform)
    dispatcher.subscribe(EnvironmentStarted, state.on_started)
    dispatcher.subscribe(EnvironmentStarted, ssh.on_started)
    dispatcher.subscribe(EnvironmentRestarted, ssh.on_started)
    dispatcher.subscribe(EnvironmentStopped, state.on_stopped)
    dispatcher.subscribe(EnvironmentUninstalled, state.on_uninstalled)
    return dispatcher


__all__ = [
    "EnvironmentEvent",
    "EnvironmentRestarted",
    "EnvironmentStarted",
    "EnvironmentStopped",
    "EnvironmentUninstalled",
    "EventDispatcher",
    "RegistryStateListener",
    "SshAgentListener",
    "build_dispatcher",
]
