"""Lifecycle event dispatching tests."""
from __future__ import annotations

from pathlib import Path

from origami.environment import EnvironmentEntity, EnvironmentType
from origami.events import (
    EnvironmentEvent,
    EnvironmentRestarted,
    EnvironmentStarted,
    EnvironmentStopped,
    EnvironmentUninstalled,
    EventDispatcher,
    build_dispatcher,
)
from origami.providers.docker_compose import DockerCompose
from origami.state import StateRegistry


def test_dispatcher_calls_matching_listeners_in_order(symfony_env) -> None:
    dispatcher = EventDispatcher()
    seen: list[str] = []
    dispatcher.subscribe(EnvironmentStarted, lambda event: seen.append("first"))
    dispatcher.subscribe(EnvironmentEvent, lambda event: seen.append("any"))
    dispatcher.subscribe(EnvironmentStopped, lambda event: seen.append("stopped"))

    event = EnvironmentStarted(symfony_env)

    assert dispatcher.dispatch(event) is event
    assert seen == ["first", "any"]


def _wired(executor, tmp_path: Path, environment, platform: str = "linux"):
    registry = StateRegistry(tmp_path / "registry")
    registry.add_environment(environment)
    compose = DockerCompose(executor=executor)
    compose.refresh_environment_variables(environment)
    return registry, build_dispatcher(registry, compose, platform=platform)


def test_start_and_stop_toggle_active_flag(executor, tmp_path: Path, symfony_env) -> None:
    registry, dispatcher = _wired(executor, tmp_path, symfony_env)
    other = EnvironmentEntity(name="blog", location=tmp_path, type=EnvironmentType.SYMFONY)
    registry.add_environment(other.with_active(True))

    dispatcher.dispatch(EnvironmentStarted(symfony_env))

    active = registry.active_environment()
    assert active is not None and active.name == "env1"
    blog = registry.get_environment("blog")
    assert blog is not None and blog.is_active is False
    assert executor.calls == []

    dispatcher.dispatch(EnvironmentStopped(symfony_env))
    assert registry.active_environment() is None


def test_ssh_agent_fixed_on_macos(executor, tmp_path: Path, symfony_env) -> None:
    _, dispatcher = _wired(executor, tmp_path, symfony_env, platform="darwin")

    dispatcher.dispatch(EnvironmentStarted(symfony_env))
    dispatcher.dispatch(EnvironmentRestarted(symfony_env))

    assert len(executor.calls) == 2
    assert all("ssh-auth.sock" in line for line in executor.lines)


def test_ssh_agent_skipped_for_custom(executor, tmp_path: Path, project_dir: Path) -> None:
    custom = EnvironmentEntity(name="custom", location=project_dir, type=EnvironmentType.CUSTOM)
    _, dispatcher = _wired(executor, tmp_path, custom, platform="darwin")

    dispatcher.dispatch(EnvironmentStarted(custom))

    assert executor.calls == []


def test_uninstalled_environment_is_forgotten(executor, tmp_path: Path, symfony_env) -> None:
    registry, dispatcher = _wired(executor, tmp_path, symfony_env)

    dispatcher.dispatch(EnvironmentUninstalled(symfony_env))
    dispatcher.dispatch(EnvironmentUninstalled(symfony_env))

    assert registry.list_environments() == []
