"""Docker Compose provider building and running compose invocations."""
from __future__ import annotations

import logging
import shlex
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from ..environment import EnvironmentEntity
from ..errors import ConfigurationError, ContextNotRefreshedError, ProcessExecutionError
from ..executor import ProcessResult, ProcessRunner
from ..paths import compose_file_path, read_environment_settings

LOGGER = logging.getLogger(__name__)

PHP_SERVICE = "php"
SSH_AGENT_SOCKET = "/run/host-services/ssh-auth.sock"


def resolve_compose_binary(
    setting: str,
    executor: ProcessRunner,
    *,
    docker_bin: str = "docker",
) -> list[str]:
    """Return the argument prefix invoking compose for *setting*.

    ``docker compose`` selects the plugin form, ``docker-compose`` the
    standalone binary. ``auto`` probes the plugin first and falls back to the
    standalone binary when it is the only one available.
    """
    if setting == "docker compose":
        return [docker_bin, "compose"]
    if setting == "docker-compose":
        return ["docker-compose"]
    if setting != "auto":
        raise ConfigurationError(f"Unsupported compose binary '{setting}'.")

    try:
        probe = executor.run_background([docker_bin, "compose", "version"])
    except ProcessExecutionError:
        probe = None
    if probe is not None and probe.successful:
        return [docker_bin, "compose"]
    if shutil.which("docker-compose"):
        LOGGER.debug("Falling back to the standalone docker-compose binary")
        return ["docker-compose"]
    return [docker_bin, "compose"]


@dataclass(slots=True)
class DockerCompose:
    """Compute compose variables for an environment and run compose verbs."""

    executor: ProcessRunner
    compose_setting: str = "docker compose"
    compose_binary: Sequence[str] | None = None
    docker_bin: str = "docker"
    installation_dir: str = "var/docker"
    php_image: str = "default"
    _environment: EnvironmentEntity | None = field(default=None, init=False, repr=False)
    _variables: dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _settings: dict[str, str] = field(default_factory=dict, init=False, repr=False)

    # ------------------------------------------------------------------
    # Environment variables
    # ------------------------------------------------------------------
    def refresh_environment_variables(self, environment: EnvironmentEntity) -> dict[str, str]:
        """Compute and cache the variables required by *environment*."""
        variables = {
            "COMPOSE_FILE": str(compose_file_path(environment, self.installation_dir)),
            "COMPOSE_PROJECT_NAME": environment.project_name,
            "PROJECT_LOCATION": str(environment.location),
            "PROJECT_NAME": environment.project_name,
        }
        settings: dict[str, str] = {}
        if not environment.is_custom:
            settings = read_environment_settings(environment, self.installation_dir)
            variables["DOCKER_PHP_IMAGE"] = settings.get("DOCKER_PHP_IMAGE", self.php_image)

        self._environment = environment
        self._variables = variables
        self._settings = settings
        LOGGER.debug("Refreshed compose variables for %s", environment.project_name)
        return dict(variables)

    def get_required_variables(self) -> dict[str, str]:
        """Return a copy of the cached compose variables."""
        self._require_refresh()
        return dict(self._variables)

    def compose_environment(self) -> dict[str, str]:
        """Return the required variables merged over the settings of the ``.env`` file.

        The generated compose files interpolate the ``DOCKER_DATABASE_*`` settings, so
        every compose invocation receives them alongside the required variables.
        """
        self._require_refresh()
        return {**self._settings, **self._variables}

    @property
    def environment(self) -> EnvironmentEntity:
        """Return the environment the variables were computed for."""
        return self._require_refresh()

    def _require_refresh(self) -> EnvironmentEntity:
        if self._environment is None:
            raise ContextNotRefreshedError()
        return self._environment

    # ------------------------------------------------------------------
    # Argument builders
    # ------------------------------------------------------------------
    def binary(self) -> list[str]:
        """Return the compose prefix, resolving the configured setting on first use."""
        if self.compose_binary is None:
            self.compose_binary = resolve_compose_binary(
                self.compose_setting, self.executor, docker_bin=self.docker_bin
            )
        return list(self.compose_binary)

    def global_flags(self) -> list[str]:
        """Return the flags placed between the compose binary and the verb."""
        environment = self._require_refresh()
        return [
            f"--file={self._variables['COMPOSE_FILE']}",
            f"--project-directory={environment.location}",
            f"--project-name={environment.project_name}",
        ]

    def build_command(self, verb: str, *flags: str) -> list[str]:
        """Return ``[compose..., global flags..., verb, flags...]``."""
        global_flags = self.global_flags()
        return [*self.binary(), *global_flags, verb, *flags]

    def pull_command(self) -> list[str]:
        """Return the command pulling service images."""
        return self.build_command("pull")

    def build_services_command(self) -> list[str]:
        """Return the command building service images."""
        return self.build_command("build", "--pull", "--parallel")

    def ps_command(self) -> list[str]:
        """Return the command listing services."""
        return self.build_command("ps")

    def logs_command(self, tail: int | None = None, service: str | None = None) -> list[str]:
        """Return the command following service logs."""
        flags = ["--follow", f"--tail={tail or 0}"]
        if service:
            flags.append(service)
        return self.build_command("logs", *flags)

    def restart_command(self) -> list[str]:
        """Return the command restarting services."""
        return self.build_command("restart")

    def up_command(self) -> list[str]:
        """Return the command starting services."""
        return self.build_command("up", "--build", "--detach", "--remove-orphans")

    def stop_command(self) -> list[str]:
        """Return the command stopping services."""
        return self.build_command("stop")

    def down_command(self) -> list[str]:
        """Return the command removing services, local images and volumes."""
        return self.build_command("down", "--rmi", "local", "--volumes", "--remove-orphans")

    def terminal_command(self, service: str, user: str | None = None) -> list[str]:
        """Return the ``docker exec`` command opening a login shell in *service*."""
        environment = self._require_refresh()
        command = [self.docker_bin, "exec", "-it"]
        if user:
            command.append(f"--user={user}")
        command.extend([environment.container_name(service), "bash", "--login"])
        return command

    def stats_command_line(self) -> str:
        """Return the shell pipeline streaming resource usage of running services."""
        ps_quiet = [*self.build_command("ps"), "--quiet"]
        quoted = " ".join(shlex.quote(part) for part in ps_quiet)
        return f"{quoted} | xargs {shlex.quote(self.docker_bin)} stats"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def pull_services(self) -> ProcessResult:
        """Pull the images of every service."""
        return self._run(self.pull_command())

    def build_services(self) -> ProcessResult:
        """Build the images of every service."""
        return self._run(self.build_services_command())

    def prepare_services(self) -> list[ProcessResult]:
        """Pull then build the images of every service."""
        return [self.pull_services(), self.build_services()]

    def show_services_status(self) -> ProcessResult:
        """Display the status of every service."""
        return self._run(self.ps_command())

    def show_services_logs(
        self,
        tail: int | None = None,
        service: str | None = None,
    ) -> ProcessResult:
        """Follow service logs until the process exits or is interrupted."""
        return self._run(self.logs_command(tail, service))

    def show_resources_usage(self) -> ProcessResult:
        """Stream CPU and memory usage of the running containers."""
        variables = self.compose_environment()
        return self.executor.run_shell(self.stats_command_line(), variables).check()

    def restart_services(self) -> ProcessResult:
        """Restart every service."""
        return self._run(self.restart_command())

    def start_services(self) -> ProcessResult:
        """Build and start every service in the background."""
        return self._run(self.up_command())

    def stop_services(self) -> ProcessResult:
        """Stop every service."""
        return self._run(self.stop_command())

    def remove_services(self) -> ProcessResult:
        """Remove services along with their local images and volumes."""
        return self._run(self.down_command())

    def open_terminal(self, service: str = PHP_SERVICE, user: str | None = None) -> ProcessResult:
        """Open an interactive login shell inside *service*."""
        command = self.terminal_command(service, user)
        result = self.executor.run_foreground(command, self._variables, capture_stderr=False)
        return result.check()

    def fix_ssh_agent_permissions(self) -> ProcessResult:
        """Hand the forwarded SSH agent socket over to the web server user."""
        command = self.build_command(
            "exec",
            "-T",
            PHP_SERVICE,
            "bash",
            "-c",
            f"chown www-data:www-data {SSH_AGENT_SOCKET}",
        )
        return self._run(command)

    # Service level helpers used by the database reset ----------------------
    def remove_service(self, service: str) -> ProcessResult:
        """Stop and remove the containers of a single *service*."""
        return self._run(self.build_command("rm", "--force", "--stop", service))

    def start_service(self, service: str) -> ProcessResult:
        """Create and start a single *service* in the background."""
        return self._run(self.build_command("up", "--detach", "--no-deps", service))

    def remove_volume(self, volume: str) -> ProcessResult:
        """Delete the named volume *volume* of the current project."""
        environment = self._require_refresh()
        name = f"{environment.project_name}_{volume}"
        return self._run([self.docker_bin, "volume", "rm", "--force", name])

    # Versions --------------------------------------------------------------
    def get_docker_version(self) -> str:
        """Return the version string reported by the docker client."""
        return self._version([self.docker_bin, "--version"])

    def get_compose_version(self) -> str:
        """Return the version string reported by compose."""
        return self._version([*self.binary(), "version"])

    def _version(self, command: Sequence[str]) -> str:
        try:
            result = self.executor.run_background(command)
        except ProcessExecutionError:
            return "unavailable"
        if not result.successful:
            return "unavailable"
        return result.stdout.strip() or "unknown"

    def _run(self, command: Sequence[str], env: Mapping[str, str] | None = None) -> ProcessResult:
        variables = self.compose_environment()
        if env:
            variables.update(env)
        return self.executor.run_foreground(command, variables).check()


__all__ = ["DockerCompose", "resolve_compose_binary"]
