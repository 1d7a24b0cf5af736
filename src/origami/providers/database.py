"""Database dump and restore coordination for the environment database service."""
from __future__ import annotations

import logging
import os
import shlex
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import assert_never

from ..config import DatabaseConfig
from ..environment import EnvironmentEntity
from ..errors import MissingBackupError, ProcessExecutionError, UnsupportedDatabaseEngineError
from ..executor import ProcessResult
from ..paths import read_environment_settings
from .docker_compose import DockerCompose

LOGGER = logging.getLogger(__name__)

DATABASE_SERVICE = "database"
POSTGRES_SUPERUSER = "postgres"
MYSQL_SUPERUSER = "root"


class DatabaseEngine(str, Enum):
    """Database technologies an environment may run."""

    MARIADB = "mariadb"
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @classmethod
    def parse(cls, value: str | DatabaseEngine) -> DatabaseEngine:
        """Return the member matching *value*."""
        if isinstance(value, DatabaseEngine):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise UnsupportedDatabaseEngineError(
                f"The database engine '{value}' is not supported."
            ) from exc


@dataclass(frozen=True, slots=True)
class DatabaseCredentials:
    """Connection settings of an environment database."""

    engine: str
    username: str
    password: str
    name: str


def load_credentials(
    environment: EnvironmentEntity,
    installation_dir: str,
    defaults: DatabaseConfig,
) -> DatabaseCredentials:
    """Read the database settings of *environment*, falling back to *defaults*."""
    settings = read_environment_settings(environment, installation_dir)
    return DatabaseCredentials(
        engine=settings.get("DOCKER_DATABASE_TYPE", defaults.type),
        username=settings.get("DOCKER_DATABASE_USERNAME", defaults.username),
        password=settings.get("DOCKER_DATABASE_PASSWORD", defaults.password),
        name=settings.get("DOCKER_DATABASE_NAME", defaults.name),
    )


@dataclass(slots=True)
class DatabaseCoordinator:
    """Dispatch dump and restore to the tooling of the configured engine.

    Every command runs inside the ``{project}-database-1`` container through
    the shell so the dump can be redirected to (and the backup streamed from)
    a file on the host. Restoring first resets the database service: the
    container is removed, its volume dropped and the service recreated, so the
    backup always lands in an empty database. A failed reset aborts the
    restore before anything is streamed.
    """

    compose: DockerCompose
    credentials: DatabaseCredentials
    ready_attempts: int = 30
    ready_delay: float = 2.0
    sleep: Callable[[float], None] = time.sleep

    @property
    def engine(self) -> DatabaseEngine:
        """Return the engine of the environment database."""
        return DatabaseEngine.parse(self.credentials.engine)

    @property
    def container(self) -> str:
        """Return the name of the database container."""
        return self.compose.environment.container_name(DATABASE_SERVICE)

    # Commands --------------------------------------------------------------
    def dump_command_line(self, path: Path) -> str:
        """Return the shell line dumping the database into *path*."""
        engine = self.engine
        match engine:
            case DatabaseEngine.MARIADB | DatabaseEngine.MYSQL:
                tool = [
                    "mysqldump",
                    f"--user={MYSQL_SUPERUSER}",
                    f"--password={self.credentials.password}",
                    self.credentials.name,
                ]
            case DatabaseEngine.POSTGRES:
                tool = ["pg_dump", "--clean", f"--dbname={self._postgres_url()}"]
            case _:
                assert_never(engine)
        return f"{self._exec_line(tool)} > {shlex.quote(str(path))}"

    def restore_command_line(self, path: Path) -> str:
        """Return the shell line streaming *path* into the database."""
        engine = self.engine
        match engine:
            case DatabaseEngine.MARIADB | DatabaseEngine.MYSQL:
                tool = [
                    "mysql",
                    f"--user={MYSQL_SUPERUSER}",
                    f"--password={self.credentials.password}",
                    self.credentials.name,
                ]
            case DatabaseEngine.POSTGRES:
                tool = ["psql", f"--dbname={self._postgres_url()}"]
            case _:
                assert_never(engine)
        return f"{self._exec_line(tool)} < {shlex.quote(str(path))}"

    def ready_command(self) -> list[str]:
        """Return the command probing whether the database accepts connections."""
        engine = self.engine
        match engine:
            case DatabaseEngine.MARIADB | DatabaseEngine.MYSQL:
                probe = [
                    "mysql",
                    "--host=127.0.0.1",
                    f"--user={MYSQL_SUPERUSER}",
                    f"--password={self.credentials.password}",
                    "--execute=SELECT 1",
                    self.credentials.name,
                ]
            case DatabaseEngine.POSTGRES:
                probe = [
                    "pg_isready",
                    "--host=127.0.0.1",
                    f"--username={POSTGRES_SUPERUSER}",
                    f"--dbname={self.credentials.name}",
                ]
            case _:
                assert_never(engine)
        return [self.compose.docker_bin, "exec", self.container, *probe]

    def _exec_line(self, tool: list[str]) -> str:
        command = [self.compose.docker_bin, "exec", "--interactive", self.container, *tool]
        return " ".join(shlex.quote(part) for part in command)

    def _postgres_url(self) -> str:
        return (
            f"postgresql://{POSTGRES_SUPERUSER}:{self.credentials.password}"
            f"@127.0.0.1:5432/{self.credentials.name}"
        )

    # Operations ------------------------------------------------------------
    def dump(self, path: Path) -> ProcessResult:
        """Write a dump of the database to *path*.

        The dump lands in a temporary sibling first and only replaces *path* once
        the dump command succeeded, so a failure keeps the previous backup intact.
        """
        path = Path(path)
        partial = path.with_name(f".{path.name}.tmp")
        line = self.dump_command_line(partial)
        LOGGER.debug("Dumping %s database to %s", self.engine.value, path)
        try:
            result = self._shell(line)
            if not partial.is_file() or partial.stat().st_size == 0:
                raise MissingBackupError(
                    f"The {self.engine.value} dump produced no output; '{path}' was left untouched."
                )
            os.replace(partial, path)
        finally:
            partial.unlink(missing_ok=True)
        return result

    def check_backup(self, path: Path) -> Path:
        """Return *path* when it holds a non-empty backup file."""
        path = Path(path)
        if not path.is_file():
            raise MissingBackupError(f"The backup file '{path}' does not exist.")
        if path.stat().st_size == 0:
            raise MissingBackupError(f"The backup file '{path}' is empty.")
        return path

    def restore(self, path: Path) -> ProcessResult:
        """Reset the database then replay the backup stored at *path*."""
        line = self.restore_command_line(path)
        self.check_backup(path)
        self.reset()
        LOGGER.debug("Streaming %s into the %s database", path, self.engine.value)
        return self._shell(line)

    def reset(self) -> None:
        """Drop and recreate the database service along with its volume."""
        self.compose.remove_service(DATABASE_SERVICE)
        self.compose.remove_volume(DATABASE_SERVICE)
        self.compose.start_service(DATABASE_SERVICE)
        self.wait_until_ready()

    def wait_until_ready(self) -> None:
        """Poll the database until it answers or the attempts are exhausted."""
        command = self.ready_command()
        variables = self.compose.get_required_variables()
        result: ProcessResult | None = None
        for attempt in range(1, max(self.ready_attempts, 1) + 1):
            result = self.compose.executor.run_background(command, variables)
            if result.successful:
                LOGGER.debug("Database ready after %s attempt(s)", attempt)
                return
            if attempt < self.ready_attempts:
                self.sleep(self.ready_delay)
        returncode = result.returncode if result is not None else 1
        raise ProcessExecutionError(
            command,
            returncode,
            f"the database did not accept connections after {self.ready_attempts} attempt(s)",
        )

    def _shell(self, line: str) -> ProcessResult:
        variables = self.compose.get_required_variables()
        return self.compose.executor.run_shell(line, variables).check()


__all__ = [
    "DATABASE_SERVICE",
    "DatabaseCoordinator",
    "DatabaseCredentials",
    "DatabaseEngine",
    "load_credentials",
]
