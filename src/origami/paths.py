"""Filesystem layout of an installed environment."""
from __future__ import annotations

from pathlib import Path

from dotenv import dotenv_values

from .environment import EnvironmentEntity

COMPOSE_FILENAME = "docker-compose.yml"
ENV_FILENAME = ".env"
CERTIFICATES_DIR = "nginx/certs"


def installation_path(location: Path, installation_dir: str) -> Path:
    """Return the directory holding the rendered configuration for *location*."""
    return Path(location) / installation_dir


def compose_file_path(environment: EnvironmentEntity, installation_dir: str) -> Path:
    """Return the compose file used by *environment*."""
    if environment.is_custom:
        return environment.location / COMPOSE_FILENAME
    return installation_path(environment.location, installation_dir) / COMPOSE_FILENAME


def env_file_path(environment: EnvironmentEntity, installation_dir: str) -> Path:
    """Return the ``.env`` file holding environment-level settings."""
    if environment.is_custom:
        return environment.location / ENV_FILENAME
    return installation_path(environment.location, installation_dir) / ENV_FILENAME


def certificates_path(location: Path, installation_dir: str) -> Path:
    """Return the directory receiving locally-trusted certificates."""
    return installation_path(location, installation_dir) / CERTIFICATES_DIR


def read_environment_settings(
    environment: EnvironmentEntity,
    installation_dir: str,
) -> dict[str, str]:
    """Return the non-empty values declared in the environment ``.env`` file."""
    path = env_file_path(environment, installation_dir)
    if not path.is_file():
        return {}
    values = dotenv_values(path)
    return {key: value for key, value in values.items() if value}


__all__ = [
    "COMPOSE_FILENAME",
    "ENV_FILENAME",
    "certificates_path",
    "compose_file_path",
    "env_file_path",
    "installation_path",
    "read_environment_settings",
]
