"""Installation and removal of the on-disk configuration of an environment."""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import assert_never

from .config import DatabaseConfig
from .environment import (
    INSTALLABLE_TYPES,
    EnvironmentEntity,
    EnvironmentType,
    check_location,
    validate_domains,
)
from .errors import AlreadyInstalledError, UnsupportedEnvironmentTypeError
from .paths import (
    COMPOSE_FILENAME,
    ENV_FILENAME,
    certificates_path,
    installation_path,
)
from .providers.database import DatabaseEngine
from .providers.mkcert import MkcertProvider
from .templates import TemplateEngine

LOGGER = logging.getLogger(__name__)

NGINX_CONFIG = "nginx/default.conf"
DOCUMENT_ROOTS = {
    EnvironmentType.MAGENTO2: "pub",
    EnvironmentType.SYMFONY: "public",
}


@dataclass(frozen=True, slots=True)
class InstallResult:
    """Outcome of :meth:`ConfigurationInstaller.install`."""

    environment: EnvironmentEntity
    directory: Path
    files: list[Path] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "environment": self.environment.to_dict(),
            "directory": str(self.directory),
            "files": [str(path) for path in self.files],
        }


def database_settings(config: DatabaseConfig) -> dict[str, object]:
    """Return the template context describing the database service."""
    engine = DatabaseEngine.parse(config.type)
    match engine:
        case DatabaseEngine.MARIADB:
            image, port, data_path = "mariadb:10.11", 3306, "/var/lib/mysql"
        case DatabaseEngine.MYSQL:
            image, port, data_path = "mysql:8.0", 3306, "/var/lib/mysql"
        case DatabaseEngine.POSTGRES:
            image, port, data_path = "postgres:16-alpine", 5432, "/var/lib/postgresql/data"
        case _:
            assert_never(engine)
    return {
        "engine": engine.value,
        "username": config.username,
        "password": config.password,
        "name": config.name,
        "image": image,
        "port": port,
        "data_path": data_path,
    }


@dataclass(slots=True)
class ConfigurationInstaller:
    """Render the compose configuration of a new environment.

    Files land in ``<location>/<installation_dir>``: the type specific
    ``docker-compose.yml``, the ``.env`` file holding environment settings
    and the nginx virtual host. When domains are requested a locally-trusted
    certificate is issued for them; if anything fails the partially created
    directory is removed again.
    """

    templates: TemplateEngine
    certificates: MkcertProvider
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    installation_dir: str = "var/docker"
    php_image: str = "default"

    def install(
        self,
        location: Path,
        environment_type: str | EnvironmentType,
        domains: str | None = None,
        *,
        name: str | None = None,
    ) -> InstallResult:
        """Install the configuration of a new environment located at *location*."""
        resolved = check_location(location)
        parsed_type = EnvironmentType.parse(environment_type)
        if parsed_type not in INSTALLABLE_TYPES:
            allowed = ", ".join(member.value for member in INSTALLABLE_TYPES)
            raise UnsupportedEnvironmentTypeError(
                f"Environments of type '{parsed_type.value}' cannot be installed. "
                f"Allowed: {allowed}."
            )
        normalized_domains = validate_domains(domains) if domains and domains.strip() else None

        target = installation_path(resolved, self.installation_dir)
        if target.exists():
            raise AlreadyInstalledError(
                f"An environment is already installed in '{target}'."
            )

        environment = EnvironmentEntity(
            name=name or resolved.name,
            location=resolved,
            type=parsed_type,
            domains=normalized_domains,
        )
        target.mkdir(parents=True)
        try:
            files = self._render(environment, target)
            if environment.domain_list:
                directory = certificates_path(resolved, self.installation_dir)
                self.certificates.generate(directory, environment.domain_list)
                files.append(self.certificates.certificate_path(directory))
                files.append(self.certificates.key_path(directory))
        except Exception:
            LOGGER.debug("Removing partially installed configuration in %s", target)
            shutil.rmtree(target, ignore_errors=True)
            raise
        return InstallResult(environment=environment, directory=target, files=files)

    def build_context(self, environment: EnvironmentEntity, target: Path) -> dict[str, object]:
        """Return the template context shared by every rendered file."""
        return {
            "project_name": environment.project_name,
            "environment_type": environment.type.value,
            "domains": environment.domains,
            "installation_path": str(target),
            "has_certificates": bool(environment.domain_list),
            "php_image": self.php_image,
            "database": database_settings(self.database),
            "document_root": DOCUMENT_ROOTS.get(environment.type, "public"),
        }

    def _render(self, environment: EnvironmentEntity, target: Path) -> list[Path]:
        context = self.build_context(environment, target)
        compose_file = target / COMPOSE_FILENAME
        env_file = target / ENV_FILENAME
        nginx_file = target / NGINX_CONFIG
        self.templates.render_to_path(
            f"{environment.type.value}/docker-compose.yml.j2", compose_file, context
        )
        self.templates.render_to_path("env.j2", env_file, context, mode=0o600)
        self.templates.render_to_path("nginx.conf.j2", nginx_file, context)
        return [compose_file, env_file, nginx_file]


@dataclass(slots=True)
class ConfigurationUninstaller:
    """Remove the configuration rendered for an environment."""

    certificates: MkcertProvider
    installation_dir: str = "var/docker"

    def uninstall(self, environment: EnvironmentEntity) -> bool:
        """Delete the installation directory; return False when there was none."""
        target = installation_path(environment.location, self.installation_dir)
        if not target.is_dir():
            LOGGER.debug("Nothing to uninstall in %s", target)
            return False
        certificates = certificates_path(environment.location, self.installation_dir)
        removed = self.certificates.remove(certificates)
        if removed:
            LOGGER.debug("Removed certificates %s", ", ".join(str(path) for path in removed))
        shutil.rmtree(target)
        return True


__all__ = [
    "ConfigurationInstaller",
    "ConfigurationUninstaller",
    "InstallResult",
    "database_settings",
]
