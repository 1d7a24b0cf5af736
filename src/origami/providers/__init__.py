"""Providers wrapping the external binaries driven by origami."""
from __future__ import annotations

from .database import DatabaseCoordinator, DatabaseCredentials, DatabaseEngine, load_credentials
from .docker_compose import DockerCompose, resolve_compose_binary
from .mkcert import CertificateDetails, CertificateError, MkcertProvider

__all__ = [
    "CertificateDetails",
    "CertificateError",
    "DatabaseCoordinator",
    "DatabaseCredentials",
    "DatabaseEngine",
    "DockerCompose",
    "MkcertProvider",
    "load_credentials",
    "resolve_compose_binary",
]
