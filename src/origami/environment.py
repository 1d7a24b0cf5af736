"""Environment value objects."""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from .errors import (
    ConfigurationError,
    InvalidDomainsError,
    InvalidLocationError,
    UnsupportedEnvironmentTypeError,
)

_HOSTNAME_LABEL = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


class EnvironmentType(str, Enum):
    """Supported environment stacks."""

    MAGENTO2 = "magento2"
    SYMFONY = "symfony"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str | EnvironmentType) -> EnvironmentType:
        """Return the member matching *value*."""
        if isinstance(value, EnvironmentType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise UnsupportedEnvironmentTypeError(
                f"Unsupported environment type '{value}'. Allowed: {allowed}."
            ) from exc


INSTALLABLE_TYPES = (EnvironmentType.MAGENTO2, EnvironmentType.SYMFONY)


@dataclass(frozen=True, slots=True)
class EnvironmentEntity:
    """Immutable description of one local development environment."""

    name: str
    location: Path
    type: EnvironmentType
    domains: str | None = None
    is_custom: bool = False
    is_active: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        """Validate and normalise the entity fields."""
        name = self.name.strip()
        if not name:
            raise ConfigurationError("Environment name must be a non-empty string.")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "location", Path(self.location))
        object.__setattr__(self, "type", EnvironmentType.parse(self.type))
        if self.type is EnvironmentType.CUSTOM:
            object.__setattr__(self, "is_custom", True)
        domains = (self.domains or "").strip()
        object.__setattr__(self, "domains", domains or None)

    @property
    def project_name(self) -> str:
        """Return the identifier used to namespace containers and volumes."""
        return f"{self.type.value}_{self.name}"

    @property
    def domain_list(self) -> list[str]:
        """Return the configured domains as a list."""
        return split_domains(self.domains)

    def container_name(self, service: str) -> str:
        """Return the single-instance container name for *service*."""
        return f"{self.project_name}-{service}-1"

    def with_active(self, active: bool) -> EnvironmentEntity:
        """Return a copy flagged as active (or not)."""
        return replace(self, is_active=active)

    def to_dict(self) -> dict[str, object]:
        """Return the registry representation of the environment."""
        return {
            "name": self.name,
            "location": str(self.location),
            "type": self.type.value,
            "domains": self.domains,
            "custom": self.is_custom,
            "active": self.is_active,
        }

    @classmethod
    def from_mapping(cls, entry: Mapping[str, object]) -> EnvironmentEntity:
        """Build an entity from a registry entry."""
        domains = entry.get("domains")
        return cls(
            name=str(entry.get("name", "")),
            location=Path(str(entry.get("location", ""))),
            type=EnvironmentType.parse(str(entry.get("type", ""))),
            domains=str(domains) if domains else None,
            is_custom=bool(entry.get("custom", False)),
            is_active=bool(entry.get("active", False)),
        )


def split_domains(domains: str | None) -> list[str]:
    """Split a space separated domain string into hostnames."""
    if not domains:
        return []
    return [item for item in domains.split() if item]


def validate_domains(domains: str) -> str:
    """Return *domains* normalised, raising when a hostname is invalid."""
    hostnames = split_domains(domains.lower())
    if not hostnames:
        raise InvalidDomainsError("At least one domain must be provided.")
    for hostname in hostnames:
        candidate = hostname[2:] if hostname.startswith("*.") else hostname
        labels = candidate.split(".")
        if len(candidate) > 253 or not all(_HOSTNAME_LABEL.match(label) for label in labels):
            raise InvalidDomainsError(f"'{hostname}' is not a valid local domain.")
    return " ".join(hostnames)


def check_location(location: Path) -> Path:
    """Return *location* as an absolute path, ensuring it is a directory."""
    resolved = Path(location).expanduser()
    if not resolved.is_dir():
        raise InvalidLocationError(f"'{location}' must be an existing directory.")
    return resolved.resolve()


__all__ = [
    "INSTALLABLE_TYPES",
    "EnvironmentEntity",
    "EnvironmentType",
    "check_location",
    "split_domains",
    "validate_domains",
]
