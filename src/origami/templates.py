"""Jinja2 template rendering for environment configuration files."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
)

from .errors import ConfigurationError


class TemplateError(ConfigurationError):
    """Raised when a template cannot be located or rendered."""


@dataclass(slots=True)
class TemplateEngine:
    """Render built-in templates, letting an override directory shadow them."""

    environment: Environment

    @classmethod
    def with_overrides(cls, override_dir: Path | None) -> TemplateEngine:
        """Return an engine searching *override_dir* before the built-in templates."""
        loaders: list[FileSystemLoader | PackageLoader] = []
        if override_dir is not None and Path(override_dir).expanduser().is_dir():
            loaders.append(FileSystemLoader(str(Path(override_dir).expanduser())))
        loaders.append(PackageLoader("origami", "templates"))
        environment = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        return cls(environment=environment)

    def has_template(self, name: str) -> bool:
        """Return True when *name* resolves to a template."""
        try:
            self.environment.get_template(name)
        except TemplateNotFound:
            return False
        return True

    def render_to_string(self, name: str, context: Mapping[str, object]) -> str:
        """Render template *name* with *context*."""
        try:
            template = self.environment.get_template(name)
        except TemplateNotFound as exc:
            raise TemplateError(f"Template '{name}' not found.") from exc
        return template.render(**dict(context))

    def render_to_path(
        self,
        name: str,
        destination: Path,
        context: Mapping[str, object],
        *,
        mode: int = 0o644,
    ) -> bool:
        """Render *name* into *destination*; return True when the content changed."""
        rendered = self.render_to_string(name, context)
        if destination.exists() and destination.read_text(encoding="utf-8") == rendered:
            return False
        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = destination.with_name(f".{destination.name}.tmp")
        try:
            tmp_path.write_text(rendered, encoding="utf-8")
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, destination)
        finally:
            tmp_path.unlink(missing_ok=True)
        return True


__all__ = ["TemplateEngine", "TemplateError"]
