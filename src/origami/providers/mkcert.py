"""mkcert provider generating locally-trusted certificates for environment domains."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509

from ..errors import ConfigurationError, ProcessExecutionError
from ..executor import ProcessResult, ProcessRunner

LOGGER = logging.getLogger(__name__)

CERTIFICATE_FILENAME = "custom.pem"
KEY_FILENAME = "custom.key"


class CertificateError(ConfigurationError):
    """Raised when a generated certificate cannot be read."""


@dataclass(frozen=True, slots=True)
class CertificateDetails:
    """Summary of a generated certificate."""

    path: Path
    subject: str
    domains: tuple[str, ...]
    not_before: datetime
    not_after: datetime

    @property
    def expired(self) -> bool:
        """Return True when the certificate is no longer valid."""
        return self.not_after <= datetime.now(tz=UTC)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "path": str(self.path),
            "subject": self.subject,
            "domains": list(self.domains),
            "not_before": self.not_before.isoformat(),
            "not_after": self.not_after.isoformat(),
            "expired": self.expired,
        }


@dataclass(slots=True)
class MkcertProvider:
    """Generate, remove and inspect certificates with the ``mkcert`` binary."""

    executor: ProcessRunner
    mkcert_bin: str = "mkcert"

    def certificate_path(self, directory: Path) -> Path:
        """Return the certificate file written in *directory*."""
        return Path(directory) / CERTIFICATE_FILENAME

    def key_path(self, directory: Path) -> Path:
        """Return the private key file written in *directory*."""
        return Path(directory) / KEY_FILENAME

    def generate_command(self, directory: Path, domains: Sequence[str]) -> list[str]:
        """Return the mkcert invocation issuing a certificate for *domains*."""
        return [
            self.mkcert_bin,
            "-cert-file",
            str(self.certificate_path(directory)),
            "-key-file",
            str(self.key_path(directory)),
            *domains,
        ]

    def generate(self, directory: Path, domains: Sequence[str]) -> ProcessResult:
        """Issue a certificate covering *domains* into *directory*."""
        if not domains:
            raise ConfigurationError("At least one domain is required to issue a certificate.")
        Path(directory).mkdir(parents=True, exist_ok=True)
        LOGGER.debug("Generating certificate for %s in %s", ", ".join(domains), directory)
        return self.executor.run_foreground(self.generate_command(directory, domains)).check()

    def remove(self, directory: Path) -> list[Path]:
        """Delete the certificate and key stored in *directory*."""
        removed: list[Path] = []
        for path in (self.certificate_path(directory), self.key_path(directory)):
            if path.exists():
                path.unlink()
                removed.append(path)
        return removed

    def has_certificate(self, directory: Path) -> bool:
        """Return True when a certificate was generated in *directory*."""
        return self.certificate_path(directory).is_file()

    def inspect(self, path: Path) -> CertificateDetails:
        """Return the domains and validity window of the certificate at *path*."""
        try:
            certificate = _load_certificate(Path(path))
        except (OSError, ValueError) as exc:
            raise CertificateError(f"Unable to read certificate {path}: {exc}") from exc
        try:
            extension = certificate.extensions.get_extension_for_class(
                x509.SubjectAlternativeName
            )
            domains = tuple(extension.value.get_values_for_type(x509.DNSName))
        except x509.ExtensionNotFound:
            domains = ()
        return CertificateDetails(
            path=Path(path),
            subject=certificate.subject.rfc4514_string(),
            domains=domains,
            not_before=certificate.not_valid_before_utc,
            not_after=certificate.not_valid_after_utc,
        )

    def get_version(self) -> str:
        """Return the mkcert version, or ``unavailable`` when it is not installed."""
        try:
            result = self.executor.run_background([self.mkcert_bin, "-version"])
        except ProcessExecutionError:
            return "unavailable"
        if not result.successful:
            return "unavailable"
        return result.stdout.strip() or "unknown"


def _load_certificate(path: Path) -> x509.Certificate:
    data = path.read_bytes()
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError:
        return x509.load_der_x509_certificate(data)


__all__ = [
    "CERTIFICATE_FILENAME",
    "KEY_FILENAME",
    "CertificateDetails",
    "CertificateError",
    "MkcertProvider",
]
