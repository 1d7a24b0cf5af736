"""Tests for the mkcert certificate provider."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from origami.errors import ConfigurationError, ProcessExecutionError
from origami.providers.mkcert import CertificateError, MkcertProvider


def _write_certificate(
    path: Path,
    domains: list[str],
    *,
    days: int = 30,
    encoding: serialization.Encoding = serialization.Encoding.PEM,
) -> None:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "mkcert development certificate")])
    now = datetime.now(tz=UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=days))
    )
    if domains:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(domain) for domain in domains]),
            critical=False,
        )
    certificate = builder.sign(key, hashes.SHA256())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(certificate.public_bytes(encoding))


def test_generate_invokes_mkcert(executor, tmp_path: Path) -> None:
    provider = MkcertProvider(executor=executor)
    certs = tmp_path / "var" / "docker" / "nginx" / "certs"

    provider.generate(certs, ["shop.test", "*.shop.test"])

    assert certs.is_dir()
    (call,) = executor.calls
    assert call.command == [
        "mkcert",
        "-cert-file",
        str(certs / "custom.pem"),
        "-key-file",
        str(certs / "custom.key"),
        "shop.test",
        "*.shop.test",
    ]


def test_generate_requires_domains(executor, tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        MkcertProvider(executor=executor).generate(tmp_path, [])
    assert executor.calls == []


def test_generate_failure_raises(executor, tmp_path: Path) -> None:
    executor.respond("mkcert", returncode=1, stderr="CA not installed")

    with pytest.raises(ProcessExecutionError, match="CA not installed"):
        MkcertProvider(executor=executor).generate(tmp_path, ["shop.test"])


def test_inspect_reads_domains_and_validity(executor, tmp_path: Path) -> None:
    provider = MkcertProvider(executor=executor)
    _write_certificate(provider.certificate_path(tmp_path), ["shop.test", "api.shop.test"])

    assert provider.has_certificate(tmp_path) is True
    details = provider.inspect(provider.certificate_path(tmp_path))

    assert details.domains == ("shop.test", "api.shop.test")
    assert details.expired is False
    assert "mkcert development certificate" in details.subject
    payload = details.to_dict()
    assert payload["domains"] == ["shop.test", "api.shop.test"]
    assert payload["expired"] is False


def test_inspect_handles_der_without_san(executor, tmp_path: Path) -> None:
    provider = MkcertProvider(executor=executor)
    path = tmp_path / "custom.pem"
    _write_certificate(path, [], encoding=serialization.Encoding.DER)

    details = provider.inspect(path)

    assert details.domains == ()


def test_inspect_rejects_garbage(executor, tmp_path: Path) -> None:
    path = tmp_path / "custom.pem"
    path.write_text("not a certificate", encoding="utf-8")

    with pytest.raises(CertificateError):
        MkcertProvider(executor=executor).inspect(path)
    with pytest.raises(CertificateError):
        MkcertProvider(executor=executor).inspect(tmp_path / "missing.pem")


def test_remove_deletes_existing_files(executor, tmp_path: Path) -> None:
    provider = MkcertProvider(executor=executor)
    _write_certificate(provider.certificate_path(tmp_path), ["shop.test"])

    assert provider.remove(tmp_path) == [tmp_path / "custom.pem"]
    assert provider.has_certificate(tmp_path) is False
    assert provider.remove(tmp_path) == []


def test_version(executor) -> None:
    executor.respond("mkcert -version", stdout="v1.4.4\n")
    assert MkcertProvider(executor=executor).get_version() == "v1.4.4"

    executor.respond("mkcert -version", returncode=127)
    assert MkcertProvider(executor=executor).get_version() == "unavailable"
