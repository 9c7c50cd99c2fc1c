"""
Root-level shared test fixtures.

Inherited by the vault, stepca, certs and rotation suites as well as tests/.
Certificates are minted with cryptography so no CA needs to be running.
"""

from __future__ import annotations

import ipaddress
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from sharedpki.config import reset_config

ENV_VARS = [
    "CERTS_DIR",
    "VAULT_ADDR",
    "VAULT_TOKEN",
    "VAULT_NAMESPACE",
    "VAULT_SKIP_VERIFY",
    "PKI_ROOT_MOUNT",
    "PKI_INT_MOUNT",
    "PKI_TTL",
    "PKI_INT_TTL",
    "PKI_COMMON_NAME",
    "PKI_INT_COMMON_NAME",
    "PKI_ORG",
    "PKI_PUBLIC_URL",
    "PKI_KEY_BITS",
    "VAULT_READY_TIMEOUT",
    "VAULT_READY_INTERVAL",
    "CA_URL",
    "INSECURE",
    "STEPPATH",
    "CA_NAME",
    "CA_DNS",
    "STEP_CA_PASSWORD",
    "STEP_CA_ADDRESS",
    "STEP_CA_CONTAINER",
    "STEP_NOT_AFTER",
    "DAYS_BEFORE_EXPIRY",
    "WEBHOOK_URL",
    "LOG_FILE",
    "SHAREDPKI_ROTATION_BACKEND",
    "SHAREDPKI_ROTATION_ROLE",
    "SHAREDPKI_RENEW_EXPIRED",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove sharedpki env vars that leak between tests and reset the config singleton."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield monkeypatch
    reset_config()


class FakeCA:
    """A throwaway CA that signs leaf certificates for tests."""

    def __init__(self, name: str = "Test Root CA"):
        self.key = ec.generate_private_key(ec.SECP256R1())
        now = datetime.now(UTC)
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
        self.cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=3650))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .sign(self.key, hashes.SHA256())
        )

    @property
    def pem(self) -> str:
        return self.cert.public_bytes(serialization.Encoding.PEM).decode()

    def issue(
        self,
        common_name: str,
        *,
        sans: list[str] | tuple[str, ...] = (),
        days: float = 90,
        usages: tuple[str, ...] = (),
    ) -> tuple[str, str]:
        """Return (cert_pem, key_pem) valid for `days` from now (negative = expired)."""
        key = ec.generate_private_key(ec.SECP256R1())
        now = datetime.now(UTC)
        not_after = now + timedelta(days=days)
        not_before = min(now, not_after) - timedelta(days=1)
        builder = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
            .issuer_name(self.cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        if sans:
            names: list[x509.GeneralName] = []
            for san in sans:
                try:
                    names.append(x509.IPAddress(ipaddress.ip_address(san)))
                except ValueError:
                    names.append(x509.DNSName(san))
            builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)
        if usages:
            oids = {
                "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
                "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
            }
            builder = builder.add_extension(
                x509.ExtendedKeyUsage([oids[u] for u in usages]), critical=False
            )
        cert = builder.sign(self.key, hashes.SHA256())
        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
        return cert.public_bytes(serialization.Encoding.PEM).decode(), key_pem

    def write_pair(
        self, directory: Path, stem: str, common_name: str | None = None, **kwargs
    ) -> tuple[Path, Path]:
        cert_pem, key_pem = self.issue(common_name or stem, **kwargs)
        directory.mkdir(parents=True, exist_ok=True)
        cert_path = directory / f"{stem}.crt"
        key_path = directory / f"{stem}.key"
        cert_path.write_text(cert_pem)
        key_path.write_text(key_pem)
        return cert_path, key_path


@pytest.fixture(scope="session")
def test_ca() -> FakeCA:
    return FakeCA()


@pytest.fixture
def certs_dir(tmp_path: Path) -> Path:
    d = tmp_path / "certs"
    d.mkdir()
    return d


ROLE_USAGES = {
    "server-cert": ("serverAuth",),
    "client-cert": ("clientAuth",),
    "service-cert": ("serverAuth", "clientAuth"),
}


class FakeVault:
    """In-memory stand-in for Vault's HTTP API, served through httpx.MockTransport."""

    def __init__(self, ca: FakeCA, token: str = "test-token"):
        self.ca = ca
        self.token = token
        self.sealed = False
        self.initialized = True
        self.mounts: dict[str, dict] = {}
        self.ca_certs: dict[str, str] = {}
        self.roles: dict[str, dict[str, dict]] = {}
        self.calls: list[tuple[str, str, dict | None]] = []
        self.fail_issue = False

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, **kwargs):
        from sharedpki.vault.client import VaultClient

        return VaultClient("http://vault.test:8200", self.token, transport=self.transport, **kwargs)

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p, _ in self.calls if method is None or m == method]

    @staticmethod
    def _json(status: int, body: dict | None = None) -> httpx.Response:
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1/")
        body = json.loads(request.content) if request.content else None
        method = request.method
        if request.url.params.get("list") == "true":
            method = "LIST"
        self.calls.append((method, path, body))

        if path == "sys/health":
            status = 503 if self.sealed else (501 if not self.initialized else 200)
            return self._json(
                status,
                {"initialized": self.initialized, "sealed": self.sealed, "version": "1.15.0"},
            )

        if request.headers.get("X-Vault-Token") != self.token:
            return self._json(403, {"errors": ["permission denied"]})

        if path == "sys/mounts" and method == "GET":
            return self._json(200, {"data": {f"{m}/": cfg for m, cfg in self.mounts.items()}})

        if path.startswith("sys/mounts/"):
            rest = path.removeprefix("sys/mounts/")
            if rest.endswith("/tune"):
                self.mounts[rest.removesuffix("/tune")]["max_lease_ttl"] = body["max_lease_ttl"]
                return self._json(204)
            if rest in self.mounts:
                return self._json(400, {"errors": [f"path is already in use at {rest}/"]})
            self.mounts[rest] = {"type": body["type"]}
            return self._json(204)

        mount, _, op = path.partition("/")
        if mount not in self.mounts:
            return self._json(404, {"errors": []})

        if op == "cert/ca":
            return self._json(200, {"data": {"certificate": self.ca_certs.get(mount, "")}})

        if op == "root/generate/internal":
            self.ca_certs[mount] = self.ca.pem
            return self._json(200, {"data": {"certificate": self.ca.pem, "serial_number": "01"}})

        if op == "intermediate/generate/internal":
            return self._json(200, {"data": {"csr": "-----BEGIN CERTIFICATE REQUEST-----\nMIIB\n-----END CERTIFICATE REQUEST-----"}})

        if op == "root/sign-intermediate":
            return self._json(200, {"data": {"certificate": self.ca.pem}})

        if op == "intermediate/set-signed":
            self.ca_certs[mount] = body["certificate"]
            return self._json(204)

        if op == "config/urls":
            self.mounts[mount]["urls"] = body
            return self._json(204)

        if op == "roles" and method == "LIST":
            roles = self.roles.get(mount)
            if not roles:
                return self._json(404, {"errors": []})
            return self._json(200, {"data": {"keys": sorted(roles)}})

        if op.startswith("roles/"):
            self.roles.setdefault(mount, {})[op.removeprefix("roles/")] = body
            return self._json(204)

        if op.startswith("issue/"):
            role = op.removeprefix("issue/")
            if self.fail_issue or role not in self.roles.get(mount, {}):
                return self._json(400, {"errors": [f"unknown role: {role}"]})
            sans = [s for s in body.get("alt_names", "").split(",") if s]
            sans += [s for s in body.get("ip_sans", "").split(",") if s]
            cert_pem, key_pem = self.ca.issue(body["common_name"], sans=sans, days=365, usages=ROLE_USAGES.get(role, ()))
            return self._json(
                200,
                {
                    "data": {
                        "certificate": cert_pem,
                        "private_key": key_pem,
                        "private_key_type": "ec",
                        "ca_chain": [self.ca.pem],
                        "issuing_ca": self.ca.pem,
                        "serial_number": "3a:9f:01",
                        "expiration": 1893456000,
                    }
                },
            )

        return self._json(404, {"errors": [f"no handler for route {path}"]})

    def bootstrap(self, int_mount: str = "pki_int") -> None:
        """Put the fake into the state a finished `vault init` leaves behind."""
        from sharedpki.vault.roles import DEFAULT_ROLES

        self.mounts.setdefault("pki", {"type": "pki"})
        self.mounts.setdefault(int_mount, {"type": "pki"})
        self.ca_certs["pki"] = self.ca.pem
        self.ca_certs[int_mount] = self.ca.pem
        self.roles[int_mount] = {r.name: r.to_payload() for r in DEFAULT_ROLES}


@pytest.fixture
def fake_vault(test_ca: FakeCA) -> FakeVault:
    return FakeVault(test_ca)
