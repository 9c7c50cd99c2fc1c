"""
Step CA bootstrap - root + intermediate CA material and config/ca.json.

Runs before step-ca starts (container entrypoint). If config/ca.json already
exists the CA is considered initialized and nothing is touched.

Layout under STEPPATH:
    certs/root_ca.crt              certs/intermediate_ca.crt
    secrets/root_ca_key            secrets/intermediate_ca_key   (encrypted, 600)
    secrets/password               password file for step-ca     (600)
    config/ca.json
    db/
"""

from __future__ import annotations

import logging
import stat
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from sharedpki.config import StepConfig
from sharedpki.errors import ConfigError
from sharedpki.stepca.models import CAConfig, DatabaseConfig

logger = logging.getLogger(__name__)

CA_VALIDITY = timedelta(days=3650)


@dataclass
class StepCAMaterial:
    root_cert: Path
    root_key: Path
    intermediate_cert: Path
    intermediate_key: Path
    ca_json: Path
    password_file: Path
    created: bool


def _write_private(path: Path, data: bytes) -> None:
    path.write_bytes(data)
    path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 600


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _ca_certificate(
    subject: str,
    public_key: ec.EllipticCurvePublicKey,
    issuer_name: x509.Name,
    signing_key: ec.EllipticCurvePrivateKey,
    issuer_public_key: ec.EllipticCurvePublicKey,
    path_length: int,
    now: datetime,
) -> x509.Certificate:
    return (
        x509.CertificateBuilder()
        .subject_name(_name(subject))
        .issuer_name(issuer_name)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + CA_VALIDITY)
        .add_extension(x509.BasicConstraints(ca=True, path_length=path_length), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key), critical=False
        )
        .sign(signing_key, hashes.SHA256())
    )


class StepCABootstrap:
    """Create the CA hierarchy and ca.json for a fresh Step CA."""

    def __init__(self, cfg: StepConfig):
        self.cfg = cfg
        self.steppath = Path(cfg.steppath)

    @property
    def paths(self) -> dict[str, Path]:
        base = self.steppath
        return {
            "root_cert": base / "certs" / "root_ca.crt",
            "root_key": base / "secrets" / "root_ca_key",
            "intermediate_cert": base / "certs" / "intermediate_ca.crt",
            "intermediate_key": base / "secrets" / "intermediate_ca_key",
            "ca_json": base / "config" / "ca.json",
            "password_file": base / "secrets" / "password",
        }

    def is_initialized(self) -> bool:
        return self.paths["ca_json"].is_file()

    def run(self, now: datetime | None = None) -> StepCAMaterial:
        paths = self.paths
        if self.is_initialized():
            logger.info("Step CA already initialized at %s", self.steppath)
            return StepCAMaterial(**paths, created=False)

        if not self.cfg.password:
            raise ConfigError("STEP_CA_PASSWORD environment variable is required")

        logger.info("Initializing Step CA '%s' in %s", self.cfg.ca_name, self.steppath)
        for sub in ("certs", "secrets", "config", "db"):
            (self.steppath / sub).mkdir(parents=True, exist_ok=True)

        now = now or datetime.now(UTC)
        password = self.cfg.password.encode()
        encryption = serialization.BestAvailableEncryption(password)

        root_key = ec.generate_private_key(ec.SECP256R1())
        root_name = _name(f"{self.cfg.ca_name} Root CA")
        root_cert = _ca_certificate(
            f"{self.cfg.ca_name} Root CA",
            root_key.public_key(),
            root_name,
            root_key,
            root_key.public_key(),
            path_length=1,
            now=now,
        )
        logger.info("Generated root CA")

        int_key = ec.generate_private_key(ec.SECP256R1())
        int_cert = _ca_certificate(
            f"{self.cfg.ca_name} Intermediate CA",
            int_key.public_key(),
            root_name,
            root_key,
            root_key.public_key(),
            path_length=0,
            now=now,
        )
        logger.info("Generated intermediate CA")

        pem = serialization.Encoding.PEM
        paths["root_cert"].write_bytes(root_cert.public_bytes(pem))
        paths["intermediate_cert"].write_bytes(int_cert.public_bytes(pem))
        pkcs8 = serialization.PrivateFormat.PKCS8
        _write_private(paths["root_key"], root_key.private_bytes(pem, pkcs8, encryption))
        _write_private(paths["intermediate_key"], int_key.private_bytes(pem, pkcs8, encryption))
        _write_private(paths["password_file"], password)

        paths["ca_json"].write_text(self.render_config().to_json() + "\n")
        logger.info("Wrote %s", paths["ca_json"])
        return StepCAMaterial(**paths, created=True)

    def render_config(self) -> CAConfig:
        paths = self.paths
        return CAConfig(
            root=str(paths["root_cert"]),
            crt=str(paths["intermediate_cert"]),
            key=str(paths["intermediate_key"]),
            address=self.cfg.address,
            dnsNames=list(self.cfg.dns_names),
            db=DatabaseConfig(dataSource=str(self.steppath / "db")),
        )

    def daemon_command(self) -> list[str]:
        """argv that starts step-ca on the generated config."""
        paths = self.paths
        return ["step-ca", str(paths["ca_json"]), "--password-file", str(paths["password_file"])]
