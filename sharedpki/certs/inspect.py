"""X.509 inspection helpers (subject, SANs, validity, issuer checks)."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from sharedpki.errors import CertificateError


@dataclass
class CertificateInfo:
    subject_cn: str
    issuer_cn: str
    serial: str
    not_before: datetime
    not_after: datetime
    dns_names: list[str] = field(default_factory=list)
    ip_addresses: list[str] = field(default_factory=list)
    is_ca: bool = False
    extended_key_usage: list[str] = field(default_factory=list)

    @property
    def client_auth_only(self) -> bool:
        """True for mTLS client certificates (clientAuth without serverAuth)."""
        eku = self.extended_key_usage
        return "clientAuth" in eku and "serverAuth" not in eku

    @property
    def sans(self) -> list[str]:
        return self.dns_names + self.ip_addresses

    def days_until_expiry(self, now: datetime | None = None) -> int:
        """Whole days left; negative once expired."""
        now = now or datetime.now(UTC)
        return (self.not_after - now).days

    def to_dict(self) -> dict:
        return {
            "subject": self.subject_cn,
            "issuer": self.issuer_cn,
            "serial": self.serial,
            "validFrom": self.not_before.isoformat(),
            "validTo": self.not_after.isoformat(),
            "sanList": self.sans,
            "isCA": self.is_ca,
        }


def load_certificate(source: Path | str | bytes) -> x509.Certificate:
    """Load the first PEM certificate from a path or raw bytes."""
    if isinstance(source, bytes):
        data = source
    else:
        path = Path(source)
        if not path.is_file():
            raise CertificateError(f"Certificate not found: {path}")
        data = path.read_bytes()
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError as e:
        raise CertificateError(f"Not a PEM certificate: {e}") from e


def load_chain(pem: str | bytes) -> list[x509.Certificate]:
    """Parse every certificate in a PEM bundle."""
    data = pem.encode() if isinstance(pem, str) else pem
    try:
        return x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise CertificateError(f"Invalid PEM bundle: {e}") from e


_EKU_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "serverAuth",
    ExtendedKeyUsageOID.CLIENT_AUTH: "clientAuth",
}


def _common_name(name: x509.Name) -> str:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attrs[0].value) if attrs else ""


def describe(cert: x509.Certificate) -> CertificateInfo:
    dns_names: list[str] = []
    ip_addresses: list[str] = []
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        dns_names = san.get_values_for_type(x509.DNSName)
        ip_addresses = [str(ip) for ip in san.get_values_for_type(x509.IPAddress)]
    except x509.ExtensionNotFound:
        pass

    is_ca = False
    try:
        is_ca = cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        pass

    extended_key_usage: list[str] = []
    try:
        usages = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
        extended_key_usage = [_EKU_NAMES.get(oid, oid.dotted_string) for oid in usages]
    except x509.ExtensionNotFound:
        pass

    return CertificateInfo(
        subject_cn=_common_name(cert.subject),
        issuer_cn=_common_name(cert.issuer),
        serial=format(cert.serial_number, "x"),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        dns_names=dns_names,
        ip_addresses=ip_addresses,
        is_ca=is_ca,
        extended_key_usage=extended_key_usage,
    )


def inspect_file(path: Path | str) -> CertificateInfo:
    return describe(load_certificate(path))


def days_until_expiry(path: Path | str, now: datetime | None = None) -> int:
    """Days until the certificate at path expires.

    -1 if the file is missing, 0 if it cannot be parsed (so it gets renewed).
    """
    path = Path(path)
    if not path.is_file():
        return -1
    try:
        info = inspect_file(path)
    except CertificateError:
        return 0
    return info.days_until_expiry(now)


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """True if issuer's name and key produced cert's signature."""
    try:
        cert.verify_directly_issued_by(issuer)
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def split_sans(values: list[str]) -> tuple[list[str], list[str]]:
    """Split SAN strings into (dns_names, ip_addresses)."""
    dns: list[str] = []
    ips: list[str] = []
    for value in values:
        value = value.strip()
        if not value:
            continue
        try:
            ipaddress.ip_address(value)
            ips.append(value)
        except ValueError:
            dns.append(value)
    return dns, ips
