"""Issue leaf certificates from the intermediate mount and save them to disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sharedpki.certs.store import CertificateStore, IssuedFiles
from sharedpki.errors import VaultError
from sharedpki.ttl import parse_ttl
from sharedpki.vault.client import VaultClient
from sharedpki.vault.models import IssuedCertificate
from sharedpki.vault.roles import get_role

logger = logging.getLogger(__name__)

CLIENT_ROLE = "client-cert"


@dataclass(frozen=True)
class CertificateRequest:
    """What to ask Vault for. Client certs are named by CN, others by domain."""

    role: str = "server-cert"
    domain: str = ""
    common_name: str = ""
    ip_sans: tuple[str, ...] = ()
    alt_names: tuple[str, ...] = ()
    ttl: str = "8760h"

    def validate(self) -> None:
        get_role(self.role)
        parse_ttl(self.ttl)
        if self.role == CLIENT_ROLE:
            if not self.common_name:
                raise ValueError("Common name is required for client certificates")
        elif not self.domain:
            raise ValueError("Domain is required for server/service certificates")

    @property
    def subject(self) -> str:
        return self.common_name if self.role == CLIENT_ROLE else self.domain

    @property
    def file_stem(self) -> str:
        if self.role == CLIENT_ROLE:
            return self.common_name.replace("@", "_").replace(".", "_")
        return self.domain

    def to_payload(self) -> dict[str, Any]:
        self.validate()
        payload: dict[str, Any] = {"common_name": self.subject, "ttl": self.ttl}
        if self.role != CLIENT_ROLE:
            alt = [self.domain] + [a for a in self.alt_names if a and a != self.domain]
            payload["alt_names"] = ",".join(alt)
        elif self.alt_names:
            payload["alt_names"] = ",".join(self.alt_names)
        if self.ip_sans:
            payload["ip_sans"] = ",".join(self.ip_sans)
        return payload


@dataclass
class IssueOutcome:
    files: IssuedFiles
    serial_number: str
    root_ca_exported: bool = False


class CertificateIssuer:
    """Issue certificates and export the root CA through a VaultClient."""

    def __init__(self, client: VaultClient, *, int_mount: str = "pki_int", root_mount: str = "pki"):
        self.client = client
        self.int_mount = int_mount
        self.root_mount = root_mount

    def issue(self, request: CertificateRequest) -> IssuedCertificate:
        payload = request.to_payload()
        logger.info("Issuing %s for %s", request.role, request.subject)
        body = self.client.write(f"{self.int_mount}/issue/{request.role}", payload)
        data = body.get("data")
        if not data:
            raise VaultError(f"Vault returned no certificate for {request.subject}")
        issued = IssuedCertificate.model_validate(data)
        logger.info("Issued serial %s", issued.serial_number)
        return issued

    def export_root_ca(self) -> str:
        body = self.client.read(f"{self.root_mount}/cert/ca")
        cert = (body or {}).get("data", {}).get("certificate", "")
        if not cert:
            raise VaultError(f"No root CA certificate at {self.root_mount}/cert/ca")
        return cert


def issue_to_directory(
    issuer: CertificateIssuer,
    store: CertificateStore,
    request: CertificateRequest,
) -> IssueOutcome:
    """Issue a certificate and write cert, key, chain and bundle.

    The root CA is exported alongside if the directory does not have one yet.
    """
    issued = issuer.issue(request)
    files = store.write_issued(request.file_stem, issued)
    outcome = IssueOutcome(files=files, serial_number=issued.serial_number)

    if not store.has_root_ca():
        store.write_pem(store.root_ca_path.name, issuer.export_root_ca())
        outcome.root_ca_exported = True
        logger.info("Root CA exported to %s", store.root_ca_path)
    return outcome
