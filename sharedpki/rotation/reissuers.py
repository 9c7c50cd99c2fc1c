"""Reissuer backends for rotation: Step CA (step CLI) and Vault PKI."""

from __future__ import annotations

import logging

from sharedpki.certs.inspect import CertificateInfo
from sharedpki.certs.store import CertificateStore, CertPair
from sharedpki.stepca.client import StepCAClient
from sharedpki.vault.issue import CLIENT_ROLE, CertificateIssuer, CertificateRequest

logger = logging.getLogger(__name__)


class StepReissuer:
    """Renew by requesting a new certificate with the old CN and SANs."""

    def __init__(self, client: StepCAClient, *, not_after: str = "2160h"):
        self.client = client
        self.not_after = not_after

    def reissue(self, info: CertificateInfo, pair: CertPair) -> None:
        self.client.issue(
            info.subject_cn,
            pair.cert,
            pair.key,
            sans=info.sans,
            not_after=self.not_after,
        )


class VaultReissuer:
    """Renew through a Vault PKI role; chain and bundle files are rewritten too.

    Certificates whose extended key usage is clientAuth only are renewed
    through client-cert by CN. Everything else uses the configured role.
    """

    def __init__(self, issuer: CertificateIssuer, *, role: str = "server-cert", ttl: str = "8760h"):
        self.issuer = issuer
        self.role = role
        self.ttl = ttl

    def role_for(self, info: CertificateInfo) -> str:
        return CLIENT_ROLE if info.client_auth_only else self.role

    def reissue(self, info: CertificateInfo, pair: CertPair) -> None:
        stem = pair.cert.stem
        role = self.role_for(info)
        if role == CLIENT_ROLE:
            request = CertificateRequest(role=role, common_name=info.subject_cn, ttl=self.ttl)
        else:
            request = CertificateRequest(
                role=role,
                domain=info.subject_cn,
                alt_names=tuple(info.dns_names),
                ip_sans=tuple(info.ip_addresses),
                ttl=self.ttl,
            )
        issued = self.issuer.issue(request)
        CertificateStore(pair.cert.parent).write_issued(stem, issued)
        logger.info("Reissued %s via Vault role %s (serial %s)", stem, role, issued.serial_number)
