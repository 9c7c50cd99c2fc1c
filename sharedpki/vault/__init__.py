"""
Vault PKI - two-tier CA bootstrap and certificate issuance over the HTTP API.

Public API:
    VaultClient(addr, token)                 → thin /v1 client
    PKIBootstrap(client, cfg, store).run()   → root + intermediate CA + roles
    CertificateIssuer(client).issue(req)     → IssuedCertificate
    issue_to_directory(issuer, store, req)   → cert / key / chain / bundle on disk
"""

from __future__ import annotations

from sharedpki.vault.bootstrap import PKIBootstrap
from sharedpki.vault.client import VaultClient
from sharedpki.vault.issue import CertificateIssuer, CertificateRequest, issue_to_directory
from sharedpki.vault.models import BootstrapResult, IssuedCertificate
from sharedpki.vault.roles import DEFAULT_ROLES, get_role

__all__ = [
    "BootstrapResult",
    "CertificateIssuer",
    "CertificateRequest",
    "DEFAULT_ROLES",
    "IssuedCertificate",
    "PKIBootstrap",
    "VaultClient",
    "get_role",
    "issue_to_directory",
]
