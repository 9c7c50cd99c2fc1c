"""
Two-tier PKI bootstrap on Vault: root CA on `pki`, intermediate on `pki_int`,
plus the server/client/service certificate roles.

Re-running is safe. Existing CA material is left alone and only missing
pieces (intermediate mount, roles) are created.
"""

from __future__ import annotations

import logging

from sharedpki.certs.store import CertificateStore
from sharedpki.config import VaultConfig
from sharedpki.errors import VaultError
from sharedpki.vault.client import VaultClient
from sharedpki.vault.models import BootstrapResult
from sharedpki.vault.roles import DEFAULT_ROLES, RoleSpec

logger = logging.getLogger(__name__)


class PKIBootstrap:
    def __init__(
        self,
        client: VaultClient,
        cfg: VaultConfig,
        store: CertificateStore,
        roles: tuple[RoleSpec, ...] = DEFAULT_ROLES,
    ):
        self.client = client
        self.cfg = cfg
        self.store = store
        self.roles = roles

    def run(self, *, wait: bool = True) -> BootstrapResult:
        if wait:
            self.client.wait_until_ready(self.cfg.ready_timeout, self.cfg.ready_interval)

        result = BootstrapResult()
        root_mount = self.cfg.root_mount
        int_mount = self.cfg.int_mount

        root_cert = self._ca_certificate(root_mount)
        if root_cert:
            logger.info("Root CA already present on %s/, skipping root setup", root_mount)
            if not self.store.has_root_ca():
                self.store.write_pem(self.store.root_ca_path.name, root_cert)
                result.root_ca_path = str(self.store.root_ca_path)
        else:
            self._setup_root()
            result.generated_root = True
            result.root_ca_path = str(self.store.root_ca_path)

        if self._ca_certificate(int_mount):
            logger.info("Intermediate CA already present on %s/, skipping", int_mount)
        else:
            self._setup_intermediate()
            result.generated_intermediate = True

        existing = set(self.client.list(f"{int_mount}/roles"))
        for role in self.roles:
            if role.name in existing:
                result.existing_roles.append(role.name)
                continue
            logger.info("Creating role '%s'", role.name)
            self.client.write(f"{int_mount}/roles/{role.name}", role.to_payload())
            result.created_roles.append(role.name)

        return result

    def _ca_certificate(self, mount: str) -> str:
        """The CA certificate installed on mount, or "" if there is none yet."""
        if not self.client.has_mount(mount):
            return ""
        body = self.client.read(f"{mount}/cert/ca")
        return (body or {}).get("data", {}).get("certificate") or ""

    def _ensure_mount(self, mount: str, max_lease_ttl: str) -> None:
        if not self.client.has_mount(mount):
            logger.info("Enabling PKI secrets engine at %s/", mount)
            self.client.enable_secrets_engine(mount, "pki")
        logger.info("Setting %s/ max lease TTL to %s", mount, max_lease_ttl)
        self.client.tune_mount(mount, max_lease_ttl)

    def _configure_urls(self, mount: str) -> None:
        logger.info("Configuring CA and CRL URLs for %s/", mount)
        self.client.write(
            f"{mount}/config/urls",
            {
                "issuing_certificates": self.cfg.issuing_url(mount),
                "crl_distribution_points": self.cfg.crl_url(mount),
            },
        )

    def _setup_root(self) -> None:
        cfg = self.cfg
        self._ensure_mount(cfg.root_mount, cfg.root_ttl)

        logger.info("Generating root CA '%s'", cfg.root_common_name)
        body = self.client.write(
            f"{cfg.root_mount}/root/generate/internal",
            {
                "common_name": cfg.root_common_name,
                "organization": cfg.organization,
                "ttl": cfg.root_ttl,
                "key_bits": cfg.key_bits,
                "exclude_cn_from_sans": True,
            },
        )
        certificate = body.get("data", {}).get("certificate")
        if not certificate:
            raise VaultError("Root CA generation returned no certificate")
        path = self.store.write_pem(self.store.root_ca_path.name, certificate)
        logger.info("Root CA certificate saved to %s", path)

        self._configure_urls(cfg.root_mount)

    def _setup_intermediate(self) -> None:
        cfg = self.cfg
        self._ensure_mount(cfg.int_mount, cfg.int_ttl)

        logger.info("Generating intermediate CA CSR '%s'", cfg.int_common_name)
        body = self.client.write(
            f"{cfg.int_mount}/intermediate/generate/internal",
            {
                "common_name": cfg.int_common_name,
                "organization": cfg.organization,
                "key_bits": cfg.key_bits,
                "exclude_cn_from_sans": True,
            },
        )
        csr = body.get("data", {}).get("csr")
        if not csr:
            raise VaultError("Intermediate generation returned no CSR")

        logger.info("Signing intermediate certificate with %s/", cfg.root_mount)
        body = self.client.write(
            f"{cfg.root_mount}/root/sign-intermediate",
            {"csr": csr, "format": "pem_bundle", "ttl": cfg.int_ttl},
        )
        signed = body.get("data", {}).get("certificate")
        if not signed:
            raise VaultError("Root CA returned no signed intermediate certificate")

        logger.info("Installing signed intermediate certificate")
        self.client.write(f"{cfg.int_mount}/intermediate/set-signed", {"certificate": signed})

        self._configure_urls(cfg.int_mount)
