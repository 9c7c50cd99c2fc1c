"""Vault PKI response models."""

from __future__ import annotations

from pydantic import BaseModel


class IssuedCertificate(BaseModel):
    """Response data of <mount>/issue/<role>. Holds the private key - never log it."""

    certificate: str
    private_key: str
    ca_chain: list[str] = []
    issuing_ca: str = ""
    serial_number: str = ""
    private_key_type: str = ""
    expiration: int | None = None

    @property
    def chain_pem(self) -> str:
        """CA chain joined by newlines; falls back to the issuing CA."""
        if self.ca_chain:
            return "\n".join(c.strip() for c in self.ca_chain)
        return self.issuing_ca.strip()


class BootstrapResult(BaseModel):
    """Outcome of the PKI bootstrap."""

    generated_root: bool = False
    generated_intermediate: bool = False
    root_ca_path: str | None = None
    created_roles: list[str] = []
    existing_roles: list[str] = []

    @property
    def skipped(self) -> bool:
        return not (self.generated_root or self.generated_intermediate or self.created_roles)
