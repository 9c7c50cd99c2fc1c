"""Certificate roles created on the intermediate PKI mount."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

SERVICE_DOMAINS = ("localhost", "*.local", "*.svc", "*.svc.cluster.local")


@dataclass(frozen=True)
class RoleSpec:
    name: str
    description: str
    server_flag: bool
    client_flag: bool
    allowed_domains: tuple[str, ...] = ()
    allow_subdomains: bool = False
    allow_localhost: bool = False
    allow_bare_domains: bool = False
    allow_ip_sans: bool = False
    allow_any_name: bool = False
    enforce_hostnames: bool = True
    ttl: str = "8760h"
    max_ttl: str = "8760h"
    key_bits: int = 2048

    def to_payload(self) -> dict[str, Any]:
        """Body for POST <mount>/roles/<name>."""
        payload: dict[str, Any] = {
            "server_flag": self.server_flag,
            "client_flag": self.client_flag,
            "ttl": self.ttl,
            "max_ttl": self.max_ttl,
            "key_bits": self.key_bits,
        }
        if self.allow_any_name:
            payload["allow_any_name"] = True
            payload["enforce_hostnames"] = self.enforce_hostnames
        else:
            payload.update(
                allowed_domains=",".join(self.allowed_domains),
                allow_subdomains=self.allow_subdomains,
                allow_localhost=self.allow_localhost,
                allow_bare_domains=self.allow_bare_domains,
                allow_ip_sans=self.allow_ip_sans,
            )
        return payload


SERVER_CERT = RoleSpec(
    name="server-cert",
    description="Server certificates (HTTPS, TLS)",
    server_flag=True,
    client_flag=False,
    allowed_domains=SERVICE_DOMAINS,
    allow_subdomains=True,
    allow_localhost=True,
    allow_bare_domains=True,
    allow_ip_sans=True,
)

CLIENT_CERT = RoleSpec(
    name="client-cert",
    description="Client certificates (mTLS)",
    server_flag=False,
    client_flag=True,
    allow_any_name=True,
    enforce_hostnames=False,
)

SERVICE_CERT = RoleSpec(
    name="service-cert",
    description="Service certificates (both server & client)",
    server_flag=True,
    client_flag=True,
    allowed_domains=SERVICE_DOMAINS,
    allow_subdomains=True,
    allow_localhost=True,
    allow_bare_domains=True,
    allow_ip_sans=True,
)

DEFAULT_ROLES: tuple[RoleSpec, ...] = (SERVER_CERT, CLIENT_CERT, SERVICE_CERT)


def get_role(name: str) -> RoleSpec:
    for role in DEFAULT_ROLES:
        if role.name == name:
            return role
    known = ", ".join(r.name for r in DEFAULT_ROLES)
    raise ValueError(f"Unknown role {name!r}. Known roles: {known}")
