"""Pydantic model of the Step CA ca.json file (the subset the stack uses)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CIPHER_SUITES = [
    "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384",
    "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256",
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoggerConfig(_CamelModel):
    format: str = "text"
    level: str = "info"


class DatabaseConfig(_CamelModel):
    type: str = "badger"
    data_source: str = Field(alias="dataSource")


class Provisioner(_CamelModel):
    type: str
    name: str


class AuthorityConfig(_CamelModel):
    provisioners: list[Provisioner] = Field(
        default_factory=lambda: [Provisioner(type="ACME", name="acme")]
    )


class TLSConfig(_CamelModel):
    cipher_suites: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CIPHER_SUITES), alias="cipherSuites"
    )
    min_version: float = Field(1.2, alias="minVersion")
    max_version: float = Field(1.3, alias="maxVersion")
    renegotiation: bool = False


class CAConfig(_CamelModel):
    root: str
    federated_roots: list[str] | None = Field(None, alias="federatedRoots")
    crt: str
    key: str
    address: str = ":9000"
    insecure_address: str = Field("", alias="insecureAddress")
    dns_names: list[str] = Field(alias="dnsNames")
    logger: LoggerConfig = Field(default_factory=LoggerConfig)
    db: DatabaseConfig
    authority: AuthorityConfig = Field(default_factory=AuthorityConfig)
    tls: TLSConfig = Field(default_factory=TLSConfig)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=False, indent=2)
