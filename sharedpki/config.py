"""
Centralized configuration for sharedpki.

All configuration is loaded from environment variables with sensible defaults.
Variable names match the ones the compose stack already exports (VAULT_ADDR,
CA_URL, CERTS_DIR, ...), so the CLI can run inside the same containers.

Usage:
    from sharedpki.config import get_config
    cfg = get_config()
    print(cfg.vault.addr)        # "http://localhost:8201"
    print(cfg.certs_dir)         # Path("certs") or $CERTS_DIR
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sharedpki.errors import ConfigError
from sharedpki.ttl import parse_ttl

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class VaultConfig:
    """Vault server and PKI mount parameters."""

    addr: str = "http://localhost:8201"
    token: str = ""
    namespace: str = ""
    skip_verify: bool = False

    root_mount: str = "pki"
    int_mount: str = "pki_int"
    root_ttl: str = "87600h"
    int_ttl: str = "43800h"
    root_common_name: str = "Shared Services Root CA"
    int_common_name: str = "Shared Services Intermediate CA"
    organization: str = "Shared Services"
    public_url: str = "http://vault:8200"  # address other containers use
    key_bits: int = 4096

    ready_timeout: float = 120.0
    ready_interval: float = 2.0

    def issuing_url(self, mount: str) -> str:
        return f"{self.public_url.rstrip('/')}/v1/{mount}/ca"

    def crl_url(self, mount: str) -> str:
        return f"{self.public_url.rstrip('/')}/v1/{mount}/crl"


@dataclass(frozen=True)
class StepConfig:
    """Step CA server and bootstrap parameters."""

    ca_url: str = "http://localhost:9000"
    insecure: bool = True
    steppath: Path = Path("/home/step")
    ca_name: str = "SharedServices"
    dns_names: tuple[str, ...] = ("localhost", "127.0.0.1", "step-ca")
    password: str = ""
    address: str = ":9000"
    container: str = "shared-step-ca"
    not_after: str = "2160h"

    @property
    def ca_json(self) -> Path:
        return self.steppath / "config" / "ca.json"

    @property
    def root_cert(self) -> Path:
        return self.steppath / "certs" / "root_ca.crt"


@dataclass(frozen=True)
class RotationConfig:
    """Certificate rotation parameters."""

    days_before_expiry: int = 30
    webhook_url: str = ""
    log_file: Path = Path("cert-rotation.log")
    backend: str = "step"
    vault_role: str = "server-cert"
    renew_expired: bool = False


@dataclass(frozen=True)
class Config:
    """Top-level sharedpki configuration."""

    certs_dir: Path = field(default_factory=lambda: Path("certs"))
    vault: VaultConfig = field(default_factory=VaultConfig)
    step: StepConfig = field(default_factory=StepConfig)
    rotation: RotationConfig = field(default_factory=RotationConfig)


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_duration(name: str, default: str) -> str:
    raw = os.environ.get(name, "").strip() or default
    try:
        parse_ttl(raw)
    except ValueError as e:
        raise ConfigError(f"{name}: {e}") from None
    return raw


def _env_bool(name: str, default: bool) -> bool:
    if name not in os.environ:
        return default
    raw = os.environ[name].strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    vault = VaultConfig(
        addr=os.environ.get("VAULT_ADDR", "http://localhost:8201"),
        token=os.environ.get("VAULT_TOKEN", ""),
        namespace=os.environ.get("VAULT_NAMESPACE", ""),
        skip_verify=_env_bool("VAULT_SKIP_VERIFY", False),
        root_mount=os.environ.get("PKI_ROOT_MOUNT", "pki"),
        int_mount=os.environ.get("PKI_INT_MOUNT", "pki_int"),
        root_ttl=_env_duration("PKI_TTL", "87600h"),
        int_ttl=_env_duration("PKI_INT_TTL", "43800h"),
        root_common_name=os.environ.get("PKI_COMMON_NAME", "Shared Services Root CA"),
        int_common_name=os.environ.get("PKI_INT_COMMON_NAME", "Shared Services Intermediate CA"),
        organization=os.environ.get("PKI_ORG", "Shared Services"),
        public_url=os.environ.get("PKI_PUBLIC_URL", "http://vault:8200"),
        key_bits=_env_int("PKI_KEY_BITS", 4096),
        ready_timeout=_env_float("VAULT_READY_TIMEOUT", 120.0),
        ready_interval=_env_float("VAULT_READY_INTERVAL", 2.0),
    )

    # INSECURE may hold the step flag itself ("--insecure"); only an explicit false turns it off.
    insecure_raw = os.environ.get("INSECURE", "--insecure").strip().lower()
    step = StepConfig(
        ca_url=os.environ.get("CA_URL", "http://localhost:9000"),
        insecure=insecure_raw not in _FALSE,
        steppath=Path(os.environ.get("STEPPATH", "/home/step")),
        ca_name=os.environ.get("CA_NAME", "SharedServices"),
        dns_names=tuple(
            name.strip()
            for name in os.environ.get("CA_DNS", "localhost,127.0.0.1,step-ca").split(",")
            if name.strip()
        ),
        password=os.environ.get("STEP_CA_PASSWORD", ""),
        address=os.environ.get("STEP_CA_ADDRESS", ":9000"),
        container=os.environ.get("STEP_CA_CONTAINER", "shared-step-ca"),
        not_after=_env_duration("STEP_NOT_AFTER", "2160h"),
    )

    backend = os.environ.get("SHAREDPKI_ROTATION_BACKEND", "step").strip().lower()
    if backend not in ("step", "vault"):
        raise ConfigError(f"SHAREDPKI_ROTATION_BACKEND must be 'step' or 'vault', got {backend!r}")

    rotation = RotationConfig(
        days_before_expiry=_env_int("DAYS_BEFORE_EXPIRY", 30),
        webhook_url=os.environ.get("WEBHOOK_URL", ""),
        log_file=Path(os.environ.get("LOG_FILE", "cert-rotation.log")),
        backend=backend,
        vault_role=os.environ.get("SHAREDPKI_ROTATION_ROLE", "server-cert"),
        renew_expired=_env_bool("SHAREDPKI_RENEW_EXPIRED", False),
    )

    return Config(
        certs_dir=Path(os.environ.get("CERTS_DIR", "certs")),
        vault=vault,
        step=step,
        rotation=rotation,
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
