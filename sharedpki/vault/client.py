"""
Minimal synchronous client for the Vault HTTP API.

Only the endpoints the PKI bootstrap and issuance need: health, mounts,
and generic read / write / list on logical paths.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from sharedpki.errors import VaultError

logger = logging.getLogger(__name__)


class VaultClient:
    """Talk to Vault's /v1 API with a static token."""

    def __init__(
        self,
        addr: str,
        token: str,
        *,
        namespace: str = "",
        verify: bool = True,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.addr = addr.rstrip("/")
        headers = {"X-Vault-Token": token}
        if namespace:
            headers["X-Vault-Namespace"] = namespace
        self._http = httpx.Client(
            base_url=f"{self.addr}/v1/",
            headers=headers,
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_config(cls, cfg, **kwargs) -> VaultClient:
        """Build a client from a VaultConfig. Raises VaultError without a token."""
        if not cfg.token:
            raise VaultError("VAULT_TOKEN is not set")
        return cls(
            cfg.addr,
            cfg.token,
            namespace=cfg.namespace,
            verify=not cfg.skip_verify,
            **kwargs,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> VaultClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── low level ──────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        allow_404: bool = False,
    ) -> dict[str, Any] | None:
        try:
            resp = self._http.request(method, path.lstrip("/"), json=json, params=params)
        except httpx.HTTPError as e:
            raise VaultError(f"Vault unreachable at {self.addr}: {e}") from e

        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code >= 400:
            errors: list[str] = []
            try:
                errors = resp.json().get("errors", [])
            except ValueError:
                if resp.text:
                    errors = [resp.text.strip()]
            raise VaultError(
                f"{method} {path} failed", status_code=resp.status_code, errors=errors
            )
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    def read(self, path: str) -> dict[str, Any] | None:
        """GET a logical path. Returns None if Vault answers 404."""
        return self._request("GET", path, allow_404=True)

    def write(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        """POST data to a logical path. Returns the response body ({} on 204)."""
        return self._request("POST", path, json=data) or {}

    def list(self, path: str) -> list[str]:
        """LIST a logical path. Returns [] if nothing is stored there."""
        body = self._request("GET", path, params={"list": "true"}, allow_404=True)
        if not body:
            return []
        return list(body.get("data", {}).get("keys", []))

    # ── sys/ ───────────────────────────────────────────────────

    def health(self) -> dict[str, Any]:
        """Return sys/health. Vault signals sealed/standby via status codes, so any code is accepted."""
        try:
            resp = self._http.get("sys/health")
        except httpx.HTTPError as e:
            raise VaultError(f"Vault unreachable at {self.addr}: {e}") from e
        try:
            return resp.json()
        except ValueError:
            raise VaultError("Unexpected sys/health response", status_code=resp.status_code) from None

    def is_ready(self) -> bool:
        """True when Vault is initialized and unsealed."""
        try:
            health = self.health()
        except VaultError:
            return False
        return bool(health.get("initialized")) and not health.get("sealed", True)

    def wait_until_ready(
        self,
        timeout: float = 120.0,
        interval: float = 2.0,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Poll until ready. timeout <= 0 waits forever.

        Time spent in health requests counts against the deadline.
        """
        deadline = clock() + timeout
        while not self.is_ready():
            if timeout > 0 and clock() >= deadline:
                raise VaultError(f"Vault at {self.addr} not ready after {timeout:.0f}s")
            logger.info("Waiting for Vault at %s...", self.addr)
            sleep(interval)
        logger.info("Vault is ready")

    def list_mounts(self) -> dict[str, dict[str, Any]]:
        """Return enabled secrets engines keyed by path ("pki/")."""
        body = self._request("GET", "sys/mounts") or {}
        mounts = body.get("data", body)
        return {k: v for k, v in mounts.items() if k.endswith("/") and isinstance(v, dict)}

    def has_mount(self, path: str) -> bool:
        return f"{path.strip('/')}/" in self.list_mounts()

    def enable_secrets_engine(
        self, path: str, engine_type: str = "pki", *, max_lease_ttl: str | None = None
    ) -> None:
        payload: dict[str, Any] = {"type": engine_type}
        if max_lease_ttl:
            payload["config"] = {"max_lease_ttl": max_lease_ttl}
        self.write(f"sys/mounts/{path}", payload)

    def tune_mount(self, path: str, max_lease_ttl: str) -> None:
        self.write(f"sys/mounts/{path}/tune", {"max_lease_ttl": max_lease_ttl})
