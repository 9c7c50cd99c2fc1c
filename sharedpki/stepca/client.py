"""
Step CA client - health and roots over HTTP, issuance through the step CLI.

Usage:
    client = StepCAClient("https://localhost:9000", insecure=True)
    client.health()
    client.issue("myapp.local", Path("certs/myapp.local.crt"), Path("certs/myapp.local.key"))
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import httpx

from sharedpki.errors import StepCAError

logger = logging.getLogger(__name__)

STEP_TIMEOUT = 60


def client_file_stem(name: str) -> str:
    """Filename for a client certificate subject ("a b@x.io" -> "a_b_x.io")."""
    return name.replace("@", "_").replace(" ", "_")


class StepCAClient:
    def __init__(
        self,
        ca_url: str,
        *,
        insecure: bool = True,
        steppath: Path | str = "/home/step",
        container: str = "shared-step-ca",
        timeout: float = 10.0,
    ):
        self.ca_url = ca_url.rstrip("/")
        self.insecure = insecure
        self.steppath = Path(steppath)
        self.container = container
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg) -> StepCAClient:
        return cls(
            cfg.ca_url,
            insecure=cfg.insecure,
            steppath=cfg.steppath,
            container=cfg.container,
        )

    # ── HTTP ───────────────────────────────────────────────────

    def _get(self, path: str) -> httpx.Response:
        try:
            resp = httpx.get(f"{self.ca_url}{path}", timeout=self.timeout, verify=not self.insecure)
            resp.raise_for_status()
            return resp
        except httpx.HTTPError as e:
            raise StepCAError(f"Step CA request {path} failed at {self.ca_url}: {e}") from e

    def health(self) -> bool:
        """True when step-ca answers /health with status ok."""
        try:
            body = self._get("/health").json()
        except (StepCAError, ValueError) as e:
            logger.debug("Step CA health check failed: %s", e)
            return False
        return body.get("status") == "ok"

    def fetch_roots(self) -> str:
        """PEM of the CA's root certificate(s)."""
        return self._get("/roots.pem").text

    # ── step CLI ───────────────────────────────────────────────

    def _run_step(self, args: list[str]) -> subprocess.CompletedProcess:
        cmd = ["step", *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd, check=True, capture_output=True, text=True, timeout=STEP_TIMEOUT
            )
        except FileNotFoundError as e:
            raise StepCAError("step CLI not found") from e
        except subprocess.CalledProcessError as e:
            raise StepCAError(f"step {' '.join(args[:2])} failed", stderr=e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise StepCAError(f"step {' '.join(args[:2])} timed out after {STEP_TIMEOUT}s") from e

    def issue(
        self,
        subject: str,
        cert_path: Path,
        key_path: Path,
        *,
        sans: list[str] | tuple[str, ...] = (),
        not_after: str = "2160h",
        profile: str | None = None,
    ) -> None:
        """Request a certificate from the CA and write it to cert_path / key_path."""
        if not subject:
            raise ValueError("Certificate subject is required")
        args = ["ca", "certificate", "--ca-url", self.ca_url]
        if self.insecure:
            args.append("--insecure")
        args += ["--not-after", not_after]
        if profile:
            args += ["--profile", profile]
        for san in sans:
            args += ["--san", san]
        args += ["--force", subject, str(cert_path), str(key_path)]

        cert_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Requesting certificate for '%s' from %s", subject, self.ca_url)
        self._run_step(args)

    def issue_server(
        self, domain: str, certs_dir: Path, *, extra_sans: list[str] | tuple[str, ...] = (), not_after: str = "2160h"
    ) -> tuple[Path, Path]:
        """Server certificate named after the domain, which is also the first SAN."""
        if not domain:
            raise ValueError("Domain is required")
        sans = [domain] + [s for s in extra_sans if s and s != domain]
        cert, key = certs_dir / f"{domain}.crt", certs_dir / f"{domain}.key"
        self.issue(domain, cert, key, sans=sans, not_after=not_after)
        return cert, key

    def issue_client(self, name: str, certs_dir: Path, *, not_after: str = "2160h") -> tuple[Path, Path]:
        if not name:
            raise ValueError("Client name is required")
        stem = client_file_stem(name)
        cert, key = certs_dir / f"{stem}.crt", certs_dir / f"{stem}.key"
        self.issue(name, cert, key, not_after=not_after, profile="leaf")
        return cert, key

    # ── root CA ────────────────────────────────────────────────

    def export_root_ca(self, dest: Path) -> Path:
        """Copy root_ca.crt out of the CA container, falling back to /roots.pem."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        source = f"{self.container}:{self.steppath / 'certs' / 'root_ca.crt'}"
        try:
            subprocess.run(
                ["docker", "cp", source, str(dest)],
                check=True,
                capture_output=True,
                text=True,
                timeout=30,
            )
            logger.info("Root CA copied from container %s", self.container)
            return dest
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
            logger.warning("docker cp failed (%s), fetching %s/roots.pem", e, self.ca_url)

        dest.write_text(self.fetch_roots())
        return dest
