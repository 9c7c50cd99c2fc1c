"""
On-disk certificate directory.

Layout (one stem per certificate):
    <stem>.crt            leaf certificate
    <stem>.key            private key (chmod 600)
    <stem>-ca-chain.crt   issuing chain
    <stem>-bundle.crt     leaf + chain
    root_ca.crt           trust anchor
    <file>.bak.<epoch>    backups taken before rotation
"""

from __future__ import annotations

import logging
import shutil
import stat
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ROOT_CA_NAME = "root_ca.crt"
_DERIVED_SUFFIXES = ("-ca-chain.crt", "-bundle.crt")
_CA_MARKERS = ("root", "intermediate")


@dataclass
class IssuedFiles:
    cert: Path
    key: Path
    chain: Path
    bundle: Path


@dataclass
class CertPair:
    name: str
    cert: Path
    key: Path

    @property
    def has_key(self) -> bool:
        return self.key.is_file()


class CertificateStore:
    """Reads and writes PEM files under a single directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def ensure(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    @property
    def root_ca_path(self) -> Path:
        return self.root / ROOT_CA_NAME

    def has_root_ca(self) -> bool:
        return self.root_ca_path.is_file()

    def write_pem(self, name: str, content: str, *, private: bool = False) -> Path:
        """Write a PEM file with exactly one trailing newline."""
        self.ensure()
        path = self.root / name
        path.write_text(content.strip() + "\n")
        if private:
            path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 600
        logger.debug("Wrote %s", path)
        return path

    def write_issued(self, stem: str, issued) -> IssuedFiles:
        """Persist an IssuedCertificate as cert / key / chain / bundle."""
        cert = self.write_pem(f"{stem}.crt", issued.certificate)
        key = self.write_pem(f"{stem}.key", issued.private_key, private=True)
        chain_pem = issued.chain_pem
        chain = self.write_pem(f"{stem}-ca-chain.crt", chain_pem)
        bundle_pem = issued.certificate.strip()
        if chain_pem:
            bundle_pem = f"{bundle_pem}\n{chain_pem}"
        bundle = self.write_pem(f"{stem}-bundle.crt", bundle_pem)
        return IssuedFiles(cert=cert, key=key, chain=chain, bundle=bundle)

    def leaf_certificates(self) -> list[CertPair]:
        """Leaf certificates in the directory, paired with their key paths.

        CA certificates (names containing "root" / "intermediate") and the
        derived chain/bundle files are excluded.
        """
        if not self.root.is_dir():
            return []
        pairs = []
        for cert in sorted(self.root.glob("*.crt")):
            if not cert.is_file():
                continue
            if any(marker in cert.name for marker in _CA_MARKERS):
                continue
            if cert.name.endswith(_DERIVED_SUFFIXES):
                continue
            pairs.append(CertPair(name=cert.name, cert=cert, key=cert.with_suffix(".key")))
        return pairs

    # ── backups ────────────────────────────────────────────────

    def backup(self, path: Path, now: float | None = None) -> Path | None:
        """Copy path to <path>.bak.<epoch>. Returns None if path does not exist."""
        if not path.is_file():
            return None
        stamp = int(now if now is not None else time.time())
        target = path.with_name(f"{path.name}.bak.{stamp}")
        shutil.copy2(path, target)
        logger.info("Backup created: %s", target.name)
        return target

    def backups(self, path: Path) -> list[Path]:
        """Backups of path, oldest first."""
        found = []
        for candidate in path.parent.glob(f"{path.name}.bak.*"):
            suffix = candidate.name.rsplit(".", 1)[-1]
            if suffix.isdigit():
                found.append((int(suffix), candidate))
        return [p for _, p in sorted(found)]

    def latest_backup(self, path: Path) -> Path | None:
        found = self.backups(path)
        return found[-1] if found else None

    def restore(self, path: Path) -> bool:
        """Copy the newest backup of path back in place. Returns True if restored."""
        latest = self.latest_backup(path)
        if latest is None:
            return False
        shutil.copy2(latest, path)
        logger.warning("Backup restored: %s", latest.name)
        return True
