"""
Certificate rotation - renew leaf certificates that expire soon.

Designed to run from cron:
    0 2 * * * sharedpki rotate >> /var/log/cert-rotation.log 2>&1

For every <name>.crt with a matching <name>.key in the certificate directory:
    expired            → failure + "error" notification (renewed if renew_expired)
    < threshold days   → back up cert + key, reissue with the same CN / SANs
    otherwise          → OK
A failed reissue restores the backups.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

from sharedpki.certs.inspect import CertificateInfo, inspect_file
from sharedpki.certs.store import CertificateStore, CertPair
from sharedpki.errors import CertificateError, ConfigError, PKIError
from sharedpki.notify import NotificationDispatcher

logger = logging.getLogger(__name__)


class RotationOutcome(StrEnum):
    OK = "ok"
    ROTATED = "rotated"
    FAILED = "failed"
    EXPIRED = "expired"
    SKIPPED = "skipped"
    PENDING = "pending"  # dry run: would rotate


class Reissuer(Protocol):
    """Something that can mint a replacement certificate for an existing one."""

    def reissue(self, info: CertificateInfo, pair: CertPair) -> None:
        """Write a fresh certificate and key to pair.cert / pair.key. Raise on failure."""


@dataclass
class RotationResult:
    name: str
    outcome: RotationOutcome
    days: int | None = None
    message: str = ""


@dataclass
class RotationReport:
    results: list[RotationResult] = field(default_factory=list)

    def count(self, *outcomes: RotationOutcome) -> int:
        return sum(1 for r in self.results if r.outcome in outcomes)

    @property
    def rotated(self) -> int:
        return self.count(RotationOutcome.ROTATED)

    @property
    def failed(self) -> int:
        return self.count(RotationOutcome.FAILED, RotationOutcome.EXPIRED)

    @property
    def healthy(self) -> int:
        return self.count(RotationOutcome.OK)

    @property
    def skipped(self) -> int:
        return self.count(RotationOutcome.SKIPPED)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        return f"Rotated: {self.rotated} | Failed: {self.failed} | OK: {self.healthy} | Skipped: {self.skipped}"


class RotationRunner:
    def __init__(
        self,
        store: CertificateStore,
        reissuer: Reissuer,
        *,
        days_before_expiry: int = 30,
        dispatcher: NotificationDispatcher | None = None,
        renew_expired: bool = False,
        dry_run: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.store = store
        self.reissuer = reissuer
        self.days_before_expiry = days_before_expiry
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.renew_expired = renew_expired
        self.dry_run = dry_run
        self.clock = clock

    def run(self) -> RotationReport:
        logger.info("=== Certificate rotation started ===")
        if not self.store.root.is_dir():
            raise ConfigError(f"Certificate directory not found: {self.store.root}")

        report = RotationReport()
        for pair in self.store.leaf_certificates():
            report.results.append(self.check(pair))

        logger.info("=== Rotation finished ===")
        logger.info(report.summary())
        return report

    def check(self, pair: CertPair) -> RotationResult:
        if not pair.has_key:
            logger.warning("No private key found for: %s", pair.name)
            return RotationResult(pair.name, RotationOutcome.SKIPPED, message="no private key")

        try:
            info = inspect_file(pair.cert)
        except CertificateError as e:
            # CN and SANs are unknown, so there is nothing to reissue from.
            logger.error("Cannot parse %s: %s", pair.name, e)
            self.dispatcher.send("error", pair.name, str(e))
            return RotationResult(pair.name, RotationOutcome.FAILED, 0, str(e))

        days = info.days_until_expiry(self.clock())
        if days < 0 and not self.renew_expired:
            logger.error("Certificate already expired: %s", pair.name)
            self.dispatcher.send("error", pair.name, "expired")
            return RotationResult(pair.name, RotationOutcome.EXPIRED, days, "expired")

        if days >= self.days_before_expiry:
            logger.info("OK: %s (%d days remaining)", pair.name, days)
            return RotationResult(pair.name, RotationOutcome.OK, days)

        logger.warning("Certificate expires soon: %s (%d days)", pair.name, days)
        if self.dry_run:
            return RotationResult(pair.name, RotationOutcome.PENDING, days, "dry run")
        return self.rotate(pair, info, days)

    def rotate(self, pair: CertPair, info: CertificateInfo, days: int | None = None) -> RotationResult:
        logger.info("Renewing certificate: %s (CN=%s, SANs=%s)", pair.name, info.subject_cn, ",".join(info.sans))
        now = self.clock().timestamp()
        self.store.backup(pair.cert, now)
        self.store.backup(pair.key, now)

        try:
            self.reissuer.reissue(info, pair)
        except (PKIError, ValueError, OSError) as e:
            logger.error("Failed to renew %s: %s", pair.name, e)
            self.store.restore(pair.cert)
            self.store.restore(pair.key)
            self.dispatcher.send("error", pair.name, str(e))
            return RotationResult(pair.name, RotationOutcome.FAILED, days, str(e))

        logger.info("Certificate renewed: %s", pair.name)
        self.dispatcher.send("success", pair.name)
        return RotationResult(pair.name, RotationOutcome.ROTATED, days)

