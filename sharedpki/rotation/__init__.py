"""Renew certificates that are close to expiry."""

from __future__ import annotations

from sharedpki.rotation.runner import (
    Reissuer,
    RotationOutcome,
    RotationReport,
    RotationResult,
    RotationRunner,
)

__all__ = ["Reissuer", "RotationOutcome", "RotationReport", "RotationResult", "RotationRunner"]
