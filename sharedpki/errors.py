"""Exceptions raised by sharedpki. The CLI turns these into exit code 1."""

from __future__ import annotations


class PKIError(Exception):
    pass


class ConfigError(PKIError):
    pass


class VaultError(PKIError):
    def __init__(self, message: str, *, status_code: int | None = None, errors: list[str] | None = None):
        self.status_code = status_code
        self.errors = errors or []
        detail = f"{message} (HTTP {status_code})" if status_code else message
        if self.errors:
            detail = f"{detail}: {'; '.join(self.errors)}"
        super().__init__(detail)


class StepCAError(PKIError):
    def __init__(self, message: str, *, stderr: str = ""):
        self.stderr = stderr
        super().__init__(f"{message}: {stderr.strip()}" if stderr.strip() else message)


class CertificateError(PKIError):
    pass
