"""sharedpki - certificate tooling for the shared services stack (Vault PKI + Step CA)."""

__version__ = "0.1.0"
