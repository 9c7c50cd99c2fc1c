"""Commands that add a root CA to the operating system trust store."""

from __future__ import annotations

import sys
from pathlib import Path


def trust_instructions(path: Path | str, platform: str | None = None) -> list[str]:
    platform = platform or sys.platform
    path = str(path)
    if platform.startswith(("win", "msys", "cygwin")):
        return [
            "# Windows (PowerShell, as Administrator):",
            f"Import-Certificate -FilePath '{path}' -CertStoreLocation 'Cert:\\LocalMachine\\Root'",
        ]
    if platform == "darwin":
        return [
            "# macOS:",
            f"sudo security add-trusted-cert -d -r trustRoot -k /Library/Keychains/System.keychain {path}",
        ]
    return [
        "# Linux (Debian/Ubuntu):",
        f"sudo cp {path} /usr/local/share/ca-certificates/",
        "sudo update-ca-certificates",
    ]
