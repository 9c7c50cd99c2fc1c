"""
Traefik dynamic TLS configuration from the certificate directory.

The generated file is meant for Traefik's file provider, with the certificate
directory mounted into the container (default /certs):

    tls:
      certificates:
        - certFile: /certs/myapp.local.crt
          keyFile: /certs/myapp.local.key
      options:
        default: {minVersion: VersionTLS12}
        mtls:    {minVersion: VersionTLS12, clientAuth: {...}}
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import yaml

from sharedpki.certs.store import CertificateStore


def _mounted(path: Path, mount_path: str) -> str:
    return str(PurePosixPath(mount_path) / path.name)


def build_dynamic_config(
    store: CertificateStore,
    mount_path: str = "/certs",
    default_cert: str | None = None,
) -> dict:
    """Build the tls section for every leaf certificate that has a key."""
    certificates = []
    default_entry = None
    for pair in store.leaf_certificates():
        if not pair.has_key:
            continue
        entry = {
            "certFile": _mounted(pair.cert, mount_path),
            "keyFile": _mounted(pair.key, mount_path),
        }
        certificates.append(entry)
        if default_cert and pair.cert.stem == default_cert:
            default_entry = entry

    if default_cert and default_entry is None:
        raise ValueError(f"Default certificate {default_cert!r} not found in {store.root}")

    tls: dict = {
        "certificates": certificates,
        "options": {
            "default": {"minVersion": "VersionTLS12"},
        },
    }
    if store.has_root_ca():
        tls["options"]["mtls"] = {
            "minVersion": "VersionTLS12",
            "clientAuth": {
                "caFiles": [_mounted(store.root_ca_path, mount_path)],
                "clientAuthType": "RequireAndVerifyClientCert",
            },
        }
    if default_entry:
        tls["stores"] = {"default": {"defaultCertificate": dict(default_entry)}}
    return {"tls": tls}


def write_dynamic_config(config: dict, output: Path) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w") as fp:
        yaml.safe_dump(config, fp, sort_keys=False, default_flow_style=False)
    return output
