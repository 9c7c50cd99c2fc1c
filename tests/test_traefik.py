"""Tests for sharedpki.traefik: dynamic TLS configuration."""

import pytest
import yaml

from sharedpki.certs.store import CertificateStore
from sharedpki.traefik import build_dynamic_config, write_dynamic_config


@pytest.fixture
def store(certs_dir):
    return CertificateStore(certs_dir)


class TestBuildDynamicConfig:
    def test_only_leaf_pairs(self, test_ca, certs_dir, store):
        test_ca.write_pair(certs_dir, "app.local")
        test_ca.write_pair(certs_dir, "api.local")
        (certs_dir / "nokey.local.crt").write_text(test_ca.issue("nokey.local")[0])
        (certs_dir / "app.local-bundle.crt").write_text("bundle")

        tls = build_dynamic_config(store, "/etc/traefik/certs/")["tls"]
        assert tls["certificates"] == [
            {"certFile": "/etc/traefik/certs/api.local.crt", "keyFile": "/etc/traefik/certs/api.local.key"},
            {"certFile": "/etc/traefik/certs/app.local.crt", "keyFile": "/etc/traefik/certs/app.local.key"},
        ]
        assert tls["options"] == {"default": {"minVersion": "VersionTLS12"}}
        assert "stores" not in tls

    def test_mtls_with_root_ca(self, test_ca, certs_dir, store):
        (certs_dir / "root_ca.crt").write_text(test_ca.pem)
        tls = build_dynamic_config(store)["tls"]
        assert tls["options"]["mtls"]["clientAuth"] == {
            "caFiles": ["/certs/root_ca.crt"],
            "clientAuthType": "RequireAndVerifyClientCert",
        }

    def test_default_certificate(self, test_ca, certs_dir, store):
        test_ca.write_pair(certs_dir, "app.local")
        tls = build_dynamic_config(store, default_cert="app.local")["tls"]
        assert tls["stores"]["default"]["defaultCertificate"]["certFile"] == "/certs/app.local.crt"

    def test_unknown_default_certificate(self, store):
        with pytest.raises(ValueError, match="not found"):
            build_dynamic_config(store, default_cert="missing")

    def test_write(self, test_ca, certs_dir, store, tmp_path):
        test_ca.write_pair(certs_dir, "app.local")
        out = write_dynamic_config(build_dynamic_config(store), tmp_path / "traefik" / "tls.yml")
        text = out.read_text()
        assert text.startswith("tls:\n")
        assert yaml.safe_load(text)["tls"]["certificates"][0]["keyFile"] == "/certs/app.local.key"
