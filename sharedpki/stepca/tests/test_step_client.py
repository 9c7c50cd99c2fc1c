"""Tests for sharedpki.stepca.client: Step CA HTTP checks and step CLI calls."""

import subprocess
from unittest.mock import MagicMock, patch

import httpx
import pytest

from sharedpki.config import StepConfig
from sharedpki.errors import StepCAError
from sharedpki.stepca.client import StepCAClient, client_file_stem


def _response(status=200, *, json=None, text=""):
    request = httpx.Request("GET", "https://ca.test")
    if json is not None:
        return httpx.Response(status, json=json, request=request)
    return httpx.Response(status, text=text, request=request)


@pytest.fixture
def client():
    return StepCAClient("https://ca.test:9000/", steppath="/home/step", container="ca")


class TestHttp:
    def test_from_config(self):
        c = StepCAClient.from_config(StepConfig(ca_url="https://x:9000", insecure=False))
        assert c.ca_url == "https://x:9000"
        assert c.insecure is False

    def test_health_ok(self, client):
        with patch("sharedpki.stepca.client.httpx.get", return_value=_response(json={"status": "ok"})) as get:
            assert client.health()
        get.assert_called_once_with("https://ca.test:9000/health", timeout=10.0, verify=False)

    def test_health_bad_status(self, client):
        with patch("sharedpki.stepca.client.httpx.get", return_value=_response(503, text="down")):
            assert not client.health()

    def test_health_unreachable(self, client):
        with patch("sharedpki.stepca.client.httpx.get", side_effect=httpx.ConnectError("refused")):
            assert not client.health()

    def test_fetch_roots(self, client, test_ca):
        with patch("sharedpki.stepca.client.httpx.get", return_value=_response(text=test_ca.pem)):
            assert client.fetch_roots() == test_ca.pem

    def test_fetch_roots_error(self, client):
        with patch("sharedpki.stepca.client.httpx.get", return_value=_response(500, text="boom")):
            with pytest.raises(StepCAError, match="/roots.pem"):
                client.fetch_roots()


class TestIssue:
    def test_server_command(self, client, tmp_path):
        with patch("sharedpki.stepca.client.subprocess.run") as run:
            cert, key = client.issue_server(
                "myapp.local", tmp_path / "certs", extra_sans=["127.0.0.1", "myapp.local"]
            )
        assert cert == tmp_path / "certs" / "myapp.local.crt"
        assert key == tmp_path / "certs" / "myapp.local.key"
        assert (tmp_path / "certs").is_dir()
        argv = run.call_args.args[0]
        assert argv == [
            "step", "ca", "certificate",
            "--ca-url", "https://ca.test:9000",
            "--insecure",
            "--not-after", "2160h",
            "--san", "myapp.local",
            "--san", "127.0.0.1",
            "--force",
            "myapp.local", str(cert), str(key),
        ]  # fmt: skip
        assert run.call_args.kwargs["check"] is True

    def test_client_command(self, client, tmp_path):
        with patch("sharedpki.stepca.client.subprocess.run") as run:
            cert, _ = client.issue_client("Jane Doe@example.com", tmp_path, not_after="24h")
        assert cert.name == "Jane_Doe_example.com.crt"
        argv = run.call_args.args[0]
        assert argv[argv.index("--profile") + 1] == "leaf"
        assert argv[argv.index("--not-after") + 1] == "24h"
        assert "--san" not in argv

    def test_secure_omits_insecure_flag(self, tmp_path):
        client = StepCAClient("https://ca.test", insecure=False)
        with patch("sharedpki.stepca.client.subprocess.run") as run:
            client.issue("a.local", tmp_path / "a.crt", tmp_path / "a.key")
        assert "--insecure" not in run.call_args.args[0]

    def test_empty_subject(self, client, tmp_path):
        with pytest.raises(ValueError):
            client.issue("", tmp_path / "a.crt", tmp_path / "a.key")
        with pytest.raises(ValueError, match="Domain is required"):
            client.issue_server("", tmp_path)

    def test_step_failure_carries_stderr(self, client, tmp_path):
        err = subprocess.CalledProcessError(1, ["step"], stderr="token expired\n")
        with patch("sharedpki.stepca.client.subprocess.run", side_effect=err):
            with pytest.raises(StepCAError) as exc:
                client.issue("a.local", tmp_path / "a.crt", tmp_path / "a.key")
        assert exc.value.stderr == "token expired\n"
        assert "token expired" in str(exc.value)

    def test_step_missing(self, client, tmp_path):
        with patch("sharedpki.stepca.client.subprocess.run", side_effect=FileNotFoundError("step")):
            with pytest.raises(StepCAError, match="step CLI not found"):
                client.issue("a.local", tmp_path / "a.crt", tmp_path / "a.key")

    def test_step_timeout(self, client, tmp_path):
        with patch(
            "sharedpki.stepca.client.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["step"], 60),
        ):
            with pytest.raises(StepCAError, match="timed out"):
                client.issue("a.local", tmp_path / "a.crt", tmp_path / "a.key")


class TestExportRootCA:
    def test_docker_cp(self, client, tmp_path):
        dest = tmp_path / "out" / "root_ca.crt"
        with patch("sharedpki.stepca.client.subprocess.run", return_value=MagicMock(returncode=0)) as run:
            assert client.export_root_ca(dest) == dest
        assert run.call_args.args[0] == ["docker", "cp", "ca:/home/step/certs/root_ca.crt", str(dest)]

    def test_falls_back_to_roots_endpoint(self, client, tmp_path, test_ca):
        dest = tmp_path / "root_ca.crt"
        err = subprocess.CalledProcessError(1, ["docker"], stderr="No such container")
        with (
            patch("sharedpki.stepca.client.subprocess.run", side_effect=err),
            patch("sharedpki.stepca.client.httpx.get", return_value=_response(text=test_ca.pem)),
        ):
            client.export_root_ca(dest)
        assert dest.read_text() == test_ca.pem


def test_client_file_stem():
    assert client_file_stem("alice@example.com") == "alice_example.com"
