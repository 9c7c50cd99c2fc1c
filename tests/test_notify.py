"""Tests for sharedpki.notify: webhook notifications."""

from unittest.mock import MagicMock, patch

import httpx

from sharedpki.notify import NotificationDispatcher, Notifier, WebhookNotifier


class TestWebhookNotifier:
    def test_payload(self):
        with patch("sharedpki.notify.httpx.post") as post:
            post.return_value = MagicMock(status_code=200)
            assert WebhookNotifier("https://hooks.test/abc").send("error", "app.local.crt", "expired")
        post.assert_called_once_with(
            "https://hooks.test/abc",
            json={"text": "Certificate app.local.crt: error (expired)", "color": "ff0000"},
            headers={},
            timeout=10.0,
        )

    def test_unknown_status_color(self):
        with patch("sharedpki.notify.httpx.post") as post:
            post.return_value = MagicMock(status_code=204)
            WebhookNotifier("https://hooks.test/abc").send("rotated", "a.crt")
        assert post.call_args.kwargs["json"]["color"] == "36a64f"

    def test_http_error_status(self, caplog):
        with patch("sharedpki.notify.httpx.post", return_value=MagicMock(status_code=500)):
            assert not WebhookNotifier("https://hooks.test/abc").send("success", "a.crt")
        assert "Webhook returned 500" in caplog.text

    def test_text_without_detail(self):
        with patch("sharedpki.notify.httpx.post") as post:
            post.return_value = MagicMock(status_code=200)
            WebhookNotifier("https://hooks.test/abc").send("success", "app.local.crt")
        assert post.call_args.kwargs["json"]["text"] == "Certificate app.local.crt: success"

    def test_network_error(self):
        with patch("sharedpki.notify.httpx.post", side_effect=httpx.ConnectError("refused")):
            assert not WebhookNotifier("https://hooks.test/abc").send("success", "a.crt")


class TestDispatcher:
    def test_counts_deliveries(self):
        ok = MagicMock(spec=Notifier)
        ok.send.return_value = True
        failing = MagicMock(spec=Notifier)
        failing.send.side_effect = RuntimeError("boom")
        dispatcher = NotificationDispatcher([ok])
        dispatcher.add(failing)

        assert dispatcher.send("success", "a.crt") == 1
        ok.send.assert_called_once_with("success", "a.crt", "")

    def test_no_notifiers(self):
        assert NotificationDispatcher().send("error", "a.crt", "x") == 0
