"""
Rotation notifications - pluggable backends.

Usage:
    from sharedpki.notify import NotificationDispatcher, WebhookNotifier

    dispatcher = NotificationDispatcher()
    dispatcher.add(WebhookNotifier(url="https://hooks.slack.com/services/..."))
    dispatcher.send("success", "myapp.local")

Delivery is best effort: failures are logged and counted, never raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

logger = logging.getLogger(__name__)

# Slack attachment colors
STATUS_COLORS = {
    "success": "36a64f",
    "error": "ff0000",
    "soon": "ffaa00",
}


class Notifier(ABC):
    """Base class for notification backends."""

    @abstractmethod
    def send(self, status: str, cert_name: str, detail: str = "") -> bool:
        """Send a notification.

        Args:
            status: success, error or soon.
            cert_name: Certificate file the event is about.
            detail: Optional extra text (days left, error message).

        Returns:
            True if delivered.
        """


class WebhookNotifier(Notifier):
    """POST {"text", "color"} JSON to a Slack/Discord style webhook."""

    def __init__(self, url: str, headers: dict | None = None, timeout: float = 10.0):
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout

    def send(self, status: str, cert_name: str, detail: str = "") -> bool:
        text = f"Certificate {cert_name}: {status}"
        if detail:
            text = f"{text} ({detail})"
        payload = {"text": text, "color": STATUS_COLORS.get(status, STATUS_COLORS["success"])}
        try:
            resp = httpx.post(self.url, json=payload, headers=self.headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error("Webhook notification failed: %s", e)
            return False
        if not 200 <= resp.status_code < 300:
            logger.error("Webhook returned %s", resp.status_code)
            return False
        return True


class NotificationDispatcher:
    """Fans a notification out to every registered notifier."""

    def __init__(self, notifiers: list[Notifier] | None = None) -> None:
        self.notifiers: list[Notifier] = list(notifiers or [])

    def add(self, notifier: Notifier) -> None:
        self.notifiers.append(notifier)

    def send(self, status: str, cert_name: str, detail: str = "") -> int:
        """Returns the number of successful deliveries."""
        delivered = 0
        for notifier in self.notifiers:
            try:
                if notifier.send(status, cert_name, detail):
                    delivered += 1
            except Exception as e:
                logger.error("Notifier %s failed: %s", type(notifier).__name__, e)
        return delivered
