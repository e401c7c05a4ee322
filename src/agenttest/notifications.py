"""
Notifiers

Adapters implementing the Notifier protocol. Delivery failures raise
NotificationError; callers (service, scheduler) log them and carry on, so
a broken webhook never changes a test outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import httpx

from src.agenttest.contracts import Notification, NotificationSeverity, Notifier
from src.agenttest.exceptions import NotificationError

logger = logging.getLogger(__name__)

_SEVERITY_EMOJI = {
    NotificationSeverity.INFO: ":information_source:",
    NotificationSeverity.SUCCESS: ":white_check_mark:",
    NotificationSeverity.WARNING: ":warning:",
    NotificationSeverity.ERROR: ":rotating_light:",
}

_SEVERITY_LOG_LEVEL = {
    NotificationSeverity.INFO: logging.INFO,
    NotificationSeverity.SUCCESS: logging.INFO,
    NotificationSeverity.WARNING: logging.WARNING,
    NotificationSeverity.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Writes notifications to the log."""

    async def notify(self, notification: Notification) -> None:
        logger.log(
            _SEVERITY_LOG_LEVEL[notification.severity],
            f"{notification.title}: {notification.message}",
        )


class WebhookNotifier:
    """Posts notifications to a Slack-compatible incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._client = client

    def build_payload(self, notification: Notification) -> dict:
        emoji = _SEVERITY_EMOJI[notification.severity]
        fields = [
            {"type": "mrkdwn", "text": f"*{key}:*\n{value}"}
            for key, value in notification.metadata.items()
            if value is not None
        ]
        blocks: list[dict] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"{emoji} {notification.title}"},
            },
            {"type": "section", "text": {"type": "mrkdwn", "text": notification.message}},
        ]
        if fields:
            blocks.append({"type": "section", "fields": fields[:10]})
        return {"text": f"{notification.title}: {notification.message}", "blocks": blocks}

    async def notify(self, notification: Notification) -> None:
        payload = self.build_payload(notification)
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.webhook_url, json=payload, timeout=self.timeout_seconds
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.webhook_url, json=payload, timeout=self.timeout_seconds
                    )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError("webhook", str(e) or type(e).__name__) from e


class CallbackNotifier:
    """Hands notifications to an async callback (UI event bus, tests)."""

    def __init__(self, callback: Callable[[Notification], Awaitable[None]]):
        self._callback = callback

    async def notify(self, notification: Notification) -> None:
        await self._callback(notification)


class CompositeNotifier:
    """Fans a notification out to several notifiers. One failing does not stop the others."""

    def __init__(self, notifiers: list[Notifier]):
        self.notifiers = list(notifiers)

    async def notify(self, notification: Notification) -> None:
        for notifier in self.notifiers:
            try:
                await notifier.notify(notification)
            except Exception as e:
                logger.warning(
                    f"{type(notifier).__name__} failed to deliver '{notification.title}': {e}"
                )
