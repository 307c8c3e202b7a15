"""Notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Iterable
import httpx
from offer_gateway.config import settings
from offer_gateway.domain.models import Notification
from offer_gateway.domain.ports import NotificationSink
from offer_gateway.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)

logger = logging.getLogger(__name__)


class NotificationClient:
    """Client for handing templated messages to the notification service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send(self, template_key: str, recipient: str, context: Dict[str, Any]) -> None:
        """
        Deliver one notification with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^attempt)
        - Retries on 5xx errors and network failures
        - Gives up silently after max_retries; delivery failures never
          reach the business operation that queued the message
        """
        payload = {"template": template_key, "recipient": recipient, "context": context}
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Notification delivery failed: {e}",
                            extra={"template": template_key, "recipient": recipient, "attempts": attempt},
                        )
                        return

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)


async def dispatch_notifications(sink: NotificationSink, notifications: Iterable[Notification]) -> None:
    """Send queued notifications one by one; a failing message is logged and skipped"""
    for notification in notifications:
        try:
            await sink.send(notification.template_key, notification.recipient, notification.context)
        except Exception as e:
            notification_failure_counter.inc()
            logger.warning(
                f"Notification dropped: {e}",
                extra={"template": notification.template_key, "recipient": notification.recipient},
            )
