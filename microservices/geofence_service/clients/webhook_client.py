"""
Webhook Notification Client

Delivers geofence alerts to a Discord-style incoming webhook.
One attempt per message, no retries.
"""

import logging
from typing import List, Optional

import httpx

from core.config.geofence_config import (
    DEFAULT_PLACEHOLDER_MARKERS,
    GeofenceConfig,
    webhook_url_configured,
)

from ..models import DeliveryResult
from ..protocols import DeliveryFailureError

logger = logging.getLogger(__name__)

# Discord rejects message content longer than this
MAX_CONTENT_LENGTH = 2000

CONFIGURATION_WARNING = (
    "CONFIGURATION REQUIRED: webhook URL is still at its default value. "
    "Set DISCORD_WEBHOOK_URL to the channel's webhook URL."
)


class WebhookNotificationClient:
    """
    Webhook client

    Usage:
        async with WebhookNotificationClient(url) as client:
            await client.send("Here is Tokyo.")
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        placeholder_markers: Optional[List[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize webhook client

        Args:
            webhook_url: Incoming webhook URL
            timeout: Request timeout (seconds)
            placeholder_markers: Substrings marking an unconfigured URL
            http_client: Pre-built HTTP client (tests inject a mock transport)
        """
        self.webhook_url = (webhook_url or "").strip()
        self.placeholder_markers = (
            list(DEFAULT_PLACEHOLDER_MARKERS)
            if placeholder_markers is None
            else placeholder_markers
        )
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_config(cls, config: GeofenceConfig) -> "WebhookNotificationClient":
        return cls(
            webhook_url=config.webhook_url,
            timeout=config.webhook_timeout,
            placeholder_markers=config.placeholder_markers,
        )

    @property
    def is_configured(self) -> bool:
        return webhook_url_configured(self.webhook_url, self.placeholder_markers)

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def send(self, message: str) -> DeliveryResult:
        """
        Post a message to the webhook.

        Args:
            message: Text content

        Returns:
            DeliveryResult (skipped when the URL is unconfigured)

        Raises:
            DeliveryFailureError: request failed or webhook answered non-2xx
        """
        if not self.is_configured:
            logger.warning(CONFIGURATION_WARNING)
            return DeliveryResult(skipped=True, error=CONFIGURATION_WARNING)

        payload = {"content": message[:MAX_CONTENT_LENGTH]}

        logger.info("Sending to webhook...")
        try:
            response = await self.client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Error sending to webhook: {e}")
            raise DeliveryFailureError(f"Webhook request failed: {e}") from e

        logger.info(f"Webhook response code: {response.status_code}")
        if not response.is_success:
            raise DeliveryFailureError(
                f"Webhook returned HTTP {response.status_code}: {response.text[:200]}"
            )

        return DeliveryResult(delivered=True, status_code=response.status_code)


__all__ = ["WebhookNotificationClient"]
