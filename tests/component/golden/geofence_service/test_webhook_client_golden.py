"""
Component Golden Tests: Webhook Notification Client

Uses httpx.MockTransport in place of the webhook endpoint.
"""
import json

import httpx
import pytest

from core.config.geofence_config import DEFAULT_WEBHOOK_URL, GeofenceConfig
from microservices.geofence_service.clients.webhook_client import (
    MAX_CONTENT_LENGTH,
    WebhookNotificationClient,
)
from microservices.geofence_service.protocols import DeliveryFailureError

pytestmark = [pytest.mark.component, pytest.mark.golden, pytest.mark.asyncio]

WEBHOOK_URL = "https://discord.com/api/webhooks/123/abc"


class RecordingTransport:
    """Collects requests and answers with a fixed status"""

    def __init__(self, status_code: int = 204, error: Exception = None):
        self.requests = []
        self.status_code = status_code
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error:
            raise self.error
        return httpx.Response(self.status_code, text="" if self.status_code < 300 else "bad")


def make_client(transport: RecordingTransport, url: str = WEBHOOK_URL) -> WebhookNotificationClient:
    return WebhookNotificationClient(
        webhook_url=url,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
    )


class TestWebhookDelivery:

    async def test_posts_content_json(self):
        transport = RecordingTransport()

        async with make_client(transport) as client:
            result = await client.send("Here is Tokyo.")

        assert result.delivered is True
        assert result.status_code == 204
        assert len(transport.requests) == 1

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == WEBHOOK_URL
        assert json.loads(request.content) == {"content": "Here is Tokyo."}

    async def test_long_message_truncated(self):
        transport = RecordingTransport()

        async with make_client(transport) as client:
            await client.send("x" * (MAX_CONTENT_LENGTH + 50))

        content = json.loads(transport.requests[0].content)["content"]
        assert len(content) == MAX_CONTENT_LENGTH

    async def test_non_2xx_raises(self):
        transport = RecordingTransport(status_code=500)

        async with make_client(transport) as client:
            with pytest.raises(DeliveryFailureError, match="HTTP 500"):
                await client.send("Here is Tokyo.")

        assert len(transport.requests) == 1

    async def test_transport_error_raises_once(self):
        transport = RecordingTransport(error=httpx.ConnectError("refused"))

        async with make_client(transport) as client:
            with pytest.raises(DeliveryFailureError):
                await client.send("Here is Tokyo.")

        assert len(transport.requests) == 1


class TestPlaceholderGuard:

    @pytest.mark.parametrize("url,markers", [
        (DEFAULT_WEBHOOK_URL, ["xxxxxxxx", "yyyyyyyy"]),
        ("", ["xxxxxxxx"]),
        ("  https://hooks.example.com/1  ", []),
        ("https://hooks.example.com/CHANGE_ME", ["CHANGE_ME"]),
        ("https://hooks.example.com/CHANGE_ME", ["", "OTHER"]),
    ])
    async def test_client_agrees_with_config(self, url, markers):
        config = GeofenceConfig(webhook_url=url, placeholder_markers=markers)

        client = WebhookNotificationClient.from_config(config)
        try:
            assert client.is_configured is config.webhook_configured
        finally:
            await client.close()

    @pytest.mark.parametrize("url", [DEFAULT_WEBHOOK_URL, "", "   "])
    async def test_unconfigured_url_skips_delivery(self, url):
        transport = RecordingTransport()

        async with make_client(transport, url=url) as client:
            assert client.is_configured is False
            result = await client.send("Here is Tokyo.")

        assert result.skipped is True
        assert result.delivered is False
        assert "CONFIGURATION REQUIRED" in result.error
        assert transport.requests == []

    async def test_from_config(self):
        config = GeofenceConfig(
            webhook_url="https://hooks.example.com/CHANGE_ME",
            placeholder_markers=["CHANGE_ME"],
            webhook_timeout=3.0,
        )

        client = WebhookNotificationClient.from_config(config)
        try:
            assert client.is_configured is False
            assert client.client.timeout.connect == 3.0
        finally:
            await client.close()
