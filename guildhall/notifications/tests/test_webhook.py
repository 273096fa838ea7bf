"""Tests for Discord webhook delivery."""

import json
import logging

import httpx
import pytest

from guildhall.notifications.webhook import DiscordWebhookClient

WEBHOOK_URL = "https://discord.com/api/webhooks/1/token"


def make_client(handler, username=None) -> DiscordWebhookClient:
    transport = httpx.MockTransport(handler)
    return DiscordWebhookClient(
        client=httpx.AsyncClient(transport=transport),
        timeout=1,
        username=username,
    )


class TestSend:
    @pytest.mark.asyncio
    async def test_posts_json_payload(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(204)

        client = make_client(handler, username="Guildhall")

        sent = await client.send({"content": "hello"}, WEBHOOK_URL)

        assert sent is True
        assert str(requests[0].url) == WEBHOOK_URL
        assert json.loads(requests[0].content) == {
            "content": "hello",
            "username": "Guildhall",
        }

    @pytest.mark.asyncio
    async def test_no_url_is_a_no_op(self):
        def handler(request):
            raise AssertionError("should not be called")

        client = make_client(handler)

        assert await client.send({"content": "hello"}, None) is False

    @pytest.mark.asyncio
    async def test_http_error_status_returns_false(self, caplog):
        client = make_client(lambda request: httpx.Response(404, text="Unknown Webhook"))

        with caplog.at_level(logging.ERROR):
            sent = await client.send({"content": "hello"}, WEBHOOK_URL)

        assert sent is False
        assert any("404" in record.message for record in caplog.records)

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        assert await client.send({"content": "hello"}, WEBHOOK_URL) is False

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self):
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(204))
        )
        client = DiscordWebhookClient(client=http_client, timeout=1)

        await client.aclose()

        assert http_client.is_closed is False
        await http_client.aclose()
