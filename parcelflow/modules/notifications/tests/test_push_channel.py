"""Tests for PushChannel against a mocked push gateway."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from parcelflow.modules.notifications.channels.base import NotificationEvent
from parcelflow.modules.notifications.channels.push import PushChannel

GATEWAY = "https://push.test/send"
RECIPIENT = uuid.uuid4()

EVENT = NotificationEvent(
    shipment_id=uuid.uuid4(),
    old_status="IN_TRANSIT",
    new_status="ARRIVED",
    title="Shipment arrived",
    body="Your parcel has reached its destination",
    timestamp=datetime(2026, 3, 1, tzinfo=UTC),
)


def make_channel(handler, devices=None, server_key="secret"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    devices = devices or AsyncMock()
    return PushChannel(devices, gateway_url=GATEWAY, server_key=server_key, client=client)


class TestSend:
    @pytest.mark.asyncio
    async def test_successful_delivery(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": 1, "results": [{"message_id": "m1"}]})

        channel = make_channel(handler)
        result = await channel.send(RECIPIENT, "token-1", EVENT)

        assert result.ok
        assert result.address == "token-1"
        assert seen["auth"] == "key=secret"
        assert seen["body"]["to"] == "token-1"
        assert seen["body"]["notification"]["title"] == "Shipment arrived"
        assert seen["body"]["data"]["status"] == "ARRIVED"
        assert seen["body"]["data"]["shipment_id"] == str(EVENT.shipment_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", ["NotRegistered", "InvalidRegistration", "MismatchSenderId"])
    async def test_dead_token_is_flagged_for_retirement(self, error):
        def handler(request):
            return httpx.Response(200, json={"failure": 1, "results": [{"error": error}]})

        result = await make_channel(handler).send(RECIPIENT, "token-1", EVENT)

        assert not result.ok
        assert result.retire
        assert result.error == error

    @pytest.mark.asyncio
    async def test_transient_gateway_error_keeps_token(self):
        def handler(request):
            return httpx.Response(200, json={"failure": 1, "results": [{"error": "Unavailable"}]})

        result = await make_channel(handler).send(RECIPIENT, "token-1", EVENT)

        assert not result.ok
        assert not result.retire

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        result = await make_channel(lambda request: httpx.Response(503)).send(
            RECIPIENT, "token-1", EVENT
        )

        assert not result.ok
        assert "503" in result.error
        assert not result.retire

    @pytest.mark.asyncio
    async def test_unreachable_gateway(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_channel(handler).send(RECIPIENT, "token-1", EVENT)

        assert not result.ok
        assert "unreachable" in result.error

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        result = await make_channel(lambda request: httpx.Response(200, text="ok")).send(
            RECIPIENT, "token-1", EVENT
        )

        assert not result.ok


class TestAddresses:
    @pytest.mark.asyncio
    async def test_addresses_are_active_tokens(self):
        devices = AsyncMock()
        devices.active_tokens.return_value = ["a", "b"]
        channel = make_channel(lambda request: httpx.Response(200), devices=devices)

        assert await channel.resolve_addresses(RECIPIENT) == ["a", "b"]
        devices.active_tokens.assert_awaited_once_with(RECIPIENT)

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_resolves_nothing(self):
        devices = AsyncMock()
        channel = make_channel(lambda request: httpx.Response(200), devices=devices, server_key="")

        assert await channel.resolve_addresses(RECIPIENT) == []
        devices.active_tokens.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retire_deactivates_token(self):
        devices = AsyncMock()
        channel = make_channel(lambda request: httpx.Response(200), devices=devices)

        await channel.retire(RECIPIENT, "token-1")

        devices.deactivate_tokens.assert_awaited_once_with(RECIPIENT, ["token-1"])

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        channel = PushChannel(AsyncMock(), gateway_url=GATEWAY, server_key="k", client=client)

        await channel.close()

        assert not client.is_closed
        await client.aclose()
