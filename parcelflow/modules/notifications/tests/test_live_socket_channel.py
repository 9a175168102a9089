"""Tests for LiveSocketChannel publishing to Redis pub/sub."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from parcelflow.modules.notifications.channels.base import NotificationEvent
from parcelflow.modules.notifications.channels.live_socket import LiveSocketChannel

RECIPIENT = uuid.uuid4()

EVENT = NotificationEvent(
    shipment_id=uuid.uuid4(),
    old_status="ACCEPTED",
    new_status="PICKED_UP",
    title="Shipment picked up",
    body="The carrier has collected your parcel",
    timestamp=datetime(2026, 3, 1, tzinfo=UTC),
)


@pytest.mark.asyncio
async def test_address_is_the_recipient_channel():
    channel = LiveSocketChannel(redis_client=AsyncMock(), prefix="pf:notify")

    assert await channel.resolve_addresses(RECIPIENT) == [f"pf:notify:{RECIPIENT}"]


@pytest.mark.asyncio
async def test_publishes_event_json():
    redis_client = AsyncMock()
    redis_client.publish.return_value = 1
    channel = LiveSocketChannel(redis_client=redis_client, prefix="pf:notify")
    address = channel.channel_for(RECIPIENT)

    result = await channel.send(RECIPIENT, address, EVENT)

    assert result.ok
    published_channel, message = redis_client.publish.await_args.args
    assert published_channel == address
    payload = json.loads(message)
    assert payload["new_status"] == "PICKED_UP"
    assert payload["shipment_id"] == str(EVENT.shipment_id)


@pytest.mark.asyncio
async def test_no_subscribers_is_still_delivered():
    redis_client = AsyncMock()
    redis_client.publish.return_value = 0
    channel = LiveSocketChannel(redis_client=redis_client)

    result = await channel.send(RECIPIENT, channel.channel_for(RECIPIENT), EVENT)

    assert result.ok


@pytest.mark.asyncio
async def test_redis_failure_becomes_error_result():
    redis_client = AsyncMock()
    redis_client.publish.side_effect = RedisConnectionError("redis down")
    channel = LiveSocketChannel(redis_client=redis_client)

    result = await channel.send(RECIPIENT, channel.channel_for(RECIPIENT), EVENT)

    assert not result.ok
    assert "redis down" in result.error
    assert not result.retire


@pytest.mark.asyncio
async def test_close_leaves_injected_client_alone():
    redis_client = AsyncMock()
    channel = LiveSocketChannel(redis_client=redis_client)

    await channel.close()

    redis_client.aclose.assert_not_awaited()
