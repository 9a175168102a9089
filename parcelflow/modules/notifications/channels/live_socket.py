"""Live-socket channel: publishes events on the recipient's Redis pub/sub channel.

The socket gateway in front of connected clients subscribes to these channels;
a publish with no subscriber is still a successful delivery.
"""

from __future__ import annotations

import json
import logging
import uuid

import redis.asyncio as redis
from redis.exceptions import RedisError

from parcelflow.config import settings
from parcelflow.modules.notifications.channels.base import (
    ChannelResult,
    NotificationChannel,
    NotificationEvent,
)
from parcelflow.modules.notifications.constants import CHANNEL_LIVE_SOCKET

logger = logging.getLogger(__name__)


class LiveSocketChannel(NotificationChannel):
    name = CHANNEL_LIVE_SOCKET

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        prefix: str | None = None,
    ) -> None:
        self._redis = redis_client
        self._owns_client = redis_client is None
        self.prefix = prefix or settings.live_socket_channel_prefix

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(settings.redis_url, decode_responses=True)
        return self._redis

    def channel_for(self, recipient_id: uuid.UUID) -> str:
        return f"{self.prefix}:{recipient_id}"

    async def resolve_addresses(self, recipient_id: uuid.UUID) -> list[str]:
        return [self.channel_for(recipient_id)]

    async def send(
        self, recipient_id: uuid.UUID, address: str, event: NotificationEvent
    ) -> ChannelResult:
        try:
            client = await self._get_redis()
            receivers = await client.publish(address, json.dumps(event.to_payload()))
        except RedisError as exc:
            return ChannelResult.failure(self.name, recipient_id, str(exc), address=address)

        logger.debug("Published %s to %s (%s receivers)", event.type, address, receivers)
        return ChannelResult.success(self.name, recipient_id, address=address)

    async def close(self) -> None:
        if self._owns_client and self._redis is not None:
            await self._redis.aclose()
            self._redis = None
