"""Outbox handlers that turn shipment events into notifications."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime

from parcelflow.database.engine import async_session, engine
from parcelflow.modules.events.handlers import EventHandlerRegistry
from parcelflow.modules.notifications.channels import LiveSocketChannel, PushChannel
from parcelflow.modules.notifications.device_service import DeviceTokenService
from parcelflow.modules.notifications.fanout import NotificationFanout
from parcelflow.modules.notifications.preference_service import NotificationPreferenceService
from parcelflow.modules.tracking.constants import EVENT_SHIPMENT_STATUS_CHANGED

logger = logging.getLogger(__name__)


def _optional_uuid(value: str | None) -> uuid.UUID | None:
    return uuid.UUID(value) if value else None


async def _notify_async(payload: dict) -> None:
    async with async_session() as session:
        channels = [PushChannel(DeviceTokenService(session)), LiveSocketChannel()]
        try:
            fanout = NotificationFanout(
                channels, preferences=NotificationPreferenceService(session)
            )
            data = {}
            if payload.get("dispute_id"):
                data["dispute_id"] = payload["dispute_id"]
            await fanout.notify(
                shipment_id=uuid.UUID(payload["shipment_id"]),
                old_status=payload["old_status"],
                new_status=payload["new_status"],
                actor_id=uuid.UUID(payload["actor_id"]),
                sender_id=uuid.UUID(payload["sender_id"]),
                carrier_id=_optional_uuid(payload.get("carrier_id")),
                occurred_at=datetime.fromisoformat(payload["occurred_at"]),
                data=data,
            )
            # Persist token retirements
            await session.commit()
        finally:
            for channel in channels:
                await channel.close()
            await engine.dispose()


def handle_status_changed(payload: dict) -> None:
    """Fan a ``shipment.status_changed`` event out to the other parties.

    Channel failures are absorbed by the fan-out; only a malformed payload or
    an unreachable database raises, which leaves the event for retry.
    """
    logger.info(
        "Notifying parties of shipment %s: %s -> %s",
        payload.get("shipment_id"),
        payload.get("old_status"),
        payload.get("new_status"),
    )
    asyncio.run(_notify_async(payload))


def register_notification_handlers(registry: EventHandlerRegistry) -> None:
    registry.register(EVENT_SHIPMENT_STATUS_CHANGED, handle_status_changed)
