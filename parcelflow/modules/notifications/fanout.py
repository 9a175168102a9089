"""Notification fan-out of one status change to the other party on each channel."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Protocol

from parcelflow.config import settings
from parcelflow.models.enums import ShipmentStatus
from parcelflow.modules.notifications.channels.base import (
    ChannelResult,
    NotificationChannel,
    NotificationEvent,
)
from parcelflow.modules.notifications.constants import CATEGORY_DISPUTES, CATEGORY_PACKAGES
from parcelflow.modules.tracking.registry import status_message

logger = logging.getLogger(__name__)


class RecipientPreferences(Protocol):
    async def allows(self, user_id: uuid.UUID, category: str) -> bool: ...


def recipients_for(
    actor_id: uuid.UUID,
    sender_id: uuid.UUID,
    carrier_id: uuid.UUID | None,
) -> list[uuid.UUID]:
    """Every party on the shipment except the one who acted."""
    recipients: list[uuid.UUID] = []
    for party in (sender_id, carrier_id):
        if party is None or party == actor_id or party in recipients:
            continue
        recipients.append(party)
    return recipients


def category_for(new_status: ShipmentStatus | str) -> str:
    """Preference category a status change is filed under."""
    if ShipmentStatus(new_status) is ShipmentStatus.DISPUTED:
        return CATEGORY_DISPUTES
    return CATEGORY_PACKAGES


def build_event(
    shipment_id: uuid.UUID,
    old_status: ShipmentStatus | str,
    new_status: ShipmentStatus | str,
    occurred_at: datetime | None = None,
    data: dict[str, str] | None = None,
) -> NotificationEvent:
    old_status = ShipmentStatus(old_status)
    new_status = ShipmentStatus(new_status)
    message = status_message(new_status)
    return NotificationEvent(
        shipment_id=shipment_id,
        old_status=old_status.value,
        new_status=new_status.value,
        title=message["title"],
        body=message["description"],
        timestamp=occurred_at or datetime.now(UTC),
        data=data or {},
    )


class NotificationFanout:
    """Dispatches a status-change event to each recipient on each channel.

    Address lookups and retirements run one at a time (they may share a DB
    session); the deliveries themselves run concurrently, each bounded by
    ``timeout_seconds``. Recipients who switched the event's category off are
    skipped. Nothing raised by a channel escapes ``notify``.
    """

    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        timeout_seconds: float | None = None,
        preferences: RecipientPreferences | None = None,
    ) -> None:
        self.channels = list(channels)
        self.preferences = preferences
        self.timeout_seconds = (
            settings.notification_channel_timeout_seconds
            if timeout_seconds is None
            else timeout_seconds
        )

    async def notify(
        self,
        shipment_id: uuid.UUID,
        old_status: ShipmentStatus | str,
        new_status: ShipmentStatus | str,
        actor_id: uuid.UUID,
        sender_id: uuid.UUID,
        carrier_id: uuid.UUID | None,
        occurred_at: datetime | None = None,
        data: dict[str, str] | None = None,
    ) -> list[ChannelResult]:
        event = build_event(shipment_id, old_status, new_status, occurred_at, data)
        recipients = await self._opted_in(
            recipients_for(actor_id, sender_id, carrier_id), category_for(new_status)
        )

        results: list[ChannelResult] = []
        deliveries = []
        for recipient_id in recipients:
            for channel in self.channels:
                try:
                    addresses = await channel.resolve_addresses(recipient_id)
                except Exception as exc:
                    logger.exception(
                        "Could not resolve %s addresses for %s", channel.name, recipient_id
                    )
                    results.append(ChannelResult.failure(channel.name, recipient_id, str(exc)))
                    continue
                for address in addresses:
                    deliveries.append(self._dispatch(channel, recipient_id, address, event))

        results.extend(await asyncio.gather(*deliveries))

        channels_by_name = {channel.name: channel for channel in self.channels}
        for result in results:
            if result.ok:
                continue
            logger.warning(
                "Notification for shipment %s failed on %s for %s: %s",
                shipment_id,
                result.channel,
                result.recipient_id,
                result.error,
            )
            if result.retire and result.address is not None:
                await self._retire(channels_by_name[result.channel], result)

        logger.info(
            "Fan-out for shipment %s (%s -> %s): %d delivered, %d failed",
            shipment_id,
            event.old_status,
            event.new_status,
            sum(1 for r in results if r.ok),
            sum(1 for r in results if not r.ok),
        )
        return results

    async def _opted_in(
        self, recipients: list[uuid.UUID], category: str
    ) -> list[uuid.UUID]:
        if self.preferences is None:
            return recipients
        opted_in = []
        for recipient_id in recipients:
            try:
                allowed = await self.preferences.allows(recipient_id, category)
            except Exception:
                # Preferences default to on
                logger.exception("Could not read preferences of %s", recipient_id)
                allowed = True
            if allowed:
                opted_in.append(recipient_id)
            else:
                logger.info("Recipient %s has %s notifications off", recipient_id, category)
        return opted_in

    async def _dispatch(
        self,
        channel: NotificationChannel,
        recipient_id: uuid.UUID,
        address: str,
        event: NotificationEvent,
    ) -> ChannelResult:
        try:
            return await asyncio.wait_for(
                channel.send(recipient_id, address, event),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            return ChannelResult.failure(
                channel.name,
                recipient_id,
                f"timed out after {self.timeout_seconds}s",
                address=address,
            )
        except Exception as exc:
            logger.exception("Channel %s raised while sending to %s", channel.name, address)
            return ChannelResult.failure(channel.name, recipient_id, str(exc), address=address)

    async def _retire(self, channel: NotificationChannel, result: ChannelResult) -> None:
        try:
            await channel.retire(result.recipient_id, result.address)
        except Exception:
            logger.exception(
                "Could not retire %s address for %s", channel.name, result.recipient_id
            )
