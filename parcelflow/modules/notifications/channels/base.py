"""Channel contract for the notification fan-out."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from parcelflow.modules.notifications.constants import (
    EVENT_TYPE_STATUS_UPDATE,
    RESULT_ERROR,
    RESULT_OK,
)


@dataclass(frozen=True)
class NotificationEvent:
    """One status-change event as delivered to a recipient."""

    shipment_id: uuid.UUID
    old_status: str
    new_status: str
    title: str
    body: str
    timestamp: datetime
    type: str = EVENT_TYPE_STATUS_UPDATE
    data: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "type": self.type,
            "shipment_id": str(self.shipment_id),
            "old_status": self.old_status,
            "new_status": self.new_status,
            "title": self.title,
            "body": self.body,
            "timestamp": self.timestamp.isoformat(),
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class ChannelResult:
    """Outcome of delivering one event to one address on one channel."""

    channel: str
    recipient_id: uuid.UUID
    status: str
    address: str | None = None
    error: str | None = None
    retire: bool = False

    @property
    def ok(self) -> bool:
        return self.status == RESULT_OK

    @classmethod
    def success(
        cls, channel: str, recipient_id: uuid.UUID, address: str | None = None
    ) -> ChannelResult:
        return cls(channel=channel, recipient_id=recipient_id, status=RESULT_OK, address=address)

    @classmethod
    def failure(
        cls,
        channel: str,
        recipient_id: uuid.UUID,
        error: str,
        address: str | None = None,
        retire: bool = False,
    ) -> ChannelResult:
        return cls(
            channel=channel,
            recipient_id=recipient_id,
            status=RESULT_ERROR,
            address=address,
            error=error,
            retire=retire,
        )


class NotificationChannel(ABC):
    """An external delivery channel.

    ``send`` reports delivery problems through the returned ChannelResult
    instead of raising.
    """

    name: str

    @abstractmethod
    async def resolve_addresses(self, recipient_id: uuid.UUID) -> list[str]:
        """Return the channel-specific addresses to deliver to for a recipient."""

    @abstractmethod
    async def send(
        self, recipient_id: uuid.UUID, address: str, event: NotificationEvent
    ) -> ChannelResult:
        """Deliver ``event`` to ``address``."""

    async def retire(self, recipient_id: uuid.UUID, address: str) -> None:
        """Stop using an address the channel reported as permanently dead."""

    async def close(self) -> None:
        """Release any client held by the channel."""
