"""Push-notification channel backed by an HTTP push gateway."""

from __future__ import annotations

import logging
import uuid

import httpx

from parcelflow.config import settings
from parcelflow.modules.notifications.channels.base import (
    ChannelResult,
    NotificationChannel,
    NotificationEvent,
)
from parcelflow.modules.notifications.constants import (
    CHANNEL_PUSH,
    PUSH_DEFAULT_ICON,
    PUSH_RETIRABLE_ERRORS,
)
from parcelflow.modules.notifications.device_service import DeviceTokenService

logger = logging.getLogger(__name__)


class PushChannel(NotificationChannel):
    """Delivers to every active device token of a recipient.

    Tokens the gateway reports as unregistered or invalid come back with
    ``retire=True`` and are deactivated through ``retire``.
    """

    name = CHANNEL_PUSH

    def __init__(
        self,
        devices: DeviceTokenService,
        gateway_url: str | None = None,
        server_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.devices = devices
        self.gateway_url = gateway_url or settings.push_gateway_url
        self.server_key = settings.push_gateway_server_key if server_key is None else server_key
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=10.0)
            self._owns_client = True
        return self._client

    async def resolve_addresses(self, recipient_id: uuid.UUID) -> list[str]:
        if not self.server_key:
            logger.debug("Push gateway not configured; skipping push for %s", recipient_id)
            return []
        return await self.devices.active_tokens(recipient_id)

    def _build_message(self, address: str, event: NotificationEvent) -> dict:
        return {
            "to": address,
            "notification": {
                "title": event.title,
                "body": event.body,
                "icon": PUSH_DEFAULT_ICON,
            },
            "data": {
                "type": event.type,
                "shipment_id": str(event.shipment_id),
                "status": event.new_status,
                "action": "view_tracking",
                **event.data,
            },
        }

    async def send(
        self, recipient_id: uuid.UUID, address: str, event: NotificationEvent
    ) -> ChannelResult:
        try:
            client = await self._get_client()
            response = await client.post(
                self.gateway_url,
                json=self._build_message(address, event),
                headers={"Authorization": f"key={self.server_key}"},
            )
        except httpx.HTTPError as exc:
            return ChannelResult.failure(
                self.name, recipient_id, f"push gateway unreachable: {exc}", address=address
            )

        if response.status_code >= 400:
            return ChannelResult.failure(
                self.name,
                recipient_id,
                f"push gateway returned {response.status_code}",
                address=address,
            )

        try:
            body = response.json()
        except ValueError:
            return ChannelResult.failure(
                self.name, recipient_id, "push gateway returned a non-JSON body", address=address
            )

        results = body.get("results") or []
        error = results[0].get("error") if results else None
        if error:
            return ChannelResult.failure(
                self.name,
                recipient_id,
                error,
                address=address,
                retire=error in PUSH_RETIRABLE_ERRORS,
            )
        return ChannelResult.success(self.name, recipient_id, address=address)

    async def retire(self, recipient_id: uuid.UUID, address: str) -> None:
        await self.devices.deactivate_tokens(recipient_id, [address])

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
