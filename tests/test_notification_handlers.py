"""Tests for the outbox handler that fans status changes out to the parties."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from parcelflow.modules.events.handlers import EventHandlerRegistry
from parcelflow.modules.events.tasks import build_registry
from parcelflow.modules.notifications import handlers
from parcelflow.modules.notifications.device_service import DeviceTokenService
from parcelflow.modules.notifications.preference_service import NotificationPreferenceService
from parcelflow.modules.tracking.constants import EVENT_SHIPMENT_STATUS_CHANGED


def _payload(**overrides):
    payload = {
        "shipment_id": str(uuid.uuid4()),
        "old_status": "IN_TRANSIT",
        "new_status": "DISPUTED",
        "actor_id": str(uuid.uuid4()),
        "sender_id": str(uuid.uuid4()),
        "carrier_id": None,
        "transition_id": str(uuid.uuid4()),
        "sequence": 4,
        "occurred_at": "2026-03-01T10:00:00+00:00",
    }
    payload.update(overrides)
    return payload


def test_status_changed_handler_is_registered():
    registry = EventHandlerRegistry()

    handlers.register_notification_handlers(registry)

    assert registry.get_handlers(EVENT_SHIPMENT_STATUS_CHANGED) == [handlers.handle_status_changed]
    assert build_registry().get_handlers(EVENT_SHIPMENT_STATUS_CHANGED) == [
        handlers.handle_status_changed
    ]


@pytest.mark.asyncio
async def test_payload_is_fanned_out_and_retirements_committed(session_factory):
    dispute_id = str(uuid.uuid4())
    payload = _payload(dispute_id=dispute_id)
    mock_engine = AsyncMock()

    with (
        patch.object(handlers, "async_session", session_factory),
        patch.object(handlers, "engine", mock_engine),
        patch.object(handlers, "NotificationFanout") as fanout_cls,
    ):
        fanout_cls.return_value.notify = AsyncMock(return_value=[])
        await handlers._notify_async(payload)

    channels = fanout_cls.call_args.args[0]
    assert [c.name for c in channels] == ["push", "live_socket"]
    assert isinstance(channels[0].devices, DeviceTokenService)
    assert isinstance(
        fanout_cls.call_args.kwargs["preferences"], NotificationPreferenceService
    )

    kwargs = fanout_cls.return_value.notify.await_args.kwargs
    assert kwargs["shipment_id"] == uuid.UUID(payload["shipment_id"])
    assert kwargs["actor_id"] == uuid.UUID(payload["actor_id"])
    assert kwargs["carrier_id"] is None
    assert kwargs["new_status"] == "DISPUTED"
    assert kwargs["occurred_at"].year == 2026
    assert kwargs["data"] == {"dispute_id": dispute_id}
    mock_engine.dispose.assert_awaited_once()


def test_malformed_payload_raises_for_retry():
    with patch.object(handlers, "_notify_async", side_effect=KeyError("shipment_id")):
        with pytest.raises(KeyError):
            handlers.handle_status_changed({})
