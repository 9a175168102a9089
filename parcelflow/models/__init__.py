# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from parcelflow.models.enums import (
    DevicePlatform,
    DisputeResolutionStatus,
    EventStatus,
    ShipmentStatus,
)
from parcelflow.models.event_outbox import EventOutbox
from parcelflow.models.notification_preference import NotificationPreference
from parcelflow.models.processed_event import ProcessedEvent
from parcelflow.models.push_device_token import PushDeviceToken
from parcelflow.models.shipment import Shipment
from parcelflow.models.shipment_dispute import ShipmentDispute
from parcelflow.models.shipment_transition import ShipmentTransition

__all__ = [
    "DevicePlatform",
    "DisputeResolutionStatus",
    "EventOutbox",
    "EventStatus",
    "NotificationPreference",
    "ProcessedEvent",
    "PushDeviceToken",
    "Shipment",
    "ShipmentDispute",
    "ShipmentStatus",
    "ShipmentTransition",
]
