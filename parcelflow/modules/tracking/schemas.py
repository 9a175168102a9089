"""Pydantic v2 schemas for shipment tracking and dispute endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from parcelflow.models.enums import DisputeResolutionStatus, ShipmentStatus
from parcelflow.modules.tracking.constants import (
    EVIDENCE_REF_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    NOTE_MAX_LENGTH,
)

# ---------------------------------------------------------------------------
# Status updates / history
# ---------------------------------------------------------------------------


class StatusUpdateRequest(BaseModel):
    status: ShipmentStatus
    note: str | None = Field(None, max_length=NOTE_MAX_LENGTH)
    location: str | None = Field(None, max_length=LOCATION_MAX_LENGTH)
    evidence_ref: str | None = Field(None, max_length=EVIDENCE_REF_MAX_LENGTH)


class TransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    shipment_id: uuid.UUID
    sequence: int
    from_status: ShipmentStatus
    status: ShipmentStatus
    actor_id: uuid.UUID
    note: str | None = None
    location: str | None = None
    evidence_ref: str | None = None
    created_at: datetime


class StatusOption(BaseModel):
    status: ShipmentStatus
    title: str
    description: str
    dispute_only: bool = False


class StatusOptionsResponse(BaseModel):
    shipment_id: uuid.UUID
    current_status: ShipmentStatus
    title: str
    description: str
    role: str
    is_terminal: bool
    options: list[StatusOption]


class TrackingStatsResponse(BaseModel):
    total_shipments: int
    delivered_shipments: int
    disputed_shipments: int
    active_shipments: int


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------


class DisputeCreate(BaseModel):
    # Trimmed length rules are enforced by the service
    reason: str
    description: str
    evidence_refs: list[str] = []


class DisputeCreatedResponse(BaseModel):
    dispute_id: uuid.UUID


class DisputeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    shipment_id: uuid.UUID
    reporter_id: uuid.UUID
    reason: str
    description: str
    evidence_refs: list[str]
    status: DisputeResolutionStatus
    resolved_by: uuid.UUID | None = None
    resolution_notes: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DisputeListResponse(BaseModel):
    items: list[DisputeResponse]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Active shipments
# ---------------------------------------------------------------------------


class ActiveShipmentResponse(BaseModel):
    id: uuid.UUID
    title: str
    status: ShipmentStatus
    role: str
    sender_id: uuid.UUID
    carrier_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime
    history: list[TransitionResponse]


class ActiveShipmentListResponse(BaseModel):
    items: list[ActiveShipmentResponse]
    total: int
    limit: int
    offset: int
