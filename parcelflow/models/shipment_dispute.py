"""ShipmentDispute model: complaint recorded when a shipment enters DISPUTED."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parcelflow.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from parcelflow.models.enums import DisputeResolutionStatus

if TYPE_CHECKING:
    from parcelflow.models.shipment import Shipment


class ShipmentDispute(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "shipment_disputes"

    shipment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("shipments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    reporter_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evidence_refs: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    status: Mapped[DisputeResolutionStatus] = mapped_column(
        SQLAlchemyEnum(DisputeResolutionStatus, name="disputeresolutionstatus"),
        nullable=False,
        default=DisputeResolutionStatus.OPEN,
        server_default=DisputeResolutionStatus.OPEN.value,
    )

    # Set by the external resolution process
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    resolution_notes: Mapped[str | None] = mapped_column(Text)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    shipment: Mapped[Shipment] = relationship(
        "Shipment", back_populates="disputes", lazy="raise"
    )

    __table_args__ = (
        Index("ix_shipment_disputes_shipment_id", "shipment_id"),
        Index("ix_shipment_disputes_reporter_id", "reporter_id"),
        Index("ix_shipment_disputes_status", "status"),
    )
