"""ShipmentTransition model: append-only status history of a shipment."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parcelflow.database.base import Base, UUIDPrimaryKeyMixin, utcnow
from parcelflow.models.enums import ShipmentStatus

if TYPE_CHECKING:
    from parcelflow.models.shipment import Shipment


class ShipmentTransition(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "shipment_transitions"

    shipment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("shipments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    # Per-shipment position in the history, 1-based
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[ShipmentStatus] = mapped_column(
        SQLAlchemyEnum(ShipmentStatus, name="shipmentstatus"), nullable=False
    )
    status: Mapped[ShipmentStatus] = mapped_column(
        SQLAlchemyEnum(ShipmentStatus, name="shipmentstatus"), nullable=False
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    evidence_ref: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Relationships
    shipment: Mapped[Shipment] = relationship(
        "Shipment", back_populates="transitions", lazy="raise"
    )

    __table_args__ = (
        UniqueConstraint("shipment_id", "sequence", name="uq_shipment_transitions_sequence"),
        Index("ix_shipment_transitions_shipment_id", "shipment_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ShipmentTransition shipment={self.shipment_id} seq={self.sequence} "
            f"{self.from_status}->{self.status}>"
        )
