"""Shipment model: the parcel whose delivery status is tracked.

Rows are created by the marketplace in REQUESTED status; from then on only the
transition engine writes ``status`` and ``updated_at``.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy import Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parcelflow.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from parcelflow.models.enums import ShipmentStatus

if TYPE_CHECKING:
    from parcelflow.models.shipment_dispute import ShipmentDispute
    from parcelflow.models.shipment_transition import ShipmentTransition


class Shipment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "shipments"

    title: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    sender_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    carrier_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[ShipmentStatus] = mapped_column(
        SQLAlchemyEnum(ShipmentStatus, name="shipmentstatus"),
        nullable=False,
        default=ShipmentStatus.REQUESTED,
        server_default=ShipmentStatus.REQUESTED.value,
    )

    # Relationships
    transitions: Mapped[list[ShipmentTransition]] = relationship(
        "ShipmentTransition", back_populates="shipment", lazy="raise"
    )
    disputes: Mapped[list[ShipmentDispute]] = relationship(
        "ShipmentDispute", back_populates="shipment", lazy="raise"
    )

    __table_args__ = (
        Index("ix_shipments_sender_id", "sender_id"),
        Index("ix_shipments_carrier_id", "carrier_id"),
        Index("ix_shipments_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Shipment id={self.id} status={self.status}>"
