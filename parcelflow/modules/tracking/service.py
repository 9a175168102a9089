"""Tracking service: request-facing operations over the lifecycle core."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.exceptions import PermissionDeniedException
from parcelflow.models.enums import ShipmentStatus
from parcelflow.models.shipment import Shipment
from parcelflow.models.shipment_transition import ShipmentTransition
from parcelflow.modules.events.outbox_service import OutboxService
from parcelflow.modules.tracking.constants import ACTIVE_STATUS_NAMES, CLOSED_STATUS_NAMES
from parcelflow.modules.tracking.engine import TransitionEngine, TransitionOptions
from parcelflow.modules.tracking.registry import (
    DISPUTE_ONLY_STATUSES,
    actor_role,
    allowed_next_states,
    is_permitted,
    is_terminal,
    status_message,
)
from parcelflow.modules.tracking.store import LifecycleStore

logger = logging.getLogger(__name__)


class TrackingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = LifecycleStore(db)
        self.engine = TransitionEngine(self.store, OutboxService(db))

    async def update_status(
        self,
        shipment_id: uuid.UUID,
        status: ShipmentStatus,
        actor_id: uuid.UUID,
        note: str | None = None,
        location: str | None = None,
        evidence_ref: str | None = None,
    ) -> ShipmentTransition:
        return await self.engine.apply(
            shipment_id,
            status,
            actor_id,
            TransitionOptions(note=note, location=location, evidence_ref=evidence_ref),
        )

    async def get_history(
        self, shipment_id: uuid.UUID, actor_id: uuid.UUID
    ) -> list[ShipmentTransition]:
        """Full transition history, oldest first. Only the two parties may read it."""
        snapshot = await self.store.load_current(shipment_id)
        if actor_role(snapshot, actor_id) is None:
            raise PermissionDeniedException("Only the parties to a shipment may view its history")
        return [record async for record in self.store.history(shipment_id)]

    async def status_options(self, shipment_id: uuid.UUID, actor_id: uuid.UUID) -> dict:
        """Current status plus the next states this actor could move the shipment to."""
        snapshot = await self.store.load_current(shipment_id)
        role = actor_role(snapshot, actor_id)
        if role is None:
            raise PermissionDeniedException("Only the parties to a shipment may view its status")

        options = []
        for status in sorted(allowed_next_states(snapshot.status), key=_status_order):
            if not is_permitted(snapshot, actor_id, status):
                continue
            message = status_message(status)
            options.append({
                "status": status,
                "title": message["title"],
                "description": message["description"],
                "dispute_only": status in DISPUTE_ONLY_STATUSES,
            })

        current = status_message(snapshot.status)
        return {
            "shipment_id": shipment_id,
            "current_status": snapshot.status,
            "title": current["title"],
            "description": current["description"],
            "role": role,
            "is_terminal": is_terminal(snapshot.status),
            "options": options,
        }

    async def stats(self, actor_id: uuid.UUID) -> dict:
        """Shipment counts for the shipments the actor is a party to."""
        active = [ShipmentStatus(name) for name in ACTIVE_STATUS_NAMES]
        result = await self.db.execute(
            select(
                func.count(Shipment.id),
                func.sum(case((Shipment.status == ShipmentStatus.DELIVERED, 1), else_=0)),
                func.sum(case((Shipment.status == ShipmentStatus.DISPUTED, 1), else_=0)),
                func.sum(case((Shipment.status.in_(active), 1), else_=0)),
            ).where(or_(Shipment.sender_id == actor_id, Shipment.carrier_id == actor_id))
        )
        total, delivered, disputed, in_progress = result.one()
        return {
            "total_shipments": total or 0,
            "delivered_shipments": delivered or 0,
            "disputed_shipments": disputed or 0,
            "active_shipments": in_progress or 0,
        }

    async def active_shipments(
        self, actor_id: uuid.UUID, limit: int = 10, offset: int = 0
    ) -> tuple[list[dict], int]:
        """Shipments still under way for this actor, each with its history embedded.

        Most recently updated first. Returns (items, total).
        """
        closed = [ShipmentStatus(name) for name in CLOSED_STATUS_NAMES]
        filters = (
            or_(Shipment.sender_id == actor_id, Shipment.carrier_id == actor_id),
            Shipment.status.not_in(closed),
        )
        total = await self.db.scalar(select(func.count(Shipment.id)).where(*filters))
        result = await self.db.execute(
            select(Shipment)
            .where(*filters)
            .order_by(Shipment.updated_at.desc(), Shipment.id)
            .limit(limit)
            .offset(offset)
        )
        shipments = list(result.scalars().all())

        histories: dict[uuid.UUID, list[ShipmentTransition]] = {s.id: [] for s in shipments}
        if histories:
            records = await self.db.scalars(
                select(ShipmentTransition)
                .where(ShipmentTransition.shipment_id.in_(list(histories)))
                .order_by(ShipmentTransition.shipment_id, ShipmentTransition.sequence.asc())
            )
            for record in records:
                histories[record.shipment_id].append(record)

        items = [
            {
                "id": shipment.id,
                "title": shipment.title,
                "status": shipment.status,
                "role": actor_role(shipment, actor_id),
                "sender_id": shipment.sender_id,
                "carrier_id": shipment.carrier_id,
                "created_at": shipment.created_at,
                "updated_at": shipment.updated_at,
                "history": histories[shipment.id],
            }
            for shipment in shipments
        ]
        return items, total or 0


def _status_order(status: ShipmentStatus) -> int:
    return list(ShipmentStatus).index(status)
