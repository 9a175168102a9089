"""Lifecycle store: current shipment status and its append-only history."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.exceptions import ConflictException, NotFoundException
from parcelflow.models.enums import ShipmentStatus
from parcelflow.models.shipment import Shipment
from parcelflow.models.shipment_transition import ShipmentTransition
from parcelflow.modules.tracking.registry import ShipmentParties

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShipmentSnapshot(ShipmentParties):
    """Status and parties of a shipment as read at one instant."""

    shipment_id: uuid.UUID
    status: ShipmentStatus


class LifecycleStore:
    """Reads and writes shipment status inside the caller's unit of work.

    The session's transaction boundary is owned by the caller; this class
    only flushes, so a status write and the history append it pairs with
    land or roll back together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_current(self, shipment_id: uuid.UUID) -> ShipmentSnapshot:
        """Fetch status and parties. Raises NotFoundException if missing."""
        result = await self.db.execute(
            select(Shipment.status, Shipment.sender_id, Shipment.carrier_id).where(
                Shipment.id == shipment_id
            )
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundException(f"Shipment {shipment_id} not found")
        return ShipmentSnapshot(
            shipment_id=shipment_id,
            status=row.status,
            sender_id=row.sender_id,
            carrier_id=row.carrier_id,
        )

    async def append_transition(
        self,
        snapshot: ShipmentSnapshot,
        new_status: ShipmentStatus,
        actor_id: uuid.UUID,
        note: str | None = None,
        location: str | None = None,
        evidence_ref: str | None = None,
    ) -> ShipmentTransition:
        """Move the shipment from ``snapshot.status`` to ``new_status`` and record it.

        The status write only matches while the row still holds the status that
        was read; if another writer got there first nothing is written and
        ConflictException is raised.
        """
        now = datetime.now(UTC)
        result = await self.db.execute(
            update(Shipment)
            .where(
                Shipment.id == snapshot.shipment_id,
                Shipment.status == snapshot.status,
            )
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Status guard failed for shipment %s (expected %s)",
                snapshot.shipment_id,
                snapshot.status.value,
            )
            raise ConflictException(
                f"Shipment {snapshot.shipment_id} was modified concurrently; "
                f"expected status '{snapshot.status.value}'"
            )

        sequence = await self._next_sequence(snapshot.shipment_id)
        record = ShipmentTransition(
            shipment_id=snapshot.shipment_id,
            sequence=sequence,
            from_status=snapshot.status,
            status=new_status,
            actor_id=actor_id,
            note=note,
            location=location,
            evidence_ref=evidence_ref,
            created_at=now,
        )
        self.db.add(record)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictException(
                f"History of shipment {snapshot.shipment_id} was appended concurrently"
            ) from exc
        return record

    async def history(self, shipment_id: uuid.UUID) -> AsyncIterator[ShipmentTransition]:
        """Stream transition records oldest-first.

        Every call issues a fresh query; no cursor survives between calls.
        """
        stream = await self.db.stream_scalars(
            select(ShipmentTransition)
            .where(ShipmentTransition.shipment_id == shipment_id)
            .order_by(ShipmentTransition.sequence.asc())
        )
        try:
            async for record in stream:
                yield record
        finally:
            await stream.close()

    async def _next_sequence(self, shipment_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.max(ShipmentTransition.sequence), 0)).where(
                ShipmentTransition.shipment_id == shipment_id
            )
        )
        return int(result.scalar_one()) + 1
