"""Dispute sub-flow: moves a shipment to DISPUTED and records the complaint."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.exceptions import (
    NotFoundException,
    PermissionDeniedException,
    PersistenceException,
    ValidationException,
)
from parcelflow.models.enums import DisputeResolutionStatus, ShipmentStatus
from parcelflow.models.shipment import Shipment
from parcelflow.models.shipment_dispute import ShipmentDispute
from parcelflow.modules.events.outbox_service import OutboxService
from parcelflow.modules.tracking.constants import (
    DISPUTE_DESCRIPTION_MAX_LENGTH,
    DISPUTE_MAX_EVIDENCE_REFS,
    DISPUTE_NOTE_PREFIX,
    DISPUTE_REASON_MAX_LENGTH,
    EVIDENCE_REF_MAX_LENGTH,
)
from parcelflow.modules.tracking.engine import TransitionEngine, TransitionOptions
from parcelflow.modules.tracking.store import LifecycleStore

logger = logging.getLogger(__name__)


def validate_dispute_input(
    reason: str, description: str, evidence_refs: list[str]
) -> tuple[str, str, list[str]]:
    """Normalise dispute input, raising ValidationException listing every problem."""
    reason = (reason or "").strip()
    description = (description or "").strip()
    evidence_refs = [ref.strip() for ref in evidence_refs or []]
    details: list[dict] = []

    if not reason:
        details.append({"field": "reason", "message": "reason is required"})
    elif len(reason) > DISPUTE_REASON_MAX_LENGTH:
        details.append({
            "field": "reason",
            "message": f"reason must be at most {DISPUTE_REASON_MAX_LENGTH} characters",
        })

    if not description:
        details.append({"field": "description", "message": "description is required"})
    elif len(description) > DISPUTE_DESCRIPTION_MAX_LENGTH:
        details.append({
            "field": "description",
            "message": f"description must be at most {DISPUTE_DESCRIPTION_MAX_LENGTH} characters",
        })

    if len(evidence_refs) > DISPUTE_MAX_EVIDENCE_REFS:
        details.append({
            "field": "evidence_refs",
            "message": f"at most {DISPUTE_MAX_EVIDENCE_REFS} evidence references allowed",
        })
    for index, ref in enumerate(evidence_refs):
        if not ref or len(ref) > EVIDENCE_REF_MAX_LENGTH:
            details.append({
                "field": f"evidence_refs.{index}",
                "message": f"evidence reference must be 1-{EVIDENCE_REF_MAX_LENGTH} characters",
            })

    if details:
        raise ValidationException("Invalid dispute", details=details)
    return reason, description, evidence_refs


class DisputeService:
    def __init__(self, db: AsyncSession, engine: TransitionEngine | None = None):
        self.db = db
        self.engine = engine or TransitionEngine(LifecycleStore(db), OutboxService(db))

    async def file_dispute(
        self,
        shipment_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str,
        description: str,
        evidence_refs: list[str] | None = None,
    ) -> uuid.UUID:
        """Dispute a shipment.

        The DISPUTED transition, the dispute row and the status event are all
        written through the caller's session; if any of them fails the caller's
        rollback leaves the shipment at its previous status.
        """
        reason, description, evidence_refs = validate_dispute_input(
            reason, description, evidence_refs or []
        )

        applied = await self.engine.transition(
            shipment_id,
            ShipmentStatus.DISPUTED,
            actor_id,
            TransitionOptions(
                note=f"{DISPUTE_NOTE_PREFIX}{reason}",
                evidence_ref=evidence_refs[0] if evidence_refs else None,
            ),
        )

        dispute = await self._record_dispute(
            shipment_id, actor_id, reason, description, evidence_refs
        )
        await self.engine.publish_status_changed(
            applied, extra={"dispute_id": str(dispute.id), "reason": reason}
        )

        logger.info(
            "Dispute %s filed on shipment %s by %s (%s)",
            dispute.id,
            shipment_id,
            actor_id,
            reason,
        )
        return dispute.id

    async def _record_dispute(
        self,
        shipment_id: uuid.UUID,
        reporter_id: uuid.UUID,
        reason: str,
        description: str,
        evidence_refs: list[str],
    ) -> ShipmentDispute:
        dispute = ShipmentDispute(
            shipment_id=shipment_id,
            reporter_id=reporter_id,
            reason=reason,
            description=description,
            evidence_refs=evidence_refs,
            status=DisputeResolutionStatus.OPEN,
        )
        self.db.add(dispute)
        try:
            await self.db.flush()
        except SQLAlchemyError as exc:
            logger.exception("Could not record dispute for shipment %s", shipment_id)
            raise PersistenceException("Dispute could not be recorded; please retry") from exc
        return dispute

    async def list_disputes(
        self,
        actor_id: uuid.UUID,
        status: DisputeResolutionStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ShipmentDispute], int]:
        """Disputes on shipments where the actor is sender or carrier (paginated)."""
        party_filter = or_(Shipment.sender_id == actor_id, Shipment.carrier_id == actor_id)
        query = select(ShipmentDispute).join(
            Shipment, Shipment.id == ShipmentDispute.shipment_id
        ).where(party_filter)
        count_query = (
            select(func.count())
            .select_from(ShipmentDispute)
            .join(Shipment, Shipment.id == ShipmentDispute.shipment_id)
            .where(party_filter)
        )

        if status is not None:
            query = query.where(ShipmentDispute.status == status)
            count_query = count_query.where(ShipmentDispute.status == status)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(ShipmentDispute.created_at.desc()).offset(offset).limit(limit)
        result = await self.db.execute(query)
        items = list(result.scalars().all())

        return items, total

    async def get_dispute(self, dispute_id: uuid.UUID, actor_id: uuid.UUID) -> ShipmentDispute:
        result = await self.db.execute(
            select(ShipmentDispute, Shipment.sender_id, Shipment.carrier_id)
            .join(Shipment, Shipment.id == ShipmentDispute.shipment_id)
            .where(ShipmentDispute.id == dispute_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundException(f"Dispute {dispute_id} not found")
        dispute, sender_id, carrier_id = row
        if actor_id not in (sender_id, carrier_id):
            raise PermissionDeniedException("Only the parties to a shipment may view its disputes")
        return dispute
