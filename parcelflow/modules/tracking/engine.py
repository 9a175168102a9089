"""Transition engine: validates and applies one shipment status change.

The engine holds no state between calls. Each call reads the shipment through
the LifecycleStore, checks the requested status against the registry
predicates it was built with, writes status and history together, and records
a ``shipment.status_changed`` event in the outbox within the same unit of work.
Notifications are therefore only ever sent for transitions that committed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from parcelflow.exceptions import (
    InvalidTransitionException,
    PermissionDeniedException,
    PersistenceException,
)
from parcelflow.models.enums import ShipmentStatus
from parcelflow.models.shipment_transition import ShipmentTransition
from parcelflow.modules.events.outbox_service import OutboxService
from parcelflow.modules.tracking.constants import (
    AGGREGATE_SHIPMENT,
    EVENT_SHIPMENT_STATUS_CHANGED,
)
from parcelflow.modules.tracking.registry import (
    DISPUTE_ONLY_STATUSES,
    ShipmentParties,
    allowed_next_states,
    is_permitted,
    is_transition_allowed,
)
from parcelflow.modules.tracking.store import LifecycleStore, ShipmentSnapshot

logger = logging.getLogger(__name__)

TransitionPredicate = Callable[[ShipmentStatus, ShipmentStatus], bool]
PermissionPredicate = Callable[[ShipmentParties, uuid.UUID, ShipmentStatus], bool]


@dataclass(frozen=True)
class TransitionOptions:
    note: str | None = None
    location: str | None = None
    evidence_ref: str | None = None


@dataclass(frozen=True)
class AppliedTransition:
    """A committed-to-be transition and the snapshot it was applied against."""

    snapshot: ShipmentSnapshot
    record: ShipmentTransition

    @property
    def old_status(self) -> ShipmentStatus:
        return self.snapshot.status

    @property
    def new_status(self) -> ShipmentStatus:
        return self.record.status


class TransitionEngine:
    def __init__(
        self,
        store: LifecycleStore,
        outbox: OutboxService,
        transition_allowed: TransitionPredicate = is_transition_allowed,
        permitted: PermissionPredicate = is_permitted,
    ) -> None:
        self.store = store
        self.outbox = outbox
        self.transition_allowed = transition_allowed
        self.permitted = permitted

    async def apply(
        self,
        shipment_id: uuid.UUID,
        requested_status: ShipmentStatus,
        actor_id: uuid.UUID,
        options: TransitionOptions | None = None,
    ) -> ShipmentTransition:
        """Apply a status change requested through the public status operation.

        Statuses that carry an extra record (DISPUTED) are refused here; they
        are only reachable through the dispute flow.
        """
        if requested_status in DISPUTE_ONLY_STATUSES:
            raise InvalidTransitionException(
                f"Status '{requested_status.value}' can only be set by filing a dispute",
                details=[{"field": "status", "message": "use the disputes endpoint"}],
            )
        applied = await self.transition(shipment_id, requested_status, actor_id, options)
        await self.publish_status_changed(applied)
        return applied.record

    async def transition(
        self,
        shipment_id: uuid.UUID,
        requested_status: ShipmentStatus,
        actor_id: uuid.UUID,
        options: TransitionOptions | None = None,
    ) -> AppliedTransition:
        """Validate and write a transition without publishing its event.

        Graph validity is checked before permission. Nothing is written unless
        both checks pass.
        """
        options = options or TransitionOptions()
        try:
            snapshot = await self.store.load_current(shipment_id)

            if not self.transition_allowed(snapshot.status, requested_status):
                allowed = sorted(s.value for s in allowed_next_states(snapshot.status))
                raise InvalidTransitionException(
                    f"Cannot transition shipment from '{snapshot.status.value}' "
                    f"to '{requested_status.value}'",
                    details=[{
                        "field": "status",
                        "message": f"allowed next states: {', '.join(allowed) or 'none'}",
                    }],
                )

            if not self.permitted(snapshot, actor_id, requested_status):
                raise PermissionDeniedException(
                    f"Actor is not permitted to move this shipment to "
                    f"'{requested_status.value}'"
                )

            record = await self.store.append_transition(
                snapshot,
                requested_status,
                actor_id,
                note=options.note,
                location=options.location,
                evidence_ref=options.evidence_ref,
            )
        except SQLAlchemyError as exc:
            logger.exception("Store failure while transitioning shipment %s", shipment_id)
            raise PersistenceException(
                "Shipment status could not be updated; please retry"
            ) from exc

        logger.info(
            "Shipment %s transitioned %s -> %s by %s (seq %d)",
            shipment_id,
            snapshot.status.value,
            requested_status.value,
            actor_id,
            record.sequence,
        )
        return AppliedTransition(snapshot=snapshot, record=record)

    async def publish_status_changed(
        self, applied: AppliedTransition, extra: dict | None = None
    ) -> None:
        """Record the status-change event for asynchronous fan-out."""
        snapshot = applied.snapshot
        payload = {
            "shipment_id": str(snapshot.shipment_id),
            "old_status": applied.old_status.value,
            "new_status": applied.new_status.value,
            "actor_id": str(applied.record.actor_id),
            "sender_id": str(snapshot.sender_id),
            "carrier_id": str(snapshot.carrier_id) if snapshot.carrier_id else None,
            "transition_id": str(applied.record.id),
            "sequence": applied.record.sequence,
            "occurred_at": applied.record.created_at.isoformat(),
        }
        if extra:
            payload.update(extra)
        try:
            await self.outbox.publish_event(
                event_type=EVENT_SHIPMENT_STATUS_CHANGED,
                aggregate_type=AGGREGATE_SHIPMENT,
                aggregate_id=str(snapshot.shipment_id),
                payload=payload,
            )
        except SQLAlchemyError as exc:
            logger.exception("Could not record status event for shipment %s", snapshot.shipment_id)
            raise PersistenceException(
                "Shipment status could not be updated; please retry"
            ) from exc
