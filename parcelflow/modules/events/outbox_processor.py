"""OutboxProcessor: synchronous batch processor for Celery workers."""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, and_, delete, or_, select, update
from sqlalchemy.orm import Session, aliased

from parcelflow.config import settings
from parcelflow.models.enums import EventStatus
from parcelflow.models.event_outbox import EventOutbox
from parcelflow.models.processed_event import ProcessedEvent
from parcelflow.modules.events.handlers import EventHandlerRegistry

logger = logging.getLogger(__name__)

PROCESSED_EVENT_TTL_DAYS = 7
COMPLETED_EVENT_RETENTION_DAYS = 30

# Statuses that still hold back later events of the same aggregate
UNFINISHED_STATUSES = (EventStatus.PENDING, EventStatus.PROCESSING)


@dataclass(frozen=True)
class ClaimedEvent:
    event_id: uuid.UUID
    event_type: str
    payload: dict


class OutboxProcessor:
    """Processes pending outbox events using sync sessions (for Celery workers).

    Each event is claimed in its own short transaction: the candidate row is
    selected with FOR UPDATE SKIP LOCKED and flipped to PROCESSING by a guarded
    update, so two workers never claim the same event. An event is only a
    candidate while no older event of the same aggregate is unfinished, which
    keeps one aggregate's events strictly sequential across all workers. A
    claim left behind by a crashed worker becomes claimable again after
    ``claim_timeout_seconds``.

    Idempotency is tracked via the processed_events table.
    """

    def __init__(
        self,
        registry: EventHandlerRegistry,
        engine: Engine,
        claim_timeout_seconds: int | None = None,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.claim_timeout = timedelta(
            seconds=settings.event_outbox_claim_timeout_seconds
            if claim_timeout_seconds is None
            else claim_timeout_seconds
        )

    def process_batch(self, batch_size: int = 50) -> dict:
        """Process up to ``batch_size`` events.

        Returns dict with 'processed' and 'failed' counts.
        """
        processed_count = 0
        failed_count = 0
        attempted: set[uuid.UUID] = set()

        with Session(self.engine) as session:
            while processed_count + failed_count < batch_size:
                claimed = self._claim_next(session, attempted)
                if claimed is None:
                    break
                attempted.add(claimed.event_id)
                if self._deliver(session, claimed):
                    processed_count += 1
                else:
                    failed_count += 1

        return {"processed": processed_count, "failed": failed_count}

    def _claim_next(self, session: Session, attempted: set[uuid.UUID]) -> ClaimedEvent | None:
        """Claim the oldest event that is free to run, or return None."""
        while True:
            now = datetime.now(UTC)
            earlier = aliased(EventOutbox)
            unfinished_earlier = (
                select(earlier.id)
                .where(
                    earlier.aggregate_type == EventOutbox.aggregate_type,
                    earlier.aggregate_id == EventOutbox.aggregate_id,
                    earlier.status.in_(UNFINISHED_STATUSES),
                    earlier.created_at < EventOutbox.created_at,
                )
                .exists()
            )
            statement = (
                select(EventOutbox)
                .where(
                    or_(
                        EventOutbox.status == EventStatus.PENDING,
                        and_(
                            EventOutbox.status == EventStatus.PROCESSING,
                            EventOutbox.claimed_at < now - self.claim_timeout,
                        ),
                    ),
                    ~unfinished_earlier,
                )
                .order_by(EventOutbox.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            if attempted:
                statement = statement.where(EventOutbox.id.not_in(attempted))

            candidate = session.scalars(statement).first()
            if candidate is None:
                session.rollback()
                return None

            claimed = ClaimedEvent(
                event_id=candidate.id,
                event_type=candidate.event_type,
                payload=dict(candidate.payload),
            )
            reclaiming = candidate.status == EventStatus.PROCESSING
            if candidate.claimed_at is None:
                same_claim = EventOutbox.claimed_at.is_(None)
            else:
                same_claim = EventOutbox.claimed_at == candidate.claimed_at
            result = session.execute(
                update(EventOutbox)
                .where(
                    EventOutbox.id == candidate.id,
                    EventOutbox.status == candidate.status,
                    same_claim,
                )
                .values(status=EventStatus.PROCESSING, claimed_at=now)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount == 1:
                if reclaiming:
                    logger.warning("Reclaimed stale outbox event %s", claimed.event_id)
                return claimed

            # Another worker claimed it between our read and our update
            attempted.add(claimed.event_id)

    def _deliver(self, session: Session, claimed: ClaimedEvent) -> bool:
        """Run the handlers for a claimed event. Returns True on success."""
        event_id = claimed.event_id
        event_type = claimed.event_type
        try:
            already_processed = session.scalar(
                select(ProcessedEvent.id).where(ProcessedEvent.event_id == event_id)
            )
            now = datetime.now(UTC)
            if already_processed is None:
                results = self.registry.dispatch(event_type, claimed.payload)

                handler_errors = [r for r in results if r["status"] == "error"]
                if handler_errors:
                    error_messages = "; ".join(
                        f"{r['handler']}: {r['error']}" for r in handler_errors
                    )
                    raise RuntimeError(f"Handler errors: {error_messages}")

                now = datetime.now(UTC)
                session.add(
                    ProcessedEvent(
                        event_id=event_id,
                        event_type=event_type,
                        handler_name=",".join(r["handler"] for r in results)
                        if results
                        else "no_handlers",
                        processed_at=now,
                        expires_at=now + timedelta(days=PROCESSED_EVENT_TTL_DAYS),
                    )
                )

            event = session.get(EventOutbox, event_id)
            event.status = EventStatus.COMPLETED
            event.processed_at = now
            session.commit()
            return True

        except Exception as exc:
            session.rollback()
            logger.exception("Failed to process event %s (type=%s)", event_id, event_type)

            failed = session.get(EventOutbox, event_id)
            failed.retry_count += 1
            failed.last_error = str(exc)
            failed.claimed_at = None
            failed.status = (
                EventStatus.FAILED
                if failed.retry_count >= failed.max_retries
                else EventStatus.PENDING
            )
            session.commit()
            return False

    def cleanup_expired(self) -> int:
        """Delete expired processed_events and old completed outbox events.

        Returns total number of rows deleted.
        """
        now = datetime.now(UTC)
        total_deleted = 0

        with Session(self.engine) as session:
            result = session.execute(
                delete(ProcessedEvent).where(ProcessedEvent.expires_at < now)
            )
            total_deleted += result.rowcount

            result = session.execute(
                delete(EventOutbox).where(
                    EventOutbox.status == EventStatus.COMPLETED,
                    EventOutbox.processed_at
                    < now - timedelta(days=COMPLETED_EVENT_RETENTION_DAYS),
                )
            )
            total_deleted += result.rowcount

            session.commit()

        logger.info("Cleaned up %d expired event records", total_deleted)
        return total_deleted
