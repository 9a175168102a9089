"""OutboxService: async publisher of outbox events."""

from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.models.enums import EventStatus
from parcelflow.models.event_outbox import EventOutbox


class OutboxService:
    """Writes events into the outbox through the caller's session.

    Events commit or roll back together with the business change that
    produced them. Delivery is the job of ``OutboxProcessor``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def publish_event(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_id: str,
        payload: dict,
        schema_version: int = 1,
    ) -> EventOutbox:
        """Create a new event in the outbox with PENDING status."""
        event = EventOutbox(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            payload=payload,
            status=EventStatus.PENDING,
            schema_version=schema_version,
        )
        self.session.add(event)
        await self.session.flush()
        return event
