"""Celery tasks for event outbox processing."""

from celery_app import celery
from parcelflow.config import settings
from parcelflow.database.engine import sync_engine
from parcelflow.modules.events.handlers import EventHandlerRegistry
from parcelflow.modules.events.outbox_processor import OutboxProcessor
from parcelflow.modules.notifications.handlers import register_notification_handlers


def build_registry() -> EventHandlerRegistry:
    """Handler registry for every event type the workers consume."""
    registry = EventHandlerRegistry()
    register_notification_handlers(registry)
    return registry


@celery.task(name="parcelflow.modules.events.tasks.process_outbox")
def process_outbox():
    """Process a batch of pending outbox events."""
    processor = OutboxProcessor(build_registry(), sync_engine)
    return processor.process_batch(settings.event_outbox_batch_size)


@celery.task(name="parcelflow.modules.events.tasks.cleanup_processed_events")
def cleanup_processed_events():
    """Delete expired processed_events and old completed outbox entries."""
    processor = OutboxProcessor(EventHandlerRegistry(), sync_engine)
    return processor.cleanup_expired()
