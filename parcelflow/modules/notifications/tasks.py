"""Celery tasks for notification housekeeping."""

import asyncio
import logging

from celery_app import celery
from parcelflow.config import settings
from parcelflow.database.engine import async_session, engine
from parcelflow.modules.notifications.device_service import DeviceTokenService

logger = logging.getLogger(__name__)


async def _cleanup_async(older_than_days: int) -> int:
    try:
        async with async_session() as session:
            removed = await DeviceTokenService(session).cleanup_inactive(older_than_days)
            await session.commit()
            return removed
    finally:
        await engine.dispose()


@celery.task(name="parcelflow.modules.notifications.tasks.cleanup_inactive_device_tokens")
def cleanup_inactive_device_tokens():
    """Delete push tokens that have been inactive past the retention window."""
    return asyncio.run(_cleanup_async(settings.device_token_retention_days))
