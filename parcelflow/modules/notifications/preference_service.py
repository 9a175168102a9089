"""Per-user notification preferences."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.models.notification_preference import NotificationPreference
from parcelflow.modules.notifications.constants import CATEGORY_DISPUTES, CATEGORY_PACKAGES

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {CATEGORY_PACKAGES: True, CATEGORY_DISPUTES: True}


class NotificationPreferenceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_preferences(self, user_id: uuid.UUID) -> dict[str, bool]:
        """Category toggles for a user; every category is on until switched off."""
        row = await self._load(user_id)
        if row is None:
            return dict(DEFAULT_PREFERENCES)
        return {CATEGORY_PACKAGES: row.packages, CATEGORY_DISPUTES: row.disputes}

    async def update_preferences(
        self,
        user_id: uuid.UUID,
        packages: bool | None = None,
        disputes: bool | None = None,
    ) -> dict[str, bool]:
        """Change the given toggles, leaving the others as they were."""
        row = await self._load(user_id)
        if row is None:
            row = NotificationPreference(user_id=user_id, packages=True, disputes=True)
            self.db.add(row)
        if packages is not None:
            row.packages = packages
        if disputes is not None:
            row.disputes = disputes

        await self.db.flush()
        logger.info(
            "Notification preferences for user %s: packages=%s disputes=%s",
            user_id,
            row.packages,
            row.disputes,
        )
        return {CATEGORY_PACKAGES: row.packages, CATEGORY_DISPUTES: row.disputes}

    async def allows(self, user_id: uuid.UUID, category: str) -> bool:
        preferences = await self.get_preferences(user_id)
        return preferences.get(category, True)

    async def _load(self, user_id: uuid.UUID) -> NotificationPreference | None:
        result = await self.db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        return result.scalar_one_or_none()
