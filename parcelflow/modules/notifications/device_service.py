"""Push device token registry used by the push channel."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.models.enums import DevicePlatform
from parcelflow.models.push_device_token import PushDeviceToken

logger = logging.getLogger(__name__)


def _token_preview(token: str) -> str:
    return f"{token[:12]}..."


class DeviceTokenService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def register_token(
        self,
        user_id: uuid.UUID,
        token: str,
        platform: DevicePlatform = DevicePlatform.WEB,
    ) -> PushDeviceToken:
        """Register a device token, reactivating it if it was seen before."""
        result = await self.db.execute(
            select(PushDeviceToken).where(
                PushDeviceToken.user_id == user_id,
                PushDeviceToken.token == token,
            )
        )
        device = result.scalar_one_or_none()
        if device is None:
            device = PushDeviceToken(user_id=user_id, token=token, platform=platform)
            self.db.add(device)
        else:
            device.platform = platform
            device.is_active = True
            device.updated_at = datetime.now(UTC)

        await self.db.flush()
        logger.info(
            "Registered %s push token %s for user %s",
            platform.value,
            _token_preview(token),
            user_id,
        )
        return device

    async def unregister_token(self, user_id: uuid.UUID, token: str) -> bool:
        """Deactivate one of the user's tokens. Returns False if it was unknown."""
        deactivated = await self.deactivate_tokens(user_id, [token])
        return deactivated > 0

    async def active_tokens(self, user_id: uuid.UUID) -> list[str]:
        """Active tokens for a user, most recently refreshed first."""
        result = await self.db.execute(
            select(PushDeviceToken.token)
            .where(
                PushDeviceToken.user_id == user_id,
                PushDeviceToken.is_active.is_(True),
            )
            .order_by(PushDeviceToken.updated_at.desc())
        )
        return list(result.scalars().all())

    async def list_devices(self, user_id: uuid.UUID) -> list[PushDeviceToken]:
        """Active device registrations for a user, most recently refreshed first."""
        result = await self.db.execute(
            select(PushDeviceToken)
            .where(
                PushDeviceToken.user_id == user_id,
                PushDeviceToken.is_active.is_(True),
            )
            .order_by(PushDeviceToken.updated_at.desc())
        )
        return list(result.scalars().all())

    async def deactivate_tokens(self, user_id: uuid.UUID, tokens: Iterable[str]) -> int:
        tokens = list(tokens)
        if not tokens:
            return 0
        result = await self.db.execute(
            update(PushDeviceToken)
            .where(
                PushDeviceToken.user_id == user_id,
                PushDeviceToken.token.in_(tokens),
                PushDeviceToken.is_active.is_(True),
            )
            .values(is_active=False, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        if result.rowcount:
            logger.info("Deactivated %d push token(s) for user %s", result.rowcount, user_id)
        return result.rowcount

    async def cleanup_inactive(self, older_than_days: int) -> int:
        """Delete tokens that have been inactive for longer than the retention window."""
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        result = await self.db.execute(
            delete(PushDeviceToken)
            .where(
                PushDeviceToken.is_active.is_(False),
                PushDeviceToken.updated_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        logger.info("Removed %d inactive push tokens", result.rowcount)
        return result.rowcount
