"""PushDeviceToken model: push-notification delivery addresses per user."""

import uuid

from sqlalchemy import Boolean, Index, String, UniqueConstraint, Uuid
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from parcelflow.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from parcelflow.models.enums import DevicePlatform


class PushDeviceToken(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "push_device_tokens"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    token: Mapped[str] = mapped_column(String(512), nullable=False)
    platform: Mapped[DevicePlatform] = mapped_column(
        SQLAlchemyEnum(DevicePlatform, name="deviceplatform"),
        nullable=False,
        default=DevicePlatform.WEB,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_push_device_tokens_user_token"),
        Index("ix_push_device_tokens_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<PushDeviceToken user={self.user_id} platform={self.platform} active={self.is_active}>"
