"""NotificationPreference model: per-user opt-outs for notification categories."""

import uuid

from sqlalchemy import Boolean, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from parcelflow.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class NotificationPreference(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A missing row means every category is enabled."""

    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    packages: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
    disputes: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationPreference user={self.user_id} "
            f"packages={self.packages} disputes={self.disputes}>"
        )
