from parcelflow.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from parcelflow.database.engine import async_session, engine, sync_engine
from parcelflow.database.session import get_db

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "async_session",
    "engine",
    "sync_engine",
    "get_db",
]
