import logging
from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.database.engine import async_session
from parcelflow.exceptions import PersistenceException

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a database session.

    Rolled back if anything raised. Write endpoints commit through
    ``commit_or_fail`` before building their response; whatever is left is
    committed on teardown.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def commit_or_fail(session: AsyncSession) -> None:
    """Commit the request's unit of work, raising PersistenceException if it fails."""
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        logger.exception("Commit failed; unit of work rolled back")
        await session.rollback()
        raise PersistenceException("The change could not be saved, please retry") from exc
