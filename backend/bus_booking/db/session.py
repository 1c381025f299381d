"""
Async engine, session factory and the transaction boundary used by services.

Every multi-step write in the booking core goes through `transaction()`:
commit on success, full rollback on any exception. Driver and ORM failures
are re-raised as StorageError so callers see one infrastructure error type.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bus_booking.core.config import get_settings
from bus_booking.core.exceptions import StorageError
from bus_booking.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Run a block atomically: commit on success, rollback on any error."""
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("transaction_failed", error=str(exc), error_type=type(exc).__name__)
        raise StorageError("Storage operation failed, please retry") from exc
    except BaseException:
        await db.rollback()
        raise
