"""Inventory API Database Configuration - Async SQLAlchemy.

One engine per process. Request handlers get a session through ``get_db``;
the session audit store opens its own short sessions from
``async_session_maker`` so audit writes never share a request transaction.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from inventory_api.core.config import Settings, settings

logger = logging.getLogger(__name__)


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine from DB_* settings."""
    return create_async_engine(
        str(config.database_url),
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
        pool_recycle=config.db_pool_recycle,
        pool_pre_ping=True,
        echo=config.debug and config.log_level == "DEBUG",
    )


engine = build_engine(settings)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, committed when the handler returns."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            # Includes CancelledError from a dropped client
            await session.rollback()
            raise


async def _ping(bind: AsyncEngine) -> None:
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def check_db_connection(
    bind: AsyncEngine | None = None,
    timeout: float | None = None,
) -> bool:
    """Whether the database answers ``SELECT 1`` within ``timeout`` seconds.

    A hung database counts as down, so health checks never block for the
    full pool timeout.
    """
    bind = bind or engine
    timeout = settings.db_check_timeout_seconds if timeout is None else timeout
    try:
        await asyncio.wait_for(_ping(bind), timeout=timeout)
        return True
    except TimeoutError:
        logger.warning(f"Database did not answer within {timeout}s")
        return False
    except (OSError, SQLAlchemyError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
