"""Session audit store - persists session history to the user_sessions table."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.models.user_session import UserSession

logger = logging.getLogger(__name__)

DEFAULT_WRITE_TIMEOUT_SECONDS = 5.0


class SessionAuditStore:
    """Writes session audit rows in their own short transactions.

    Writes are serialized through an asyncio.Lock; waiters acquire it in
    FIFO order, so audit rows are written in the order the registry
    scheduled them. Each write is bounded by ``timeout_seconds``.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        timeout_seconds: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
    ):
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds
        self._lock = asyncio.Lock()

    async def record_login(
        self,
        user_id: str,
        token: str,
        login_time: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Close the user's open rows and append one for the new session."""

        async def _write(db: AsyncSession) -> None:
            await db.execute(
                update(UserSession)
                .where(UserSession.user_id == uuid.UUID(user_id))
                .where(UserSession.logout_time.is_(None))
                .values(logout_time=login_time)
            )
            db.add(
                UserSession(
                    user_id=uuid.UUID(user_id),
                    token=token,
                    login_time=login_time,
                    user_agent=user_agent,
                    ip_address=ip_address,
                )
            )

        await self._run(_write)

    async def close_session(self, user_id: str, token: str, logout_time: datetime) -> None:
        """Stamp logout_time on the open row for this exact token."""

        async def _write(db: AsyncSession) -> None:
            await db.execute(
                update(UserSession)
                .where(UserSession.user_id == uuid.UUID(user_id))
                .where(UserSession.token == token)
                .where(UserSession.logout_time.is_(None))
                .values(logout_time=logout_time)
            )

        await self._run(_write)

    async def close_all(self, user_id: str, logout_time: datetime) -> None:
        """Stamp logout_time on every open row of the user."""

        async def _write(db: AsyncSession) -> None:
            await db.execute(
                update(UserSession)
                .where(UserSession.user_id == uuid.UUID(user_id))
                .where(UserSession.logout_time.is_(None))
                .values(logout_time=logout_time)
            )

        await self._run(_write)

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete rows whose login time is before ``cutoff``.

        Returns:
            Number of rows deleted
        """
        deleted = 0

        async def _write(db: AsyncSession) -> None:
            nonlocal deleted
            result = await db.execute(delete(UserSession).where(UserSession.login_time < cutoff))
            deleted = result.rowcount or 0

        await self._run(_write)
        return deleted

    async def _run(self, operation: Callable) -> None:
        async with self._lock:
            await asyncio.wait_for(self._transaction(operation), timeout=self._timeout_seconds)

    async def _transaction(self, operation: Callable) -> None:
        async with self._session_factory() as db:
            try:
                await operation(db)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
