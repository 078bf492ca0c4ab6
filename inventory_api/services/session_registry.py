"""Session registry - enforces one active session per user.

The registry owns the authoritative "current token per user" map. A token
is active only while it is the value recorded for its user: a new login
replaces it, logout removes it. Expiry is not tracked here; the token
issuer rejects expired tokens on every verification.

Audit rows are written in the background. Map transitions never wait for
them and never fail because of them.
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime, timedelta
from typing import Any

from inventory_api.core.logging import token_fingerprint
from inventory_api.services.session_audit import SessionAuditStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30

# Number of locks user ids are striped across
LOCK_STRIPES = 64


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    """Thread-safe registry of the single active session token per user.

    Read-modify-write operations hold a per-user stripe lock, so two logins
    racing for the same user resolve to exactly one winner and a logout
    racing a login can only remove the token it names.
    """

    def __init__(
        self,
        audit_store: SessionAuditStore | None = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._audit_store = audit_store
        self._retention_days = max(1, retention_days)
        self._clock = clock
        self._active: dict[str, str] = {}
        self._stripes = [threading.Lock() for _ in range(LOCK_STRIPES)]

        # Degraded fallback: tokens explicitly invalidated without a
        # trustworthy owner, mapped to their expiry timestamp.
        self._blacklist: dict[str, float] = {}
        self._blacklist_lock = threading.Lock()

        self._pending_writes: set[asyncio.Task] = set()

    @property
    def retention_days(self) -> int:
        return self._retention_days

    def _lock_for(self, user_id: str) -> threading.Lock:
        return self._stripes[hash(user_id) % LOCK_STRIPES]

    # --- Live session state ---

    def track_session(
        self,
        user_id: str,
        token: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Make ``token`` the user's only active session.

        Any previously active token for the user stops being active the
        moment this returns.
        """
        now = self._clock()
        with self._lock_for(user_id):
            previous = self._active.get(user_id)
            self._active[user_id] = token

        if previous is not None and previous != token:
            logger.debug(
                f"Session {token_fingerprint(previous)} superseded for user {user_id}"
            )
        logger.debug(f"New session tracked for user {user_id}")

        if self._audit_store is not None:
            self._schedule_audit(
                self._audit_store.record_login(user_id, token, now, user_agent, ip_address),
                "record_login",
            )

    def invalidate_session(self, user_id: str, token: str) -> bool:
        """Close the session if ``token`` is the user's active one.

        Returns:
            True if a session was closed, False if it was a no-op
        """
        with self._lock_for(user_id):
            if self._active.get(user_id) != token:
                return False
            del self._active[user_id]

        logger.debug(f"Session invalidated for user {user_id}")
        if self._audit_store is not None:
            self._schedule_audit(
                self._audit_store.close_session(user_id, token, self._clock()),
                "close_session",
            )
        return True

    def invalidate_all_user_sessions(self, user_id: str) -> bool:
        """Close whatever session the user has open.

        Returns:
            True if an active session was removed
        """
        with self._lock_for(user_id):
            removed = self._active.pop(user_id, None)

        logger.debug(f"All sessions invalidated for user {user_id}")
        if self._audit_store is not None:
            # Also closes rows left open by a previous process
            self._schedule_audit(
                self._audit_store.close_all(user_id, self._clock()),
                "close_all",
            )
        return removed is not None

    def is_session_active(self, user_id: str, token: str) -> bool:
        """Whether ``token`` is exactly the user's recorded active token."""
        # A single dict lookup is atomic; no stripe lock needed for reads
        active = self._active.get(user_id)
        is_active = active is not None and active == token
        logger.debug(f"Session check - user: {user_id}, active: {is_active}")
        return is_active

    def get_active_sessions(self, user_id: str) -> int:
        """Number of active sessions for the user (0 or 1)."""
        return 1 if user_id in self._active else 0

    # --- Degraded fallback blacklist ---

    def blacklist_token(self, token: str, expires_at: float) -> None:
        """Reject ``token`` until ``expires_at`` (Unix timestamp).

        Used when a token is logged out but its owner cannot be trusted
        from the token itself.
        """
        with self._blacklist_lock:
            self._blacklist[token] = expires_at
        logger.debug(f"Token {token_fingerprint(token)} blacklisted")

    def is_token_blacklisted(self, token: str) -> bool:
        with self._blacklist_lock:
            expires_at = self._blacklist.get(token)
            if expires_at is None:
                return False
            if time.time() > expires_at:
                del self._blacklist[token]
                return False
            return True

    def prune_blacklist(self) -> int:
        """Drop blacklist entries whose token has expired anyway.

        Returns:
            Number of entries removed
        """
        now = time.time()
        with self._blacklist_lock:
            expired = [token for token, exp in self._blacklist.items() if now > exp]
            for token in expired:
                del self._blacklist[token]
        if expired:
            logger.debug(f"Removed {len(expired)} expired tokens from blacklist")
        return len(expired)

    # --- Audit trail ---

    async def cleanup_expired_sessions(self) -> int:
        """Delete audit rows older than the retention window.

        Only historical rows are touched; the live map is left alone.

        Returns:
            Number of rows deleted
        """
        if self._audit_store is None:
            return 0
        cutoff = self._clock() - timedelta(days=self._retention_days)
        try:
            deleted = await self._audit_store.delete_older_than(cutoff)
        except Exception as e:
            logger.error(f"Error cleaning up sessions: {e}")
            raise
        logger.debug(f"Expired sessions cleaned up ({deleted} rows)")
        return deleted

    def _schedule_audit(self, coro: Coroutine[Any, Any, Any], operation: str) -> None:
        """Run an audit write in the background; failures are logged and dropped."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning(f"Audit {operation} skipped: no running event loop")
            return

        task = loop.create_task(self._write_safe(coro, operation))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_safe(self, coro: Coroutine[Any, Any, Any], operation: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Session audit {operation} failed: {e}")

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for in-flight audit writes, e.g. before shutdown."""
        pending = list(self._pending_writes)
        if not pending:
            return
        done, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} session audit writes still pending at shutdown")
