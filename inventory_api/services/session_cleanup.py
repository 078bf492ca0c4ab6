"""Session cleanup service - periodically prunes the session audit trail."""

import asyncio

from inventory_api.core.logging import get_logger
from inventory_api.services.session_registry import SessionRegistry

logger = get_logger("session_cleanup")

# How often to run cleanup (in seconds)
CLEANUP_INTERVAL_SECONDS = 3600  # 1 hour

# Delay before the first run so startup is not slowed down
INITIAL_DELAY_SECONDS = 60


class SessionCleanupService:
    """Background task that sweeps old audit rows and expired blacklist entries.

    Failures are logged and the loop keeps going; the live session map is
    never touched by a sweep.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        interval_seconds: int = CLEANUP_INTERVAL_SECONDS,
        initial_delay_seconds: float = INITIAL_DELAY_SECONDS,
    ):
        self._registry = registry
        self._interval_seconds = max(1, interval_seconds)
        self._initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    async def start(self):
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Session cleanup service is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop(), name="session-cleanup")
        logger.info(
            f"Session cleanup service started (retention: {self._registry.retention_days} days, "
            f"interval: {self._interval_seconds}s)"
        )

    async def stop(self):
        """Stop the background cleanup task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Session cleanup service stopped")

    async def _cleanup_loop(self):
        """Main loop that periodically runs a sweep."""
        await asyncio.sleep(self._initial_delay_seconds)

        while self._running:
            try:
                await self._run_cleanup()
            except Exception as e:
                logger.error(f"Error in session cleanup: {e}")

            await asyncio.sleep(self._interval_seconds)

    async def _run_cleanup(self):
        """Execute a single sweep."""
        pruned = self._registry.prune_blacklist()
        if pruned > 0:
            logger.info(f"Session cleanup: removed {pruned} expired blacklisted tokens")

        deleted_count = await self._registry.cleanup_expired_sessions()
        if deleted_count > 0:
            logger.info(
                f"Session cleanup: deleted {deleted_count} audit rows "
                f"older than {self._registry.retention_days} days"
            )

    async def run_cleanup_now(self) -> int:
        """Manually trigger a sweep.

        Returns:
            Number of audit rows deleted
        """
        self._registry.prune_blacklist()
        return await self._registry.cleanup_expired_sessions()
