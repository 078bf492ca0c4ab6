"""Inventory API - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inventory_api.api import api_router
from inventory_api.api.auth import cleanup_stale_rate_limit_entries
from inventory_api.api.policies import verify_route_policies
from inventory_api.core import async_session_maker, dispose_engine, settings, setup_logging
from inventory_api.core.logging import get_logger
from inventory_api.services.session_audit import SessionAuditStore
from inventory_api.services.session_cleanup import SessionCleanupService
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.tokens import create_client_token_issuer, create_user_token_issuer

logger = get_logger("main")

RATE_LIMIT_CLEANUP_INTERVAL_SECONDS = 300


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _rate_limit_cleanup_loop() -> None:
    """Periodically forget clients whose auth attempts are outside the window."""
    while True:
        await asyncio.sleep(RATE_LIMIT_CLEANUP_INTERVAL_SECONDS)
        try:
            removed = cleanup_stale_rate_limit_entries()
            if removed > 0:
                logger.debug(f"Cleaned up {removed} stale rate-limit entries")
        except Exception:
            logger.exception("Error cleaning up rate-limit entries")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    # Check security configuration
    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    cleanup_service: SessionCleanupService = app.state.session_cleanup
    await cleanup_service.start()

    rate_limit_task = asyncio.create_task(_rate_limit_cleanup_loop(), name="rate-limit-cleanup")
    rate_limit_task.add_done_callback(task_done_callback)

    yield

    # Shutdown
    logger.info("Shutting down...")

    rate_limit_task.cancel()
    try:
        await rate_limit_task
    except asyncio.CancelledError:
        pass

    await cleanup_service.stop()

    # Let queued audit writes land before the engine goes away
    await app.state.session_registry.drain(timeout=settings.audit_write_timeout_seconds)
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Inventory and sales backend - authentication and sessions",
        version=settings.app_version,
        lifespan=lifespan,
        # API docs are only served in debug mode
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Per-app session state; one registry per process, shared by all requests
    registry = SessionRegistry(
        audit_store=SessionAuditStore(
            async_session_maker,
            timeout_seconds=settings.audit_write_timeout_seconds,
        ),
        retention_days=settings.session_retention_days,
    )
    app.state.session_registry = registry
    app.state.user_token_issuer = create_user_token_issuer()
    app.state.client_token_issuer = create_client_token_issuer()
    app.state.session_cleanup = SessionCleanupService(
        registry,
        interval_seconds=settings.session_cleanup_interval_seconds,
    )

    # CORS middleware - outermost so headers are present on 401/403 responses too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
    )

    # Include routers
    app.include_router(api_router)

    # Root endpoint
    @app.get("/", name="root")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    # Every route must have a declared access policy
    verify_route_policies(app)

    return app


# Application instance
app = create_app()
