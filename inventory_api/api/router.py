"""Inventory API Router - aggregates all API routes."""

from fastapi import APIRouter

from inventory_api.api import auth, health, mobile

api_router = APIRouter()

# Include routers
api_router.include_router(health.router)  # Health at root level
api_router.include_router(auth.router)  # Staff auth (/auth)
api_router.include_router(mobile.router)  # Mobile clients (/mobile/client)
