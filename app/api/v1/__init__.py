"""
API v1 Router
Aggregates all API v1 route modules
"""

from fastapi import APIRouter
from .routes_oauth import router as oauth_router
from .routes_connections import router as connections_router
from .routes_sync import router as sync_router
from .routes_dashboard import router as dashboard_router
from .routes_chat import router as chat_router
from .routes_setup import router as setup_router

# Create main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

# Include all sub-routers
api_v1_router.include_router(oauth_router)
api_v1_router.include_router(connections_router)
api_v1_router.include_router(sync_router)
api_v1_router.include_router(dashboard_router)
api_v1_router.include_router(chat_router)
api_v1_router.include_router(setup_router)

__all__ = ["api_v1_router"]
