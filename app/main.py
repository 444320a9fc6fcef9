"""
AdsOPS - Main Application
Ads operations backend: Meta / Google Ads sync, onboarding and support chat
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.logging import logger
from app.api.v1 import api_v1_router
from app.workers import start_sync_worker, stop_sync_worker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if settings.SYNC_WORKER_ENABLED:
        try:
            start_sync_worker(sync_interval_hours=settings.SYNC_INTERVAL_HOURS, enabled=True)
            logger.info("Sync worker started successfully")
        except Exception as e:
            logger.error(f"Failed to start sync worker: {e}")
    else:
        logger.info("Sync worker disabled via configuration")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")

    try:
        stop_sync_worker()
    except Exception as e:
        logger.error(f"Error stopping sync worker: {e}")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Ads operations backend for Meta Ads and Google Ads",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API v1 router
app.include_router(api_v1_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
