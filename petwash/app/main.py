"""
FastAPI Application Entry Point.

This is the main application file for the Pet Wash walk service.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from petwash.app.core.config import settings
from petwash.app.api.router import router as api_router
from petwash.app.api.endpoints import realtime
from petwash.app.db.session import engine, Base
from petwash.app.core.observability import ObservabilityMiddleware
from petwash.app.core.redis_client import ping_redis
from petwash.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from petwash.app.services.realtime_hub import RealtimeHub

# Import models to ensure they are registered with Base
from petwash.app.models.user import User
from petwash.app.models.audit_log import AuditLog
from petwash.app.models.pet import Pet
from petwash.app.models.walk_session import WalkSession
from petwash.app.models.walk_location import WalkLocation
from petwash.app.models.walk_media import WalkPhoto, WalkAlert

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("petwash")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Creates the realtime hub shared by the WebSocket and walk endpoints.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    app.state.realtime_hub = RealtimeHub()
    if not await ping_redis():
        logger.warning("Redis unreachable at startup; cache and token revocation degraded")
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Pet Wash walk service with live walk tracking",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "realtime_clients": len(app.state.realtime_hub.clients),
    }


app.include_router(api_router, prefix=settings.api_prefix)
app.include_router(realtime.router)


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Pet Wash Walk API",
        "docs": "/docs",
        "health": "/health",
        "realtime": settings.realtime_path,
    }
