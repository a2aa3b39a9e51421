"""
FastAPI Application Entry Point.

This is the main application file for the Courier Core Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from courier_backend.app.core.config import settings
from courier_backend.app.api.v1.router import router as api_v1_router
from courier_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from courier_backend.app.core.redis_client import ping_redis
from courier_backend.app.db.session import engine, Base
from courier_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from courier_backend.app.models.hub import Hub
from courier_backend.app.models.rider import Rider
from courier_backend.app.models.merchant import Merchant
from courier_backend.app.models.pricing_config import PricingConfig
from courier_backend.app.models.parcel import Parcel
from courier_backend.app.models.parcel_event import ParcelEvent
from courier_backend.app.models.dispute import Dispute
from courier_backend.app.models.transaction import Transaction
from courier_backend.app.models.audit_log import AuditLog

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup and disposes the engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Parcel lifecycle and hub routing backend for courier operations",
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

    Redis only backs the overview cache, so a Redis outage is reported but
    does not make the service unhealthy.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Courier Core Backend API",
        "docs": "/docs",
        "health": "/health",
    }
