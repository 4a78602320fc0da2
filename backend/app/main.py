"""
FastAPI Application Entry Point.

This is the main application file for the Order Ledger Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.core import redis_client
from backend.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base, AsyncSessionLocal
from backend.app.services.order_sync import OrderSyncTask
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.account import Account
from backend.app.models.catalog_item import CatalogItem
from backend.app.models.order import Order, OrderItem
from backend.app.models.transaction import Transaction
from backend.app.models.audit_log import AuditLog
from backend.app.models.dlq import DeadLetterQueue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and creates database tables on startup.
    2. Starts the carrier order sync when enabled, stops it on shutdown.
    """
    configure_logging(settings.log_level)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    order_sync = None
    if settings.order_sync_enabled:
        order_sync = OrderSyncTask(AsyncSessionLocal)
        order_sync.start()
    app.state.order_sync = order_sync

    yield

    if order_sync is not None:
        await order_sync.stop()
    await redis_client.close_redis()
    logger.info("Shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Order management and prepaid wallet ledger backend",
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
        dict: Status, application information and Redis reachability
    """
    return {
        "status": "healthy",
        "redis": "connected" if await redis_client.ping_redis() else "unavailable",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Order Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
