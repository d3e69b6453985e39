"""
FastAPI Application Entry Point.

This is the main application file for the Accountability Ledger backend.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from accountability.app.core.config import settings
from accountability.app.api.v1.router import router as api_v1_router
from accountability.app.db.session import engine, Base, AsyncSessionLocal
from accountability.app.core.observability import ObservabilityMiddleware, configure_logging
from accountability.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from accountability.app.domain.lifecycle.lifecycle_engine import run_periodic_sweep
from accountability.app.services.notification_service import get_notification_sink

# Import models to ensure they are registered with Base
from accountability.app.models.user import User
from accountability.app.models.pair import Pair
from accountability.app.models.proposal import Proposal
from accountability.app.models.ledger_entry import LedgerEntry

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the periodic overdue sweep when `sweep_interval_seconds` > 0.
    3. On shutdown stops the sweep and waits for in-flight emails.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sink = get_notification_sink()
    sweeper = None
    if settings.sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            run_periodic_sweep(AsyncSessionLocal, sink, settings.sweep_interval_seconds)
        )

    yield

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    drain = getattr(sink, "drain", None)
    if drain is not None:
        await drain()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Two-person accountability ledger: task proposals with penalties",
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
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Accountability Ledger API",
        "docs": "/docs",
        "health": "/health",
    }
