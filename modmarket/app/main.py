"""
FastAPI Application Entry Point.

This is the main application file for the Mod Marketplace Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from modmarket.app.core.config import settings
from modmarket.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from modmarket.app.api.v1.router import router as api_v1_router
from modmarket.app.db.session import engine, Base, AsyncSessionLocal
from modmarket.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from modmarket.app.services.reconciliation_scheduler import ReconciliationScheduler

# Import models to ensure they are registered with Base
from modmarket.app.models.user import User
from modmarket.app.models.audit_log import AuditLog
from modmarket.app.models.catalog import Mod, Developer, Bundle
from modmarket.app.models.server import Server
from modmarket.app.models.entitlement import PurchaseEntitlement, Subscription
from modmarket.app.models.profit_trail import ProfitTrail


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Creates database tables on startup.
    2. Starts the reconciliation loop (when enabled) and stops it on shutdown.
    """
    configure_logging()
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    scheduler = None
    if settings.reconciliation_enabled:
        scheduler = ReconciliationScheduler(
            AsyncSessionLocal,
            interval_seconds=settings.reconciliation_interval_hours * 3600,
            initial_delay_seconds=settings.reconciliation_initial_delay_seconds,
        )
        scheduler.start()
        logger.info("Reconciliation loop started")
    app.state.reconciliation_scheduler = scheduler
    
    yield
    
    if scheduler is not None:
        await scheduler.stop()
        logger.info("Reconciliation loop stopped")


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Entitlement and ledger backend for a game-mod marketplace",
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
        dict: Status, application information and reconciliation loop state
    """
    scheduler = getattr(app.state, "reconciliation_scheduler", None)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "reconciliation_running": bool(scheduler and scheduler.running),
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
        "message": "Welcome to Mod Marketplace Backend API",
        "docs": "/docs",
        "health": "/health",
    }
