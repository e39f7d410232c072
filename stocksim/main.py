"""
FastAPI application entry point.

Run with: uvicorn stocksim.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stocksim._version import VERSION
from stocksim.config import CORS_ORIGINS, SCHEDULER_ENABLED
from stocksim.database import init_db

# Import models to ensure they're registered with SQLAlchemy
from stocksim.models import Competition, Team, User  # noqa: F401
from stocksim.quotes import close_price_oracle
from stocksim.routers import (
    admin_router,
    competitions_router,
    teams_router,
    trading_router,
    users_router,
)
from stocksim.scheduler import QuickPicsScheduler
from stocksim import telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup: Create database tables, initialize telemetry, start the
    Quick Pics scheduler.
    Shutdown: Stop the scheduler and close the quote client.
    """
    # Startup
    await init_db()
    logger.info("Database initialized")

    if telemetry.setup_telemetry():
        # Attach OTLP handler to root logger for log export
        handler = telemetry.get_log_handler()
        if handler:
            logging.getLogger().addHandler(handler)
            logging.getLogger().setLevel(logging.INFO)
        logger.info("Telemetry initialized (OTLP metrics + logs enabled)")
    else:
        logger.info("Telemetry disabled")

    scheduler = None
    if SCHEDULER_ENABLED:
        scheduler = QuickPicsScheduler()
        scheduler.start()
    app.state.scheduler = scheduler

    yield

    # Shutdown
    if scheduler is not None:
        scheduler.shutdown()
    await close_price_oracle()
    logger.info("Application shutting down")


# Create FastAPI application
app = FastAPI(
    title="Stock Simulator API",
    description="Paper trading with personal, competition and team accounts",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Register routers
# Admin routes stay at /admin; the browser UI calls the rest at the root
app.include_router(admin_router, prefix="/admin", tags=["admin"])
app.include_router(users_router, tags=["users"])
app.include_router(trading_router, tags=["trading"])
app.include_router(competitions_router, tags=["competitions"])
app.include_router(teams_router, tags=["teams"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/version")
async def get_version():
    """Get API version information."""
    return {
        "version": VERSION,
        "api_version": "v1",
    }
