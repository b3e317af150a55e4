"""
Fannax Match Prediction API Server

FastAPI server for fixtures, score predictions, settlement and the points
leaderboard.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from fannax.api.routes import router, limiter as routes_limiter
from fannax.database import db
from fannax.services.settlement_service import get_settlement_service

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Fannax API...")

    # Initialize database (create tables if they don't exist)
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - allow app to start even if initialization fails

    # Start settlement worker (0 disables it; cron/operator endpoint still work)
    settlement_service = get_settlement_service()
    if settlement_service.poll_interval_seconds > 0:
        try:
            settlement_service.start()
            logger.info("Settlement worker started")
        except Exception as e:
            logger.error(f"Failed to start settlement worker: {e}", exc_info=True)
    else:
        logger.info("Settlement worker disabled")

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Fannax API...")

    # Stop settlement worker; the prediction in flight finishes first
    try:
        await settlement_service.stop()
    except Exception as e:
        logger.error(f"Error stopping settlement worker: {e}", exc_info=True)

    try:
        await db.close_database()
    except Exception as e:
        logger.error(f"Error closing database: {e}", exc_info=True)


app = FastAPI(
    title="Fannax Match Prediction API",
    description="Fixtures, score predictions, settlement and leaderboard for football fans",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/api/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
