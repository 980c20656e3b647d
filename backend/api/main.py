"""
League Companion API Server

FastAPI server behind the league mobile app: season gate, attendance,
onboarding, announcements and the announcement push relay.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore
from sqlalchemy import text

from backend.api.routes import router, limiter as routes_limiter
from backend.database import db
from backend.database.init_defaults import init_defaults
from backend.alembic.env import run_migrations_online_programmatic

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
    logger.info("Starting up League Companion API...")

    # Migrations normally run from the container entrypoint; this is the
    # local development fallback. Alembic upgrades are idempotent.
    if os.getenv("RUN_MIGRATIONS_ON_STARTUP", "true").lower() == "true":
        try:
            logger.info("Running database migrations...")
            await run_migrations_online_programmatic()
            logger.info("✓ Database migrations completed")
        except Exception as e:
            logger.error(f"Database migration failed: {e}", exc_info=True)
            if os.getenv("ENV") == "production":
                raise

    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down League Companion API...")
    await db.engine.dispose()


app = FastAPI(
    title="League Companion API",
    description="Backend for the league app: season gate, attendance, onboarding and announcements",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware; origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:8081").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/health")
async def health():
    """Liveness plus a database round trip."""
    try:
        async with db.AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "ok"}
    except Exception as e:
        logger.warning(f"Health check database error: {e}")
        return {"status": "degraded", "database": "error"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
