"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api import health, media
from app.api.webhooks import calls
from app.core.dependencies import get_profile_repository, shutdown_dependencies
from app.core.logging import setup_logging
from app.db.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    profiles = get_profile_repository()
    logger.info(f"[STARTUP] Loaded caller profiles for: {', '.join(profiles.phone_numbers())}")
    yield
    # Shutdown
    await shutdown_dependencies()


app = FastAPI(
    title="ACS Realtime Voice Agent",
    description="Bridges Azure Communication Services calls to a realtime voice model",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(calls.router, prefix="/api", tags=["calls"])
app.include_router(media.router, tags=["media"])


@app.get("/")
async def root():
    """Service banner."""
    return {
        "message": "ACS Realtime Voice Agent",
        "version": "0.1.0",
    }


if __name__ == "__main__":
    import uvicorn

    from app.core.config import settings

    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
