"""
FastAPI application factory.

* Registers routes for tours, walking mode and admin.
* Disposes the database engine on shutdown via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from walkable.api.middleware import limiter
from walkable.api.routes import admin, tours, walking
from walkable.config import settings
from walkable.infrastructure.database import engine

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup; release pooled connections on shutdown."""
    logger.info("Walkable API starting")
    yield
    await engine.dispose()
    logger.info("Walkable API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Walkable Tours API",
        description=(
            "Discover location-tagged walking tours near you and walk them "
            "stop by stop, with audio/video playback that advances as each "
            "stop finishes."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(tours.router, prefix="/api/v1")
    app.include_router(walking.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
