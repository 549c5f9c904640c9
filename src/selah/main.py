"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from selah.config import get_settings
from selah.database import close_db, get_session, init_db
from selah.health.router import router as health_router
from selah.middleware import setup_middleware
from selah.progression.router import router as progression_router
from selah.progression.seed import seed_achievements


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)

    # Seed the achievement catalog (idempotent)
    if settings.seed_on_startup:
        try:
            async for db in get_session():
                await seed_achievements(db)
                break
        except Exception:
            logging.getLogger(__name__).warning(
                "Achievement seeding failed (tables may not exist yet)", exc_info=True,
            )

    yield

    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Selah Progression API",
        description="Reading streaks, XP levels and achievements for Bible study",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progression_router)

    return app


app = create_app()
