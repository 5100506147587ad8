"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the location directory and the search service, registers the
search router, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from roomfinder.controllers.search_controller import router as search_router
from roomfinder.repository.data_repository import DataRepository
from roomfinder.services.search_service import LocationSearchService
from roomfinder.utils.config import get_settings
from roomfinder.utils.logger import get_logger


logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Build and wire the FastAPI application.

    The SQLite repository serves as both the location directory and the
    availability lookup; services reach the routes through app.state.
    """
    settings = get_settings()

    repository = DataRepository(settings)
    search_service = LocationSearchService(
        location_provider=repository,
        availability_provider=repository,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(search_router)

    app.state.repository = repository
    app.state.search_service = search_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before the synthetic building is seeded; seeding is
    skipped when the directory already holds locations.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: seeding synthetic location directory")
    repository.seed_synthetic_data()

    logger.info(
        "Startup complete | locations=%s | bookings=%s",
        repository.count_locations(),
        repository.count_bookings(),
    )


# Module-level app object for uvicorn
app = create_app()
