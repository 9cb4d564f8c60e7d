"""
app.py - FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and allocation service, registers the router,
and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from seatplan.controllers.allocation_controller import router as allocation_router
from seatplan.repository.data_repository import DataRepository
from seatplan.services.allocation_service import AllocationService
from seatplan.utils.config import get_settings
from seatplan.utils.logger import get_logger


logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Build and wire the FastAPI application.

    The repository and service live on app.state; controllers resolve them
    through dependency providers.
    """
    settings = get_settings()

    repository = DataRepository(settings)
    allocation_service = AllocationService(repository=repository, settings=settings)

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

    app.include_router(allocation_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.allocation_service = allocation_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before the demo roster is seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if app.state.settings.seed_demo_roster:
        logger.info("Startup: seeding demo roster (skipped if Rooms table not empty)")
        repository.seed_demo_roster()

    logger.info("Startup complete | database=%s", repository.database_path)


# Module-level app object for uvicorn
app = create_app()
