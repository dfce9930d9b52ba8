"""
FastAPI application factory.

Chooses the storage backend from settings, registers the default persona
listeners and exposes the persona routes.
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

import structlog
from fastapi import FastAPI

from multipersona import __version__
from multipersona.api.routes import router as persona_router
from multipersona.cache import TTLCache
from multipersona.config import Settings, get_settings
from multipersona.events import EventBus
from multipersona.personas.contracts import PersonaRepository, SessionStore
from multipersona.personas.listeners import register_listeners
from multipersona.personas.memory import InMemoryPersonaRepository, InMemorySessionRegistry
from multipersona.personas.types import PersonaId

logger = structlog.get_logger()

SessionFactory = Callable[[PersonaId], SessionStore]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database (postgres backend) and drain listeners on shutdown."""
    settings: Settings = app.state.settings
    uses_postgres = settings.storage_backend == "postgres"

    if uses_postgres:
        from multipersona.db import PersonaStore, SessionStore as PostgresSessionStore, close_db, init_db

        await init_db()
        await PersonaStore().create_tables()
        await PostgresSessionStore.create_tables()
        logger.info("database_initialized")

    logger.info(
        "multipersona_started",
        version=__version__,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    try:
        yield
    finally:
        logger.info("application_shutting_down")
        await app.state.bus.drain()
        if uses_postgres:
            await close_db()


def _default_storage(settings: Settings) -> tuple[PersonaRepository, SessionFactory]:
    if settings.storage_backend == "postgres":
        from multipersona.db import PersonaStore, SessionStore as PostgresSessionStore

        return PersonaStore(), PostgresSessionStore
    return InMemoryPersonaRepository(), InMemorySessionRegistry()


def create_app(
    repository: Optional[PersonaRepository] = None,
    sessions: Optional[SessionFactory] = None,
    bus: Optional[EventBus] = None,
    cache: Optional[TTLCache] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        repository: Persona repository (default from storage_backend).
        sessions: Callable returning a principal's session store.
        bus: Event bus notifications are published on.
        cache: Cache for persona permission snapshots.
        settings: Settings override.

    Returns:
        Configured FastAPI app instance.
    """
    settings = settings or get_settings()
    if repository is None or sessions is None:
        default_repository, default_sessions = _default_storage(settings)
        repository = repository or default_repository
        sessions = sessions or default_sessions

    app = FastAPI(
        title="multipersona",
        description="Switchable personas for authenticated principals",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = repository
    app.state.sessions = sessions
    app.state.bus = bus or EventBus()
    app.state.cache = cache or TTLCache()

    register_listeners(app.state.bus, app.state.cache)
    app.include_router(persona_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "version": __version__,
        }

    return app
