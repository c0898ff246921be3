"""FastAPI application factory."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from verse_copilot import __version__
from verse_copilot.api.routes import completions, settings
from verse_copilot.config import AppConfig, get_config
from verse_copilot.services.completion_service import CompletionService
from verse_copilot.services.config_service import ConfigService
from verse_copilot.services.events import EventBus


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the similarity cache sweeper for the lifetime of the server."""
    cache = app.state.completion_service.orchestrator.cache
    if cache is not None:
        cache.start_sweeper()
    try:
        yield
    finally:
        if cache is not None:
            await cache.stop_sweeper()


def create_app(
    config: Optional[AppConfig] = None,
    env_file: Optional[Path] = None,
    completion_service: Optional[CompletionService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Verse Copilot API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Completion services
    completion_service = completion_service or CompletionService(
        config or get_config(), event_bus=EventBus()
    )
    completions.set_completion_service(completion_service)
    app.include_router(completions.router)

    # Settings service; applied changes reach the orchestrator
    config_service = ConfigService(env_file=env_file, on_change=completion_service.apply_config)
    settings.set_config_service(config_service)
    app.include_router(settings.router)

    app.state.completion_service = completion_service

    @app.get("/api/v1/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app
