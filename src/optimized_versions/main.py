"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from optimized_versions import __version__
from optimized_versions.api import cache_router, files_router, jobs_router
from optimized_versions.core.config import Settings, load_settings
from optimized_versions.core.logging_config import configure_logging
from optimized_versions.database import create_engine, create_session_factory, init_db
from optimized_versions.services.catalog import MediaCatalog
from optimized_versions.services.encoder import CommandBuilder
from optimized_versions.services.job_store import JobStore
from optimized_versions.services.orchestrator import JobOrchestrator
from optimized_versions.services.process_supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[MediaCatalog] = None,
    command_builder: Optional[CommandBuilder] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to run with; loaded from the default locations if omitted
        catalog: Media catalog; loaded from storage.catalog_file if omitted
        command_builder: Override for the encoder command line
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        configure_logging(settings.logging)
        logger.info(f"Starting Optimized Versions Server v{__version__}")

        engine = create_engine(settings.database_url, echo=settings.database.echo)
        await init_db(engine)

        store = JobStore(
            create_session_factory(engine),
            cache_enabled=settings.jobs.cache_enabled,
            cache_size=settings.jobs.cache_size,
        )
        supervisor = ProcessSupervisor(
            kill_timeout=settings.jobs.kill_timeout_seconds,
            stderr_tail_lines=settings.jobs.stderr_tail_lines,
        )
        orchestrator = JobOrchestrator.from_settings(
            settings, store, supervisor, command_builder=command_builder
        )

        app.state.settings = settings
        app.state.catalog = catalog if catalog is not None else MediaCatalog.from_file(
            settings.storage.catalog_file
        )
        app.state.store = store
        app.state.orchestrator = orchestrator

        recovered = await orchestrator.recover()
        if recovered:
            logger.info(f"Recovered {recovered} unfinished jobs")
        await orchestrator.start()

        logger.info(f"Server ready on {settings.server.host}:{settings.server.port}")

        yield

        # Shutdown
        logger.info("Shutting down...")
        await orchestrator.stop()
        await engine.dispose()

    app = FastAPI(
        title="Optimized Versions Server",
        description="Transcoding job server for optimized media versions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(jobs_router)
    app.include_router(cache_router)
    app.include_router(files_router)

    @app.get("/")
    async def root() -> dict:
        """Root endpoint with server info."""
        return {
            "name": "Optimized Versions Server",
            "version": __version__,
            "status": "running",
        }

    @app.get("/health")
    async def health(request: Request) -> dict:
        """Health check endpoint."""
        orchestrator: JobOrchestrator = request.app.state.orchestrator
        return {
            "status": "healthy",
            "version": __version__,
            "queue": {
                "queued": orchestrator.queue_size,
                "workers": orchestrator.worker_count,
                "running_processes": orchestrator.supervisor.active_count,
            },
        }

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = load_settings()
    uvicorn.run(
        create_app(_settings),
        host=_settings.server.host,
        port=_settings.server.port,
    )
