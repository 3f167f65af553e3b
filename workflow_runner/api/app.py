"""
FastAPI application factory.

Creates and configures the workflow runner API application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from workflow_runner import __version__
from workflow_runner.api.routes import router
from workflow_runner.config import get_settings
from workflow_runner.orchestrator.engine import WorkflowOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the orchestrator from settings on startup.
    """
    settings = get_settings()

    logger.info("Starting Workflow Runner...")

    orchestrator = WorkflowOrchestrator(
        config=settings.engine.to_engine_config(),
        log_events=settings.log_events,
    )
    app.state.orchestrator = orchestrator
    logger.info(f"Orchestrator initialized: {orchestrator.get_config().model_dump()}")

    logger.info(f"Workflow Runner started - Environment: {settings.environment.value}")

    yield

    logger.info("Shutting down Workflow Runner...")
    orchestrator.events.clear()
    logger.info("Workflow Runner shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="In-process workflow runner with retries, timeouts and skip propagation",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
        docs_url="/docs" if settings.is_development or settings.debug else None,
        redoc_url="/redoc" if settings.is_development or settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "status": "running",
        }

    return app


# Application instance for uvicorn
app = create_app()
