"""
FastAPI application initialization for the Meet Recorder API.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from meet_recorder.config import Settings, get_logger, settings as default_settings, setup_logging
from meet_recorder.core.exceptions import (
    OutputNotFoundError,
    RecorderException,
    RecordingStartError,
    SessionNotFoundError,
    ValidationError,
)
from meet_recorder.api.router import api_router
from meet_recorder.api.endpoints import health
from meet_recorder.scheduler import RetentionSweeper
from meet_recorder.services import RecordingManager, SessionRegistry
from meet_recorder.storage import SessionStore

logger = get_logger("app")

ERROR_STATUS_CODES = (
    ((ValidationError, RecordingStartError), status.HTTP_400_BAD_REQUEST),
    ((SessionNotFoundError, OutputNotFoundError), status.HTTP_404_NOT_FOUND),
)


def status_code_for(exc: RecorderException) -> int:
    """HTTP status code for a domain error."""
    for types, code in ERROR_STATUS_CODES:
        if isinstance(exc, types):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[SessionStore] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    """
    Build the application with its own store, registry and sweeper.

    Args:
        settings: Application settings (global settings if omitted)
        store: Session metadata store (created under the recordings dir if omitted)
        registry: Worker registry (a fresh one if omitted)
    """
    settings = settings or default_settings
    store = store or SessionStore(settings.recordings_dir)
    registry = registry or SessionRegistry(store)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Records Google Meet audio with a headless browser and ffmpeg",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.state.settings = settings
    app.state.store = store
    app.state.registry = registry
    app.state.recording_manager = RecordingManager(store, registry, settings)
    app.state.sweeper = RetentionSweeper(settings.recordings_dir, settings.retention, registry.is_active)
    app.state.started_at = time.monotonic()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(api_router, prefix="/api")
    app.include_router(health.router)

    @app.exception_handler(RecorderException)
    async def recorder_exception_handler(request: Request, exc: RecorderException):
        code = status_code_for(exc)
        if code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=code,
            content=jsonable_encoder({"error": exc.message, **exc.details}),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        )

    @app.on_event("startup")
    async def startup_event():
        """
        Application startup event.
        Configure logging and start the retention sweeper.
        """
        setup_logging(log_level=settings.log_level, log_dir=settings.log_dir)
        logger.info("Starting Meet Recorder API...")
        store.ensure_base_dir()
        logger.info(f"Recordings directory: {store.base_dir}")
        app.state.sweeper.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        """
        Application shutdown event.
        Stop the sweeper and every active recording worker.
        """
        logger.info("Shutting down Meet Recorder API...")
        app.state.sweeper.stop()
        await registry.shutdown(timeout=settings.recording.worker_shutdown_timeout_seconds)
        logger.info("Meet Recorder API shutdown complete")

    return app


app = create_app()
