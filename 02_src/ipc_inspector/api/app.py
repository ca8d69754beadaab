"""FastAPI application setup."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from ..logging_config import get_logger
from .routes import control, inspector, observability, windows

logger = get_logger(__name__)

# Vite dev servers of the viewer UI
DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:5174"

# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def set_app(application: Application | None) -> None:
    """Replace the global application instance (tests, embedding hosts)."""
    global _app
    _app = application


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Start the inspector and hand its tracing port to the simulator."""
    application = get_app()
    await application.start()

    sim = control.get_sim_instance()
    if sim is not None:
        sim.attach(application.trace_port, application.router, application.registry)
        logger.info("SIM attached to trace port")

    try:
        yield
    finally:
        if sim is not None:
            await sim.stop()
        await application.stop()


def create_fastapi_app() -> FastAPI:
    """Create and configure FastAPI application."""
    fastapi_app = FastAPI(
        title="IPC Inspector API",
        description="Trace capture, grouping and export for multi-process app messaging",
        version="0.1.0",
        lifespan=lifespan,
    )

    origins = os.getenv("INSPECTOR_CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application = get_app()
    for router in (
        observability.create_observability_router(application),
        inspector.create_inspector_router(application),
        control.create_control_router(application),
        windows.create_windows_router(application),
    ):
        fastapi_app.include_router(router)

    return fastapi_app
