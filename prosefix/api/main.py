"""
Prosefix Main Application
=========================

Local grammar correction and translation workbench.

Features:
- NDJSON streaming of per-paragraph results in input order
- Bounded concurrency against a local Ollama host
- Optional autostart of `ollama serve` for loopback hosts
- Runtime-editable, optionally persisted host configuration
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..core.config import ConfigStore, settings
from ..core.exceptions import ProsefixException
from ..services.gateway import ModelGateway, ModelInvoker
from ..services.host_monitor import ModelHostMonitor
from ..utils.logging import get_logger, setup_logging
from .middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    RequestTimingMiddleware,
    exception_handler,
    generic_exception_handler,
)
from .routes import router as api_router

setup_logging()
logger = get_logger(__name__)


def create_app(
    config_store: ConfigStore | None = None,
    host_monitor: ModelHostMonitor | None = None,
    gateway: ModelInvoker | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Services default to the real implementations; tests pass fakes.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # ==================== STARTUP ====================
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}")

        store = config_store or settings.create_config_store()
        app.state.config_store = store
        app.state.host_monitor = host_monitor or ModelHostMonitor(
            store.snapshot,
            binary=settings.OLLAMA_BINARY,
            poll_interval=settings.PROBE_INTERVAL_SECONDS,
            probe_timeout=settings.PROBE_TIMEOUT_SECONDS,
        )
        app.state.gateway = gateway or ModelGateway(store.snapshot, binary=settings.OLLAMA_BINARY)

        config = store.snapshot()
        logger.info(
            f"Model host {config.address} (autostart={config.autostart}, "
            f"concurrency={config.concurrency})"
        )
        if config.autostart:
            status = await app.state.host_monitor.ensure_running(allow_start=True)
            logger.info(f"Model host reachable={status.reachable} started={status.started}")

        yield  # Application runs here

        # ==================== SHUTDOWN ====================
        logger.info(f"Shutting down {settings.APP_NAME}")
        app.state.host_monitor.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Paragraph-level grammar correction and translation over a local Ollama host",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ==================== MIDDLEWARE CONFIGURATION ====================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=settings.ALLOWED_METHODS,
        allow_headers=settings.ALLOWED_HEADERS,
        expose_headers=["X-Process-Time", "X-Request-ID"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    # Added last so it runs first and the ID is set for the others
    app.add_middleware(RequestIDMiddleware)

    # ==================== EXCEPTION HANDLERS ====================
    app.add_exception_handler(ProsefixException, exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ==================== ROUTE REGISTRATION ====================
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": f"{settings.API_PREFIX}/health",
            "status": "operational",
        }

    return app


app = create_app()
