# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
FastAPI Gateway Application

Main entry point for the Toolrelay API. Served through the factory:

    uvicorn --factory toolrelay.gateway.app:create_app
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ..core.async_base import Lifecycle
from ..core.settings import Settings, get_settings
from ..observability import configure_logging
from ..services.container import ServiceContainer
from .analysis_routes import router as analysis_router
from .chat_routes import router as chat_router
from .errors import register_exception_handlers
from .health import router as health_router
from .request_context import RequestContextMiddleware

logger = logging.getLogger(__name__)


# ============================================================
# LIFECYCLE
# ============================================================


def build_lifecycle(settings: Settings, container: ServiceContainer) -> Lifecycle:
    """Startup/shutdown hooks for one application instance."""
    lifecycle = Lifecycle()

    @lifecycle.on_startup
    async def startup_logging():
        configure_logging(level=settings.log_level, format=settings.log_format)
        logger.info(
            f"Logging configured: level={settings.log_level} format={settings.log_format} "
            f"environment={settings.environment}"
        )

    @lifecycle.on_startup
    async def startup_audit_store():
        await container.startup()
        logger.info("Audit store initialized")

    @lifecycle.on_startup
    async def startup_public_dir():
        Path(settings.analysis.public_dir).mkdir(parents=True, exist_ok=True)
        logger.info(f"Public directory ready: {settings.analysis.public_dir}")

    @lifecycle.on_shutdown
    async def shutdown_container():
        await container.shutdown()
        logger.info("Providers and audit store closed")

    return lifecycle


# ============================================================
# APPLICATION
# ============================================================


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (container.settings if container else get_settings())
    container = container or ServiceContainer(settings)
    lifecycle = build_lifecycle(settings, container)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """FastAPI lifespan context manager."""
        await lifecycle.startup()
        yield
        await lifecycle.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="OpenAI-compatible chat completions with server-side tool calling",
        version=settings.app_version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.lifecycle = lifecycle

    # --------------------------------------------------------
    # MIDDLEWARE
    # --------------------------------------------------------

    origins = settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        RequestContextMiddleware,
        header_name="X-Request-ID",
        log_requests=True,
    )

    # --------------------------------------------------------
    # EXCEPTION HANDLERS
    # --------------------------------------------------------

    register_exception_handlers(app, settings)

    # --------------------------------------------------------
    # ROUTES
    # --------------------------------------------------------

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(analysis_router)

    # Generated analysis pages
    app.mount(
        "/public",
        StaticFiles(directory=settings.analysis.public_dir, check_dir=False),
        name="public",
    )

    return app


__all__ = ["create_app", "build_lifecycle"]
