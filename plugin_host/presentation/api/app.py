"""
FastAPI application factory and configuration.

This module creates and configures the FastAPI application with
middleware, error handling, and route registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ...application.startup import ApplicationStartup
from ...core.exceptions import PluginError
from ...infrastructure.config.models import ApplicationConfig
from .middleware import ErrorHandlerMiddleware, plugin_error_handler
from .routers import health, plugins

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Components are started and stopped by the main startup process; the API
    only logs the transitions.
    """
    logger.info("API starting up...")
    yield
    logger.info("API shutting down...")


def create_app(startup: ApplicationStartup, config: ApplicationConfig) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        startup: Application startup owning the plugin manager
        config: Application configuration

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=config.name,
        version=config.version,
        description="Plugin host with capability gated database, messaging and object store access",
        debug=config.debug,
        lifespan=lifespan
    )

    app.state.startup = startup
    app.state.config = config

    _configure_middleware(app, config)
    app.add_exception_handler(PluginError, plugin_error_handler)
    _register_routes(app)

    logger.info(f"FastAPI application created: {config.name} v{config.version}")
    return app


def _configure_middleware(app: FastAPI, config: ApplicationConfig) -> None:
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.debug("Middleware configured")


def _register_routes(app: FastAPI) -> None:
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(plugins.router)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with basic application information."""
        return {
            "name": app.title,
            "version": app.version,
            "status": "running",
            "docs_url": "/docs",
            "health_url": "/health"
        }

    logger.debug("Routes registered")
