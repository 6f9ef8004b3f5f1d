"""
FastAPI dependency utilities.

Routes reach the application startup, its configuration and the plugin
manager through the application state set by create_app.
"""

from fastapi import Depends, HTTPException, Request, status

from ...application.startup import ApplicationStartup
from ...infrastructure.config.models import ApplicationConfig
from ...plugins.manager import PluginManager


def get_startup(request: Request) -> ApplicationStartup:
    """
    Get the application startup from the request.

    Raises:
        HTTPException: If the application is not wired
    """
    if not hasattr(request.app.state, "startup"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application startup not available"
        )

    return request.app.state.startup


def get_config(request: Request) -> ApplicationConfig:
    """
    Get the application configuration from the request.

    Raises:
        HTTPException: If configuration is not available
    """
    if not hasattr(request.app.state, "config"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application configuration not available"
        )

    return request.app.state.config


def get_plugin_manager(startup: ApplicationStartup = Depends(get_startup)) -> PluginManager:
    try:
        return startup.plugin_manager
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Plugin manager not available: {e}"
        )
