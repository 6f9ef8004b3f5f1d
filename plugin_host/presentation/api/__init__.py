"""
REST API components for the presentation layer.

This module contains FastAPI application setup, error mapping,
and API route definitions.
"""

from .app import create_app
from .dependencies import get_config, get_plugin_manager, get_startup

__all__ = [
    "create_app",
    "get_config",
    "get_plugin_manager",
    "get_startup",
]
