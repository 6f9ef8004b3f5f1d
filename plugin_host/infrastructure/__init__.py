"""
Infrastructure layer: configuration, logging and backing service clients.

The backing service wrappers live in infrastructure.services and are
imported by the application startup when enabled.
"""

from .config.models import ApplicationConfig
from .config.loader import ConfigLoader
from .logging.setup import LoggingManager, setup_logging

__all__ = [
    "ApplicationConfig",
    "ConfigLoader",
    "LoggingManager",
    "setup_logging",
]
