"""
Configuration infrastructure: dataclass models and the YAML/JSON/env loader.
"""

from .models import (
    ApiConfig,
    ApplicationConfig,
    DatabaseConfig,
    LoggingConfig,
    MessagingConfig,
    ObjectStoreConfig,
    PluginConfig,
)
from .loader import ConfigLoader

__all__ = [
    "ApiConfig",
    "ApplicationConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "MessagingConfig",
    "ObjectStoreConfig",
    "PluginConfig",
    "ConfigLoader",
]
