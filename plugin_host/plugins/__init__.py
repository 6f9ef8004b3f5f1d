"""
Plugin system: lifecycle management, dependency validation, resource access
control and the per-plugin context.
"""

from .access import ResourceAccessController, ResourceScope
from .base import BasePlugin
from .context import PluginContext, PluginEventBus
from .dependencies import DependencyResolver
from .loader import FileModuleLoader
from .manager import PluginManager

__all__ = [
    "PluginManager",
    "BasePlugin",
    "PluginContext",
    "PluginEventBus",
    "DependencyResolver",
    "ResourceAccessController",
    "ResourceScope",
    "FileModuleLoader",
]
