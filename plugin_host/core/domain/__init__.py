"""
Domain models representing plugins, resource overrides and events.

This module contains pure domain models without external dependencies.
"""

from .events import Event, EventPriority, SystemEvents, PLUGIN_SCOPE
from .plugin import Plugin, PluginMetadata, PluginState, ResourceOverrides

__all__ = [
    "Event",
    "EventPriority",
    "SystemEvents",
    "PLUGIN_SCOPE",
    "Plugin",
    "PluginMetadata",
    "PluginState",
    "ResourceOverrides",
]
