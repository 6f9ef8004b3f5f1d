"""
Plugin Host - plugin lifecycle management with capability gated access to
database tables, message topics and object storage buckets.

Plugins declare the resources they need; the host validates names and
dependencies, prefixes every resource with the plugin name, and hands each
plugin an isolated context that is invalidated when the plugin unloads.
"""

__version__ = "0.1.0"

from .core.domain.events import Event, EventPriority, SystemEvents
from .core.domain.plugin import Plugin, PluginMetadata, PluginState, ResourceOverrides
from .core.exceptions import PluginError
from .core.services.event_bus import EventBus
from .plugins.base import BasePlugin
from .plugins.manager import PluginManager

__all__ = [
    "Event",
    "EventPriority",
    "SystemEvents",
    "Plugin",
    "PluginMetadata",
    "PluginState",
    "ResourceOverrides",
    "PluginError",
    "EventBus",
    "BasePlugin",
    "PluginManager",
]
