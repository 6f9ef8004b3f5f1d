"""
Core module containing domain models, interfaces, naming rules and errors.

Nothing in this module depends on external frameworks or backing services.
"""

from .domain.events import Event, EventPriority, SystemEvents
from .domain.plugin import Plugin, PluginMetadata, PluginState, ResourceOverrides
from .interfaces.messaging import IEventBus
from .interfaces.plugins import IPluginContext, IPluginEventBus, IPluginManager
from .services.event_bus import EventBus

__all__ = [
    "Event",
    "EventPriority",
    "SystemEvents",
    "Plugin",
    "PluginMetadata",
    "PluginState",
    "ResourceOverrides",
    "IEventBus",
    "IPluginContext",
    "IPluginEventBus",
    "IPluginManager",
    "EventBus",
]
