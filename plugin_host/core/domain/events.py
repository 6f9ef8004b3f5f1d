"""
Event domain models for the shared event bus.

Host components and plugins communicate through immutable events. Events
emitted by plugins carry the emitting plugin's name as their source and a
scope marker in their metadata, which lets the bus adapter tell plugin
traffic apart from host notifications.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional

PLUGIN_SCOPE = "plugin"


class EventPriority(IntEnum):
    """Dispatch order on the bus queue; higher values are delivered first."""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class Event:
    """
    A single message on the shared bus.

    ``source`` is the plugin name for plugin traffic and ``plugin_manager``
    for lifecycle notifications. Events order by priority, then by age, so
    they can sit directly in an asyncio PriorityQueue.
    """

    name: str
    data: Any = None
    priority: EventPriority = EventPriority.NORMAL
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    source: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Event name cannot be empty")
        if not isinstance(self.priority, EventPriority):
            raise ValueError(f"Invalid event priority: {self.priority!r}")

    def __lt__(self, other: 'Event') -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        if self.priority != other.priority:
            return self.priority > other.priority
        return self.timestamp < other.timestamp

    @property
    def is_plugin_event(self) -> bool:
        """Whether the event was emitted by a plugin through its context."""
        return self.metadata.get('scope') == PLUGIN_SCOPE


class SystemEvents:
    """Names of the notifications the plugin manager publishes."""

    PLUGIN_LOADED = "system.plugin.loaded"
    PLUGIN_UNLOADED = "system.plugin.unloaded"
    PLUGIN_FAILED = "system.plugin.failed"
