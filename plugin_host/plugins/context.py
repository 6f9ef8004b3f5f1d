"""
Plugin context and per-plugin event bus adapter.

A context is created fresh for every load of a plugin and bundles everything
the plugin may touch: its isolated view of the shared event bus, accessors for
its declared dependencies, and the repositories gating the backing services.
The context shares a single validity flag with its event bus adapter and
repositories; once the host invalidates it, every one of them refuses to work.
"""

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.domain.events import Event, PLUGIN_SCOPE
from ..core.domain.plugin import Plugin
from ..core.exceptions import PluginContextInvalidError, UndeclaredDependencyError
from ..core.interfaces.messaging import IEventBus
from ..core.interfaces.plugins import IPluginContext, IPluginEventBus, Listener
from ..core.interfaces.repositories import (
    IDatabaseRepository, IMessagingRepository, IObjectStoreRepository
)

logger = logging.getLogger(__name__)


class ContextState:
    """Validity flag shared by a context and everything handed out through it."""

    def __init__(self, plugin_name: str):
        self.plugin_name = plugin_name
        self._valid = True

    @property
    def valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        self._valid = False

    def ensure_valid(self) -> None:
        if not self._valid:
            raise PluginContextInvalidError(self.plugin_name)


@dataclass
class _ListenerRecord:
    event: str
    listener: Listener
    subscription_id: str
    once: bool = False
    consumed: bool = False


class PluginEventBus(IPluginEventBus):
    """
    One plugin's view of the shared event bus.

    Outgoing events are tagged with the plugin's name. Listeners only receive
    events emitted by other plugins, never the plugin's own events and never
    host notifications. Every registration is recorded so the host can remove
    all of them in one pass when the plugin unloads.
    """

    def __init__(self, bus: IEventBus, state: ContextState):
        self._bus = bus
        self._state = state
        self._registry: Dict[str, List[_ListenerRecord]] = defaultdict(list)

    @property
    def plugin_name(self) -> str:
        return self._state.plugin_name

    @property
    def listener_count(self) -> int:
        return sum(len(records) for records in self._registry.values())

    def listeners(self, event: str) -> List[Listener]:
        return [record.listener for record in self._registry.get(event, [])]

    async def emit(self, event: str, data: Any = None) -> None:
        self._state.ensure_valid()
        await self._bus.publish(Event(
            name=event,
            data=data,
            source=self.plugin_name,
            metadata={'scope': PLUGIN_SCOPE}
        ))

    async def on(self, event: str, listener: Listener) -> None:
        await self._register(event, listener, once=False)

    async def once(self, event: str, listener: Listener) -> None:
        await self._register(event, listener, once=True)

    async def off(self, event: str, listener: Listener) -> None:
        self._state.ensure_valid()

        records = self._registry.get(event, [])
        for record in [r for r in records if r.listener == listener]:
            await self._bus.unsubscribe(record.subscription_id)
            records.remove(record)

        if not records:
            self._registry.pop(event, None)

    async def remove_all(self) -> None:
        """Remove every recorded listener from the shared bus, skipping failures."""
        for event, records in list(self._registry.items()):
            for record in records:
                try:
                    await self._bus.unsubscribe(record.subscription_id)
                except Exception as e:
                    logger.warning(
                        f"Failed to remove listener for '{event}' of plugin {self.plugin_name}: {e}"
                    )
        self._registry.clear()

    async def _register(self, event: str, listener: Listener, once: bool) -> None:
        self._state.ensure_valid()

        record = _ListenerRecord(event=event, listener=listener, subscription_id="", once=once)

        async def deliver(bus_event: Event) -> None:
            if not self._state.valid or record.consumed:
                return
            if not bus_event.is_plugin_event or bus_event.source == self.plugin_name:
                return

            if record.once:
                record.consumed = True
                await self._discard(record)

            result = listener(bus_event.data)
            if inspect.isawaitable(result):
                await result

        record.subscription_id = await self._bus.subscribe(event, deliver)
        self._registry[event].append(record)

    async def _discard(self, record: _ListenerRecord) -> None:
        await self._bus.unsubscribe(record.subscription_id)
        records = self._registry.get(record.event, [])
        if record in records:
            records.remove(record)
        if not records:
            self._registry.pop(record.event, None)


class PluginContext(IPluginContext):
    """The object passed to a plugin's initialize hook."""

    def __init__(self, plugin_name: str, dependencies: Sequence[str],
                 resolve_plugin: Callable[[str], Optional[Plugin]],
                 event_bus: PluginEventBus, state: ContextState,
                 database: Optional[IDatabaseRepository] = None,
                 messaging: Optional[IMessagingRepository] = None,
                 object_store: Optional[IObjectStoreRepository] = None):
        self._plugin_name = plugin_name
        self._dependencies = list(dependencies)
        self._resolve_plugin = resolve_plugin
        self._event_bus = event_bus
        self._state = state
        self._database = database
        self._messaging = messaging
        self._object_store = object_store

    @property
    def plugin_name(self) -> str:
        return self._plugin_name

    @property
    def is_valid(self) -> bool:
        return self._state.valid

    @property
    def event_bus(self) -> PluginEventBus:
        return self._event_bus

    @property
    def database(self) -> Optional[IDatabaseRepository]:
        return self._database

    @property
    def messaging(self) -> Optional[IMessagingRepository]:
        return self._messaging

    @property
    def object_store(self) -> Optional[IObjectStoreRepository]:
        return self._object_store

    def invalidate(self) -> None:
        self._state.invalidate()

    def ensure_valid(self) -> None:
        self._state.ensure_valid()

    def get_dependency(self, name: str) -> Optional[Plugin]:
        self._state.ensure_valid()
        if name not in self._dependencies:
            raise UndeclaredDependencyError(self._plugin_name, name)
        return self._resolve_plugin(name)

    def get_dependencies(self) -> Dict[str, Plugin]:
        self._state.ensure_valid()
        dependencies = {}
        for name in self._dependencies:
            plugin = self._resolve_plugin(name)
            if plugin is not None:
                dependencies[name] = plugin
        return dependencies
