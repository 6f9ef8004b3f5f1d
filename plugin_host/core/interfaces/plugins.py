"""
Plugin system interfaces.

These interfaces define the contract between the host and plugin code
(event bus view, plugin context) and the host-side contracts for loading
and managing plugins.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .lifecycle import IComponent
from .repositories import IDatabaseRepository, IMessagingRepository, IObjectStoreRepository
from ..domain.plugin import Plugin, PluginState, ResourceOverrides

Listener = Callable[[Any], Any]


class IPluginEventBus(ABC):
    """A plugin's isolated view of the shared event bus."""

    @abstractmethod
    async def emit(self, event: str, data: Any = None) -> None:
        """Publish an event tagged with the emitting plugin's name."""
        pass

    @abstractmethod
    async def on(self, event: str, listener: Listener) -> None:
        """
        Register a listener for events emitted by other plugins.

        The listener receives the event payload; it may be sync or async.
        Events emitted by the subscribing plugin itself are never delivered.
        """
        pass

    @abstractmethod
    async def once(self, event: str, listener: Listener) -> None:
        """Register a listener that is removed after its first delivery."""
        pass

    @abstractmethod
    async def off(self, event: str, listener: Listener) -> None:
        """Remove a listener previously registered with on() or once()."""
        pass


class IPluginContext(ABC):
    """Everything a plugin receives from the host when it is initialized."""

    @property
    @abstractmethod
    def plugin_name(self) -> str:
        pass

    @property
    @abstractmethod
    def is_valid(self) -> bool:
        """False once the plugin has started unloading."""
        pass

    @property
    @abstractmethod
    def event_bus(self) -> IPluginEventBus:
        pass

    @property
    @abstractmethod
    def database(self) -> Optional[IDatabaseRepository]:
        """Database repository, or None when no database is configured."""
        pass

    @property
    @abstractmethod
    def messaging(self) -> Optional[IMessagingRepository]:
        pass

    @property
    @abstractmethod
    def object_store(self) -> Optional[IObjectStoreRepository]:
        pass

    @abstractmethod
    def get_dependency(self, name: str) -> Optional[Plugin]:
        """
        Get a declared dependency.

        Returns:
            The loaded plugin, or None if the declared dependency is not loaded

        Raises:
            UndeclaredDependencyError: If name is not a declared dependency
        """
        pass

    @abstractmethod
    def get_dependencies(self) -> Dict[str, Plugin]:
        """Get every declared dependency that is currently loaded."""
        pass


class IModuleLoader(ABC):
    """Turns a filesystem path into a fresh plugin descriptor."""

    @abstractmethod
    async def load(self, path: str) -> Plugin:
        """
        Load a plugin from a path.

        Every call must produce a fresh descriptor; a module imported earlier
        from the same path must never be reused.

        Raises:
            InvalidPluginFormatError: If the module does not export a valid plugin
        """
        pass

    @abstractmethod
    async def discover(self, directory: str) -> List[str]:
        """Return candidate plugin paths in a directory."""
        pass


class IPluginManager(IComponent):
    """Operator-facing plugin lifecycle API."""

    @abstractmethod
    async def load_plugin(self, plugin_path: str,
                          overrides: Optional[ResourceOverrides] = None) -> Plugin:
        """
        Load a plugin from the given path.

        Raises:
            PluginError: A typed validation error, or PluginLoadError
        """
        pass

    @abstractmethod
    async def unload_plugin(self, plugin_name: str) -> None:
        """
        Unload a plugin by name; unknown names are ignored.

        Raises:
            PluginUnloadError: If the plugin's cleanup hook fails
        """
        pass

    @abstractmethod
    async def reload_plugin(self, plugin_name: str,
                            overrides: Optional[ResourceOverrides] = None) -> Plugin:
        """
        Reload a plugin from the path it was loaded from.

        Raises:
            PluginNotFoundError: If the plugin was never loaded
        """
        pass

    @abstractmethod
    async def load_plugins_from_directory(self, directory: str) -> None:
        """
        Load every plugin in a directory in dependency order.

        Raises:
            DependencyResolutionError: If some plugins could never be loaded
        """
        pass

    @abstractmethod
    async def unload_all(self) -> None:
        pass

    @abstractmethod
    def get_plugin(self, plugin_name: str) -> Optional[Plugin]:
        pass

    @abstractmethod
    def get_all_plugins(self) -> Dict[str, Plugin]:
        pass

    @abstractmethod
    def get_plugin_names(self) -> List[str]:
        pass

    @abstractmethod
    def get_plugin_state(self, plugin_name: str) -> Optional[PluginState]:
        pass

    @abstractmethod
    def find_plugin_by_path(self, plugin_path: str) -> Optional[Plugin]:
        pass

    @abstractmethod
    def is_plugin_loaded(self, plugin_name: str) -> bool:
        pass

    @abstractmethod
    def get_plugin_resource_overrides(self, plugin_name: str) -> Optional[ResourceOverrides]:
        pass

    @abstractmethod
    def set_plugin_resource_overrides(self, plugin_name: str,
                                      overrides: ResourceOverrides) -> Any:
        """Store overrides and reload the plugin in the background if it is loaded."""
        pass

    @abstractmethod
    def clear_plugin_resource_overrides(self, plugin_name: str) -> Any:
        pass

    @abstractmethod
    async def execute_plugin(self, plugin_name: str, payload: Any = None) -> Any:
        pass
