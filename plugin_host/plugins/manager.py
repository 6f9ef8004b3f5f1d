"""
Plugin manager implementation for loading and managing plugins.

The manager owns the plugin registry, validates names and dependencies before
touching any state, builds a fresh context for every load and tears it down
on unload. Host notifications (loaded, unloaded, failed) are published on the
shared event bus under the SystemEvents.PLUGIN_* names.
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..core.domain.events import Event, SystemEvents
from ..core.domain.plugin import Plugin, PluginMetadata, PluginState, ResourceOverrides
from ..core.exceptions import (
    DependencyResolutionError,
    InvalidPluginFormatError,
    PluginError,
    PluginLoadError,
    PluginNotExecutableError,
    PluginNotFoundError,
    PluginUnloadAllError,
    PluginUnloadError,
    VALIDATION_ERRORS,
)
from ..core.interfaces.messaging import IEventBus
from ..core.interfaces.plugins import IModuleLoader, IPluginManager
from ..core.interfaces.services import IDatabaseService, IMessagingService, IObjectStoreService
from ..repositories.database import DatabaseRepository
from ..repositories.messaging import MessagingRepository
from ..repositories.object_store import ObjectStoreRepository
from .access import ResourceAccessController
from .context import ContextState, PluginContext, PluginEventBus
from .dependencies import DependencyResolver
from .loader import FileModuleLoader

logger = logging.getLogger(__name__)

MANAGER_SOURCE = "plugin_manager"


async def _call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class PluginManager(IPluginManager):
    """
    Plugin lifecycle manager.

    States per plugin name: absent -> LOADING -> LOADED -> UNLOADING -> absent.
    Backing services are optional; a plugin only gets a repository for the
    services that are configured.
    """

    def __init__(self, event_bus: IEventBus,
                 loader: Optional[IModuleLoader] = None,
                 database_service: Optional[IDatabaseService] = None,
                 messaging_service: Optional[IMessagingService] = None,
                 object_store_service: Optional[IObjectStoreService] = None,
                 config: Optional[Dict[str, Any]] = None) -> None:
        self._event_bus = event_bus
        self._loader = loader or FileModuleLoader()
        self._database_service = database_service
        self._messaging_service = messaging_service
        self._object_store_service = object_store_service
        self._config = config or {}

        self._resolver = DependencyResolver()
        self._access = ResourceAccessController()

        self._plugins: Dict[str, Plugin] = {}
        self._plugin_paths: Dict[str, str] = {}
        self._contexts: Dict[str, PluginContext] = {}
        self._states: Dict[str, PluginState] = {}
        self._overrides: Dict[str, ResourceOverrides] = {}
        self._reload_tasks: Set[asyncio.Task] = set()
        self._running = False

        self._plugin_directory = self._config.get('plugin_directory', 'plugins')
        self._auto_load = self._config.get('auto_load', True)

        for plugin_name, raw_overrides in (self._config.get('resource_overrides') or {}).items():
            self._overrides[plugin_name] = ResourceOverrides.from_dict(raw_overrides)

    @property
    def name(self) -> str:
        """Get component name."""
        return "PluginManager"

    @property
    def event_bus(self) -> IEventBus:
        return self._event_bus

    @property
    def plugin_directory(self) -> str:
        return self._plugin_directory

    async def start(self) -> None:
        """Start the shared event bus and auto-load the plugin directory."""
        if self._running:
            return

        logger.info("Starting plugin manager")

        await self._event_bus.start()
        self._running = True

        if self._auto_load and self._plugin_directory:
            try:
                await self.load_plugins_from_directory(self._plugin_directory)
            except PluginError as e:
                logger.error(f"Auto-loading plugins from {self._plugin_directory} failed: {e}")

        logger.info(f"Plugin manager started with {len(self._plugins)} plugin(s)")

    async def stop(self) -> None:
        """Unload every plugin and stop the shared event bus."""
        if not self._running:
            return

        logger.info("Stopping plugin manager...")

        for task in list(self._reload_tasks):
            task.cancel()
        if self._reload_tasks:
            await asyncio.gather(*self._reload_tasks, return_exceptions=True)

        try:
            await self.unload_all()
        except PluginUnloadAllError as e:
            logger.error(f"Errors while unloading plugins: {e}")

        await self._event_bus.stop()
        self._running = False
        logger.info("Plugin manager stopped")

    async def check_health(self) -> Dict[str, Any]:
        """Check plugin manager health."""
        plugins = {
            name: {
                'version': plugin.version,
                'state': self._states.get(name, PluginState.LOADED).value,
                'path': self._plugin_paths.get(name),
                'dependencies': list(plugin.metadata.dependencies),
            }
            for name, plugin in self._plugins.items()
        }

        return {
            'healthy': True,
            'status': 'running' if self._running else 'stopped',
            'details': {
                'loaded_plugins': len(self._plugins),
                'plugin_directory': self._plugin_directory,
                'auto_load': self._auto_load,
                'pending_reloads': len(self._reload_tasks),
                'plugins': plugins
            }
        }

    async def load_plugin(self, plugin_path: str,
                          overrides: Optional[ResourceOverrides] = None) -> Plugin:
        """
        Load a plugin from the given path.

        Overrides passed here are stored for the plugin; without them the
        previously stored overrides apply.

        Raises:
            InvalidPluginFormatError, InvalidNamingConventionError,
            DependencyNotFoundError, SelfDependencyError,
            CircularDependencyError: Unchanged validation errors
            PluginLoadError: For any other failure, including in initialize
            PluginUnloadError: If a previous instance fails to unload
        """
        logger.info(f"Loading plugin from: {plugin_path}")

        try:
            plugin = await self._loader.load(plugin_path)
        except InvalidPluginFormatError as e:
            await self._broadcast_failure(e)
            raise
        except Exception as e:
            error = PluginLoadError(plugin_path, e)
            await self._broadcast_failure(error)
            raise error from e

        metadata = plugin.metadata
        plugin_name = metadata.name
        effective_overrides = overrides if overrides is not None else self._overrides.get(plugin_name)

        try:
            self._validate(metadata, effective_overrides)
        except VALIDATION_ERRORS as e:
            logger.error(f"Plugin {plugin_name} rejected: {e}")
            await self._broadcast_failure(e, metadata)
            raise

        if overrides is not None:
            self._overrides[plugin_name] = overrides

        if plugin_name in self._plugins:
            logger.info(f"Plugin {plugin_name} is already loaded, unloading previous instance")
            await self.unload_plugin(plugin_name)

        self._states[plugin_name] = PluginState.LOADING
        self._resolver.record(plugin_name, metadata.dependencies)

        state = ContextState(plugin_name)
        context = self._create_context(metadata, effective_overrides, state)

        try:
            if plugin.initialize is not None:
                await _call_hook(plugin.initialize, context)
        except Exception as e:
            state.invalidate()
            await context.event_bus.remove_all()
            self._resolver.discard(plugin_name)
            self._states.pop(plugin_name, None)

            error = PluginLoadError(plugin_path, e, plugin_name)
            logger.error(str(error))
            await self._broadcast_failure(error, metadata)
            raise error from e

        self._plugins[plugin_name] = plugin
        self._plugin_paths[plugin_name] = plugin_path
        self._contexts[plugin_name] = context
        self._states[plugin_name] = PluginState.LOADED

        logger.info(f"Plugin loaded successfully: {plugin_name} v{metadata.version}")
        await self._notify(SystemEvents.PLUGIN_LOADED, plugin)
        return plugin

    async def unload_plugin(self, plugin_name: str) -> None:
        """
        Unload a plugin by name.

        The context is invalidated before cleanup runs. Teardown always
        completes; a cleanup failure is raised afterwards.

        Raises:
            PluginUnloadError: If the plugin's cleanup hook fails
        """
        plugin = self._plugins.get(plugin_name)
        if plugin is None:
            return

        logger.info(f"Unloading plugin: {plugin_name}")
        dependents = [
            name for name in self._resolver.dependents_of(plugin_name) if name in self._plugins
        ]
        if dependents:
            logger.warning(
                f"Unloading {plugin_name} while {', '.join(dependents)} still depend on it"
            )
        self._states[plugin_name] = PluginState.UNLOADING

        context = self._contexts.get(plugin_name)
        if context is not None:
            context.invalidate()

        cleanup_error: Optional[Exception] = None
        if plugin.cleanup is not None:
            try:
                await _call_hook(plugin.cleanup)
            except Exception as e:
                cleanup_error = e

        if context is not None:
            await context.event_bus.remove_all()

        self._resolver.discard(plugin_name)
        self._contexts.pop(plugin_name, None)
        self._plugins.pop(plugin_name, None)
        self._states.pop(plugin_name, None)

        await self._notify(SystemEvents.PLUGIN_UNLOADED, plugin.metadata)

        if cleanup_error is not None:
            error = PluginUnloadError(plugin_name, cleanup_error)
            logger.error(str(error))
            await self._broadcast_failure(error, plugin.metadata)
            raise error from cleanup_error

        logger.info(f"Plugin unloaded successfully: {plugin_name}")

    async def reload_plugin(self, plugin_name: str,
                            overrides: Optional[ResourceOverrides] = None) -> Plugin:
        """
        Reload a plugin from the path it was last loaded from.

        Raises:
            PluginNotFoundError: If the plugin was never loaded
        """
        plugin_path = self._plugin_paths.get(plugin_name)
        if plugin_path is None:
            error = PluginNotFoundError(plugin_name)
            await self._broadcast_failure(error)
            raise error

        logger.info(f"Reloading plugin: {plugin_name}")
        await self.unload_plugin(plugin_name)
        return await self.load_plugin(plugin_path, overrides)

    async def load_plugins_from_directory(self, directory: str) -> None:
        """
        Load every plugin in a directory once its dependencies are loaded.

        Plugins whose module cannot be parsed, or whose load fails, are
        logged and skipped.

        Raises:
            DependencyResolutionError: Naming every plugin that never became loadable
        """
        plugin_paths = await self._loader.discover(directory)

        pending: Dict[str, Tuple[str, PluginMetadata]] = {}
        for plugin_path in plugin_paths:
            try:
                descriptor = await self._loader.load(plugin_path)
            except Exception as e:
                logger.error(f"Failed to read plugin from {plugin_path}: {e}")
                continue

            if descriptor.name in pending:
                logger.warning(
                    f"Plugin {descriptor.name} found in both {pending[descriptor.name][0]} "
                    f"and {plugin_path}, using the latter"
                )
            pending[descriptor.name] = (plugin_path, descriptor.metadata)

        while pending:
            progress = False
            for plugin_name, (plugin_path, metadata) in list(pending.items()):
                if not self._resolver.is_satisfied(metadata.dependencies, self._plugins):
                    continue

                del pending[plugin_name]
                progress = True
                try:
                    await self.load_plugin(plugin_path)
                except PluginError as e:
                    logger.error(f"Failed to load plugin {plugin_name} from {plugin_path}: {e}")

            if not progress:
                break

        if pending:
            for plugin_name, (_, metadata) in pending.items():
                missing = self._resolver.missing(metadata.dependencies, self._plugins)
                logger.error(f"Plugin {plugin_name} has unresolved dependencies: {missing}")

            error = DependencyResolutionError(sorted(pending))
            await self._broadcast_failure(error)
            raise error

    async def unload_all(self) -> None:
        """
        Unload every loaded plugin concurrently.

        Raises:
            PluginUnloadAllError: Collecting every failure, after all unloads ran
        """
        plugin_names = list(self._plugins)
        if not plugin_names:
            return

        results = await asyncio.gather(
            *(self.unload_plugin(plugin_name) for plugin_name in plugin_names),
            return_exceptions=True
        )

        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            raise PluginUnloadAllError(errors)

    async def execute_plugin(self, plugin_name: str, payload: Any = None) -> Any:
        """
        Invoke a loaded plugin's execute hook.

        Raises:
            PluginNotFoundError: If the plugin is not loaded
            PluginNotExecutableError: If the plugin has no execute hook
        """
        plugin = self._plugins.get(plugin_name)
        if plugin is None:
            raise PluginNotFoundError(plugin_name)
        if plugin.execute is None:
            raise PluginNotExecutableError(plugin_name)

        return await _call_hook(plugin.execute, payload)

    def get_plugin(self, plugin_name: str) -> Optional[Plugin]:
        """Get a loaded plugin by name."""
        return self._plugins.get(plugin_name)

    def get_all_plugins(self) -> Dict[str, Plugin]:
        """Get all loaded plugins."""
        return self._plugins.copy()

    def get_plugin_names(self) -> List[str]:
        return list(self._plugins)

    def get_plugin_state(self, plugin_name: str) -> Optional[PluginState]:
        return self._states.get(plugin_name)

    def get_plugin_path(self, plugin_name: str) -> Optional[str]:
        """Path the plugin was last loaded from, kept after unload for reloads."""
        return self._plugin_paths.get(plugin_name)

    def find_plugin_by_path(self, plugin_path: str) -> Optional[Plugin]:
        target = Path(plugin_path).resolve()
        for plugin_name, path in self._plugin_paths.items():
            if plugin_name in self._plugins and Path(path).resolve() == target:
                return self._plugins[plugin_name]
        return None

    def is_plugin_loaded(self, plugin_name: str) -> bool:
        """Check if a plugin is loaded."""
        return plugin_name in self._plugins

    def get_plugin_context(self, plugin_name: str) -> Optional[PluginContext]:
        return self._contexts.get(plugin_name)

    def get_plugin_resource_overrides(self, plugin_name: str) -> Optional[ResourceOverrides]:
        return self._overrides.get(plugin_name)

    def set_plugin_resource_overrides(self, plugin_name: str,
                                      overrides: ResourceOverrides) -> Optional[asyncio.Task]:
        """
        Store overrides for a plugin.

        If the plugin is loaded it is reloaded in the background so the new
        resource set takes effect. The returned task resolves to the reloaded
        plugin, or None if the reload failed (failures are broadcast). No
        ordering is guaranteed between reloads scheduled by successive calls.
        Outside a running event loop nothing is scheduled and None is returned.
        """
        self._overrides[plugin_name] = overrides
        logger.info(f"Resource overrides set for plugin {plugin_name}")
        return self._schedule_reload(plugin_name)

    def clear_plugin_resource_overrides(self, plugin_name: str) -> Optional[asyncio.Task]:
        """Drop stored overrides; a loaded plugin is reloaded in the background."""
        self._overrides.pop(plugin_name, None)
        logger.info(f"Resource overrides cleared for plugin {plugin_name}")
        return self._schedule_reload(plugin_name)

    def _schedule_reload(self, plugin_name: str) -> Optional[asyncio.Task]:
        if plugin_name not in self._plugins:
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"No running event loop; overrides for plugin {plugin_name} "
                f"take effect on its next reload"
            )
            return None

        task = loop.create_task(self._background_reload(plugin_name))
        self._reload_tasks.add(task)
        task.add_done_callback(self._reload_tasks.discard)
        return task

    async def _background_reload(self, plugin_name: str) -> Optional[Plugin]:
        try:
            return await self.reload_plugin(plugin_name)
        except PluginError as e:
            logger.error(f"Background reload of plugin {plugin_name} failed: {e}")
            return None

    def _validate(self, metadata: PluginMetadata,
                  overrides: Optional[ResourceOverrides]) -> None:
        self._access.validate_names(metadata, overrides)
        self._resolver.validate(metadata.name, metadata.dependencies, self._plugins)

    def _create_context(self, metadata: PluginMetadata,
                        overrides: Optional[ResourceOverrides],
                        state: ContextState) -> PluginContext:
        scopes = self._access.build(metadata, overrides)
        guard = state.ensure_valid

        database = None
        if self._database_service is not None:
            database = DatabaseRepository(self._database_service, scopes.tables, guard=guard)

        messaging = None
        if self._messaging_service is not None:
            messaging = MessagingRepository(self._messaging_service, scopes.topics, guard=guard)

        object_store = None
        if self._object_store_service is not None:
            object_store = ObjectStoreRepository(
                self._object_store_service, scopes.buckets, guard=guard
            )

        return PluginContext(
            plugin_name=metadata.name,
            dependencies=metadata.dependencies,
            resolve_plugin=self.get_plugin,
            event_bus=PluginEventBus(self._event_bus, state),
            state=state,
            database=database,
            messaging=messaging,
            object_store=object_store,
        )

    async def _notify(self, event_name: str, data: Any) -> None:
        try:
            await self._event_bus.publish(Event(name=event_name, data=data, source=MANAGER_SOURCE))
        except RuntimeError as e:
            logger.error(f"Failed to publish {event_name}: {e}")

    async def _broadcast_failure(self, error: Exception,
                                 metadata: Optional[PluginMetadata] = None) -> None:
        await self._notify(SystemEvents.PLUGIN_FAILED, {'error': error, 'metadata': metadata})
