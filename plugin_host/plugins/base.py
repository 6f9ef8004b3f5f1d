"""
Base class for plugins written as classes.

Plugin modules may export a BasePlugin subclass as ``plugin``; the loader
instantiates it and uses its ``metadata`` and hook methods.
"""

import logging
from typing import Any, Dict, Optional, Union

from ..core.domain.plugin import PluginMetadata
from ..core.interfaces.plugins import IPluginContext


class BasePlugin:
    """
    Convenience base class for plugin authors.

    Subclasses set ``metadata`` and override ``on_initialize``,
    ``on_cleanup`` and ``on_execute`` as needed. The context handed to
    initialize is kept on the instance and dropped on cleanup.
    """

    metadata: Union[PluginMetadata, Dict[str, Any]] = {}

    def __init__(self) -> None:
        self._context: Optional[IPluginContext] = None
        self._logger: Optional[logging.Logger] = None

    @property
    def name(self) -> str:
        if isinstance(self.metadata, PluginMetadata):
            return self.metadata.name
        return str(self.metadata.get('name', self.__class__.__name__))

    @property
    def context(self) -> IPluginContext:
        """Get the plugin context; only available between initialize and cleanup."""
        if self._context is None:
            raise RuntimeError(f"Plugin {self.name} is not initialized")
        return self._context

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            self._logger = logging.getLogger(f"plugin.{self.name}")
        return self._logger

    async def initialize(self, context: IPluginContext) -> None:
        self._context = context
        self.logger.info(f"Initializing plugin: {self.name}")
        await self.on_initialize()

    async def cleanup(self) -> None:
        self.logger.info(f"Cleaning up plugin: {self.name}")
        try:
            await self.on_cleanup()
        finally:
            self._context = None

    async def execute(self, payload: Any = None) -> Any:
        return await self.on_execute(payload)

    # Hook methods for subclasses to override

    async def on_initialize(self) -> None:
        """Called when the plugin is initialized with its context."""
        pass

    async def on_cleanup(self) -> None:
        """Called when the plugin is unloaded, after its context is invalidated."""
        pass

    async def on_execute(self, payload: Any) -> Any:
        """Called when an operator executes the plugin."""
        return None

    # Utility methods

    async def emit_event(self, event_name: str, data: Any = None) -> None:
        await self.context.event_bus.emit(event_name, data)
