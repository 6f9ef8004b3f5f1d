"""
Application startup and shutdown.

Builds the shared event bus, the enabled backing services and the plugin
manager from configuration, then starts them in dependency order and stops
them in reverse.
"""

import logging
from typing import List, Optional

from ..core.interfaces.lifecycle import IComponent
from ..core.interfaces.services import IDatabaseService, IMessagingService, IObjectStoreService
from ..core.services.event_bus import EventBus
from ..infrastructure.config.models import ApplicationConfig
from ..infrastructure.logging.setup import LoggingManager
from ..plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class ApplicationStartup:
    """
    Owns every long lived component of the host.

    Backing services are only constructed when enabled in configuration;
    the plugin manager gets None for the others.
    """

    def __init__(self, config: ApplicationConfig) -> None:
        self._config = config
        self._started_components: List[IComponent] = []

        self.logging_manager = LoggingManager(config.logging)
        self.event_bus = EventBus()
        self.database_service: Optional[IDatabaseService] = None
        self.messaging_service: Optional[IMessagingService] = None
        self.object_store_service: Optional[IObjectStoreService] = None
        self._plugin_manager: Optional[PluginManager] = None

    @property
    def plugin_manager(self) -> PluginManager:
        if self._plugin_manager is None:
            raise RuntimeError("Application services are not configured")
        return self._plugin_manager

    def configure_services(self) -> None:
        """Create the enabled backing services and the plugin manager."""
        logger.info("Configuring application services...")

        if self._config.database.enabled:
            from ..infrastructure.services.database import PostgresDatabaseService
            self.database_service = PostgresDatabaseService(self._config.database)

        if self._config.messaging.enabled:
            from ..infrastructure.services.messaging import KafkaMessagingService
            self.messaging_service = KafkaMessagingService(self._config.messaging)

        if self._config.object_store.enabled:
            from ..infrastructure.services.object_store import S3ObjectStoreService
            self.object_store_service = S3ObjectStoreService(self._config.object_store)

        plugin_config = {
            'plugin_directory': self._config.plugins.plugin_directory,
            'auto_load': self._config.plugins.auto_load,
            'resource_overrides': self._config.plugins.resource_overrides,
        }
        self._plugin_manager = PluginManager(
            self.event_bus,
            database_service=self.database_service,
            messaging_service=self.messaging_service,
            object_store_service=self.object_store_service,
            config=plugin_config,
        )

        logger.info("Service configuration completed")

    def _startup_order(self) -> List[IComponent]:
        components: List[IComponent] = [self.logging_manager]
        for service in (self.database_service, self.messaging_service, self.object_store_service):
            if isinstance(service, IComponent):
                components.append(service)
        components.append(self.plugin_manager)
        return components

    async def start_application(self) -> None:
        """Start all components; on failure stop the ones already started."""
        if self._plugin_manager is None:
            self.configure_services()

        logger.info("Starting application components...")

        for component in self._startup_order():
            try:
                logger.debug(f"Starting component: {component.name}")
                await component.start()
                self._started_components.append(component)
                logger.info(f"Started component: {component.name}")
            except Exception as e:
                logger.error(f"Failed to start component {component.name}: {e}")
                await self.stop_application()
                raise

        logger.info("Application startup completed successfully")

    async def stop_application(self) -> None:
        """Stop all started components in reverse order."""
        logger.info("Stopping application components...")

        for component in reversed(self._started_components):
            try:
                logger.debug(f"Stopping component: {component.name}")
                await component.stop()
                logger.info(f"Stopped component: {component.name}")
            except Exception as e:
                logger.error(f"Error stopping component {component.name}: {e}")

        self._started_components.clear()
        logger.info("Application shutdown completed")

    @property
    def started_components(self) -> List[IComponent]:
        return list(self._started_components)
