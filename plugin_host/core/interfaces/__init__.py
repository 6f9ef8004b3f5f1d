"""
Core interfaces defining the contracts for all major host components.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .messaging import IEventBus
from .plugins import IPluginEventBus, IPluginContext, IModuleLoader, IPluginManager
from .repositories import (
    IStatementScanner, IDatabaseRepository, IMessagingRepository, IObjectStoreRepository
)
from .services import IDatabaseService, IMessagingService, IObjectStoreService

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "IEventBus",
    "IPluginEventBus",
    "IPluginContext",
    "IModuleLoader",
    "IPluginManager",
    "IStatementScanner",
    "IDatabaseRepository",
    "IMessagingRepository",
    "IObjectStoreRepository",
    "IDatabaseService",
    "IMessagingService",
    "IObjectStoreService",
]
