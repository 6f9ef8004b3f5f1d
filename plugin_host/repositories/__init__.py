"""
Plugin-facing repositories gating access to backing services.
"""

from .database import DatabaseRepository
from .messaging import MessagingRepository
from .object_store import ObjectStoreRepository
from .scanners import SqlTableScanner, StreamTopicScanner

__all__ = [
    "DatabaseRepository",
    "MessagingRepository",
    "ObjectStoreRepository",
    "SqlTableScanner",
    "StreamTopicScanner",
]
