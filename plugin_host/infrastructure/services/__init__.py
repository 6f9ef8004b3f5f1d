"""
Backing service implementations: PostgreSQL, Kafka/ksqlDB and S3.
"""

from .database import PostgresDatabaseService
from .messaging import KafkaMessagingService
from .object_store import S3ObjectStoreService

__all__ = [
    "PostgresDatabaseService",
    "KafkaMessagingService",
    "S3ObjectStoreService",
]
