"""
Backing service interfaces.

Each service is an optional collaborator of the plugin manager. Services
operate on actual (already prefixed) resource names and know nothing about
plugins; the repositories in plugin_host.repositories narrow them down to a
single plugin's allowed resources.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

Message = Mapping[str, Any]
MessageHandler = Callable[[Any], Union[Awaitable[None], None]]


class IDatabaseService(ABC):
    """Relational database with parameterized statements ($1, $2, ...)."""

    @abstractmethod
    async def query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query and return the result rows as dictionaries."""
        pass

    @abstractmethod
    async def execute(self, sql: str, parameters: Sequence[Any] = ()) -> int:
        """Run a command and return the number of affected rows."""
        pass


class IMessagingService(ABC):
    """Message broker with producers, consumers and a streaming SQL endpoint."""

    @abstractmethod
    async def send_message(self, topic: str, messages: Sequence[Message],
                           producer_id: str = "default") -> None:
        """Send messages ({'key': ..., 'value': ...}) to a topic."""
        pass

    @abstractmethod
    async def create_consumer(self, consumer_id: str, group_id: str) -> Any:
        """Create and connect a consumer registered under consumer_id."""
        pass

    @abstractmethod
    async def subscribe(self, consumer_id: str, topics: Sequence[str],
                        handler: MessageHandler) -> None:
        """Subscribe an existing consumer to topics and dispatch records to handler."""
        pass

    @abstractmethod
    async def disconnect_consumer(self, consumer_id: str) -> None:
        pass

    @abstractmethod
    async def execute_stream_statement(self, statement: str) -> Any:
        """Run a streaming SQL statement (CREATE STREAM, CREATE TABLE, ...)."""
        pass

    @abstractmethod
    async def execute_stream_query(self, query: str) -> Any:
        pass

    @abstractmethod
    async def get_stream_info(self) -> Any:
        pass

    @abstractmethod
    async def list_streams(self) -> Any:
        pass

    @abstractmethod
    async def list_tables(self) -> Any:
        pass


class IObjectStoreService(ABC):
    """Object storage addressed by an explicit bucket and key."""

    @abstractmethod
    async def upload(self, bucket: str, key: str, body: Union[bytes, str],
                     content_type: Optional[str] = None) -> None:
        pass

    @abstractmethod
    async def download(self, bucket: str, key: str) -> bytes:
        pass

    @abstractmethod
    async def delete(self, bucket: str, key: str) -> None:
        pass

    @abstractmethod
    async def list(self, bucket: str, prefix: Optional[str] = None) -> List[str]:
        """List object keys in a bucket, optionally filtered by prefix."""
        pass

    @abstractmethod
    async def exists(self, bucket: str, key: str) -> bool:
        pass

    @abstractmethod
    async def get_presigned_url(self, bucket: str, key: str, expires_in: int = 3600) -> str:
        pass
