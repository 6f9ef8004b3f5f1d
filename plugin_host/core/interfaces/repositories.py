"""
Plugin-facing repository interfaces.

A repository is what a plugin receives in its context: a backing service
narrowed to the resources the plugin is allowed to reach. Plugins always use
their own declared (unprefixed) resource names.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .services import Message, MessageHandler


class IStatementScanner(ABC):
    """
    Finds resource references embedded in statement text.

    Implementations are shallow syntactic scanners, not parsers; a stricter
    implementation can be substituted without touching the repositories.
    """

    @abstractmethod
    def scan(self, statement: str) -> List[str]:
        """Return every resource name referenced by the statement, in order."""
        pass

    @abstractmethod
    def rewrite(self, statement: str, resolve: Callable[[str], str]) -> str:
        """Return the statement with every referenced name replaced by resolve(name)."""
        pass


class IDatabaseRepository(ABC):

    @abstractmethod
    async def execute_query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query restricted to allowed tables and return its rows."""
        pass

    @abstractmethod
    async def execute_command(self, sql: str, parameters: Sequence[Any] = ()) -> int:
        """Run a command restricted to allowed tables and return the affected row count."""
        pass

    @abstractmethod
    def get_allowed_tables(self) -> List[str]:
        pass


class IMessagingRepository(ABC):

    @abstractmethod
    async def send_message(self, topic: str, messages: Sequence[Message],
                           producer_id: str = "default") -> None:
        pass

    @abstractmethod
    async def create_consumer(self, consumer_id: str, group_id: str) -> Any:
        pass

    @abstractmethod
    async def subscribe(self, consumer_id: str, topics: Sequence[str],
                        handler: MessageHandler) -> None:
        pass

    @abstractmethod
    async def disconnect_consumer(self, consumer_id: str) -> None:
        pass

    @abstractmethod
    async def execute_stream_statement(self, statement: str) -> Any:
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

    @abstractmethod
    def get_allowed_topics(self) -> List[str]:
        pass


class IObjectStoreRepository(ABC):

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
        pass

    @abstractmethod
    async def exists(self, bucket: str, key: str) -> bool:
        pass

    @abstractmethod
    async def get_presigned_url(self, bucket: str, key: str, expires_in: int = 3600) -> str:
        pass

    @abstractmethod
    def get_allowed_buckets(self) -> List[str]:
        pass
