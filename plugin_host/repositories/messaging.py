"""
Messaging repository restricted to a plugin's allowed topics.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

from ..core.interfaces.repositories import IMessagingRepository, IStatementScanner
from ..core.interfaces.services import IMessagingService, Message, MessageHandler
from .scanners import StreamTopicScanner

if TYPE_CHECKING:
    from ..plugins.access import ResourceScope

logger = logging.getLogger(__name__)


class MessagingRepository(IMessagingRepository):
    """
    Narrows a messaging service to the topics a plugin may reach.

    Consumer management and stream introspection pass straight through since
    they do not name topics. Streaming SQL is scanned for KAFKA_TOPIC clauses,
    which are checked and rewritten like direct topic arguments.
    """

    def __init__(self, service: IMessagingService, scope: "ResourceScope",
                 scanner: Optional[IStatementScanner] = None,
                 guard: Optional[Callable[[], None]] = None):
        self._service = service
        self._scope = scope
        self._scanner = scanner or StreamTopicScanner()
        self._guard = guard

    def _check_valid(self) -> None:
        if self._guard is not None:
            self._guard()

    def _prepare_statement(self, statement: str) -> str:
        self._check_valid()
        for topic in self._scanner.scan(statement):
            self._scope.check(topic)
        return self._scanner.rewrite(statement, self._scope.resolve)

    async def send_message(self, topic: str, messages: Sequence[Message],
                           producer_id: str = "default") -> None:
        self._check_valid()
        actual_topic = self._scope.check(topic)
        await self._service.send_message(actual_topic, list(messages), producer_id)

    async def create_consumer(self, consumer_id: str, group_id: str) -> Any:
        self._check_valid()
        return await self._service.create_consumer(consumer_id, group_id)

    async def subscribe(self, consumer_id: str, topics: Sequence[str],
                        handler: MessageHandler) -> None:
        self._check_valid()
        actual_topics = [self._scope.check(topic) for topic in topics]
        await self._service.subscribe(consumer_id, actual_topics, handler)

    async def disconnect_consumer(self, consumer_id: str) -> None:
        self._check_valid()
        await self._service.disconnect_consumer(consumer_id)

    async def execute_stream_statement(self, statement: str) -> Any:
        return await self._service.execute_stream_statement(self._prepare_statement(statement))

    async def execute_stream_query(self, query: str) -> Any:
        return await self._service.execute_stream_query(self._prepare_statement(query))

    async def get_stream_info(self) -> Any:
        self._check_valid()
        return await self._service.get_stream_info()

    async def list_streams(self) -> Any:
        self._check_valid()
        return await self._service.list_streams()

    async def list_tables(self) -> Any:
        self._check_valid()
        return await self._service.list_tables()

    def get_allowed_topics(self) -> List[str]:
        self._check_valid()
        return self._scope.allowed()
