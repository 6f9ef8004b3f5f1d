"""
Kafka messaging service.

Producers and consumers use aiokafka; streaming SQL goes to the ksqlDB REST
API over aiohttp.
"""

import asyncio
import inspect
import logging
from typing import Any, Dict, Optional, Sequence, Union

import aiohttp
from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from ..config.models import MessagingConfig
from ...core.interfaces.lifecycle import IComponent
from ...core.interfaces.services import IMessagingService, Message, MessageHandler

logger = logging.getLogger(__name__)


def _encode(value: Union[str, bytes, None]) -> Optional[bytes]:
    if value is None or isinstance(value, bytes):
        return value
    return str(value).encode('utf-8')


class KafkaMessagingService(IComponent, IMessagingService):
    """Keeps named producers and consumers alive until the service stops."""

    def __init__(self, config: MessagingConfig) -> None:
        self._config = config
        self._bootstrap_servers = ",".join(config.brokers)
        self._producers: Dict[str, AIOKafkaProducer] = {}
        self._consumers: Dict[str, AIOKafkaConsumer] = {}
        self._consumer_tasks: Dict[str, asyncio.Task] = {}
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def name(self) -> str:
        return "KafkaMessagingService"

    async def start(self) -> None:
        if self._session is None:
            auth = None
            if self._config.ksqldb_username and self._config.ksqldb_password:
                auth = aiohttp.BasicAuth(self._config.ksqldb_username, self._config.ksqldb_password)
            self._session = aiohttp.ClientSession(auth=auth)

        logger.info(f"Kafka service initialized - Brokers: {self._bootstrap_servers}")
        logger.info(f"ksqlDB URL: {self._config.ksqldb_url}")

    async def stop(self) -> None:
        for consumer_id in list(self._consumers):
            try:
                await self.disconnect_consumer(consumer_id)
            except Exception as e:
                logger.warning(f"Error disconnecting consumer {consumer_id}: {e}")

        for producer_id, producer in list(self._producers.items()):
            try:
                await producer.stop()
                logger.debug(f"Producer disconnected: {producer_id}")
            except Exception as e:
                logger.warning(f"Error disconnecting producer {producer_id}: {e}")
        self._producers.clear()

        if self._session is not None:
            await self._session.close()
            self._session = None

        logger.info("Kafka service stopped")

    async def check_health(self) -> Dict[str, Any]:
        return {
            'healthy': self._session is not None,
            'status': 'running' if self._session is not None else 'stopped',
            'details': {
                'brokers': list(self._config.brokers),
                'producers': list(self._producers),
                'consumers': list(self._consumers),
            }
        }

    async def get_producer(self, producer_id: str = "default") -> AIOKafkaProducer:
        producer = self._producers.get(producer_id)
        if producer is None:
            producer = AIOKafkaProducer(
                bootstrap_servers=self._bootstrap_servers,
                client_id=self._config.client_id,
            )
            await producer.start()
            self._producers[producer_id] = producer
            logger.debug(f"Producer created and connected: {producer_id}")
        return producer

    async def send_message(self, topic: str, messages: Sequence[Message],
                           producer_id: str = "default") -> None:
        producer = await self.get_producer(producer_id)
        for message in messages:
            headers = [(k, _encode(v)) for k, v in (message.get('headers') or {}).items()]
            await producer.send_and_wait(
                topic,
                value=_encode(message.get('value')),
                key=_encode(message.get('key')),
                headers=headers or None,
            )
        logger.debug(f"Sent {len(messages)} message(s) to topic: {topic}")

    async def create_consumer(self, consumer_id: str, group_id: str) -> AIOKafkaConsumer:
        if consumer_id in self._consumers:
            raise ValueError(f"Consumer with id '{consumer_id}' already exists")

        consumer = AIOKafkaConsumer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._config.client_id,
            group_id=group_id,
            auto_offset_reset="latest",
        )
        self._consumers[consumer_id] = consumer
        logger.debug(f"Consumer created: {consumer_id} (groupId: {group_id})")
        return consumer

    async def subscribe(self, consumer_id: str, topics: Sequence[str],
                        handler: MessageHandler) -> None:
        consumer = self._consumers.get(consumer_id)
        if consumer is None:
            raise ValueError(
                f"Consumer '{consumer_id}' not found. Create it first with create_consumer()"
            )

        consumer.subscribe(topics=list(topics))
        await consumer.start()
        self._consumer_tasks[consumer_id] = asyncio.create_task(
            self._consume(consumer_id, consumer, handler)
        )
        logger.debug(f"Consumer {consumer_id} subscribed to topics: {', '.join(topics)}")

    async def _consume(self, consumer_id: str, consumer: AIOKafkaConsumer,
                       handler: MessageHandler) -> None:
        async for record in consumer:
            try:
                result = handler(record)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error processing message from {record.topic} ({consumer_id}): {e}")

    async def disconnect_consumer(self, consumer_id: str) -> None:
        task = self._consumer_tasks.pop(consumer_id, None)
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        consumer = self._consumers.pop(consumer_id, None)
        if consumer is not None:
            await consumer.stop()
            logger.debug(f"Consumer disconnected: {consumer_id}")

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("Messaging service is not started")
        return self._session

    async def _post_ksql(self, ksql: str) -> Any:
        url = f"{self._config.ksqldb_url}/ksql"
        async with self._require_session().post(
            url, json={'ksql': ksql, 'streamsProperties': {}}
        ) as response:
            if response.status >= 400:
                error_text = await response.text()
                raise RuntimeError(
                    f"ksqlDB query failed: {response.status} {response.reason} - {error_text}"
                )
            return await response.json(content_type=None)

    async def execute_stream_statement(self, statement: str) -> Any:
        return await self._post_ksql(statement)

    async def execute_stream_query(self, query: str) -> Any:
        return await self._post_ksql(query)

    async def get_stream_info(self) -> Any:
        url = f"{self._config.ksqldb_url}/info"
        async with self._require_session().get(url) as response:
            if response.status >= 400:
                raise RuntimeError(
                    f"Failed to get ksqlDB info: {response.status} {response.reason}"
                )
            return await response.json(content_type=None)

    async def list_streams(self) -> Any:
        return await self._post_ksql("SHOW STREAMS;")

    async def list_tables(self) -> Any:
        return await self._post_ksql("SHOW TABLES;")
