"""
Event bus implementation for publish-subscribe messaging.

One EventBus instance is constructed by the application and shared by the
host and every plugin context. While running, published events go through a
priority queue drained by worker tasks; while stopped, events are dispatched
inline so the bus stays usable during startup, shutdown and in tests.
"""

import asyncio
import fnmatch
import inspect
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from ..interfaces.messaging import IEventBus
from ..interfaces.lifecycle import IComponent
from ..domain.events import Event, EventPriority

logger = logging.getLogger(__name__)

# Number of recent dispatch durations kept for the average in get_metrics.
TIMING_WINDOW = 1000


def _is_pattern(event_name: str) -> bool:
    return '*' in event_name or '?' in event_name


@dataclass
class EventSubscription:
    subscription_id: str
    event_pattern: str
    handler: Callable[[Event], Any]
    priority: EventPriority
    call_count: int = 0
    error_count: int = 0

    def matches(self, event_name: str) -> bool:
        return fnmatch.fnmatchcase(event_name, self.event_pattern)


class EventBus(IComponent, IEventBus):
    """
    Shared event bus with priority-based processing and wildcard subscriptions.

    Handler failures are logged and counted; they never propagate to the
    publisher or prevent delivery to other handlers.
    """

    def __init__(self, max_workers: int = 4, queue_size: int = 1000):
        self._exact: Dict[str, List[EventSubscription]] = {}
        self._patterns: List[EventSubscription] = []
        self._queue: Optional[asyncio.PriorityQueue] = None
        self._workers: List[asyncio.Task] = []
        self._max_workers = max_workers
        self._queue_size = queue_size
        self._running = False

        self._published = 0
        self._processed = 0
        self._failed = 0
        self._timings: Deque[float] = deque(maxlen=TIMING_WINDOW)

    @property
    def name(self) -> str:
        return "EventBus"

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self._exact.values()) + len(self._patterns)

    async def start(self) -> None:
        if self._running:
            return

        queue: asyncio.PriorityQueue = asyncio.PriorityQueue(maxsize=self._queue_size)
        self._queue = queue
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker(queue), name=f"event-bus-worker-{index}")
            for index in range(self._max_workers)
        ]
        logger.info(f"Event bus started with {self._max_workers} workers")

    async def stop(self) -> None:
        """Stop the workers, deliver whatever is still queued and drop all subscriptions."""
        if not self._running:
            return

        logger.info("Stopping event bus...")
        self._running = False

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        if self._queue is not None:
            while not self._queue.empty():
                await self._dispatch(self._queue.get_nowait())
        self._queue = None

        self._exact.clear()
        self._patterns.clear()
        logger.info("Event bus stopped")

    async def check_health(self) -> Dict[str, Any]:
        return {
            'healthy': True,
            'status': 'running' if self._running else 'stopped',
            'details': {
                'workers_count': len(self._workers),
                'subscriptions_count': self.subscription_count,
                'queue_size': self._queue.qsize() if self._queue else 0,
                'events_published': self._published,
                'events_processed': self._processed,
                'events_failed': self._failed,
            }
        }

    async def publish(self, event: Union[Event, str], data: Any = None,
                      priority: EventPriority = EventPriority.NORMAL,
                      source: Optional[str] = None) -> str:
        """
        Publish an event, queueing it while running and dispatching inline otherwise.

        Raises:
            RuntimeError: If the queue is full
        """
        if isinstance(event, str):
            event = Event(name=event, data=data, priority=priority, source=source)

        self._published += 1

        if self._queue is None:
            await self._dispatch(event)
            return event.event_id

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(f"Event queue full, dropping event: {event.name}")
            raise RuntimeError("Event queue is full")

        logger.debug(f"Queued event {event.name} ({event.event_id})")
        return event.event_id

    async def subscribe(self, event_name: str, handler: Callable[[Event], Any],
                        priority: EventPriority = EventPriority.NORMAL) -> str:
        subscription = EventSubscription(
            subscription_id=str(uuid.uuid4()),
            event_pattern=event_name,
            handler=handler,
            priority=priority,
        )

        if _is_pattern(event_name):
            bucket = self._patterns
        else:
            bucket = self._exact.setdefault(event_name, [])
        bucket.append(subscription)
        bucket.sort(key=lambda s: s.priority, reverse=True)

        logger.debug(f"Subscribed to '{event_name}' ({subscription.subscription_id})")
        return subscription.subscription_id

    async def unsubscribe(self, subscription_id: str) -> bool:
        for subscription in self._patterns:
            if subscription.subscription_id == subscription_id:
                self._patterns.remove(subscription)
                logger.debug(f"Unsubscribed from '{subscription.event_pattern}' ({subscription_id})")
                return True

        for event_name, bucket in self._exact.items():
            for subscription in bucket:
                if subscription.subscription_id == subscription_id:
                    bucket.remove(subscription)
                    if not bucket:
                        del self._exact[event_name]
                    logger.debug(f"Unsubscribed from '{event_name}' ({subscription_id})")
                    return True
        return False

    async def get_metrics(self) -> Dict[str, Any]:
        average = sum(self._timings) / len(self._timings) if self._timings else 0.0
        return {
            'events_published': self._published,
            'events_processed': self._processed,
            'events_failed': self._failed,
            'subscriptions_count': self.subscription_count,
            'queue_size': self._queue.qsize() if self._queue else 0,
            'avg_processing_time': average,
        }

    async def _worker(self, queue: asyncio.PriorityQueue) -> None:
        while True:
            event = await queue.get()
            try:
                await self._dispatch(event)
            except Exception as e:
                logger.error(f"Event bus worker failed on {event.name}: {e}")
            finally:
                queue.task_done()

    def _subscribers(self, event_name: str) -> List[EventSubscription]:
        subscribers = list(self._exact.get(event_name, ()))
        subscribers.extend(s for s in self._patterns if s.matches(event_name))
        subscribers.sort(key=lambda s: s.priority, reverse=True)
        return subscribers

    async def _dispatch(self, event: Event) -> None:
        started = time.perf_counter()

        for subscription in self._subscribers(event.name):
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
                subscription.call_count += 1
            except Exception as e:
                subscription.error_count += 1
                self._failed += 1
                logger.error(f"Handler error for event {event.name}: {e}")

        self._processed += 1
        self._timings.append(time.perf_counter() - started)
