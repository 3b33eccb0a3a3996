"""Domain event bus for export outcomes.

Two implementations of the same ``publish`` contract:

- InProcessEventBus: subscriber registry; handlers are awaited in
  registration order. A failing handler is logged and does not stop the
  others (the CRM already holds the canonical record).
- RedisEventBus: appends events to a Redis Stream
  (``{prefix}:events:{stream}``) for out-of-process subscribers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
import structlog

from src.donation_sync.events.schemas import EventType, ExportOutcomeEvent

logger = structlog.get_logger(__name__)

EventHandler = Callable[[ExportOutcomeEvent], Awaitable[None]]


class EventBus(ABC):
    """Publish export outcome events to whoever listens."""

    @abstractmethod
    async def publish(self, event: ExportOutcomeEvent) -> None:
        ...


class InProcessEventBus(EventBus):
    """Dispatch events to handlers registered in this process."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: ExportOutcomeEvent) -> None:
        handlers = self._handlers.get(event.event_type, [])
        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.error(
                    "event_handler_failed",
                    event_type=event.event_type.value,
                    event_id=event.event_id,
                    submission_id=event.submission_id,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(exc),
                    exc_info=True,
                )
        logger.debug(
            "event_published",
            event_type=event.event_type.value,
            event_id=event.event_id,
            handlers=len(handlers),
        )


class RedisEventBus(EventBus):
    """Publish events to a Redis Stream.

    Args:
        redis: Raw async Redis client.
        prefix: Key prefix shared by all donation-sync keys.
        stream: Stream name (default ``export_outcomes``).
    """

    def __init__(self, redis: aioredis.Redis, prefix: str, stream: str = "export_outcomes") -> None:
        self._redis = redis
        self._prefix = prefix
        self._stream = stream

    def _stream_key(self) -> str:
        return f"{self._prefix}:events:{self._stream}"

    async def publish(self, event: ExportOutcomeEvent) -> None:
        stream_key = self._stream_key()
        message_id = await self._redis.xadd(
            stream_key,
            event.to_stream_dict(),
            maxlen=1000,
            approximate=True,
        )
        logger.debug(
            "event_published",
            stream=stream_key,
            event_type=event.event_type.value,
            event_id=event.event_id,
            message_id=message_id,
        )
