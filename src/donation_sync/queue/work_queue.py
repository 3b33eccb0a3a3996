"""Durable work queue of submission ids backed by a Redis Stream.

Each entry carries a ``submission_id`` and, on redelivery, a
``_retry_count``. Consumers read through a consumer group so several
worker processes can share one queue; an entry is removed from the
group's pending list only when acknowledged.

Stream key pattern: {prefix}:queue:{name}
"""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger(__name__)

SUBMISSION_ID_FIELD = "submission_id"
RETRY_COUNT_FIELD = "_retry_count"

StreamMessages = list[tuple[str, list[tuple[str, dict[str, str]]]]]


class WorkQueue:
    """Enqueue, read, acknowledge and redeliver submission ids.

    Args:
        redis: Raw async Redis client created with ``decode_responses=True``.
        prefix: Key prefix shared by all donation-sync keys.
        name: Queue name (e.g. ``salesforce_queue``).
    """

    def __init__(self, redis: aioredis.Redis, prefix: str, name: str) -> None:
        self._redis = redis
        self._prefix = prefix
        self.name = name

    @property
    def stream_key(self) -> str:
        return f"{self._prefix}:queue:{self.name}"

    async def enqueue(self, submission_id: str) -> str:
        """Append a submission id to the queue.

        Returns:
            Redis message ID assigned by XADD.
        """
        message_id = await self._redis.xadd(
            self.stream_key,
            {SUBMISSION_ID_FIELD: submission_id},
        )
        logger.info(
            "queue.enqueued",
            queue=self.name,
            submission_id=submission_id,
            message_id=message_id,
        )
        return message_id

    async def read(
        self,
        group: str,
        consumer: str,
        count: int = 10,
        block: int = 5000,
    ) -> StreamMessages:
        """Read new entries as a consumer in a consumer group.

        Creates the consumer group if it does not already exist.

        Returns:
            List of ``(stream_key, [(message_id, data), ...])`` tuples.
        """
        try:
            await self._redis.xgroup_create(
                self.stream_key, group, id="0", mkstream=True,
            )
        except aioredis.ResponseError:
            pass  # Group already exists

        return await self._redis.xreadgroup(
            groupname=group,
            consumername=consumer,
            streams={self.stream_key: ">"},
            count=count,
            block=block,
        )

    async def ack(self, group: str, message_id: str) -> None:
        await self._redis.xack(self.stream_key, group, message_id)

    async def requeue(self, data: dict[str, str], retry_count: int) -> str:
        """Re-append an entry for redelivery with the given retry count."""
        retry_data = dict(data)
        retry_data[RETRY_COUNT_FIELD] = str(retry_count)
        return await self._redis.xadd(self.stream_key, retry_data)

    async def reclaim_abandoned(
        self,
        group: str,
        consumer: str,
        idle_time_ms: int = 60000,
        count: int = 10,
    ) -> list[tuple[str, dict[str, str]]]:
        """Take over entries left pending by a dead or stalled consumer.

        Returns:
            ``(message_id, data)`` pairs now owned by ``consumer``. Entries
            deleted from the stream while pending are skipped.
        """
        result = await self._redis.xautoclaim(
            self.stream_key,
            group,
            consumer,
            min_idle_time=idle_time_ms,
            start_id="0",
            count=count,
        )
        if not isinstance(result, (list, tuple)) or len(result) < 2:
            return []
        claimed = [(message_id, data) for message_id, data in result[1] if data]
        if claimed:
            logger.warning(
                "queue.reclaimed",
                queue=self.name,
                consumer=consumer,
                count=len(claimed),
            )
        return claimed
