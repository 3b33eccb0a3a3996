"""Dead letter queue for work items that exhausted their redeliveries.

Entries keep the original queue fields plus ``_dlq_*`` failure metadata,
so an operator can inspect why a submission never reached the CRM and
replay it once the cause is fixed.

DLQ key pattern: {prefix}:queue:{name}:dlq
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import redis.asyncio as aioredis
import structlog

from src.donation_sync.queue.work_queue import RETRY_COUNT_FIELD

logger = structlog.get_logger(__name__)


class DeadLetterQueue:
    """Dead letter queue backed by Redis Streams.

    Args:
        redis: Raw async Redis client.
        prefix: Key prefix shared by all donation-sync keys.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    def _dlq_key(self, queue_name: str) -> str:
        return f"{self._prefix}:queue:{queue_name}:dlq"

    def _queue_key(self, queue_name: str) -> str:
        return f"{self._prefix}:queue:{queue_name}"

    async def send_to_dlq(
        self,
        queue_name: str,
        message_id: str,
        data: dict[str, str],
        error: str,
        retry_count: int,
    ) -> str:
        """Move a failed work item to the dead letter queue.

        Args:
            queue_name: Queue the item was consumed from.
            message_id: Original Redis message ID.
            data: Raw entry fields.
            error: Reason of the last failed attempt.
            retry_count: Number of redeliveries already made.

        Returns:
            DLQ message ID assigned by XADD.
        """
        dlq_key = self._dlq_key(queue_name)

        dlq_data: dict[str, str] = {
            **data,
            "_dlq_original_queue": queue_name,
            "_dlq_original_id": message_id,
            "_dlq_error": error,
            "_dlq_retry_count": str(retry_count),
            "_dlq_timestamp": datetime.now(timezone.utc).isoformat(),
        }

        dlq_message_id = await self._redis.xadd(dlq_key, dlq_data)

        logger.warning(
            "queue.dead_lettered",
            dlq_key=dlq_key,
            submission_id=data.get("submission_id"),
            original_id=message_id,
            error=error,
            retry_count=retry_count,
        )
        return dlq_message_id

    async def list_dlq_messages(
        self,
        queue_name: str,
        count: int = 50,
    ) -> list[tuple[str, dict[str, Any]]]:
        """List dead-lettered entries for review, oldest first."""
        return await self._redis.xrange(self._dlq_key(queue_name), count=count)

    async def replay_message(self, queue_name: str, dlq_message_id: str) -> str:
        """Put a dead-lettered entry back on its queue with a fresh retry budget.

        Returns:
            New message ID in the work queue.

        Raises:
            ValueError: If the DLQ message ID is not found.
        """
        dlq_key = self._dlq_key(queue_name)

        messages = await self._redis.xrange(
            dlq_key,
            min=dlq_message_id,
            max=dlq_message_id,
            count=1,
        )
        if not messages:
            msg = f"DLQ message '{dlq_message_id}' not found in {dlq_key}"
            raise ValueError(msg)

        _msg_id, data = messages[0]
        replay_data = {
            k: v for k, v in data.items()
            if not k.startswith("_dlq_")
        }
        replay_data.pop(RETRY_COUNT_FIELD, None)

        new_id = await self._redis.xadd(self._queue_key(queue_name), replay_data)
        await self._redis.xdel(dlq_key, dlq_message_id)

        logger.info(
            "queue.replayed",
            queue=queue_name,
            dlq_message_id=dlq_message_id,
            new_message_id=new_id,
            submission_id=replay_data.get("submission_id"),
        )
        return new_id
