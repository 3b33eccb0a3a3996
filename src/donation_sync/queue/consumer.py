"""Queue consumer: redelivery, backoff and dead-lettering around the worker.

The export worker never sleeps or retries. It returns when an item is
done (acknowledged or dropped) and raises RequeueError when the item must
be delivered again. This consumer owns everything else: acking, backoff
delays (1s, 4s, 16s by default), re-adding with an incremented retry
count, and moving poison items to the dead letter queue.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from src.donation_sync.errors import RequeueError
from src.donation_sync.queue.dlq import DeadLetterQueue
from src.donation_sync.queue.work_queue import (
    RETRY_COUNT_FIELD,
    SUBMISSION_ID_FIELD,
    WorkQueue,
)

logger = structlog.get_logger(__name__)


class WorkItemProcessor(Protocol):
    async def process_item(self, submission_id: str) -> object:
        ...


class QueueConsumer:
    """Read work items from a WorkQueue and hand them to a processor.

    Args:
        queue: WorkQueue to consume from.
        group: Consumer group name.
        consumer_name: Unique consumer identifier within the group.
        dlq: DeadLetterQueue for items that exhausted their retries.
        max_retries: Redeliveries before an item is dead-lettered.
        retry_delays: Backoff delays in seconds, indexed by retry count.
        reclaim_idle_ms: Idle time after which another consumer's pending
            entries are taken over and processed here.
    """

    MAX_RETRIES: int = 3
    RETRY_DELAYS: list[int] = [1, 4, 16]

    def __init__(
        self,
        queue: WorkQueue,
        group: str,
        consumer_name: str,
        dlq: DeadLetterQueue,
        max_retries: int | None = None,
        retry_delays: list[int] | None = None,
        reclaim_idle_ms: int = 60000,
    ) -> None:
        self._queue = queue
        self._group = group
        self._consumer_name = consumer_name
        self._dlq = dlq
        self._max_retries = self.MAX_RETRIES if max_retries is None else max_retries
        self._retry_delays = list(retry_delays or self.RETRY_DELAYS)
        self._reclaim_idle_ms = reclaim_idle_ms
        self._running = False

    async def process_loop(self, worker: WorkItemProcessor) -> None:
        """Read, process and settle entries until ``stop()`` is called."""
        self._running = True
        logger.info(
            "consumer_started",
            queue=self._queue.name,
            group=self._group,
            consumer=self._consumer_name,
        )

        while self._running:
            messages = await self._queue.read(self._group, self._consumer_name)
            for _stream_key, stream_messages in messages or []:
                for message_id, raw_data in stream_messages:
                    await self.handle_message(message_id, raw_data, worker)

            reclaimed = await self._queue.reclaim_abandoned(
                self._group, self._consumer_name, idle_time_ms=self._reclaim_idle_ms,
            )
            for message_id, raw_data in reclaimed:
                await self.handle_message(message_id, raw_data, worker)

        logger.info("consumer_stopped", queue=self._queue.name, consumer=self._consumer_name)

    async def handle_message(
        self,
        message_id: str,
        raw_data: dict[str, str],
        worker: WorkItemProcessor,
    ) -> None:
        """Process one entry and ack, redeliver or dead-letter it."""
        submission_id = raw_data.get(SUBMISSION_ID_FIELD)
        if not submission_id:
            logger.error("queue.malformed_entry", message_id=message_id, data=raw_data)
            await self._queue.ack(self._group, message_id)
            return

        try:
            retry_count = int(raw_data.get(RETRY_COUNT_FIELD, "0"))
        except ValueError:
            logger.error("queue.malformed_entry", message_id=message_id, data=raw_data)
            await self._queue.ack(self._group, message_id)
            return

        try:
            await worker.process_item(submission_id)
        except RequeueError as exc:
            await self._redeliver(message_id, raw_data, retry_count, exc.reason)
            return
        except Exception as exc:
            logger.error(
                "queue.unexpected_failure",
                submission_id=submission_id,
                message_id=message_id,
                error=str(exc),
                exc_info=True,
            )
            await self._redeliver(message_id, raw_data, retry_count, str(exc))
            return

        await self._queue.ack(self._group, message_id)
        logger.debug(
            "queue.item_settled",
            submission_id=submission_id,
            message_id=message_id,
        )

    async def _redeliver(
        self,
        message_id: str,
        raw_data: dict[str, str],
        retry_count: int,
        reason: str,
    ) -> None:
        submission_id = raw_data.get(SUBMISSION_ID_FIELD)
        if retry_count >= self._max_retries:
            await self._dlq.send_to_dlq(
                queue_name=self._queue.name,
                message_id=message_id,
                data=raw_data,
                error=reason,
                retry_count=retry_count,
            )
            await self._queue.ack(self._group, message_id)
            logger.error(
                "queue.item_dead_lettered",
                submission_id=submission_id,
                message_id=message_id,
                retry_count=retry_count,
                reason=reason,
            )
            return

        delay_idx = min(retry_count, len(self._retry_delays) - 1)
        delay = self._retry_delays[delay_idx]
        await asyncio.sleep(delay)

        await self._queue.requeue(raw_data, retry_count + 1)
        await self._queue.ack(self._group, message_id)
        logger.info(
            "queue.item_requeued",
            submission_id=submission_id,
            message_id=message_id,
            retry_count=retry_count + 1,
            delay=delay,
            reason=reason,
        )

    def stop(self) -> None:
        """Signal the processing loop to stop after current iteration."""
        self._running = False
