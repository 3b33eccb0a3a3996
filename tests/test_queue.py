"""Tests for the work queue, queue consumer, and dead letter queue.

Covers:
- WorkQueue key layout, consumer group creation, requeue, reclaim
- QueueConsumer ack on return, redelivery with backoff on RequeueError,
  dead-lettering after the retry budget, unexpected failures, malformed
  entries, reclaimed entries
- DeadLetterQueue storage, listing, and replay
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ResponseError

from src.donation_sync.errors import RequeueError
from src.donation_sync.queue.consumer import QueueConsumer
from src.donation_sync.queue.dlq import DeadLetterQueue
from src.donation_sync.queue.work_queue import WorkQueue


def _consumer(mock_redis, **kwargs) -> QueueConsumer:
    return QueueConsumer(
        queue=WorkQueue(mock_redis, "ds", "salesforce_queue"),
        group="exporters",
        consumer_name="w1",
        dlq=DeadLetterQueue(mock_redis, "ds"),
        **kwargs,
    )


# ── WorkQueue Tests ───────────────────────────────────────────────────────


class TestWorkQueue:

    @pytest.mark.asyncio
    async def test_enqueue_adds_submission_id(self):
        """Enqueue appends the submission id to the queue stream."""
        mock_redis = AsyncMock()
        mock_redis.xadd = AsyncMock(return_value="1-0")
        queue = WorkQueue(mock_redis, "ds", "salesforce_queue")

        message_id = await queue.enqueue("sub-1")

        assert message_id == "1-0"
        mock_redis.xadd.assert_called_once_with(
            "ds:queue:salesforce_queue", {"submission_id": "sub-1"},
        )

    @pytest.mark.asyncio
    async def test_read_creates_group_and_reads(self):
        """Read creates the consumer group before reading."""
        mock_redis = AsyncMock()
        mock_redis.xreadgroup = AsyncMock(return_value=[])
        queue = WorkQueue(mock_redis, "ds", "salesforce_queue")

        result = await queue.read("exporters", "w1")

        mock_redis.xgroup_create.assert_called_once_with(
            "ds:queue:salesforce_queue", "exporters", id="0", mkstream=True,
        )
        mock_redis.xreadgroup.assert_called_once()
        assert result == []

    @pytest.mark.asyncio
    async def test_read_tolerates_existing_group(self):
        """An existing consumer group is not an error."""
        mock_redis = AsyncMock()
        mock_redis.xgroup_create = AsyncMock(side_effect=ResponseError("BUSYGROUP"))
        mock_redis.xreadgroup = AsyncMock(return_value=[])
        queue = WorkQueue(mock_redis, "ds", "salesforce_queue")

        assert await queue.read("exporters", "w1") == []

    @pytest.mark.asyncio
    async def test_requeue_sets_retry_count(self):
        """Requeue re-adds the entry with the new retry count."""
        mock_redis = AsyncMock()
        queue = WorkQueue(mock_redis, "ds", "salesforce_queue")

        await queue.requeue({"submission_id": "sub-1", "_retry_count": "1"}, 2)

        data = mock_redis.xadd.call_args[0][1]
        assert data == {"submission_id": "sub-1", "_retry_count": "2"}

    @pytest.mark.asyncio
    async def test_reclaim_returns_claimed_entries(self):
        """Reclaim returns live entries and skips ones deleted while pending."""
        mock_redis = AsyncMock()
        mock_redis.xautoclaim = AsyncMock(return_value=[
            "0-0",
            [("m-1", {"submission_id": "sub-1"}), ("m-2", None)],
            [],
        ])
        queue = WorkQueue(mock_redis, "ds", "salesforce_queue")

        claimed = await queue.reclaim_abandoned("exporters", "w1", idle_time_ms=30000)

        assert claimed == [("m-1", {"submission_id": "sub-1"})]
        mock_redis.xautoclaim.assert_called_once_with(
            "ds:queue:salesforce_queue", "exporters", "w1",
            min_idle_time=30000, start_id="0", count=10,
        )


# ── QueueConsumer Tests ───────────────────────────────────────────────────


class TestQueueConsumer:

    @pytest.mark.asyncio
    async def test_processed_item_is_acked(self):
        """An item the worker returns for is acked and not re-added."""
        mock_redis = AsyncMock()
        worker = AsyncMock()
        consumer = _consumer(mock_redis)

        await consumer.handle_message("m-1", {"submission_id": "sub-1"}, worker)

        worker.process_item.assert_awaited_once_with("sub-1")
        mock_redis.xack.assert_called_once_with("ds:queue:salesforce_queue", "exporters", "m-1")
        mock_redis.xadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_requeue_error_redelivers_with_backoff(self):
        """RequeueError sleeps the backoff delay, then re-adds and acks."""
        mock_redis = AsyncMock()
        worker = AsyncMock()
        worker.process_item.side_effect = RequeueError("sub-1", "remote_rejected")
        consumer = _consumer(mock_redis)

        with patch("src.donation_sync.queue.consumer.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await consumer.handle_message("m-1", {"submission_id": "sub-1", "_retry_count": "1"}, worker)

        sleep.assert_awaited_once_with(4)
        stream_key, data = mock_redis.xadd.call_args[0]
        assert stream_key == "ds:queue:salesforce_queue"
        assert data["_retry_count"] == "2"
        mock_redis.xack.assert_called_once()

    @pytest.mark.asyncio
    async def test_exhausted_retries_go_to_dlq(self):
        """An item at the retry budget goes to the DLQ without sleeping."""
        mock_redis = AsyncMock()
        mock_redis.xadd = AsyncMock(return_value="dlq-1")
        worker = AsyncMock()
        worker.process_item.side_effect = RequeueError("sub-1", "transport_fault")
        consumer = _consumer(mock_redis, max_retries=3)

        with patch("src.donation_sync.queue.consumer.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await consumer.handle_message("m-9", {"submission_id": "sub-1", "_retry_count": "3"}, worker)

        sleep.assert_not_awaited()
        dlq_key, dlq_data = mock_redis.xadd.call_args[0]
        assert dlq_key == "ds:queue:salesforce_queue:dlq"
        assert dlq_data["_dlq_error"] == "transport_fault"
        assert dlq_data["_dlq_original_id"] == "m-9"
        assert dlq_data["_dlq_retry_count"] == "3"
        mock_redis.xack.assert_called_once()

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_redelivered(self):
        """Unexpected worker exceptions are redelivered like RequeueError."""
        mock_redis = AsyncMock()
        worker = AsyncMock()
        worker.process_item.side_effect = RuntimeError("boom")
        consumer = _consumer(mock_redis)

        with patch("src.donation_sync.queue.consumer.asyncio.sleep", new_callable=AsyncMock):
            await consumer.handle_message("m-1", {"submission_id": "sub-1"}, worker)

        assert mock_redis.xadd.call_args[0][1]["_retry_count"] == "1"

    @pytest.mark.asyncio
    async def test_malformed_entry_is_acked_and_skipped(self):
        """An entry without a submission id is acked and never processed."""
        mock_redis = AsyncMock()
        worker = AsyncMock()
        consumer = _consumer(mock_redis)

        await consumer.handle_message("m-1", {"foo": "bar"}, worker)

        worker.process_item.assert_not_awaited()
        mock_redis.xack.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_integer_retry_count_is_acked_and_skipped(self):
        """A corrupt retry count is logged and acked instead of crashing the loop."""
        mock_redis = AsyncMock()
        worker = AsyncMock()
        consumer = _consumer(mock_redis)

        await consumer.handle_message("m-1", {"submission_id": "sub-1", "_retry_count": "abc"}, worker)

        worker.process_item.assert_not_awaited()
        mock_redis.xack.assert_called_once_with("ds:queue:salesforce_queue", "exporters", "m-1")
        mock_redis.xadd.assert_not_called()

    @pytest.mark.asyncio
    async def test_process_loop_stops(self):
        """The loop processes read entries and exits after stop()."""
        mock_redis = AsyncMock()
        consumer = _consumer(mock_redis)
        worker = AsyncMock()

        async def read_once(*args, **kwargs):
            consumer.stop()
            return [("ds:queue:salesforce_queue", [("m-1", {"submission_id": "sub-1"})])]

        mock_redis.xreadgroup = AsyncMock(side_effect=read_once)
        mock_redis.xautoclaim = AsyncMock(return_value=["0-0", [], []])

        await consumer.process_loop(worker)

        worker.process_item.assert_awaited_once_with("sub-1")

    @pytest.mark.asyncio
    async def test_process_loop_handles_reclaimed_entries(self):
        """Entries abandoned by a dead consumer are processed and acked."""
        mock_redis = AsyncMock()
        consumer = _consumer(mock_redis, reclaim_idle_ms=30000)
        worker = AsyncMock()

        async def read_nothing(*args, **kwargs):
            consumer.stop()
            return []

        mock_redis.xreadgroup = AsyncMock(side_effect=read_nothing)
        mock_redis.xautoclaim = AsyncMock(
            return_value=["0-0", [("m-old", {"submission_id": "sub-7"})], []],
        )

        await consumer.process_loop(worker)

        worker.process_item.assert_awaited_once_with("sub-7")
        assert mock_redis.xautoclaim.call_args.kwargs["min_idle_time"] == 30000
        mock_redis.xack.assert_called_once_with("ds:queue:salesforce_queue", "exporters", "m-old")

    def test_custom_retry_delays(self):
        """Retry delays can be overridden."""
        consumer = _consumer(AsyncMock(), retry_delays=[2, 8])
        assert consumer._retry_delays == [2, 8]


# ── DeadLetterQueue Tests ─────────────────────────────────────────────────


class TestDeadLetterQueue:

    @pytest.mark.asyncio
    async def test_list_reads_dlq_stream(self):
        """Listing reads the DLQ stream with XRANGE."""
        mock_redis = AsyncMock()
        mock_redis.xrange = AsyncMock(return_value=[("d-1", {"submission_id": "sub-1"})])
        dlq = DeadLetterQueue(mock_redis, "ds")

        messages = await dlq.list_dlq_messages("salesforce_queue", count=10)

        assert messages == [("d-1", {"submission_id": "sub-1"})]
        mock_redis.xrange.assert_called_once_with("ds:queue:salesforce_queue:dlq", count=10)

    @pytest.mark.asyncio
    async def test_replay_strips_metadata_and_deletes(self):
        """Replay re-adds the original data and deletes the DLQ entry."""
        mock_redis = AsyncMock()
        mock_redis.xrange = AsyncMock(return_value=[(
            "d-1",
            {
                "submission_id": "sub-1",
                "_retry_count": "3",
                "_dlq_error": "transport_fault",
                "_dlq_original_id": "m-1",
            },
        )])
        mock_redis.xadd = AsyncMock(return_value="new-1")
        dlq = DeadLetterQueue(mock_redis, "ds")

        new_id = await dlq.replay_message("salesforce_queue", "d-1")

        assert new_id == "new-1"
        mock_redis.xadd.assert_called_once_with(
            "ds:queue:salesforce_queue", {"submission_id": "sub-1"},
        )
        mock_redis.xdel.assert_called_once_with("ds:queue:salesforce_queue:dlq", "d-1")

    @pytest.mark.asyncio
    async def test_replay_unknown_message_raises(self):
        """Replaying an unknown DLQ id raises ValueError."""
        mock_redis = AsyncMock()
        mock_redis.xrange = AsyncMock(return_value=[])
        dlq = DeadLetterQueue(mock_redis, "ds")

        with pytest.raises(ValueError, match="not found"):
            await dlq.replay_message("salesforce_queue", "missing")
