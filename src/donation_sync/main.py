"""Worker process entry point.

Wires the export pipeline with explicit dependencies (stores, gate,
mapper, submitter, event bus, queue) and runs the queue consumer until
SIGINT/SIGTERM.

    python -m src.donation_sync.main
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from datetime import date

import redis.asyncio as aioredis
import structlog

from src.donation_sync.config import Settings, get_settings
from src.donation_sync.core.redis import close_redis, get_redis_pool
from src.donation_sync.crm.transport import CRMTransport, SalesforceTransport
from src.donation_sync.events.bus import InProcessEventBus, RedisEventBus
from src.donation_sync.events.schemas import EventType
from src.donation_sync.events.subscribers import ExportOutcomeSubscriber
from src.donation_sync.export.gate import EligibilityGate
from src.donation_sync.export.mapper import PayloadMapper
from src.donation_sync.export.submitter import ExportSubmitter
from src.donation_sync.export.trigger import EnqueueTrigger
from src.donation_sync.export.worker import ExportQueueWorker
from src.donation_sync.observability.logging import configure_structlog
from src.donation_sync.queue.consumer import QueueConsumer
from src.donation_sync.queue.dlq import DeadLetterQueue
from src.donation_sync.queue.work_queue import WorkQueue
from src.donation_sync.submissions.store import RedisOrderStore, RedisSubmissionStore

logger = structlog.get_logger(__name__)


def build_event_bus(settings: Settings, redis: aioredis.Redis) -> InProcessEventBus:
    """In-process bus with the feedback subscriber and the outcome stream."""
    bus = InProcessEventBus()
    ExportOutcomeSubscriber(
        RedisSubmissionStore(redis, settings.KEY_PREFIX),
        RedisOrderStore(redis, settings.KEY_PREFIX),
    ).register(bus)
    bus.subscribe(
        EventType.EXPORT_SUCCEEDED,
        RedisEventBus(redis, settings.KEY_PREFIX).publish,
    )
    return bus


def build_worker(
    settings: Settings,
    redis: aioredis.Redis,
    *,
    transport: CRMTransport | None = None,
    clock: Callable[[], date] | None = None,
) -> ExportQueueWorker:
    """Construct the export worker and all of its collaborators."""
    mapper = (
        PayloadMapper.from_settings(settings, clock)
        if clock is not None
        else PayloadMapper.from_settings(settings)
    )
    submitter = ExportSubmitter(
        transport or SalesforceTransport.from_settings(settings),
        build_event_bus(settings, redis),
    )
    return ExportQueueWorker(
        submissions=RedisSubmissionStore(redis, settings.KEY_PREFIX),
        orders=RedisOrderStore(redis, settings.KEY_PREFIX),
        gate=EligibilityGate(settings.EXPORT_MISSING_BANK_INTEREST),
        mapper=mapper,
        submitter=submitter,
    )


def build_work_queue(settings: Settings, redis: aioredis.Redis) -> WorkQueue:
    return WorkQueue(redis, settings.KEY_PREFIX, settings.QUEUE_NAME)


def build_consumer(settings: Settings, redis: aioredis.Redis) -> QueueConsumer:
    return QueueConsumer(
        queue=build_work_queue(settings, redis),
        group=settings.CONSUMER_GROUP,
        consumer_name=settings.CONSUMER_NAME,
        dlq=DeadLetterQueue(redis, settings.KEY_PREFIX),
        max_retries=settings.QUEUE_MAX_RETRIES,
        retry_delays=settings.QUEUE_RETRY_DELAYS,
        reclaim_idle_ms=settings.QUEUE_RECLAIM_IDLE_MS,
    )


def build_trigger(settings: Settings, redis: aioredis.Redis) -> EnqueueTrigger:
    return EnqueueTrigger(
        build_work_queue(settings, redis),
        export_missing_bank_interest=settings.EXPORT_MISSING_BANK_INTEREST,
    )


async def run_worker(settings: Settings | None = None) -> None:
    """Consume the export queue until a termination signal arrives."""
    settings = settings or get_settings()
    configure_structlog(settings)
    redis = get_redis_pool()

    worker = build_worker(settings, redis)
    consumer = build_consumer(settings, redis)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, consumer.stop)

    logger.info(
        "worker.starting",
        environment=settings.ENVIRONMENT.value,
        queue=settings.QUEUE_NAME,
        consumer=settings.CONSUMER_NAME,
    )
    try:
        await consumer.process_loop(worker)
    finally:
        await close_redis()
        logger.info("worker.stopped")


if __name__ == "__main__":
    asyncio.run(run_worker())
