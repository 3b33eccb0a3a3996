"""Redis Streams work queue for submission exports.

Exports:
    WorkQueue: Durable queue of submission ids.
    DeadLetterQueue: Storage for items that exhausted their redeliveries.
    QueueConsumer: Ack/redeliver/dead-letter loop around the export worker.
"""

from src.donation_sync.queue.consumer import QueueConsumer
from src.donation_sync.queue.dlq import DeadLetterQueue
from src.donation_sync.queue.work_queue import WorkQueue

__all__ = [
    "DeadLetterQueue",
    "QueueConsumer",
    "WorkQueue",
]
