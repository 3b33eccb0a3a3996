"""Domain events emitted by the export pipeline.

Exports:
    ExportOutcomeEvent: Outcome of a confirmed export, with its metadata.
    EventType: Enum of export event kinds.
    EventBus: Abstract publish interface.
    InProcessEventBus: In-process subscriber registry.
    RedisEventBus: Redis Streams publisher.
    ExportOutcomeSubscriber: Writes the export result back to the submission.
"""

from __future__ import annotations

from src.donation_sync.events.schemas import EventType, ExportOutcomeEvent

__all__ = [
    "EventBus",
    "EventType",
    "ExportOutcomeEvent",
    "ExportOutcomeSubscriber",
    "InProcessEventBus",
    "RedisEventBus",
]


def __getattr__(name: str):  # noqa: N807
    """Lazy-load the bus and subscriber to avoid circular imports."""
    if name in ("EventBus", "InProcessEventBus", "RedisEventBus"):
        from src.donation_sync.events import bus

        return getattr(bus, name)
    if name == "ExportOutcomeSubscriber":
        from src.donation_sync.events.subscribers import ExportOutcomeSubscriber

        return ExportOutcomeSubscriber
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
