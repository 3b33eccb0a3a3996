"""Storage interfaces for submissions and orders, with Redis implementations.

The export pipeline only needs ``load``/``save`` for submissions and a
lookup of the order linked to a submission. Both are expressed as ABCs so
the worker can be wired to any storage layer; the Redis implementations
keep each entity as a JSON document under ``{prefix}:submission:{id}``
and ``{prefix}:order:{id}``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import redis.asyncio as aioredis
import structlog

from src.donation_sync.submissions.schemas import Order, Submission

logger = structlog.get_logger(__name__)


class SubmissionStore(ABC):
    """Load and persist submissions."""

    @abstractmethod
    async def load(self, submission_id: str) -> Submission | None:
        """Return the submission, or None if the id no longer resolves."""
        ...

    @abstractmethod
    async def save(self, submission: Submission) -> None:
        """Persist the submission."""
        ...


class OrderStore(ABC):
    """Look up and persist checkout orders."""

    @abstractmethod
    async def load_order_for(self, submission: Submission) -> Order | None:
        """Return the order referenced by the submission, if any."""
        ...

    @abstractmethod
    async def save(self, order: Order) -> None:
        """Persist the order."""
        ...


class RedisSubmissionStore(SubmissionStore):
    """Submissions stored as JSON strings in Redis.

    Args:
        redis: Async Redis client created with ``decode_responses=True``.
        prefix: Key prefix shared by all donation-sync keys.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, submission_id: str) -> str:
        return f"{self._prefix}:submission:{submission_id}"

    async def load(self, submission_id: str) -> Submission | None:
        raw = await self._redis.get(self._key(submission_id))
        if raw is None:
            return None
        return Submission.model_validate_json(raw)

    async def save(self, submission: Submission) -> None:
        await self._redis.set(self._key(submission.id), submission.model_dump_json())
        logger.debug(
            "submission_saved",
            submission_id=submission.id,
            state=submission.state.value,
        )


class RedisOrderStore(OrderStore):
    """Orders stored as JSON strings in Redis, keyed by order id."""

    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, order_id: str) -> str:
        return f"{self._prefix}:order:{order_id}"

    async def load_order_for(self, submission: Submission) -> Order | None:
        order_id = submission.order_ref or submission.raw_data.get("order_id")
        if not order_id:
            return None
        raw = await self._redis.get(self._key(str(order_id)))
        if raw is None:
            return None
        return Order.model_validate_json(raw)

    async def save(self, order: Order) -> None:
        await self._redis.set(self._key(order.id), order.model_dump_json())
