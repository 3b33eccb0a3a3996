"""Queue Worker: drive one submission id through the export pipeline.

    Dequeued -> Gated -> Mapped -> Sanitized -> Submitted
             -> {Acknowledged | Requeue | Dropped}

Terminal outcomes (acknowledged, dropped) are returned as a WorkItemResult
so the consumer acks the entry. A retryable failure from the submitter is
re-raised as RequeueError; backoff and dead-lettering belong to the queue
consumer. The worker never writes to the submission: the post-export
state update is done by the ExportOutcomeSubscriber.
"""

from __future__ import annotations

from enum import Enum

import structlog
from pydantic import BaseModel, ValidationError

from src.donation_sync.errors import (
    MappingError,
    RemoteRejectedError,
    RequeueError,
    RetryableExportError,
)
from src.donation_sync.export.gate import EligibilityGate, GateVerdict
from src.donation_sync.export.mapper import PayloadMapper
from src.donation_sync.export.records import ExportMetadata
from src.donation_sync.export.sanitizer import sanitize_payload
from src.donation_sync.export.submitter import ExportSubmitter
from src.donation_sync.submissions.schemas import Order, Submission
from src.donation_sync.submissions.store import OrderStore, SubmissionStore

logger = structlog.get_logger(__name__)


class Disposition(str, Enum):
    ACKNOWLEDGED = "acknowledged"
    DROPPED = "dropped"


class WorkItemResult(BaseModel):
    """Terminal outcome of one work item."""

    submission_id: str
    disposition: Disposition
    reason: str = ""

    @classmethod
    def dropped(cls, submission_id: str, reason: str) -> WorkItemResult:
        return cls(submission_id=submission_id, disposition=Disposition.DROPPED, reason=reason)

    @classmethod
    def acknowledged(cls, submission_id: str) -> WorkItemResult:
        return cls(submission_id=submission_id, disposition=Disposition.ACKNOWLEDGED)


class ExportQueueWorker:
    """Export a single submission per work item.

    Args:
        submissions: Submission store.
        orders: Order store; None exports without order data.
        gate: Eligibility gate.
        mapper: Payload mapper.
        submitter: Export submitter.
    """

    def __init__(
        self,
        submissions: SubmissionStore,
        orders: OrderStore | None,
        gate: EligibilityGate,
        mapper: PayloadMapper,
        submitter: ExportSubmitter,
    ) -> None:
        self._submissions = submissions
        self._orders = orders
        self._gate = gate
        self._mapper = mapper
        self._submitter = submitter

    async def process_item(self, submission_id: str) -> WorkItemResult:
        """Run the pipeline for one submission id.

        Raises:
            RequeueError: The CRM rejected the payload or could not be reached.
        """
        log = logger.bind(submission_id=submission_id)

        try:
            submission = await self._submissions.load(submission_id)
        except ValidationError as exc:
            log.error("worker.submission_invalid", error=str(exc))
            return WorkItemResult.dropped(submission_id, "invalid_submission")
        if submission is None:
            log.warning("worker.submission_not_found")
            return WorkItemResult.dropped(submission_id, "not_found")

        decision = self._gate.evaluate(submission)
        if not decision.proceed:
            if decision.verdict == GateVerdict.RETRYABLE_SKIP:
                log.info("worker.skipped", reason=decision.reason)
            else:
                log.warning("worker.skipped", reason=decision.reason)
            return WorkItemResult.dropped(submission_id, decision.reason)

        order = await self._load_order(submission)

        try:
            payload = self._mapper.map(submission, order)
        except (MappingError, ValidationError) as exc:
            log.error("worker.mapping_failed", error=str(exc))
            return WorkItemResult.dropped(submission_id, "mapping_failed")
        if payload is None:
            log.info("worker.nothing_to_export", order_type=submission.order_type)
            return WorkItemResult.dropped(submission_id, "unmapped_kind")

        payload = sanitize_payload(payload)
        metadata = ExportMetadata(
            donation_kind=submission.donation_kind,
            submission_id=submission.id,
            raw_data=submission.raw_data,
        )

        try:
            await self._submitter.submit(payload, metadata)
        except RetryableExportError as exc:
            reason = "remote_rejected" if isinstance(exc, RemoteRejectedError) else "transport_fault"
            log.warning("worker.requeue", reason=reason, error=str(exc))
            raise RequeueError(submission_id, reason) from exc

        log.info(
            "worker.acknowledged",
            variant=decision.variant.value if decision.variant else None,
            records=payload.object_types(),
        )
        return WorkItemResult.acknowledged(submission_id)

    async def _load_order(self, submission: Submission) -> Order | None:
        if self._orders is None:
            return None
        try:
            return await self._orders.load_order_for(submission)
        except Exception as exc:
            logger.warning(
                "worker.order_lookup_failed",
                submission_id=submission.id,
                error=str(exc),
            )
            return None
