"""Enqueue trigger: decide after a submission save whether to queue an export.

Rules:
- a submission already in ``crm_success`` is never queued again
- submissions with an e-signature case are queued on update only, once
  the donor signed (``signed``, ``missing_bank_signed`` and, when the
  policy allows, ``missing_bank_interest_queued``) or when the mandate was
  signed on paper
- all other submissions are queued when first inserted
"""

from __future__ import annotations

import structlog

from src.donation_sync.queue.work_queue import WorkQueue
from src.donation_sync.submissions.schemas import (
    PAPER_PURCHASE_TYPE,
    Order,
    Submission,
    SubmissionState,
)

logger = structlog.get_logger(__name__)

SIGNED_STATES = frozenset({
    SubmissionState.SIGNED,
    SubmissionState.MISSING_BANK_SIGNED,
})


class EnqueueTrigger:
    """Post-save hook that puts exportable submissions on the work queue.

    Args:
        queue: WorkQueue the submission id is appended to.
        export_missing_bank_interest: Also queue ``missing_bank_interest_queued``
            submissions with an e-signature case.
    """

    def __init__(self, queue: WorkQueue, export_missing_bank_interest: bool = True) -> None:
        self._queue = queue
        self._signed_states = set(SIGNED_STATES)
        if export_missing_bank_interest:
            self._signed_states.add(SubmissionState.MISSING_BANK_INTEREST_QUEUED)

    def should_enqueue(
        self,
        submission: Submission,
        *,
        is_update: bool,
        order: Order | None = None,
    ) -> bool:
        if submission.state == SubmissionState.CRM_SUCCESS:
            return False
        if submission.signing_case:
            if not is_update:
                return False
            if order is not None and order.purchase_type == PAPER_PURCHASE_TYPE:
                return True
            return submission.state in self._signed_states
        return not is_update

    async def on_post_save(
        self,
        submission: Submission,
        *,
        is_update: bool,
        order: Order | None = None,
    ) -> bool:
        """Queue the submission if its save makes it exportable.

        Returns:
            True if the submission id was enqueued.
        """
        if not self.should_enqueue(submission, is_update=is_update, order=order):
            logger.debug(
                "trigger.not_enqueued",
                submission_id=submission.id,
                state=submission.state.value,
                is_update=is_update,
            )
            return False
        await self._queue.enqueue(submission.id)
        return True
