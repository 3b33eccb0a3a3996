"""Feedback loop: apply a confirmed export to the submission and its order.

After the CRM accepted a submission, the subscriber:
1. merges the CRM acknowledgement into the submission's raw data (audit),
2. moves the submission to ``crm_success`` so it is never exported again,
3. flags the linked order as sent to the CRM.

The Queue Worker never mutates the submission itself; this subscriber is
the only writer of the post-export state.
"""

from __future__ import annotations

import structlog

from src.donation_sync.events.bus import InProcessEventBus
from src.donation_sync.events.schemas import EventType, ExportOutcomeEvent
from src.donation_sync.submissions.schemas import SubmissionState
from src.donation_sync.submissions.store import OrderStore, SubmissionStore

logger = structlog.get_logger(__name__)

CRM_RESPONSE_KEY = "crm_response"


class ExportOutcomeSubscriber:
    """Update the submission and order after a successful export.

    Args:
        submissions: Submission store.
        orders: Order store; None skips the order flag update.
    """

    def __init__(self, submissions: SubmissionStore, orders: OrderStore | None = None) -> None:
        self._submissions = submissions
        self._orders = orders

    def register(self, bus: InProcessEventBus) -> None:
        bus.subscribe(EventType.EXPORT_SUCCEEDED, self.on_export_succeeded)

    async def on_export_succeeded(self, event: ExportOutcomeEvent) -> None:
        submission = await self._submissions.load(event.submission_id)
        if submission is None:
            logger.warning(
                "outcome.submission_missing",
                submission_id=event.submission_id,
                event_id=event.event_id,
            )
            return

        raw_data = {**submission.raw_data, **event.raw_data}
        raw_data[CRM_RESPONSE_KEY] = event.acknowledgement
        submission = submission.model_copy(update={
            "raw_data": raw_data,
            "state": SubmissionState.CRM_SUCCESS,
        })
        await self._submissions.save(submission)
        logger.info(
            "outcome.submission_updated",
            submission_id=submission.id,
            state=submission.state.value,
        )

        if self._orders is None:
            return
        order = await self._orders.load_order_for(submission)
        if order is not None and not order.remote_sent:
            await self._orders.save(order.model_copy(update={"remote_sent": True}))
            logger.info(
                "outcome.order_marked_sent",
                submission_id=submission.id,
                order_id=order.id,
            )
