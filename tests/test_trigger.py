"""Tests for the post-save enqueue trigger."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.donation_sync.export.trigger import EnqueueTrigger
from src.donation_sync.submissions.schemas import SubmissionState

from factories import make_order, make_submission


def _trigger(**kwargs) -> tuple[EnqueueTrigger, AsyncMock]:
    queue = AsyncMock()
    return EnqueueTrigger(queue, **kwargs), queue


class TestWithoutSigningCase:
    """One-time donations: queued once, on insert."""

    @pytest.mark.asyncio
    async def test_insert_enqueues(self):
        """A new submission is queued on insert."""
        trigger, queue = _trigger()
        assert await trigger.on_post_save(make_submission(SubmissionState.CREATED), is_update=False)
        queue.enqueue.assert_awaited_once_with("sub-1")

    @pytest.mark.asyncio
    async def test_update_does_not_enqueue(self):
        """Later saves do not queue it again."""
        trigger, queue = _trigger()
        assert not await trigger.on_post_save(make_submission(SubmissionState.CREATED), is_update=True)
        queue.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_crm_success_never_enqueues(self):
        """An exported submission is never queued."""
        trigger, queue = _trigger()
        submission = make_submission(SubmissionState.CRM_SUCCESS)
        assert not await trigger.on_post_save(submission, is_update=False)
        queue.enqueue.assert_not_awaited()


class TestWithSigningCase:
    """Mandate donations: queued on update once signed."""

    @pytest.mark.parametrize(
        "state",
        [SubmissionState.SIGNED, SubmissionState.MISSING_BANK_SIGNED, SubmissionState.MISSING_BANK_INTEREST_QUEUED],
    )
    def test_signed_states_enqueue_on_update(self, state):
        """Signing states queue on update."""
        trigger, _queue = _trigger()
        submission = make_submission(state, signing_case="case-1")
        assert trigger.should_enqueue(submission, is_update=True)

    def test_insert_never_enqueues(self):
        """Mandate submissions are not queued on insert."""
        trigger, _queue = _trigger()
        submission = make_submission(SubmissionState.SIGNED, signing_case="case-1")
        assert not trigger.should_enqueue(submission, is_update=False)

    def test_pending_signature_does_not_enqueue(self):
        """An unsigned mandate is not queued."""
        trigger, _queue = _trigger()
        submission = make_submission(SubmissionState.PENDING_SIGNATURE, signing_case="case-1")
        assert not trigger.should_enqueue(submission, is_update=True)

    def test_paper_mandate_enqueues_in_any_state(self):
        """A paper mandate is queued whatever the state."""
        trigger, _queue = _trigger()
        submission = make_submission(SubmissionState.PENDING_SIGNATURE, signing_case="case-1")
        order = make_order(purchase_type="paper")
        assert trigger.should_enqueue(submission, is_update=True, order=order)

    def test_missing_bank_interest_respects_policy(self):
        """Queued bank interest is not queued when the policy is off."""
        trigger, _queue = _trigger(export_missing_bank_interest=False)
        submission = make_submission(SubmissionState.MISSING_BANK_INTEREST_QUEUED, signing_case="case-1")
        assert not trigger.should_enqueue(submission, is_update=True)
