"""Eligibility gate: decide from the lifecycle state whether to export.

Decision table (keyed by ``submission.state``):

| state                                        | verdict                       |
|----------------------------------------------|-------------------------------|
| signed                                       | proceed                       |
| missing_bank_interest_queued                 | proceed (without bank details)|
|                                              | or retryable_skip when the    |
|                                              | policy flag is off            |
| missing_bank_signed                          | proceed (bank continuation)   |
| created_bisnode, missing_bank_interest_created, crm_success | skip, already exported |
| error + communication_error                  | proceed (retry)               |
| error + any other type                       | skip, permanent               |
| anything else                                | skip, invalid state (error)   |

The gate is the idempotency guard of the pipeline: a duplicate delivery
of an already exported submission is stopped here.
"""

from __future__ import annotations

from enum import Enum

import structlog
from pydantic import BaseModel

from src.donation_sync.submissions.schemas import ErrorType, Submission, SubmissionState

logger = structlog.get_logger(__name__)

ALREADY_EXPORTED_STATES = frozenset({
    SubmissionState.CREATED_BISNODE,
    SubmissionState.MISSING_BANK_INTEREST_CREATED,
    SubmissionState.CRM_SUCCESS,
})


class GateVerdict(str, Enum):
    PROCEED = "proceed"
    SKIP = "skip"
    RETRYABLE_SKIP = "retryable_skip"


class ExportVariant(str, Enum):
    """Which flavour of export a proceeding submission gets."""

    STANDARD = "standard"
    WITHOUT_BANK_DETAILS = "without_bank_details"
    BANK_CONTINUATION = "bank_continuation"
    RETRY = "retry"


class GateDecision(BaseModel):
    """Outcome of the eligibility check."""

    verdict: GateVerdict
    reason: str
    variant: ExportVariant | None = None

    @property
    def proceed(self) -> bool:
        return self.verdict == GateVerdict.PROCEED

    @classmethod
    def go(cls, variant: ExportVariant, reason: str) -> GateDecision:
        return cls(verdict=GateVerdict.PROCEED, reason=reason, variant=variant)

    @classmethod
    def skip(cls, reason: str) -> GateDecision:
        return cls(verdict=GateVerdict.SKIP, reason=reason)


class EligibilityGate:
    """Pure decision over the submission state, plus one diagnostic log line.

    Args:
        export_missing_bank_interest: Policy for ``missing_bank_interest_queued``.
            When False such submissions are skipped (retryable) instead of
            exported without bank details.
    """

    def __init__(self, export_missing_bank_interest: bool = True) -> None:
        self._export_missing_bank_interest = export_missing_bank_interest

    def evaluate(self, submission: Submission) -> GateDecision:
        state = submission.state
        log = logger.bind(submission_id=submission.id, state=state.value)

        if state == SubmissionState.SIGNED:
            log.info("gate.proceed")
            return GateDecision.go(ExportVariant.STANDARD, "signed")

        if state == SubmissionState.MISSING_BANK_INTEREST_QUEUED:
            if not self._export_missing_bank_interest:
                log.info("gate.skip_missing_bank_interest_disabled")
                return GateDecision(
                    verdict=GateVerdict.RETRYABLE_SKIP,
                    reason="missing_bank_interest_disabled",
                )
            log.info("gate.proceed_without_bank_details")
            return GateDecision.go(ExportVariant.WITHOUT_BANK_DETAILS, "missing_bank_interest")

        if state == SubmissionState.MISSING_BANK_SIGNED:
            log.info("gate.proceed_bank_continuation")
            return GateDecision.go(ExportVariant.BANK_CONTINUATION, "missing_bank_signed")

        if state in ALREADY_EXPORTED_STATES:
            log.warning("gate.skip_already_exported")
            return GateDecision.skip("already_exported")

        if state == SubmissionState.ERROR:
            if submission.error_type == ErrorType.COMMUNICATION_ERROR:
                log.info("gate.retry_communication_error")
                return GateDecision.go(ExportVariant.RETRY, "communication_error")
            log.error(
                "gate.skip_permanent_error",
                error_type=submission.error_type_label,
            )
            return GateDecision.skip("permanent_error")

        log.error("gate.skip_invalid_state")
        return GateDecision.skip("invalid_state")
