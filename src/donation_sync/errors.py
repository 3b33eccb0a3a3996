"""Exception hierarchy for the submission export pipeline.

Only the retryable branch ever leaves the Export Submitter. The Queue
Worker converts it into a RequeueError, which is the single signal the
queue infrastructure understands as "redeliver this item later".
Everything else (missing submission, ineligible state, unmapped donation
kind) is terminal and handled inside the worker as a drop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.donation_sync.export.records import CRMError, ExportOutcome


class ExportError(Exception):
    """Base class for all export pipeline failures."""


class RetryableExportError(ExportError):
    """The CRM could not take the payload now; the item should be redelivered.

    Args:
        message: Human readable reason.
        submission_id: Submission the payload was built from.
        outcome: The failure outcome built by the submitter, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        submission_id: str | None = None,
        outcome: ExportOutcome | None = None,
    ) -> None:
        super().__init__(message)
        self.submission_id = submission_id
        self.outcome = outcome


class RemoteRejectedError(RetryableExportError):
    """The CRM answered with a structured list of record/field errors."""

    def __init__(
        self,
        errors: list[CRMError],
        *,
        submission_id: str | None = None,
        outcome: ExportOutcome | None = None,
    ) -> None:
        super().__init__(
            f"Salesforce rejected the payload with {len(errors)} error(s)",
            submission_id=submission_id,
            outcome=outcome,
        )
        self.errors = errors


class TransportFaultError(RetryableExportError):
    """Network, auth or serialization failure while reaching the CRM."""


class MappingError(ExportError, ValueError):
    """The captured answers cannot be turned into CRM records (e.g. a bad amount)."""


class RequeueError(ExportError):
    """Raised by the Queue Worker to ask the queue for redelivery.

    Args:
        submission_id: The work item to redeliver.
        reason: Short machine-friendly reason (e.g. ``remote_rejected``).
    """

    def __init__(self, submission_id: str, reason: str) -> None:
        super().__init__(f"Submission {submission_id} must be retried: {reason}")
        self.submission_id = submission_id
        self.reason = reason

