"""Export Submitter: one call to the CRM transport per payload.

Every failure, whether a structured rejection or a transport exception, is
raised as a RetryableExportError subclass so the worker can ask the queue
for redelivery. A confirmed success publishes an ExportOutcomeEvent; the
publish is best effort because the CRM already holds the canonical record.
"""

from __future__ import annotations

import structlog

from src.donation_sync.crm.transport import CRMErrorList, CRMTransport
from src.donation_sync.errors import RemoteRejectedError, TransportFaultError
from src.donation_sync.events.bus import EventBus
from src.donation_sync.events.schemas import ExportOutcomeEvent
from src.donation_sync.export.records import ExportMetadata, ExportOutcome, ExportPayload

logger = structlog.get_logger(__name__)


class ExportSubmitter:
    """Submit an ExportPayload and announce the confirmed outcome.

    Args:
        transport: CRM transport performing the "create records" call.
        event_bus: Bus the success event is published on; None disables it.
    """

    def __init__(self, transport: CRMTransport, event_bus: EventBus | None = None) -> None:
        self._transport = transport
        self._event_bus = event_bus

    async def submit(self, payload: ExportPayload, metadata: ExportMetadata) -> ExportOutcome:
        log = logger.bind(
            submission_id=metadata.submission_id,
            donation_kind=metadata.donation_kind.value,
        )
        try:
            result = await self._transport.create_records(payload)
        except Exception as exc:
            log.error(
                "submit.transport_fault",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise TransportFaultError(
                f"Salesforce transport failed: {exc}",
                submission_id=metadata.submission_id,
            ) from exc

        if isinstance(result, CRMErrorList):
            for error in result.errors:
                log.error(
                    "submit.remote_error",
                    message=error.message,
                    detail=error.detail,
                    field=error.field,
                    record=error.record,
                )
            raise RemoteRejectedError(
                result.errors,
                submission_id=metadata.submission_id,
                outcome=ExportOutcome.failure(result.errors),
            )

        outcome = ExportOutcome.success(result.data)
        log.info("submit.succeeded", records=len(payload.records))
        await self._publish(outcome, metadata)
        return outcome

    async def _publish(self, outcome: ExportOutcome, metadata: ExportMetadata) -> None:
        if self._event_bus is None:
            return
        event = ExportOutcomeEvent.succeeded(metadata, outcome.acknowledgement)
        try:
            await self._event_bus.publish(event)
        except Exception as exc:
            logger.error(
                "submit.publish_failed",
                submission_id=metadata.submission_id,
                event_id=event.event_id,
                error=str(exc),
            )
