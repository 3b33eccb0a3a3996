"""Domain event published after a submission was accepted by the CRM.

ExportOutcomeEvent carries the outcome plus the export metadata (donation
kind, submission id, the raw answers that were exported). Events serialize
to flat string dicts for Redis Streams and deserialize back losslessly.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.donation_sync.export.records import ExportMetadata
from src.donation_sync.submissions.schemas import DonationKind


class EventType(str, Enum):
    """Types of events emitted by the export pipeline."""

    EXPORT_SUCCEEDED = "export.succeeded"


class ExportOutcomeEvent(BaseModel):
    """Outcome of a confirmed CRM export.

    Attributes:
        event_id: Unique identifier (auto-generated UUID4).
        version: Schema version for forward compatibility.
        event_type: Kind of event.
        timestamp: UTC creation time.
        submission_id: Exported submission.
        donation_kind: Mapping branch the payload was built with.
        raw_data: The captured answers that were exported.
        acknowledgement: Raw CRM acknowledgement body.
    """

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    version: str = "1.0"
    event_type: EventType = EventType.EXPORT_SUCCEEDED
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    submission_id: str
    donation_kind: DonationKind
    raw_data: dict[str, Any] = Field(default_factory=dict)
    acknowledgement: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def succeeded(
        cls,
        metadata: ExportMetadata,
        acknowledgement: dict[str, Any],
    ) -> ExportOutcomeEvent:
        return cls(
            submission_id=metadata.submission_id,
            donation_kind=metadata.donation_kind,
            raw_data=metadata.raw_data,
            acknowledgement=acknowledgement,
        )

    def to_stream_dict(self) -> dict[str, str]:
        """Serialize all fields to a flat dict of strings for Redis Streams.

        Redis Streams require all field values to be strings. Mappings are
        JSON-encoded and datetimes use ISO format.

        Returns:
            Dictionary with string keys and string values suitable for XADD.
        """
        return {
            "event_id": self.event_id,
            "version": self.version,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "submission_id": self.submission_id,
            "donation_kind": self.donation_kind.value,
            "raw_data": json.dumps(self.raw_data),
            "acknowledgement": json.dumps(self.acknowledgement),
        }

    @classmethod
    def from_stream_dict(cls, raw: dict[str, str]) -> ExportOutcomeEvent:
        """Reverse the encoding performed by ``to_stream_dict()``."""
        return cls(
            event_id=raw["event_id"],
            version=raw.get("version", "1.0"),
            event_type=EventType(raw["event_type"]),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            submission_id=raw["submission_id"],
            donation_kind=DonationKind(raw["donation_kind"]),
            raw_data=json.loads(raw["raw_data"]) if raw.get("raw_data") else {},
            acknowledgement=json.loads(raw["acknowledgement"]) if raw.get("acknowledgement") else {},
        )
