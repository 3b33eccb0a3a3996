"""CRM record graph models and export outcome types.

A submission is exported as an ExportPayload: an ordered sequence of
MappedRecords submitted as one atomic unit. Records refer to each other
through synthetic reference ids (``@CONTACT``, ``@ACCOUNT``) so a Holding
can point at the Contact created earlier in the same payload before the
CRM has assigned real ids.

Wire format (Salesforce composite upsert)::

    {"data": [{"attributes": {"sObject": "Contact", "referenceId": "CONTACT",
                              "matchRecord": "true",
                              "doNotOverride": "unig__Source_Type__c"},
               "record": {"FirstName": "Anna", ...}}, ...]}
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from src.donation_sync.submissions.schemas import DonationKind

# Salesforce object names used by the mapper.
CONTACT = "Contact"
ACCOUNT = "Account"
HOLDING = "gcdt__Holding__c"


class BackReference(str):
    """Field value that points at another record of the same payload.

    Only values built by back_reference() are references. Donor text that
    happens to look like ``@CONTACT`` stays a plain string.
    """

    @property
    def target(self) -> str:
        return self[1:]


def back_reference(reference_id: str) -> BackReference:
    """Return the in-payload pointer to a record, e.g. ``@CONTACT``."""
    return BackReference(f"@{reference_id}")


class MappedRecord(BaseModel):
    """One CRM record in an export payload.

    Attributes:
        object_type: Target CRM object (Contact, Account, gcdt__Holding__c).
        reference_id: Synthetic id other records use as ``@{reference_id}``.
        match_record: Ask the CRM to upsert against an existing match.
        fields: Ordered field name -> value mapping.
        no_override_fields: Fields the CRM keeps if already populated.
    """

    object_type: str
    reference_id: str | None = None
    match_record: bool = False
    fields: dict[str, Any] = Field(default_factory=dict)
    no_override_fields: tuple[str, ...] = ()

    def back_references(self) -> list[str]:
        """Reference ids this record points at through its field values."""
        return [v.target for v in self.fields.values() if isinstance(v, BackReference)]

    def to_wire(self) -> dict[str, Any]:
        attributes: dict[str, str] = {"sObject": self.object_type}
        if self.reference_id:
            attributes["referenceId"] = self.reference_id
        if self.match_record:
            attributes["matchRecord"] = "true"
        if self.no_override_fields:
            attributes["doNotOverride"] = ",".join(self.no_override_fields)
        return {"attributes": attributes, "record": dict(self.fields)}


class ExportPayload(BaseModel):
    """Ordered records submitted to the CRM as one unit."""

    records: list[MappedRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_back_references(self) -> ExportPayload:
        """Every ``@REF`` must point at a record declared earlier."""
        declared: set[str] = set()
        for index, record in enumerate(self.records):
            for ref in record.back_references():
                if ref not in declared:
                    msg = (
                        f"Record {index} ({record.object_type}) references "
                        f"'@{ref}' before it is declared"
                    )
                    raise ValueError(msg)
            if record.reference_id:
                declared.add(record.reference_id)
        return self

    def get(self, object_type: str) -> MappedRecord | None:
        """First record of the given object type, if any."""
        return next((r for r in self.records if r.object_type == object_type), None)

    def object_types(self) -> list[str]:
        return [r.object_type for r in self.records]

    def to_request_body(self) -> dict[str, Any]:
        return {"data": [r.to_wire() for r in self.records]}


class ExportMetadata(BaseModel):
    """Context passed along with a payload and echoed in the outcome event."""

    donation_kind: DonationKind
    submission_id: str
    raw_data: dict[str, Any] = Field(default_factory=dict)


class CRMError(BaseModel):
    """One error descriptor returned by the CRM."""

    message: str = ""
    detail: str = ""
    field: str | None = None
    record: str | None = None

    def __str__(self) -> str:
        return f"{self.message} {self.detail}".strip()


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ExportOutcome(BaseModel):
    """Result of one submit call. Built by the submitter, never persisted."""

    status: OutcomeStatus
    acknowledgement: dict[str, Any] = Field(default_factory=dict)
    errors: list[CRMError] = Field(default_factory=list)

    @classmethod
    def success(cls, acknowledgement: dict[str, Any]) -> ExportOutcome:
        return cls(status=OutcomeStatus.SUCCESS, acknowledgement=acknowledgement)

    @classmethod
    def failure(cls, errors: list[CRMError]) -> ExportOutcome:
        return cls(status=OutcomeStatus.FAILURE, errors=errors)

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS
