"""Field sanitizer: never send an empty value that would clobber CRM data.

Records are upserted against existing CRM rows (``matchRecord``). An empty
string in an identity, name, email, phone or address field would overwrite
a value the CRM already holds, while an absent key leaves it untouched. So
for a fixed per-object list of "not nullable" fields, empty values are
left out of the record entirely.

This is independent of ``no_override_fields``, which tells the CRM to keep
its value even when a non-empty one is sent.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from src.donation_sync.export.records import ACCOUNT, CONTACT, HOLDING, ExportPayload, MappedRecord

NOT_NULLABLE_FIELDS: dict[str, tuple[str, ...]] = {
    CONTACT: (
        "Personal_ID_S4U__c",
        "FirstName",
        "LastName",
        "Email",
        "Phone",
        "MobilePhone",
        "MailingCity",
        "MailingStreet",
        "MailingPostalCode",
    ),
    ACCOUNT: (
        "Organisational_Number_S4U__c",
        "Name",
        "Phone",
        "ShippingCity",
        "ShippingStreet",
        "ShippingPostalCode",
    ),
    HOLDING: (),
}


def is_empty(value: Any) -> bool:
    """None and blank strings are empty; False and 0 are real values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


class RecordFieldsBuilder:
    """Ordered field map that only inserts protected fields when present."""

    def __init__(self, protected_fields: Iterable[str] = ()) -> None:
        self._protected = frozenset(protected_fields)
        self._fields: dict[str, Any] = {}

    def set(self, name: str, value: Any) -> RecordFieldsBuilder:
        if name in self._protected and is_empty(value):
            return self
        self._fields[name] = value
        return self

    def update(self, fields: dict[str, Any]) -> RecordFieldsBuilder:
        for name, value in fields.items():
            self.set(name, value)
        return self

    def build(self) -> dict[str, Any]:
        return dict(self._fields)


def protected_fields_for(object_type: str) -> tuple[str, ...]:
    return NOT_NULLABLE_FIELDS.get(object_type, ())


def sanitize(record: MappedRecord, protected_fields: Iterable[str] | None = None) -> MappedRecord:
    """Return a copy of the record without empty protected fields.

    Args:
        record: The mapped record.
        protected_fields: Field names to protect. Defaults to the
            NOT_NULLABLE_FIELDS entry for the record's object type.
    """
    if protected_fields is None:
        protected_fields = protected_fields_for(record.object_type)
    fields = RecordFieldsBuilder(protected_fields).update(record.fields).build()
    return record.model_copy(update={"fields": fields})


def sanitize_payload(payload: ExportPayload) -> ExportPayload:
    return ExportPayload(records=[sanitize(r) for r in payload.records])
