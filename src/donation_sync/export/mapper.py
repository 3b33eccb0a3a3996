"""Payload mapper: translate a submission into a CRM record graph.

Branches:
- recurring (monthly autogiro): Contact + Holding (WebRegular). A submission
  in ``missing_bank_signed`` instead gets a single bank-continuation Holding
  that completes the earlier sign-up with the bank account number.
- single (one-time, honorial, gift, company):
  - person: Contact + Holding (WebSingle)
  - organization: Account + Contact (affiliated to the Account) + Holding
- anything else: no payload (``None``), which the worker treats as
  "nothing to export".

Rules shared by all branches:
- national ids lose their separators, postal codes their spaces
- the street address gets the organization name on a second line
- amounts are whole currency units
- UTM attribution comes from the order, empty strings without one
- phones are normalized and split into mobile/landline slots
- records refer to each other through ``@CONTACT`` / ``@ACCOUNT``

The mapper is pure: the only wall-clock input (close/start date) comes from
the injected ``clock``. Empty values are kept as empty strings here; the
field sanitizer removes the ones that must not be sent.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from src.donation_sync.config import Settings
from src.donation_sync.errors import MappingError
from src.donation_sync.export.phone import DEFAULT_COUNTRY_CODE, classify_phone, normalize_phone
from src.donation_sync.export.records import (
    ACCOUNT,
    CONTACT,
    HOLDING,
    ExportPayload,
    MappedRecord,
    back_reference,
)
from src.donation_sync.submissions.schemas import (
    Attribution,
    CustomerType,
    DonationKind,
    Order,
    PaymentChannel,
    Submission,
    SubmissionState,
)

CONTACT_REF = "CONTACT"
ACCOUNT_REF = "ACCOUNT"

PAYMENT_METHODS: dict[str, str] = {
    PaymentChannel.CARD.value: "Credit Card",
    PaymentChannel.INSTANT_TRANSFER.value: "Swish",
    PaymentChannel.BANK_REDIRECT.value: "Internet Banking",
    PaymentChannel.INVOICE.value: "PGBG OCR",
}
DEFAULT_PAYMENT_METHOD = "Other"
RECURRING_PAYMENT_METHOD = "Autogiro"

# States in which the autogiro mandate counts as signed.
MANDATE_SIGNED_STATES = frozenset({
    SubmissionState.SIGNED,
    SubmissionState.MISSING_BANK_SIGNED,
    SubmissionState.MISSING_BANK_INTEREST_QUEUED,
})

# Contact fields the CRM keeps once set, even when a new value is sent.
CONTACT_NO_OVERRIDE_FIELDS = ("unig__Source_Type__c", "unig__Source_Campaign__c")

ORGANIZATION_ACCOUNT_DEFAULTS: dict[str, str] = {
    "unig__Partner_Type__c": "Corporate",
    "unig__Partner_Sub_Type__c": "SME",
    "unig__Office_Type__c": "Headquarters",
    "unig__Income_Team_Manual__c": "PPH",
    "unig__Industry_Sector__c": "Unknown",
}

SOURCE_TYPE = "Donation"

_ID_SEPARATORS = re.compile(r"[\s\-+]")


# ── Field helpers ───────────────────────────────────────────────────────────


def _text(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return "" if value is None else str(value).strip()


def normalize_national_id(raw: dict[str, Any]) -> str:
    """Organisation number, falling back to the personal number, without separators."""
    value = _text(raw, "field_org_number") or _text(raw, "pnum")
    return _ID_SEPARATORS.sub("", value)


def normalize_postal_code(value: str) -> str:
    return value.replace(" ", "")


def mailing_street(raw: dict[str, Any]) -> str:
    """Street address with the organization name on a second line, if any."""
    street = _text(raw, "street_address")
    company = _text(raw, "field_company_name")
    if company:
        return f"{street}\r\n{company}"
    return street


def whole_amount(value: Any) -> int:
    """Coerce an amount to whole currency units, dropping any fraction."""
    if value is None or value == "":
        return 0
    try:
        return int(Decimal(str(value).replace(" ", "").replace(",", ".")))
    except (InvalidOperation, ValueError, OverflowError) as exc:
        raise MappingError(f"Invalid donation amount: {value!r}") from exc


def payment_method(channel_id: str | None) -> str:
    return PAYMENT_METHODS.get(channel_id or "", DEFAULT_PAYMENT_METHOD)


def attribution_fields(order: Order | None) -> dict[str, str]:
    utm = order.attribution if order else Attribution()
    return {
        "UTM_Source_S4U__c": utm.source or "",
        "UTM_Medium_S4U__c": utm.medium or "",
        "UTM_Campaign_S4U__c": utm.campaign or "",
        "UTM_Content_S4U__c": utm.content or "",
        "UTM_Term_S4U__c": utm.term or "",
    }


def format_price(amount: Decimal, currency: str) -> str:
    return f"{amount.quantize(Decimal('0.01'))} {currency}"


def giftshop_summary(order: Order | None) -> str:
    """One line per purchased gift, joined for display in the CRM."""
    if order is None:
        return ""
    lines = [
        f'{item.name} "{item.product}" {item.qty} {format_price(item.total, item.currency)}'
        for item in order.items
    ]
    return "<br />".join(lines)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ── Mapper ──────────────────────────────────────────────────────────────────


class PayloadMapper:
    """Build the CRM payload for a submission.

    Args:
        clock: Returns "today"; used for close and start dates.
        currency_code: ISO code sent on every Holding.
        country_code: Canonical phone country prefix.
        gift_campaign: CRM campaign for gift-shop orders.
        continuation_url_template: Sign-up continuation link, formatted with
            ``submission_id`` and ``uuid``. Empty disables the link.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], date] = _utc_today,
        currency_code: str = "SEK",
        country_code: str = DEFAULT_COUNTRY_CODE,
        gift_campaign: str = "",
        continuation_url_template: str = "",
    ) -> None:
        self._clock = clock
        self._currency = currency_code
        self._country_code = country_code
        self._gift_campaign = gift_campaign
        self._continuation_template = continuation_url_template

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], date] = _utc_today,
    ) -> PayloadMapper:
        return cls(
            clock=clock,
            currency_code=settings.CURRENCY_CODE,
            country_code=settings.PHONE_COUNTRY_CODE,
            gift_campaign=settings.SALESFORCE_GIFT_CAMPAIGN,
            continuation_url_template=settings.CONTINUATION_URL_TEMPLATE,
        )

    def map(self, submission: Submission, order: Order | None = None) -> ExportPayload | None:
        """Return the payload for the submission, or None for unmapped kinds.

        Raises:
            MappingError: If a captured answer cannot be coerced (e.g. amount)
                or the continuation URL template does not render.
        """
        kind = submission.donation_kind
        if kind == DonationKind.RECURRING:
            if submission.state == SubmissionState.MISSING_BANK_SIGNED:
                return ExportPayload(records=[self._bank_continuation_holding(submission)])
            return ExportPayload(records=self._recurring_records(submission, order))
        if kind == DonationKind.SINGLE:
            if submission.customer_type == CustomerType.ORGANIZATION:
                return ExportPayload(records=self._organization_records(submission, order))
            return ExportPayload(records=self._person_records(submission, order))
        return None

    # ── Shared pieces ──────────────────────────────────────────────────

    def _today(self) -> str:
        return self._clock().isoformat()

    def _continuation_url(self, submission: Submission) -> str:
        if not self._continuation_template:
            return ""
        try:
            return self._continuation_template.format(
                submission_id=submission.id,
                uuid=submission.uuid,
            )
        except (KeyError, IndexError, ValueError) as exc:
            raise MappingError(
                f"Invalid continuation URL template {self._continuation_template!r}: {exc!r}"
            ) from exc

    def _phone_fields(self, raw: dict[str, Any]) -> dict[str, str]:
        phones = classify_phone(
            _text(raw, "mobile_phone") or _text(raw, "phone"),
            self._country_code,
        )
        return {"MobilePhone": phones.mobile, "Phone": phones.landline}

    def _holding_phone(self, raw: dict[str, Any]) -> str:
        return normalize_phone(
            _text(raw, "mobile_phone") or _text(raw, "phone"),
            self._country_code,
        )

    def _campaign(self, submission: Submission) -> str:
        if submission.is_gift:
            return self._gift_campaign
        return submission.campaign or _text(submission.raw_data, "field_charity_campaign")

    @staticmethod
    def _order_id(submission: Submission, order: Order | None) -> str:
        order_id = _text(submission.raw_data, "order_id") or submission.order_ref
        if not order_id and order is not None:
            order_id = order.id
        return order_id or ""

    @staticmethod
    def _payment_channel(submission: Submission, order: Order | None) -> str:
        if order is not None and order.payment_channel_id:
            return order.payment_channel_id
        return _text(submission.raw_data, "payment_gateway_id")

    def _person_contact(self, submission: Submission, *, no_override: tuple[str, ...] = ()) -> MappedRecord:
        raw = submission.raw_data
        fields: dict[str, Any] = {
            "Personal_ID_S4U__c": normalize_national_id(raw),
            "FirstName": _text(raw, "first_name"),
            "LastName": _text(raw, "last_name"),
            "Email": _text(raw, "email"),
            **self._phone_fields(raw),
            "MailingCity": _text(raw, "city"),
            "MailingStreet": mailing_street(raw),
            "MailingPostalCode": normalize_postal_code(_text(raw, "postal_code")),
            "unig__Source_Type__c": SOURCE_TYPE,
        }
        if no_override:
            fields["unig__Source_Campaign__c"] = self._campaign(submission)
        return MappedRecord(
            object_type=CONTACT,
            reference_id=CONTACT_REF,
            match_record=True,
            fields=fields,
            no_override_fields=no_override,
        )

    def _single_holding(
        self,
        submission: Submission,
        order: Order | None,
        *,
        customer_type: str,
        account_ref: str | None = None,
    ) -> MappedRecord:
        raw = submission.raw_data
        gift = submission.is_gift or (order is not None and order.is_gift)
        fields: dict[str, Any] = {}
        if account_ref:
            fields["gcdt__Account__c"] = back_reference(account_ref)
        fields.update({
            "gcdt__Contact__c": back_reference(CONTACT_REF),
            "Phone_S4U__c": self._holding_phone(raw),
            "gcdt__Payment_Method__c": payment_method(self._payment_channel(submission, order)),
            "gcdt__Payment_Reference__c": _text(raw, "transaction_id"),
            "gcdt__Opportunity_Amount__c": whole_amount(raw.get("amount")),
            "gcdt__Campaign__c": self._campaign(submission),
            "Giftshop_Summary_S4U__c": giftshop_summary(order) if gift else "",
            "Is_Giftshop_Gift_S4U__c": gift,
            "Drupal_Order_ID_S4U__c": self._order_id(submission, order),
            "gcdt__Opportunity_CloseDate__c": self._today(),
            "CurrencyISOCode": self._currency,
            "gcdt__Process_Type__c": "WebSingle",
            "Customer_Type_S4U__c": customer_type,
            **attribution_fields(order),
        })
        return MappedRecord(object_type=HOLDING, fields=fields)

    # ── Branches ────────────────────────────────────────────────────────

    def _person_records(self, submission: Submission, order: Order | None) -> list[MappedRecord]:
        return [
            self._person_contact(submission),
            self._single_holding(submission, order, customer_type="Private"),
        ]

    def _organization_records(self, submission: Submission, order: Order | None) -> list[MappedRecord]:
        raw = submission.raw_data
        company = _text(raw, "field_company_name")
        phones = self._phone_fields(raw)
        account = MappedRecord(
            object_type=ACCOUNT,
            reference_id=ACCOUNT_REF,
            match_record=True,
            fields={
                "Organisational_Number_S4U__c": normalize_national_id(raw),
                "Name": company or f"{_text(raw, 'first_name')} {_text(raw, 'last_name')}".strip(),
                "Phone": phones["Phone"],
                "ShippingCity": _text(raw, "city"),
                "ShippingStreet": mailing_street(raw),
                "ShippingPostalCode": normalize_postal_code(_text(raw, "postal_code")),
                **ORGANIZATION_ACCOUNT_DEFAULTS,
            },
        )
        contact = MappedRecord(
            object_type=CONTACT,
            reference_id=CONTACT_REF,
            match_record=True,
            fields={
                "npsp__Primary_Affiliation__c": back_reference(ACCOUNT_REF),
                "FirstName": _text(raw, "first_name"),
                "LastName": _text(raw, "last_name"),
                "Email": _text(raw, "email"),
                "MobilePhone": phones["MobilePhone"],
                "unig__Source_Type__c": SOURCE_TYPE,
            },
        )
        holding = self._single_holding(
            submission,
            order,
            customer_type="Corporate",
            account_ref=ACCOUNT_REF,
        )
        return [account, contact, holding]

    def _recurring_records(self, submission: Submission, order: Order | None) -> list[MappedRecord]:
        raw = submission.raw_data
        bank_number = _text(raw, "bank_number")
        contact = self._person_contact(submission, no_override=CONTACT_NO_OVERRIDE_FIELDS)
        holding = MappedRecord(
            object_type=HOLDING,
            fields={
                "gcdt__Contact__c": back_reference(CONTACT_REF),
                "Phone_S4U__c": self._holding_phone(raw),
                "gcdt__Recurring_Start_Date__c": self._today(),
                "gcdt__Recurring_Amount__c": whole_amount(raw.get("amount")),
                "gcdt__Payment_Method__c": RECURRING_PAYMENT_METHOD,
                "gcdt__Campaign__c": self._campaign(submission),
                "Recruiter_S4U__c": submission.recruiter or _text(raw, "recruiter"),
                "Mandate_Signed_S4U__c": submission.state in MANDATE_SIGNED_STATES,
                "Bank_Account_Number_S4U__c": bank_number,
                "CurrencyISOCode": self._currency,
                "gcdt__Process_Type__c": "WebRegular",
                "Drupal_Order_ID_S4U__c": self._order_id(submission, order),
                "Sign_Up_Continuation_URL_S4U__c": "" if bank_number else self._continuation_url(submission),
                "Sign_Up_Continuation_ID_S4U__c": submission.id,
                **attribution_fields(order),
            },
        )
        return [contact, holding]

    def _bank_continuation_holding(self, submission: Submission) -> MappedRecord:
        return MappedRecord(
            object_type=HOLDING,
            fields={
                "Bank_Account_Number_S4U__c": _text(submission.raw_data, "bank_number"),
                "gcdt__Process_Type__c": "WebF2FContinuation",
                "Sign_Up_Continuation_ID_S4U__c": submission.id,
                "Sign_Up_Continuation_URL_S4U__c": self._continuation_url(submission),
            },
        )
