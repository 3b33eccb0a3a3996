"""Pydantic schemas for donation form submissions and their orders.

Defines the records the export pipeline consumes but does not own:
- Enums: SubmissionState, ErrorType, DonationKind, CustomerType, PaymentChannel
- Submission: lifecycle state plus the free-form captured answers
- Order: payment channel, UTM attribution and line items

Submissions and orders are persisted by the surrounding storage layer;
the pipeline only reads them (and the outcome subscriber writes back the
final state).
"""

from __future__ import annotations

import json
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


# ── Enums ───────────────────────────────────────────────────────────────────


class SubmissionState(str, Enum):
    """Lifecycle of a submission: capture, e-signature, payment, export."""

    CREATED = "created"
    PENDING_SIGNATURE = "pending_signature"
    SIGNED = "signed"
    MISSING_BANK_INTEREST_QUEUED = "missing_bank_interest_queued"
    MISSING_BANK_SIGNED = "missing_bank_signed"
    MISSING_BANK_INTEREST_CREATED = "missing_bank_interest_created"
    CREATED_BISNODE = "created_bisnode"
    CRM_SUCCESS = "crm_success"
    ERROR = "error"


class ErrorType(str, Enum):
    """Why a submission ended up in the ``error`` state."""

    COMMUNICATION_ERROR = "communication_error"
    SIGNING_FAILED = "signing_failed"
    PAYMENT_FAILED = "payment_failed"
    VALIDATION_ERROR = "validation_error"

    @property
    def label(self) -> str:
        return _ERROR_TYPE_LABELS[self]


_ERROR_TYPE_LABELS = {
    ErrorType.COMMUNICATION_ERROR: "Communication error",
    ErrorType.SIGNING_FAILED: "Signing failed",
    ErrorType.PAYMENT_FAILED: "Payment failed",
    ErrorType.VALIDATION_ERROR: "Validation error",
}


class DonationKind(str, Enum):
    """Top-level mapping branch.

    UNMAPPED is the explicit "nothing to export" variant: the worker drops
    the item without treating it as a fault.
    """

    RECURRING = "recurring"
    SINGLE = "single"
    UNMAPPED = "unmapped"


class CustomerType(str, Enum):
    """Who pays for a one-time donation."""

    PERSON = "person"
    ORGANIZATION = "organization"


class PaymentChannel(str, Enum):
    """Payment gateway identifiers the checkout can report."""

    CARD = "swedbank_pay_card"
    INSTANT_TRANSFER = "swedbank_pay_swish"
    BANK_REDIRECT = "swedbank_pay_trustly"
    INVOICE = "unhcr_onsite_invoice"


# Checkout order types grouped by export branch.
RECURRING_ORDER_TYPES = frozenset({"unhcr_monthly_order_type"})
SINGLE_ORDER_TYPES = frozenset({
    "unhcr_honorial_",
    "engasgava_order",
    "unhcr_one_time_company_",
    "unhcr_gift",
})
GIFT_ORDER_TYPE = "unhcr_gift"

ORGANIZATION_CUSTOMER_CODE = "C"

# Purchase type for mandates signed on paper instead of through e-signature.
PAPER_PURCHASE_TYPE = "paper"


# ── Order ───────────────────────────────────────────────────────────────────


class Attribution(BaseModel):
    """UTM attribution captured at checkout."""

    source: str = ""
    medium: str = ""
    campaign: str = ""
    content: str = ""
    term: str = ""


class OrderItem(BaseModel):
    """One purchased line of an order."""

    name: str
    product: str = ""
    qty: int = 1
    unit_price: Decimal = Decimal("0")
    currency: str = "SEK"

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.qty


class Order(BaseModel):
    """Checkout order linked to a submission (read-only for the mapper)."""

    id: str
    payment_channel_id: str = ""
    attribution: Attribution = Field(default_factory=Attribution)
    items: list[OrderItem] = Field(default_factory=list)
    purchase_type: str = ""
    is_gift: bool = False
    is_invoice: bool = False
    remote_sent: bool = False


# ── Submission ──────────────────────────────────────────────────────────────


class Submission(BaseModel):
    """A captured donation form instance with its lifecycle state.

    Attributes:
        id: Stable opaque id; queue payload and idempotency key.
        uuid: Public identifier used in sign-up continuation links.
        state: Current lifecycle state.
        raw_data: Free-form captured answers (names, address, amount, ...).
            Stored as a JSON blob; a string value is decoded on load.
        error_type: Classification when ``state`` is ``error``.
        order_ref: Weak reference to the checkout order, if any.
        campaign: CRM campaign chosen by a face-to-face recruiter.
        recruiter: CRM recruiter id for face-to-face sign-ups.
        signing_case: E-signature case id; set for mandate-based donations.
    """

    id: str
    uuid: str = ""
    state: SubmissionState
    raw_data: dict[str, Any] = Field(default_factory=dict)
    error_type: ErrorType | None = None
    order_ref: str | None = None
    campaign: str | None = None
    recruiter: str | None = None
    signing_case: str | None = None

    @field_validator("raw_data", mode="before")
    @classmethod
    def _decode_raw_data(cls, value: Any) -> Any:
        if isinstance(value, (str, bytes)):
            return json.loads(value) if value else {}
        return value if value is not None else {}

    @property
    def order_type(self) -> str:
        return str(self.raw_data.get("order_type") or "")

    @property
    def donation_kind(self) -> DonationKind:
        """Derive the export branch from the checkout order type."""
        if self.order_type in RECURRING_ORDER_TYPES:
            return DonationKind.RECURRING
        if self.order_type in SINGLE_ORDER_TYPES:
            return DonationKind.SINGLE
        return DonationKind.UNMAPPED

    @property
    def customer_type(self) -> CustomerType:
        if self.raw_data.get("field_customer_type_value") == ORGANIZATION_CUSTOMER_CODE:
            return CustomerType.ORGANIZATION
        return CustomerType.PERSON

    @property
    def is_gift(self) -> bool:
        return self.order_type == GIFT_ORDER_TYPE

    @property
    def error_type_label(self) -> str:
        return self.error_type.label if self.error_type else ""
