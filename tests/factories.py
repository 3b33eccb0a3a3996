"""Builders and in-memory collaborators shared by the export pipeline tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from src.donation_sync.crm.transport import CRMAcknowledgement, CRMErrorList, CRMTransport
from src.donation_sync.export.records import ExportPayload
from src.donation_sync.submissions.schemas import (
    Attribution,
    Order,
    OrderItem,
    Submission,
    SubmissionState,
)
from src.donation_sync.submissions.store import OrderStore, SubmissionStore

FIXED_DAY = date(2024, 3, 15)


def fixed_clock() -> date:
    return FIXED_DAY


def make_submission(
    state: SubmissionState = SubmissionState.SIGNED,
    submission_id: str = "sub-1",
    **overrides: Any,
) -> Submission:
    """Build a recurring submission (scenario 1 answers) with overrides."""
    raw_data = {
        "first_name": "Anna",
        "last_name": "Svensson",
        "email": "a@x.se",
        "amount": "100",
        "mobile_phone": "0701234567",
        "order_type": "unhcr_monthly_order_type",
    }
    raw_data.update(overrides.pop("raw_data", {}))
    return Submission(id=submission_id, state=state, raw_data=raw_data, **overrides)


def make_single_submission(
    state: SubmissionState = SubmissionState.SIGNED,
    **raw_overrides: Any,
) -> Submission:
    """Build a one-time person donation."""
    raw_data = {
        "first_name": "Erik",
        "last_name": "Lind",
        "email": "erik@example.se",
        "pnum": "19800101-1234",
        "street_address": "Storgatan 1",
        "city": "Uppsala",
        "postal_code": "753 20",
        "amount": "250.50",
        "phone": "018-123456",
        "transaction_id": "tx-42",
        "order_type": "unhcr_honorial_",
        "field_charity_campaign": "CMP-001",
    }
    raw_data.update(raw_overrides)
    return Submission(id="sub-single", state=state, raw_data=raw_data)


def make_order(**overrides: Any) -> Order:
    data: dict[str, Any] = {
        "id": "order-9",
        "payment_channel_id": "swedbank_pay_swish",
        "attribution": Attribution(source="google", medium="cpc", campaign="spring"),
        "items": [OrderItem(name="Blanket", product="Winter kit", qty=2, unit_price=Decimal("100"))],
    }
    data.update(overrides)
    return Order(**data)


class InMemorySubmissionStore(SubmissionStore):
    def __init__(self, *submissions: Submission) -> None:
        self.items = {s.id: s for s in submissions}
        self.saved: list[Submission] = []

    async def load(self, submission_id: str) -> Submission | None:
        return self.items.get(submission_id)

    async def save(self, submission: Submission) -> None:
        self.items[submission.id] = submission
        self.saved.append(submission)


class InMemoryOrderStore(OrderStore):
    def __init__(self, *orders: Order) -> None:
        self.items = {o.id: o for o in orders}
        self.saved: list[Order] = []

    async def load_order_for(self, submission: Submission) -> Order | None:
        order_id = submission.order_ref or submission.raw_data.get("order_id")
        return self.items.get(order_id) if order_id else None

    async def save(self, order: Order) -> None:
        self.items[order.id] = order
        self.saved.append(order)


class ScriptedTransport(CRMTransport):
    """Returns (or raises) a preset result and records every payload."""

    def __init__(self, result: CRMAcknowledgement | CRMErrorList | Exception | None = None) -> None:
        self.result = result if result is not None else CRMAcknowledgement(data={"success": True})
        self.calls: list[ExportPayload] = []

    async def create_records(self, payload: ExportPayload) -> CRMAcknowledgement | CRMErrorList:
        self.calls.append(payload)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result
