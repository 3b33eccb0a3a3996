"""Submission and order records consumed by the export pipeline.

Exports:
    Submission, Order: Pydantic records for captured donations and orders.
    SubmissionState, ErrorType, DonationKind, CustomerType, PaymentChannel: closed enums.
    SubmissionStore, OrderStore: Storage interfaces.
    RedisSubmissionStore, RedisOrderStore: JSON-in-Redis implementations.
"""

from src.donation_sync.submissions.schemas import (
    Attribution,
    CustomerType,
    DonationKind,
    ErrorType,
    Order,
    OrderItem,
    PaymentChannel,
    Submission,
    SubmissionState,
)
from src.donation_sync.submissions.store import (
    OrderStore,
    RedisOrderStore,
    RedisSubmissionStore,
    SubmissionStore,
)

__all__ = [
    "Attribution",
    "CustomerType",
    "DonationKind",
    "ErrorType",
    "Order",
    "OrderItem",
    "OrderStore",
    "PaymentChannel",
    "RedisOrderStore",
    "RedisSubmissionStore",
    "Submission",
    "SubmissionState",
    "SubmissionStore",
]
