"""Numbered payment documents.

Each model declares the numbering it uses in ``NUMBERING`` and converts to
and from plain store documents. Derived flags are evaluated against an
optional ``now`` so they can be checked deterministically.
"""

from __future__ import annotations

import datetime
import math
from decimal import Decimal
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, Field, model_validator

from docseq.core.models import PartitionScheme, SequenceSpec

_SECONDS_PER_DAY = 24 * 60 * 60


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class NumberedDocument(BaseModel):
    """Base for documents whose number is assigned at creation time."""

    NUMBERING: ClassVar[SequenceSpec]

    def to_document(self) -> dict[str, Any]:
        """Dump to a store document, leaving out an unassigned number."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> NumberedDocument:
        return cls.model_validate(
            {k: v for k, v in document.items() if not k.startswith("_")}
        )


# ---------------------------------------------------------------------------
# Purchase payments (to suppliers)
# ---------------------------------------------------------------------------


class PurchasePaymentMethod(StrEnum):
    bank_transfer = "bank_transfer"
    check = "check"
    credit = "credit"
    cash = "cash"


class PurchasePaymentStatus(StrEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class PurchasePayment(NumberedDocument):
    """A payment made to a supplier against a purchase order."""

    NUMBERING: ClassVar[SequenceSpec] = SequenceSpec(
        entity="purchase_payment",
        prefix="PPAY",
        width=6,
        partition=PartitionScheme.year,
        field="payment_number",
    )

    payment_number: str | None = Field(default=None, pattern=r"^PPAY\d{10,}$")
    purchase_order: str
    supplier: str
    amount: Decimal = Field(ge=0)
    payment_method: PurchasePaymentMethod
    payment_date: datetime.datetime = Field(default_factory=_utcnow)
    due_date: datetime.datetime | None = None
    status: PurchasePaymentStatus = PurchasePaymentStatus.pending
    paid_by: str | None = None
    check_number: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_due_date(self) -> PurchasePayment:
        if self.due_date is not None and self.due_date < self.payment_date:
            raise ValueError("Due date must be after payment date")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == PurchasePaymentStatus.completed

    def _open(self) -> bool:
        return self.due_date is not None and self.status not in (
            PurchasePaymentStatus.completed,
            PurchasePaymentStatus.cancelled,
        )

    def is_overdue(self, now: datetime.datetime | None = None) -> bool:
        if not self._open():
            return False
        return (now or _utcnow()) > self.due_date

    def days_until_due(self, now: datetime.datetime | None = None) -> int | None:
        """Whole days until the due date, rounded up; None once settled."""
        if not self._open():
            return None
        delta = self.due_date - (now or _utcnow())
        return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)

    def needs_attention(self, now: datetime.datetime | None = None) -> bool:
        """Pending and due within a week (or already overdue)."""
        if self.status != PurchasePaymentStatus.pending or self.due_date is None:
            return False
        days = self.days_until_due(now)
        return days is not None and days <= 7


# ---------------------------------------------------------------------------
# Sales payments (from customers)
# ---------------------------------------------------------------------------


class SalesPaymentMethod(StrEnum):
    cash = "cash"
    card = "card"
    bank_transfer = "bank_transfer"
    e_wallet = "e_wallet"


class SalesPaymentStatus(StrEnum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class SalesPayment(NumberedDocument):
    """A payment received from a customer for an order."""

    NUMBERING: ClassVar[SequenceSpec] = SequenceSpec(
        entity="sales_payment",
        prefix="SPAY",
        width=6,
        partition=PartitionScheme.year,
        field="payment_number",
    )

    payment_number: str | None = Field(default=None, pattern=r"^SPAY\d{10,}$")
    order: str
    customer: str
    amount: Decimal = Field(ge=0)
    payment_method: SalesPaymentMethod
    payment_date: datetime.datetime = Field(default_factory=_utcnow)
    status: SalesPaymentStatus = SalesPaymentStatus.pending
    received_by: str | None = None
    transaction_id: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=500)

    @property
    def is_successful(self) -> bool:
        return self.status == SalesPaymentStatus.completed

    @property
    def is_refundable(self) -> bool:
        return (
            self.status == SalesPaymentStatus.completed
            and self.payment_method != SalesPaymentMethod.cash
        )
