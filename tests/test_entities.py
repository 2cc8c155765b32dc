"""Tests for the numbered payment documents."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from docseq.core.creation import NumberedCreator
from docseq.core.entities import (
    PurchasePayment,
    PurchasePaymentStatus,
    SalesPayment,
    SalesPaymentMethod,
    SalesPaymentStatus,
)
from docseq.core.identifiers import IdentifierGenerator
from docseq.store.memory import MemoryStore

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


def _purchase(**kw) -> PurchasePayment:
    fields = {
        "purchase_order": "po-1",
        "supplier": "sup-1",
        "amount": Decimal("120.50"),
        "payment_method": "bank_transfer",
        "payment_date": NOW,
    }
    fields.update(kw)
    return PurchasePayment(**fields)


def _sale(**kw) -> SalesPayment:
    fields = {
        "order": "ord-1",
        "customer": "cust-1",
        "amount": Decimal("19.99"),
        "payment_method": "card",
        "payment_date": NOW,
    }
    fields.update(kw)
    return SalesPayment(**fields)


class TestPurchasePayment:
    def test_numbering(self):
        spec = PurchasePayment.NUMBERING
        assert (spec.prefix, spec.width, spec.field) == ("PPAY", 6, "payment_number")

    def test_unassigned_number_left_out_of_document(self):
        assert "payment_number" not in _purchase().to_document()

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            _purchase(amount=Decimal("-1"))

    def test_unknown_method_rejected(self):
        with pytest.raises(ValidationError):
            _purchase(payment_method="bitcoin")

    def test_due_date_before_payment_rejected(self):
        with pytest.raises(ValidationError):
            _purchase(due_date=NOW - timedelta(days=1))

    def test_malformed_number_rejected(self):
        with pytest.raises(ValidationError):
            _purchase(payment_number="SPAY2025000001")

    def test_overdue(self):
        payment = _purchase(due_date=NOW + timedelta(days=2))
        assert not payment.is_overdue(now=NOW)
        assert payment.is_overdue(now=NOW + timedelta(days=3))

    def test_days_until_due_rounds_up(self):
        payment = _purchase(due_date=NOW + timedelta(days=3, hours=1))
        assert payment.days_until_due(now=NOW) == 4
        assert _purchase(due_date=NOW + timedelta(days=3)).days_until_due(now=NOW) == 3

    def test_settled_payments_are_never_due(self):
        for status in (PurchasePaymentStatus.completed, PurchasePaymentStatus.cancelled):
            payment = _purchase(due_date=NOW + timedelta(days=1), status=status)
            assert payment.days_until_due(now=NOW + timedelta(days=5)) is None
            assert not payment.is_overdue(now=NOW + timedelta(days=5))

    def test_needs_attention(self):
        assert _purchase(due_date=NOW + timedelta(days=7)).needs_attention(now=NOW)
        assert not _purchase(due_date=NOW + timedelta(days=8)).needs_attention(now=NOW)
        assert not _purchase().needs_attention(now=NOW)
        failed = _purchase(due_date=NOW + timedelta(days=1), status="failed")
        assert not failed.needs_attention(now=NOW)

    def test_is_completed(self):
        assert _purchase(status="completed").is_completed
        assert not _purchase().is_completed

    async def test_created_through_numbered_creator(self):
        store = MemoryStore(field="payment_number")
        creator = NumberedCreator(
            store,
            PurchasePayment.NUMBERING,
            generator=IdentifierGenerator(store, clock=lambda: NOW),
        )

        first = await creator.create(_purchase().to_document())
        second = await creator.create(_purchase(supplier="sup-2").to_document())

        assert first["payment_number"] == "PPAY2025000001"
        assert second["payment_number"] == "PPAY2025000002"
        loaded = PurchasePayment.from_document(second)
        assert loaded.supplier == "sup-2"
        assert loaded.amount == Decimal("120.50")


class TestSalesPayment:
    def test_numbering(self):
        assert SalesPayment.NUMBERING.prefix == "SPAY"

    def test_refundable(self):
        assert _sale(status="completed").is_refundable
        assert not _sale(status="completed", payment_method=SalesPaymentMethod.cash).is_refundable
        assert not _sale().is_refundable

    def test_successful(self):
        assert _sale(status=SalesPaymentStatus.completed).is_successful
        assert not _sale(status=SalesPaymentStatus.refunded).is_successful

    def test_transaction_id_length(self):
        with pytest.raises(ValidationError):
            _sale(transaction_id="x" * 101)

    def test_from_document_ignores_storage_keys(self):
        document = {**_sale().to_document(), "payment_number": "SPAY2025000003", "_id": "abc"}
        loaded = SalesPayment.from_document(document)
        assert loaded.payment_number == "SPAY2025000003"
