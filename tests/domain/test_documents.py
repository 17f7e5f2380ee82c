"""
Document value object tests -- line quantity invariants and snapshots.
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from portal_kernel.domain.documents import Document, DocumentKind, LineItem
from tests.helpers import make_line


def _line(**kwargs) -> LineItem:
    base = dict(line_number=1, product_id=uuid4(), quantity_ordered=Decimal("10"))
    base.update(kwargs)
    return LineItem(**base)


def _doc(**kwargs) -> Document:
    base = dict(
        id=uuid4(),
        kind=DocumentKind.PURCHASE_ORDER,
        number="PO-2026-00001",
        status="draft",
        version=1,
        requested_by=uuid4(),
        created_at=datetime(2026, 1, 5, tzinfo=UTC),
    )
    base.update(kwargs)
    return Document(**base)


class TestLineItemInvariants:
    def test_negative_quantity_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            _line(quantity_ordered=Decimal("-1"))

    def test_line_number_starts_at_one(self):
        with pytest.raises(ValueError):
            _line(line_number=0)

    def test_dispatch_cannot_exceed_ordered(self):
        with pytest.raises(ValueError, match="quantity_dispatched"):
            _line(quantity_dispatched=Decimal("11"))

    def test_receive_bounded_by_dispatched_when_tracked(self):
        with pytest.raises(ValueError, match="quantity_received"):
            _line(quantity_dispatched=Decimal("4"), quantity_received=Decimal("5"))

    def test_receive_bounded_by_ordered_without_dispatch(self):
        line = _line(quantity_received=Decimal("10"))
        assert line.is_fully_received
        with pytest.raises(ValueError):
            _line(quantity_received=Decimal("10.01"))

    def test_damaged_bounded_by_received(self):
        with pytest.raises(ValueError, match="quantity_damaged"):
            _line(quantity_received=Decimal("2"), quantity_damaged=Decimal("3"))

    def test_line_total(self):
        assert _line(unit_cost=Decimal("2.5")).line_total == Decimal("25.0")


class TestDocument:
    def test_version_must_be_positive(self):
        with pytest.raises(ValueError, match="version"):
            _doc(version=0)

    def test_duplicate_line_numbers_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            _doc(lines=(make_line(1), make_line(1)))

    def test_next_line_number(self):
        assert _doc().next_line_number == 1
        assert _doc(lines=(make_line(1), make_line(3))).next_line_number == 4

    def test_total_amount(self):
        doc = _doc(lines=(make_line(1, "2", "3"), make_line(2, "1", "4")))
        assert doc.total_amount == Decimal("10")

    def test_with_changes_is_a_copy(self):
        doc = _doc()
        changed = doc.with_changes(status="pending_approval")
        assert doc.status == "draft"
        assert changed.status == "pending_approval"
        assert changed.id == doc.id

    def test_with_changes_revalidates(self):
        with pytest.raises(ValueError):
            _doc().with_changes(version=0)
