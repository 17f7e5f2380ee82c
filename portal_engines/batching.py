"""
Module: portal_engines.batching
Responsibility:
    Group selected shortfall records by supplier, ready for one draft
    purchase order per supplier.

Architecture position:
    Engines -- pure, zero I/O.

Invariants enforced:
    - Every input record lands in exactly one group.
    - Inside a group, records keep their input order.
    - Groups are ordered by supplier name (case-insensitive); ties keep
      first-seen order.  Regrouping the flattened output yields the same
      groups (idempotent).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from portal_engines.reconciliation import ShortfallRecord


@dataclass(frozen=True)
class SupplierGroup:
    supplier_id: UUID | None
    supplier_name: str
    records: tuple[ShortfallRecord, ...]

    @property
    def orderable(self) -> tuple[ShortfallRecord, ...]:
        """Records that will become PO lines (positive suggested quantity)."""
        return tuple(r for r in self.records if r.suggested_qty > 0)

    @property
    def total_suggested(self) -> Decimal:
        return sum((r.suggested_qty for r in self.orderable), Decimal("0"))


def group_by_supplier(records: Iterable[ShortfallRecord]) -> tuple[SupplierGroup, ...]:
    """Group records by supplier id.

    Records without a supplier form their own group (supplier_id None),
    which callers cannot turn into a purchase order.
    """
    buckets: dict[UUID | None, list[ShortfallRecord]] = {}
    names: dict[UUID | None, str] = {}
    for record in records:
        if record.supplier_id not in buckets:
            buckets[record.supplier_id] = []
            names[record.supplier_id] = record.supplier_name or ""
        buckets[record.supplier_id].append(record)

    groups = [
        SupplierGroup(
            supplier_id=supplier_id,
            supplier_name=names[supplier_id],
            records=tuple(items),
        )
        for supplier_id, items in buckets.items()
    ]
    groups.sort(key=lambda g: g.supplier_name.casefold())
    return tuple(groups)


def flatten(groups: Iterable[SupplierGroup]) -> list[ShortfallRecord]:
    return [record for group in groups for record in group.records]
