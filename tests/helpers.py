"""Builders shared by the portal test modules."""

from decimal import Decimal
from uuid import UUID, uuid4

from portal_engines.reconciliation import ShortfallRecord, StockStatus
from portal_kernel.domain.documents import Actor, LineItem, Role


def make_actor(role: Role) -> Actor:
    return Actor(id=uuid4(), role=role)


def make_line(
    line_number: int = 1,
    quantity: str = "10",
    unit_cost: str = "2.50",
    product_id: UUID | None = None,
) -> LineItem:
    return LineItem(
        line_number=line_number,
        product_id=product_id or uuid4(),
        quantity_ordered=Decimal(quantity),
        unit_cost=Decimal(unit_cost),
    )


def make_shortfall(
    supplier_id: UUID | None,
    supplier_name: str | None,
    suggested: str,
    *,
    cost: str | None = "1.00",
    warehouse: str = "JHB",
) -> ShortfallRecord:
    qty = Decimal(suggested)
    return ShortfallRecord(
        product_id=uuid4(),
        warehouse=warehouse,
        stock_status=StockStatus.LOW_STOCK,
        on_hand=Decimal("1"),
        available=Decimal("1"),
        on_order=Decimal("0"),
        reorder_point=Decimal("1") + max(qty, Decimal("0")),
        shortfall=max(qty, Decimal("0")),
        suggested_qty=qty,
        cost_price=Decimal(cost) if cost is not None else None,
        supplier_id=supplier_id,
        supplier_name=supplier_name,
    )
