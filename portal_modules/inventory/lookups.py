"""
In-memory inventory and BOM lookups.

Satisfy ``InventoryQueryService`` and ``BomLookupService`` from plain
dictionaries.  Used when embedding the workflow core without a stock
database, and throughout the test suite.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from portal_engines.reconciliation import validate_bom_component
from portal_kernel.domain.protocols import Availability, BomLine
from portal_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.lookups")


class StaticInventory:
    """Availability keyed by (product_id, warehouse)."""

    def __init__(self) -> None:
        self._levels: dict[tuple[UUID, str], Availability] = {}

    def set_level(
        self,
        product_id: UUID,
        warehouse: str,
        *,
        on_hand: Decimal,
        hard_reserved: Decimal = Decimal("0"),
        on_order: Decimal = Decimal("0"),
        reorder_point: Decimal | None = None,
        reorder_quantity: Decimal | None = None,
        cost_price: Decimal | None = None,
        supplier_id: UUID | None = None,
        supplier_name: str | None = None,
    ) -> Availability:
        """Record a stock level.  Available is on-hand less hard reservations."""
        level = Availability(
            on_hand=on_hand,
            available=on_hand - hard_reserved,
            on_order=on_order,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            cost_price=cost_price,
            supplier_id=supplier_id,
            supplier_name=supplier_name,
        )
        self._levels[(product_id, warehouse)] = level
        return level

    def availability(self, product_id: UUID, warehouse: str) -> Availability | None:
        return self._levels.get((product_id, warehouse))

    def keys(self) -> list[tuple[UUID, str]]:
        return list(self._levels)


class StaticBomLookup:
    """BOM rows keyed by parent product, in insertion order."""

    def __init__(self) -> None:
        self._rows: dict[UUID, list[BomLine]] = {}

    def add_component(
        self,
        parent_id: UUID,
        component_id: UUID,
        quantity_per_unit: Decimal,
        *,
        is_optional: bool = False,
    ) -> BomLine:
        """Add a BOM row.  Raises ValidationError if it would create a cycle."""
        validate_bom_component(parent_id, component_id, self)
        line = BomLine(
            component_product_id=component_id,
            quantity_per_unit=quantity_per_unit,
            is_optional=is_optional,
        )
        self._rows.setdefault(parent_id, []).append(line)
        logger.debug(
            "bom_component_added",
            extra={
                "parent_product_id": str(parent_id),
                "component_product_id": str(component_id),
                "quantity_per_unit": str(quantity_per_unit),
            },
        )
        return line

    def components(self, product_id: UUID) -> Sequence[BomLine]:
        return tuple(self._rows.get(product_id, ()))
