"""
Module: portal_engines.reconciliation
Responsibility:
    Inventory reconciliation math.  Two calculations:

    * Reorder shortfall -- which stock positions sit below their reorder
      point, by how much, and how much to order.
    * BOM shortfall -- for a job card, how much of each (multi-level)
      component is required, how much is available, and whether the job
      can start.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Collaborator lookups
    (inventory, BOM structure) are passed in as protocol objects or as
    pre-gathered facts; nothing here touches the database.

Invariants enforced:
    - shortfall = max(0, requirement - available), so shortfall >= 0 and
      shortfall == 0 exactly when available >= requirement.
    - suggested_qty = reorder_quantity when set, otherwise the shortfall.
    - BOM required_quantity = effective quantity_per_unit * job quantity;
      a component reached by several paths is aggregated, and is optional
      only if every path to it is optional.
    - BOM status is SHORTAGE iff some required (non-optional) component
      has shortfall > 0.  Optional components never affect status.
    - Explosion is depth-limited and never follows a product back into its
      own ancestry.

Failure modes:
    - ValidationError from validate_bom_component on self-reference or a
      circular reference.
    - ValidationError from job_card_target when a job card does not carry
      exactly one finished-product line.

Usage:
    from portal_engines.reconciliation import compute_reorder_shortfalls

    records = compute_reorder_shortfalls(positions=positions)
    to_order = [r for r in records if r.suggested_qty > 0]
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping, Sequence
from uuid import UUID

from portal_engines.tracer import traced_engine
from portal_kernel.domain.documents import Document
from portal_kernel.domain.protocols import BomLookupService, InventoryQueryService
from portal_kernel.exceptions import ValidationError
from portal_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

ZERO = Decimal("0")
DEFAULT_BOM_MAX_DEPTH = 10


# =============================================================================
# Reorder shortfall
# =============================================================================


class StockStatus(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"


@dataclass(frozen=True)
class StockPosition:
    """Stock facts for one product at one warehouse."""

    product_id: UUID
    warehouse: str
    on_hand: Decimal
    available: Decimal
    reorder_point: Decimal
    on_order: Decimal = ZERO
    reorder_quantity: Decimal | None = None
    cost_price: Decimal | None = None
    supplier_id: UUID | None = None
    supplier_name: str | None = None
    description: str = ""


@dataclass(frozen=True)
class ShortfallRecord:
    """A stock position below its reorder point, with the suggested order."""

    product_id: UUID
    warehouse: str
    stock_status: StockStatus
    on_hand: Decimal
    available: Decimal
    on_order: Decimal
    reorder_point: Decimal
    shortfall: Decimal
    suggested_qty: Decimal
    reorder_quantity: Decimal | None = None
    cost_price: Decimal | None = None
    supplier_id: UUID | None = None
    supplier_name: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.shortfall < 0:
            raise ValueError(f"shortfall cannot be negative, got {self.shortfall}")


def classify_stock(position: StockPosition) -> StockStatus:
    """OUT_OF_STOCK at zero on-hand, LOW_STOCK below the reorder point."""
    if position.on_hand == 0:
        return StockStatus.OUT_OF_STOCK
    if position.available < position.reorder_point:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def shortfall_of(requirement: Decimal, available: Decimal) -> Decimal:
    return max(ZERO, requirement - available)


@traced_engine("reorder_shortfall", "1.0", fingerprint_fields=("positions",))
def compute_reorder_shortfalls(positions: Sequence[StockPosition]) -> list[ShortfallRecord]:
    """Shortfall records for every position that needs reordering.

    Healthy positions are excluded; input order is preserved.
    """
    records: list[ShortfallRecord] = []
    for position in positions:
        status = classify_stock(position)
        if status == StockStatus.IN_STOCK:
            continue
        shortfall = shortfall_of(position.reorder_point, position.available)
        suggested = (
            position.reorder_quantity
            if position.reorder_quantity is not None
            else shortfall
        )
        records.append(
            ShortfallRecord(
                product_id=position.product_id,
                warehouse=position.warehouse,
                stock_status=status,
                on_hand=position.on_hand,
                available=position.available,
                on_order=position.on_order,
                reorder_point=position.reorder_point,
                shortfall=shortfall,
                suggested_qty=suggested,
                reorder_quantity=position.reorder_quantity,
                cost_price=position.cost_price,
                supplier_id=position.supplier_id,
                supplier_name=position.supplier_name,
                description=position.description,
            )
        )
    return records


def positions_from_inventory(
    keys: Iterable[tuple[UUID, str]],
    inventory: InventoryQueryService,
) -> list[StockPosition]:
    """Build positions for (product_id, warehouse) keys.

    Keys with no stock record or no reorder point are skipped; they cannot
    be below a reorder point that does not exist.
    """
    positions: list[StockPosition] = []
    for product_id, warehouse in keys:
        facts = inventory.availability(product_id, warehouse)
        if facts is None or facts.reorder_point is None:
            logger.debug(
                "reorder_position_skipped",
                extra={"product_id": str(product_id), "warehouse": warehouse},
            )
            continue
        positions.append(
            StockPosition(
                product_id=product_id,
                warehouse=warehouse,
                on_hand=facts.on_hand,
                available=facts.available,
                reorder_point=facts.reorder_point,
                on_order=facts.on_order,
                reorder_quantity=facts.reorder_quantity,
                cost_price=facts.cost_price,
                supplier_id=facts.supplier_id,
                supplier_name=facts.supplier_name,
            )
        )
    return positions


# =============================================================================
# BOM shortfall
# =============================================================================


class BomStatus(str, Enum):
    READY = "ready"
    SHORTAGE = "shortage"


@dataclass(frozen=True)
class ExplodedComponent:
    """One BOM row reached during explosion.

    ``quantity_per_unit`` is the effective quantity per finished unit (the
    product of the quantities along the path).
    """

    product_id: UUID
    quantity_per_unit: Decimal
    is_optional: bool
    level: int
    parent_path: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class BomFacts:
    """Everything the BOM calculation needs, gathered up front."""

    components: tuple[ExplodedComponent, ...]
    available: Mapping[UUID, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class BomComponent:
    product_id: UUID
    quantity_per_unit: Decimal
    required_quantity: Decimal
    available_stock: Decimal
    shortfall: Decimal
    is_optional: bool
    level: int

    @property
    def can_fulfill(self) -> bool:
        return self.shortfall == 0


@dataclass(frozen=True)
class BomStatusResult:
    status: BomStatus
    components: tuple[BomComponent, ...]
    optional_components: tuple[BomComponent, ...] = ()

    @property
    def can_fulfill(self) -> bool:
        return self.status == BomStatus.READY

    @property
    def short_products(self) -> tuple[UUID, ...]:
        return tuple(c.product_id for c in self.components if c.shortfall > 0)


def explode_bom(
    product_id: UUID,
    lookup: BomLookupService,
    *,
    max_depth: int = DEFAULT_BOM_MAX_DEPTH,
    include_optional: bool = True,
) -> tuple[ExplodedComponent, ...]:
    """Walk a product's BOM depth-first, listing every component at every level.

    Sub-assemblies are listed and also expanded.  Optional flags are
    inherited by everything beneath an optional row.
    """
    results: list[ExplodedComponent] = []

    def walk(
        current: UUID,
        multiplier: Decimal,
        level: int,
        path: tuple[UUID, ...],
        inherited_optional: bool,
    ) -> None:
        if level > max_depth:
            return
        for line in lookup.components(current):
            if line.is_optional and not include_optional:
                continue
            if line.component_product_id in path or line.component_product_id == current:
                logger.warning(
                    "bom_cycle_skipped",
                    extra={
                        "product_id": str(current),
                        "component_product_id": str(line.component_product_id),
                    },
                )
                continue
            is_optional = inherited_optional or line.is_optional
            per_unit = line.quantity_per_unit * multiplier
            child_path = path + (current,)
            results.append(
                ExplodedComponent(
                    product_id=line.component_product_id,
                    quantity_per_unit=per_unit,
                    is_optional=is_optional,
                    level=level,
                    parent_path=child_path,
                )
            )
            walk(line.component_product_id, per_unit, level + 1, child_path, is_optional)

    walk(product_id, Decimal("1"), 1, (), False)
    return tuple(results)


def gather_bom_facts(
    product_id: UUID,
    warehouse: str,
    lookup: BomLookupService,
    inventory: InventoryQueryService,
    *,
    max_depth: int = DEFAULT_BOM_MAX_DEPTH,
) -> BomFacts:
    """Explode the BOM and read availability for each distinct component.

    A component with no stock record at the warehouse counts as zero
    available.
    """
    components = explode_bom(product_id, lookup, max_depth=max_depth)
    available: dict[UUID, Decimal] = {}
    for component in components:
        if component.product_id in available:
            continue
        facts = inventory.availability(component.product_id, warehouse)
        available[component.product_id] = facts.available if facts is not None else ZERO
    return BomFacts(components=components, available=available)


def job_card_target(job_card: Document) -> tuple[UUID, Decimal]:
    """The (finished product, quantity) a job card builds.

    A job card carries exactly one line: the product being made.
    """
    if len(job_card.lines) != 1:
        raise ValidationError(
            "lines",
            f"job card {job_card.number} must have exactly one product line, "
            f"found {len(job_card.lines)}",
        )
    line = job_card.lines[0]
    return line.product_id, line.quantity_ordered


@traced_engine("bom_shortfall", "1.0", fingerprint_fields=("job_quantity",))
def compute_bom_shortfall(job_quantity: Decimal, facts: BomFacts) -> BomStatusResult:
    """Aggregate exploded components and compare against availability."""
    aggregated: dict[UUID, list] = {}
    for comp in facts.components:
        entry = aggregated.get(comp.product_id)
        if entry is None:
            aggregated[comp.product_id] = [comp.quantity_per_unit, comp.is_optional, comp.level]
        else:
            entry[0] += comp.quantity_per_unit
            # Required on any path means required
            entry[1] = entry[1] and comp.is_optional
            entry[2] = min(entry[2], comp.level)

    required: list[BomComponent] = []
    optional: list[BomComponent] = []
    for product_id, (per_unit, is_optional, level) in aggregated.items():
        needed = per_unit * job_quantity
        available = facts.available.get(product_id, ZERO)
        component = BomComponent(
            product_id=product_id,
            quantity_per_unit=per_unit,
            required_quantity=needed,
            available_stock=available,
            shortfall=shortfall_of(needed, available),
            is_optional=is_optional,
            level=level,
        )
        (optional if is_optional else required).append(component)

    status = (
        BomStatus.SHORTAGE
        if any(c.shortfall > 0 for c in required)
        else BomStatus.READY
    )
    return BomStatusResult(
        status=status,
        components=tuple(required),
        optional_components=tuple(optional),
    )


def compute_bom_status(job_card: Document, bom_facts: BomFacts) -> BomStatusResult:
    """BOM readiness for a job card.  A product with no BOM is READY."""
    _, quantity = job_card_target(job_card)
    result = compute_bom_shortfall(job_quantity=quantity, facts=bom_facts)
    logger.info(
        "bom_status_computed",
        extra={
            "job_card": job_card.number,
            "bom_status": result.status.value,
            "short_components": len(result.short_products),
        },
    )
    return result


def validate_bom_component(
    parent_id: UUID,
    component_id: UUID,
    lookup: BomLookupService,
) -> None:
    """Reject a BOM row that would make the structure circular.

    Breadth-first search from the component; reaching the parent means the
    parent is already inside the component's tree.
    """
    if parent_id == component_id:
        raise ValidationError("component_product_id", "a product cannot be its own component")

    seen: set[UUID] = set()
    queue: deque[UUID] = deque([component_id])
    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        for line in lookup.components(current):
            if line.component_product_id == parent_id:
                raise ValidationError(
                    "component_product_id",
                    f"adding {component_id} under {parent_id} creates a circular reference",
                )
            queue.append(line.component_product_id)
