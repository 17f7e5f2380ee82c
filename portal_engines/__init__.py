"""
Module: portal_engines
Responsibility:
    Package entrypoint re-exporting the pure engines: the transition guard
    pipeline, inventory reconciliation, and supplier grouping.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import portal_kernel.domain and portal_kernel.exceptions.
    MUST NOT import portal_services or portal_modules.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Callers
      pass facts in.
    - Decimal-only arithmetic for quantities and costs.
    - Determinism: identical inputs always produce identical outputs.
"""

from portal_engines.batching import SupplierGroup, flatten, group_by_supplier
from portal_engines.guards import (
    BOM_READY,
    TransitionGuard,
    extract_reason,
    reason_required_guard,
    role_guard,
    self_action_guard,
)
from portal_engines.reconciliation import (
    BomComponent,
    BomFacts,
    BomStatus,
    BomStatusResult,
    ExplodedComponent,
    ShortfallRecord,
    StockPosition,
    StockStatus,
    compute_bom_shortfall,
    compute_bom_status,
    compute_reorder_shortfalls,
    explode_bom,
    gather_bom_facts,
    job_card_target,
    positions_from_inventory,
    validate_bom_component,
)

__all__ = [
    "BOM_READY",
    "BomComponent",
    "BomFacts",
    "BomStatus",
    "BomStatusResult",
    "ExplodedComponent",
    "ShortfallRecord",
    "StockPosition",
    "StockStatus",
    "SupplierGroup",
    "TransitionGuard",
    "compute_bom_shortfall",
    "compute_bom_status",
    "compute_reorder_shortfalls",
    "explode_bom",
    "extract_reason",
    "flatten",
    "gather_bom_facts",
    "group_by_supplier",
    "job_card_target",
    "positions_from_inventory",
    "reason_required_guard",
    "role_guard",
    "self_action_guard",
    "validate_bom_component",
]
