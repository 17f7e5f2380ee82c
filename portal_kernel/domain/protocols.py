"""
Collaborator protocols (``portal_kernel.domain.protocols``).

Structural interfaces for everything the workflow core consumes but does
not own: the document store, inventory availability, BOM structure, and
post-commit notification.  Implementations live in the kernel services
(``SqlDocumentStore``) and in ``portal_modules.inventory.lookups``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from portal_kernel.domain.documents import Document
from portal_kernel.domain.workflow import Transition


@dataclass(frozen=True)
class Availability:
    """Stock position for one product at one warehouse.

    ``available`` is on-hand minus hard reservations.
    """

    on_hand: Decimal
    available: Decimal
    on_order: Decimal = Decimal("0")
    reorder_point: Decimal | None = None
    reorder_quantity: Decimal | None = None
    cost_price: Decimal | None = None
    supplier_id: UUID | None = None
    supplier_name: str | None = None


@dataclass(frozen=True)
class BomLine:
    """One component row of a product's bill of materials."""

    component_product_id: UUID
    quantity_per_unit: Decimal
    is_optional: bool = False

    def __post_init__(self) -> None:
        if self.quantity_per_unit <= 0:
            raise ValueError(
                f"quantity_per_unit must be positive, got {self.quantity_per_unit}"
            )


@runtime_checkable
class DocumentStore(Protocol):
    def get(self, document_id: UUID) -> Document:
        """Raises DocumentNotFoundError."""
        ...

    def create(self, document: Document) -> Document:
        ...

    def save(
        self, document_id: UUID, expected_version: int, proposed: Document,
    ) -> Document:
        """Compare-and-swap write.  Raises VersionConflictError or DocumentNotFoundError."""
        ...


@runtime_checkable
class InventoryQueryService(Protocol):
    def availability(self, product_id: UUID, warehouse: str) -> Availability | None:
        ...


@runtime_checkable
class BomLookupService(Protocol):
    def components(self, product_id: UUID) -> Sequence[BomLine]:
        ...


@runtime_checkable
class Notifier(Protocol):
    def transition_committed(self, document: Document, transition: Transition) -> None:
        ...
