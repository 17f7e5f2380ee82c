"""
Document value objects (``portal_kernel.domain.documents``).

Responsibility
--------------
Immutable snapshots of portal documents, their lines, the acting user,
and the audit entries recorded against them.  Services load a
``Document``, derive a new one with ``with_changes``, and hand it to the
document store for a compare-and-swap write.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Line quantities are non-negative ``Decimal`` values.
* ``quantity_dispatched <= quantity_ordered``.
* ``quantity_received <= quantity_dispatched`` when dispatch is tracked,
  otherwise ``quantity_received <= quantity_ordered``.
* ``quantity_damaged <= quantity_received``.
* ``Document.version >= 1`` and line numbers are unique per document.

Failure modes
-------------
* ``ValueError`` at construction when an invariant is violated.  The
  workflow executor turns these into ``ValidationError`` for callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from portal_kernel.logging_config import get_logger

logger = get_logger("domain.documents")


class DocumentKind(str, Enum):
    """The document types that move through a workflow."""

    SALES_ORDER = "sales_order"
    PURCHASE_ORDER = "purchase_order"
    JOB_CARD = "job_card"
    RETURN_AUTHORIZATION = "return_authorization"
    PURCHASE_REQUISITION = "purchase_requisition"


class Role(str, Enum):
    """Portal user roles."""

    ADMIN = "admin"
    MANAGER = "manager"
    PURCHASER = "purchaser"
    SALES = "sales"
    WAREHOUSE = "warehouse"
    CUSTOMER = "customer"


class AuditVariant(str, Enum):
    """Display tone of an audit entry on the document timeline."""

    NEUTRAL = "neutral"
    SUCCESS = "success"
    WARNING = "warning"


@dataclass(frozen=True)
class Actor:
    """The user performing an operation.  Always passed explicitly."""

    id: UUID
    role: Role


_ZERO = Decimal("0")


@dataclass(frozen=True)
class LineItem:
    """A single document line.

    For return authorizations ``quantity_ordered`` is the quantity the
    customer asked to return.
    """

    line_number: int
    product_id: UUID
    quantity_ordered: Decimal
    quantity_dispatched: Decimal | None = None
    quantity_received: Decimal | None = None
    quantity_damaged: Decimal | None = None
    unit_cost: Decimal = _ZERO
    description: str = ""

    def __post_init__(self) -> None:
        if self.line_number < 1:
            raise ValueError(f"line_number must be >= 1, got {self.line_number}")
        for name in (
            "quantity_ordered",
            "quantity_dispatched",
            "quantity_received",
            "quantity_damaged",
            "unit_cost",
        ):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")

        if (
            self.quantity_dispatched is not None
            and self.quantity_dispatched > self.quantity_ordered
        ):
            logger.warning(
                "line_over_dispatched",
                extra={
                    "line_number": self.line_number,
                    "quantity_ordered": str(self.quantity_ordered),
                    "quantity_dispatched": str(self.quantity_dispatched),
                },
            )
            raise ValueError(
                f"quantity_dispatched ({self.quantity_dispatched}) cannot exceed "
                f"quantity_ordered ({self.quantity_ordered})"
            )

        if self.quantity_received is not None:
            ceiling = self.receive_ceiling
            if self.quantity_received > ceiling:
                logger.warning(
                    "line_over_received",
                    extra={
                        "line_number": self.line_number,
                        "ceiling": str(ceiling),
                        "quantity_received": str(self.quantity_received),
                    },
                )
                raise ValueError(
                    f"quantity_received ({self.quantity_received}) cannot exceed "
                    f"{ceiling}"
                )

        if self.quantity_damaged is not None:
            received = self.quantity_received or _ZERO
            if self.quantity_damaged > received:
                raise ValueError(
                    f"quantity_damaged ({self.quantity_damaged}) cannot exceed "
                    f"quantity_received ({received})"
                )

    @property
    def receive_ceiling(self) -> Decimal:
        """Upper bound for quantity_received."""
        if self.quantity_dispatched is not None:
            return self.quantity_dispatched
        return self.quantity_ordered

    @property
    def line_total(self) -> Decimal:
        return self.quantity_ordered * self.unit_cost

    @property
    def is_fully_dispatched(self) -> bool:
        return (self.quantity_dispatched or _ZERO) >= self.quantity_ordered

    @property
    def is_fully_received(self) -> bool:
        return (self.quantity_received or _ZERO) >= self.quantity_ordered


@dataclass(frozen=True)
class Document:
    """Immutable snapshot of a workflow document at a given version."""

    id: UUID
    kind: DocumentKind
    number: str
    status: str
    version: int
    requested_by: UUID
    created_at: datetime
    lines: tuple[LineItem, ...] = ()
    supplier_id: UUID | None = None
    supplier_name: str | None = None
    location: str | None = None
    notes: str | None = None
    hold_reason: str | None = None
    rejection_reason: str | None = None
    cancel_reason: str | None = None
    timestamps: Mapping[str, datetime] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError(f"version must be >= 1, got {self.version}")
        numbers = [line.line_number for line in self.lines]
        if len(numbers) != len(set(numbers)):
            raise ValueError(f"Duplicate line numbers on document {self.number}")

    @property
    def total_amount(self) -> Decimal:
        return sum((line.line_total for line in self.lines), _ZERO)

    @property
    def next_line_number(self) -> int:
        return max((line.line_number for line in self.lines), default=0) + 1

    def with_changes(self, **changes: Any) -> Document:
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)


@dataclass(frozen=True)
class AuditEntry:
    """One immutable line of a document's timeline."""

    document_id: UUID
    action: str
    label: str
    actor_id: UUID
    timestamp: datetime
    to_status: str
    version: int
    from_status: str | None = None
    detail: str | None = None
    variant: AuditVariant = AuditVariant.NEUTRAL


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful transition.

    ``notification_error`` is set when the post-commit notifier failed;
    the transition itself is committed regardless.
    """

    document: Document
    audit_entry: AuditEntry
    notification_error: str | None = None

    @property
    def new_status(self) -> str:
        return self.document.status

    @property
    def new_version(self) -> int:
        return self.document.version
