"""
ORM persistence for workflow documents (``portal_kernel.models.document``).

Responsibility
--------------
One table for every document kind plus one table for its lines.  The
``version`` column is the optimistic-concurrency token: the document store
only updates a row whose stored version equals the caller's expected
version.

Architecture position
---------------------
**Kernel models layer** -- imports from ``db/base`` and ``domain/``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal_kernel.db.base import Base, UUIDString
from portal_kernel.domain.documents import Document, DocumentKind, LineItem


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DocumentModel(Base):
    """A document header row."""

    __tablename__ = "documents"

    __table_args__ = (
        Index("idx_document_kind_status", "kind", "status"),
        Index("idx_document_supplier", "supplier_id"),
    )

    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    supplier_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    supplier_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Per-transition timestamps (submitted_at, approved_at, ...) as ISO strings
    timestamps: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    lines: Mapped[list[DocumentLineModel]] = relationship(
        "DocumentLineModel",
        back_populates="document",
        order_by="DocumentLineModel.line_number",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Document {self.number} {self.kind} status={self.status} v{self.version}>"

    def to_dto(self) -> Document:
        """Convert ORM row to the frozen domain snapshot."""
        return Document(
            id=self.id,
            kind=DocumentKind(self.kind),
            number=self.number,
            status=self.status,
            version=self.version,
            requested_by=self.requested_by,
            created_at=as_utc(self.created_at),
            lines=tuple(line.to_dto() for line in self.lines),
            supplier_id=self.supplier_id,
            supplier_name=self.supplier_name,
            location=self.location,
            notes=self.notes,
            hold_reason=self.hold_reason,
            rejection_reason=self.rejection_reason,
            cancel_reason=self.cancel_reason,
            timestamps={
                name: as_utc(datetime.fromisoformat(value))
                for name, value in (self.timestamps or {}).items()
            },
        )

    @classmethod
    def from_dto(cls, dto: Document) -> DocumentModel:
        """Create ORM row (with lines) from a domain snapshot."""
        model = cls(
            id=dto.id,
            kind=dto.kind.value,
            number=dto.number,
            status=dto.status,
            version=dto.version,
            requested_by=dto.requested_by,
            created_at=dto.created_at,
        )
        model.apply_header(dto)
        model.lines = [DocumentLineModel.from_dto(line) for line in dto.lines]
        return model

    def apply_header(self, dto: Document) -> None:
        """Copy the mutable header fields from a snapshot (not id/kind/number/version)."""
        self.status = dto.status
        self.supplier_id = dto.supplier_id
        self.supplier_name = dto.supplier_name
        self.location = dto.location
        self.notes = dto.notes
        self.hold_reason = dto.hold_reason
        self.rejection_reason = dto.rejection_reason
        self.cancel_reason = dto.cancel_reason
        self.timestamps = {
            name: value.isoformat() for name, value in dto.timestamps.items()
        }


class DocumentLineModel(Base):
    """A document line row."""

    __tablename__ = "document_lines"

    __table_args__ = (
        UniqueConstraint("document_id", "line_number", name="uq_document_line_number"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False,
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    quantity_ordered: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    quantity_dispatched: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    quantity_received: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    quantity_damaged: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    document: Mapped[DocumentModel] = relationship("DocumentModel", back_populates="lines")

    def to_dto(self) -> LineItem:
        return LineItem(
            line_number=self.line_number,
            product_id=self.product_id,
            quantity_ordered=self.quantity_ordered,
            quantity_dispatched=self.quantity_dispatched,
            quantity_received=self.quantity_received,
            quantity_damaged=self.quantity_damaged,
            unit_cost=self.unit_cost,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: LineItem) -> DocumentLineModel:
        return cls(
            line_number=dto.line_number,
            product_id=dto.product_id,
            description=dto.description,
            quantity_ordered=dto.quantity_ordered,
            quantity_dispatched=dto.quantity_dispatched,
            quantity_received=dto.quantity_received,
            quantity_damaged=dto.quantity_damaged,
            unit_cost=dto.unit_cost,
        )
