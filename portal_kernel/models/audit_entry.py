"""
Audit entry ORM model (``portal_kernel.models.audit_entry``).

Append-only: one row per document creation or successful transition.
UPDATE and DELETE are rejected by the listeners in
``portal_kernel.db.immutability``.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import Base, UUIDString
from portal_kernel.domain.documents import AuditEntry, AuditVariant
from portal_kernel.models.document import as_utc


class AuditEntryModel(Base):
    """A single timeline entry for a document."""

    __tablename__ = "audit_entries"

    __table_args__ = (
        UniqueConstraint("document_id", "version", name="uq_audit_document_version"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id"), nullable=False, index=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    to_status: Mapped[str] = mapped_column(String(40), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    variant: Mapped[str] = mapped_column(String(20), nullable=False, default="neutral")

    def __repr__(self) -> str:
        return f"<AuditEntry {self.document_id}@v{self.version} {self.action}>"

    def to_dto(self) -> AuditEntry:
        return AuditEntry(
            document_id=self.document_id,
            action=self.action,
            label=self.label,
            actor_id=self.actor_id,
            timestamp=as_utc(self.timestamp),
            from_status=self.from_status,
            to_status=self.to_status,
            version=self.version,
            detail=self.detail,
            variant=AuditVariant(self.variant),
        )

    @classmethod
    def from_dto(cls, dto: AuditEntry) -> AuditEntryModel:
        return cls(
            document_id=dto.document_id,
            action=dto.action,
            label=dto.label,
            actor_id=dto.actor_id,
            timestamp=dto.timestamp,
            from_status=dto.from_status,
            to_status=dto.to_status,
            version=dto.version,
            detail=dto.detail,
            variant=dto.variant.value,
        )
