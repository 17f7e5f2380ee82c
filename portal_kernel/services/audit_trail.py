"""
AuditTrailRecorder -- append-only document timeline.

Responsibility:
    Appends exactly one AuditEntry for document creation and for every
    successful transition, in the same transaction as the version write,
    and reads the timeline back in order.

Architecture position:
    Kernel > Services.  Writes ``AuditEntryModel`` rows; the append-only
    rule is enforced by ``portal_kernel.db.immutability`` listeners.

Invariants enforced:
    - One entry per document version.  The entry's version is the
      document version it produced, so (document_id, version) is unique
      and also orders the timeline.
    - Entries are never updated or deleted.

Non-goals:
    - Does NOT call ``session.commit()`` -- the caller owns the boundary.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.documents import AuditEntry, AuditVariant, Document
from portal_kernel.logging_config import get_logger
from portal_kernel.models.audit_entry import AuditEntryModel

logger = get_logger("services.audit_trail")


class AuditTrailRecorder:
    """Records and reads document timelines."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def record(
        self,
        document: Document,
        *,
        action: str,
        label: str,
        actor_id: UUID,
        from_status: str | None,
        variant: AuditVariant = AuditVariant.NEUTRAL,
        detail: str | None = None,
    ) -> AuditEntry:
        """Append an entry for ``document`` as it now stands (post-write)."""
        entry = AuditEntry(
            document_id=document.id,
            action=action,
            label=label,
            actor_id=actor_id,
            timestamp=self._clock.now(),
            from_status=from_status,
            to_status=document.status,
            version=document.version,
            detail=detail,
            variant=variant,
        )
        self._session.add(AuditEntryModel.from_dto(entry))
        self._session.flush()
        logger.info(
            "audit_entry_recorded",
            extra={
                "document_id": str(document.id),
                "action": action,
                "version": document.version,
                "to_status": document.status,
            },
        )
        return entry

    def timeline(self, document_id: UUID) -> tuple[AuditEntry, ...]:
        """All entries for a document, oldest first."""
        rows = self._session.execute(
            select(AuditEntryModel)
            .where(AuditEntryModel.document_id == document_id)
            .order_by(AuditEntryModel.version)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)
