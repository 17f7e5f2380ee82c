"""
SqlDocumentStore -- SQLAlchemy implementation of the DocumentStore protocol.

Responsibility:
    Loads document snapshots and writes new versions with an atomic
    compare-and-swap on the ``version`` column.

Architecture position:
    Kernel > Services -- imperative shell over ``DocumentModel``.

Invariants enforced:
    - A write succeeds only when the stored version equals the caller's
      expected version, and it increments the version by exactly 1.
    - The CAS is a single ``UPDATE ... WHERE id = :id AND version = :v``.
      Concurrent writers racing on the same version see exactly one
      winner; the loser's UPDATE matches zero rows.

Failure modes:
    - DocumentNotFoundError: no row with the given id.
    - VersionConflictError: row exists with a different version.  The row
      is left unchanged.

Non-goals:
    - Does NOT call ``session.commit()`` -- the caller owns the boundary.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from portal_kernel.domain.documents import Document
from portal_kernel.exceptions import DocumentNotFoundError, VersionConflictError
from portal_kernel.logging_config import get_logger
from portal_kernel.models.document import DocumentLineModel, DocumentModel

logger = get_logger("services.document_store")


class SqlDocumentStore:
    """Document persistence with optimistic versioning."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, document_id: UUID) -> Document:
        model = self._load(document_id)
        if model is None:
            raise DocumentNotFoundError(document_id)
        return model.to_dto()

    def create(self, document: Document) -> Document:
        model = DocumentModel.from_dto(document)
        self._session.add(model)
        self._session.flush()
        logger.debug(
            "document_created",
            extra={
                "document_id": str(document.id),
                "kind": document.kind.value,
                "number": document.number,
            },
        )
        return model.to_dto()

    def save(
        self, document_id: UUID, expected_version: int, proposed: Document,
    ) -> Document:
        """Write ``proposed`` as version ``expected_version + 1``.

        The ``version`` field of ``proposed`` is ignored; the store owns it.
        """
        new_version = expected_version + 1
        result = self._session.execute(
            update(DocumentModel)
            .where(
                DocumentModel.id == document_id,
                DocumentModel.version == expected_version,
            )
            .values(version=new_version)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            actual = self._session.execute(
                select(DocumentModel.version).where(DocumentModel.id == document_id)
            ).scalar_one_or_none()
            if actual is None:
                raise DocumentNotFoundError(document_id)
            raise VersionConflictError(document_id, expected_version, actual)

        # The row is ours for the rest of the transaction; apply the body.
        model = self._load(document_id)
        if model is None:
            raise DocumentNotFoundError(document_id)
        if model.version != new_version:
            raise VersionConflictError(document_id, new_version, model.version)
        model.apply_header(proposed)
        self._sync_lines(model, proposed)
        self._session.flush()
        return model.to_dto()

    def _load(self, document_id: UUID) -> DocumentModel | None:
        return self._session.execute(
            select(DocumentModel)
            .where(DocumentModel.id == document_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _sync_lines(self, model: DocumentModel, proposed: Document) -> None:
        """Update lines in place by line number, add new, drop missing."""
        existing = {line.line_number: line for line in model.lines}
        wanted = {line.line_number for line in proposed.lines}

        for line in list(model.lines):
            if line.line_number not in wanted:
                model.lines.remove(line)

        for dto in proposed.lines:
            row = existing.get(dto.line_number)
            if row is None:
                model.lines.append(DocumentLineModel.from_dto(dto))
                continue
            row.product_id = dto.product_id
            row.description = dto.description
            row.quantity_ordered = dto.quantity_ordered
            row.quantity_dispatched = dto.quantity_dispatched
            row.quantity_received = dto.quantity_received
            row.quantity_damaged = dto.quantity_damaged
            row.unit_cost = dto.unit_cost
