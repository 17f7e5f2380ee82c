"""
ConcurrencyController -- optimistic version check around every mutation.

Responsibility:
    The single place where a caller's expected version meets the stored
    version.  Rejects stale requests early and routes the final write
    through the store's compare-and-swap.

Architecture position:
    Kernel > Services.  Used by the workflow executor; never by engines.

Invariants enforced:
    - A write applies only if stored version == expected version; the new
      version is expected + 1.
    - Conflicts are surfaced as VersionConflictError and NEVER retried
      here.  Whether to reload and retry is the caller's decision.
"""

from __future__ import annotations

from uuid import UUID

from portal_kernel.domain.documents import Document
from portal_kernel.domain.protocols import DocumentStore
from portal_kernel.exceptions import VersionConflictError
from portal_kernel.logging_config import get_logger

logger = get_logger("services.concurrency")


class ConcurrencyController:
    """Compare-and-swap coordinator over a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def check(self, document: Document, expected_version: int) -> None:
        """Fail fast when the caller's snapshot is already stale."""
        if document.version != expected_version:
            self._log_conflict(document.id, expected_version, document.version)
            raise VersionConflictError(document.id, expected_version, document.version)

    def mutate(
        self, document_id: UUID, expected_version: int, proposed: Document,
    ) -> Document:
        """Persist ``proposed`` as the next version, or raise VersionConflictError."""
        try:
            saved = self._store.save(document_id, expected_version, proposed)
        except VersionConflictError as exc:
            self._log_conflict(document_id, expected_version, exc.actual_version)
            raise
        logger.debug(
            "document_version_advanced",
            extra={
                "document_id": str(document_id),
                "from_version": expected_version,
                "to_version": saved.version,
            },
        )
        return saved

    @staticmethod
    def _log_conflict(document_id: UUID, expected: int, actual: int | None) -> None:
        logger.warning(
            "version_conflict",
            extra={
                "document_id": str(document_id),
                "expected_version": expected,
                "actual_version": actual,
            },
        )
