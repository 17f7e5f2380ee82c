"""
portal_services.document_service -- Public workflow API.

Responsibility:
    The facade callers use: create documents, request transitions, read
    timelines, run the reorder and BOM calculations, and generate draft
    purchase orders from a reorder report.  Owns the transaction
    boundary for every mutating call and runs post-commit notification.

Architecture position:
    Services layer, top of the stack.  Wraps WorkflowExecutor and
    BatchGenerator; the engines are called directly for the pure
    calculations.

Invariants enforced:
    - Commit on success, rollback and re-raise on any failure.
    - Notification runs only after commit and never undoes it; a failing
      notifier is logged and reported on TransitionResult.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from portal_config import PortalConfig, get_active_config
from portal_engines.guards import TransitionGuard
from portal_engines.reconciliation import (
    BomFacts,
    BomStatusResult,
    ShortfallRecord,
    StockPosition,
    compute_bom_status as _compute_bom_status,
    compute_reorder_shortfalls as _compute_reorder_shortfalls,
)
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.documents import (
    Actor,
    AuditEntry,
    Document,
    DocumentKind,
    LineItem,
    TransitionResult,
)
from portal_kernel.domain.protocols import (
    BomLookupService,
    InventoryQueryService,
    Notifier,
)
from portal_kernel.domain.workflow import WorkflowRegistry
from portal_kernel.logging_config import get_logger
from portal_kernel.services.audit_trail import AuditTrailRecorder
from portal_kernel.services.document_store import SqlDocumentStore
from portal_modules.registry import default_registry
from portal_services.batch_generator import BatchGenerator, BatchResult
from portal_services.workflow_executor import WorkflowExecutor

logger = get_logger("services.document_service")


class DocumentWorkflowService:
    """Transactional facade over the workflow core.

    Each mutating call opens a session from ``session_factory``, commits
    on success and rolls back on failure.

        service = DocumentWorkflowService(get_session_factory(), clock=clock)
        po = service.create_document(DocumentKind.PURCHASE_ORDER, buyer)
        service.request_transition(po.id, "submit", {}, po.version, buyer)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        *,
        registry: WorkflowRegistry | None = None,
        clock: Clock | None = None,
        config: PortalConfig | None = None,
        inventory: InventoryQueryService | None = None,
        bom_lookup: BomLookupService | None = None,
        notifier: Notifier | None = None,
        guard_factory: Callable[[], TransitionGuard] | None = None,
    ):
        self._session_factory = session_factory
        self._registry = registry or default_registry()
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._inventory = inventory
        self._bom_lookup = bom_lookup
        self._notifier = notifier
        self._guard_factory = guard_factory or TransitionGuard
        self._batch = BatchGenerator(
            session_factory,
            self._registry,
            config=self._config,
            clock=self._clock,
        )

    def _executor(self, session: Session) -> WorkflowExecutor:
        return WorkflowExecutor(
            session,
            self._registry,
            guard=self._guard_factory(),
            clock=self._clock,
            config=self._config,
            inventory=self._inventory,
            bom_lookup=self._bom_lookup,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_document(
        self,
        kind: DocumentKind,
        actor: Actor,
        *,
        lines: Sequence[LineItem] = (),
        supplier_id: UUID | None = None,
        supplier_name: str | None = None,
        location: str | None = None,
        notes: str | None = None,
    ) -> Document:
        session = self._session_factory()
        try:
            document = self._executor(session).create_document(
                kind,
                actor,
                lines=lines,
                supplier_id=supplier_id,
                supplier_name=supplier_name,
                location=location,
                notes=notes,
            )
            session.commit()
            return document
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def request_transition(
        self,
        document_id: UUID,
        action: str,
        payload: Mapping[str, Any] | None,
        expected_version: int,
        actor: Actor,
    ) -> TransitionResult:
        """Apply an action and commit.  Errors propagate with nothing written.

        A VersionConflictError is never retried; reload and ask again.
        """
        session = self._session_factory()
        try:
            executor = self._executor(session)
            result = executor.execute(
                document_id, action, payload, expected_version, actor,
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        return self._notify(result, action)

    def _notify(self, result: TransitionResult, action: str) -> TransitionResult:
        if self._notifier is None:
            return result
        document = result.document
        transition = self._registry.get(document.kind).find_transition(
            result.audit_entry.from_status or "", action,
        )
        if transition is None:
            return result
        try:
            self._notifier.transition_committed(document, transition)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "notification_error",
                extra={
                    "document_id": str(document.id),
                    "action": action,
                    "error": str(exc),
                },
            )
            return replace(result, notification_error=str(exc))
        return result

    def generate_draft_pos(
        self,
        selected: Sequence[ShortfallRecord],
        actor: Actor,
        *,
        delivery_location: str | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> BatchResult:
        return self._batch.generate_draft_pos(
            selected,
            actor,
            delivery_location=delivery_location,
            should_cancel=should_cancel,
        )

    # ------------------------------------------------------------------
    # Reads and calculations
    # ------------------------------------------------------------------

    def get_document(self, document_id: UUID) -> Document:
        session = self._session_factory()
        try:
            return SqlDocumentStore(session).get(document_id)
        finally:
            session.close()

    def timeline(self, document_id: UUID) -> tuple[AuditEntry, ...]:
        session = self._session_factory()
        try:
            return AuditTrailRecorder(session, self._clock).timeline(document_id)
        finally:
            session.close()

    def available_actions(self, document: Document) -> tuple[str, ...]:
        return self._registry.available_actions(document.kind, document.status)

    def compute_reorder_shortfalls(
        self,
        positions: Sequence[StockPosition],
    ) -> list[ShortfallRecord]:
        """Reorder shortfalls for positions in configured warehouses only."""
        for position in positions:
            self._config.inventory.require_warehouse(position.warehouse, "warehouse")
        return _compute_reorder_shortfalls(positions)

    @staticmethod
    def compute_bom_status(job_card: Document, bom_facts: BomFacts) -> BomStatusResult:
        return _compute_bom_status(job_card, bom_facts)
