"""
portal_services.batch_generator -- Draft purchase orders from a reorder report.

Responsibility:
    Turns selected shortfall records into one draft purchase order per
    supplier.  Each PO is created and its lines appended through the
    ordinary workflow executor, so numbering, guards, versioning and the
    audit trail behave exactly as for a hand-made PO.

Architecture position:
    Services layer.  Grouping is delegated to portal_engines.batching;
    persistence to WorkflowExecutor.

Invariants enforced:
    - The actor's role is checked once, before any group is touched.
    - Groups run sequentially, each in its own transaction.  A failing
      group is rolled back whole, so no half-written PO is left behind.
    - Processing stops at the first failing group.  Purchase orders from
      earlier groups stay committed and are reported on the result next
      to a PartialBatchFailureError.  There is no compensating rollback.
    - Cancellation is checked between groups only.

Failure modes:
    - ForbiddenError: actor role not in ProcurementConfig.batch_roles
      (raised, nothing created).
    - ValidationError: delivery location is not a configured warehouse
      (raised, nothing created).
    - PartialBatchFailureError: returned on BatchResult.error, never
      raised, because the committed POs are part of the answer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portal_config import PortalConfig, get_active_config
from portal_engines.batching import SupplierGroup, group_by_supplier
from portal_engines.reconciliation import ShortfallRecord
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.documents import Actor, DocumentKind
from portal_kernel.domain.workflow import WorkflowRegistry
from portal_kernel.exceptions import (
    ForbiddenError,
    PartialBatchFailureError,
    PortalKernelError,
)
from portal_kernel.logging_config import LogContext, get_logger
from portal_modules.procurement.workflows import ADD_LINE_ACTION
from portal_modules.registry import default_registry
from portal_services.workflow_executor import WorkflowExecutor

logger = get_logger("services.batch_generator")

BATCH_ACTION = "generate_draft_pos"


@dataclass(frozen=True)
class GeneratedPurchaseOrder:
    po_id: UUID
    po_number: str
    supplier_name: str
    line_count: int = 0


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a batch run.

    ``created`` is authoritative: every entry is a committed draft PO,
    whether or not ``error`` is set.
    """

    created: tuple[GeneratedPurchaseOrder, ...] = ()
    error: PartialBatchFailureError | None = None
    cancelled: bool = False
    skipped: tuple[ShortfallRecord, ...] = ()
    missing_cost: tuple[ShortfallRecord, ...] = ()

    @property
    def completed(self) -> bool:
        return self.error is None and not self.cancelled


class BatchGenerator:
    """Creates draft purchase orders from shortfall records, one per supplier."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        registry: WorkflowRegistry | None = None,
        *,
        config: PortalConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._registry = registry or default_registry()
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

    def generate_draft_pos(
        self,
        selected: Sequence[ShortfallRecord],
        actor: Actor,
        *,
        delivery_location: str | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> BatchResult:
        procurement = self._config.procurement
        if actor.role not in procurement.batch_roles:
            logger.info(
                "batch_forbidden",
                extra={"actor_id": str(actor.id), "role": actor.role.value},
            )
            raise ForbiddenError(
                BATCH_ACTION, actor.role.value,
                "role may not generate purchase orders",
            )

        location = delivery_location or procurement.default_delivery_location
        if location is not None:
            self._config.inventory.require_warehouse(location, "delivery_location")
        groups = group_by_supplier(selected)
        created: list[GeneratedPurchaseOrder] = []
        skipped: list[ShortfallRecord] = []
        missing_cost = [
            r
            for g in groups
            if g.supplier_id is not None
            for r in g.orderable
            if r.cost_price is None
        ]
        batch_id = uuid4()

        with LogContext.bind(batch_id=batch_id, actor_id=actor.id):
            logger.info(
                "batch_started",
                extra={"record_count": len(selected), "group_count": len(groups)},
            )
            for record in missing_cost:
                logger.warning(
                    "batch_record_missing_cost",
                    extra={"product_id": str(record.product_id), "warehouse": record.warehouse},
                )

            for group in groups:
                if should_cancel is not None and should_cancel():
                    logger.info("batch_cancelled", extra={"created_count": len(created)})
                    return BatchResult(
                        created=tuple(created),
                        cancelled=True,
                        skipped=tuple(skipped),
                        missing_cost=tuple(missing_cost),
                    )

                unusable = self._unusable(group)
                skipped.extend(unusable)
                if len(unusable) == len(group.records):
                    continue

                try:
                    created.append(self._create_group_po(group, actor, location))
                except (PortalKernelError, SQLAlchemyError) as exc:
                    error = PartialBatchFailureError(created, group.supplier_id, exc)
                    logger.error(
                        "batch_group_failed",
                        extra={
                            "supplier_id": str(group.supplier_id),
                            "created_count": len(created),
                            "error": str(exc),
                        },
                    )
                    return BatchResult(
                        created=tuple(created),
                        error=error,
                        skipped=tuple(skipped),
                        missing_cost=tuple(missing_cost),
                    )

            logger.info(
                "batch_completed",
                extra={"created_count": len(created), "skipped_count": len(skipped)},
            )
        return BatchResult(
            created=tuple(created),
            skipped=tuple(skipped),
            missing_cost=tuple(missing_cost),
        )

    @staticmethod
    def _unusable(group: SupplierGroup) -> list[ShortfallRecord]:
        if group.supplier_id is None:
            logger.warning(
                "batch_group_without_supplier",
                extra={"record_count": len(group.records)},
            )
            return list(group.records)
        dropped = [r for r in group.records if r.suggested_qty <= 0]
        for record in dropped:
            logger.info(
                "batch_record_skipped",
                extra={
                    "product_id": str(record.product_id),
                    "suggested_qty": str(record.suggested_qty),
                },
            )
        return dropped

    def _create_group_po(
        self,
        group: SupplierGroup,
        actor: Actor,
        location: str | None,
    ) -> GeneratedPurchaseOrder:
        """Create one draft PO with a line per orderable record, in one transaction."""
        records = group.orderable
        session = self._session_factory()
        try:
            executor = WorkflowExecutor(
                session,
                self._registry,
                clock=self._clock,
                config=self._config,
            )
            po = executor.create_document(
                DocumentKind.PURCHASE_ORDER,
                actor,
                supplier_id=group.supplier_id,
                supplier_name=group.supplier_name,
                location=location or records[0].warehouse,
                notes=self._config.procurement.batch_note(len(records)),
            )
            version = po.version
            for record in records:
                result = executor.execute(
                    po.id,
                    ADD_LINE_ACTION,
                    {
                        "product_id": record.product_id,
                        "quantity": record.suggested_qty,
                        "unit_cost": record.cost_price if record.cost_price is not None else 0,
                        "description": record.description,
                    },
                    version,
                    actor,
                )
                version = result.new_version
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(
            "batch_po_created",
            extra={
                "document_id": str(po.id),
                "po_number": po.number,
                "supplier_id": str(group.supplier_id),
                "line_count": len(records),
            },
        )
        return GeneratedPurchaseOrder(
            po_id=po.id,
            po_number=po.number,
            supplier_name=group.supplier_name,
            line_count=len(records),
        )
