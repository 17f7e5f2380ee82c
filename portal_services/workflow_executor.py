"""
portal_services.workflow_executor -- Document transition execution.

Responsibility:
    Creates documents and executes workflow transitions.  Thin
    coordinator: transition lookup is delegated to the WorkflowRegistry,
    guard evaluation to TransitionGuard, BOM arithmetic to the
    reconciliation engine, the versioned write to ConcurrencyController,
    and the timeline entry to AuditTrailRecorder.

Architecture position:
    Services layer.  May import from portal_engines/ (pure engines),
    portal_kernel/ (domain, services, models), portal_modules/ and
    portal_config/.

Invariants enforced:
    - Order of operations: load -> version check -> registry lookup ->
      guards -> apply -> CAS write -> audit append.  Nothing is written
      unless every guard holds.
    - Exactly one audit entry per successful create or transition, in
      the same transaction as the version write.
    - Does NOT commit.  The caller (DocumentWorkflowService or
      BatchGenerator) owns the transaction boundary.
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from portal_config import PortalConfig, get_active_config
from portal_engines.guards import BOM_READY, TransitionGuard, extract_reason
from portal_engines.reconciliation import (
    compute_bom_status,
    gather_bom_facts,
    job_card_target,
)
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.documents import (
    Actor,
    Document,
    DocumentKind,
    LineItem,
    TransitionResult,
)
from portal_kernel.domain.protocols import BomLookupService, InventoryQueryService
from portal_kernel.domain.workflow import (
    GuardKind,
    LineEffect,
    Transition,
    WorkflowRegistry,
)
from portal_kernel.exceptions import (
    BomShortageError,
    InvalidTransitionError,
    PortalKernelError,
    ValidationError,
    VersionConflictError,
)
from portal_kernel.logging_config import LogContext, get_logger
from portal_kernel.services.audit_trail import AuditTrailRecorder
from portal_kernel.services.concurrency import ConcurrencyController
from portal_kernel.services.document_store import SqlDocumentStore
from portal_kernel.services.number_service import DocumentNumberService
from portal_modules.registry import default_registry

logger = get_logger("services.workflow_executor")

# Trace message and outcome codes for structured logging and traceability
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_VERSION_CONFLICT = "version_conflict"

# Payload keys understood by line-changing transitions
QUANTITIES_KEY = "quantities"
DAMAGED_KEY = "damaged"

CREATE_ACTION = "create"


def _emit_workflow_trace(
    workflow_name: str,
    action: str,
    document: Document,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record for traceability."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": datetime.now(UTC).isoformat(),
        "workflow": workflow_name,
        "action": action,
        "document_kind": document.kind.value,
        "document_number": document.number,
        "from_state": document.status,
        "from_version": document.version,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink(dict(record, message="workflow_transition"))


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(field, f"not a number: {value!r}") from None


def _quantity_map(payload: Mapping[str, Any], key: str) -> dict[int, Decimal]:
    """Read ``{line_number: quantity}`` from a payload.  String keys are accepted."""
    raw = payload.get(key) or {}
    if not isinstance(raw, Mapping):
        raise ValidationError(key, "expected a mapping of line number to quantity")
    result: dict[int, Decimal] = {}
    for line_number, qty in raw.items():
        try:
            number = int(line_number)
        except (TypeError, ValueError):
            raise ValidationError(key, f"bad line number {line_number!r}") from None
        amount = _to_decimal(qty, key)
        if amount < 0:
            raise ValidationError(key, f"line {number}: quantity cannot be negative")
        result[number] = amount
    return result


class WorkflowExecutor:
    """Creates documents and applies registry transitions to them.

    Contract:
        ``execute`` either returns a TransitionResult for a version that
        has been written and audited (uncommitted), or raises the typed
        error of the first failing check with nothing written.
    Non-goals:
        No commit, no notification, no retry on VersionConflictError.
    """

    def __init__(
        self,
        session: Session,
        registry: WorkflowRegistry | None = None,
        *,
        guard: TransitionGuard | None = None,
        clock: Clock | None = None,
        config: PortalConfig | None = None,
        inventory: InventoryQueryService | None = None,
        bom_lookup: BomLookupService | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ):
        self._session = session
        self._registry = registry or default_registry()
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._inventory = inventory
        self._bom_lookup = bom_lookup
        self._outcome_sink = outcome_sink

        self._store = SqlDocumentStore(session)
        self._concurrency = ConcurrencyController(self._store)
        self._audit = AuditTrailRecorder(session, self._clock)
        self._numbers = DocumentNumberService(
            session, self._clock, width=self._config.numbering.width,
        )

        self._guard = guard or TransitionGuard()
        self._guard.register(BOM_READY.name, self._bom_ready)

    @property
    def store(self) -> SqlDocumentStore:
        return self._store

    @property
    def audit(self) -> AuditTrailRecorder:
        return self._audit

    # ------------------------------------------------------------------
    # Creation
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
        """Create a document in its kind's initial status at version 1."""
        workflow = self._registry.get(kind)
        self._guard.evaluate_create(workflow.create_guards, actor, CREATE_ACTION)
        if location is not None:
            self._config.inventory.require_warehouse(location)

        number = self._numbers.next_number(self._config.numbering.prefix_for(kind))
        try:
            document = Document(
                id=uuid4(),
                kind=kind,
                number=number,
                status=workflow.initial_state,
                version=1,
                requested_by=actor.id,
                created_at=self._clock.now(),
                lines=tuple(lines),
                supplier_id=supplier_id,
                supplier_name=supplier_name,
                location=location,
                notes=notes,
            )
        except ValueError as exc:
            raise ValidationError("document", str(exc)) from exc

        created = self._store.create(document)
        self._audit.record(
            created,
            action=CREATE_ACTION,
            label=f"{kind.value.replace('_', ' ').capitalize()} created",
            actor_id=actor.id,
            from_status=None,
        )
        logger.info(
            "document_created",
            extra={
                "document_id": str(created.id),
                "kind": kind.value,
                "number": created.number,
                "line_count": len(created.lines),
            },
        )
        return created

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def execute(
        self,
        document_id: UUID,
        action: str,
        payload: Mapping[str, Any] | None,
        expected_version: int,
        actor: Actor,
    ) -> TransitionResult:
        """Apply ``action`` to the document at ``expected_version``.

        Raises:
            DocumentNotFoundError: Unknown document id.
            VersionConflictError: Stored version differs from expected.
            InvalidTransitionError: No edge for (status, action).
            ForbiddenError / ValidationError: A guard failed.
        """
        start = time.monotonic()
        payload = payload or {}
        document = self._store.get(document_id)
        workflow = self._registry.get(document.kind)

        with LogContext.bind(document_id=document_id, actor_id=actor.id):
            try:
                self._concurrency.check(document, expected_version)
            except VersionConflictError as exc:
                _emit_workflow_trace(
                    workflow.name, action, document, OUTCOME_VERSION_CONFLICT,
                    str(exc), (time.monotonic() - start) * 1000,
                    outcome_sink=self._outcome_sink,
                )
                raise

            transition = workflow.find_transition(document.status, action)
            if transition is None:
                _emit_workflow_trace(
                    workflow.name, action, document, OUTCOME_NO_TRANSITION,
                    f"No transition {action} from {document.status}",
                    (time.monotonic() - start) * 1000,
                    outcome_sink=self._outcome_sink,
                )
                raise InvalidTransitionError(document.kind.value, document.status, action)

            try:
                self._guard.evaluate(transition, document, actor, payload)
            except PortalKernelError as exc:
                _emit_workflow_trace(
                    workflow.name, action, document, OUTCOME_GUARD_FAILED,
                    f"{exc.code}: {exc}", (time.monotonic() - start) * 1000,
                    outcome_sink=self._outcome_sink,
                )
                raise

            proposed, detail = self._apply(transition, document, payload)
            try:
                saved = self._concurrency.mutate(document_id, expected_version, proposed)
            except VersionConflictError as exc:
                _emit_workflow_trace(
                    workflow.name, action, document, OUTCOME_VERSION_CONFLICT,
                    str(exc), (time.monotonic() - start) * 1000,
                    outcome_sink=self._outcome_sink,
                )
                raise

            entry = self._audit.record(
                saved,
                action=action,
                label=transition.label,
                actor_id=actor.id,
                from_status=document.status,
                variant=transition.variant,
                detail=detail,
            )
            _emit_workflow_trace(
                workflow.name, action, document, OUTCOME_SUCCESS,
                transition.label, (time.monotonic() - start) * 1000,
                to_state=saved.status,
                outcome_sink=self._outcome_sink,
            )
        return TransitionResult(document=saved, audit_entry=entry)

    def _apply(
        self,
        transition: Transition,
        document: Document,
        payload: Mapping[str, Any],
    ) -> tuple[Document, str | None]:
        """Build the proposed next snapshot and the audit detail text."""
        changes: dict[str, Any] = {}
        detail: str | None = None

        reason = extract_reason(payload)
        for guard in transition.guards:
            if guard.kind == GuardKind.REASON_REQUIRED and guard.field:
                changes[guard.field] = reason
                detail = reason
        for field_name in transition.clears:
            changes[field_name] = None
        if transition.timestamp_field:
            stamps = dict(document.timestamps)
            stamps[transition.timestamp_field] = self._clock.now()
            changes["timestamps"] = stamps

        try:
            if transition.line_effect == LineEffect.APPEND:
                line = self._new_line(document, payload)
                changes["lines"] = document.lines + (line,)
                detail = f"Line {line.line_number} added: {line.quantity_ordered}"
            elif transition.line_effect in (LineEffect.DISPATCH, LineEffect.RECEIVE):
                lines, detail = self._apply_quantities(transition, document, payload)
                changes["lines"] = lines
                changes["status"] = self._quantity_target(transition, lines)
            if "status" not in changes:
                changes["status"] = transition.to_state
            return document.with_changes(**changes), detail
        except ValueError as exc:
            raise ValidationError("lines", str(exc)) from exc

    def _new_line(self, document: Document, payload: Mapping[str, Any]) -> LineItem:
        product_id = payload.get("product_id")
        if product_id is None:
            raise ValidationError("product_id", "required to add a line")
        quantity = _to_decimal(payload.get("quantity"), "quantity")
        if quantity <= 0:
            raise ValidationError("quantity", "must be positive")
        return LineItem(
            line_number=document.next_line_number,
            product_id=product_id if isinstance(product_id, UUID) else UUID(str(product_id)),
            quantity_ordered=quantity,
            unit_cost=_to_decimal(payload.get("unit_cost", "0"), "unit_cost"),
            description=str(payload.get("description", "")),
        )

    def _apply_quantities(
        self,
        transition: Transition,
        document: Document,
        payload: Mapping[str, Any],
    ) -> tuple[tuple[LineItem, ...], str]:
        quantities = _quantity_map(payload, QUANTITIES_KEY)
        damaged = _quantity_map(payload, DAMAGED_KEY)
        if not quantities:
            raise ValidationError(QUANTITIES_KEY, f"at least one line is required to {transition.action}")
        if damaged and transition.line_effect != LineEffect.RECEIVE:
            raise ValidationError(DAMAGED_KEY, f"damaged quantities do not apply to {transition.action}")
        if sum(quantities.values()) + sum(damaged.values()) == 0:
            raise ValidationError(QUANTITIES_KEY, "nothing to record: every quantity is zero")
        known = {line.line_number for line in document.lines}
        unknown = sorted((set(quantities) | set(damaged)) - known)
        if unknown:
            raise ValidationError(QUANTITIES_KEY, f"unknown line number(s) {unknown}")

        zero = Decimal("0")
        updated: list[LineItem] = []
        for line in document.lines:
            qty = quantities.get(line.line_number)
            if qty is None and line.line_number not in damaged:
                updated.append(line)
                continue
            if transition.line_effect == LineEffect.DISPATCH:
                updated.append(replace(
                    line,
                    quantity_dispatched=(line.quantity_dispatched or zero) + (qty or zero),
                ))
                continue
            extra_damaged = damaged.get(line.line_number)
            updated.append(replace(
                line,
                quantity_received=(line.quantity_received or zero) + (qty or zero),
                quantity_damaged=(
                    (line.quantity_damaged or zero) + extra_damaged
                    if extra_damaged is not None
                    else line.quantity_damaged
                ),
            ))

        detail = ", ".join(f"line {n}: {q}" for n, q in sorted(quantities.items()))
        if damaged:
            detail += "; damaged " + ", ".join(
                f"line {n}: {q}" for n, q in sorted(damaged.items())
            )
        return tuple(updated), detail

    @staticmethod
    def _quantity_target(transition: Transition, lines: Sequence[LineItem]) -> str:
        if transition.fulfilled_state is None:
            return transition.to_state
        if transition.line_effect == LineEffect.DISPATCH:
            done = all(line.is_fully_dispatched for line in lines)
        else:
            done = all(line.is_fully_received for line in lines)
        return transition.fulfilled_state if done else transition.to_state

    # ------------------------------------------------------------------
    # Business guard evaluators
    # ------------------------------------------------------------------

    def _bom_ready(self, document: Document, payload: Mapping[str, Any]) -> bool:
        """Job card start: every required BOM component is in stock."""
        production = self._config.production
        if not production.enforce_bom_ready:
            return True
        if self._inventory is None or self._bom_lookup is None:
            logger.warning(
                "bom_check_unconfigured",
                extra={"document_id": str(document.id)},
            )
            return False
        if not document.location:
            raise ValidationError("location", "job card has no warehouse")
        self._config.inventory.require_warehouse(document.location)

        product_id, _ = job_card_target(document)
        facts = gather_bom_facts(
            product_id,
            document.location,
            self._bom_lookup,
            self._inventory,
            max_depth=production.bom_max_depth,
        )
        result = compute_bom_status(document, facts)
        if not result.can_fulfill:
            raise BomShortageError(document.id, list(result.short_products))
        return True
