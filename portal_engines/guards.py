"""
Module: portal_engines.guards
Responsibility:
    Evaluate the guards attached to a workflow transition and turn the
    first failure into the matching typed error.  Also provides the guard
    factories every workflow table is built from, so approval rules for
    purchase orders, requisitions and returns cannot drift apart.

Architecture position:
    Engines -- pure evaluation, zero I/O.  Business-fact guards (BOM
    readiness) are delegated to evaluators registered by the services
    layer, which owns the collaborators they need.

Invariants enforced:
    - Fixed evaluation order: role -> status -> self-action ->
      reason-required -> business.  Evaluation stops at the first failure.
    - Role and self-action failures raise ForbiddenError; a status
      mismatch raises InvalidTransitionError; a missing reason or a failed
      business fact raises ValidationError (or a subclass).
    - A business guard with no registered evaluator fails closed.
    - Guards never mutate the document or the payload.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from portal_kernel.domain.documents import Actor, Document, Role
from portal_kernel.domain.workflow import (
    GUARD_EVALUATION_ORDER,
    Guard,
    GuardKind,
    Transition,
)
from portal_kernel.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    PortalKernelError,
    ValidationError,
)
from portal_kernel.logging_config import get_logger

logger = get_logger("engines.guards")

REASON_KEY = "reason"

# Business evaluators return True when the guard holds.  They may raise a
# PortalKernelError subclass to report a richer failure.
BusinessEvaluator = Callable[[Document, Mapping[str, Any]], bool]


# ---------------------------------------------------------------------------
# Guard factories
# ---------------------------------------------------------------------------


def role_guard(*roles: Role) -> Guard:
    """Actor's role must be one of ``roles``."""
    allowed = frozenset(roles)
    names = ",".join(sorted(r.value for r in allowed))
    return Guard(
        name=f"role:{names}",
        description=f"Actor role is one of {names}",
        kind=GuardKind.ROLE,
        roles=allowed,
    )


def self_action_guard() -> Guard:
    """Actor must not be the user who requested the document."""
    return Guard(
        name="not_requester",
        description="Approver is not the document's requester",
        kind=GuardKind.SELF_ACTION,
    )


def reason_required_guard(field: str) -> Guard:
    """Payload must carry a non-blank reason, stored in ``field``."""
    return Guard(
        name=f"reason_required:{field}",
        description=f"A non-empty reason is supplied for {field}",
        kind=GuardKind.REASON_REQUIRED,
        field=field,
    )


BOM_READY = Guard(
    name="bom_ready",
    description="All required BOM components are available at the job warehouse",
    kind=GuardKind.BUSINESS,
)


def extract_reason(payload: Mapping[str, Any] | None) -> str | None:
    """The stripped reason from a payload, or None when blank or absent."""
    if not payload:
        return None
    raw = payload.get(REASON_KEY)
    if raw is None:
        return None
    reason = str(raw).strip()
    return reason or None


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


class TransitionGuard:
    """Evaluates the guards on a transition in fixed order.

    Contract:
        ``evaluate`` returns None when every guard holds and raises the
        first failing guard's error otherwise.

    Non-goals:
        Does not look up transitions; the registry does that first.
    """

    def __init__(self, evaluators: Mapping[str, BusinessEvaluator] | None = None) -> None:
        self._evaluators: dict[str, BusinessEvaluator] = dict(evaluators or {})

    def register(self, guard_name: str, evaluator: BusinessEvaluator) -> None:
        """Register the evaluator for a business guard by name."""
        self._evaluators[guard_name] = evaluator

    def evaluate(
        self,
        transition: Transition,
        document: Document,
        actor: Actor,
        payload: Mapping[str, Any] | None = None,
    ) -> None:
        payload = payload or {}
        by_kind = _group_by_kind(transition.guards)

        for kind in GUARD_EVALUATION_ORDER:
            if kind == GuardKind.STATUS:
                self._check_status(transition, document)
                continue
            for guard in by_kind.get(kind, ()):
                self._check(guard, transition, document, actor, payload)

    def evaluate_create(self, guards: Iterable[Guard], actor: Actor, action: str) -> None:
        """Role-only check for creating a new document."""
        for guard in guards:
            if guard.kind == GuardKind.ROLE and actor.role not in guard.roles:
                _log_rejection(guard, action, None)
                raise ForbiddenError(action, actor.role.value, guard.description)

    def _check_status(self, transition: Transition, document: Document) -> None:
        if document.status != transition.from_state:
            logger.info(
                "guard_rejected",
                extra={
                    "guard_kind": GuardKind.STATUS.value,
                    "action": transition.action,
                    "status": document.status,
                    "expected_status": transition.from_state,
                },
            )
            raise InvalidTransitionError(
                document.kind.value, document.status, transition.action,
            )

    def _check(
        self,
        guard: Guard,
        transition: Transition,
        document: Document,
        actor: Actor,
        payload: Mapping[str, Any],
    ) -> None:
        action = transition.action

        if guard.kind == GuardKind.ROLE:
            if actor.role not in guard.roles:
                _log_rejection(guard, action, document)
                raise ForbiddenError(action, actor.role.value, guard.description)

        elif guard.kind == GuardKind.SELF_ACTION:
            if document.requested_by == actor.id:
                _log_rejection(guard, action, document)
                raise ForbiddenError(
                    action, actor.role.value,
                    f"cannot {action} a document you requested",
                )

        elif guard.kind == GuardKind.REASON_REQUIRED:
            if extract_reason(payload) is None:
                _log_rejection(guard, action, document)
                raise ValidationError(REASON_KEY, f"a reason is required to {action}")

        else:
            self._check_business(guard, action, document, payload)

    def _check_business(
        self,
        guard: Guard,
        action: str,
        document: Document,
        payload: Mapping[str, Any],
    ) -> None:
        evaluator = self._evaluators.get(guard.name)
        if evaluator is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            raise ValidationError(guard.name, "no evaluator registered; failing closed")
        try:
            holds = evaluator(document, payload)
        except PortalKernelError:
            _log_rejection(guard, action, document)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "guard_evaluation_error",
                extra={"guard_name": guard.name, "error": str(exc)},
            )
            raise ValidationError(guard.name, f"evaluation failed: {exc}") from exc
        if not holds:
            _log_rejection(guard, action, document)
            raise ValidationError(guard.name, guard.description)


def _group_by_kind(guards: Iterable[Guard]) -> dict[GuardKind, list[Guard]]:
    grouped: dict[GuardKind, list[Guard]] = {}
    for guard in guards:
        grouped.setdefault(guard.kind, []).append(guard)
    return grouped


def _log_rejection(guard: Guard, action: str, document: Document | None) -> None:
    extra: dict[str, Any] = {
        "guard_name": guard.name,
        "guard_kind": guard.kind.value,
        "action": action,
    }
    if document is not None:
        extra["status"] = document.status
        extra["document_id"] = str(document.id)
    logger.info("guard_rejected", extra=extra)
