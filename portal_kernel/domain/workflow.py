"""
Canonical workflow types (``portal_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  Every document kind
declares one ``Workflow`` built from ``Transition`` edges, each carrying
the ``Guard`` values that must hold before it fires.  The
``WorkflowRegistry`` answers the single question the executor asks:
"which edge does (kind, status, action) map to?"

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Guard
*evaluation* lives in ``portal_engines.guards``; this module only
describes guards.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* ``(from_state, action)`` is unique within a workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from portal_kernel.domain.documents import AuditVariant, DocumentKind, Role


class GuardKind(str, Enum):
    """Guard categories, listed in evaluation order."""

    ROLE = "role"
    STATUS = "status"
    SELF_ACTION = "self_action"
    REASON_REQUIRED = "reason_required"
    BUSINESS = "business"


GUARD_EVALUATION_ORDER: tuple[GuardKind, ...] = tuple(GuardKind)


class LineEffect(str, Enum):
    """How a transition's payload changes document lines."""

    NONE = "none"
    APPEND = "append"
    DISPATCH = "dispatch"
    RECEIVE = "receive"


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Guarantees: role guards name at least one role; reason guards name
    the document field the reason is stored in.
    Non-goals: does not evaluate the condition -- portal_engines.guards does.
    """

    name: str
    description: str
    kind: GuardKind = GuardKind.BUSINESS
    roles: frozenset[Role] = frozenset()
    field: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.description:
            raise ValueError("Guard name and description must be non-empty")
        if self.kind == GuardKind.ROLE and not self.roles:
            raise ValueError(f"Role guard {self.name} must name at least one role")
        if self.kind == GuardKind.REASON_REQUIRED and not self.field:
            raise ValueError(f"Reason guard {self.name} must name a field")


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``fulfilled_state`` is used by dispatch/receive edges: when every line
    is complete after the payload is applied the document moves there
    instead of ``to_state``.  Self-loop edges (``from_state == to_state``)
    edit the document without changing its status.
    ``clears`` names document fields reset to None when the edge fires.
    """

    from_state: str
    to_state: str
    action: str
    label: str
    guards: tuple[Guard, ...] = ()
    variant: AuditVariant = AuditVariant.NEUTRAL
    timestamp_field: str | None = None
    line_effect: LineEffect = LineEffect.NONE
    fulfilled_state: str | None = None
    clears: tuple[str, ...] = ()

    @property
    def is_self_loop(self) -> bool:
        return self.from_state == self.to_state

    @property
    def target_states(self) -> tuple[str, ...]:
        if self.fulfilled_state is None:
            return (self.to_state,)
        return (self.to_state, self.fulfilled_state)


def edges(
    from_states: Iterable[str],
    to_state: str | None,
    action: str,
    label: str,
    **kwargs,
) -> tuple[Transition, ...]:
    """Expand one multi-source edge into one Transition per source state.

    ``to_state=None`` makes every edge a self-loop on its source.
    """
    return tuple(
        Transition(
            from_state=source,
            to_state=source if to_state is None else to_state,
            action=action,
            label=label,
            **kwargs,
        )
        for source in from_states
    )


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    ``create_guards`` are evaluated when a new document of this kind is
    created (role checks only; there is no prior status).
    """

    name: str
    kind: DocumentKind
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    create_guards: tuple[Guard, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            for state in (t.from_state, *t.target_states):
                if state not in known:
                    raise ValueError(
                        f"{self.name}: transition {t.action} references "
                        f"unknown state {state}"
                    )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state} has outgoing "
                    f"transition {t.action}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"{self.name}: duplicate transition {t.action} from {t.from_state}"
                )
            seen.add(key)

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)


class WorkflowRegistry:
    """Lookup of workflows by document kind.

    Contract: one workflow per kind; registration of a second workflow for
    the same kind raises ``ValueError``.
    """

    def __init__(self, workflows: Iterable[Workflow] = ()) -> None:
        self._workflows: dict[DocumentKind, Workflow] = {}
        for workflow in workflows:
            self.register(workflow)

    def register(self, workflow: Workflow) -> None:
        if workflow.kind in self._workflows:
            raise ValueError(f"Workflow already registered for {workflow.kind.value}")
        self._workflows[workflow.kind] = workflow

    def get(self, kind: DocumentKind) -> Workflow:
        try:
            return self._workflows[kind]
        except KeyError:
            raise ValueError(f"No workflow registered for {kind}") from None

    def find_transition(
        self, kind: DocumentKind, from_state: str, action: str,
    ) -> Transition | None:
        return self.get(kind).find_transition(from_state, action)

    def available_actions(self, kind: DocumentKind, status: str) -> tuple[str, ...]:
        return self.get(kind).actions_from(status)

    @property
    def kinds(self) -> tuple[DocumentKind, ...]:
        return tuple(self._workflows)

    def __iter__(self):
        return iter(self._workflows.values())
