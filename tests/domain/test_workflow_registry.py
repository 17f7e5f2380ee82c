"""
Workflow table and registry tests.

Structural checks on every document kind's state machine: unique
(from_state, action) edges, terminal states without exits, and the
lookups the executor relies on.
"""

import pytest

from portal_engines.guards import BOM_READY
from portal_kernel.domain.documents import DocumentKind, Role
from portal_kernel.domain.workflow import (
    GUARD_EVALUATION_ORDER,
    Guard,
    GuardKind,
    LineEffect,
    Transition,
    Workflow,
    WorkflowRegistry,
    edges,
)
from portal_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)
from portal_modules.production.workflows import JOB_CARD_WORKFLOW
from portal_modules.registry import ALL_WORKFLOWS, default_registry
from portal_modules.returns.workflows import RETURN_AUTHORIZATION_WORKFLOW
from portal_modules.sales.workflows import SALES_ORDER_WORKFLOW


class TestRegistry:
    def test_one_workflow_per_kind(self):
        registry = default_registry()
        assert set(registry.kinds) == set(DocumentKind)

    def test_duplicate_registration_rejected(self):
        registry = default_registry()
        with pytest.raises(ValueError, match="already registered"):
            registry.register(SALES_ORDER_WORKFLOW)

    def test_unknown_kind_rejected(self):
        registry = WorkflowRegistry()
        with pytest.raises(ValueError, match="No workflow registered"):
            registry.get(DocumentKind.JOB_CARD)

    def test_find_transition_known_edge(self):
        registry = default_registry()
        t = registry.find_transition(DocumentKind.PURCHASE_ORDER, "pending_approval", "approve")
        assert t is not None
        assert t.to_state == "approved"

    def test_find_transition_unknown_edge(self):
        registry = default_registry()
        assert registry.find_transition(DocumentKind.PURCHASE_ORDER, "closed", "approve") is None

    def test_available_actions(self):
        registry = default_registry()
        actions = registry.available_actions(DocumentKind.PURCHASE_ORDER, "draft")
        assert set(actions) == {"submit", "send", "cancel", "add_line"}


@pytest.mark.parametrize("workflow", ALL_WORKFLOWS, ids=lambda w: w.name)
class TestWorkflowStructure:
    def test_terminal_states_have_no_exits(self, workflow):
        for state in workflow.terminal_states:
            assert workflow.actions_from(state) == ()

    def test_edges_are_unique(self, workflow):
        keys = [(t.from_state, t.action) for t in workflow.transitions]
        assert len(keys) == len(set(keys))

    def test_every_non_terminal_state_reachable(self, workflow):
        reached = {workflow.initial_state}
        frontier = [workflow.initial_state]
        while frontier:
            state = frontier.pop()
            for t in workflow.transitions:
                if t.from_state == state:
                    for target in t.target_states:
                        if target not in reached:
                            reached.add(target)
                            frontier.append(target)
        assert reached == set(workflow.states)

    def test_every_edge_has_role_guard(self, workflow):
        for t in workflow.transitions:
            assert any(g.kind == GuardKind.ROLE for g in t.guards), t.action

    def test_create_guards_are_role_guards(self, workflow):
        assert workflow.create_guards
        assert all(g.kind == GuardKind.ROLE for g in workflow.create_guards)


class TestApprovalRules:
    @pytest.mark.parametrize(
        "workflow",
        [PURCHASE_ORDER_WORKFLOW, REQUISITION_WORKFLOW, RETURN_AUTHORIZATION_WORKFLOW],
        ids=lambda w: w.name,
    )
    def test_approve_carries_self_action_guard(self, workflow):
        approve = [t for t in workflow.transitions if t.action == "approve"]
        assert approve
        for t in approve:
            kinds = {g.kind for g in t.guards}
            assert GuardKind.SELF_ACTION in kinds
            role = next(g for g in t.guards if g.kind == GuardKind.ROLE)
            assert role.roles == frozenset({Role.ADMIN, Role.MANAGER})

    def test_reject_and_cancel_require_reason(self):
        for workflow in ALL_WORKFLOWS:
            for t in workflow.transitions:
                if t.action in ("reject", "cancel", "hold"):
                    reason = [g for g in t.guards if g.kind == GuardKind.REASON_REQUIRED]
                    assert reason, f"{workflow.name}.{t.action}"

    def test_po_send_from_approved_allows_purchaser(self):
        t = PURCHASE_ORDER_WORKFLOW.find_transition("approved", "send")
        role = next(g for g in t.guards if g.kind == GuardKind.ROLE)
        assert Role.PURCHASER in role.roles

    def test_po_send_from_draft_needs_approver(self):
        t = PURCHASE_ORDER_WORKFLOW.find_transition("draft", "send")
        role = next(g for g in t.guards if g.kind == GuardKind.ROLE)
        assert Role.PURCHASER not in role.roles

    def test_job_start_checks_bom(self):
        t = JOB_CARD_WORKFLOW.find_transition("pending", "start")
        assert BOM_READY in t.guards

    def test_receive_edges_have_fulfilled_state(self):
        for source in ("sent", "acknowledged", "partially_received"):
            t = PURCHASE_ORDER_WORKFLOW.find_transition(source, "receive")
            assert t.line_effect == LineEffect.RECEIVE
            assert t.target_states == ("partially_received", "received")

    def test_release_returns_to_confirmed_and_clears_reason(self):
        t = SALES_ORDER_WORKFLOW.find_transition("on_hold", "release")
        assert t.to_state == "confirmed"
        assert t.clears == ("hold_reason",)


class TestWorkflowValidation:
    def test_guard_order_is_fixed(self):
        assert GUARD_EVALUATION_ORDER == (
            GuardKind.ROLE,
            GuardKind.STATUS,
            GuardKind.SELF_ACTION,
            GuardKind.REASON_REQUIRED,
            GuardKind.BUSINESS,
        )

    def test_role_guard_needs_roles(self):
        with pytest.raises(ValueError):
            Guard(name="r", description="d", kind=GuardKind.ROLE)

    def test_reason_guard_needs_field(self):
        with pytest.raises(ValueError):
            Guard(name="r", description="d", kind=GuardKind.REASON_REQUIRED)

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="w", kind=DocumentKind.SALES_ORDER, description="d",
                initial_state="a", states=("a",),
                transitions=(Transition("a", "b", action="go", label="Go"),),
            )

    def test_terminal_with_exit_rejected(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="w", kind=DocumentKind.SALES_ORDER, description="d",
                initial_state="a", states=("a", "b"), terminal_states=("b",),
                transitions=(Transition("b", "a", action="reopen", label="Reopen"),),
            )

    def test_duplicate_edge_rejected(self):
        with pytest.raises(ValueError, match="duplicate transition"):
            Workflow(
                name="w", kind=DocumentKind.SALES_ORDER, description="d",
                initial_state="a", states=("a", "b"),
                transitions=(
                    Transition("a", "b", action="go", label="Go"),
                    Transition("a", "a", action="go", label="Go again"),
                ),
            )

    def test_edges_expands_sources(self):
        expanded = edges(("a", "b"), "c", "go", "Go")
        assert [(t.from_state, t.to_state) for t in expanded] == [("a", "c"), ("b", "c")]

    def test_edges_self_loop(self):
        expanded = edges(("a", "b"), None, "edit", "Edit")
        assert all(t.is_self_loop for t in expanded)
