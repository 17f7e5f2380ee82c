"""
Returns Workflows.

Return authorization state machine.
"""

from portal_engines.guards import (
    reason_required_guard,
    role_guard,
    self_action_guard,
)
from portal_kernel.domain.documents import AuditVariant, DocumentKind, Role
from portal_kernel.domain.workflow import LineEffect, Transition, Workflow, edges
from portal_kernel.logging_config import get_logger
from portal_modules.returns.models import ReturnAuthorizationStatus as RA
from portal_modules.roles import ALL_STAFF, APPROVERS

logger = get_logger("modules.returns.workflows")

REQUESTER_ROLE = role_guard(*ALL_STAFF, Role.CUSTOMER)
APPROVER_ROLE = role_guard(*APPROVERS)
RECEIVER_ROLE = role_guard(Role.ADMIN, Role.MANAGER, Role.WAREHOUSE)
NOT_REQUESTER = self_action_guard()
REJECTION_REASON = reason_required_guard("rejection_reason")
CANCEL_REASON = reason_required_guard("cancel_reason")


RETURN_AUTHORIZATION_WORKFLOW = Workflow(
    name="return_authorization",
    kind=DocumentKind.RETURN_AUTHORIZATION,
    description="Return authorization lifecycle",
    initial_state=RA.REQUESTED.value,
    states=tuple(s.value for s in RA),
    terminal_states=(RA.REJECTED.value, RA.COMPLETED.value, RA.CANCELLED.value),
    create_guards=(REQUESTER_ROLE,),
    transitions=(
        Transition(
            RA.REQUESTED.value, RA.APPROVED.value, action="approve",
            label="Return approved",
            guards=(APPROVER_ROLE, NOT_REQUESTER),
            variant=AuditVariant.SUCCESS,
            timestamp_field="approved_at",
        ),
        Transition(
            RA.REQUESTED.value, RA.REJECTED.value, action="reject",
            label="Return rejected",
            guards=(APPROVER_ROLE, REJECTION_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="rejected_at",
        ),
        Transition(
            RA.APPROVED.value, RA.ITEMS_RECEIVED.value, action="receive_items",
            label="Returned items received",
            guards=(RECEIVER_ROLE,),
            line_effect=LineEffect.RECEIVE,
            timestamp_field="items_received_at",
        ),
        Transition(
            RA.ITEMS_RECEIVED.value, RA.COMPLETED.value, action="complete",
            label="Return completed",
            guards=(APPROVER_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="completed_at",
        ),
        *edges(
            (RA.REQUESTED.value, RA.APPROVED.value), RA.CANCELLED.value, "cancel",
            "Return cancelled",
            guards=(REQUESTER_ROLE, CANCEL_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="cancelled_at",
        ),
    ),
)

logger.info(
    "return_authorization_workflow_registered",
    extra={
        "workflow_name": RETURN_AUTHORIZATION_WORKFLOW.name,
        "state_count": len(RETURN_AUTHORIZATION_WORKFLOW.states),
        "transition_count": len(RETURN_AUTHORIZATION_WORKFLOW.transitions),
        "initial_state": RETURN_AUTHORIZATION_WORKFLOW.initial_state,
    },
)
