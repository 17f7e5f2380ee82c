"""
Procurement Workflows.

State machines for purchase orders and purchase requisitions.  Approval
on both carries the self-action guard: the requester never approves
their own document.
"""

from portal_engines.guards import reason_required_guard, role_guard, self_action_guard
from portal_kernel.domain.documents import AuditVariant, DocumentKind
from portal_kernel.domain.workflow import LineEffect, Transition, Workflow, edges
from portal_kernel.logging_config import get_logger
from portal_modules.procurement.models import PurchaseOrderStatus as PO
from portal_modules.procurement.models import RequisitionStatus as PR
from portal_modules.roles import (
    ALL_STAFF,
    APPROVERS,
    PROCUREMENT_STAFF,
    RECEIVING_STAFF,
)

logger = get_logger("modules.procurement.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PROCUREMENT_ROLE = role_guard(*PROCUREMENT_STAFF)
APPROVER_ROLE = role_guard(*APPROVERS)
RECEIVER_ROLE = role_guard(*RECEIVING_STAFF)
STAFF_ROLE = role_guard(*ALL_STAFF)
NOT_REQUESTER = self_action_guard()
REJECTION_REASON = reason_required_guard("rejection_reason")
CANCEL_REASON = reason_required_guard("cancel_reason")

ADD_LINE_ACTION = "add_line"


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    kind=DocumentKind.PURCHASE_ORDER,
    description="Purchase order lifecycle",
    initial_state=PO.DRAFT.value,
    states=tuple(s.value for s in PO),
    terminal_states=(PO.CLOSED.value, PO.CANCELLED.value),
    create_guards=(PROCUREMENT_ROLE,),
    transitions=(
        Transition(
            PO.DRAFT.value, PO.PENDING_APPROVAL.value, action="submit",
            label="Submitted for approval",
            guards=(PROCUREMENT_ROLE,),
            clears=("rejection_reason",),
            timestamp_field="submitted_at",
        ),
        Transition(
            PO.PENDING_APPROVAL.value, PO.APPROVED.value, action="approve",
            label="Approved",
            guards=(APPROVER_ROLE, NOT_REQUESTER),
            variant=AuditVariant.SUCCESS,
            timestamp_field="approved_at",
        ),
        Transition(
            PO.PENDING_APPROVAL.value, PO.DRAFT.value, action="reject",
            label="Rejected",
            guards=(APPROVER_ROLE, REJECTION_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="rejected_at",
        ),
        *edges(
            (PO.DRAFT.value, PO.PENDING_APPROVAL.value), PO.SENT.value, "send",
            "Sent to supplier",
            guards=(APPROVER_ROLE,),
            timestamp_field="sent_at",
        ),
        Transition(
            PO.APPROVED.value, PO.SENT.value, action="send",
            label="Sent to supplier",
            guards=(PROCUREMENT_ROLE,),
            timestamp_field="sent_at",
        ),
        Transition(
            PO.SENT.value, PO.ACKNOWLEDGED.value, action="acknowledge",
            label="Acknowledged by supplier",
            guards=(PROCUREMENT_ROLE,),
            timestamp_field="acknowledged_at",
        ),
        *edges(
            (PO.SENT.value, PO.ACKNOWLEDGED.value, PO.PARTIALLY_RECEIVED.value),
            PO.PARTIALLY_RECEIVED.value, "receive",
            "Goods received",
            guards=(RECEIVER_ROLE,),
            line_effect=LineEffect.RECEIVE,
            fulfilled_state=PO.RECEIVED.value,
            timestamp_field="last_received_at",
        ),
        *edges(
            (PO.DRAFT.value, PO.PENDING_APPROVAL.value), PO.CANCELLED.value, "cancel",
            "Cancelled",
            guards=(PROCUREMENT_ROLE, CANCEL_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="cancelled_at",
        ),
        Transition(
            PO.RECEIVED.value, PO.CLOSED.value, action="close",
            label="Closed",
            guards=(APPROVER_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="closed_at",
        ),
        *edges(
            (PO.DRAFT.value, PO.PENDING_APPROVAL.value), None, ADD_LINE_ACTION,
            "Line added",
            guards=(PROCUREMENT_ROLE,),
            line_effect=LineEffect.APPEND,
        ),
    ),
)

logger.info(
    "procurement_po_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Requisition Workflow
# -----------------------------------------------------------------------------

REQUISITION_WORKFLOW = Workflow(
    name="purchase_requisition",
    kind=DocumentKind.PURCHASE_REQUISITION,
    description="Purchase requisition lifecycle",
    initial_state=PR.PENDING.value,
    states=tuple(s.value for s in PR),
    terminal_states=(PR.REJECTED.value, PR.CONVERTED_TO_PO.value, PR.CANCELLED.value),
    create_guards=(STAFF_ROLE,),
    transitions=(
        Transition(
            PR.PENDING.value, PR.APPROVED.value, action="approve",
            label="Approved",
            guards=(APPROVER_ROLE, NOT_REQUESTER),
            variant=AuditVariant.SUCCESS,
            timestamp_field="approved_at",
        ),
        Transition(
            PR.PENDING.value, PR.REJECTED.value, action="reject",
            label="Rejected",
            guards=(APPROVER_ROLE, REJECTION_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="rejected_at",
        ),
        Transition(
            PR.PENDING.value, PR.CANCELLED.value, action="cancel",
            label="Cancelled",
            guards=(STAFF_ROLE, CANCEL_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="cancelled_at",
        ),
        Transition(
            PR.APPROVED.value, PR.CONVERTED_TO_PO.value, action="convert",
            label="Converted to purchase order",
            guards=(PROCUREMENT_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="converted_at",
        ),
        Transition(
            PR.PENDING.value, PR.PENDING.value, action=ADD_LINE_ACTION,
            label="Line added",
            guards=(STAFF_ROLE,),
            line_effect=LineEffect.APPEND,
        ),
    ),
)

logger.info(
    "procurement_requisition_workflow_registered",
    extra={
        "workflow_name": REQUISITION_WORKFLOW.name,
        "state_count": len(REQUISITION_WORKFLOW.states),
        "transition_count": len(REQUISITION_WORKFLOW.transitions),
        "initial_state": REQUISITION_WORKFLOW.initial_state,
    },
)
