"""
Sales Workflows.

Sales order state machine.  Hold and cancel require a reason; shipping
records dispatched quantities and only reaches ``shipped`` once every
line is dispatched in full.
"""

from portal_engines.guards import reason_required_guard, role_guard
from portal_kernel.domain.documents import AuditVariant, DocumentKind
from portal_kernel.domain.workflow import LineEffect, Transition, Workflow, edges
from portal_kernel.logging_config import get_logger
from portal_modules.roles import APPROVERS, SALES_STAFF
from portal_modules.sales.models import SalesOrderStatus as SO

logger = get_logger("modules.sales.workflows")

SALES_ROLE = role_guard(*SALES_STAFF)
CLOSER_ROLE = role_guard(*APPROVERS)
HOLD_REASON = reason_required_guard("hold_reason")
CANCEL_REASON = reason_required_guard("cancel_reason")

HOLDABLE = (
    SO.CONFIRMED.value,
    SO.PROCESSING.value,
    SO.READY_TO_SHIP.value,
    SO.PARTIALLY_SHIPPED.value,
)
CANCELLABLE = (
    SO.DRAFT.value,
    SO.CONFIRMED.value,
    SO.PROCESSING.value,
    SO.ON_HOLD.value,
)


SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    kind=DocumentKind.SALES_ORDER,
    description="Sales order lifecycle",
    initial_state=SO.DRAFT.value,
    states=tuple(s.value for s in SO),
    terminal_states=(SO.CLOSED.value, SO.CANCELLED.value),
    create_guards=(SALES_ROLE,),
    transitions=(
        Transition(
            SO.DRAFT.value, SO.CONFIRMED.value, action="confirm",
            label="Order confirmed",
            guards=(SALES_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="confirmed_at",
        ),
        Transition(
            SO.CONFIRMED.value, SO.PROCESSING.value, action="start_processing",
            label="Processing started",
            guards=(SALES_ROLE,),
            timestamp_field="processing_at",
        ),
        Transition(
            SO.PROCESSING.value, SO.READY_TO_SHIP.value, action="ready",
            label="Ready to ship",
            guards=(SALES_ROLE,),
            timestamp_field="ready_at",
        ),
        *edges(
            (SO.READY_TO_SHIP.value, SO.PARTIALLY_SHIPPED.value),
            SO.PARTIALLY_SHIPPED.value, "ship",
            "Shipment dispatched",
            guards=(SALES_ROLE,),
            line_effect=LineEffect.DISPATCH,
            fulfilled_state=SO.SHIPPED.value,
            timestamp_field="shipped_at",
        ),
        Transition(
            SO.SHIPPED.value, SO.DELIVERED.value, action="deliver",
            label="Delivered",
            guards=(SALES_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="delivered_at",
        ),
        Transition(
            SO.DELIVERED.value, SO.INVOICED.value, action="invoice",
            label="Invoiced",
            guards=(SALES_ROLE,),
            timestamp_field="invoiced_at",
        ),
        Transition(
            SO.INVOICED.value, SO.CLOSED.value, action="close",
            label="Order closed",
            guards=(CLOSER_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="closed_at",
        ),
        *edges(
            HOLDABLE, SO.ON_HOLD.value, "hold",
            "Placed on hold",
            guards=(SALES_ROLE, HOLD_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="held_at",
        ),
        Transition(
            SO.ON_HOLD.value, SO.CONFIRMED.value, action="release",
            label="Released from hold",
            guards=(SALES_ROLE,),
            clears=("hold_reason",),
            timestamp_field="released_at",
        ),
        *edges(
            CANCELLABLE, SO.CANCELLED.value, "cancel",
            "Order cancelled",
            guards=(SALES_ROLE, CANCEL_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="cancelled_at",
        ),
    ),
)

logger.info(
    "sales_order_workflow_registered",
    extra={
        "workflow_name": SALES_ORDER_WORKFLOW.name,
        "state_count": len(SALES_ORDER_WORKFLOW.states),
        "transition_count": len(SALES_ORDER_WORKFLOW.transitions),
        "initial_state": SALES_ORDER_WORKFLOW.initial_state,
    },
)
