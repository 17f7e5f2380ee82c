"""
Production Workflows.

Job card state machine.  Starting a job carries the BOM readiness guard.
"""

from portal_engines.guards import BOM_READY, reason_required_guard, role_guard
from portal_kernel.domain.documents import AuditVariant, DocumentKind
from portal_kernel.domain.workflow import Transition, Workflow, edges
from portal_kernel.logging_config import get_logger
from portal_modules.production.models import JobCardStatus as JC
from portal_modules.roles import PRODUCTION_STAFF

logger = get_logger("modules.production.workflows")

PRODUCTION_ROLE = role_guard(*PRODUCTION_STAFF)
HOLD_REASON = reason_required_guard("hold_reason")
CANCEL_REASON = reason_required_guard("cancel_reason")


JOB_CARD_WORKFLOW = Workflow(
    name="job_card",
    kind=DocumentKind.JOB_CARD,
    description="Job card (assembly) lifecycle",
    initial_state=JC.PENDING.value,
    states=tuple(s.value for s in JC),
    terminal_states=(JC.COMPLETE.value, JC.CANCELLED.value),
    create_guards=(PRODUCTION_ROLE,),
    transitions=(
        Transition(
            JC.PENDING.value, JC.IN_PROGRESS.value, action="start",
            label="Job started",
            guards=(PRODUCTION_ROLE, BOM_READY),
            timestamp_field="started_at",
        ),
        Transition(
            JC.IN_PROGRESS.value, JC.ON_HOLD.value, action="hold",
            label="Job on hold",
            guards=(PRODUCTION_ROLE, HOLD_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="held_at",
        ),
        Transition(
            JC.ON_HOLD.value, JC.IN_PROGRESS.value, action="resume",
            label="Job resumed",
            guards=(PRODUCTION_ROLE,),
            clears=("hold_reason",),
            timestamp_field="resumed_at",
        ),
        Transition(
            JC.IN_PROGRESS.value, JC.COMPLETE.value, action="complete",
            label="Job complete",
            guards=(PRODUCTION_ROLE,),
            variant=AuditVariant.SUCCESS,
            timestamp_field="completed_at",
        ),
        *edges(
            (JC.PENDING.value, JC.IN_PROGRESS.value, JC.ON_HOLD.value),
            JC.CANCELLED.value, "cancel",
            "Job cancelled",
            guards=(PRODUCTION_ROLE, CANCEL_REASON),
            variant=AuditVariant.WARNING,
            timestamp_field="cancelled_at",
        ),
    ),
)

logger.info(
    "job_card_workflow_registered",
    extra={
        "workflow_name": JOB_CARD_WORKFLOW.name,
        "state_count": len(JOB_CARD_WORKFLOW.states),
        "transition_count": len(JOB_CARD_WORKFLOW.transitions),
        "initial_state": JOB_CARD_WORKFLOW.initial_state,
    },
)
