"""
Workflow registry assembly.

``default_registry()`` returns a registry holding every document kind's
workflow.  Services take the registry as a constructor argument so tests
and embedders can supply their own.
"""

from portal_kernel.domain.workflow import Workflow, WorkflowRegistry
from portal_kernel.logging_config import get_logger
from portal_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)
from portal_modules.production.workflows import JOB_CARD_WORKFLOW
from portal_modules.returns.workflows import RETURN_AUTHORIZATION_WORKFLOW
from portal_modules.sales.workflows import SALES_ORDER_WORKFLOW

logger = get_logger("modules.registry")

ALL_WORKFLOWS: tuple[Workflow, ...] = (
    SALES_ORDER_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    JOB_CARD_WORKFLOW,
    RETURN_AUTHORIZATION_WORKFLOW,
    REQUISITION_WORKFLOW,
)


def default_registry() -> WorkflowRegistry:
    registry = WorkflowRegistry(ALL_WORKFLOWS)
    logger.debug(
        "workflow_registry_built",
        extra={"kinds": [kind.value for kind in registry.kinds]},
    )
    return registry
