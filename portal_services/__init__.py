"""
portal_services -- Orchestration over the workflow core.

``DocumentWorkflowService`` is the public API.  ``WorkflowExecutor`` and
``BatchGenerator`` are usable directly when the caller manages its own
sessions.
"""

from portal_services.batch_generator import (
    BatchGenerator,
    BatchResult,
    GeneratedPurchaseOrder,
)
from portal_services.document_service import DocumentWorkflowService
from portal_services.workflow_executor import WorkflowExecutor

__all__ = [
    "BatchGenerator",
    "BatchResult",
    "DocumentWorkflowService",
    "GeneratedPurchaseOrder",
    "WorkflowExecutor",
]
