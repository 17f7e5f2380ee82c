"""
Procurement Module (``portal_modules.procurement``).

Responsibility
--------------
Purchase orders and purchase requisitions: their statuses, workflow
tables, and the settings used when reorder reports are turned into draft
purchase orders.

Architecture position
---------------------
**Modules layer** -- declarative workflows and config.  Execution lives
in ``portal_services``.
"""

from portal_modules.procurement.config import ProcurementConfig
from portal_modules.procurement.models import PurchaseOrderStatus, RequisitionStatus
from portal_modules.procurement.workflows import (
    ADD_LINE_ACTION,
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)

__all__ = [
    "ADD_LINE_ACTION",
    "PURCHASE_ORDER_WORKFLOW",
    "REQUISITION_WORKFLOW",
    "ProcurementConfig",
    "PurchaseOrderStatus",
    "RequisitionStatus",
]
