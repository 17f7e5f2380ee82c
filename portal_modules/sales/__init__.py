"""
Sales Module (``portal_modules.sales``).

Sales order lifecycle: confirmation, processing, shipping (partial or
full), delivery, invoicing and close, with hold/release and cancel.
"""

from portal_modules.sales.models import SalesOrderStatus
from portal_modules.sales.workflows import SALES_ORDER_WORKFLOW

__all__ = [
    "SALES_ORDER_WORKFLOW",
    "SalesOrderStatus",
]
