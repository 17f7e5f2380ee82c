"""
Returns Domain Models.

Return authorization statuses.  Each line's ``quantity_ordered`` is the
quantity requested for return; receiving records ``quantity_received``
and ``quantity_damaged`` against it.
"""

from enum import Enum


class ReturnAuthorizationStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    ITEMS_RECEIVED = "items_received"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
