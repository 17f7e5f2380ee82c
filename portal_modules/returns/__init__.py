"""
Returns Module (``portal_modules.returns``).

Return authorizations: requested by a customer or staff, approved by a
manager who did not raise them, received at the warehouse, completed.
"""

from portal_modules.returns.models import ReturnAuthorizationStatus
from portal_modules.returns.workflows import RETURN_AUTHORIZATION_WORKFLOW

__all__ = [
    "RETURN_AUTHORIZATION_WORKFLOW",
    "ReturnAuthorizationStatus",
]
