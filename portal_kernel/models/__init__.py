"""ORM models for the portal kernel."""

from portal_kernel.models.audit_entry import AuditEntryModel
from portal_kernel.models.counter import DocumentCounterModel
from portal_kernel.models.document import DocumentLineModel, DocumentModel

__all__ = [
    "AuditEntryModel",
    "DocumentCounterModel",
    "DocumentLineModel",
    "DocumentModel",
]
