"""Services for the portal kernel (write side)."""

from portal_kernel.services.audit_trail import AuditTrailRecorder
from portal_kernel.services.concurrency import ConcurrencyController
from portal_kernel.services.document_store import SqlDocumentStore
from portal_kernel.services.number_service import DocumentNumberService

__all__ = [
    "AuditTrailRecorder",
    "ConcurrencyController",
    "DocumentNumberService",
    "SqlDocumentStore",
]
