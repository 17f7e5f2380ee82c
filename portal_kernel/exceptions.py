"""
Typed Exception Hierarchy for the Portal Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The portal surfaces workflow failures to several callers (HTTP handlers,
batch jobs, background notifiers). Each one needs to tell "you may not do
that" apart from "someone else changed this document" without parsing
message strings.

Every error:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (document id, status, action, versions)

Example - WRONG way to handle errors:
    try:
        service.request_transition(doc_id, "approve", {}, 3, actor)
    except Exception as e:
        if "modified" in str(e):  # FRAGILE - message might change
            reload_and_retry()

Example - RIGHT way:
    try:
        service.request_transition(doc_id, "approve", {}, 3, actor)
    except VersionConflictError as e:
        show_reload_prompt(current_version=e.actual_version)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PortalKernelError:

    PortalKernelError (base)
    |
    +-- ValidationError
    |   +-- BomShortageError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- ForbiddenError
    |
    +-- ConcurrencyError
    |   +-- VersionConflictError
    |
    +-- DocumentNotFoundError
    |
    +-- BatchError
    |   +-- PartialBatchFailureError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Missing reason, bad quantities, bad BOM
                | BOM_SHORTAGE                | Job card start while components short
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | (status, action) not in the registry
                | FORBIDDEN                   | Role not allowed, or self-approval
----------------|-----------------------------|-----------------------------------------
Concurrency     | VERSION_CONFLICT            | Expected version != stored version
----------------|-----------------------------|-----------------------------------------
Lookup          | DOCUMENT_NOT_FOUND          | Document id does not exist
----------------|-----------------------------|-----------------------------------------
Batch           | PARTIAL_BATCH_FAILURE       | A supplier group failed mid-batch
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Updating or deleting an audit entry

===============================================================================
HANDLING PATTERNS
===============================================================================

1. VERSION CONFLICTS ARE NEVER RETRIED BY THE KERNEL:

    except VersionConflictError as e:
        # Reload the document, show the user the new state, let them decide
        return {"error": e.code, "current_version": e.actual_version}

2. PARTIAL BATCHES KEEP WHAT WAS CREATED:

    result = generator.generate_draft_pos(selected, actor)
    if result.error is not None:
        notify(created=result.created, failed_supplier=result.error.supplier_id)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain exceptions should be catchable as a group. Inheriting from
   built-in types mixes domain errors with programming errors.

2. WHY code CLASS ATTRIBUTE (not instance)?
   Codes are static per exception type, so ForbiddenError.code is usable
   without instantiation (API error tables, tests).

3. WHY SEPARATE ERROR CATEGORIES?
   Callers map categories to responses:
   - WorkflowError -> 403 / 422
   - ConcurrencyError -> 409, reload prompt
   - ImmutabilityError -> security alert

===============================================================================
"""

from __future__ import annotations

from typing import Any


class PortalKernelError(Exception):
    """
    Base exception for all portal kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "PORTAL_KERNEL_ERROR"


# Validation


class ValidationError(PortalKernelError):
    """A request payload or document field failed validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class BomShortageError(ValidationError):
    """A job card cannot start while required components are short."""

    code: str = "BOM_SHORTAGE"

    def __init__(self, document_id: Any, short_products: list[Any]):
        self.document_id = document_id
        self.short_products = list(short_products)
        super().__init__(
            "bom",
            f"{len(self.short_products)} required component(s) short for "
            f"job card {document_id}",
        )


# Workflow


class WorkflowError(PortalKernelError):
    """Base exception for workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """The requested action is not defined for the document's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, kind: str, status: str, action: str):
        self.kind = kind
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} a {kind} in status {status}"
        )


class ForbiddenError(WorkflowError):
    """The actor is not permitted to perform the action."""

    code: str = "FORBIDDEN"

    def __init__(self, action: str, role: str, reason: str):
        self.action = action
        self.role = role
        self.reason = reason
        super().__init__(f"Forbidden: {action} by {role}: {reason}")


# Concurrency


class ConcurrencyError(PortalKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class VersionConflictError(ConcurrencyError):
    """The document was modified since the caller last read it."""

    code: str = "VERSION_CONFLICT"

    def __init__(
        self,
        document_id: Any,
        expected_version: int,
        actual_version: int | None,
    ):
        self.document_id = document_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on document {document_id}: expected "
            f"{expected_version}, found {actual_version}"
        )


class NumberAllocationError(ConcurrencyError):
    """A document number could not be allocated for a prefix."""

    code: str = "NUMBER_ALLOCATION_FAILED"

    def __init__(self, prefix: str, reason: str):
        self.prefix = prefix
        self.reason = reason
        super().__init__(f"Cannot allocate a {prefix} number: {reason}")


# Lookup


class DocumentNotFoundError(PortalKernelError):
    """Document with the given id was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: Any):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


# Batch


class BatchError(PortalKernelError):
    """Base exception for batch generation errors."""

    code: str = "BATCH_ERROR"


class PartialBatchFailureError(BatchError):
    """
    A supplier group failed after earlier groups were committed.

    The created list is authoritative: those purchase orders exist and
    are not rolled back.
    """

    code: str = "PARTIAL_BATCH_FAILURE"

    def __init__(
        self,
        created: list[Any],
        supplier_id: Any,
        cause: BaseException,
    ):
        self.created = list(created)
        self.supplier_id = supplier_id
        self.cause = cause
        super().__init__(
            f"Batch stopped at supplier {supplier_id} after creating "
            f"{len(self.created)} purchase order(s): {cause}"
        )


# Immutability


class ImmutabilityError(PortalKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
