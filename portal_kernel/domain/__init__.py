"""
Pure domain layer.

Immutable value objects for documents, workflows, and collaborator
protocols.  No ORM, no database, no wall-clock access.
"""

from portal_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from portal_kernel.domain.documents import (
    Actor,
    AuditEntry,
    AuditVariant,
    Document,
    DocumentKind,
    LineItem,
    Role,
    TransitionResult,
)
from portal_kernel.domain.workflow import (
    Guard,
    GuardKind,
    LineEffect,
    Transition,
    Workflow,
    WorkflowRegistry,
)

__all__ = [
    "Actor",
    "AuditEntry",
    "AuditVariant",
    "Clock",
    "DeterministicClock",
    "Document",
    "DocumentKind",
    "Guard",
    "GuardKind",
    "LineEffect",
    "LineItem",
    "Role",
    "SystemClock",
    "Transition",
    "TransitionResult",
    "Workflow",
    "WorkflowRegistry",
]
