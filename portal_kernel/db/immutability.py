"""
ORM-level immutability enforcement for the audit trail.

===============================================================================
WHY THIS EXISTS
===============================================================================

A document's timeline is evidence of who did what and when.  Entries are
appended once and never edited or removed, even by an administrator.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
The listeners below intercept them for audit rows:

    session.flush()
         |
         v
    [before_update event] --> _check_audit_entry_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_audit_entry_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush aborts and the database is never modified.
Bulk ``update()``/``delete()`` statements bypass mapper events; the audit
trail recorder never issues them.

===============================================================================
"""

from sqlalchemy import event

from portal_kernel.exceptions import ImmutabilityViolationError
from portal_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_audit_entry_update(mapper, connection, target):
    """Prevent any updates to AuditEntry rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEntry",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEntry",
        entity_id=str(target.id),
        reason="Audit entries are append-only and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    """Prevent deletion of AuditEntry rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditEntry",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEntry",
        entity_id=str(target.id),
        reason="Audit entries cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the append-only listeners.

    Call during application start-up, after models are imported and before
    any database work.  Safe to call more than once.
    """
    from portal_kernel.models.audit_entry import AuditEntryModel

    if not event.contains(AuditEntryModel, "before_update", _check_audit_entry_update):
        event.listen(AuditEntryModel, "before_update", _check_audit_entry_update)
    if not event.contains(AuditEntryModel, "before_delete", _check_audit_entry_delete):
        event.listen(AuditEntryModel, "before_delete", _check_audit_entry_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that need to violate immutability on
    purpose.
    """
    from portal_kernel.models.audit_entry import AuditEntryModel

    _safe_remove_listener(AuditEntryModel, "before_update", _check_audit_entry_update)
    _safe_remove_listener(AuditEntryModel, "before_delete", _check_audit_entry_delete)
