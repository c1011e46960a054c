"""
ORM-Level Immutability Enforcement for stored payslips.

===============================================================================
WHY THIS EXISTS
===============================================================================

A payslip is the record an employee is paid from.  Once stored it must never
change silently: corrections are appended as edit-history rows, and the
current payslip is rebuilt by replaying those rows over the stored original.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept them:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity           | When Immutable          | Why
-----------------|-------------------------|-----------------------------------
PayslipModel     | ALWAYS (after insert)   | Edits are appended, never applied
PayslipEditModel | ALWAYS (after insert)   | Edit history is the audit trail

``updated_at`` is audit metadata and may change; every other column may not.

===============================================================================
USAGE
===============================================================================

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from payroll_kernel.exceptions import ImmutabilityViolationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at"})


def _changed_fields(target) -> list[str]:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if attr.key in _AUDIT_METADATA_FIELDS:
            continue
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_payslip_immutability(mapper, connection, target):
    """Stored payslips cannot be updated; corrections go through edit rows."""
    changed = _changed_fields(target)
    if changed:
        _block(
            "Payslip",
            target,
            "UPDATE",
            f"Stored payslips are immutable (attempted change: {', '.join(changed)})",
        )


def _check_payslip_delete(mapper, connection, target):
    _block("Payslip", target, "DELETE", "Stored payslips cannot be deleted")


def _check_payslip_edit_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "PayslipEdit",
            target,
            "UPDATE",
            "Edit history is insert-only",
        )


def _check_payslip_edit_delete(mapper, connection, target):
    _block("PayslipEdit", target, "DELETE", "Edit history cannot be deleted")


def _listeners():
    from payroll_module.orm import PayslipEditModel, PayslipModel

    return (
        (PayslipModel, "before_update", _check_payslip_immutability),
        (PayslipModel, "before_delete", _check_payslip_delete),
        (PayslipEditModel, "before_update", _check_payslip_edit_immutability),
        (PayslipEditModel, "before_delete", _check_payslip_edit_delete),
    )


def register_immutability_listeners():
    """
    Register the append-only listeners.

    Call after the payroll ORM models are importable and before any
    database operations begin.  Calling twice is harmless.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
