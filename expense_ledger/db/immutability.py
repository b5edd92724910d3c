"""
ORM-level enforcement of cost record lifecycle rules.

===============================================================================
WHY THIS EXISTS
===============================================================================

The application and settlement services are the only sanctioned writers of
lifecycle fields, but any code holding a session can assign attributes on a
CostRecord.  These listeners fire BEFORE the SQL is sent, so an illegal edit
aborts the flush and the surrounding transaction rolls back:

    session.flush()
         |
         v
    [before_insert] --> _check_cost_insert()  -------------+
    [before_update] --> _check_cost_update()  -------------+--> ImmutabilityViolationError
    [before_delete] --> _check_cost_delete()  -------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
RULES
===============================================================================

Rule                               | Applies when
-----------------------------------|------------------------------------------
type / counterparty never change   | always
status moves only along legal edges| status changes
financial fields frozen            | persisted status is applied or settled
lifecycle fields move with status  | status does not change
application/settlement fields set  | after every insert and update
  iff the status requires them     |
delete only while unapplied        | delete

``remarks`` is free text and may change in any status.

===============================================================================
USAGE
===============================================================================

    from expense_ledger.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

To temporarily disable (TESTS ONLY, e.g. to plant corrupt rows for the
integrity check):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from expense_ledger.domain.lifecycle import CostStatus, is_legal_edge
from expense_ledger.exceptions import ImmutabilityViolationError
from expense_ledger.logging_config import get_logger

logger = get_logger("db.immutability")

_APPLICATION_FIELDS = ("application_number", "application_date", "due_date")


def _violation(target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "CostRecord",
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type="CostRecord",
        entity_id=str(target.id),
        reason=reason,
    )


def _persisted_status(target) -> str:
    """Status as last loaded from the database, before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    return target.status


def _check_field_invariants(target, operation: str) -> None:
    """Application/settlement fields are present exactly when status needs them."""
    try:
        status = CostStatus(target.status or CostStatus.UNAPPLIED.value)
    except ValueError:
        raise _violation(
            target, operation, f"unknown status '{target.status}'", "status"
        ) from None

    needs_application = status in (CostStatus.APPLIED, CostStatus.SETTLED)
    for name in _APPLICATION_FIELDS:
        if (getattr(target, name) is not None) != needs_application:
            state = "required" if needs_application else "not allowed"
            raise _violation(
                target,
                operation,
                f"'{name}' is {state} in status '{status.value}'",
                name,
            )

    needs_settlement = status is CostStatus.SETTLED
    if (target.settlement_date is not None) != needs_settlement:
        state = "required" if needs_settlement else "not allowed"
        raise _violation(
            target,
            operation,
            f"'settlement_date' is {state} in status '{status.value}'",
            "settlement_date",
        )


def _check_cost_insert(mapper, connection, target):
    """New cost lines start unapplied with no lifecycle fields."""
    from expense_ledger.models.cost_record import CostRecord

    if not isinstance(target, CostRecord):
        return
    if target.status not in (None, CostStatus.UNAPPLIED.value):
        raise _violation(
            target, "INSERT", "cost records must be created unapplied", "status"
        )
    _check_field_invariants(target, "INSERT")


def _check_cost_update(mapper, connection, target):
    """Enforce the update rules table above."""
    from expense_ledger.models.cost_record import (
        ALWAYS_MUTABLE_FIELDS,
        IMMUTABLE_FIELDS,
        LIFECYCLE_FIELDS,
        CostRecord,
    )

    if not isinstance(target, CostRecord):
        return

    changed = {
        attr.key
        for attr in inspect(target).attrs
        if attr.history.has_changes()
    }
    if not changed:
        return

    locked = sorted(changed & IMMUTABLE_FIELDS)
    if locked:
        raise _violation(
            target, "UPDATE", f"'{locked[0]}' cannot be modified", locked[0]
        )

    old_status = _persisted_status(target)
    status_changed = "status" in changed

    if status_changed and not is_legal_edge(old_status, target.status):
        raise _violation(
            target,
            "UPDATE",
            f"illegal status change {old_status} -> {target.status}",
            "status",
        )

    lifecycle = sorted(changed & LIFECYCLE_FIELDS)
    if lifecycle and not status_changed:
        raise _violation(
            target,
            "UPDATE",
            f"'{lifecycle[0]}' only changes with a status transition",
            lifecycle[0],
        )

    if old_status != CostStatus.UNAPPLIED.value:
        frozen = sorted(changed - LIFECYCLE_FIELDS - ALWAYS_MUTABLE_FIELDS)
        if frozen:
            raise _violation(
                target,
                "UPDATE",
                f"'{frozen[0]}' cannot be modified once the cost is {old_status}",
                frozen[0],
            )

    _check_field_invariants(target, "UPDATE")


def _check_cost_delete(mapper, connection, target):
    """Applied or settled cost lines are never physically deleted."""
    from expense_ledger.models.cost_record import CostRecord

    if not isinstance(target, CostRecord):
        return
    status = _persisted_status(target)
    if status != CostStatus.UNAPPLIED.value:
        raise _violation(
            target, "DELETE", f"cannot delete a cost that is {status}", "status"
        )


def _listeners():
    from expense_ledger.models.cost_record import CostRecord

    return (
        (CostRecord, "before_insert", _check_cost_insert),
        (CostRecord, "before_update", _check_cost_update),
        (CostRecord, "before_delete", _check_cost_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register the cost record listeners.

    Safe to call more than once; a listener already attached is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the cost record listeners.

    WARNING: Only use this in tests that need to write rows the lifecycle
    forbids.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
