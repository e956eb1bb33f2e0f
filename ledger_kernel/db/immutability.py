"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  Listeners registered here inspect attribute history and raise
ImmutabilityViolationError, which aborts the flush and, through the caller's
unit of work, the whole database transaction.

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() ---------/
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                         | Allowed changes
----------------|----------------------------------------|----------------------------
Transaction     | After status = POSTED (or VOID)        | audit metadata only
LedgerEntry     | When parent transaction is POSTED      | reconciled flag, audit metadata
StockMovement   | ALWAYS (from creation)                 | none
Account         | account_type/code once referenced      | name, subtype, parent, is_active

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event, func, inspect, select
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata, not financial data
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_ENTRY_MUTABLE_FIELDS = _AUDIT_FIELDS | {"reconciled"}

ACCOUNT_STRUCTURAL_FIELDS = frozenset({"account_type", "code"})

_FINAL_STATUSES = frozenset({"posted", "void"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def _was_final(target) -> bool:
    """True if the transaction was already POSTED/VOID before this flush.

    A DRAFT -> POSTED or DRAFT -> VOID transition is the posting itself and
    is allowed; anything after it is not.
    """
    history = get_history(target, "status")
    if history.deleted:
        return _status_value(history.deleted[0]) in _FINAL_STATUSES
    if not history.added:
        return _status_value(target.status) in _FINAL_STATUSES
    return False


def _check_transaction_immutability(mapper, connection, target):
    """Prevent updates to posted or voided Transaction rows."""
    if not _was_final(target):
        return

    state = inspect(target)
    for key in state.mapper.column_attrs.keys():
        if key in _AUDIT_FIELDS:
            continue
        if state.attrs[key].history.has_changes():
            _blocked(
                "Transaction",
                target.id,
                "UPDATE",
                f"Cannot modify field '{key}' on posted transaction",
                field=key,
            )


def _check_transaction_delete(mapper, connection, target):
    """Prevent deletion of posted or voided Transaction rows."""
    if _status_value(target.status) in _FINAL_STATUSES:
        _blocked(
            "Transaction",
            target.id,
            "DELETE",
            "Posted transactions cannot be deleted; post a reversal instead",
        )


def _parent_is_posted(target) -> bool:
    parent = target.transaction
    return parent is not None and _status_value(parent.status) == "posted"


def _check_entry_immutability(mapper, connection, target):
    """Prevent updates to LedgerEntry rows of a posted transaction."""
    if not _parent_is_posted(target):
        return

    state = inspect(target)
    for key in state.mapper.column_attrs.keys():
        if key in _ENTRY_MUTABLE_FIELDS:
            continue
        if state.attrs[key].history.has_changes():
            _blocked(
                "LedgerEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{key}' after the transaction is posted",
                field=key,
            )


def _check_entry_delete(mapper, connection, target):
    """Prevent deletion of LedgerEntry rows of a posted transaction."""
    if _parent_is_posted(target):
        _blocked(
            "LedgerEntry",
            target.id,
            "DELETE",
            "Ledger entries cannot be deleted after the transaction is posted",
        )


def _check_stock_movement_immutability(mapper, connection, target):
    """Stock movements are append-only."""
    state = inspect(target)
    for key in state.mapper.column_attrs.keys():
        if key in _AUDIT_FIELDS:
            continue
        if state.attrs[key].history.has_changes():
            _blocked(
                "StockMovement",
                target.id,
                "UPDATE",
                "Stock movements are immutable; record an opposite movement instead",
                field=key,
            )


def _check_stock_movement_delete(mapper, connection, target):
    _blocked(
        "StockMovement",
        target.id,
        "DELETE",
        "Stock movements cannot be deleted",
    )


def _account_has_entries(connection, account_id) -> bool:
    """Check whether any ledger entry references the account."""
    from ledger_kernel.models.transaction import LedgerEntry

    count = connection.execute(
        select(func.count())
        .select_from(LedgerEntry.__table__)
        .where(LedgerEntry.__table__.c.account_id == str(account_id))
    ).scalar_one()
    return count > 0


def _check_account_structural_immutability(mapper, connection, target):
    """
    Prevent changes to account_type/code on accounts referenced by entries.

    Non-structural fields (name, subtype, parent, is_active) stay editable.
    """
    changed = sorted(
        field
        for field in ACCOUNT_STRUCTURAL_FIELDS
        if get_history(target, field).has_changes()
    )
    if not changed:
        return

    if _account_has_entries(connection, target.id):
        _blocked(
            "Account",
            target.id,
            "UPDATE",
            f"Cannot modify structural field(s) {changed} on an account "
            "referenced by ledger entries",
            fields=changed,
        )


def _check_account_delete(mapper, connection, target):
    """Referenced accounts are deactivated, never deleted."""
    if _account_has_entries(connection, target.id):
        _blocked(
            "Account",
            target.id,
            "DELETE",
            "Accounts referenced by ledger entries cannot be deleted; deactivate instead",
        )


def _listeners():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.inventory import StockMovement
    from ledger_kernel.models.transaction import LedgerEntry, Transaction

    return [
        (Transaction, "before_update", _check_transaction_immutability),
        (Transaction, "before_delete", _check_transaction_delete),
        (LedgerEntry, "before_update", _check_entry_immutability),
        (LedgerEntry, "before_delete", _check_entry_delete),
        (StockMovement, "before_update", _check_stock_movement_immutability),
        (StockMovement, "before_delete", _check_stock_movement_delete),
        (Account, "before_update", _check_account_structural_immutability),
        (Account, "before_delete", _check_account_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call once after the models are imported and before any database work.
    Registering twice is a no-op.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
