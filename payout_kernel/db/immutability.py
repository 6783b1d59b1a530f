"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The wallet transaction log and the audit log are the evidence behind every
balance and every payout decision.  If either could be edited, replaying the
ledger would prove nothing.  Payout requests are financial records: they move
through the state machine but are never deleted, and once terminal (paid,
rejected, failed) they never change again.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database:

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Bulk ``session.execute(update(...))`` / ``delete(...)`` bypasses mapper
events, so a Session ``do_orm_execute`` hook rejects those too.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                 | Why
--------------------|--------------------------------|------------------------------
WalletTransaction   | ALWAYS (from creation)         | Ledger replay source of truth
AuditLogEntry       | ALWAYS (from creation)         | Audit trail
PayoutRequest       | Never deletable; frozen once   | Financial record
                    | status is terminal             |

===============================================================================
USAGE
===============================================================================

    from payout_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session
from sqlalchemy.orm.attributes import get_history

from payout_kernel.exceptions import ImmutabilityViolationError
from payout_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TERMINAL_STATUSES = frozenset({"paid", "rejected", "failed"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_wallet_transaction_update(mapper, connection, target):
    raise _blocked(
        "WalletTransaction", target.id, "UPDATE",
        "Wallet transactions are append-only and cannot be modified",
    )


def _check_wallet_transaction_delete(mapper, connection, target):
    raise _blocked(
        "WalletTransaction", target.id, "DELETE",
        "Wallet transactions cannot be deleted",
    )


def _check_audit_entry_update(mapper, connection, target):
    raise _blocked(
        "AuditLogEntry", target.id, "UPDATE",
        "Audit log entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    raise _blocked(
        "AuditLogEntry", target.id, "DELETE",
        "Audit log entries cannot be deleted",
    )


def _check_payout_request_update(mapper, connection, target):
    """
    Block changes to a payout that was already terminal before this flush.

    The transition INTO a terminal status is allowed (that is the state
    machine doing its job); anything after it is not.
    """
    status_history = get_history(target, "status")
    if status_history.deleted:
        previous = status_history.deleted[0]
    elif status_history.unchanged:
        previous = status_history.unchanged[0]
    else:
        return
    if previous in _TERMINAL_STATUSES:
        raise _blocked(
            "PayoutRequest", target.id, "UPDATE",
            f"Payout is {previous} and can no longer change",
        )


def _check_payout_request_delete(mapper, connection, target):
    raise _blocked(
        "PayoutRequest", target.id, "DELETE",
        "Payout requests are financial records and cannot be deleted",
    )


def _check_bulk_statements(orm_execute_state: ORMExecuteState):
    """Reject bulk UPDATE/DELETE against append-only tables."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return

    from payout_kernel.models.audit_log import AuditLogEntry
    from payout_kernel.models.payout import PayoutRequest
    from payout_kernel.models.wallet import WalletTransaction

    mapper = orm_execute_state.bind_mapper
    if mapper is None:
        return
    entity = mapper.class_
    operation = "UPDATE" if orm_execute_state.is_update else "DELETE"
    if entity in (WalletTransaction, AuditLogEntry):
        raise _blocked(entity.__name__, "*", operation, "Bulk modification of append-only rows")
    if entity is PayoutRequest and orm_execute_state.is_delete:
        raise _blocked("PayoutRequest", "*", operation, "Payout requests cannot be deleted")


def register_immutability_listeners():
    """Register all immutability enforcement event listeners (idempotent)."""
    from payout_kernel.models.audit_log import AuditLogEntry
    from payout_kernel.models.payout import PayoutRequest
    from payout_kernel.models.wallet import WalletTransaction

    for target, name, fn in _listeners(WalletTransaction, AuditLogEntry, PayoutRequest):
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must break the rules on purpose.
    """
    from payout_kernel.models.audit_log import AuditLogEntry
    from payout_kernel.models.payout import PayoutRequest
    from payout_kernel.models.wallet import WalletTransaction

    for target, name, fn in _listeners(WalletTransaction, AuditLogEntry, PayoutRequest):
        if event.contains(target, name, fn):
            event.remove(target, name, fn)


def _listeners(wallet_transaction, audit_entry, payout_request):
    return (
        (wallet_transaction, "before_update", _check_wallet_transaction_update),
        (wallet_transaction, "before_delete", _check_wallet_transaction_delete),
        (audit_entry, "before_update", _check_audit_entry_update),
        (audit_entry, "before_delete", _check_audit_entry_delete),
        (payout_request, "before_update", _check_payout_request_update),
        (payout_request, "before_delete", _check_payout_request_delete),
        (Session, "do_orm_execute", _check_bulk_statements),
    )
