"""
PayoutOrchestrator -- transaction boundary for every payout kernel operation.

Responsibility:
    The single entry point a transport layer (HTTP route, admin CLI, job)
    calls.  Wires the services around one session and, for every public
    operation:

      1. Binds correlation/actor/vendor/payout ids into LogContext
      2. Logs ``<operation>_started``
      3. Bounds lock waits (``SET LOCAL lock_timeout`` on PostgreSQL)
      4. Runs the unit of work (state machine, ledger, store)
      5. Commits (auto_commit=True) or rolls back on any exception
      6. Translates lock timeouts, deadlocks and uniqueness races into
         ConflictError; raw database errors never reach callers
      7. Logs ``<operation>_completed`` / failure with duration_ms
      8. After commit, dispatches buffered notifications fire-and-forget

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    Sits above PayoutStateMachine, WalletLedger, PaymentMethodService and
    ConfigurationService.

Invariants enforced:
    - Transaction boundaries: commit on success, rollback on failure
      (auto_commit=True).  With auto_commit=False the caller commits and
      then calls ``flush_notifications()``.
    - Notifications are dispatched only after a successful commit; a failed
      operation discards its events.
    - InvariantViolationError is logged at CRITICAL with ``alert=True``;
      business rejections at WARNING.

Failure modes:
    - Re-raises every PayoutKernelError unchanged after rollback.
    - ConflictError (retryable) for lock timeouts, deadlocks,
      serialization failures, SQLite "database is locked" and
      IntegrityError races.
    - Any other exception is re-raised after rollback.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from payout_kernel.db.engine import apply_lock_timeout
from payout_kernel.domain.clock import Clock, SystemClock
from payout_kernel.domain.dtos import (
    PaymentMethodRecord,
    PayoutRecord,
    WalletTransactionRecord,
)
from payout_kernel.domain.ledger import TransactionCategory
from payout_kernel.domain.money import parse_amount
from payout_kernel.domain.payment_methods import BankAccountDetails, UpiDetails, VerificationStatus
from payout_kernel.domain.payout import Actor
from payout_kernel.domain.policy import PayoutPolicy
from payout_kernel.exceptions import (
    ConflictError,
    InvariantViolationError,
    PayoutKernelError,
)
from payout_kernel.logging_config import LogContext, get_logger
from payout_kernel.services.audit_log import AuditLog
from payout_kernel.services.configuration import (
    ConfigurationProvider,
    ConfigurationService,
    DatabaseConfigurationProvider,
)
from payout_kernel.services.limit_checker import LimitChecker
from payout_kernel.services.notifications import (
    LoggingNotificationEmitter,
    NotificationBuffer,
    NotificationEmitter,
    dispatch_safely,
)
from payout_kernel.services.payment_methods import PaymentMethodService
from payout_kernel.services.payout_state_machine import PayoutStateMachine
from payout_kernel.services.wallet_ledger import WalletLedger
from payout_kernel.utils.crypto import SensitiveDataCipher

logger = get_logger("services.orchestrator")

T = TypeVar("T")

# lock_not_available, deadlock_detected, serialization_failure, query_canceled
_CONFLICT_PGCODES = frozenset({"55P03", "40P01", "40001", "57014"})


def translate_database_error(operation: str, exc: Exception) -> Exception:
    """Map retryable database failures to ConflictError; others pass through."""
    if isinstance(exc, PayoutKernelError):
        return exc
    if isinstance(exc, IntegrityError):
        return ConflictError(operation, "a concurrent request changed the same records")
    if isinstance(exc, DBAPIError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _CONFLICT_PGCODES:
            return ConflictError(operation, f"lock wait aborted ({pgcode})")
        if "database is locked" in str(exc.orig).lower():
            return ConflictError(operation, "database is locked")
    return exc


class PayoutOrchestrator:
    """
    Contract:
        One orchestrator per session.  Every public method is one atomic
        unit of work: either all of its rows commit or none do.

    Guarantees:
        - Callers see typed PayoutKernelError subclasses only, never raw
          database errors for lock or uniqueness conflicts.
        - A notification emitter failure never fails the operation.

    Non-goals:
        - Does NOT authenticate actors; the caller supplies a trusted Actor.
        - Does NOT retry ConflictError; the caller decides.

    Usage:
        with get_session() as session:
            orchestrator = PayoutOrchestrator(session, emitter=emitter)
            payout = orchestrator.request_payout(vendor_id, "2500.00", method_id)
    """

    def __init__(
        self,
        session: Session,
        config_provider: ConfigurationProvider | None = None,
        *,
        clock: Clock | None = None,
        emitter: NotificationEmitter | None = None,
        cipher: SensitiveDataCipher | None = None,
        auto_commit: bool = True,
        lock_timeout_ms: int | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.config_provider = config_provider or DatabaseConfigurationProvider(session)
        self.emitter = emitter or LoggingNotificationEmitter()
        self.notifications = NotificationBuffer()
        self._auto_commit = auto_commit
        self._lock_timeout_ms = lock_timeout_ms

        self.audit_log = AuditLog(session, self.clock)
        self.wallet = WalletLedger(session, self.clock)
        self.limits = LimitChecker(session, self.clock)
        self.payment_methods = PaymentMethodService(
            session, self.audit_log, self.clock, cipher=cipher, notifications=self.notifications,
        )
        self.configuration = ConfigurationService(session, self.clock)
        self.state_machine = PayoutStateMachine(
            session,
            self.config_provider,
            self.clock,
            notifications=self.notifications,
            wallet=self.wallet,
            limits=self.limits,
            audit_log=self.audit_log,
            payment_methods=self.payment_methods,
        )

    # =========================================================================
    # Payout lifecycle
    # =========================================================================

    def request_payout(
        self,
        vendor_id: UUID,
        amount: Decimal | int | str,
        payment_method_id: UUID,
        notes: str | None = None,
        actor: Actor | None = None,
    ) -> PayoutRecord:
        actor = actor or Actor.vendor(vendor_id)
        return self._run(
            "payout_request",
            actor,
            lambda: self.state_machine.request_payout(
                vendor_id, amount, payment_method_id, notes=notes, actor=actor,
            ),
            vendor_id=vendor_id,
            amount=str(amount),
        )

    def approve(
        self,
        payout_id: UUID,
        approved_amount: Decimal | int | str | None = None,
        admin_notes: str | None = None,
        *,
        actor: Actor,
    ) -> PayoutRecord:
        return self._run(
            "payout_approve",
            actor,
            lambda: self.state_machine.approve(
                payout_id, approved_amount, admin_notes, actor=actor,
            ),
            payout_id=payout_id,
        )

    def reject(self, payout_id: UUID, reason: str | None, *, actor: Actor) -> PayoutRecord:
        return self._run(
            "payout_reject",
            actor,
            lambda: self.state_machine.reject(payout_id, reason, actor=actor),
            payout_id=payout_id,
        )

    def mark_processing(
        self, payout_id: UUID, admin_notes: str | None = None, *, actor: Actor,
    ) -> PayoutRecord:
        return self._run(
            "payout_mark_processing",
            actor,
            lambda: self.state_machine.mark_processing(payout_id, admin_notes, actor=actor),
            payout_id=payout_id,
        )

    def mark_paid(
        self,
        payout_id: UUID,
        transaction_id: str | None,
        reference_number: str | None = None,
        admin_notes: str | None = None,
        *,
        actor: Actor,
    ) -> PayoutRecord:
        return self._run(
            "payout_mark_paid",
            actor,
            lambda: self.state_machine.mark_paid(
                payout_id, transaction_id, reference_number, admin_notes, actor=actor,
            ),
            payout_id=payout_id,
        )

    # =========================================================================
    # Wallet
    # =========================================================================

    def credit_earnings(
        self,
        vendor_id: UUID,
        amount: Decimal | int | str,
        category: TransactionCategory = TransactionCategory.ORDER_SETTLEMENT,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        actor = actor or Actor.system()
        return self._run(
            "wallet_credit",
            actor,
            lambda: self.wallet.credit(
                vendor_id,
                parse_amount(amount),
                category=category,
                reference_type=reference_type,
                reference_id=reference_id,
                description=description,
                actor=actor,
            ),
            vendor_id=vendor_id,
            amount=str(amount),
        )

    def debit_wallet(
        self,
        vendor_id: UUID,
        amount: Decimal | int | str,
        category: TransactionCategory = TransactionCategory.COMMISSION,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        actor = actor or Actor.system()
        return self._run(
            "wallet_debit",
            actor,
            lambda: self.wallet.debit(
                vendor_id,
                parse_amount(amount),
                category=category,
                reference_type=reference_type,
                reference_id=reference_id,
                description=description,
                actor=actor,
            ),
            vendor_id=vendor_id,
            amount=str(amount),
        )

    # =========================================================================
    # Payment methods
    # =========================================================================

    def add_payment_method(
        self,
        vendor_id: UUID,
        details: BankAccountDetails | UpiDetails,
        is_default: bool = False,
        actor: Actor | None = None,
    ) -> PaymentMethodRecord:
        actor = actor or Actor.vendor(vendor_id)
        return self._run(
            "payment_method_add",
            actor,
            lambda: self.payment_methods.add_payment_method(
                vendor_id, details, is_default=is_default, actor=actor,
            ),
            vendor_id=vendor_id,
        )

    def verify_payment_method(
        self,
        payment_method_id: UUID,
        status: VerificationStatus,
        notes: str | None = None,
        *,
        actor: Actor,
    ) -> PaymentMethodRecord:
        return self._run(
            "payment_method_verify",
            actor,
            lambda: self.payment_methods.verify_payment_method(
                payment_method_id, status, actor, notes=notes,
            ),
            payment_method_id=str(payment_method_id),
        )

    def set_default_payment_method(
        self, payment_method_id: UUID, vendor_id: UUID, actor: Actor | None = None,
    ) -> PaymentMethodRecord:
        actor = actor or Actor.vendor(vendor_id)
        return self._run(
            "payment_method_set_default",
            actor,
            lambda: self.payment_methods.set_default(payment_method_id, vendor_id, actor),
            vendor_id=vendor_id,
        )

    def deactivate_payment_method(
        self, payment_method_id: UUID, vendor_id: UUID, actor: Actor | None = None,
    ) -> PaymentMethodRecord:
        actor = actor or Actor.vendor(vendor_id)
        return self._run(
            "payment_method_deactivate",
            actor,
            lambda: self.payment_methods.deactivate(payment_method_id, vendor_id, actor),
            vendor_id=vendor_id,
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    def activate_configuration(self, policy: PayoutPolicy, *, actor: Actor) -> PayoutPolicy:
        return self._run(
            "configuration_activate",
            actor,
            lambda: self.configuration.activate(policy, actor.actor_id),
        )

    def seed_default_configuration(
        self, policy: PayoutPolicy, actor: Actor | None = None,
    ) -> PayoutPolicy:
        actor = actor or Actor.system()
        return self._run(
            "configuration_seed",
            actor,
            lambda: self.configuration.seed_default(policy, actor.actor_id),
        )

    # =========================================================================
    # Notifications
    # =========================================================================

    def flush_notifications(self) -> int:
        """Dispatch buffered events.  Call only after the transaction committed."""
        events = self.notifications.drain()
        if not events:
            return 0
        delivered = dispatch_safely(self.emitter, events)
        logger.debug(
            "notifications_dispatched",
            extra={"buffered": len(events), "delivered": delivered},
        )
        return delivered

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _run(
        self,
        operation: str,
        actor: Actor,
        work: Callable[[], T],
        vendor_id: UUID | None = None,
        payout_id: UUID | None = None,
        **log_fields: Any,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor.actor_id,
            actor_type=actor.actor_type.value,
            vendor_id=vendor_id,
            payout_id=payout_id,
        ):
            logger.info(f"{operation}_started", extra=log_fields)
            t0 = time.monotonic()

            try:
                apply_lock_timeout(self.session, self._lock_timeout_ms)
                result = work()
                if self._auto_commit:
                    self.session.commit()
            except Exception as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self.session.rollback()
                    self.notifications.clear()
                translated = translate_database_error(operation, exc)
                self._log_failure(operation, translated, duration_ms)
                if translated is exc:
                    raise
                raise translated from exc

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})

            if self._auto_commit:
                self.flush_notifications()
        return result

    @staticmethod
    def _log_failure(operation: str, exc: Exception, duration_ms: float) -> None:
        if isinstance(exc, InvariantViolationError):
            logger.critical(
                f"{operation}_failed",
                extra={
                    "alert": True,
                    "invariant": exc.invariant,
                    "error_code": exc.code,
                    "duration_ms": duration_ms,
                },
                exc_info=exc,
            )
        elif isinstance(exc, ConflictError):
            logger.warning(
                f"{operation}_conflict",
                extra={"reason": exc.reason, "error_code": exc.code, "duration_ms": duration_ms},
            )
        elif isinstance(exc, PayoutKernelError):
            logger.warning(
                "operation_rejected",
                extra={
                    "operation": operation,
                    "error_code": exc.code,
                    "error": str(exc),
                    "duration_ms": duration_ms,
                },
            )
        else:
            logger.error(
                f"{operation}_failed",
                extra={"duration_ms": duration_ms},
                exc_info=exc,
            )
