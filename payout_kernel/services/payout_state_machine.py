"""
PayoutStateMachine -- the payout request lifecycle.

Responsibility:
    Owns every change to a ``PayoutRequest``.  Each operation validates its
    input, locks the rows it decides on, moves money through WalletLedger,
    writes one audit entry and buffers notification events, all inside one
    savepoint so a failure at any step leaves nothing behind.

Architecture position:
    Kernel > Services -- imperative shell.  Pure rules come from
    domain/payout.py (transition table), domain/fees.py and
    domain/limits.py; PayoutOrchestrator wraps each call with the
    transaction boundary, logging context and error translation.

Lifecycle::

    request_payout ---> pending --approve--> approved --mark_processing--> processing --mark_paid--> paid
                          |          (or auto-approved)   |
                          +-------------reject------------+-----> rejected

Money movement per operation:
    request_payout   reserve(requested_amount)
    approve          adjust(reserved - approved) when the amount is lowered
    reject           release(reserved_amount)
    mark_processing  none
    mark_paid        commit(reserved_amount, net final_amount)

Invariants enforced:
    - Lock order is payout row, then wallet row.  request_payout locks only
      the wallet row because the payout row does not exist yet.
    - Limits are checked after the wallet row is locked and before funds are
      reserved, so a refused request reserves nothing.
    - Fees are computed on the amount that is reserved; after approval the
      reserved amount always equals processing_fee + tds_amount +
      final_amount.
    - mark_paid is idempotent for an identical transaction_id.

Failure modes:
    - PayoutValidationError / AmountOutOfRangeError / MissingRejectionReasonError
      / MissingTransactionIdError: bad input.
    - UnverifiedPaymentMethodError, InsufficientBalanceError,
      DailyLimitExceededError, MonthlyLimitExceededError,
      ExceedsReservedAmountError: business rules.
    - InvalidTransitionError: action not allowed from the current status.
    - PayoutNotFoundError, PaymentMethodNotFoundError,
      ConfigurationMissingError: missing data.
    - InvariantViolationError: wallet ledger found inconsistent balances.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payout_kernel.domain import notifications as events
from payout_kernel.domain.clock import Clock
from payout_kernel.domain.dtos import PayoutRecord
from payout_kernel.domain.fees import FeeBreakdown, compute_fees
from payout_kernel.domain.money import parse_amount
from payout_kernel.domain.payout import (
    ACTION_AUDIT,
    Actor,
    ActorType,
    AuditAction,
    PayoutAction,
    PayoutStatus,
    resolve_transition,
)
from payout_kernel.exceptions import (
    AmountOutOfRangeError,
    ExceedsReservedAmountError,
    InvalidTransitionError,
    MissingRejectionReasonError,
    MissingTransactionIdError,
    PayoutNotFoundError,
    PayoutValidationError,
    UnverifiedPaymentMethodError,
)
from payout_kernel.logging_config import get_logger
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.services.audit_log import AuditLog
from payout_kernel.services.base import BaseService
from payout_kernel.services.configuration import ConfigurationProvider
from payout_kernel.services.limit_checker import LimitChecker
from payout_kernel.services.notifications import NotificationBuffer
from payout_kernel.services.payment_methods import PaymentMethodService
from payout_kernel.services.sequence_service import SequenceService, payout_sequence
from payout_kernel.services.wallet_ledger import WalletLedger

logger = get_logger("services.payout_state_machine")

MAX_NOTES_LENGTH = 500


class PayoutStateMachine(BaseService[PayoutRequest]):
    """
    Contract:
        Every public method runs as one savepoint inside the caller's
        transaction and returns the resulting ``PayoutRecord``.  On any
        exception the savepoint is rolled back: status, ledger entry and
        audit entry all disappear together.

    Guarantees:
        - Exactly one audit entry per successful transition.
        - Notification events are only buffered; dispatch happens after the
          caller commits.

    Non-goals:
        - Does NOT commit.  Does NOT translate database errors (the
          orchestrator does).
        - No transition leaves ``processing`` except ``mark_paid``.
    """

    def __init__(
        self,
        session: Session,
        config_provider: ConfigurationProvider,
        clock: Clock | None = None,
        notifications: NotificationBuffer | None = None,
        wallet: WalletLedger | None = None,
        limits: LimitChecker | None = None,
        audit_log: AuditLog | None = None,
        payment_methods: PaymentMethodService | None = None,
    ):
        super().__init__(session, clock)
        self._config = config_provider
        self._notifications = notifications if notifications is not None else NotificationBuffer()
        self._wallet = wallet or WalletLedger(session, self.clock)
        self._limits = limits or LimitChecker(session, self.clock)
        self._audit = audit_log or AuditLog(session, self.clock)
        self._payment_methods = payment_methods or PaymentMethodService(
            session, self._audit, self.clock, notifications=self._notifications,
        )
        self._sequences = SequenceService(session)

    # =========================================================================
    # Create
    # =========================================================================

    def request_payout(
        self,
        vendor_id: UUID,
        amount: Decimal | int | str,
        payment_method_id: UUID,
        notes: str | None = None,
        actor: Actor | None = None,
    ) -> PayoutRecord:
        """
        Create a payout request and reserve its funds.

        Requests at or below the policy's auto-approval limit are created
        directly in ``approved``.
        """
        actor = actor or Actor.vendor(vendor_id)
        amount = parse_amount(amount)
        policy = self._config.get_active()

        if amount < policy.min_payout_amount:
            raise AmountOutOfRangeError(amount, minimum=policy.min_payout_amount)
        if amount > policy.max_payout_amount:
            raise AmountOutOfRangeError(amount, maximum=policy.max_payout_amount)
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise PayoutValidationError(
                f"Notes must be at most {MAX_NOTES_LENGTH} characters", field="vendor_notes",
            )

        method = self._payment_methods.get_payment_method(payment_method_id, vendor_id)
        if not method.is_usable:
            raise UnverifiedPaymentMethodError(
                str(payment_method_id), method.verification_status.value, method.is_active,
            )

        fees = compute_fees(amount, policy)
        self._require_net_positive(fees)

        with self.session.begin_nested():
            # Serializes this vendor's requests for the rest of the transaction
            self._wallet.lock_wallet(vendor_id)
            self._limits.check(vendor_id, amount, policy)

            now = self.clock.now()
            payout = PayoutRequest(
                vendor_id=vendor_id,
                payment_method_id=payment_method_id,
                reference_code=self._reference_code(vendor_id),
                requested_amount=amount,
                reserved_amount=amount,
                processing_fee=fees.processing_fee,
                tds_amount=fees.tds_amount,
                final_amount=fees.final_amount,
                config_version=policy.version,
                status=PayoutStatus.PENDING.value,
                vendor_notes=notes,
                requested_at=now,
            )
            self.session.add(payout)
            self.session.flush()

            self._wallet.reserve(vendor_id, amount, payout_id=payout.id, actor=actor)

            payload = {**self._fee_payload(fees), "auto_approved": False}
            auto_approved = amount <= policy.auto_approval_limit
            if auto_approved:
                payload.update(auto_approved=True, approved_by_type=ActorType.SYSTEM.value)
                payout.status = PayoutStatus.APPROVED.value
                payout.approved_amount = amount
                payout.approved_at = now
                self.session.flush()

            self._audit.record_payout(
                payout,
                AuditAction.CREATED,
                actor,
                old_status=None,
                new_status=payout.status,
                notes=notes,
                payload=payload,
            )

        record = payout.to_dto()
        self._notifications.add(events.payout_requested(record, now))
        if auto_approved:
            self._notifications.add(events.payout_approved(record, now))

        logger.info(
            "payout_requested",
            extra={
                "vendor_id": str(vendor_id),
                "payout_id": str(record.id),
                "reference_code": record.reference_code,
                "amount": str(amount),
                "status": record.status.value,
                "auto_approved": auto_approved,
            },
        )
        return record

    # =========================================================================
    # Transitions
    # =========================================================================

    def approve(
        self,
        payout_id: UUID,
        approved_amount: Decimal | int | str | None = None,
        admin_notes: str | None = None,
        *,
        actor: Actor,
    ) -> PayoutRecord:
        """
        Approve a pending payout, optionally for a lower amount.

        Lowering the amount recomputes fees on the new amount and returns the
        difference from pending to available.  Raising it is refused because
        nothing beyond the original reservation is held.
        """
        with self.session.begin_nested():
            payout, current, target = self._start(payout_id, PayoutAction.APPROVE)

            amount = (
                payout.reserved_amount
                if approved_amount is None
                else parse_amount(approved_amount, field="approved_amount")
            )
            if amount <= 0:
                raise PayoutValidationError(
                    "Approved amount must be positive", field="approved_amount",
                )
            if amount > payout.reserved_amount:
                raise ExceedsReservedAmountError(str(payout.id), payout.reserved_amount, amount)

            payload: dict[str, Any] = {"approved_amount": str(amount)}
            if amount != payout.reserved_amount:
                policy = self._config.get_active()
                fees = compute_fees(amount, policy)
                self._require_net_positive(fees)
                delta = payout.reserved_amount - amount
                self._wallet.adjust(payout.vendor_id, delta, payout_id=payout.id, actor=actor)
                payout.reserved_amount = amount
                payout.processing_fee = fees.processing_fee
                payout.tds_amount = fees.tds_amount
                payout.final_amount = fees.final_amount
                payout.config_version = policy.version
                payload.update(self._fee_payload(fees), released=str(delta))

            now = self.clock.now()
            payout.status = target.value
            payout.approved_amount = amount
            payout.approved_at = now
            payout.approved_by = actor.actor_id
            if admin_notes is not None:
                payout.admin_notes = admin_notes
            self.session.flush()

            record = self._finish(payout, PayoutAction.APPROVE, current, target, actor, admin_notes, payload)

        self._notifications.add(events.payout_approved(record, now))
        return record

    def reject(self, payout_id: UUID, reason: str | None, *, actor: Actor) -> PayoutRecord:
        """Reject a pending or approved payout and release its full reservation."""
        reason = (reason or "").strip()
        if not reason:
            raise MissingRejectionReasonError(str(payout_id))

        with self.session.begin_nested():
            payout, current, target = self._start(payout_id, PayoutAction.REJECT)

            released = payout.reserved_amount
            self._wallet.release(payout.vendor_id, released, payout_id=payout.id, actor=actor)

            now = self.clock.now()
            payout.status = target.value
            payout.rejection_reason = reason
            payout.rejected_at = now
            payout.rejected_by = actor.actor_id
            self.session.flush()

            record = self._finish(
                payout, PayoutAction.REJECT, current, target, actor, reason,
                {"released": str(released)},
            )

        self._notifications.add(events.payout_rejected(record, now))
        return record

    def mark_processing(
        self, payout_id: UUID, admin_notes: str | None = None, *, actor: Actor,
    ) -> PayoutRecord:
        """Record that the transfer has been started.  No balance change."""
        with self.session.begin_nested():
            payout, current, target = self._start(payout_id, PayoutAction.MARK_PROCESSING)

            payout.status = target.value
            payout.processing_at = self.clock.now()
            payout.processed_by = actor.actor_id
            if admin_notes is not None:
                payout.admin_notes = admin_notes
            self.session.flush()

            record = self._finish(
                payout, PayoutAction.MARK_PROCESSING, current, target, actor, admin_notes,
            )
        return record

    def mark_paid(
        self,
        payout_id: UUID,
        transaction_id: str | None,
        reference_number: str | None = None,
        admin_notes: str | None = None,
        *,
        actor: Actor,
    ) -> PayoutRecord:
        """
        Record operator proof of payment and settle the reservation.

        Replaying with the transaction id already stored on a paid payout
        returns that payout unchanged; a different id is an invalid
        transition.
        """
        transaction_id = (transaction_id or "").strip()
        if not transaction_id:
            raise MissingTransactionIdError(str(payout_id))

        with self.session.begin_nested():
            payout = self._lock_payout(payout_id)
            if payout.status == PayoutStatus.PAID.value:
                if payout.transaction_id == transaction_id:
                    logger.info(
                        "mark_paid_replayed",
                        extra={"payout_id": str(payout.id), "transaction_id": transaction_id},
                    )
                    return payout.to_dto()
                raise InvalidTransitionError(
                    str(payout.id),
                    payout.status,
                    PayoutAction.MARK_PAID.value,
                    message=(
                        f"Payout {payout.reference_code} is already paid with "
                        f"transaction {payout.transaction_id}"
                    ),
                )
            current = PayoutStatus(payout.status)
            target = resolve_transition(payout.id, current, PayoutAction.MARK_PAID)

            now = self.clock.now()
            self._wallet.commit(
                payout.vendor_id,
                payout.reserved_amount,
                payout.final_amount,
                payout_id=payout.id,
                paid_at=now,
                actor=actor,
            )

            payout.status = target.value
            payout.transaction_id = transaction_id
            payout.reference_number = reference_number
            payout.paid_at = now
            payout.paid_by = actor.actor_id
            if admin_notes is not None:
                payout.admin_notes = admin_notes
            self.session.flush()

            record = self._finish(
                payout, PayoutAction.MARK_PAID, current, target, actor, admin_notes,
                {
                    "transaction_id": transaction_id,
                    "reference_number": reference_number,
                    "final_amount": str(payout.final_amount),
                },
            )

        self._notifications.add(events.payout_paid(record, now))
        return record

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_payout(self, payout_id: UUID) -> PayoutRequest:
        payout = self.session.execute(
            select(PayoutRequest)
            .where(PayoutRequest.id == payout_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payout is None:
            raise PayoutNotFoundError(str(payout_id))
        return payout

    def _start(
        self, payout_id: UUID, action: PayoutAction,
    ) -> tuple[PayoutRequest, PayoutStatus, PayoutStatus]:
        payout = self._lock_payout(payout_id)
        current = PayoutStatus(payout.status)
        target = resolve_transition(payout.id, current, action)
        return payout, current, target

    def _finish(
        self,
        payout: PayoutRequest,
        action: PayoutAction,
        current: PayoutStatus,
        target: PayoutStatus,
        actor: Actor,
        notes: str | None,
        payload: dict[str, Any] | None = None,
    ) -> PayoutRecord:
        self._audit.record_payout(
            payout,
            ACTION_AUDIT[action],
            actor,
            old_status=current.value,
            new_status=target.value,
            notes=notes,
            payload=payload,
        )
        logger.info(
            "payout_transitioned",
            extra={
                "payout_id": str(payout.id),
                "vendor_id": str(payout.vendor_id),
                "action": action.value,
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return payout.to_dto()

    def _reference_code(self, vendor_id: UUID) -> str:
        seq = self._sequences.next_value(payout_sequence(vendor_id))
        return f"PO{vendor_id.hex[:12].upper()}{seq:06d}"

    @staticmethod
    def _require_net_positive(fees: FeeBreakdown) -> None:
        if fees.final_amount <= 0:
            raise AmountOutOfRangeError(
                fees.amount,
                message=(
                    f"Payout amount {fees.amount} does not cover fees of "
                    f"{fees.total_deductions}"
                ),
            )

    @staticmethod
    def _fee_payload(fees: FeeBreakdown) -> dict[str, str]:
        return {
            "amount": str(fees.amount),
            "processing_fee": str(fees.processing_fee),
            "tds_amount": str(fees.tds_amount),
            "final_amount": str(fees.final_amount),
        }
