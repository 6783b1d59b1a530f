"""
WalletLedger -- per-vendor balances and their append-only transaction log.

Responsibility:
    Every change to a vendor's ``available_balance`` / ``pending_balance``
    goes through this service.  Each operation locks the vendor's wallet row,
    updates it, and appends exactly one ``WalletTransaction`` whose
    before/after snapshots are taken inside the same unit of work.

Architecture position:
    Kernel > Services -- imperative shell.  Called by PayoutStateMachine and
    PayoutOrchestrator; uses domain/ledger.py for the entry arithmetic so
    that writing and replaying share one definition.

Operations:
    credit   available += amount, total_earnings += amount
    debit    available -= amount                       (InsufficientBalance)
    reserve  available -> pending                      (InsufficientBalance)
    release  pending -> available                      (InvariantViolation)
    commit   pending -= reserved, total_payouts += net (InvariantViolation)
    adjust   signed move between pending and available

Invariants enforced:
    - available_balance >= 0 and pending_balance >= 0 after every operation.
    - Replaying the vendor's transactions from zero reproduces the stored
      balance (``verify``).
    - Per-vendor ``seq`` from SequenceService orders the log.

Failure modes:
    - InsufficientBalanceError: available funds do not cover the amount.
      A user-level rejection; nothing is written.
    - InvariantViolationError: pending funds do not cover a release or
      commit, or a replay mismatch.  A bug in an earlier operation; never
      clamped.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payout_kernel.domain.clock import Clock
from payout_kernel.domain.dtos import WalletSnapshot, WalletTransactionRecord
from payout_kernel.domain.ledger import (
    EntryKind,
    TransactionCategory,
    TransactionType,
    apply_entry,
)
from payout_kernel.domain.money import ZERO, round_money
from payout_kernel.domain.payout import Actor
from payout_kernel.exceptions import (
    InsufficientBalanceError,
    InvariantViolationError,
    PayoutValidationError,
    WalletNotFoundError,
)
from payout_kernel.logging_config import get_logger
from payout_kernel.models.wallet import WalletBalance, WalletTransaction
from payout_kernel.services.base import BaseService
from payout_kernel.services.sequence_service import SequenceService, wallet_sequence

logger = get_logger("services.wallet_ledger")


class WalletLedger(BaseService[WalletBalance]):
    """
    Row-locked wallet mutations.

    Contract:
        The caller owns the transaction.  Each public mutation flushes one
        balance update plus one WalletTransaction and returns the
        transaction record.

    Guarantees:
        - The wallet row is locked (``SELECT ... FOR UPDATE``) before it is
          read for a decision, so two concurrent reservations for the same
          vendor are serialized.
        - No operation leaves either balance negative.

    Non-goals:
        - Does NOT know about payout statuses; PayoutStateMachine decides
          when to reserve, release, adjust or commit.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Wallet rows
    # =========================================================================

    def lock_wallet(self, vendor_id: UUID) -> WalletBalance | None:
        """Lock and return the vendor's wallet row, or None if it has none."""
        return self.session.execute(
            select(WalletBalance)
            .where(WalletBalance.vendor_id == vendor_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_or_create_wallet(self, vendor_id: UUID) -> WalletBalance:
        """
        Lock the vendor's wallet, creating an empty one on first use.

        Concurrent first use is resolved by the UNIQUE(vendor_id) constraint:
        the loser rolls back its savepoint and locks the winner's row.
        """
        wallet = self.lock_wallet(vendor_id)
        if wallet is not None:
            return wallet

        now = self.clock.now()
        savepoint = self.session.begin_nested()
        try:
            wallet = WalletBalance(
                vendor_id=vendor_id,
                available_balance=ZERO,
                pending_balance=ZERO,
                total_earnings=ZERO,
                total_payouts=ZERO,
                created_at=now,
                updated_at=now,
            )
            self.session.add(wallet)
            self.session.flush()
            savepoint.commit()
            logger.info("wallet_created", extra={"vendor_id": str(vendor_id)})
            return wallet
        except IntegrityError:
            savepoint.rollback()
            logger.debug("wallet_create_race_retry", extra={"vendor_id": str(vendor_id)})
            wallet = self.lock_wallet(vendor_id)
            if wallet is None:
                raise
            return wallet

    def get_balance(self, vendor_id: UUID) -> WalletSnapshot:
        """Current balances without locking; zeros for a vendor with no wallet."""
        wallet = self.session.execute(
            select(WalletBalance).where(WalletBalance.vendor_id == vendor_id)
        ).scalar_one_or_none()
        if wallet is None:
            return WalletSnapshot(
                vendor_id=vendor_id,
                available_balance=ZERO,
                pending_balance=ZERO,
                total_earnings=ZERO,
                total_payouts=ZERO,
            )
        return wallet.to_dto()

    # =========================================================================
    # Mutations
    # =========================================================================

    def credit(
        self,
        vendor_id: UUID,
        amount: Decimal,
        category: TransactionCategory = TransactionCategory.ORDER_SETTLEMENT,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        """Add earnings to the vendor's available balance."""
        amount = self._positive(amount)
        wallet = self.get_or_create_wallet(vendor_id)
        record = self._append(
            wallet,
            EntryKind.CREDIT,
            TransactionType.CREDIT,
            category,
            amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            actor=actor,
        )
        wallet.total_earnings += amount
        self.session.flush()
        logger.info("wallet_credited", extra=self._log_fields(wallet, record))
        return record

    def debit(
        self,
        vendor_id: UUID,
        amount: Decimal,
        category: TransactionCategory = TransactionCategory.COMMISSION,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        """Deduct a commission or fee from available funds."""
        amount = self._positive(amount)
        wallet = self._require_available(vendor_id, amount)
        record = self._append(
            wallet,
            EntryKind.DEBIT,
            TransactionType.DEBIT,
            category,
            amount,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            actor=actor,
        )
        logger.info("wallet_debited", extra=self._log_fields(wallet, record))
        return record

    def reserve(
        self,
        vendor_id: UUID,
        amount: Decimal,
        payout_id: UUID | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        """Move ``amount`` from available to pending for an in-flight payout."""
        amount = self._positive(amount)
        wallet = self._require_available(vendor_id, amount)
        record = self._append(
            wallet,
            EntryKind.RESERVE,
            TransactionType.DEBIT,
            TransactionCategory.PAYOUT,
            amount,
            payout_id=payout_id,
            description="Funds reserved for payout request",
            actor=actor,
        )
        logger.info("wallet_reserved", extra=self._log_fields(wallet, record))
        return record

    def release(
        self,
        vendor_id: UUID,
        amount: Decimal,
        payout_id: UUID | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        """Return ``amount`` from pending to available (payout rejected)."""
        amount = self._positive(amount)
        wallet = self._require_pending(vendor_id, amount, "release")
        record = self._append(
            wallet,
            EntryKind.RELEASE,
            TransactionType.CREDIT,
            TransactionCategory.REFUND,
            amount,
            payout_id=payout_id,
            description="Reserved funds released",
            actor=actor,
        )
        logger.info("wallet_released", extra=self._log_fields(wallet, record))
        return record

    def commit(
        self,
        vendor_id: UUID,
        pending_amount: Decimal,
        net_amount: Decimal,
        payout_id: UUID | None = None,
        paid_at: datetime | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        """
        Finalize a paid payout.

        ``pending_amount`` (the reservation) leaves pending; ``net_amount``
        (what actually reached the vendor) is added to ``total_payouts``.
        The difference is the fee and TDS, absorbed at reservation time.
        """
        pending_amount = self._positive(pending_amount)
        net_amount = round_money(net_amount)
        wallet = self._require_pending(vendor_id, pending_amount, "commit")
        record = self._append(
            wallet,
            EntryKind.COMMIT,
            TransactionType.DEBIT,
            TransactionCategory.PAYOUT,
            pending_amount,
            payout_id=payout_id,
            description=f"Payout completed, net {net_amount}",
            actor=actor,
        )
        wallet.total_payouts += net_amount
        wallet.last_payout_at = paid_at or record.created_at
        self.session.flush()
        logger.info(
            "wallet_committed",
            extra={**self._log_fields(wallet, record), "net_amount": str(net_amount)},
        )
        return record

    def adjust(
        self,
        vendor_id: UUID,
        delta: Decimal,
        payout_id: UUID | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        """
        Move a signed difference between pending and available.

        Positive ``delta`` returns funds from pending to available (approved
        amount lowered); negative ``delta`` reserves more.
        """
        delta = round_money(delta)
        if delta == 0:
            raise PayoutValidationError("Adjustment delta must be non-zero", field="delta")
        amount = abs(delta)
        if delta > 0:
            wallet = self._require_pending(vendor_id, amount, "adjust")
            transaction_type = TransactionType.CREDIT
        else:
            wallet = self._require_available(vendor_id, amount)
            transaction_type = TransactionType.DEBIT
        record = self._append(
            wallet,
            EntryKind.ADJUST,
            transaction_type,
            TransactionCategory.ADJUSTMENT,
            amount,
            payout_id=payout_id,
            description="Reservation adjusted to approved amount",
            actor=actor,
        )
        logger.info(
            "wallet_adjusted",
            extra={**self._log_fields(wallet, record), "delta": str(delta)},
        )
        return record

    def verify(self, vendor_id: UUID) -> WalletSnapshot:
        """
        Replay the vendor's log and compare it with the stored balance.

        Raises:
            WalletNotFoundError: the vendor has no wallet row.
            InvariantViolationError: replay or before/after chain mismatch.
        """
        from payout_kernel.selectors.wallet_selector import WalletSelector

        exists = self.session.scalar(
            select(WalletBalance.id).where(WalletBalance.vendor_id == vendor_id)
        )
        if exists is None:
            raise WalletNotFoundError(str(vendor_id))

        replay = WalletSelector(self.session).replay(vendor_id)
        if not replay.matches:
            logger.error(
                "wallet_replay_mismatch",
                extra={
                    "vendor_id": str(vendor_id),
                    "replayed_available": str(replay.replayed_available),
                    "replayed_pending": str(replay.replayed_pending),
                    "stored_available": str(replay.stored_available),
                    "stored_pending": str(replay.stored_pending),
                    "chain_intact": replay.chain_intact,
                },
            )
            raise InvariantViolationError(
                "wallet_replay",
                f"Wallet for vendor {vendor_id} does not match its transaction log",
                vendor_id=str(vendor_id),
                replayed_available=replay.replayed_available,
                replayed_pending=replay.replayed_pending,
                stored_available=replay.stored_available,
                stored_pending=replay.stored_pending,
            )
        return self.get_balance(vendor_id)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _positive(amount: Decimal) -> Decimal:
        amount = round_money(amount)
        if amount <= 0:
            raise PayoutValidationError("Amount must be positive", field="amount")
        return amount

    def _require_available(self, vendor_id: UUID, amount: Decimal) -> WalletBalance:
        wallet = self.lock_wallet(vendor_id)
        available = wallet.available_balance if wallet is not None else ZERO
        if wallet is None or available < amount:
            logger.info(
                "wallet_insufficient_balance",
                extra={
                    "vendor_id": str(vendor_id),
                    "available": str(available),
                    "requested": str(amount),
                },
            )
            raise InsufficientBalanceError(str(vendor_id), available, amount)
        return wallet

    def _require_pending(
        self, vendor_id: UUID, amount: Decimal, operation: str,
    ) -> WalletBalance:
        wallet = self.lock_wallet(vendor_id)
        pending = wallet.pending_balance if wallet is not None else ZERO
        if wallet is None or pending < amount:
            logger.error(
                "wallet_pending_underflow",
                extra={
                    "vendor_id": str(vendor_id),
                    "operation": operation,
                    "pending": str(pending),
                    "amount": str(amount),
                },
            )
            raise InvariantViolationError(
                "pending_non_negative",
                f"Cannot {operation} {amount}: vendor {vendor_id} has only "
                f"{pending} pending",
                vendor_id=str(vendor_id),
                pending=pending,
                amount=amount,
            )
        return wallet

    def _append(
        self,
        wallet: WalletBalance,
        kind: EntryKind,
        transaction_type: TransactionType,
        category: TransactionCategory,
        amount: Decimal,
        payout_id: UUID | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        actor: Actor | None = None,
    ) -> WalletTransactionRecord:
        available_before = wallet.available_balance
        pending_before = wallet.pending_balance
        available_after, pending_after = apply_entry(
            available_before, pending_before, kind, transaction_type, amount,
        )
        if available_after < 0 or pending_after < 0:
            raise InvariantViolationError(
                "balance_non_negative",
                f"{kind.value} of {amount} would leave vendor {wallet.vendor_id} "
                f"with available={available_after} pending={pending_after}",
                vendor_id=str(wallet.vendor_id),
            )

        now = self.clock.now()
        if payout_id is not None and reference_type is None:
            reference_type, reference_id = "payout", str(payout_id)

        entry = WalletTransaction(
            vendor_id=wallet.vendor_id,
            seq=self._sequences.next_value(wallet_sequence(wallet.vendor_id)),
            entry_kind=kind.value,
            transaction_type=transaction_type.value,
            category=category.value,
            amount=amount,
            balance_before=available_before,
            balance_after=available_after,
            pending_before=pending_before,
            pending_after=pending_after,
            payout_id=payout_id,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            created_by=actor.actor_id if actor is not None else None,
            created_at=now,
        )
        wallet.available_balance = available_after
        wallet.pending_balance = pending_after
        wallet.updated_at = now
        self.session.add(entry)
        self.session.flush()
        return entry.to_dto()

    @staticmethod
    def _log_fields(wallet: WalletBalance, record: WalletTransactionRecord) -> dict:
        return {
            "vendor_id": str(wallet.vendor_id),
            "amount": str(record.amount),
            "seq": record.seq,
            "payout_id": str(record.payout_id) if record.payout_id else None,
            "available_after": str(wallet.available_balance),
            "pending_after": str(wallet.pending_balance),
        }
