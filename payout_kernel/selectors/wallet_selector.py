"""
Module: payout_kernel.selectors.wallet_selector
Responsibility: Read-only wallet queries: balance, statement, vendor summary
    and the replay that proves the stored balance is justified by the
    transaction log.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Replay uses domain.ledger.apply_entry, the same rule the ledger writes
      with, starting from zero and walking entries in seq order.
    - Each entry's before-snapshot must equal the running total of the
      entries before it (chain check), so a missing or edited row is caught
      even when the final totals happen to agree.

Audit relevance:
    ``replay`` is the self-verification of the wallet ledger: for every
    vendor, replaying the log from zero must reproduce WalletBalance.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from payout_kernel.domain.dtos import WalletSnapshot, WalletTransactionRecord
from payout_kernel.domain.ledger import EntryKind, TransactionType, apply_entry
from payout_kernel.domain.money import ZERO
from payout_kernel.domain.payout import IN_FLIGHT_PAYOUT_STATUSES
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.models.wallet import WalletBalance, WalletTransaction
from payout_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ReplayResult:
    vendor_id: UUID
    entry_count: int
    replayed_available: Decimal
    replayed_pending: Decimal
    stored_available: Decimal
    stored_pending: Decimal
    chain_intact: bool

    @property
    def matches(self) -> bool:
        return (
            self.chain_intact
            and self.replayed_available == self.stored_available
            and self.replayed_pending == self.stored_pending
        )


@dataclass(frozen=True)
class WalletSummary:
    """Balances plus what is currently tied up in payouts."""

    balance: WalletSnapshot
    in_flight_count: int
    in_flight_amount: Decimal


class WalletSelector(BaseSelector[WalletBalance]):

    def get_balance(self, vendor_id: UUID) -> WalletSnapshot:
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

    def statement(
        self, vendor_id: UUID, limit: int = 50, offset: int = 0,
    ) -> list[WalletTransactionRecord]:
        """Wallet transactions newest first."""
        rows = self.session.scalars(
            select(WalletTransaction)
            .where(WalletTransaction.vendor_id == vendor_id)
            .order_by(WalletTransaction.seq.desc())
            .limit(limit)
            .offset(offset)
        )
        return [row.to_dto() for row in rows]

    def transactions_for_payout(self, payout_id: UUID) -> list[WalletTransactionRecord]:
        """Ledger entries caused by one payout, oldest first."""
        rows = self.session.scalars(
            select(WalletTransaction)
            .where(WalletTransaction.payout_id == payout_id)
            .order_by(WalletTransaction.seq)
        )
        return [row.to_dto() for row in rows]

    def replay(self, vendor_id: UUID) -> ReplayResult:
        """Rebuild (available, pending) from zero and compare with the stored row."""
        available, pending = ZERO, ZERO
        chain_intact = True
        count = 0
        rows = self.session.scalars(
            select(WalletTransaction)
            .where(WalletTransaction.vendor_id == vendor_id)
            .order_by(WalletTransaction.seq)
        )
        for row in rows:
            count += 1
            if row.balance_before != available or row.pending_before != pending:
                chain_intact = False
            available, pending = apply_entry(
                available,
                pending,
                EntryKind(row.entry_kind),
                TransactionType(row.transaction_type),
                row.amount,
            )
            if row.balance_after != available or row.pending_after != pending:
                chain_intact = False

        stored = self.get_balance(vendor_id)
        return ReplayResult(
            vendor_id=vendor_id,
            entry_count=count,
            replayed_available=available,
            replayed_pending=pending,
            stored_available=stored.available_balance,
            stored_pending=stored.pending_balance,
            chain_intact=chain_intact,
        )

    def summary(self, vendor_id: UUID) -> WalletSummary:
        count, amount = self.session.execute(
            select(
                func.count(PayoutRequest.id),
                func.coalesce(func.sum(PayoutRequest.reserved_amount), 0),
            )
            .where(PayoutRequest.vendor_id == vendor_id)
            .where(PayoutRequest.status.in_([s.value for s in IN_FLIGHT_PAYOUT_STATUSES]))
        ).one()
        return WalletSummary(
            balance=self.get_balance(vendor_id),
            in_flight_count=count,
            in_flight_amount=Decimal(str(amount)).quantize(Decimal("0.01")),
        )
