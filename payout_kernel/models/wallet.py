"""
Module: payout_kernel.models.wallet
Responsibility: ORM persistence for vendor wallets and their append-only
    transaction log.
Architecture position: Kernel > Models.  May import from db/ only (and
    domain/ lazily inside to_dto).

Invariants enforced:
    - One wallet row per vendor (UNIQUE vendor_id).
    - available_balance >= 0 and pending_balance >= 0 (CHECK constraints
      backing the ledger's own guards).
    - Wallet transactions are immutable (ORM listeners in db/immutability.py)
      and ordered by a per-vendor monotonic seq (UNIQUE vendor_id, seq).
    - At most one commit entry per payout (partial unique index), so a
      replayed mark-paid can never settle twice.

Audit relevance:
    Replaying a vendor's transactions from zero reproduces the stored
    balances; WalletSelector.replay and WalletLedger.verify check this.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from payout_kernel.domain.dtos import WalletSnapshot, WalletTransactionRecord


class WalletBalance(Base):
    """Per-vendor balance.  Mutated only by WalletLedger under a row lock."""

    __tablename__ = "wallet_balances"

    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_wallet_available_non_negative"),
        CheckConstraint("pending_balance >= 0", name="ck_wallet_pending_non_negative"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    available_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    pending_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    total_payouts: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    last_payout_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WalletBalance vendor={self.vendor_id} "
            f"available={self.available_balance} pending={self.pending_balance}>"
        )

    def to_dto(self) -> WalletSnapshot:
        from payout_kernel.domain.dtos import WalletSnapshot

        return WalletSnapshot(
            vendor_id=self.vendor_id,
            available_balance=self.available_balance,
            pending_balance=self.pending_balance,
            total_earnings=self.total_earnings,
            total_payouts=self.total_payouts,
            last_payout_at=self.last_payout_at,
        )


class WalletTransaction(Base):
    """One balance mutation.  Never updated or deleted."""

    __tablename__ = "wallet_transactions"

    __table_args__ = (
        UniqueConstraint("vendor_id", "seq", name="uq_wallet_transactions_vendor_seq"),
        CheckConstraint("amount > 0", name="ck_wallet_transactions_positive_amount"),
        CheckConstraint(
            "transaction_type IN ('credit', 'debit')",
            name="ck_wallet_transactions_type",
        ),
        CheckConstraint(
            "entry_kind IN ('credit', 'debit', 'reserve', 'release', 'commit', 'adjust')",
            name="ck_wallet_transactions_entry_kind",
        ),
        Index(
            "uq_wallet_transactions_commit_per_payout",
            "payout_id",
            unique=True,
            postgresql_where=text("entry_kind = 'commit'"),
            sqlite_where=text("entry_kind = 'commit'"),
        ),
        Index("ix_wallet_transactions_vendor_created", "vendor_id", "created_at"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(nullable=False)
    entry_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(nullable=False)
    pending_before: Mapped[Decimal] = mapped_column(nullable=False)
    pending_after: Mapped[Decimal] = mapped_column(nullable=False)
    payout_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payout_requests.id"), nullable=True,
    )
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WalletTransaction vendor={self.vendor_id} seq={self.seq} "
            f"{self.entry_kind} {self.amount}>"
        )

    def to_dto(self) -> WalletTransactionRecord:
        from payout_kernel.domain.dtos import WalletTransactionRecord
        from payout_kernel.domain.ledger import (
            EntryKind,
            TransactionCategory,
            TransactionType,
        )

        return WalletTransactionRecord(
            id=self.id,
            vendor_id=self.vendor_id,
            seq=self.seq,
            entry_kind=EntryKind(self.entry_kind),
            transaction_type=TransactionType(self.transaction_type),
            category=TransactionCategory(self.category),
            amount=self.amount,
            balance_before=self.balance_before,
            balance_after=self.balance_after,
            pending_before=self.pending_before,
            pending_after=self.pending_after,
            created_at=self.created_at,
            payout_id=self.payout_id,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            description=self.description,
        )
