"""
Wallet ledger vocabulary and replay rules (``payout_kernel.domain.ledger``).

Every balance change appends one wallet transaction.  ``apply_entry`` is the
single definition of what an entry does to ``(available, pending)``; the
ledger uses it when writing and the selectors use it when replaying the log
from zero to verify the stored balance.

Entry kinds
-----------
=========  ==================  ===================================
kind       type (available)    effect
=========  ==================  ===================================
credit     credit              available += amount
debit      debit               available -= amount
reserve    debit               available -= amount, pending += amount
release    credit              available += amount, pending -= amount
commit     debit               pending -= amount
adjust     credit              available += amount, pending -= amount
adjust     debit               available -= amount, pending += amount
=========  ==================  ===================================
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    """Direction of the entry relative to ``available_balance``."""

    CREDIT = "credit"
    DEBIT = "debit"


class TransactionCategory(str, Enum):
    PAYOUT = "payout"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    ORDER_SETTLEMENT = "order_settlement"
    COMMISSION = "commission"
    FEE = "fee"


class EntryKind(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    RESERVE = "reserve"
    RELEASE = "release"
    COMMIT = "commit"
    ADJUST = "adjust"


def apply_entry(
    available: Decimal,
    pending: Decimal,
    kind: EntryKind,
    transaction_type: TransactionType,
    amount: Decimal,
) -> tuple[Decimal, Decimal]:
    """Return ``(available, pending)`` after applying one entry."""
    if kind is EntryKind.CREDIT:
        return available + amount, pending
    if kind is EntryKind.DEBIT:
        return available - amount, pending
    if kind is EntryKind.RESERVE:
        return available - amount, pending + amount
    if kind is EntryKind.RELEASE:
        return available + amount, pending - amount
    if kind is EntryKind.COMMIT:
        return available, pending - amount
    if kind is EntryKind.ADJUST:
        if transaction_type is TransactionType.CREDIT:
            return available + amount, pending - amount
        return available - amount, pending + amount
    raise ValueError(f"Unknown ledger entry kind: {kind!r}")
