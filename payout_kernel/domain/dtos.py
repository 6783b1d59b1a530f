"""
Frozen DTOs returned across the service and selector boundary.

ORM instances never leave the kernel; callers get these immutable records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from payout_kernel.domain.ledger import EntryKind, TransactionCategory, TransactionType
from payout_kernel.domain.notifications import NotificationType
from payout_kernel.domain.payment_methods import PaymentMethodType, VerificationStatus
from payout_kernel.domain.payout import ActorType, PayoutStatus, TERMINAL_PAYOUT_STATUSES


@dataclass(frozen=True)
class WalletSnapshot:
    vendor_id: UUID
    available_balance: Decimal
    pending_balance: Decimal
    total_earnings: Decimal
    total_payouts: Decimal
    last_payout_at: datetime | None = None

    @property
    def total_balance(self) -> Decimal:
        return self.available_balance + self.pending_balance


@dataclass(frozen=True)
class WalletTransactionRecord:
    id: UUID
    vendor_id: UUID
    seq: int
    entry_kind: EntryKind
    transaction_type: TransactionType
    category: TransactionCategory
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    pending_before: Decimal
    pending_after: Decimal
    created_at: datetime
    payout_id: UUID | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class PayoutRecord:
    id: UUID
    vendor_id: UUID
    payment_method_id: UUID
    reference_code: str
    requested_amount: Decimal
    reserved_amount: Decimal
    processing_fee: Decimal
    tds_amount: Decimal
    final_amount: Decimal
    status: PayoutStatus
    requested_at: datetime
    config_version: int | None = None
    approved_amount: Decimal | None = None
    transaction_id: str | None = None
    reference_number: str | None = None
    rejection_reason: str | None = None
    vendor_notes: str | None = None
    admin_notes: str | None = None
    approved_at: datetime | None = None
    processing_at: datetime | None = None
    paid_at: datetime | None = None
    rejected_at: datetime | None = None
    approved_by: UUID | None = None
    processed_by: UUID | None = None
    paid_by: UUID | None = None
    rejected_by: UUID | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYOUT_STATUSES


@dataclass(frozen=True)
class PaymentMethodRecord:
    """Masked view of a payment method; never carries clear account data."""

    id: UUID
    vendor_id: UUID
    method_type: PaymentMethodType
    verification_status: VerificationStatus
    is_default: bool
    is_active: bool
    display: str
    created_at: datetime
    account_holder_name: str | None = None
    ifsc_code: str | None = None
    bank_name: str | None = None
    branch_name: str | None = None
    upi_provider: str | None = None
    verification_notes: str | None = None
    verified_at: datetime | None = None
    verified_by: UUID | None = None

    @property
    def is_usable(self) -> bool:
        return self.is_active and self.verification_status is VerificationStatus.VERIFIED


@dataclass(frozen=True)
class AuditRecord:
    id: UUID
    vendor_id: UUID
    seq: int
    action: str
    performed_by_type: ActorType
    created_at: datetime
    payout_id: UUID | None = None
    payment_method_id: UUID | None = None
    old_status: str | None = None
    new_status: str | None = None
    performed_by: UUID | None = None
    notes: str | None = None
    payload: dict[str, Any] | None = None


@dataclass(frozen=True)
class NotificationRecord:
    id: UUID
    vendor_id: UUID
    notification_type: NotificationType
    title: str
    message: str
    is_read: bool
    created_at: datetime
    payout_id: UUID | None = None
    metadata: dict[str, Any] | None = None
    read_at: datetime | None = None
