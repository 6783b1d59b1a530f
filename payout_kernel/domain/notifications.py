"""
Notification events (``payout_kernel.domain.notifications``).

Typed, transient events produced by payout and payment-method transitions.
They carry enough payload (amounts, ids, reason) for an external delivery
system to render a message, plus the minimal title/message pair used by the
in-app inbox.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class NotificationType(str, Enum):
    PAYOUT_REQUESTED = "payout_requested"
    PAYOUT_APPROVED = "payout_approved"
    PAYOUT_REJECTED = "payout_rejected"
    PAYOUT_PAID = "payout_paid"
    PAYMENT_METHOD_ADDED = "payment_method_added"
    PAYMENT_METHOD_VERIFIED = "payment_method_verified"
    PAYMENT_METHOD_REJECTED = "payment_method_rejected"


@dataclass(frozen=True)
class NotificationEvent:
    vendor_id: UUID
    type: NotificationType
    title: str
    message: str
    occurred_at: datetime
    payout_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def payout_requested(payout, occurred_at: datetime) -> NotificationEvent:
    return NotificationEvent(
        vendor_id=payout.vendor_id,
        payout_id=payout.id,
        type=NotificationType.PAYOUT_REQUESTED,
        title="Payout requested",
        message=f"Your payout request of {payout.requested_amount} has been received.",
        occurred_at=occurred_at,
        metadata={
            "reference_code": payout.reference_code,
            "requested_amount": _money(payout.requested_amount),
            "processing_fee": _money(payout.processing_fee),
            "tds_amount": _money(payout.tds_amount),
            "final_amount": _money(payout.final_amount),
            "status": payout.status.value,
        },
    )


def payout_approved(payout, occurred_at: datetime) -> NotificationEvent:
    return NotificationEvent(
        vendor_id=payout.vendor_id,
        payout_id=payout.id,
        type=NotificationType.PAYOUT_APPROVED,
        title="Payout approved",
        message=f"Your payout of {payout.approved_amount} has been approved.",
        occurred_at=occurred_at,
        metadata={
            "reference_code": payout.reference_code,
            "approved_amount": _money(payout.approved_amount),
            "final_amount": _money(payout.final_amount),
            "auto_approved": payout.approved_by is None,
        },
    )


def payout_rejected(payout, occurred_at: datetime) -> NotificationEvent:
    return NotificationEvent(
        vendor_id=payout.vendor_id,
        payout_id=payout.id,
        type=NotificationType.PAYOUT_REJECTED,
        title="Payout rejected",
        message=f"Your payout request was rejected: {payout.rejection_reason}",
        occurred_at=occurred_at,
        metadata={
            "reference_code": payout.reference_code,
            "requested_amount": _money(payout.requested_amount),
            "reason": payout.rejection_reason,
        },
    )


def payout_paid(payout, occurred_at: datetime) -> NotificationEvent:
    return NotificationEvent(
        vendor_id=payout.vendor_id,
        payout_id=payout.id,
        type=NotificationType.PAYOUT_PAID,
        title="Payout completed",
        message=f"{payout.final_amount} has been transferred to your account.",
        occurred_at=occurred_at,
        metadata={
            "reference_code": payout.reference_code,
            "final_amount": _money(payout.final_amount),
            "transaction_id": payout.transaction_id,
            "reference_number": payout.reference_number,
        },
    )


def payment_method_added(method, occurred_at: datetime) -> NotificationEvent:
    return NotificationEvent(
        vendor_id=method.vendor_id,
        type=NotificationType.PAYMENT_METHOD_ADDED,
        title="Payment method added",
        message="Your payment method was added and is awaiting verification.",
        occurred_at=occurred_at,
        metadata={
            "payment_method_id": str(method.id),
            "method_type": method.method_type.value,
            "display": method.display,
        },
    )


def payment_method_reviewed(method, occurred_at: datetime) -> NotificationEvent:
    verified = method.verification_status.value == "verified"
    return NotificationEvent(
        vendor_id=method.vendor_id,
        type=(
            NotificationType.PAYMENT_METHOD_VERIFIED
            if verified
            else NotificationType.PAYMENT_METHOD_REJECTED
        ),
        title="Payment method verified" if verified else "Payment method rejected",
        message=(
            "Your payment method is verified and can receive payouts."
            if verified
            else f"Your payment method was rejected: {method.verification_notes or 'no reason given'}"
        ),
        occurred_at=occurred_at,
        metadata={
            "payment_method_id": str(method.id),
            "method_type": method.method_type.value,
            "display": method.display,
            "notes": method.verification_notes,
        },
    )
