"""ORM models for the payout kernel."""

from payout_kernel.models.audit_log import AuditLogEntry
from payout_kernel.models.configuration import PayoutConfiguration
from payout_kernel.models.notification import PayoutNotification
from payout_kernel.models.payment_method import PaymentMethod
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.models.sequence import SequenceCounter
from payout_kernel.models.wallet import WalletBalance, WalletTransaction

__all__ = [
    "AuditLogEntry",
    "PaymentMethod",
    "PayoutConfiguration",
    "PayoutNotification",
    "PayoutRequest",
    "SequenceCounter",
    "WalletBalance",
    "WalletTransaction",
]
