"""Services for the payout kernel (write side)."""

from payout_kernel.services.audit_log import AuditLog
from payout_kernel.services.configuration import (
    ConfigurationProvider,
    ConfigurationService,
    DatabaseConfigurationProvider,
    StaticConfigurationProvider,
)
from payout_kernel.services.limit_checker import LimitChecker
from payout_kernel.services.notifications import (
    CompositeNotificationEmitter,
    InAppNotificationEmitter,
    LoggingNotificationEmitter,
    NotificationBuffer,
    NotificationEmitter,
    NotificationInbox,
    RecordingNotificationEmitter,
    dispatch_safely,
)
from payout_kernel.services.orchestrator import PayoutOrchestrator
from payout_kernel.services.payment_methods import PaymentMethodService
from payout_kernel.services.payout_state_machine import PayoutStateMachine
from payout_kernel.services.sequence_service import SequenceService
from payout_kernel.services.wallet_ledger import WalletLedger

__all__ = [
    "AuditLog",
    "CompositeNotificationEmitter",
    "ConfigurationProvider",
    "ConfigurationService",
    "DatabaseConfigurationProvider",
    "InAppNotificationEmitter",
    "LimitChecker",
    "LoggingNotificationEmitter",
    "NotificationBuffer",
    "NotificationEmitter",
    "NotificationInbox",
    "PaymentMethodService",
    "PayoutOrchestrator",
    "PayoutStateMachine",
    "RecordingNotificationEmitter",
    "SequenceService",
    "StaticConfigurationProvider",
    "WalletLedger",
    "dispatch_safely",
]
