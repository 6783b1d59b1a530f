"""Selectors for the payout kernel (read side)."""

from payout_kernel.selectors.audit_selector import AuditSelector
from payout_kernel.selectors.payment_method_selector import PaymentMethodPage, PaymentMethodSelector
from payout_kernel.selectors.payout_selector import (
    DashboardStats,
    PayoutPage,
    PayoutReport,
    PayoutReportSummary,
    PayoutSelector,
)
from payout_kernel.selectors.wallet_selector import ReplayResult, WalletSelector, WalletSummary

__all__ = [
    "AuditSelector",
    "DashboardStats",
    "PaymentMethodPage",
    "PaymentMethodSelector",
    "PayoutPage",
    "PayoutReport",
    "PayoutReportSummary",
    "PayoutSelector",
    "ReplayResult",
    "WalletSelector",
    "WalletSummary",
]
