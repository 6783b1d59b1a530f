"""Shared builders for payout kernel tests."""

from decimal import Decimal
from uuid import UUID, uuid4

from payout_kernel.domain.payment_methods import BankAccountDetails, UpiDetails, VerificationStatus
from payout_kernel.domain.payout import Actor
from payout_kernel.services.orchestrator import PayoutOrchestrator


def bank_details(account_number: str = "123456789012", bank_name: str = "HDFC Bank") -> BankAccountDetails:
    return BankAccountDetails(
        account_holder_name="Asha Traders",
        account_number=account_number,
        ifsc_code="hdfc0001234",
        bank_name=bank_name,
        branch_name="Fort",
    )


def upi_details(upi_id: str = "ashatraders@okhdfc") -> UpiDetails:
    return UpiDetails(upi_id=upi_id, upi_provider="okhdfc", account_holder_name="Asha Traders")


def make_vendor(
    orchestrator: PayoutOrchestrator,
    admin: Actor,
    balance: str = "20000.00",
    verified: bool = True,
) -> tuple[UUID, UUID]:
    """Create a vendor with one payment method and a credited wallet."""
    vendor_id = uuid4()
    method = orchestrator.add_payment_method(vendor_id, bank_details())
    if verified:
        orchestrator.verify_payment_method(method.id, VerificationStatus.VERIFIED, actor=admin)
    if Decimal(balance) > 0:
        orchestrator.credit_earnings(vendor_id, balance, reference_type="order", reference_id="ORD-1")
    return vendor_id, method.id
