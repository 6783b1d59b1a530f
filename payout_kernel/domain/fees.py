"""
Fee Calculator (``payout_kernel.domain.fees``).

Pure function mapping a requested amount and the active policy to the
processing fee, TDS withholding and the net amount the vendor receives::

    processing_fee = max(amount * processing_fee_percentage, processing_fee_fixed)
    tds_amount     = amount * tds_percentage
    final_amount   = amount - processing_fee - tds_amount

Fee and TDS are rounded half-up to the minor unit first; the net amount is
the exact remainder, so the three parts always add back to the amount.
"""

from dataclasses import dataclass
from decimal import Decimal

from payout_kernel.domain.money import round_money
from payout_kernel.domain.policy import PayoutPolicy


@dataclass(frozen=True)
class FeeBreakdown:
    amount: Decimal
    processing_fee: Decimal
    tds_amount: Decimal
    final_amount: Decimal

    @property
    def total_deductions(self) -> Decimal:
        return self.processing_fee + self.tds_amount


def compute_fees(amount: Decimal, policy: PayoutPolicy) -> FeeBreakdown:
    """
    Compute the fee breakdown for ``amount`` under ``policy``.

    Deterministic: same inputs, same outputs.  A small amount can be
    dominated by the fixed fee floor; ``final_amount`` may then be zero or
    negative, and callers decide whether that is acceptable.
    """
    amount = round_money(amount)
    processing_fee = round_money(
        max(amount * policy.processing_fee_percentage, policy.processing_fee_fixed)
    )
    tds_amount = round_money(amount * policy.tds_percentage)
    return FeeBreakdown(
        amount=amount,
        processing_fee=processing_fee,
        tds_amount=tds_amount,
        final_amount=amount - processing_fee - tds_amount,
    )
