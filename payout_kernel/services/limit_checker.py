"""
LimitChecker -- daily and monthly payout caps per vendor.

Responsibility:
    Sums the vendor's payout requests in the current UTC day and month and
    refuses a new request that would push either sum past the active
    policy's cap.

Architecture position:
    Kernel > Services.  Called by PayoutStateMachine.request_payout after
    the wallet row is locked and before funds are reserved, so a refused
    request never reserves anything and two racing requests from the same
    vendor see each other's rows.

Invariants enforced:
    - Every payout counts at its ``requested_amount`` unless its status is
      rejected or failed.
    - Windows are UTC calendar periods (domain/limits.py).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from payout_kernel.domain.limits import LimitEvaluation, day_window, evaluate_limits, month_window
from payout_kernel.domain.payout import LIMIT_EXEMPT_STATUSES
from payout_kernel.domain.policy import PayoutPolicy
from payout_kernel.exceptions import DailyLimitExceededError, MonthlyLimitExceededError
from payout_kernel.logging_config import get_logger
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.services.base import BaseService

logger = get_logger("services.limit_checker")


class LimitChecker(BaseService[PayoutRequest]):

    def used_between(self, vendor_id: UUID, start: datetime, end: datetime) -> Decimal:
        """Total requested in ``[start, end)`` excluding rejected/failed payouts."""
        total = self.session.execute(
            select(func.coalesce(func.sum(PayoutRequest.requested_amount), 0))
            .where(PayoutRequest.vendor_id == vendor_id)
            .where(PayoutRequest.status.not_in([s.value for s in LIMIT_EXEMPT_STATUSES]))
            .where(PayoutRequest.requested_at >= start)
            .where(PayoutRequest.requested_at < end)
        ).scalar_one()
        return Decimal(str(total)).quantize(Decimal("0.01"))

    def usage(self, vendor_id: UUID, amount: Decimal, policy: PayoutPolicy) -> LimitEvaluation:
        now = self.clock.now()
        day_start, day_end = day_window(now)
        month_start, month_end = month_window(now)
        return evaluate_limits(
            amount,
            daily_used=self.used_between(vendor_id, day_start, day_end),
            monthly_used=self.used_between(vendor_id, month_start, month_end),
            policy=policy,
        )

    def check(self, vendor_id: UUID, amount: Decimal, policy: PayoutPolicy) -> LimitEvaluation:
        """
        Raise if ``amount`` does not fit in today's or this month's cap.

        Raises:
            DailyLimitExceededError: checked first.
            MonthlyLimitExceededError
        """
        evaluation = self.usage(vendor_id, amount, policy)
        if not evaluation.daily_ok:
            logger.info(
                "daily_limit_exceeded",
                extra={
                    "vendor_id": str(vendor_id),
                    "limit": str(evaluation.daily.limit),
                    "used": str(evaluation.daily.used),
                    "requested": str(amount),
                },
            )
            raise DailyLimitExceededError(
                str(vendor_id), evaluation.daily.limit, evaluation.daily.used, amount,
            )
        if not evaluation.monthly_ok:
            logger.info(
                "monthly_limit_exceeded",
                extra={
                    "vendor_id": str(vendor_id),
                    "limit": str(evaluation.monthly.limit),
                    "used": str(evaluation.monthly.used),
                    "requested": str(amount),
                },
            )
            raise MonthlyLimitExceededError(
                str(vendor_id), evaluation.monthly.limit, evaluation.monthly.used, amount,
            )
        return evaluation
