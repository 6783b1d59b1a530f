"""
Limit evaluation (``payout_kernel.domain.limits``).

Pure half of the Limit Checker.  Windows are UTC calendar periods: the day
``[00:00, 24:00)`` and the month from the 1st at 00:00 to the 1st of the next
month.  The caller supplies how much of each window is already used.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from payout_kernel.domain.policy import PayoutPolicy


def day_window(now: datetime) -> tuple[datetime, datetime]:
    """UTC calendar day containing ``now`` as a half-open interval."""
    now = now.astimezone(timezone.utc)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def month_window(now: datetime) -> tuple[datetime, datetime]:
    """UTC calendar month containing ``now`` as a half-open interval."""
    now = now.astimezone(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


@dataclass(frozen=True)
class LimitUsage:
    limit: Decimal
    used: Decimal

    @property
    def remaining(self) -> Decimal:
        return max(self.limit - self.used, Decimal("0.00"))

    def allows(self, amount: Decimal) -> bool:
        return self.used + amount <= self.limit


@dataclass(frozen=True)
class LimitEvaluation:
    amount: Decimal
    daily: LimitUsage
    monthly: LimitUsage

    @property
    def daily_ok(self) -> bool:
        return self.daily.allows(self.amount)

    @property
    def monthly_ok(self) -> bool:
        return self.monthly.allows(self.amount)

    @property
    def can_proceed(self) -> bool:
        return self.daily_ok and self.monthly_ok


def evaluate_limits(
    amount: Decimal,
    daily_used: Decimal,
    monthly_used: Decimal,
    policy: PayoutPolicy,
) -> LimitEvaluation:
    """Compare ``amount`` against what is left of each cap.

    Reaching a cap exactly is allowed; only exceeding it fails.
    """
    return LimitEvaluation(
        amount=amount,
        daily=LimitUsage(limit=policy.daily_payout_limit, used=daily_used),
        monthly=LimitUsage(limit=policy.monthly_payout_limit, used=monthly_used),
    )
