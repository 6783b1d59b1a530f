"""Unit tests for limit windows and cap evaluation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from payout_kernel.domain.limits import day_window, evaluate_limits, month_window
from payout_kernel.domain.policy import PayoutPolicy

UTC = timezone.utc

POLICY = PayoutPolicy(
    min_payout_amount=Decimal("100.00"),
    max_payout_amount=Decimal("100000.00"),
    daily_payout_limit=Decimal("10000.00"),
    monthly_payout_limit=Decimal("50000.00"),
    processing_fee_percentage=Decimal("0.005"),
    processing_fee_fixed=Decimal("5.00"),
    tds_percentage=Decimal("0.01"),
    auto_approval_limit=Decimal("5000.00"),
)


class TestWindows:

    def test_day_window_is_utc_calendar_day(self):
        start, end = day_window(datetime(2024, 3, 10, 17, 45, tzinfo=UTC))
        assert start == datetime(2024, 3, 10, tzinfo=UTC)
        assert end == datetime(2024, 3, 11, tzinfo=UTC)

    def test_day_window_converts_other_zones(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        # 02:00 IST on the 11th is 20:30 UTC on the 10th
        start, _ = day_window(datetime(2024, 3, 11, 2, 0, tzinfo=ist))
        assert start == datetime(2024, 3, 10, tzinfo=UTC)

    def test_month_window(self):
        start, end = month_window(datetime(2024, 2, 29, 23, 59, tzinfo=UTC))
        assert start == datetime(2024, 2, 1, tzinfo=UTC)
        assert end == datetime(2024, 3, 1, tzinfo=UTC)

    def test_month_window_december_rolls_year(self):
        start, end = month_window(datetime(2024, 12, 31, 12, tzinfo=UTC))
        assert start == datetime(2024, 12, 1, tzinfo=UTC)
        assert end == datetime(2025, 1, 1, tzinfo=UTC)


class TestEvaluateLimits:

    def test_reaching_cap_exactly_is_allowed(self):
        evaluation = evaluate_limits(Decimal("500.00"), Decimal("9500.00"), Decimal("9500.00"), POLICY)
        assert evaluation.daily_ok
        assert evaluation.can_proceed
        assert evaluation.daily.remaining == Decimal("500.00")

    def test_exceeding_daily_cap(self):
        evaluation = evaluate_limits(Decimal("600.00"), Decimal("9500.00"), Decimal("9500.00"), POLICY)
        assert not evaluation.daily_ok
        assert evaluation.monthly_ok
        assert not evaluation.can_proceed

    def test_exceeding_monthly_cap(self):
        evaluation = evaluate_limits(Decimal("1000.00"), Decimal("0.00"), Decimal("49500.00"), POLICY)
        assert evaluation.daily_ok
        assert not evaluation.monthly_ok

    @pytest.mark.parametrize("used", ["10000.00", "12000.00"])
    def test_remaining_never_negative(self, used):
        evaluation = evaluate_limits(Decimal("1.00"), Decimal(used), Decimal(used), POLICY)
        assert evaluation.daily.remaining == Decimal("0.00")
