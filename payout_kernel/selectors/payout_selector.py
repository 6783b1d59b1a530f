"""
Module: payout_kernel.selectors.payout_selector
Responsibility: Read-only payout queries for vendors, the admin queue and
    reporting/export consumers: single payout, vendor history with status
    filter and pagination, queue by status, date-range report with summary,
    and dashboard statistics over a trailing window.
Architecture position: Kernel > Selectors.

Failure modes:
    - PayoutNotFoundError from ``get`` (and from ``get_for_vendor`` when the
      payout belongs to another vendor).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from payout_kernel.domain.dtos import PayoutRecord
from payout_kernel.domain.money import ZERO
from payout_kernel.domain.payout import PayoutStatus
from payout_kernel.exceptions import PayoutNotFoundError
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PayoutPage:
    items: list[PayoutRecord]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.total else 0


@dataclass(frozen=True)
class PayoutReportSummary:
    count: int
    total_requested: Decimal
    total_paid: Decimal
    status_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PayoutReport:
    start: datetime
    end: datetime
    items: list[PayoutRecord]
    summary: PayoutReportSummary


@dataclass(frozen=True)
class DashboardStats:
    """Admin dashboard counters for payouts requested in the window."""

    window_start: datetime
    window_end: datetime
    total_count: int
    total_requested: Decimal
    pending_count: int
    pending_amount: Decimal
    approved_count: int
    processing_count: int
    paid_count: int
    paid_amount: Decimal
    rejected_count: int


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


class PayoutSelector(BaseSelector[PayoutRequest]):
    """
    Contract:
        Read-only; returns PayoutRecord DTOs.  Vendor-facing lists are
        newest first; the admin queue is oldest first (first come, first
        served).
    """

    def get(self, payout_id: UUID) -> PayoutRecord:
        payout = self.session.get(PayoutRequest, payout_id)
        if payout is None:
            raise PayoutNotFoundError(str(payout_id))
        return payout.to_dto()

    def get_for_vendor(self, payout_id: UUID, vendor_id: UUID) -> PayoutRecord:
        payout = self.session.get(PayoutRequest, payout_id)
        if payout is None or payout.vendor_id != vendor_id:
            raise PayoutNotFoundError(str(payout_id))
        return payout.to_dto()

    def vendor_history(
        self,
        vendor_id: UUID,
        status: PayoutStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PayoutPage:
        page = max(page, 1)
        conditions = [PayoutRequest.vendor_id == vendor_id]
        if status is not None:
            conditions.append(PayoutRequest.status == PayoutStatus(status).value)

        total = self.session.execute(
            select(func.count(PayoutRequest.id)).where(*conditions)
        ).scalar_one()
        rows = self.session.scalars(
            select(PayoutRequest)
            .where(*conditions)
            .order_by(PayoutRequest.requested_at.desc(), PayoutRequest.reference_code.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return PayoutPage(
            items=[row.to_dto() for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    def queue(
        self, status: PayoutStatus = PayoutStatus.PENDING, limit: int = 100,
    ) -> list[PayoutRecord]:
        rows = self.session.scalars(
            select(PayoutRequest)
            .where(PayoutRequest.status == PayoutStatus(status).value)
            .order_by(PayoutRequest.requested_at, PayoutRequest.reference_code)
            .limit(limit)
        )
        return [row.to_dto() for row in rows]

    def report(
        self,
        start: datetime,
        end: datetime,
        vendor_id: UUID | None = None,
        status: PayoutStatus | None = None,
    ) -> PayoutReport:
        """Payouts requested in ``[start, end)`` with totals for export."""
        conditions = [PayoutRequest.requested_at >= start, PayoutRequest.requested_at < end]
        if vendor_id is not None:
            conditions.append(PayoutRequest.vendor_id == vendor_id)
        if status is not None:
            conditions.append(PayoutRequest.status == PayoutStatus(status).value)

        items = [
            row.to_dto()
            for row in self.session.scalars(
                select(PayoutRequest).where(*conditions).order_by(PayoutRequest.requested_at)
            )
        ]
        breakdown: dict[str, int] = {}
        total_requested = ZERO
        total_paid = ZERO
        for item in items:
            breakdown[item.status.value] = breakdown.get(item.status.value, 0) + 1
            total_requested += item.requested_amount
            if item.status is PayoutStatus.PAID:
                total_paid += item.final_amount

        return PayoutReport(
            start=start,
            end=end,
            items=items,
            summary=PayoutReportSummary(
                count=len(items),
                total_requested=total_requested,
                total_paid=total_paid,
                status_breakdown=breakdown,
            ),
        )

    def dashboard_stats(self, now: datetime, days: int = 30) -> DashboardStats:
        start = now - timedelta(days=days)
        rows = self.session.execute(
            select(
                PayoutRequest.status,
                func.count(PayoutRequest.id),
                func.coalesce(func.sum(PayoutRequest.requested_amount), 0),
                func.coalesce(func.sum(PayoutRequest.final_amount), 0),
            )
            .where(PayoutRequest.requested_at >= start)
            .where(PayoutRequest.requested_at <= now)
            .group_by(PayoutRequest.status)
        ).all()

        by_status = {
            status: (n, _money(requested), _money(final))
            for status, n, requested, final in rows
        }

        def count(status: PayoutStatus) -> int:
            return by_status.get(status.value, (0, ZERO, ZERO))[0]

        return DashboardStats(
            window_start=start,
            window_end=now,
            total_count=sum(c for c, _, _ in by_status.values()),
            total_requested=sum((r for _, r, _ in by_status.values()), ZERO),
            pending_count=count(PayoutStatus.PENDING),
            pending_amount=by_status.get(PayoutStatus.PENDING.value, (0, ZERO, ZERO))[1],
            approved_count=count(PayoutStatus.APPROVED),
            processing_count=count(PayoutStatus.PROCESSING),
            paid_count=count(PayoutStatus.PAID),
            paid_amount=by_status.get(PayoutStatus.PAID.value, (0, ZERO, ZERO))[2],
            rejected_count=count(PayoutStatus.REJECTED),
        )
