"""
Module: payout_kernel.selectors.payment_method_selector
Responsibility: Read-only payment method queries for the admin verification
    queue.  Records are masked; clear account data is only available through
    PaymentMethodService.reveal_secret.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass

from sqlalchemy import func, select

from payout_kernel.domain.dtos import PaymentMethodRecord
from payout_kernel.domain.payment_methods import VerificationStatus
from payout_kernel.models.payment_method import PaymentMethod
from payout_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PaymentMethodPage:
    items: list[PaymentMethodRecord]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.total else 0


class PaymentMethodSelector(BaseSelector[PaymentMethod]):

    def pending_verification(self, page: int = 1, page_size: int = 20) -> PaymentMethodPage:
        """Active methods awaiting an admin decision, oldest first."""
        page = max(page, 1)
        conditions = [
            PaymentMethod.is_active.is_(True),
            PaymentMethod.verification_status == VerificationStatus.PENDING.value,
        ]

        total = self.session.execute(
            select(func.count(PaymentMethod.id)).where(*conditions)
        ).scalar_one()
        rows = self.session.scalars(
            select(PaymentMethod)
            .where(*conditions)
            .order_by(PaymentMethod.created_at, PaymentMethod.id)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return PaymentMethodPage(
            items=[row.to_dto() for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )
