"""
Module: payout_kernel.models.configuration
Responsibility: Versioned payout fee schedules.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Exactly one row has is_active = TRUE (partial unique index guarantees
      "at most one"; ConfigurationService guarantees "at least one" after
      seeding).
    - Rows are never deleted; activation deactivates the previous row and
      inserts a new version, so fee schedule history is preserved.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base, UUIDString
from payout_kernel.db.types import RATE

if TYPE_CHECKING:
    from payout_kernel.domain.policy import PayoutPolicy


class PayoutConfiguration(Base):
    __tablename__ = "payout_configurations"

    __table_args__ = (
        Index(
            "uq_payout_configurations_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    version: Mapped[int] = mapped_column(nullable=False, unique=True)
    min_payout_amount: Mapped[Decimal] = mapped_column(nullable=False)
    max_payout_amount: Mapped[Decimal] = mapped_column(nullable=False)
    daily_payout_limit: Mapped[Decimal] = mapped_column(nullable=False)
    monthly_payout_limit: Mapped[Decimal] = mapped_column(nullable=False)
    processing_fee_percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    processing_fee_fixed: Mapped[Decimal] = mapped_column(nullable=False)
    tds_percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    auto_approval_limit: Mapped[Decimal] = mapped_column(nullable=False)
    policy_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<PayoutConfiguration v{self.version} active={self.is_active}>"

    def to_policy(self) -> PayoutPolicy:
        from payout_kernel.domain.policy import PayoutPolicy

        return PayoutPolicy(
            min_payout_amount=self.min_payout_amount,
            max_payout_amount=self.max_payout_amount,
            daily_payout_limit=self.daily_payout_limit,
            monthly_payout_limit=self.monthly_payout_limit,
            processing_fee_percentage=self.processing_fee_percentage,
            processing_fee_fixed=self.processing_fee_fixed,
            tds_percentage=self.tds_percentage,
            auto_approval_limit=self.auto_approval_limit,
            version=self.version,
        )
