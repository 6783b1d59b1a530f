"""
Module: payout_kernel.models.payout
Responsibility: ORM persistence for payout requests.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Status values limited by CHECK constraint; transitions are enforced by
      PayoutStateMachine and, once terminal, the row is frozen by the ORM
      listener in db/immutability.py.
    - Never deleted (financial record).
    - requested = processing_fee + tds_amount + final_amount for the amount
      the fees were last computed on (reserved_amount).
    - reserved_amount is what the wallet holds in pending for this payout
      while it is in flight; reject releases it, mark-paid commits it.  The
      value stays on the row afterwards as a record of what was held.

Failure modes:
    - IntegrityError on duplicate reference_code (sequence misuse).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from payout_kernel.domain.dtos import PayoutRecord


class PayoutRequest(Base):
    """Vendor payout request."""

    __tablename__ = "payout_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'processing', 'paid', 'rejected', 'failed')",
            name="ck_payout_requests_valid_status",
        ),
        CheckConstraint("requested_amount > 0", name="ck_payout_requests_positive_amount"),
        CheckConstraint("reserved_amount >= 0", name="ck_payout_requests_reserved_non_negative"),
        Index("ix_payout_requests_vendor_requested", "vendor_id", "requested_at"),
        Index("ix_payout_requests_status_requested", "status", "requested_at"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    payment_method_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payment_methods.id"), nullable=False,
    )
    reference_code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)

    requested_amount: Mapped[Decimal] = mapped_column(nullable=False)
    reserved_amount: Mapped[Decimal] = mapped_column(nullable=False)
    approved_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    processing_fee: Mapped[Decimal] = mapped_column(nullable=False)
    tds_amount: Mapped[Decimal] = mapped_column(nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(nullable=False)
    config_version: Mapped[int | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    processing_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)

    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    processed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<PayoutRequest {self.reference_code} vendor={self.vendor_id} "
            f"{self.requested_amount} status={self.status}>"
        )

    def to_dto(self) -> PayoutRecord:
        from payout_kernel.domain.dtos import PayoutRecord
        from payout_kernel.domain.payout import PayoutStatus

        return PayoutRecord(
            id=self.id,
            vendor_id=self.vendor_id,
            payment_method_id=self.payment_method_id,
            reference_code=self.reference_code,
            requested_amount=self.requested_amount,
            reserved_amount=self.reserved_amount,
            processing_fee=self.processing_fee,
            tds_amount=self.tds_amount,
            final_amount=self.final_amount,
            status=PayoutStatus(self.status),
            requested_at=self.requested_at,
            config_version=self.config_version,
            approved_amount=self.approved_amount,
            transaction_id=self.transaction_id,
            reference_number=self.reference_number,
            rejection_reason=self.rejection_reason,
            vendor_notes=self.vendor_notes,
            admin_notes=self.admin_notes,
            approved_at=self.approved_at,
            processing_at=self.processing_at,
            paid_at=self.paid_at,
            rejected_at=self.rejected_at,
            approved_by=self.approved_by,
            processed_by=self.processed_by,
            paid_by=self.paid_by,
            rejected_by=self.rejected_by,
        )
