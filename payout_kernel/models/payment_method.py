"""
Module: payout_kernel.models.payment_method
Responsibility: ORM persistence for vendor payout destinations (bank account
    or UPI id).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Clear account numbers and UPI ids are never stored: only a Fernet token,
      a SHA-256 lookup hash and a masked display string.
    - At most one is_default row per vendor (partial unique index).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from payout_kernel.domain.dtos import PaymentMethodRecord


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    __table_args__ = (
        CheckConstraint(
            "method_type IN ('bank_account', 'upi')",
            name="ck_payment_methods_type",
        ),
        CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected')",
            name="ck_payment_methods_verification_status",
        ),
        Index(
            "uq_payment_methods_one_default",
            "vendor_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
        Index("ix_payment_methods_vendor_active", "vendor_id", "is_active"),
        Index("ix_payment_methods_secret_hash", "vendor_id", "secret_hash"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    method_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    account_holder_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # Account number (bank) or UPI id (upi), encrypted
    secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    secret_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    display: Mapped[str] = mapped_column(String(120), nullable=False)
    ifsc_code: Mapped[str | None] = mapped_column(String(11), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    upi_provider: Mapped[str | None] = mapped_column(String(100), nullable=True)

    verification_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<PaymentMethod {self.method_type} {self.display} vendor={self.vendor_id}>"

    def to_dto(self) -> PaymentMethodRecord:
        from payout_kernel.domain.dtos import PaymentMethodRecord
        from payout_kernel.domain.payment_methods import (
            PaymentMethodType,
            VerificationStatus,
        )

        return PaymentMethodRecord(
            id=self.id,
            vendor_id=self.vendor_id,
            method_type=PaymentMethodType(self.method_type),
            verification_status=VerificationStatus(self.verification_status),
            is_default=self.is_default,
            is_active=self.is_active,
            display=self.display,
            created_at=self.created_at,
            account_holder_name=self.account_holder_name,
            ifsc_code=self.ifsc_code,
            bank_name=self.bank_name,
            branch_name=self.branch_name,
            upi_provider=self.upi_provider,
            verification_notes=self.verification_notes,
            verified_at=self.verified_at,
            verified_by=self.verified_by,
        )
