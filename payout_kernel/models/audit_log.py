"""
Module: payout_kernel.models.audit_log
Responsibility: Append-only audit trail of payout transitions and
    payment-method events.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Rows are immutable from creation (db/immutability.py).
    - Per-vendor seq is strictly monotonic (UNIQUE vendor_id, seq), giving a
      deterministic newest-first order even when created_at ties.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from payout_kernel.domain.dtos import AuditRecord


class AuditLogEntry(Base):
    __tablename__ = "payout_audit_logs"

    __table_args__ = (
        UniqueConstraint("vendor_id", "seq", name="uq_payout_audit_logs_vendor_seq"),
        CheckConstraint(
            "performed_by_type IN ('vendor', 'admin', 'system')",
            name="ck_payout_audit_logs_actor_type",
        ),
        Index("ix_payout_audit_logs_payout", "payout_id", "seq"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(nullable=False)
    payout_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payout_requests.id"), nullable=True,
    )
    payment_method_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payment_methods.id"), nullable=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    performed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    performed_by_type: Mapped[str] = mapped_column(String(10), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogEntry vendor={self.vendor_id} seq={self.seq} {self.action}>"

    def to_dto(self) -> AuditRecord:
        from payout_kernel.domain.dtos import AuditRecord
        from payout_kernel.domain.payout import ActorType

        return AuditRecord(
            id=self.id,
            vendor_id=self.vendor_id,
            seq=self.seq,
            action=self.action,
            performed_by_type=ActorType(self.performed_by_type),
            created_at=self.created_at,
            payout_id=self.payout_id,
            payment_method_id=self.payment_method_id,
            old_status=self.old_status,
            new_status=self.new_status,
            performed_by=self.performed_by,
            notes=self.notes,
            payload=self.payload,
        )
