"""
Module: payout_kernel.selectors.audit_selector
Responsibility: Read-only audit history by payout or by vendor, newest
    first.  Ordering uses the per-vendor ``seq``, not ``created_at``, so two
    entries written in the same instant still come back in a fixed order.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from payout_kernel.domain.dtos import AuditRecord
from payout_kernel.models.audit_log import AuditLogEntry
from payout_kernel.selectors.base import BaseSelector


class AuditSelector(BaseSelector[AuditLogEntry]):

    def for_payout(self, payout_id: UUID) -> list[AuditRecord]:
        rows = self.session.scalars(
            select(AuditLogEntry)
            .where(AuditLogEntry.payout_id == payout_id)
            .order_by(AuditLogEntry.seq.desc())
        )
        return [row.to_dto() for row in rows]

    def for_payment_method(self, payment_method_id: UUID) -> list[AuditRecord]:
        rows = self.session.scalars(
            select(AuditLogEntry)
            .where(AuditLogEntry.payment_method_id == payment_method_id)
            .order_by(AuditLogEntry.seq.desc())
        )
        return [row.to_dto() for row in rows]

    def for_vendor(self, vendor_id: UUID, limit: int = 100, offset: int = 0) -> list[AuditRecord]:
        rows = self.session.scalars(
            select(AuditLogEntry)
            .where(AuditLogEntry.vendor_id == vendor_id)
            .order_by(AuditLogEntry.seq.desc())
            .limit(limit)
            .offset(offset)
        )
        return [row.to_dto() for row in rows]
