"""
AuditLog -- append-only record of payout transitions and payment-method events.

Responsibility:
    Writes one ``AuditLogEntry`` per payout transition, per payment-method
    creation and per verification decision, inside the caller's transaction
    so the audit row and the business mutation commit together.

Architecture position:
    Kernel > Services.  No update or delete operation exists; the ORM
    listeners in db/immutability.py reject any attempt made elsewhere.

Invariants enforced:
    - Per-vendor ``seq`` (SequenceService) gives a deterministic newest-first
      order even when two entries share a timestamp.
    - Actor identity (id and type) is recorded as supplied by the caller.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from payout_kernel.domain.clock import Clock
from payout_kernel.domain.dtos import AuditRecord
from payout_kernel.domain.payout import Actor, AuditAction
from payout_kernel.logging_config import get_logger
from payout_kernel.models.audit_log import AuditLogEntry
from payout_kernel.models.payment_method import PaymentMethod
from payout_kernel.models.payout import PayoutRequest
from payout_kernel.services.base import BaseService
from payout_kernel.services.sequence_service import SequenceService, audit_sequence

logger = get_logger("services.audit_log")


class AuditLog(BaseService[AuditLogEntry]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    def record_payout(
        self,
        payout: PayoutRequest,
        action: AuditAction,
        actor: Actor,
        old_status: str | None,
        new_status: str | None,
        notes: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditRecord:
        return self._append(
            vendor_id=payout.vendor_id,
            action=action,
            actor=actor,
            payout_id=payout.id,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
            payload=payload,
        )

    def record_payment_method(
        self,
        method: PaymentMethod,
        action: AuditAction,
        actor: Actor,
        notes: str | None = None,
        old_status: str | None = None,
        new_status: str | None = None,
    ) -> AuditRecord:
        return self._append(
            vendor_id=method.vendor_id,
            action=action,
            actor=actor,
            payment_method_id=method.id,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
            payload={"method_type": method.method_type, "display": method.display},
        )

    def _append(
        self,
        vendor_id: UUID,
        action: AuditAction,
        actor: Actor,
        payout_id: UUID | None = None,
        payment_method_id: UUID | None = None,
        old_status: str | None = None,
        new_status: str | None = None,
        notes: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditRecord:
        entry = AuditLogEntry(
            vendor_id=vendor_id,
            seq=self._sequences.next_value(audit_sequence(vendor_id)),
            payout_id=payout_id,
            payment_method_id=payment_method_id,
            action=action.value,
            old_status=old_status,
            new_status=new_status,
            performed_by=actor.actor_id,
            performed_by_type=actor.actor_type.value,
            notes=notes,
            payload=payload,
            created_at=self.clock.now(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_recorded",
            extra={
                "vendor_id": str(vendor_id),
                "action": action.value,
                "seq": entry.seq,
                "old_status": old_status,
                "new_status": new_status,
                "performed_by_type": actor.actor_type.value,
            },
        )
        return entry.to_dto()
