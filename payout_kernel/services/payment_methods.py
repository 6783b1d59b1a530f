"""
PaymentMethodService -- vendor payout destinations (bank account or UPI).

Responsibility:
    The payment-method store consumed by the payout state machine: add,
    look up, list, set default, deactivate, and the admin verification
    decision.  Sensitive values (account number, UPI id) are stored only as
    a Fernet token, a SHA-256 hash for duplicate matching, and a masked
    display string.

Architecture position:
    Kernel > Services.  Writes audit entries through AuditLog and buffers
    notification events; the orchestrator owns commit and dispatch.

Invariants enforced:
    - At most one default method per vendor: existing defaults are cleared
      and flushed before a new default is set (the partial unique index is
      the backstop).
    - A method is only visible to the vendor that owns it; a method owned by
      another vendor is reported as not found.
    - Only ``verified`` or ``rejected`` are valid verification decisions.

Failure modes:
    - InvalidPaymentMethodDetailsError: malformed IFSC, account number or
      UPI id, or the same destination added twice.
    - PaymentMethodNotFoundError
    - EncryptionError: no encryption key configured.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payout_kernel.domain import notifications as events
from payout_kernel.domain.clock import Clock
from payout_kernel.domain.dtos import PaymentMethodRecord
from payout_kernel.domain.payment_methods import (
    BankAccountDetails,
    PaymentMethodType,
    UpiDetails,
    VerificationStatus,
    mask_account_number,
    mask_upi_id,
    normalize_bank_account,
    normalize_upi,
)
from payout_kernel.domain.payout import Actor, AuditAction
from payout_kernel.exceptions import (
    EncryptionError,
    InvalidPaymentMethodDetailsError,
    PaymentMethodNotFoundError,
    PayoutValidationError,
)
from payout_kernel.logging_config import get_logger
from payout_kernel.models.payment_method import PaymentMethod
from payout_kernel.services.audit_log import AuditLog
from payout_kernel.services.base import BaseService
from payout_kernel.services.notifications import NotificationBuffer
from payout_kernel.utils.crypto import SensitiveDataCipher
from payout_kernel.utils.hashing import hash_sensitive

logger = get_logger("services.payment_methods")


class PaymentMethodService(BaseService[PaymentMethod]):
    """
    Contract:
        Every mutation flushes within the caller's transaction, writes one
        audit entry, and returns a masked ``PaymentMethodRecord``.

    Non-goals:
        - Does NOT verify the account with a bank; verification is an admin
          decision recorded here.
    """

    def __init__(
        self,
        session: Session,
        audit_log: AuditLog,
        clock: Clock | None = None,
        cipher: SensitiveDataCipher | None = None,
        notifications: NotificationBuffer | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit_log
        self._cipher = cipher
        self._notifications = notifications if notifications is not None else NotificationBuffer()

    # =========================================================================
    # Store
    # =========================================================================

    def add_payment_method(
        self,
        vendor_id: UUID,
        details: BankAccountDetails | UpiDetails,
        is_default: bool = False,
        actor: Actor | None = None,
    ) -> PaymentMethodRecord:
        """
        Validate, encrypt and store a new destination in ``pending`` status.

        The first method a vendor adds becomes the default.
        """
        if self._cipher is None:
            raise EncryptionError("Payment data encryption key is not configured")
        actor = actor or Actor.vendor(vendor_id)

        if isinstance(details, BankAccountDetails):
            details = normalize_bank_account(details)
            method_type = PaymentMethodType.BANK_ACCOUNT
            secret = details.account_number
            display = f"{details.bank_name} {mask_account_number(secret)}"
        elif isinstance(details, UpiDetails):
            details = normalize_upi(details)
            method_type = PaymentMethodType.UPI
            secret = details.upi_id
            display = mask_upi_id(secret)
        else:
            raise InvalidPaymentMethodDetailsError(
                f"Unsupported payment method details: {type(details).__name__}",
                field="method_type",
            )

        secret_hash = hash_sensitive(secret)
        duplicate = self.session.execute(
            select(PaymentMethod.id)
            .where(PaymentMethod.vendor_id == vendor_id)
            .where(PaymentMethod.secret_hash == secret_hash)
            .where(PaymentMethod.is_active.is_(True))
        ).first()
        if duplicate is not None:
            raise InvalidPaymentMethodDetailsError(
                "This payment method has already been added",
                field="account_number" if method_type is PaymentMethodType.BANK_ACCOUNT else "upi_id",
            )

        has_methods = self.session.execute(
            select(PaymentMethod.id)
            .where(PaymentMethod.vendor_id == vendor_id)
            .where(PaymentMethod.is_active.is_(True))
        ).first() is not None
        make_default = is_default or not has_methods
        if make_default:
            self._clear_defaults(vendor_id)

        now = self.clock.now()
        method = PaymentMethod(
            vendor_id=vendor_id,
            method_type=method_type.value,
            is_default=make_default,
            is_active=True,
            account_holder_name=details.account_holder_name,
            secret_encrypted=self._cipher.encrypt(secret),
            secret_hash=secret_hash,
            display=display,
            verification_status=VerificationStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        if isinstance(details, BankAccountDetails):
            method.ifsc_code = details.ifsc_code
            method.bank_name = details.bank_name
            method.branch_name = details.branch_name
        else:
            method.upi_provider = details.upi_provider
        self.session.add(method)
        self.session.flush()

        self._audit.record_payment_method(
            method,
            AuditAction.PAYMENT_METHOD_ADDED,
            actor,
            new_status=method.verification_status,
        )
        record = method.to_dto()
        self._notifications.add(events.payment_method_added(record, now))

        logger.info(
            "payment_method_added",
            extra={
                "vendor_id": str(vendor_id),
                "payment_method_id": str(method.id),
                "method_type": method_type.value,
                "is_default": make_default,
            },
        )
        return record

    def get_payment_method(self, payment_method_id: UUID, vendor_id: UUID) -> PaymentMethodRecord:
        """Return the vendor's method or raise PaymentMethodNotFoundError."""
        return self._load(payment_method_id, vendor_id).to_dto()

    def list_payment_methods(
        self, vendor_id: UUID, include_inactive: bool = False,
    ) -> list[PaymentMethodRecord]:
        """Masked methods, default first then newest first."""
        stmt = (
            select(PaymentMethod)
            .where(PaymentMethod.vendor_id == vendor_id)
            .order_by(PaymentMethod.is_default.desc(), PaymentMethod.created_at.desc())
        )
        if not include_inactive:
            stmt = stmt.where(PaymentMethod.is_active.is_(True))
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def set_default(
        self, payment_method_id: UUID, vendor_id: UUID, actor: Actor | None = None,
    ) -> PaymentMethodRecord:
        method = self._load(payment_method_id, vendor_id, lock=True)
        if not method.is_active:
            raise PayoutValidationError(
                "An inactive payment method cannot be the default",
                field="payment_method_id",
            )
        if not method.is_default:
            self._clear_defaults(vendor_id)
            method.is_default = True
            method.updated_at = self.clock.now()
            self.session.flush()
            self._audit.record_payment_method(
                method, AuditAction.PAYMENT_METHOD_DEFAULT_SET, actor or Actor.vendor(vendor_id),
            )
            logger.info(
                "payment_method_default_set",
                extra={"vendor_id": str(vendor_id), "payment_method_id": str(method.id)},
            )
        return method.to_dto()

    def deactivate(
        self, payment_method_id: UUID, vendor_id: UUID, actor: Actor | None = None,
    ) -> PaymentMethodRecord:
        """Hide the method from payout requests; it is kept for history."""
        method = self._load(payment_method_id, vendor_id, lock=True)
        if method.is_active:
            method.is_active = False
            method.is_default = False
            method.updated_at = self.clock.now()
            self.session.flush()
            self._audit.record_payment_method(
                method, AuditAction.PAYMENT_METHOD_DEACTIVATED, actor or Actor.vendor(vendor_id),
            )
            logger.info(
                "payment_method_deactivated",
                extra={"vendor_id": str(vendor_id), "payment_method_id": str(method.id)},
            )
        return method.to_dto()

    # =========================================================================
    # Admin verification
    # =========================================================================

    def verify_payment_method(
        self,
        payment_method_id: UUID,
        status: VerificationStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> PaymentMethodRecord:
        """Record an admin's verification decision (verified or rejected)."""
        status = VerificationStatus(status)
        if status is VerificationStatus.PENDING:
            raise PayoutValidationError(
                "Verification status must be verified or rejected", field="status",
            )
        method = self.session.execute(
            select(PaymentMethod)
            .where(PaymentMethod.id == payment_method_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if method is None:
            raise PaymentMethodNotFoundError(str(payment_method_id))

        old_status = method.verification_status
        now = self.clock.now()
        method.verification_status = status.value
        method.verification_notes = notes
        method.verified_by = actor.actor_id
        method.verified_at = now
        method.updated_at = now
        self.session.flush()

        action = (
            AuditAction.PAYMENT_METHOD_VERIFIED
            if status is VerificationStatus.VERIFIED
            else AuditAction.PAYMENT_METHOD_REJECTED
        )
        self._audit.record_payment_method(
            method, action, actor, notes=notes, old_status=old_status, new_status=status.value,
        )
        record = method.to_dto()
        self._notifications.add(events.payment_method_reviewed(record, now))

        logger.info(
            "payment_method_reviewed",
            extra={
                "vendor_id": str(method.vendor_id),
                "payment_method_id": str(method.id),
                "old_status": old_status,
                "new_status": status.value,
            },
        )
        return record

    def reveal_secret(self, payment_method_id: UUID) -> str:
        """Decrypted account number or UPI id, for the payout operator."""
        if self._cipher is None:
            raise EncryptionError("Payment data encryption key is not configured")
        method = self.session.get(PaymentMethod, payment_method_id)
        if method is None:
            raise PaymentMethodNotFoundError(str(payment_method_id))
        logger.info(
            "payment_method_secret_revealed",
            extra={"vendor_id": str(method.vendor_id), "payment_method_id": str(method.id)},
        )
        return self._cipher.decrypt(method.secret_encrypted)

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, payment_method_id: UUID, vendor_id: UUID, lock: bool = False) -> PaymentMethod:
        stmt = select(PaymentMethod).where(PaymentMethod.id == payment_method_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        method = self.session.execute(stmt).scalar_one_or_none()
        if method is None or method.vendor_id != vendor_id:
            raise PaymentMethodNotFoundError(str(payment_method_id), str(vendor_id))
        return method

    def _clear_defaults(self, vendor_id: UUID) -> None:
        current = self.session.scalars(
            select(PaymentMethod)
            .where(PaymentMethod.vendor_id == vendor_id)
            .where(PaymentMethod.is_default.is_(True))
            .with_for_update()
        ).all()
        for method in current:
            method.is_default = False
            method.updated_at = self.clock.now()
        if current:
            self.session.flush()
