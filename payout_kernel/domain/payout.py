"""
Payout lifecycle types (``payout_kernel.domain.payout``).

Responsibility
--------------
The payout request state machine as data: statuses, the actions that move
between them, and the audit action vocabulary.  Zero I/O.

State machine
-------------
::

    pending --approve--> approved --mark_processing--> processing --mark_paid--> paid
       |                    |
       +------reject--------+-----> rejected

``paid``, ``rejected`` and ``failed`` are terminal.  ``failed`` is part of the
vocabulary but no action reaches it, and nothing leaves ``processing``
except ``mark_paid``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from payout_kernel.exceptions import InvalidTransitionError


class PayoutStatus(str, Enum):
    """Payout request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    PAID = "paid"
    REJECTED = "rejected"
    FAILED = "failed"


class PayoutAction(str, Enum):
    """Administrator actions on an existing payout request."""

    APPROVE = "approve"
    REJECT = "reject"
    MARK_PROCESSING = "mark_processing"
    MARK_PAID = "mark_paid"


# action -> (statuses it may start from, resulting status)
ACTION_RULES: dict[PayoutAction, tuple[frozenset[PayoutStatus], PayoutStatus]] = {
    PayoutAction.APPROVE: (
        frozenset({PayoutStatus.PENDING}),
        PayoutStatus.APPROVED,
    ),
    PayoutAction.REJECT: (
        frozenset({PayoutStatus.PENDING, PayoutStatus.APPROVED}),
        PayoutStatus.REJECTED,
    ),
    PayoutAction.MARK_PROCESSING: (
        frozenset({PayoutStatus.APPROVED}),
        PayoutStatus.PROCESSING,
    ),
    PayoutAction.MARK_PAID: (
        frozenset({PayoutStatus.PROCESSING}),
        PayoutStatus.PAID,
    ),
}

PAYOUT_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    status: frozenset(
        target for sources, target in ACTION_RULES.values() if status in sources
    )
    for status in PayoutStatus
}

TERMINAL_PAYOUT_STATUSES: frozenset[PayoutStatus] = frozenset({
    PayoutStatus.PAID,
    PayoutStatus.REJECTED,
    PayoutStatus.FAILED,
})

# Payouts that still hold reserved funds
IN_FLIGHT_PAYOUT_STATUSES: frozenset[PayoutStatus] = frozenset({
    PayoutStatus.PENDING,
    PayoutStatus.APPROVED,
    PayoutStatus.PROCESSING,
})

# Payouts that do not count against daily/monthly caps
LIMIT_EXEMPT_STATUSES: frozenset[PayoutStatus] = frozenset({
    PayoutStatus.REJECTED,
    PayoutStatus.FAILED,
})


def resolve_transition(
    payout_id: UUID | str,
    current: PayoutStatus,
    action: PayoutAction,
) -> PayoutStatus:
    """Return the target status for ``action`` or raise InvalidTransitionError."""
    sources, target = ACTION_RULES[action]
    if current not in sources:
        raise InvalidTransitionError(
            payout_id=str(payout_id),
            current_status=current.value,
            action=action.value,
        )
    return target


class AuditAction(str, Enum):
    """Actions recorded in the payout audit log."""

    CREATED = "created"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    PAID = "paid"
    PAYMENT_METHOD_ADDED = "payment_method_added"
    PAYMENT_METHOD_VERIFIED = "payment_method_verified"
    PAYMENT_METHOD_REJECTED = "payment_method_rejected"
    PAYMENT_METHOD_DEFAULT_SET = "payment_method_default_set"
    PAYMENT_METHOD_DEACTIVATED = "payment_method_deactivated"


ACTION_AUDIT: dict[PayoutAction, AuditAction] = {
    PayoutAction.APPROVE: AuditAction.APPROVED,
    PayoutAction.REJECT: AuditAction.REJECTED,
    PayoutAction.MARK_PROCESSING: AuditAction.PROCESSING,
    PayoutAction.MARK_PAID: AuditAction.PAID,
}


class ActorType(str, Enum):
    VENDOR = "vendor"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Who performs an operation, as supplied by the auth layer.

    The kernel trusts this value and does not re-authenticate it.
    """

    actor_type: ActorType
    actor_id: UUID | None = None

    def __post_init__(self):
        if self.actor_type is not ActorType.SYSTEM and self.actor_id is None:
            raise ValueError(f"{self.actor_type.value} actor requires an actor_id")

    @classmethod
    def vendor(cls, vendor_id: UUID) -> Actor:
        return cls(ActorType.VENDOR, vendor_id)

    @classmethod
    def admin(cls, admin_id: UUID) -> Actor:
        return cls(ActorType.ADMIN, admin_id)

    @classmethod
    def system(cls) -> Actor:
        return cls(ActorType.SYSTEM, None)
