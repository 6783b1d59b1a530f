"""
Notification emission -- fire-and-forget events after a committed transition.

Responsibility:
    Transitions produce ``NotificationEvent`` values into a
    ``NotificationBuffer`` while the unit of work is open.  Once the
    orchestrator has committed, the buffer is drained into a
    ``NotificationEmitter`` through ``dispatch_safely``, which logs and
    swallows every delivery failure.  A rolled-back transition discards its
    buffer, so no event is ever sent for a change that did not happen.

Architecture position:
    Kernel > Services.  Emitters are the seam to external delivery
    (email/SMS/push); the kernel ships a logging emitter, an in-app inbox
    emitter, a recording emitter for tests and a composite.

Failure modes:
    - Emitter exceptions never propagate out of ``dispatch_safely``; they are
      logged at ERROR as ``notification_emit_failed``.
    - NotificationNotFoundError from ``NotificationInbox.mark_read`` when the
      notification does not exist or belongs to another vendor.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Callable, Iterable, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payout_kernel.domain.dtos import NotificationRecord
from payout_kernel.domain.notifications import NotificationEvent
from payout_kernel.exceptions import NotificationNotFoundError
from payout_kernel.logging_config import get_logger
from payout_kernel.models.notification import PayoutNotification
from payout_kernel.services.base import BaseService

logger = get_logger("services.notifications")


class NotificationEmitter(Protocol):
    def emit(self, event: NotificationEvent) -> None: ...


class LoggingNotificationEmitter:
    """Writes each event to the structured log."""

    def emit(self, event: NotificationEvent) -> None:
        logger.info(
            "notification_emitted",
            extra={
                "vendor_id": str(event.vendor_id),
                "payout_id": str(event.payout_id) if event.payout_id else None,
                "notification_type": event.type.value,
                "title": event.title,
            },
        )


class RecordingNotificationEmitter:
    """Keeps emitted events in memory."""

    def __init__(self):
        self.events: list[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


class InAppNotificationEmitter:
    """
    Persists events into the ``payout_notifications`` inbox.

    Each event is written in its own transaction obtained from
    ``scope_factory`` (e.g. ``payout_kernel.db.session_scope``), after the
    payout transaction has committed.
    """

    def __init__(self, scope_factory: Callable[[], AbstractContextManager[Session]]):
        self._scope_factory = scope_factory

    def emit(self, event: NotificationEvent) -> None:
        with self._scope_factory() as session:
            session.add(
                PayoutNotification(
                    vendor_id=event.vendor_id,
                    payout_id=event.payout_id,
                    notification_type=event.type.value,
                    title=event.title,
                    message=event.message,
                    event_metadata=dict(event.metadata),
                    is_read=False,
                    created_at=event.occurred_at,
                )
            )
            session.flush()


class CompositeNotificationEmitter:
    """Fans each event out to several emitters; one failing does not stop the rest."""

    def __init__(self, *emitters: NotificationEmitter):
        self._emitters = emitters

    def emit(self, event: NotificationEvent) -> None:
        for emitter in self._emitters:
            dispatch_safely(emitter, [event])


class NotificationBuffer:
    """Events produced inside the current unit of work."""

    def __init__(self):
        self._events: list[NotificationEvent] = []

    def add(self, event: NotificationEvent) -> None:
        self._events.append(event)

    def drain(self) -> list[NotificationEvent]:
        events, self._events = self._events, []
        return events

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)


def dispatch_safely(emitter: NotificationEmitter, events: Iterable[NotificationEvent]) -> int:
    """
    Emit each event, isolating failures.

    Returns:
        Number of events the emitter accepted.
    """
    delivered = 0
    for event in events:
        try:
            emitter.emit(event)
            delivered += 1
        except Exception:
            logger.error(
                "notification_emit_failed",
                extra={
                    "vendor_id": str(event.vendor_id),
                    "payout_id": str(event.payout_id) if event.payout_id else None,
                    "notification_type": event.type.value,
                    "emitter": type(emitter).__name__,
                },
                exc_info=True,
            )
    return delivered


class NotificationInbox(BaseService[PayoutNotification]):
    """Vendor-facing view over persisted in-app notifications."""

    def list_for_vendor(
        self,
        vendor_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        stmt = (
            select(PayoutNotification)
            .where(PayoutNotification.vendor_id == vendor_id)
            .order_by(PayoutNotification.created_at.desc(), PayoutNotification.id.desc())
            .limit(limit)
        )
        if unread_only:
            stmt = stmt.where(PayoutNotification.is_read.is_(False))
        return [row.to_dto() for row in self.session.scalars(stmt)]

    def mark_read(self, notification_id: UUID, vendor_id: UUID) -> NotificationRecord:
        row = self.session.get(PayoutNotification, notification_id)
        if row is None or row.vendor_id != vendor_id:
            raise NotificationNotFoundError(str(notification_id))
        if not row.is_read:
            row.is_read = True
            row.read_at = self.clock.now()
            self.session.flush()
        return row.to_dto()

    def unread_count(self, vendor_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PayoutNotification.id))
            .where(PayoutNotification.vendor_id == vendor_id)
            .where(PayoutNotification.is_read.is_(False))
        ).scalar_one()
