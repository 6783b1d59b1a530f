"""
Module: payout_kernel.models.notification
Responsibility: In-app notification inbox rows written by
    InAppNotificationEmitter.  Only is_read / read_at ever change.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payout_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from payout_kernel.domain.dtos import NotificationRecord


class PayoutNotification(Base):
    __tablename__ = "payout_notifications"

    __table_args__ = (
        Index("ix_payout_notifications_vendor_created", "vendor_id", "created_at"),
    )

    vendor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # No FK: rows are written in their own transaction, possibly before the
    # payout commit is visible to this connection.
    payout_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    event_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> NotificationRecord:
        from payout_kernel.domain.dtos import NotificationRecord
        from payout_kernel.domain.notifications import NotificationType

        return NotificationRecord(
            id=self.id,
            vendor_id=self.vendor_id,
            notification_type=NotificationType(self.notification_type),
            title=self.title,
            message=self.message,
            is_read=self.is_read,
            created_at=self.created_at,
            payout_id=self.payout_id,
            metadata=self.event_metadata,
            read_at=self.read_at,
        )
