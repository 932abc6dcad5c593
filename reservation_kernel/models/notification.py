"""
Module: reservation_kernel.models.notification
Responsibility: The SQL notification outbox.  Rows are written after the
    state change they describe has committed and are drained by an external
    dispatcher.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from reservation_kernel.db.base import Base, UUIDString


class NotificationModel(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_user_status", "user_id", "status"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    type: Mapped[str] = mapped_column(String(60), nullable=False)
    channel: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Notification {self.type} to {self.user_id} status={self.status}>"
