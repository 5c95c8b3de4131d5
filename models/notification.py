# =============================================================================
# 🔔 models/notification.py
# -----------------------------------------------------------------------------
# Durable in-app notification history. Written for every recipient before any
# push delivery is attempted.
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base
from utils.dates import isoformat


NOTIFICATION_NEW_DEAL = "new_deal"
NOTIFICATION_FLASH_DEAL = "flash_deal"
NOTIFICATION_DEAL_EXPIRING_SOON = "deal_expiring_soon"
NOTIFICATION_NEW_FOLLOWER = "new_follower"
NOTIFICATION_NEW_MESSAGE = "new_message"
NOTIFICATION_DEAL_REDEEMED = "deal_redeemed"
NOTIFICATION_SYSTEM = "system"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(40), index=True)
    title: Mapped[str] = mapped_column(String(255))
    body: Mapped[str] = mapped_column(Text)
    data: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    action_url: Mapped[Optional[str]] = mapped_column(String(500))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "data": self.data or {},
            "image_url": self.image_url,
            "action_url": self.action_url,
            "is_read": self.is_read,
            "read_at": isoformat(self.read_at),
            "sent_at": isoformat(self.sent_at),
        }
