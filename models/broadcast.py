from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base
from utils.dates import isoformat


BROADCAST_SCHEDULED = "scheduled"
BROADCAST_SENDING = "sending"
BROADCAST_SENT = "sent"


class BroadcastMessage(Base):
    __tablename__ = "broadcast_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_id: Mapped[Optional[str]] = mapped_column(String(64))
    message: Mapped[str] = mapped_column(Text)
    target_group: Mapped[str] = mapped_column(String(30), default="all")

    users_targeted: Mapped[int] = mapped_column(Integer, default=0)
    messages_sent: Mapped[int] = mapped_column(Integer, default=0)
    conversations_created: Mapped[int] = mapped_column(Integer, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, default=0)

    contains_links: Mapped[bool] = mapped_column(Boolean, default=False)
    links: Mapped[Optional[list]] = mapped_column(JSON)  # [{url, position}]

    status: Mapped[str] = mapped_column(String(20), default=BROADCAST_SENDING, index=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "message": self.message,
            "target_group": self.target_group,
            "users_targeted": self.users_targeted,
            "messages_sent": self.messages_sent,
            "conversations_created": self.conversations_created,
            "errors_count": self.errors_count,
            "contains_links": self.contains_links,
            "links": self.links or [],
            "status": self.status,
            "scheduled_at": isoformat(self.scheduled_at),
            "sent_at": isoformat(self.sent_at),
            "created_at": isoformat(self.created_at),
        }


class BroadcastLinkClick(Base):
    """Append-only; aggregated when a broadcast is read."""

    __tablename__ = "broadcast_link_clicks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    broadcast_id: Mapped[int] = mapped_column(
        ForeignKey("broadcast_messages.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    link_url: Mapped[str] = mapped_column(String(1000))
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(255))
    clicked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "link_url": self.link_url,
            "clicked_at": isoformat(self.clicked_at),
        }
