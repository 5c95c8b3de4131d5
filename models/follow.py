from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


FOLLOW_ACTIVE = "active"
FOLLOW_MUTED = "muted"
FOLLOW_UNFOLLOWED = "unfollowed"


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (
        UniqueConstraint("user_id", "business_id", name="uq_follows_user_business"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(20), default=FOLLOW_ACTIVE, index=True)
    notify_new_deals: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_flash_deals: Mapped[bool] = mapped_column(Boolean, default=True)
    followed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
