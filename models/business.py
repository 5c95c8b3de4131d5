from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base

if TYPE_CHECKING:
    from models.user import User


class Business(Base):
    __tablename__ = "businesses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    business_name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    category: Mapped[Optional[str]] = mapped_column(String(50))

    lat: Mapped[Optional[float]] = mapped_column(Float, index=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, index=True)

    # denormalized counters, only ever changed with SQL increments
    follower_count: Mapped[int] = mapped_column(Integer, default=0)
    total_deals_posted: Mapped[int] = mapped_column(Integer, default=0)
    total_redemptions: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    owner: Mapped["User"] = relationship("User", back_populates="businesses", lazy="joined")

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "business_name": self.business_name,
            "slug": self.slug,
            "category": self.category,
            "location": {"lat": self.lat, "lng": self.lng} if self.has_location else None,
            "follower_count": self.follower_count,
            "total_deals_posted": self.total_deals_posted,
            "total_redemptions": self.total_redemptions,
        }
