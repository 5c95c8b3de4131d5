# =============================================================================
# 👤 models/user.py
# User model (SQLAlchemy 2.0) – consumers, business owners and the system account
# =============================================================================

from __future__ import annotations
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, Float, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base

if TYPE_CHECKING:
    from models.business import Business


USER_TYPE_CONSUMER = "consumer"
USER_TYPE_BUSINESS = "business"


class User(Base):
    __tablename__ = "users"

    # =========================================================================
    # 🧩 Basics
    # =========================================================================
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), unique=True, index=True)
    user_type: Mapped[str] = mapped_column(String(20), default=USER_TYPE_CONSUMER, index=True)

    # =========================================================================
    # 📍 Default location for the nearby feed and proximity notifications
    # =========================================================================
    default_lat: Mapped[Optional[float]] = mapped_column(Float)
    default_lng: Mapped[Optional[float]] = mapped_column(Float)
    default_radius_km: Mapped[Optional[float]] = mapped_column(Float, default=5.0)
    notify_nearby_deals: Mapped[bool] = mapped_column(Boolean, default=True)

    # =========================================================================
    # 🕒 Timestamps
    # =========================================================================
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    last_active_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # =========================================================================
    # 🔗 Relations
    # =========================================================================
    businesses: Mapped[List["Business"]] = relationship(
        "Business",
        back_populates="owner",
        lazy="selectin"
    )

    @property
    def has_default_location(self) -> bool:
        return self.default_lat is not None and self.default_lng is not None

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, username='{self.username}', "
            f"user_type='{self.user_type}')>"
        )
