# =============================================================================
# 🏷️ models/deal.py
# -----------------------------------------------------------------------------
# Time-boxed discount offer of a business with optional finite inventory.
# Counters and status are only mutated through utils/deal_store.py.
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import (
    JSON, Boolean, DateTime, Float, ForeignKey, Integer, Numeric, String, Text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from utils.dates import isoformat

if TYPE_CHECKING:
    from models.business import Business


# ---------------------------------------------------------------------
# 🔹 Status values (active -> sold_out | expired | deleted, never back)
# ---------------------------------------------------------------------
DEAL_ACTIVE = "active"
DEAL_SOLD_OUT = "sold_out"
DEAL_EXPIRED = "expired"
DEAL_DELETED = "deleted"

DEAL_STATUSES = (DEAL_ACTIVE, DEAL_SOLD_OUT, DEAL_EXPIRED, DEAL_DELETED)


def compute_discount_percentage(original_price, discounted_price) -> int:
    original = Decimal(str(original_price or 0))
    discounted = Decimal(str(discounted_price or 0))
    if original <= 0:
        return 0
    return int(round(float((original - discounted) / original * 100)))


class Deal(Base):
    __tablename__ = "deals"

    # ---------------------------------------------------------------------
    # 🧾 Basics
    # ---------------------------------------------------------------------
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)

    # ---------------------------------------------------------------------
    # 💶 Pricing
    # ---------------------------------------------------------------------
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discounted_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    discount_percentage: Mapped[Optional[int]] = mapped_column(Integer)

    category: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    tags: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    images: Mapped[Optional[list]] = mapped_column(JSON, default=list)

    # ---------------------------------------------------------------------
    # ⏱️ Window & visibility
    # ---------------------------------------------------------------------
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    is_flash_deal: Mapped[bool] = mapped_column(Boolean, default=False)
    visibility_radius_km: Mapped[float] = mapped_column(Float, default=5.0)

    # ---------------------------------------------------------------------
    # 📦 Inventory
    # ---------------------------------------------------------------------
    quantity_available: Mapped[Optional[int]] = mapped_column(Integer)  # NULL = unlimited
    quantity_redeemed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_per_user: Mapped[int] = mapped_column(Integer, default=1)

    status: Mapped[str] = mapped_column(String(20), default=DEAL_ACTIVE, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    business: Mapped["Business"] = relationship("Business", lazy="joined")

    @property
    def is_bounded(self) -> bool:
        return self.quantity_available is not None

    def effective_discount_percentage(self) -> int:
        if self.discount_percentage:
            return self.discount_percentage
        return compute_discount_percentage(self.original_price, self.discounted_price)

    def to_dict(self, include_business: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "title": self.title,
            "description": self.description,
            "original_price": float(self.original_price),
            "discounted_price": float(self.discounted_price),
            "discount_percentage": self.effective_discount_percentage(),
            "category": self.category,
            "tags": self.tags or [],
            "images": self.images or [],
            "starts_at": isoformat(self.starts_at),
            "expires_at": isoformat(self.expires_at),
            "is_flash_deal": self.is_flash_deal,
            "visibility_radius_km": self.visibility_radius_km,
            "quantity_available": self.quantity_available,
            "quantity_redeemed": self.quantity_redeemed,
            "max_per_user": self.max_per_user,
            "status": self.status,
            "created_at": isoformat(self.created_at),
        }
        if include_business:
            data["business"] = self.business.to_dict() if self.business else None
        return data

    def __repr__(self) -> str:
        return (
            f"<Deal(id={self.id}, business_id={self.business_id}, status='{self.status}', "
            f"redeemed={self.quantity_redeemed}/{self.quantity_available})>"
        )
