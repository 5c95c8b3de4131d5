from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from database import Base
from utils.dates import isoformat


class UserRedemption(Base):
    """Immutable audit row, one per successful redemption."""

    __tablename__ = "user_redemptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    deal_id: Mapped[int] = mapped_column(ForeignKey("deals.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    business_id: Mapped[int] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"), index=True
    )
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    paid_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    savings_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    deal_category: Mapped[Optional[str]] = mapped_column(String(50))
    redeemed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )

    def to_receipt(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "originalPrice": float(self.original_price),
            "paidPrice": float(self.paid_price),
            "savingsAmount": float(self.savings_amount),
            "dealCategory": self.deal_category,
            "redeemedAt": isoformat(self.redeemed_at),
        }
