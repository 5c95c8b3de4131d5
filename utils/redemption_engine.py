# =============================================================================
# 🎟️ utils/redemption_engine.py
# -----------------------------------------------------------------------------
# Validates and applies a single redemption.
#
# Checks run in a fixed order and fail fast. Expired / sold-out deals are
# flipped to their derived status before the error is raised, so a rejected
# call still heals the row. Inventory is taken with one conditional UPDATE
# (see deal_store.try_increment_redeemed); the read-side checks only decide
# which error to report.
# =============================================================================

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.deal import DEAL_ACTIVE, DEAL_EXPIRED, DEAL_SOLD_OUT, Deal
from models.user import User
from models.user_redemption import UserRedemption
from utils import deal_store
from utils.cache import CacheGateway
from utils.dates import as_utc, utc_now
from utils.errors import InvalidStateError, NotFoundError
from utils.pagination import build_pagination

logger = logging.getLogger(__name__)

# no 0/O/1/I to avoid confusion at the counter
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8

MSG_NOT_ACTIVE = "Deal is not active"
MSG_EXPIRED = "Deal has expired"
MSG_NOT_STARTED = "Deal has not started yet"
MSG_SOLD_OUT = "Deal is sold out"


@dataclass(frozen=True)
class RedemptionResult:
    code: str
    receipt: dict[str, Any]
    deal_id: int
    deal_status: str
    quantity_redeemed: int


def generate_redemption_code() -> str:
    return "SH-" + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _status_error(status: str) -> InvalidStateError:
    if status == DEAL_SOLD_OUT:
        return InvalidStateError(MSG_SOLD_OUT)
    if status == DEAL_EXPIRED:
        return InvalidStateError(MSG_EXPIRED)
    return InvalidStateError(MSG_NOT_ACTIVE)


def _flip(db: Session, deal: Deal, new_status: str, cache: Optional[CacheGateway]) -> None:
    if deal_store.flip_status(db, deal.id, new_status) and cache is not None:
        cache.invalidate_deal(deal.id, deal.business_id)


def _check_window_and_inventory(
    db: Session, deal: Deal, now: datetime, cache: Optional[CacheGateway] = None
) -> None:
    if deal.status != DEAL_ACTIVE:
        # sold_out / expired keep their specific message after the flip
        raise _status_error(deal.status)

    if now > as_utc(deal.expires_at):
        _flip(db, deal, DEAL_EXPIRED, cache)
        raise InvalidStateError(MSG_EXPIRED)

    if now < as_utc(deal.starts_at):
        raise InvalidStateError(MSG_NOT_STARTED)

    if deal.is_bounded and deal.quantity_redeemed >= deal.quantity_available:
        _flip(db, deal, DEAL_SOLD_OUT, cache)
        raise InvalidStateError(MSG_SOLD_OUT)


def _check_user_limit(db: Session, deal: Deal, user_id: int) -> None:
    if not deal.max_per_user:
        return
    already = db.execute(
        select(func.count(UserRedemption.id)).where(
            UserRedemption.deal_id == deal.id,
            UserRedemption.user_id == user_id,
        )
    ).scalar_one()
    if already >= deal.max_per_user:
        raise InvalidStateError(f"You can only redeem this deal {deal.max_per_user} time(s)")


def _reject_lost_race(
    db: Session, deal_id: int, cache: Optional[CacheGateway] = None
) -> InvalidStateError:
    """The conditional UPDATE matched nothing: re-derive status and pick the error."""
    deal = deal_store.get_deal(db, deal_id)
    if deal.status == DEAL_ACTIVE and deal.is_bounded and deal.quantity_redeemed >= deal.quantity_available:
        _flip(db, deal, DEAL_SOLD_OUT, cache)
        return InvalidStateError(MSG_SOLD_OUT)
    return _status_error(deal.status)


def redeem(
    db: Session,
    deal_id: int,
    user_id: int,
    cache: Optional[CacheGateway] = None,
    now: Optional[datetime] = None,
) -> RedemptionResult:
    now = as_utc(now) or utc_now()

    deal = deal_store.get_deal(db, deal_id)
    _check_window_and_inventory(db, deal, now, cache)

    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    _check_user_limit(db, deal, user_id)

    # snapshot prices as seen by this redemption
    original_price = Decimal(deal.original_price)
    paid_price = Decimal(deal.discounted_price)
    business_id = deal.business_id

    try:
        if not deal_store.try_increment_redeemed(db, deal.id):
            db.rollback()
            raise _reject_lost_race(db, deal.id, cache)

        deal_store.mark_sold_out_if_exhausted(db, deal.id)
        deal_store.increment_business_redemptions(db, business_id)

        redemption = UserRedemption(
            code=generate_redemption_code(),
            deal_id=deal.id,
            user_id=user_id,
            business_id=business_id,
            original_price=original_price,
            paid_price=paid_price,
            savings_amount=original_price - paid_price,
            deal_category=deal.category,
            redeemed_at=now,
        )
        db.add(redemption)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"❌ Redemption failed (deal={deal_id}, user={user_id})")
        raise

    db.refresh(redemption)
    deal = deal_store.get_deal(db, deal_id)

    if cache is not None:
        cache.invalidate_deal(deal.id, business_id)

    logger.info(
        f"🎟️ Deal {deal.id} redeemed by user {user_id} "
        f"({deal.quantity_redeemed}/{deal.quantity_available or '∞'}, status={deal.status})"
    )
    return RedemptionResult(
        code=redemption.code,
        receipt=redemption.to_receipt(),
        deal_id=deal.id,
        deal_status=deal.status,
        quantity_redeemed=deal.quantity_redeemed,
    )


def _history_item(row: UserRedemption) -> dict[str, Any]:
    item = row.to_receipt()
    item["code"] = row.code
    item["dealId"] = row.deal_id
    item["businessId"] = row.business_id
    return item


def list_user_redemptions(db: Session, user_id: int, page: int = 1, limit: int = 20) -> dict[str, Any]:
    total = db.execute(
        select(func.count(UserRedemption.id)).where(UserRedemption.user_id == user_id)
    ).scalar_one()
    rows = db.execute(
        select(UserRedemption)
        .where(UserRedemption.user_id == user_id)
        .order_by(UserRedemption.redeemed_at.desc(), UserRedemption.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return {
        "redemptions": [_history_item(row) for row in rows],
        "pagination": build_pagination(page, limit, total),
    }


def get_user_redemption(db: Session, user_id: int, redemption_id: int) -> dict[str, Any]:
    """One receipt of the caller, with the deal it was taken from."""
    row = db.execute(
        select(UserRedemption).where(
            UserRedemption.id == redemption_id,
            UserRedemption.user_id == user_id,
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Redemption not found")

    item = _history_item(row)
    deal = db.get(Deal, row.deal_id)
    item["deal"] = deal.to_dict(include_business=True) if deal else None
    return item
