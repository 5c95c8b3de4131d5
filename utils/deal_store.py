# =============================================================================
# 🏷️ utils/deal_store.py
# -----------------------------------------------------------------------------
# The only place that writes deal rows.
#   - create / owner update / soft delete (content fields)
#   - atomic conditional increment of quantity_redeemed
#   - status flips, always guarded by "status = 'active'"
#   - expiry sweep
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from models.business import Business
from models.deal import (
    DEAL_ACTIVE,
    DEAL_DELETED,
    DEAL_EXPIRED,
    DEAL_SOLD_OUT,
    Deal,
    compute_discount_percentage,
)
from utils.dates import as_utc, utc_now
from utils.errors import ForbiddenError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)

CONTENT_FIELDS = (
    "title",
    "description",
    "original_price",
    "discounted_price",
    "discount_percentage",
    "category",
    "tags",
    "images",
    "starts_at",
    "expires_at",
    "is_flash_deal",
    "visibility_radius_km",
    "quantity_available",
    "max_per_user",
)

NULLABLE_FIELDS = {"description", "category", "quantity_available", "discount_percentage"}


# =============================================================================
# ✅ Validation helpers
# =============================================================================
def _to_money(value: Any, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidStateError(f"{field} must be numeric")
    if amount < 0:
        raise InvalidStateError(f"{field} must not be negative")
    return amount.quantize(Decimal("0.01"))


def validate_window(starts_at: datetime, expires_at: datetime) -> None:
    if as_utc(starts_at) >= as_utc(expires_at):
        raise InvalidStateError("Start date must be before expiration date")


def validate_pricing(original_price: Decimal, discounted_price: Decimal) -> None:
    if discounted_price >= original_price:
        raise InvalidStateError("Discounted price must be less than original price")


# =============================================================================
# 🔎 Reads
# =============================================================================
def get_deal(db: Session, deal_id: int, fresh: bool = True) -> Deal:
    stmt = select(Deal).where(Deal.id == deal_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    deal = db.execute(stmt).unique().scalar_one_or_none()
    if deal is None:
        raise NotFoundError("Deal not found")
    return deal


def _owned_deal(db: Session, deal_id: int, user_id: int, action: str) -> Deal:
    deal = get_deal(db, deal_id)
    if deal.business is None or deal.business.owner_id != user_id:
        raise ForbiddenError(f"You do not have permission to {action} this deal")
    return deal


# =============================================================================
# ✍️ Content writes (business owner)
# =============================================================================
def create_deal(db: Session, business_id: int, user_id: int, payload: dict[str, Any]) -> Deal:
    business = db.get(Business, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    if business.owner_id != user_id:
        raise ForbiddenError("You do not have permission to create deals for this business")

    original_price = _to_money(payload.get("original_price"), "original_price")
    discounted_price = _to_money(payload.get("discounted_price"), "discounted_price")
    starts_at = as_utc(payload.get("starts_at"))
    expires_at = as_utc(payload.get("expires_at"))
    if starts_at is None or expires_at is None:
        raise InvalidStateError("starts_at and expires_at are required")

    validate_window(starts_at, expires_at)
    validate_pricing(original_price, discounted_price)

    quantity_available = payload.get("quantity_available")
    if quantity_available is not None and quantity_available < 1:
        raise InvalidStateError("quantity_available must be at least 1")

    deal = Deal(
        business_id=business.id,
        title=payload["title"],
        description=payload.get("description"),
        original_price=original_price,
        discounted_price=discounted_price,
        discount_percentage=payload.get("discount_percentage")
        or compute_discount_percentage(original_price, discounted_price),
        category=payload.get("category"),
        tags=payload.get("tags") or [],
        images=payload.get("images") or [],
        starts_at=starts_at,
        expires_at=expires_at,
        is_flash_deal=bool(payload.get("is_flash_deal", False)),
        visibility_radius_km=payload.get("visibility_radius_km") or 5.0,
        quantity_available=quantity_available,
        quantity_redeemed=0,
        max_per_user=payload.get("max_per_user") or 1,
        status=DEAL_ACTIVE,
    )
    db.add(deal)
    db.execute(
        update(Business)
        .where(Business.id == business.id)
        .values(total_deals_posted=Business.total_deals_posted + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(deal)

    logger.info(f"🏷️ Deal created (ID {deal.id}, business={business.id}, flash={deal.is_flash_deal})")
    return deal


def update_deal(db: Session, deal_id: int, user_id: int, changes: dict[str, Any]) -> Deal:
    deal = _owned_deal(db, deal_id, user_id, "update")
    if deal.status == DEAL_DELETED:
        raise InvalidStateError("Deal has been deleted")

    changes = {
        k: v
        for k, v in changes.items()
        if k in CONTENT_FIELDS and (v is not None or k in NULLABLE_FIELDS)
    }

    if "original_price" in changes:
        changes["original_price"] = _to_money(changes["original_price"], "original_price")
    if "discounted_price" in changes:
        changes["discounted_price"] = _to_money(changes["discounted_price"], "discounted_price")
    for field in ("starts_at", "expires_at"):
        if changes.get(field) is not None:
            changes[field] = as_utc(changes[field])

    # validate the merged result, not only the submitted fields
    final_starts = changes.get("starts_at") or deal.starts_at
    final_expires = changes.get("expires_at") or deal.expires_at
    validate_window(final_starts, final_expires)

    final_original = changes.get("original_price", deal.original_price)
    final_discounted = changes.get("discounted_price", deal.discounted_price)
    validate_pricing(Decimal(final_original), Decimal(final_discounted))

    if "quantity_available" in changes and changes["quantity_available"] is not None:
        if changes["quantity_available"] < deal.quantity_redeemed:
            raise InvalidStateError("quantity_available cannot be lower than quantity already redeemed")

    price_changed = "original_price" in changes or "discounted_price" in changes
    if price_changed and not changes.get("discount_percentage"):
        changes["discount_percentage"] = compute_discount_percentage(final_original, final_discounted)

    for field, value in changes.items():
        setattr(deal, field, value)
    db.commit()
    db.refresh(deal)

    logger.info(f"✏️ Deal updated (ID {deal.id}, fields={sorted(changes)})")
    return deal


def soft_delete_deal(db: Session, deal_id: int, user_id: int) -> Deal:
    deal = _owned_deal(db, deal_id, user_id, "delete")
    if deal.status != DEAL_DELETED:
        db.execute(
            update(Deal)
            .where(Deal.id == deal.id, Deal.status != DEAL_DELETED)
            .values(status=DEAL_DELETED, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(deal)
        logger.info(f"🗑️ Deal soft-deleted (ID {deal.id})")
    return deal


# =============================================================================
# 🔐 Counter & status writes (redemption engine)
# =============================================================================
def try_increment_redeemed(db: Session, deal_id: int) -> bool:
    """
    Single conditional UPDATE; returns False when the row no longer qualifies
    (not active, or inventory exhausted). Caller owns the commit.
    """
    result = db.execute(
        update(Deal)
        .where(
            Deal.id == deal_id,
            Deal.status == DEAL_ACTIVE,
            or_(
                Deal.quantity_available.is_(None),
                Deal.quantity_redeemed < Deal.quantity_available,
            ),
        )
        .values(quantity_redeemed=Deal.quantity_redeemed + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def mark_sold_out_if_exhausted(db: Session, deal_id: int) -> bool:
    result = db.execute(
        update(Deal)
        .where(
            Deal.id == deal_id,
            Deal.status == DEAL_ACTIVE,
            Deal.quantity_available.is_not(None),
            Deal.quantity_redeemed >= Deal.quantity_available,
        )
        .values(status=DEAL_SOLD_OUT)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_business_redemptions(db: Session, business_id: int) -> None:
    db.execute(
        update(Business)
        .where(Business.id == business_id)
        .values(total_redemptions=Business.total_redemptions + 1)
        .execution_options(synchronize_session=False)
    )


def flip_status(db: Session, deal_id: int, new_status: str) -> bool:
    """Move an active deal to a derived status and commit. Never leaves a terminal state."""
    if new_status not in (DEAL_SOLD_OUT, DEAL_EXPIRED):
        raise ValueError(f"unsupported derived status: {new_status}")
    result = db.execute(
        update(Deal)
        .where(Deal.id == deal_id, Deal.status == DEAL_ACTIVE)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    changed = result.rowcount == 1
    if changed:
        logger.info(f"🔁 Deal {deal_id} -> {new_status}")
    return changed


def expire_stale_deals(db: Session, now: Optional[datetime] = None) -> list[tuple[int, int]]:
    """Flip every active deal past expires_at; returns (deal_id, business_id) pairs."""
    now = now or utc_now()
    stale = db.execute(
        select(Deal.id, Deal.business_id).where(
            and_(Deal.status == DEAL_ACTIVE, Deal.expires_at < now)
        )
    ).all()
    if not stale:
        return []
    db.execute(
        update(Deal)
        .where(Deal.id.in_([row.id for row in stale]), Deal.status == DEAL_ACTIVE)
        .values(status=DEAL_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info(f"⌛ Expired {len(stale)} deal(s)")
    return [(row.id, row.business_id) for row in stale]
