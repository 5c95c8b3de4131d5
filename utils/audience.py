# =============================================================================
# 🎯 utils/audience.py
# -----------------------------------------------------------------------------
# Who should hear about a new deal?
#   - followers of the business (active, opted in for this kind of deal)
#   - nearby consumers who opted in and do not follow the business yet
# The business owner is never part of the audience.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

import config
from models.deal import Deal
from models.follow import FOLLOW_ACTIVE, FOLLOW_UNFOLLOWED, Follow
from models.user import USER_TYPE_CONSUMER, User
from utils.errors import NotFoundError
from utils.geo import bounding_box, haversine_km

logger = logging.getLogger(__name__)


@dataclass
class Audience:
    deal_id: int
    follower_ids: list[int] = field(default_factory=list)
    nearby_ids: list[int] = field(default_factory=list)

    @property
    def user_ids(self) -> list[int]:
        return sorted(set(self.follower_ids) | set(self.nearby_ids))

    @property
    def is_empty(self) -> bool:
        return not self.follower_ids and not self.nearby_ids


def _follower_ids(db: Session, deal: Deal) -> set[int]:
    opt_in = Follow.notify_flash_deals if deal.is_flash_deal else Follow.notify_new_deals
    rows = db.execute(
        select(Follow.user_id).where(
            Follow.business_id == deal.business_id,
            Follow.status == FOLLOW_ACTIVE,
            opt_in.is_(True),
        )
    ).scalars()
    return set(rows)


def _nearby_ids(db: Session, deal: Deal, exclude: set[int]) -> set[int]:
    business = deal.business
    if business is None or not business.has_location:
        return set()

    # candidates are bounded by the deal's own radius; each user may narrow it
    max_radius = deal.visibility_radius_km or config.DEFAULT_RADIUS_KM
    box = bounding_box(business.lat, business.lng, max_radius)

    already_following = select(Follow.user_id).where(
        Follow.business_id == deal.business_id,
        Follow.status != FOLLOW_UNFOLLOWED,
    )
    stmt = select(User).where(
        User.user_type == USER_TYPE_CONSUMER,
        User.notify_nearby_deals.is_(True),
        User.default_lat.is_not(None),
        User.default_lng.is_not(None),
        User.default_lat.between(box.min_lat, box.max_lat),
        User.id.not_in(already_following),
    )
    if box.min_lng >= -180.0 and box.max_lng <= 180.0:
        stmt = stmt.where(User.default_lng.between(box.min_lng, box.max_lng))

    nearby = set()
    for user in db.execute(stmt).scalars():
        if user.id in exclude:
            continue
        radius = min(max_radius, user.default_radius_km or config.DEFAULT_RADIUS_KM)
        if haversine_km(business.lat, business.lng, user.default_lat, user.default_lng) <= radius:
            nearby.add(user.id)
    return nearby


def resolve(db: Session, deal_id: int) -> Audience:
    deal = db.get(Deal, deal_id)
    if deal is None:
        raise NotFoundError("Deal not found")

    owner_id = deal.business.owner_id if deal.business else None
    excluded = {owner_id} if owner_id is not None else set()

    followers = _follower_ids(db, deal) - excluded
    nearby = _nearby_ids(db, deal, exclude=excluded | followers)

    audience = Audience(
        deal_id=deal.id,
        follower_ids=sorted(followers),
        nearby_ids=sorted(nearby),
    )
    logger.info(
        f"🎯 Audience for deal {deal.id}: {len(audience.follower_ids)} followers, "
        f"{len(audience.nearby_ids)} nearby"
    )
    return audience
