# =============================================================================
# 📰 utils/feed_engine.py
# -----------------------------------------------------------------------------
# "You follow" and "Near you" feeds.
#
# Both are paginated, newest first, annotated with distance (when a location
# is known) and the caller's bookmark flags, and served through the cache.
# Cache entries carry tags so deal/business/follow writes drop them exactly:
#   following → feed:user:<id> + business:<id> of every followed business
#   nearby    → feed:user:<id> + feed:nearby
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

import config
from models.bookmark import Bookmark
from models.business import Business
from models.deal import DEAL_ACTIVE, Deal
from models.follow import FOLLOW_ACTIVE, Follow
from models.user import User
from utils.cache import (
    PREFIX_FEED,
    TAG_NEARBY_FEEDS,
    CacheGateway,
    business_tag,
    user_feed_tag,
)
from utils.dates import utc_now
from utils.errors import InvalidStateError, LocationRequiredError
from utils.geo import bounding_box, haversine_km, is_valid_point, round_distance
from utils.pagination import build_pagination, clamp_page

logger = logging.getLogger(__name__)


def _live_deal_filters(now: datetime):
    return (
        Deal.status == DEAL_ACTIVE,
        Deal.starts_at <= now,
        Deal.expires_at > now,
    )


def _bookmarked_ids(db: Session, user_id: int, deal_ids: list[int]) -> set[int]:
    if not deal_ids:
        return set()
    rows = db.execute(
        select(Bookmark.deal_id).where(
            Bookmark.user_id == user_id, Bookmark.deal_id.in_(deal_ids)
        )
    ).scalars()
    return set(rows)


def _distance_to(deal: Deal, lat: float, lng: float) -> float:
    business = deal.business
    if business is None or not business.has_location:
        return 0.0
    return round_distance(haversine_km(lat, lng, business.lat, business.lng))


def _serialize(
    db: Session,
    user_id: int,
    deals: list[Deal],
    distances: Optional[dict[int, float]] = None,
) -> list[dict[str, Any]]:
    bookmarked = _bookmarked_ids(db, user_id, [d.id for d in deals])
    items = []
    for deal in deals:
        item = deal.to_dict(include_business=True)
        if distances is not None:
            item["distance"] = distances.get(deal.id, 0.0)
        item["isBookmarked"] = deal.id in bookmarked
        items.append(item)
    return items


def _check_coordinates(lat: Optional[float], lng: Optional[float]) -> None:
    if lat is None and lng is None:
        return
    if not is_valid_point(lat, lng):
        raise InvalidStateError("Invalid coordinates")


# =============================================================================
# 👥 You follow
# =============================================================================
def following_feed(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    cache: Optional[CacheGateway] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    page, limit = clamp_page(page, limit)
    _check_coordinates(lat, lng)
    with_location = lat is not None and lng is not None

    business_ids = list(
        db.execute(
            select(Follow.business_id).where(
                Follow.user_id == user_id, Follow.status == FOLLOW_ACTIVE
            )
        ).scalars()
    )
    if not business_ids:
        return {"deals": [], "pagination": build_pagination(page, limit, 0)}

    def load() -> dict[str, Any]:
        current = now or utc_now()
        filters = (*_live_deal_filters(current), Deal.business_id.in_(business_ids))
        total = db.execute(select(func.count(Deal.id)).where(*filters)).scalar_one()
        deals = list(
            db.execute(
                select(Deal)
                .where(*filters)
                .order_by(Deal.created_at.desc(), Deal.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).unique().scalars()
        )

        distances = {d.id: _distance_to(d, lat, lng) for d in deals} if with_location else None
        return {
            "deals": _serialize(db, user_id, deals, distances),
            "pagination": build_pagination(page, limit, total),
        }

    if cache is None:
        return load()
    key = CacheGateway.build_key(PREFIX_FEED, "following", user_id, page, limit, lat, lng)
    return cache.wrap(
        key,
        load,
        ttl=config.FEED_FOLLOWING_TTL,
        tags=[user_feed_tag(user_id), *[business_tag(b) for b in business_ids]],
    )


# =============================================================================
# 📍 Near you
# =============================================================================
def nearby_feed(
    db: Session,
    user_id: int,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius: Optional[float] = None,
    page: int = 1,
    limit: int = 20,
    cache: Optional[CacheGateway] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    page, limit = clamp_page(page, limit)

    if lat is None or lng is None or radius is None:
        user = db.get(User, user_id)
        if user is not None:
            if lat is None or lng is None:
                lat = user.default_lat if lat is None else lat
                lng = user.default_lng if lng is None else lng
            if radius is None:
                radius = user.default_radius_km
    if lat is None or lng is None:
        raise LocationRequiredError(
            "Location is required. Provide lat/lng or set a default location."
        )
    _check_coordinates(lat, lng)
    radius = radius or config.DEFAULT_RADIUS_KM
    if radius <= 0:
        raise InvalidStateError("Radius must be positive")

    def load() -> dict[str, Any]:
        current = now or utc_now()
        box = bounding_box(lat, lng, radius)
        stmt = (
            select(Deal)
            .join(Business, Business.id == Deal.business_id)
            .where(
                *_live_deal_filters(current),
                Business.lat.is_not(None),
                Business.lng.is_not(None),
                Business.lat.between(box.min_lat, box.max_lat),
            )
            .order_by(Deal.created_at.desc(), Deal.id.desc())
        )
        # box crossing the antimeridian: keep every longitude, haversine decides
        if box.min_lng >= -180.0 and box.max_lng <= 180.0:
            stmt = stmt.where(Business.lng.between(box.min_lng, box.max_lng))

        in_range = []
        distances = {}
        for deal in db.execute(stmt).unique().scalars():
            distance = haversine_km(lat, lng, deal.business.lat, deal.business.lng)
            if distance <= radius:
                in_range.append(deal)
                distances[deal.id] = round_distance(distance)

        page_deals = in_range[(page - 1) * limit: page * limit]
        return {
            "deals": _serialize(db, user_id, page_deals, distances),
            "pagination": build_pagination(page, limit, len(in_range)),
            "location": {"lat": lat, "lng": lng, "radius": radius},
        }

    if cache is None:
        return load()
    key = CacheGateway.build_key(PREFIX_FEED, "nearby", user_id, page, limit, lat, lng, radius)
    return cache.wrap(
        key,
        load,
        ttl=config.FEED_NEARBY_TTL,
        tags=[user_feed_tag(user_id), TAG_NEARBY_FEEDS],
    )
