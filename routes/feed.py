from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth_utils import get_current_user_id
from database import get_db
from utils import feed_engine
from utils.cache import CacheGateway, get_cache

router = APIRouter(prefix="/feed", tags=["Feed"])


@router.get("/you-follow")
def you_follow(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: CacheGateway = Depends(get_cache),
):
    return feed_engine.following_feed(
        db, user_id, page=page, limit=limit, lat=lat, lng=lng, cache=cache
    )


@router.get("/near-you")
def near_you(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, le=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: CacheGateway = Depends(get_cache),
):
    return feed_engine.nearby_feed(
        db, user_id, lat=lat, lng=lng, radius=radius, page=page, limit=limit, cache=cache
    )
