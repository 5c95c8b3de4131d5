from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

import config
from auth_utils import get_current_user_id
from database import get_db, get_session_factory
from utils import deal_store, redemption_engine
from utils.cache import PREFIX_DEAL, CacheGateway, get_cache
from utils.notification_dispatcher import notify_new_deal
from utils.push_gateway import get_push_gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Deals"])


class DealImageIn(BaseModel):
    url: str
    order: int = 0


class DealCreateIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    original_price: Decimal = Field(..., gt=0)
    discounted_price: Decimal = Field(..., ge=0)
    discount_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    images: list[DealImageIn] = Field(default_factory=list)
    starts_at: datetime
    expires_at: datetime
    is_flash_deal: bool = False
    visibility_radius_km: float = Field(default=5.0, gt=0)
    quantity_available: Optional[int] = Field(default=None, ge=1)
    max_per_user: int = Field(default=1, ge=1)


class DealUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    original_price: Optional[Decimal] = Field(default=None, gt=0)
    discounted_price: Optional[Decimal] = Field(default=None, ge=0)
    discount_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    images: Optional[list[DealImageIn]] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_flash_deal: Optional[bool] = None
    visibility_radius_km: Optional[float] = Field(default=None, gt=0)
    quantity_available: Optional[int] = Field(default=None, ge=1)
    max_per_user: Optional[int] = Field(default=None, ge=1)


# -------------------------------------------------------------------------
# ✍️ Create (business owner)
# -------------------------------------------------------------------------
@router.post("/deals/{business_id}", status_code=201)
def create_deal(
    business_id: int,
    payload: DealCreateIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: CacheGateway = Depends(get_cache),
    session_factory=Depends(get_session_factory),
    gateway=Depends(get_push_gateway),
):
    deal = deal_store.create_deal(db, business_id, user_id, payload.model_dump())
    cache.invalidate_business(deal.business_id)

    # fan-out runs after the response with its own session
    background_tasks.add_task(notify_new_deal, deal.id, session_factory, gateway)

    return {"message": "Deal created successfully", "deal": deal.to_dict(include_business=True)}


# -------------------------------------------------------------------------
# 🔎 Read / update / delete
# -------------------------------------------------------------------------
@router.get("/deals/{deal_id}")
def get_deal(
    deal_id: int,
    db: Session = Depends(get_db),
    cache: CacheGateway = Depends(get_cache),
):
    def load() -> dict[str, Any]:
        return deal_store.get_deal(db, deal_id).to_dict(include_business=True)

    return cache.wrap(CacheGateway.build_key(PREFIX_DEAL, deal_id), load, ttl=config.DEAL_CACHE_TTL)


@router.patch("/deals/{deal_id}")
def update_deal(
    deal_id: int,
    payload: DealUpdateIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: CacheGateway = Depends(get_cache),
):
    deal = deal_store.update_deal(db, deal_id, user_id, payload.model_dump(exclude_unset=True))
    cache.invalidate_deal(deal.id, deal.business_id)
    return {"message": "Deal updated successfully", "deal": deal.to_dict(include_business=True)}


@router.delete("/deals/{deal_id}")
def delete_deal(
    deal_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: CacheGateway = Depends(get_cache),
):
    deal = deal_store.soft_delete_deal(db, deal_id, user_id)
    cache.invalidate_deal(deal.id, deal.business_id)
    return {"message": "Deal deleted successfully", "deal_id": deal.id}


# -------------------------------------------------------------------------
# 🎟️ Redemption
# -------------------------------------------------------------------------
@router.post("/deals/{deal_id}/redeem")
def redeem_deal(
    deal_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    cache: CacheGateway = Depends(get_cache),
):
    result = redemption_engine.redeem(db, deal_id, user_id, cache=cache)
    return {
        "message": "Deal redeemed successfully",
        "redemptionCode": result.code,
        "receipt": result.receipt,
    }


@router.get("/redemptions")
def my_redemptions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return redemption_engine.list_user_redemptions(db, user_id, page=page, limit=limit)


@router.get("/redemptions/{redemption_id}")
def my_redemption(
    redemption_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return redemption_engine.get_user_redemption(db, user_id, redemption_id)
