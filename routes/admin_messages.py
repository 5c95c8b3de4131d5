from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth_utils import require_admin
from database import get_db
from utils import broadcast_engine
from utils.push_gateway import get_push_gateway

router = APIRouter(prefix="/admin/messages", tags=["Admin Messages"])


class BroadcastIn(BaseModel):
    message: str
    target_group: str = Field(default=broadcast_engine.SEGMENT_ALL)
    scheduled_at: Optional[datetime] = None


class TrackClickIn(BaseModel):
    user_id: int = Field(..., ge=1)
    link_url: str = Field(..., min_length=1, max_length=1000)


@router.post("/broadcast")
def send_broadcast(
    payload: BroadcastIn,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
    gateway=Depends(get_push_gateway),
):
    outcome = broadcast_engine.create_broadcast(
        db,
        admin_id,
        payload.message,
        target_group=payload.target_group,
        scheduled_at=payload.scheduled_at,
        gateway=gateway,
    )
    return outcome.to_dict()


@router.get("/broadcast/user-count")
def user_count(
    group: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    if group:
        ids = broadcast_engine.target_user_ids(db, group)
        return {"group": group, "count": len(ids)}
    return {"counts": broadcast_engine.segment_counts(db)}


@router.get("/broadcasts")
def list_broadcasts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return broadcast_engine.list_broadcasts(db, page=page, limit=limit, status=status)


@router.get("/broadcasts/{broadcast_id}")
def broadcast_details(
    broadcast_id: int,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return broadcast_engine.broadcast_details(db, broadcast_id)


# clicks come from the in-app link handler, not from an admin
@router.post("/broadcasts/{broadcast_id}/track-click")
def track_click(
    broadcast_id: int,
    payload: TrackClickIn,
    request: Request,
    db: Session = Depends(get_db),
):
    broadcast_engine.track_click(
        db,
        broadcast_id,
        payload.user_id,
        payload.link_url,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return {"success": True}
