from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth_utils import get_current_user_id
from database import get_db
from utils import notification_dispatcher as dispatcher
from utils.dates import isoformat

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class MarkReadIn(BaseModel):
    notification_ids: list[int] = Field(default_factory=list)


class DeviceTokenIn(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=255)
    device_type: Optional[str] = Field(default=None, max_length=20)
    device_name: Optional[str] = Field(default=None, max_length=120)


@router.get("")
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return dispatcher.list_notifications(db, user_id, page=page, limit=limit)


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return {"unread_count": dispatcher.unread_count(db, user_id)}


@router.post("/mark-read")
def mark_read(
    payload: MarkReadIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    updated = dispatcher.mark_read(db, user_id, payload.notification_ids)
    return {"message": "Notifications marked as read", "updated": updated}


@router.post("/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    updated = dispatcher.mark_all_read(db, user_id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    dispatcher.delete_notification(db, user_id, notification_id)
    return {"success": True}


# -------------------------------------------------------------------------
# 📱 Device registrations
# -------------------------------------------------------------------------
@router.post("/device-token")
def register_device_token(
    payload: DeviceTokenIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    row = dispatcher.register_device_token(
        db,
        user_id,
        payload.device_token,
        device_type=payload.device_type,
        device_name=payload.device_name,
    )
    return {
        "message": "Device token registered",
        "device": {
            "id": row.id,
            "device_type": row.device_type,
            "device_name": row.device_name,
            "is_active": row.is_active,
            "updated_at": isoformat(row.updated_at),
        },
    }


@router.delete("/device-token/{device_token}")
def remove_device_token(
    device_token: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    dispatcher.deactivate_device_token(db, user_id, device_token)
    return {"message": "Device token removed"}
