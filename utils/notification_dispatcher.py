# =============================================================================
# 🔔 utils/notification_dispatcher.py
# -----------------------------------------------------------------------------
# Fan-out of one event to many users:
#   1. one Notification row per recipient (committed first, always)
#   2. one multicast push to all their active device tokens
#   3. bulk deactivation of tokens the gateway reports as dead
#
# Push problems are logged and never propagate to the caller.
# Also hosts the in-app notification history / device-token helpers.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models.deal import Deal
from models.device_token import DeviceToken
from models.notification import (
    NOTIFICATION_DEAL_EXPIRING_SOON,
    NOTIFICATION_FLASH_DEAL,
    NOTIFICATION_NEW_DEAL,
    Notification,
)
from utils import audience as audience_resolver
from utils.dates import utc_now
from utils.errors import NotFoundError
from utils.pagination import build_pagination
from utils.push_gateway import DEAD_TOKEN_CODES, HttpPushGateway, MulticastMessage

logger = logging.getLogger(__name__)

ANDROID_CHANNELS = {
    NOTIFICATION_NEW_DEAL: "new_deal",
    NOTIFICATION_FLASH_DEAL: "flash_deal",
    NOTIFICATION_DEAL_EXPIRING_SOON: "expiring_soon",
}
DEAL_CATEGORY_TYPES = {NOTIFICATION_NEW_DEAL, NOTIFICATION_FLASH_DEAL, NOTIFICATION_DEAL_EXPIRING_SOON}


def android_channel_for(notification_type: str) -> str:
    return ANDROID_CHANNELS.get(notification_type, "default")


def category_for(notification_type: str) -> str:
    return "deal_notification" if notification_type in DEAL_CATEGORY_TYPES else "default"


@dataclass
class NotificationPayload:
    type: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    image_url: Optional[str] = None
    action_url: Optional[str] = None


@dataclass
class DispatchResult:
    notifications_created: int = 0
    tokens_targeted: int = 0
    success_count: int = 0
    failure_count: int = 0
    deactivated_tokens: list[str] = field(default_factory=list)


# =============================================================================
# 📲 Push primitive
# =============================================================================
def build_multicast(tokens: list[str], payload: NotificationPayload) -> MulticastMessage:
    category = category_for(payload.type)
    data = {"type": payload.type, "category": category}
    data.update({k: str(v) for k, v in (payload.data or {}).items() if v is not None})
    if payload.action_url:
        data["action_url"] = payload.action_url
    if payload.image_url:
        data["image_url"] = payload.image_url

    return MulticastMessage(
        tokens=tokens,
        title=payload.title,
        body=payload.body,
        data=data,
        image_url=payload.image_url,
        android={
            "priority": "high",
            "notification": {"channel_id": android_channel_for(payload.type), "sound": "default"},
        },
        apns={"payload": {"aps": {"sound": "default", "badge": 1, "category": category}}},
    )


def deactivate_tokens(db: Session, tokens: Iterable[str]) -> int:
    tokens = list(set(tokens))
    if not tokens:
        return 0
    result = db.execute(
        update(DeviceToken)
        .where(DeviceToken.device_token.in_(tokens), DeviceToken.is_active.is_(True))
        .values(is_active=False, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info(f"🧹 Deactivated {result.rowcount} dead device token(s)")
    return result.rowcount


def push_to_users(
    db: Session,
    user_ids: Iterable[int],
    payload: NotificationPayload,
    gateway: Optional[HttpPushGateway],
    result: Optional[DispatchResult] = None,
) -> DispatchResult:
    """Multicast to all active tokens of the given users. Never raises."""
    result = result or DispatchResult()
    user_ids = list(user_ids)
    if gateway is None:
        logger.warning("⚠️ Push gateway not configured – push skipped")
        return result
    if not user_ids:
        return result

    try:
        tokens = list(
            db.execute(
                select(DeviceToken.device_token).where(
                    DeviceToken.user_id.in_(user_ids),
                    DeviceToken.is_active.is_(True),
                )
            ).scalars()
        )
        result.tokens_targeted = len(tokens)
        if not tokens:
            logger.info(f"📭 No active device tokens for {len(user_ids)} user(s)")
            return result

        batch = gateway.send_multicast(build_multicast(tokens, payload))
        result.success_count = batch.success_count
        result.failure_count = batch.failure_count

        dead = []
        for token, response in zip(tokens, batch.responses):
            if response.success:
                continue
            if response.error_code in DEAD_TOKEN_CODES:
                dead.append(token)
            else:
                logger.warning(f"⚠️ Push failed for token …{token[-6:]}: {response.error_code}")

        if dead:
            deactivate_tokens(db, dead)
            result.deactivated_tokens = dead
    except Exception:
        db.rollback()
        logger.exception(f"❌ Push delivery failed ({payload.type})")

    return result


# =============================================================================
# 📨 Fan-out
# =============================================================================
def create_notifications(db: Session, user_ids: Iterable[int], payload: NotificationPayload) -> int:
    rows = [
        Notification(
            user_id=user_id,
            type=payload.type,
            title=payload.title,
            body=payload.body,
            data=payload.data or {},
            image_url=payload.image_url,
            action_url=payload.action_url,
            is_read=False,
        )
        for user_id in user_ids
    ]
    if not rows:
        return 0
    db.add_all(rows)
    db.commit()
    return len(rows)


def send(
    db: Session,
    user_ids: Iterable[int],
    payload: NotificationPayload,
    gateway: Optional[HttpPushGateway] = None,
) -> DispatchResult:
    user_ids = sorted(set(user_ids))
    result = DispatchResult()
    if not user_ids:
        return result

    result.notifications_created = create_notifications(db, user_ids, payload)
    push_to_users(db, user_ids, payload, gateway, result=result)

    logger.info(
        f"🔔 {payload.type}: {result.notifications_created} notifications, "
        f"{result.success_count}/{result.tokens_targeted} pushes delivered"
    )
    return result


def build_new_deal_payload(deal: Deal) -> NotificationPayload:
    business_name = deal.business.business_name if deal.business else "a business"
    if deal.is_flash_deal:
        notification_type = NOTIFICATION_FLASH_DEAL
        title = f"⚡ Flash Deal from {business_name}!"
    else:
        notification_type = NOTIFICATION_NEW_DEAL
        title = f"New Deal from {business_name}"

    images = deal.images or []
    first_image = images[0].get("url") if images and isinstance(images[0], dict) else None

    return NotificationPayload(
        type=notification_type,
        title=title,
        body=f"{deal.title} - Save {deal.effective_discount_percentage()}%!",
        data={"deal_id": deal.id, "business_id": deal.business_id},
        image_url=first_image,
        action_url=f"/deals/{deal.id}",
    )


def notify_new_deal(
    deal_id: int,
    session_factory: Callable[[], Session],
    gateway: Optional[HttpPushGateway] = None,
) -> Optional[DispatchResult]:
    """Background entry point after deal creation. Logs every failure, never raises."""
    db = session_factory()
    try:
        audience = audience_resolver.resolve(db, deal_id)
        if audience.is_empty:
            logger.info(f"📭 Deal {deal_id}: nobody to notify")
            return DispatchResult()

        deal = db.get(Deal, deal_id)
        payload = build_new_deal_payload(deal)
        return send(db, audience.user_ids, payload, gateway)
    except Exception:
        db.rollback()
        logger.exception(f"❌ New-deal notification failed for deal {deal_id}")
        return None
    finally:
        db.close()


# =============================================================================
# 📥 In-app history
# =============================================================================
def list_notifications(db: Session, user_id: int, page: int = 1, limit: int = 20) -> dict[str, Any]:
    total = db.execute(
        select(func.count(Notification.id)).where(Notification.user_id == user_id)
    ).scalar_one()
    rows = db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.sent_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return {
        "notifications": [n.to_dict() for n in rows],
        "pagination": build_pagination(page, limit, total),
    }


def unread_count(db: Session, user_id: int) -> int:
    return db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    ).scalar_one()


def mark_read(db: Session, user_id: int, notification_ids: list[int]) -> int:
    if not notification_ids:
        return 0
    result = db.execute(
        update(Notification)
        .where(
            Notification.user_id == user_id,
            Notification.id.in_(notification_ids),
            Notification.is_read.is_(False),
        )
        .values(is_read=True, read_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def mark_all_read(db: Session, user_id: int) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def delete_notification(db: Session, user_id: int, notification_id: int) -> None:
    row = db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Notification not found")
    db.delete(row)
    db.commit()


def register_device_token(
    db: Session,
    user_id: int,
    device_token: str,
    device_type: Optional[str] = None,
    device_name: Optional[str] = None,
) -> DeviceToken:
    row = db.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id, DeviceToken.device_token == device_token
        )
    ).scalar_one_or_none()

    if row is None:
        row = DeviceToken(user_id=user_id, device_token=device_token)
        db.add(row)
    row.device_type = device_type or row.device_type
    row.device_name = device_name or row.device_name
    row.is_active = True
    row.updated_at = utc_now()
    db.commit()
    db.refresh(row)
    logger.info(f"📱 Device token registered for user {user_id} ({row.device_type or 'unknown'})")
    return row


def deactivate_device_token(db: Session, user_id: int, device_token: str) -> DeviceToken:
    row = db.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id, DeviceToken.device_token == device_token
        )
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Device token not found")
    row.is_active = False
    row.updated_at = utc_now()
    db.commit()
    return row
