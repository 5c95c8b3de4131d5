# =============================================================================
# 📣 utils/broadcast_engine.py
# -----------------------------------------------------------------------------
# Admin mass messaging into every user's system inbox.
#   - audience segments (all / new_users / active_users / business_owners /
#     consumers)
#   - per-user delivery that survives individual failures
#   - scheduled broadcasts (delivered later by scripts/send_scheduled_broadcasts.py)
#   - link click tracking, aggregated on read
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from models.broadcast import (
    BROADCAST_SCHEDULED,
    BROADCAST_SENDING,
    BROADCAST_SENT,
    BroadcastLinkClick,
    BroadcastMessage,
)
from models.conversation import Conversation, Message
from models.notification import NOTIFICATION_SYSTEM
from models.user import USER_TYPE_BUSINESS, USER_TYPE_CONSUMER, User
from utils.dates import as_utc, utc_now
from utils.errors import InvalidStateError, NotFoundError
from utils.link_detector import get_unique_links
from utils.notification_dispatcher import NotificationPayload, push_to_users
from utils.pagination import build_pagination, clamp_page
from utils.push_gateway import HttpPushGateway

logger = logging.getLogger(__name__)

SEGMENT_ALL = "all"
SEGMENT_NEW_USERS = "new_users"
SEGMENT_ACTIVE_USERS = "active_users"
SEGMENT_BUSINESS_OWNERS = "business_owners"
SEGMENT_CONSUMERS = "consumers"
SEGMENTS = (
    SEGMENT_ALL,
    SEGMENT_NEW_USERS,
    SEGMENT_ACTIVE_USERS,
    SEGMENT_BUSINESS_OWNERS,
    SEGMENT_CONSUMERS,
)

NEW_USER_WINDOW = timedelta(days=7)
ACTIVE_USER_WINDOW = timedelta(days=30)
RECENT_CLICKS = 5


@dataclass
class BroadcastOutcome:
    success: bool
    message: str
    broadcast_id: Optional[int] = None
    stats: dict[str, int] = field(default_factory=dict)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "success": self.success,
            "message": self.message,
            "broadcast_id": self.broadcast_id,
            "stats": self.stats,
        }
        if self.errors:
            data["errors"] = self.errors
        return data


def _empty_stats() -> dict[str, int]:
    return {"users_targeted": 0, "messages_sent": 0, "conversations_created": 0, "errors": 0}


# =============================================================================
# 👥 Segments
# =============================================================================
def _segment_filters(target_group: str, now: datetime) -> list:
    base = [User.user_type.in_((USER_TYPE_CONSUMER, USER_TYPE_BUSINESS))]
    if target_group == SEGMENT_ALL:
        return base
    if target_group == SEGMENT_NEW_USERS:
        return base + [User.created_at >= now - NEW_USER_WINDOW]
    if target_group == SEGMENT_ACTIVE_USERS:
        return base + [User.last_active_at.is_not(None), User.last_active_at >= now - ACTIVE_USER_WINDOW]
    if target_group == SEGMENT_BUSINESS_OWNERS:
        return [User.user_type == USER_TYPE_BUSINESS]
    if target_group == SEGMENT_CONSUMERS:
        return [User.user_type == USER_TYPE_CONSUMER]
    raise InvalidStateError(f"Unknown target group: {target_group}")


def target_user_ids(db: Session, target_group: str, now: Optional[datetime] = None) -> list[int]:
    filters = _segment_filters(target_group, now or utc_now())
    rows = db.execute(
        select(User.id).where(*filters, User.id != config.SYSTEM_USER_ID).order_by(User.id)
    ).scalars()
    return list(rows)


def segment_counts(db: Session, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utc_now()
    counts = {}
    for segment in SEGMENTS:
        counts[segment] = db.execute(
            select(func.count(User.id)).where(
                *_segment_filters(segment, now), User.id != config.SYSTEM_USER_ID
            )
        ).scalar_one()
    return counts


def validate_message(message: Optional[str]) -> str:
    text = (message or "").strip()
    if not text:
        raise InvalidStateError("Message cannot be empty")
    if len(text) > config.BROADCAST_MAX_LENGTH:
        raise InvalidStateError(
            f"Message cannot exceed {config.BROADCAST_MAX_LENGTH} characters"
        )
    return text


# =============================================================================
# ✉️ Create & deliver
# =============================================================================
def create_broadcast(
    db: Session,
    admin_id: Optional[str],
    message: str,
    target_group: str = SEGMENT_ALL,
    scheduled_at: Optional[datetime] = None,
    gateway: Optional[HttpPushGateway] = None,
    now: Optional[datetime] = None,
) -> BroadcastOutcome:
    text = validate_message(message)
    now = as_utc(now) or utc_now()
    user_ids = target_user_ids(db, target_group, now)

    if not user_ids:
        return BroadcastOutcome(
            success=False,
            message="No users found in target group",
            stats=_empty_stats(),
        )

    links = get_unique_links(text)
    scheduled_at = as_utc(scheduled_at)
    is_scheduled = scheduled_at is not None and scheduled_at > now

    broadcast = BroadcastMessage(
        admin_id=admin_id,
        message=text,
        target_group=target_group,
        users_targeted=len(user_ids),
        contains_links=bool(links),
        links=links or None,
        status=BROADCAST_SCHEDULED if is_scheduled else BROADCAST_SENDING,
        scheduled_at=scheduled_at,
    )
    db.add(broadcast)
    db.commit()
    db.refresh(broadcast)

    if is_scheduled:
        logger.info(f"🗓️ Broadcast {broadcast.id} scheduled for {scheduled_at.isoformat()}")
        stats = _empty_stats()
        stats["users_targeted"] = len(user_ids)
        return BroadcastOutcome(
            success=True,
            message="Broadcast scheduled",
            broadcast_id=broadcast.id,
            stats=stats,
        )

    return deliver(db, broadcast, user_ids, gateway=gateway, now=now)


def _get_or_create_conversation(db: Session, customer_id: int, now: datetime) -> tuple[Conversation, bool]:
    conversation = db.execute(
        select(Conversation).where(
            Conversation.host_id == config.SYSTEM_USER_ID,
            Conversation.customer_id == customer_id,
        )
    ).scalar_one_or_none()
    if conversation is not None:
        return conversation, False

    conversation = Conversation(
        host_id=config.SYSTEM_USER_ID,
        customer_id=customer_id,
        last_message_at=now,
        unread_count=0,
    )
    db.add(conversation)
    db.flush()
    return conversation, True


def deliver(
    db: Session,
    broadcast: BroadcastMessage,
    user_ids: list[int],
    gateway: Optional[HttpPushGateway] = None,
    now: Optional[datetime] = None,
) -> BroadcastOutcome:
    """Drop the message into each user's system conversation. One failing user never aborts the run."""
    now = now or utc_now()
    broadcast_id = broadcast.id
    text = broadcast.message

    if broadcast.status != BROADCAST_SENDING:
        broadcast.status = BROADCAST_SENDING
        db.commit()

    sent = 0
    created = 0
    reached = []
    errors = []

    for user_id in user_ids:
        try:
            conversation, is_new = _get_or_create_conversation(db, user_id, now)
            db.add(
                Message(
                    conversation_id=conversation.id,
                    sender_id=config.SYSTEM_USER_ID,
                    message_text=text,
                    message_type="system",
                    is_read=False,
                    broadcast_id=broadcast_id,
                    created_at=now,
                )
            )
            conversation.last_message_at = now
            conversation.last_message_text = text[:100]
            conversation.unread_count = (conversation.unread_count or 0) + 1
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(f"⚠️ Broadcast {broadcast_id}: delivery to user {user_id} failed: {exc}")
            errors.append({"user_id": user_id, "error": str(exc)})
            continue

        sent += 1
        created += int(is_new)
        reached.append(user_id)

    broadcast = db.get(BroadcastMessage, broadcast_id)
    broadcast.messages_sent = sent
    broadcast.conversations_created = created
    broadcast.errors_count = len(errors)
    broadcast.status = BROADCAST_SENT
    broadcast.sent_at = utc_now()
    db.commit()

    logger.info(
        f"📣 Broadcast {broadcast_id} sent: {sent}/{len(user_ids)} delivered, "
        f"{created} new conversations, {len(errors)} errors"
    )

    if reached:
        push_to_users(
            db,
            reached,
            NotificationPayload(
                type=NOTIFICATION_SYSTEM,
                title="Slashhour",
                body=text[:100],
                data={"broadcast_id": broadcast_id},
            ),
            gateway,
        )

    return BroadcastOutcome(
        success=True,
        message=f"Broadcast sent to {sent} users",
        broadcast_id=broadcast_id,
        stats={
            "users_targeted": broadcast.users_targeted,
            "messages_sent": sent,
            "conversations_created": created,
            "errors": len(errors),
        },
        errors=errors,
    )


def send_due_broadcasts(
    db: Session,
    gateway: Optional[HttpPushGateway] = None,
    now: Optional[datetime] = None,
) -> list[BroadcastOutcome]:
    """Deliver every scheduled broadcast whose time has come; segments are re-resolved."""
    now = now or utc_now()
    due = db.execute(
        select(BroadcastMessage)
        .where(
            BroadcastMessage.status == BROADCAST_SCHEDULED,
            BroadcastMessage.scheduled_at <= now,
        )
        .order_by(BroadcastMessage.scheduled_at)
    ).scalars().all()

    outcomes = []
    for broadcast in due:
        user_ids = target_user_ids(db, broadcast.target_group, now)
        broadcast.users_targeted = len(user_ids)
        db.commit()
        outcomes.append(deliver(db, broadcast, user_ids, gateway=gateway, now=now))
    return outcomes


# =============================================================================
# 📊 Click tracking & analytics
# =============================================================================
def get_broadcast(db: Session, broadcast_id: int) -> BroadcastMessage:
    broadcast = db.get(BroadcastMessage, broadcast_id)
    if broadcast is None:
        raise NotFoundError("Broadcast not found")
    return broadcast


def track_click(
    db: Session,
    broadcast_id: int,
    user_id: int,
    link_url: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> BroadcastLinkClick:
    get_broadcast(db, broadcast_id)
    click = BroadcastLinkClick(
        broadcast_id=broadcast_id,
        user_id=user_id,
        link_url=link_url,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
    )
    db.add(click)
    db.commit()
    db.refresh(click)
    return click


def broadcast_analytics(db: Session, broadcast: BroadcastMessage) -> dict[str, Any]:
    clicks = db.execute(
        select(BroadcastLinkClick)
        .where(BroadcastLinkClick.broadcast_id == broadcast.id)
        .order_by(BroadcastLinkClick.clicked_at.desc(), BroadcastLinkClick.id.desc())
    ).scalars().all()

    per_link: dict[str, dict[str, Any]] = {}
    for click in clicks:
        entry = per_link.setdefault(
            click.link_url,
            {"link_url": click.link_url, "total_clicks": 0, "users": set(), "recent_clicks": []},
        )
        entry["total_clicks"] += 1
        entry["users"].add(click.user_id)
        if len(entry["recent_clicks"]) < RECENT_CLICKS:
            entry["recent_clicks"].append(click.to_dict())

    link_stats = []
    for entry in per_link.values():
        users = entry.pop("users")
        entry["unique_users"] = len(users)
        link_stats.append(entry)
    link_stats.sort(key=lambda e: e["total_clicks"], reverse=True)

    messages_read = db.execute(
        select(func.count(Message.id)).where(
            Message.broadcast_id == broadcast.id, Message.is_read.is_(True)
        )
    ).scalar_one()
    sent = broadcast.messages_sent or 0

    return {
        "link_clicks": link_stats,
        "total_link_clicks": len(clicks),
        "messages_read": messages_read,
        "read_rate": round(messages_read / sent * 100, 2) if sent else 0.0,
    }


def broadcast_details(db: Session, broadcast_id: int) -> dict[str, Any]:
    broadcast = get_broadcast(db, broadcast_id)
    data = broadcast.to_dict()
    data["analytics"] = broadcast_analytics(db, broadcast)
    return data


def list_broadcasts(
    db: Session,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
) -> dict[str, Any]:
    page, limit = clamp_page(page, limit)
    filters = [BroadcastMessage.status == status] if status else []
    total = db.execute(select(func.count(BroadcastMessage.id)).where(*filters)).scalar_one()
    rows = db.execute(
        select(BroadcastMessage)
        .where(*filters)
        .order_by(BroadcastMessage.created_at.desc(), BroadcastMessage.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return {
        "broadcasts": [b.to_dict() for b in rows],
        "pagination": build_pagination(page, limit, total),
    }
