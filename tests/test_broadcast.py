from datetime import timedelta

import pytest
from sqlalchemy import func, select

import config
from factories import FakePushGateway, make_system_user, make_token, make_user
from models.broadcast import BROADCAST_SCHEDULED, BROADCAST_SENT, BroadcastMessage
from models.conversation import Conversation, Message
from models.user import USER_TYPE_BUSINESS
from utils import broadcast_engine
from utils.dates import utc_now
from utils.errors import InvalidStateError, NotFoundError


@pytest.fixture
def system_user(db, monkeypatch):
    user = make_system_user(db)
    monkeypatch.setattr(config, "SYSTEM_USER_ID", user.id)
    return user


def test_message_validation(db, system_user):
    with pytest.raises(InvalidStateError, match="Message cannot be empty"):
        broadcast_engine.create_broadcast(db, "admin", "   ")
    with pytest.raises(InvalidStateError, match="cannot exceed 1000 characters"):
        broadcast_engine.create_broadcast(db, "admin", "x" * 1001)
    with pytest.raises(InvalidStateError, match="Unknown target group"):
        broadcast_engine.create_broadcast(db, "admin", "hello", target_group="vips")


def test_empty_segment_creates_nothing(db, system_user):
    make_user(db)
    outcome = broadcast_engine.create_broadcast(db, "admin", "Hi owners", target_group="business_owners")

    assert outcome.success is False
    assert outcome.broadcast_id is None
    assert outcome.stats == {"users_targeted": 0, "messages_sent": 0, "conversations_created": 0, "errors": 0}
    assert db.execute(select(func.count(BroadcastMessage.id))).scalar_one() == 0


def test_segments(db, system_user):
    now = utc_now()
    make_user(db, created_at=now - timedelta(days=30), last_active_at=now - timedelta(days=1))
    make_user(db, created_at=now - timedelta(days=2))
    make_user(db, user_type=USER_TYPE_BUSINESS, created_at=now - timedelta(days=60))

    counts = broadcast_engine.segment_counts(db, now=now)

    assert counts == {
        "all": 3,
        "new_users": 1,
        "active_users": 1,
        "business_owners": 1,
        "consumers": 2,
    }


def test_broadcast_delivers_to_system_inbox(db, system_user):
    alice = make_user(db)
    bob = make_user(db)
    make_token(db, alice, "alice-phone")
    # bob already talked to the system account
    db.add(Conversation(host_id=system_user.id, customer_id=bob.id, unread_count=2))
    db.commit()
    gateway = FakePushGateway()

    text = "Weekend special! Details at www.slashhour.app/weekend and https://slashhour.app/faq"
    outcome = broadcast_engine.create_broadcast(db, "admin-7", text, gateway=gateway)

    assert outcome.success is True
    assert outcome.stats == {"users_targeted": 2, "messages_sent": 2, "conversations_created": 1, "errors": 0}

    broadcast = db.get(BroadcastMessage, outcome.broadcast_id)
    assert broadcast.status == BROADCAST_SENT
    assert broadcast.sent_at is not None
    assert broadcast.contains_links is True
    assert [link["url"] for link in broadcast.links] == [
        "https://www.slashhour.app/weekend",
        "https://slashhour.app/faq",
    ]

    messages = db.execute(select(Message).where(Message.broadcast_id == broadcast.id)).scalars().all()
    assert len(messages) == 2
    assert {m.message_type for m in messages} == {"system"}

    bob_conversation = db.execute(
        select(Conversation).where(Conversation.customer_id == bob.id)
    ).scalar_one()
    assert bob_conversation.unread_count == 3
    assert bob_conversation.last_message_text == text[:100]

    assert len(gateway.sent) == 1
    assert gateway.sent[0].tokens == ["alice-phone"]
    assert gateway.sent[0].data["type"] == "system"


def test_scheduled_broadcast_waits_for_sender(db, system_user):
    make_user(db)
    later = utc_now() + timedelta(hours=2)

    outcome = broadcast_engine.create_broadcast(db, "admin", "Coming soon", scheduled_at=later)

    assert outcome.success is True
    broadcast = db.get(BroadcastMessage, outcome.broadcast_id)
    assert broadcast.status == BROADCAST_SCHEDULED
    assert db.execute(select(func.count(Message.id))).scalar_one() == 0

    assert broadcast_engine.send_due_broadcasts(db, now=utc_now()) == []

    make_user(db)
    outcomes = broadcast_engine.send_due_broadcasts(db, now=later + timedelta(minutes=1))
    assert len(outcomes) == 1
    assert outcomes[0].stats["messages_sent"] == 2
    db.expire_all()
    assert db.get(BroadcastMessage, broadcast.id).status == BROADCAST_SENT


def test_click_tracking_and_analytics(db, system_user):
    alice, bob = make_user(db), make_user(db)
    outcome = broadcast_engine.create_broadcast(db, "admin", "Read https://a.io and https://b.io")

    for user in (alice, alice, bob):
        broadcast_engine.track_click(db, outcome.broadcast_id, user.id, "https://a.io", "10.0.0.1", "pytest")
    broadcast_engine.track_click(db, outcome.broadcast_id, bob.id, "https://b.io")

    message = db.execute(
        select(Message).where(Message.broadcast_id == outcome.broadcast_id).limit(1)
    ).scalar_one()
    message.is_read = True
    db.commit()

    details = broadcast_engine.broadcast_details(db, outcome.broadcast_id)
    analytics = details["analytics"]

    assert analytics["total_link_clicks"] == 4
    assert analytics["messages_read"] == 1
    assert analytics["read_rate"] == 50.0
    top = analytics["link_clicks"][0]
    assert top["link_url"] == "https://a.io"
    assert top["total_clicks"] == 3
    assert top["unique_users"] == 2
    assert len(top["recent_clicks"]) == 3


def test_track_click_unknown_broadcast(db):
    user = make_user(db)
    with pytest.raises(NotFoundError):
        broadcast_engine.track_click(db, 404, user.id, "https://a.io")


def test_list_broadcasts_filters_by_status(db, system_user):
    make_user(db)
    broadcast_engine.create_broadcast(db, "admin", "now")
    broadcast_engine.create_broadcast(db, "admin", "later", scheduled_at=utc_now() + timedelta(days=1))

    all_rows = broadcast_engine.list_broadcasts(db)
    scheduled = broadcast_engine.list_broadcasts(db, status="scheduled")

    assert all_rows["pagination"]["total"] == 2
    assert [b["message"] for b in scheduled["broadcasts"]] == ["later"]
