from datetime import timedelta

import pytest
from sqlalchemy import func, select

from factories import (
    BERLIN,
    BERLIN_2KM_NORTH,
    make_business,
    make_deal,
    make_follow,
    make_system_user,
    make_token,
    make_user,
)
from main import app
from models.deal import DEAL_SOLD_OUT, Deal
from models.device_token import DeviceToken
from models.notification import Notification
from utils.dates import utc_now


def _as(user_id):
    return {"X-User-Id": str(user_id)}


# -------------------------------------------------------------------------
# 🩺 Basics
# -------------------------------------------------------------------------
def test_health(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_identity_header_is_required(api):
    response = api.get("/redemptions")
    assert response.status_code == 401
    assert api.get("/redemptions", headers={"X-User-Id": "abc"}).status_code == 401


def test_debug_routes_lists_registered_paths(api):
    response = api.get("/debug/routes")
    assert response.status_code == 200
    paths = {r["path"] for r in response.json()}
    assert {"/health", "/debug/routes"} <= paths


@pytest.mark.asyncio
async def test_all_get_routes_answer_without_server_errors(client, admin_token, session_local):
    """
    Walks every parameter-free GET route with a user and admin identity.
    Client errors (e.g. missing location) are fine, 5xx is not.
    """
    with session_local() as db:
        user = make_user(db)

    headers = {**_as(user.id), "X-Admin-Token": admin_token, "X-Admin-Id": "ops"}
    failed = []
    paths = [
        path
        for path, operations in app.openapi()["paths"].items()
        if "get" in operations and "{" not in path
    ]
    assert "/feed/you-follow" in paths
    for path in paths + ["/debug/routes"]:
        response = await client.get(path, headers=headers)
        if response.status_code >= 500:
            failed.append((path, response.status_code))

    assert not failed, failed


# -------------------------------------------------------------------------
# 🏷️ Deals
# -------------------------------------------------------------------------
def test_create_deal_schedules_fan_out(api, session_local, push_gateway):
    with session_local() as db:
        business = make_business(db, business_name="Luigi's", location=BERLIN)
        follower = make_user(db)
        make_follow(db, follower, business)
        make_token(db, follower, "follower-phone")
        neighbour = make_user(db, default_lat=BERLIN_2KM_NORTH[0], default_lng=BERLIN_2KM_NORTH[1])
        owner_id, business_id = business.owner_id, business.id
        follower_id, neighbour_id = follower.id, neighbour.id

    now = utc_now()
    response = api.post(
        f"/deals/{business_id}",
        headers=_as(owner_id),
        json={
            "title": "Margherita",
            "original_price": 12,
            "discounted_price": 6,
            "starts_at": now.isoformat(),
            "expires_at": (now + timedelta(hours=4)).isoformat(),
            "quantity_available": 20,
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Deal created successfully"
    assert body["deal"]["discount_percentage"] == 50
    assert body["deal"]["business"]["business_name"] == "Luigi's"

    with session_local() as db:
        recipients = set(db.execute(select(Notification.user_id)).scalars())
    assert recipients == {follower_id, neighbour_id}
    assert push_gateway.sent[0].title == "New Deal from Luigi's"
    assert push_gateway.sent[0].body == "Margherita - Save 50%!"


def test_create_deal_forbidden_for_non_owner(api, session_local):
    with session_local() as db:
        business = make_business(db)
        stranger = make_user(db)
        business_id, stranger_id = business.id, stranger.id

    now = utc_now()
    response = api.post(
        f"/deals/{business_id}",
        headers=_as(stranger_id),
        json={
            "title": "Nope",
            "original_price": 10,
            "discounted_price": 5,
            "starts_at": now.isoformat(),
            "expires_at": (now + timedelta(hours=1)).isoformat(),
        },
    )
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_update_and_delete_deal(api, session_local):
    with session_local() as db:
        business = make_business(db)
        deal = make_deal(db, business)
        owner_id, deal_id = business.owner_id, deal.id

    patched = api.patch(f"/deals/{deal_id}", headers=_as(owner_id), json={"title": "Renamed"})
    assert patched.status_code == 200
    assert patched.json()["deal"]["title"] == "Renamed"

    bad = api.patch(f"/deals/{deal_id}", headers=_as(owner_id), json={"discounted_price": 99})
    assert bad.status_code == 400
    assert bad.json() == {
        "detail": "Discounted price must be less than original price",
        "error": "invalid_state",
    }

    deleted = api.delete(f"/deals/{deal_id}", headers=_as(owner_id))
    assert deleted.status_code == 200
    assert api.get(f"/deals/{deal_id}").json()["status"] == "deleted"


def test_get_deal_not_found_uses_error_envelope(api):
    response = api.get("/deals/9999")
    assert response.status_code == 404
    assert response.json() == {"detail": "Deal not found", "error": "not_found"}


# -------------------------------------------------------------------------
# 🎟️ Redemption
# -------------------------------------------------------------------------
def test_redeem_last_unit_over_http(api, session_local, cache):
    with session_local() as db:
        business = make_business(db)
        deal = make_deal(db, business, quantity_available=1)
        first, second = make_user(db), make_user(db)
        deal_id, first_id, second_id = deal.id, first.id, second.id

    # warm the deal cache so the redemption has to invalidate it
    assert api.get(f"/deals/{deal_id}").json()["quantity_redeemed"] == 0

    ok = api.post(f"/deals/{deal_id}/redeem", headers=_as(first_id))
    assert ok.status_code == 200
    body = ok.json()
    assert body["message"] == "Deal redeemed successfully"
    assert body["redemptionCode"].startswith("SH-")
    assert body["receipt"]["savingsAmount"] == 10.0

    sold_out = api.post(f"/deals/{deal_id}/redeem", headers=_as(second_id))
    assert sold_out.status_code == 400
    assert sold_out.json() == {"detail": "Deal is sold out", "error": "invalid_state"}

    detail = api.get(f"/deals/{deal_id}").json()
    assert detail["status"] == DEAL_SOLD_OUT
    assert detail["quantity_redeemed"] == 1

    history = api.get("/redemptions", headers=_as(first_id)).json()
    assert history["pagination"]["total"] == 1
    assert history["redemptions"][0]["code"] == body["redemptionCode"]

    with session_local() as db:
        assert db.get(Deal, deal_id).status == DEAL_SOLD_OUT


# -------------------------------------------------------------------------
# 📰 Feeds
# -------------------------------------------------------------------------
def test_feeds_over_http(api, session_local):
    with session_local() as db:
        user = make_user(db)
        business = make_business(db, location=BERLIN_2KM_NORTH)
        make_follow(db, user, business)
        deal = make_deal(db, business)
        user_id, deal_id = user.id, deal.id

    following = api.get("/feed/you-follow", headers=_as(user_id), params={"lat": BERLIN[0], "lng": BERLIN[1]})
    assert following.status_code == 200
    assert [d["id"] for d in following.json()["deals"]] == [deal_id]

    nearby = api.get("/feed/near-you", headers=_as(user_id), params={"lat": BERLIN[0], "lng": BERLIN[1]})
    assert nearby.status_code == 200
    assert nearby.json()["location"]["radius"] == 5

    missing = api.get("/feed/near-you", headers=_as(user_id))
    assert missing.status_code == 422
    assert missing.json()["error"] == "location_required"

    too_many = api.get("/feed/you-follow", headers=_as(user_id), params={"limit": 500})
    assert too_many.status_code == 422


# -------------------------------------------------------------------------
# 🔔 Notifications
# -------------------------------------------------------------------------
def test_notification_endpoints(api, session_local):
    with session_local() as db:
        user = make_user(db)
        db.add_all(
            [
                Notification(user_id=user.id, type="system", title="a", body="a"),
                Notification(user_id=user.id, type="system", title="b", body="b"),
            ]
        )
        db.commit()
        user_id = user.id

    listing = api.get("/notifications", headers=_as(user_id)).json()
    assert listing["pagination"]["total"] == 2
    assert api.get("/notifications/unread-count", headers=_as(user_id)).json() == {"unread_count": 2}

    first_id = listing["notifications"][0]["id"]
    marked = api.post("/notifications/mark-read", headers=_as(user_id), json={"notification_ids": [first_id]})
    assert marked.json()["updated"] == 1
    assert api.post("/notifications/mark-all-read", headers=_as(user_id)).json()["updated"] == 1

    registered = api.post(
        "/notifications/device-token",
        headers=_as(user_id),
        json={"device_token": "tok-1", "device_type": "android"},
    )
    assert registered.status_code == 200
    assert registered.json()["device"]["is_active"] is True

    removed = api.delete("/notifications/device-token/tok-1", headers=_as(user_id))
    assert removed.status_code == 200
    assert api.delete("/notifications/device-token/unknown", headers=_as(user_id)).status_code == 404

    with session_local() as db:
        assert db.execute(
            select(func.count(DeviceToken.id)).where(DeviceToken.is_active.is_(True))
        ).scalar_one() == 0


# -------------------------------------------------------------------------
# 📣 Admin broadcasts
# -------------------------------------------------------------------------
def test_admin_endpoints_require_token(api, admin_token):
    assert api.get("/admin/messages/broadcasts").status_code == 401
    wrong = api.get("/admin/messages/broadcasts", headers={"X-Admin-Token": "nope"})
    assert wrong.status_code == 401


def test_admin_endpoints_disabled_without_configured_token(api, monkeypatch):
    import config

    monkeypatch.setattr(config, "ADMIN_TOKEN", "")
    response = api.get("/admin/messages/broadcasts", headers={"X-Admin-Token": "anything"})
    assert response.status_code == 500


def test_broadcast_flow_over_http(api, session_local, admin_token, monkeypatch):
    import config

    with session_local() as db:
        system = make_system_user(db)
        users = [make_user(db) for _ in range(3)]
        monkeypatch.setattr(config, "SYSTEM_USER_ID", system.id)
        user_id = users[0].id

    admin = {"X-Admin-Token": admin_token, "X-Admin-Id": "ops-1"}

    counts = api.get("/admin/messages/broadcast/user-count", headers=admin).json()
    assert counts["counts"]["consumers"] == 3
    assert api.get("/admin/messages/broadcast/user-count", headers=admin, params={"group": "consumers"}).json() == {
        "group": "consumers",
        "count": 3,
    }

    sent = api.post(
        "/admin/messages/broadcast",
        headers=admin,
        json={"message": "New app version! See https://slashhour.app/new", "target_group": "consumers"},
    )
    assert sent.status_code == 200
    body = sent.json()
    assert body["success"] is True
    assert body["stats"]["messages_sent"] == 3
    broadcast_id = body["broadcast_id"]

    click = api.post(
        f"/admin/messages/broadcasts/{broadcast_id}/track-click",
        json={"user_id": user_id, "link_url": "https://slashhour.app/new"},
        headers={"User-Agent": "pytest-agent"},
    )
    assert click.status_code == 200

    details = api.get(f"/admin/messages/broadcasts/{broadcast_id}", headers=admin).json()
    assert details["admin_id"] == "ops-1"
    assert details["analytics"]["total_link_clicks"] == 1

    listing = api.get("/admin/messages/broadcasts", headers=admin, params={"status": "sent"}).json()
    assert listing["pagination"]["total"] == 1

    empty = api.post("/admin/messages/broadcast", headers=admin, json={"message": "  "})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "Message cannot be empty"

    assert api.post(
        "/admin/messages/broadcasts/9999/track-click",
        json={"user_id": user_id, "link_url": "https://x.io"},
    ).status_code == 404


def test_single_redemption_and_notification_delete_over_http(api, session_local):
    with session_local() as db:
        business = make_business(db)
        deal = make_deal(db, business)
        user, other = make_user(db), make_user(db)
        db.add(Notification(user_id=user.id, type="system", title="a", body="a"))
        db.commit()
        deal_id, user_id, other_id = deal.id, user.id, other.id

    redeemed = api.post(f"/deals/{deal_id}/redeem", headers=_as(user_id)).json()
    redemption_id = redeemed["receipt"]["id"]

    detail = api.get(f"/redemptions/{redemption_id}", headers=_as(user_id))
    assert detail.status_code == 200
    assert detail.json()["code"] == redeemed["redemptionCode"]
    assert detail.json()["deal"]["id"] == deal_id

    foreign = api.get(f"/redemptions/{redemption_id}", headers=_as(other_id))
    assert foreign.status_code == 404
    assert foreign.json() == {"detail": "Redemption not found", "error": "not_found"}

    notification_id = api.get("/notifications", headers=_as(user_id)).json()["notifications"][0]["id"]
    assert api.delete(f"/notifications/{notification_id}", headers=_as(other_id)).status_code == 404
    assert api.delete(f"/notifications/{notification_id}", headers=_as(user_id)).json() == {"success": True}
    missing = api.delete(f"/notifications/{notification_id}", headers=_as(user_id))
    assert missing.json() == {"detail": "Notification not found", "error": "not_found"}
