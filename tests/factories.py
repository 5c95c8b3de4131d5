from __future__ import annotations

import itertools
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from models.business import Business
from models.deal import DEAL_ACTIVE, Deal
from models.device_token import DeviceToken
from models.follow import FOLLOW_ACTIVE, Follow
from models.user import USER_TYPE_BUSINESS, USER_TYPE_CONSUMER, User
from utils.dates import utc_now
from utils.push_gateway import BatchResponse, SendResponse

_seq = itertools.count(1)

# Berlin Mitte and a few points around it
BERLIN = (52.5200, 13.4050)
BERLIN_2KM_NORTH = (52.5380, 13.4050)
BERLIN_10KM_NORTH = (52.6100, 13.4050)


def make_user(db, user_type: str = USER_TYPE_CONSUMER, **kwargs) -> User:
    n = next(_seq)
    user = User(
        username=kwargs.pop("username", f"user{n}"),
        email=kwargs.pop("email", f"user{n}@example.com"),
        user_type=user_type,
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_system_user(db) -> User:
    user = User(
        username="slashhour",
        email="system@slashhour.app",
        user_type="system",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_business(db, owner: Optional[User] = None, location=BERLIN, **kwargs) -> Business:
    n = next(_seq)
    owner = owner or make_user(db, user_type=USER_TYPE_BUSINESS)
    lat, lng = location if location else (None, None)
    business = Business(
        owner_id=owner.id,
        business_name=kwargs.pop("business_name", f"Shop {n}"),
        slug=kwargs.pop("slug", f"shop-{n}"),
        lat=lat,
        lng=lng,
        **kwargs,
    )
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


def make_deal(db, business: Business, **kwargs) -> Deal:
    now = utc_now()
    values = dict(
        business_id=business.id,
        title="Half price pizza",
        original_price=Decimal("20.00"),
        discounted_price=Decimal("10.00"),
        discount_percentage=50,
        starts_at=now - timedelta(hours=1),
        expires_at=now + timedelta(days=1),
        quantity_available=None,
        quantity_redeemed=0,
        max_per_user=1,
        status=DEAL_ACTIVE,
        visibility_radius_km=5.0,
        tags=[],
        images=[],
    )
    values.update(kwargs)
    deal = Deal(**values)
    db.add(deal)
    db.commit()
    db.refresh(deal)
    return deal


def make_follow(db, user: User, business: Business, **kwargs) -> Follow:
    follow = Follow(user_id=user.id, business_id=business.id, status=kwargs.pop("status", FOLLOW_ACTIVE), **kwargs)
    db.add(follow)
    db.commit()
    return follow


def make_token(db, user: User, token: str, is_active: bool = True) -> DeviceToken:
    row = DeviceToken(user_id=user.id, device_token=token, device_type="android", is_active=is_active)
    db.add(row)
    db.commit()
    return row


class FakePushGateway:
    """Records every multicast; per-token outcomes come from `errors` (token -> code)."""

    def __init__(self, errors: Optional[dict] = None, raises: Optional[Exception] = None):
        self.errors = errors or {}
        self.raises = raises
        self.sent = []

    def send_multicast(self, message):
        self.sent.append(message)
        if self.raises is not None:
            raise self.raises
        responses = []
        for token in message.tokens:
            code = self.errors.get(token)
            if code:
                responses.append(SendResponse(success=False, error_code=code, error_message=code))
            else:
                responses.append(SendResponse(success=True, message_id=f"msg-{token}"))
        return BatchResponse(responses=responses)
