import pytest

from factories import (
    BERLIN,
    BERLIN_2KM_NORTH,
    BERLIN_10KM_NORTH,
    make_business,
    make_deal,
    make_follow,
    make_user,
)
from models.follow import FOLLOW_MUTED, FOLLOW_UNFOLLOWED
from models.user import USER_TYPE_BUSINESS
from utils import audience
from utils.errors import NotFoundError


def test_owner_is_never_in_the_audience(db):
    owner = make_user(db, user_type=USER_TYPE_BUSINESS, default_lat=BERLIN[0], default_lng=BERLIN[1])
    business = make_business(db, owner=owner)
    make_follow(db, owner, business)
    deal = make_deal(db, business)

    result = audience.resolve(db, deal.id)

    assert owner.id not in result.user_ids
    assert result.is_empty


def test_followers_respect_status_and_opt_in(db):
    business = make_business(db, location=None)
    active = make_user(db)
    muted = make_user(db)
    opted_out = make_user(db)
    make_follow(db, active, business)
    make_follow(db, muted, business, status=FOLLOW_MUTED)
    make_follow(db, opted_out, business, notify_new_deals=False)
    deal = make_deal(db, business)

    result = audience.resolve(db, deal.id)

    assert result.follower_ids == [active.id]
    assert result.nearby_ids == []


def test_flash_deals_use_flash_opt_in(db):
    business = make_business(db, location=None)
    flash_fan = make_user(db)
    no_flash = make_user(db)
    make_follow(db, flash_fan, business, notify_new_deals=False)
    make_follow(db, no_flash, business, notify_flash_deals=False)
    deal = make_deal(db, business, is_flash_deal=True)

    assert audience.resolve(db, deal.id).follower_ids == [flash_fan.id]


def test_nearby_consumers(db):
    business = make_business(db, location=BERLIN)
    deal = make_deal(db, business, visibility_radius_km=5)

    near = make_user(db, default_lat=BERLIN_2KM_NORTH[0], default_lng=BERLIN_2KM_NORTH[1])
    make_user(db, default_lat=BERLIN_10KM_NORTH[0], default_lng=BERLIN_10KM_NORTH[1])
    # user radius narrower than the deal's
    make_user(db, default_lat=BERLIN_2KM_NORTH[0], default_lng=BERLIN_2KM_NORTH[1], default_radius_km=1)
    make_user(db, default_lat=BERLIN_2KM_NORTH[0], default_lng=BERLIN_2KM_NORTH[1], notify_nearby_deals=False)
    make_user(db, user_type=USER_TYPE_BUSINESS, default_lat=BERLIN[0], default_lng=BERLIN[1])
    make_user(db)  # no stored location

    muted_follower = make_user(db, default_lat=BERLIN[0], default_lng=BERLIN[1])
    make_follow(db, muted_follower, business, status=FOLLOW_MUTED)
    former_follower = make_user(db, default_lat=BERLIN[0], default_lng=BERLIN[1])
    make_follow(db, former_follower, business, status=FOLLOW_UNFOLLOWED)

    result = audience.resolve(db, deal.id)

    # muted followers still count as following, so they are not "nearby"
    assert result.nearby_ids == sorted([near.id, former_follower.id])
    assert result.follower_ids == []


def test_union_is_deduplicated(db):
    business = make_business(db, location=BERLIN)
    follower = make_user(db, default_lat=BERLIN[0], default_lng=BERLIN[1])
    make_follow(db, follower, business)
    neighbour = make_user(db, default_lat=BERLIN[0], default_lng=BERLIN[1])
    deal = make_deal(db, business)

    result = audience.resolve(db, deal.id)

    assert result.follower_ids == [follower.id]
    assert result.nearby_ids == [neighbour.id]
    assert result.user_ids == sorted([follower.id, neighbour.id])


def test_missing_deal(db):
    with pytest.raises(NotFoundError):
        audience.resolve(db, 404)


def test_nearby_consumer_at_the_edge_of_the_radius(db):
    business = make_business(db, location=(0.0899, 0.0))
    deal = make_deal(db, business, visibility_radius_km=10)
    consumer = make_user(db, default_lat=0.0, default_lng=0.0, default_radius_km=10)

    assert audience.resolve(db, deal.id).nearby_ids == [consumer.id]
