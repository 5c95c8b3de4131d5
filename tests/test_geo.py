import pytest

from utils.geo import (
    GeoPoint,
    bounding_box,
    haversine_km,
    is_valid_point,
    is_within_radius,
    round_distance,
)


def test_distance_to_self_is_zero():
    assert haversine_km(52.52, 13.405, 52.52, 13.405) == 0


def test_distance_is_symmetric():
    a = haversine_km(52.52, 13.405, 48.1351, 11.582)
    b = haversine_km(48.1351, 11.582, 52.52, 13.405)
    assert a == pytest.approx(b)


@pytest.mark.parametrize(
    "a, b, expected_km",
    [
        ((52.5200, 13.4050), (48.1351, 11.5820), 504.0),   # Berlin - Munich
        ((51.5074, -0.1278), (48.8566, 2.3522), 344.0),     # London - Paris
        ((40.7128, -74.0060), (34.0522, -118.2437), 3936.0),  # New York - Los Angeles
    ],
)
def test_known_city_pairs_within_five_percent(a, b, expected_km):
    distance = haversine_km(a[0], a[1], b[0], b[1])
    assert distance == pytest.approx(expected_km, rel=0.05)


def test_is_within_radius():
    center = GeoPoint(52.52, 13.405)
    assert is_within_radius(center, GeoPoint(52.538, 13.405), 5)
    assert not is_within_radius(center, GeoPoint(52.61, 13.405), 5)


@pytest.mark.parametrize(
    "lat, lng, valid",
    [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (90.1, 0, False),
        (0, 180.5, False),
        (None, 10, False),
    ],
)
def test_is_valid_point(lat, lng, valid):
    assert is_valid_point(lat, lng) is valid


def test_bounding_box_contains_radius_points():
    box = bounding_box(52.52, 13.405, 10)
    # 10 km due north / east must be inside the box
    assert box.min_lat < 52.52 + 0.089 < box.max_lat
    assert box.min_lng < 13.405 + 0.14 < box.max_lng
    assert box.min_lat > 52.3 and box.max_lat < 52.7


def test_bounding_box_near_pole_spans_all_longitudes():
    box = bounding_box(89.99, 0, 50)
    assert box.max_lat == 90.0
    assert box.max_lng - box.min_lng == pytest.approx(360.0)


def test_round_distance():
    assert round_distance(1.23456) == 1.23
    assert round_distance(0.005) in (0.0, 0.01)


@pytest.mark.parametrize("lat", [0.0, 45.0, 60.0, 75.0, -70.0])
def test_bounding_box_never_cuts_the_circle(lat):
    radius = 10.0
    box = bounding_box(lat, 20.0, radius)
    step = 0.01
    for i in range(-100, 101):
        for j in range(-100, 101):
            p_lat, p_lng = lat + i * step * 0.1, 20.0 + j * step * 0.5
            if haversine_km(lat, 20.0, p_lat, p_lng) <= radius:
                assert box.min_lat <= p_lat <= box.max_lat
                assert box.min_lng <= p_lng <= box.max_lng


def test_bounding_box_edge_of_radius_on_the_equator():
    # 9.996 km due north
    assert haversine_km(0, 0, 0.0899, 0) < 10
    box = bounding_box(0, 0, 10)
    assert box.max_lat > 0.0899
