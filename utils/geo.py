"""
📍 Geo helpers – great-circle distance and radius checks.
All distances are kilometres, all inputs are decimal degrees.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def is_within_radius(center: GeoPoint, point: GeoPoint, radius_km: float) -> bool:
    return distance_between(center, point) <= radius_km


def is_valid_point(lat: Optional[float], lng: Optional[float]) -> bool:
    if lat is None or lng is None:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """
    Coarse box around a point for SQL pre-filtering. Always a superset of the
    haversine circle; callers still apply haversine_km on the candidates.
    """
    # angular radius on the same sphere haversine_km uses
    angular = radius_km / EARTH_RADIUS_KM
    d_lat = math.degrees(angular)

    # circle touching a pole covers every longitude
    if lat + d_lat >= 90.0 or lat - d_lat <= -90.0:
        d_lng = 180.0
    else:
        ratio = math.sin(angular) / math.cos(math.radians(lat))
        d_lng = 180.0 if ratio >= 1.0 else math.degrees(math.asin(ratio))
    return BoundingBox(
        min_lat=max(-90.0, lat - d_lat),
        max_lat=min(90.0, lat + d_lat),
        min_lng=lng - d_lng,
        max_lng=lng + d_lng,
    )


def round_distance(distance_km: float) -> float:
    return round(distance_km * 100) / 100
