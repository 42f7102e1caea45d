# utils/geofence.py

from math import radians, sin, cos, sqrt, atan2, isfinite
from typing import NamedTuple, Optional

EARTH_RADIUS_METERS = 6371000


class Coordinates(NamedTuple):
    latitude: float
    longitude: float

    @classmethod
    def from_optional(
        cls, latitude: Optional[float], longitude: Optional[float]
    ) -> Optional["Coordinates"]:
        """Build a pair only when both halves are present and finite, else None."""
        if latitude is None or longitude is None:
            return None
        coords = cls(float(latitude), float(longitude))
        return coords if coords.is_finite() else None

    def is_finite(self) -> bool:
        return isfinite(self.latitude) and isfinite(self.longitude)


def haversine_dist(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    R = EARTH_RADIUS_METERS
    φ1, φ2 = radians(lat1), radians(lat2)
    Δφ = radians(lat2 - lat1)
    Δλ = radians(lng2 - lng1)

    a = sin(Δφ/2)**2 + cos(φ1) * cos(φ2) * sin(Δλ/2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return R * c


def distance_between(a: Coordinates, b: Coordinates) -> float:
    return haversine_dist(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within_radius(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float
) -> bool:

    return haversine_dist(lat, lng, center_lat, center_lng) <= radius_m
