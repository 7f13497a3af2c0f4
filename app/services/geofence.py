from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True, slots=True)
class GeofenceResult:
    distance_m: int
    within_fence: bool


def _validate_point(lat: float, lng: float) -> None:
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise ValueError(f"Longitude out of range: {lng}")


def distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two WGS84 points (haversine)."""
    _validate_point(lat1, lng1)
    _validate_point(lat2, lng2)

    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lng = radians(lng2 - lng1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_M * c


def evaluate_geofence(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float,
) -> GeofenceResult:
    if radius_m < 0:
        raise ValueError(f"Geofence radius must be non-negative: {radius_m}")

    raw_distance = distance_m(lat, lng, center_lat, center_lng)
    # Membership is decided on the unrounded distance; only the reported value is rounded.
    return GeofenceResult(
        distance_m=int(raw_distance + 0.5),
        within_fence=raw_distance <= radius_m,
    )
