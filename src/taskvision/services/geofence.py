"""Great-circle distance checks against a task's geofence."""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..core.config import MAX_GEOFENCE_RADIUS_METERS, MIN_GEOFENCE_RADIUS_METERS
from ..errors import ValidationError

EARTH_RADIUS_METERS = 6_371_000.0


@dataclass(slots=True, frozen=True)
class GeoPoint:
    lat: float
    lng: float


@dataclass(slots=True, frozen=True)
class GeofenceCheck:
    distance_meters: float
    radius_meters: float

    @property
    def passed(self) -> bool:
        return self.distance_meters <= self.radius_meters


def validate_coordinates(lat: float, lng: float) -> None:
    """Raise ``ValidationError`` unless ``lat``/``lng`` are finite and in range."""

    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError("Coordinates must be finite numbers.", details={"lat": lat, "lng": lng})
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("Latitude must be between -90 and 90.", details={"lat": lat})
    if not -180.0 <= lng <= 180.0:
        raise ValidationError("Longitude must be between -180 and 180.", details={"lng": lng})


def validate_radius(radius_meters: float) -> None:
    if not math.isfinite(radius_meters) or not (
        MIN_GEOFENCE_RADIUS_METERS <= radius_meters <= MAX_GEOFENCE_RADIUS_METERS
    ):
        raise ValidationError(
            f"Radius must be between {MIN_GEOFENCE_RADIUS_METERS} and {MAX_GEOFENCE_RADIUS_METERS} meters.",
            details={"radiusMeters": radius_meters},
        )


def haversine_distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_within_radius(
    actor_lat: float,
    actor_lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float,
) -> bool:
    """``True`` iff the actor is at most ``radius_m`` meters from the centre."""

    return haversine_distance_meters(actor_lat, actor_lng, center_lat, center_lng) <= radius_m


def evaluate(actor: GeoPoint, center: GeoPoint, radius_meters: float) -> GeofenceCheck:
    """Validate the actor fix and measure it against the fence."""

    validate_coordinates(actor.lat, actor.lng)
    distance = haversine_distance_meters(actor.lat, actor.lng, center.lat, center.lng)
    return GeofenceCheck(distance_meters=distance, radius_meters=radius_meters)


__all__ = [
    "EARTH_RADIUS_METERS",
    "GeoPoint",
    "GeofenceCheck",
    "evaluate",
    "haversine_distance_meters",
    "is_within_radius",
    "validate_coordinates",
    "validate_radius",
]
