# utils/geofence.py

from math import radians, sin, cos, sqrt, atan2
from typing import Optional

from models.geo import GeofenceStatus, GeofenceVerdict, GeoPoint, PropertyGeofence

EARTH_RADIUS_METERS = 6371000

# Tolerance for consumer-grade GPS error beyond the configured radius
SOFT_GRACE_METERS = 50


def haversine_dist(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    φ1, φ2 = radians(lat1), radians(lat2)
    Δφ = radians(lat2 - lat1)
    Δλ = radians(lng2 - lng1)

    a = sin(Δφ/2)**2 + cos(φ1) * cos(φ2) * sin(Δλ/2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points. Callers validate ranges."""
    return haversine_dist(a.latitude, a.longitude, b.latitude, b.longitude)


def evaluate_geofence(worker_location: GeoPoint, fence: PropertyGeofence) -> GeofenceVerdict:
    """
    Classify a worker position against a property fence.

    Ties resolve to the more permissive bucket: a distance exactly equal to
    the radius is OK, exactly equal to radius + grace is SOFT_WARNING.
    """
    # No Center Configured -> Fence Is Opt-Out For This Property
    if fence.center is None:
        return GeofenceVerdict(
            status=GeofenceStatus.OK,
            distance_meters=0.0,
            threshold_meters=fence.radius_meters,
            override_allowed=fence.manual_override_allowed,
            message="no geofence configured",
        )

    d = distance_meters(worker_location, fence.center)
    soft_threshold = fence.radius_meters + SOFT_GRACE_METERS

    if d <= fence.radius_meters:
        return GeofenceVerdict(
            status=GeofenceStatus.OK,
            distance_meters=d,
            threshold_meters=fence.radius_meters,
            override_allowed=fence.manual_override_allowed,
            message=f"Within {round(fence.radius_meters)}m boundary",
        )

    if d <= soft_threshold:
        return GeofenceVerdict(
            status=GeofenceStatus.SOFT_WARNING,
            distance_meters=d,
            threshold_meters=fence.radius_meters,
            override_allowed=fence.manual_override_allowed,
            message=(
                f"You are {round(d)}m from property "
                f"({round(fence.radius_meters)}m boundary). Continue anyway?"
            ),
        )

    return GeofenceVerdict(
        status=GeofenceStatus.HARD_BLOCK,
        distance_meters=d,
        threshold_meters=fence.radius_meters,
        override_allowed=fence.manual_override_allowed,
        message=f"Too far from property: {round(d)}m away (max {round(soft_threshold)}m)",
    )


def missing_location_verdict(fence: PropertyGeofence) -> GeofenceVerdict:
    """Verdict used when the client could not supply a location sample."""
    return GeofenceVerdict(
        status=GeofenceStatus.HARD_BLOCK,
        distance_meters=0.0,
        threshold_meters=fence.radius_meters,
        override_allowed=fence.manual_override_allowed,
        message="no location available",
    )


def resolve_verdict(location: Optional[GeoPoint], fence: PropertyGeofence) -> GeofenceVerdict:
    if location is None:
        return missing_location_verdict(fence)
    return evaluate_geofence(location, fence)
