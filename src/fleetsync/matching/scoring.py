"""Great-circle distance and vehicle fitness scoring.

Pure functions; the current time is passed in so scores are
reproducible.
"""

from __future__ import annotations

import math
from datetime import datetime

from fleetsync._constants import DEFAULT_MAX_DISTANCE_KM, EARTH_RADIUS_KM
from fleetsync.config import ScoringWeights
from fleetsync.models.geo import GeoPoint
from fleetsync.models.requests import AssignmentRequest
from fleetsync.models.vehicle import Vehicle

# Score used for a component whose input is unknown.
NEUTRAL_COMPONENT = 0.5


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def distance_component(distance_km: float, max_distance_km: float) -> float:
    if max_distance_km <= 0:
        return 0.0
    return _clamp(1.0 - distance_km / max_distance_km)


def battery_component(battery_level: float, floor: float) -> float:
    """Headroom above *floor*, normalized to the remaining range up to 100%."""
    return _clamp((battery_level - floor) / (100.0 - floor))


def maintenance_component(last_maintenance: datetime | None, now: datetime, horizon_days: float) -> float:
    """1.0 for a vehicle serviced today, falling to 0.0 at the horizon."""
    if last_maintenance is None:
        return NEUTRAL_COMPONENT
    age_days = (now - last_maintenance).total_seconds() / 86400.0
    return _clamp(1.0 - max(age_days, 0.0) / horizon_days)


def utilization_component(utilization: float | None) -> float:
    if utilization is None:
        return NEUTRAL_COMPONENT
    return _clamp(1.0 - utilization)


def fitness_score(
    vehicle: Vehicle,
    request: AssignmentRequest,
    weights: ScoringWeights,
    now: datetime,
    *,
    distance_km: float | None = None,
) -> float:
    """Weighted composite fitness of *vehicle* for *request*, in ``[0, 100]``.

    Parameters
    ----------
    vehicle : Vehicle
        Candidate vehicle.
    request : AssignmentRequest
        Requested location; its ``max_distance_km`` (or the default
        radius) is where the distance component reaches zero.
    weights : ScoringWeights
        Relative component weights, battery floor and maintenance horizon.
    now : datetime
        Reference time for maintenance recency.
    distance_km : float or None
        Precomputed distance; computed from the vehicle location if omitted.
        A vehicle without a location scores zero on distance.

    Returns
    -------
    float
        Score rounded to two decimals.
    """
    max_distance_km = request.max_distance_km or DEFAULT_MAX_DISTANCE_KM
    if distance_km is None:
        distance_km = haversine_km(vehicle.location, request.location) if vehicle.location else max_distance_km
    weighted = (
        weights.distance * distance_component(distance_km, max_distance_km)
        + weights.battery * battery_component(vehicle.battery_level, weights.battery_floor)
        + weights.maintenance
        * maintenance_component(vehicle.last_maintenance_date, now, weights.maintenance_horizon_days)
        + weights.utilization * utilization_component(vehicle.utilization)
    )
    return round(100.0 * weighted / weights.total, 2)
