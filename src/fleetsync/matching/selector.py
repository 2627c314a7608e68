"""Optimal vehicle assignment: filter the pool, score, rank."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from datetime import datetime

from fleetsync._constants import DEFAULT_MAX_DISTANCE_KM, DEFAULT_MIN_BATTERY
from fleetsync.config import ScoringWeights
from fleetsync.matching.scoring import fitness_score, haversine_km
from fleetsync.models._base import utcnow
from fleetsync.models.requests import AssignmentRequest
from fleetsync.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class Candidate:
    """A vehicle that satisfies the request, with its score and distance."""

    vehicle: Vehicle
    score: float
    distance_km: float


def _rejection(vehicle: Vehicle, request: AssignmentRequest, min_battery: float) -> str | None:
    if not vehicle.is_available:
        return f"status={vehicle.status.value}"
    if vehicle.battery_level < min_battery:
        return f"battery={vehicle.battery_level}"
    if vehicle.location is None:
        return "no location"
    if (
        request.seating_required is not None
        and vehicle.seating_capacity is not None
        and vehicle.seating_capacity < request.seating_required
    ):
        return f"seating={vehicle.seating_capacity}"
    return None


def select_candidates(
    request: AssignmentRequest,
    pool: Iterable[Vehicle],
    *,
    weights: ScoringWeights | None = None,
    now: datetime | None = None,
    min_battery: float = DEFAULT_MIN_BATTERY,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
) -> list[Candidate]:
    """Rank the vehicles of *pool* that can serve *request*.

    Vehicles that are not ``available``, below the battery minimum,
    beyond the search radius, without a known location or with too few
    seats are filtered out. The rest are ordered by score (descending),
    then distance (ascending), then vehicle id, so equal inputs always
    give the same order.

    ``min_battery`` and ``max_distance_km`` apply when the request does
    not carry its own value. An empty list means no vehicle matched; it
    is not an error.
    """
    weights = weights or ScoringWeights()
    now = now or utcnow()
    effective_battery = request.min_battery if request.min_battery is not None else min_battery
    effective_radius = request.max_distance_km or max_distance_km
    scoped = request.model_copy(update={"max_distance_km": effective_radius})

    candidates: list[Candidate] = []
    for vehicle in pool:
        reason = _rejection(vehicle, scoped, effective_battery)
        if reason is None:
            assert vehicle.location is not None  # noqa: S101
            distance = haversine_km(vehicle.location, scoped.location)
            if distance > effective_radius:
                reason = f"distance={distance:.1f}km"
        if reason is not None:
            _logger.debug("Vehicle %s skipped: %s", vehicle.id, reason)
            continue
        score = fitness_score(vehicle, scoped, weights, now, distance_km=distance)
        candidates.append(Candidate(vehicle=vehicle, score=score, distance_km=round(distance, 3)))

    candidates.sort(key=lambda c: (-c.score, c.distance_km, c.vehicle.id))
    if request.limit is not None:
        candidates = candidates[: request.limit]
    return candidates
