from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from fleetsync.config import ScoringWeights
from fleetsync.matching.scoring import (
    NEUTRAL_COMPONENT,
    battery_component,
    fitness_score,
    haversine_km,
    maintenance_component,
)
from fleetsync.matching.selector import select_candidates
from fleetsync.models.geo import GeoPoint
from fleetsync.models.requests import AssignmentRequest
from fleetsync.models.status import VehicleStatus
from fleetsync.models.vehicle import Vehicle

NOW = datetime(2026, 11, 1, 8, 0, tzinfo=UTC)
BENGALURU = GeoPoint(latitude=12.9716, longitude=77.5946)
CHENNAI = GeoPoint(latitude=13.0827, longitude=80.2707)


def _vehicle(vehicle_id: str, *, lat_offset: float = 0.0, **overrides: Any) -> Vehicle:
    data: dict[str, Any] = {
        "id": vehicle_id,
        "registrationNumber": f"KA01{vehicle_id}",
        "batteryLevel": 80,
        "status": "available",
        "location": {"latitude": BENGALURU.latitude + lat_offset, "longitude": BENGALURU.longitude},
        "seatingCapacity": 4,
    }
    data.update(overrides)
    return Vehicle.model_validate(data)


def test_haversine_identity_and_symmetry() -> None:
    assert haversine_km(BENGALURU, BENGALURU) == 0.0
    assert haversine_km(BENGALURU, CHENNAI) == pytest.approx(haversine_km(CHENNAI, BENGALURU))


def test_haversine_known_distance() -> None:
    assert haversine_km(BENGALURU, CHENNAI) == pytest.approx(290.2, abs=1.0)


def test_fitness_score_bounds() -> None:
    request = AssignmentRequest(location=BENGALURU, max_distance_km=50)
    weights = ScoringWeights()
    best = _vehicle("V1", batteryLevel=100, lastMaintenanceDate=NOW, utilization=0.0)
    worst = _vehicle("V2", batteryLevel=20, lastMaintenanceDate=NOW - timedelta(days=400), utilization=1.0)

    assert fitness_score(best, request, weights, NOW) == 100.0
    assert fitness_score(worst, request, weights, NOW, distance_km=50) == 0.0


def test_unknown_inputs_score_neutral() -> None:
    assert maintenance_component(None, NOW, 90) == NEUTRAL_COMPONENT
    assert battery_component(20, floor=20) == 0.0
    assert battery_component(100, floor=20) == 1.0


def test_select_candidates_filters_and_orders() -> None:
    pool = [
        _vehicle("V-LOW", batteryLevel=45, lat_offset=0.009),
        _vehicle("V-BEST", batteryLevel=95, lat_offset=0.009),
        _vehicle("V-BUSY", status="deployed"),
        _vehicle("V-FLAT", batteryLevel=20),
        _vehicle("V-NOWHERE", location=None),
        _vehicle("V-FAR", lat_offset=1.0),
        _vehicle("V-SMALL", seatingCapacity=2),
    ]
    request = AssignmentRequest(location=BENGALURU, seating_required=4)

    candidates = select_candidates(request, pool, now=NOW)

    assert [c.vehicle.id for c in candidates] == ["V-BEST", "V-LOW"]
    assert all(c.vehicle.status == VehicleStatus.AVAILABLE for c in candidates)
    assert all(c.vehicle.battery_level >= 30 for c in candidates)
    assert candidates[0].distance_km == pytest.approx(1.0, abs=0.05)


def test_select_candidates_breaks_ties_by_distance_then_id() -> None:
    pool = [_vehicle("V-B"), _vehicle("V-A"), _vehicle("V-C", lat_offset=0.0001)]
    weights = ScoringWeights(distance=0.0)

    candidates = select_candidates(AssignmentRequest(location=BENGALURU), pool, weights=weights, now=NOW)

    assert [c.vehicle.id for c in candidates] == ["V-A", "V-B", "V-C"]


def test_select_candidates_request_overrides_and_limit() -> None:
    pool = [
        _vehicle("V1", batteryLevel=35),
        _vehicle("V2", batteryLevel=70),
        _vehicle("V3", batteryLevel=40, lat_offset=0.5),
    ]

    strict = select_candidates(AssignmentRequest(location=BENGALURU, min_battery=50), pool, now=NOW)
    assert [c.vehicle.id for c in strict] == ["V2"]

    wide = select_candidates(AssignmentRequest(location=BENGALURU, max_distance_km=100, limit=2), pool, now=NOW)
    assert len(wide) == 2
    assert "V3" not in [c.vehicle.id for c in wide]


def test_no_match_is_an_empty_list() -> None:
    assert select_candidates(AssignmentRequest(location=CHENNAI), [_vehicle("V1")], now=NOW) == []
