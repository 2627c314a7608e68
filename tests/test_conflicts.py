from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fleetsync.exceptions import ConflictError
from fleetsync.lifecycle.conflicts import ActiveAssignment, ProposedAssignment, detect_conflict, overlaps
from fleetsync.models.booking import Booking
from fleetsync.models.status import BookingStatus, DeploymentStatus


def _t(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 11, 2, hour, minute, tzinfo=UTC)


def _deployment(record_id: str, vehicle: str, pilot: str, start: datetime, end: datetime, status=None):
    return ActiveAssignment(record_id, vehicle, pilot, start, end, status or DeploymentStatus.SCHEDULED)


def test_half_open_windows() -> None:
    assert not overlaps(_t(10), _t(11), _t(11), _t(12))
    assert overlaps(_t(10), _t(11), _t(10, 30), _t(11, 30))
    assert overlaps(_t(9), _t(12), _t(10), _t(11))


def test_vehicle_and_pilot_conflicts_are_reported_separately() -> None:
    active = [
        _deployment("DP1", "EVZ-1", "P-1", _t(9), _t(10)),
        _deployment("DP2", "EVZ-2", "P-2", _t(9), _t(10)),
        _deployment("DP3", "EVZ-3", "P-3", _t(9), _t(10)),
    ]

    result = detect_conflict(ProposedAssignment("EVZ-1", "P-2", _t(9, 30), _t(9, 45)), active)

    assert result.vehicle_conflicts == ["DP1"]
    assert result.pilot_conflicts == ["DP2"]
    assert result.conflicting_ids == ["DP1", "DP2"]
    with pytest.raises(ConflictError) as exc_info:
        result.raise_if_conflict()
    assert exc_info.value.conflicting_ids == ["DP1", "DP2"]


def test_same_record_on_both_resources_is_listed_once() -> None:
    active = [_deployment("DP1", "EVZ-1", "P-1", _t(9), _t(10))]

    result = detect_conflict(ProposedAssignment("EVZ-1", "P-1", _t(9), _t(10)), active)

    assert result.conflicting_ids == ["DP1"]


def test_terminal_and_excluded_records_are_ignored() -> None:
    active = [
        _deployment("DP1", "EVZ-1", "P-1", _t(9), _t(10), DeploymentStatus.COMPLETED),
        _deployment("DP2", "EVZ-1", "P-1", _t(9), _t(10), DeploymentStatus.CANCELLED),
        _deployment("DP3", "EVZ-1", "P-1", _t(9), _t(10)),
    ]

    result = detect_conflict(ProposedAssignment("EVZ-1", "P-1", _t(9), _t(10)), active, exclude_id="DP3")

    assert not result.has_conflict
    result.raise_if_conflict()


def test_missing_references_never_collide() -> None:
    active = [ActiveAssignment("SB1", None, None, _t(9), _t(10), BookingStatus.CONFIRMED)]

    assert not detect_conflict(ProposedAssignment(None, None, _t(9), _t(10)), active).has_conflict


def test_booking_window_uses_duration_or_default() -> None:
    booking = Booking.model_validate(
        {
            "bookingId": "BK1",
            "customerName": "Asha Rao",
            "customerPhone": "9876543210",
            "bookingType": "subscription",
            "scheduledDate": "2026-11-02",
            "scheduledTime": "09:00",
            "estimatedCost": 4000,
            "vehicleId": "EVZ-1",
            "status": "assigned",
        }
    )

    assignment = ActiveAssignment.from_booking(booking, default_duration_minutes=60)
    assert (assignment.start, assignment.end) == (_t(9), _t(10))

    longer = ActiveAssignment.from_booking(booking.model_copy(update={"duration": 150}), default_duration_minutes=60)
    assert longer.end == _t(11, 30)
