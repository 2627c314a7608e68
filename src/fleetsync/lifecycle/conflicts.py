"""Vehicle/pilot double-booking detection over half-open time windows."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from datetime import datetime

from fleetsync.exceptions import ConflictError
from fleetsync.lifecycle.state_machine import is_terminal
from fleetsync.models.booking import Booking
from fleetsync.models.deployment import Deployment
from fleetsync.models.status import BookingStatus, DeploymentStatus


@dataclasses.dataclass(frozen=True, slots=True)
class ActiveAssignment:
    """A vehicle/pilot reservation over ``[start, end)``.

    ``vehicle_id`` or ``pilot_id`` may be ``None`` (e.g. an unassigned
    booking); a missing reference never collides.
    """

    record_id: str
    vehicle_id: str | None
    pilot_id: str | None
    start: datetime
    end: datetime
    status: BookingStatus | DeploymentStatus

    @classmethod
    def from_deployment(cls, deployment: Deployment) -> ActiveAssignment:
        return cls(
            record_id=deployment.id,
            vehicle_id=deployment.vehicle_id,
            pilot_id=deployment.pilot_id,
            start=deployment.start_time,
            end=deployment.actual_end_time or deployment.estimated_end_time,
            status=deployment.status,
        )

    @classmethod
    def from_booking(cls, booking: Booking, default_duration_minutes: int) -> ActiveAssignment:
        return cls(
            record_id=booking.id,
            vehicle_id=booking.vehicle_id,
            pilot_id=booking.pilot_id,
            start=booking.scheduled_start,
            end=booking.scheduled_end(default_duration_minutes),
            status=booking.status,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ProposedAssignment:
    vehicle_id: str | None
    pilot_id: str | None
    start: datetime
    end: datetime


@dataclasses.dataclass(frozen=True)
class ConflictResult:
    """Records that collide with a proposed assignment, split by resource."""

    vehicle_conflicts: list[str] = dataclasses.field(default_factory=list)
    pilot_conflicts: list[str] = dataclasses.field(default_factory=list)

    @property
    def conflicting_ids(self) -> list[str]:
        """All colliding ids, vehicle collisions first, without duplicates."""
        return list(dict.fromkeys([*self.vehicle_conflicts, *self.pilot_conflicts]))

    @property
    def has_conflict(self) -> bool:
        return bool(self.vehicle_conflicts or self.pilot_conflicts)

    def raise_if_conflict(self) -> None:
        if not self.has_conflict:
            return
        parts = []
        if self.vehicle_conflicts:
            parts.append(f"vehicle busy in {', '.join(self.vehicle_conflicts)}")
        if self.pilot_conflicts:
            parts.append(f"pilot busy in {', '.join(self.pilot_conflicts)}")
        raise ConflictError(self.conflicting_ids, f"Assignment conflicts: {'; '.join(parts)}")


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap; touching boundaries do not overlap."""
    return a_start < b_end and b_start < a_end


def detect_conflict(
    proposed: ProposedAssignment,
    active_set: Iterable[ActiveAssignment],
    *,
    exclude_id: str | None = None,
) -> ConflictResult:
    """Find active records sharing the vehicle or pilot of *proposed* in an overlapping window.

    Terminal (completed/cancelled) records and the record ``exclude_id``
    (the one being edited) are ignored.
    """
    vehicle_hits: list[str] = []
    pilot_hits: list[str] = []
    for record in active_set:
        if record.record_id == exclude_id or is_terminal(record.status):
            continue
        if not overlaps(proposed.start, proposed.end, record.start, record.end):
            continue
        if proposed.vehicle_id and record.vehicle_id == proposed.vehicle_id:
            vehicle_hits.append(record.record_id)
        if proposed.pilot_id and record.pilot_id == proposed.pilot_id:
            pilot_hits.append(record.record_id)
    return ConflictResult(vehicle_conflicts=vehicle_hits, pilot_conflicts=pilot_hits)
