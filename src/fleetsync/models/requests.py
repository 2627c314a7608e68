"""Pydantic request models for orchestrator entrypoints and the REST wire.

These models provide a consistent "validate → normalize → execute" flow.
Each operation has its own DTO; nothing is passed through untyped.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated

from pydantic import AfterValidator, ConfigDict, Field

from fleetsync._constants import MIN_CANCELLATION_REASON_LENGTH
from fleetsync.models._base import FleetBaseModel, UtcDatetime
from fleetsync.models.booking import BookingFields, BookingType
from fleetsync.models.deployment import DeploymentPriority, DeploymentPurpose, DeploymentWindow, TrackingSnapshot
from fleetsync.models.geo import GeoPoint
from fleetsync.models.status import BookingStatus, DeploymentStatus


class _Request(FleetBaseModel):
    model_config = ConfigDict(extra="forbid")


def _non_empty(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must be non-empty")
    return stripped


def _reason(value: str) -> str:
    stripped = value.strip()
    if len(stripped) < MIN_CANCELLATION_REASON_LENGTH:
        raise ValueError(f"must be at least {MIN_CANCELLATION_REASON_LENGTH} characters")
    return stripped


NonEmptyStr = Annotated[str, AfterValidator(_non_empty)]
CancellationReason = Annotated[str, AfterValidator(_reason)]


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class CreateBookingRequest(BookingFields):
    """Body of ``POST /bookings``."""

    model_config = ConfigDict(extra="forbid")


class UpdateBookingStatusRequest(_Request):
    """Requested booking transition plus the fields it may need."""

    booking_id: NonEmptyStr
    status: BookingStatus
    vehicle_id: str | None = None
    pilot_id: str | None = None
    actual_cost: float | None = Field(default=None, gt=0)
    rating: int | None = Field(default=None, ge=1, le=5)
    feedback: str | None = Field(default=None, max_length=1000)
    reason: str | None = None


class CancelBookingRequest(_Request):
    """Body of ``DELETE /bookings/:id``."""

    booking_id: NonEmptyStr
    reason: CancellationReason


class BookingStatusUpdate(FleetBaseModel):
    """Body of ``PUT /bookings/:id``: the new status and every field the transition touched."""

    status: BookingStatus
    vehicle_id: str | None = None
    pilot_id: str | None = None
    actual_cost: float | None = None
    rating: int | None = None
    feedback: str | None = None
    cancellation_reason: str | None = None
    actual_start_time: UtcDatetime | None = None
    completed_at: UtcDatetime | None = None
    cancelled_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class BookingQuery(_Request):
    """Filters and pagination for ``GET /bookings``."""

    status: list[BookingStatus] = Field(default_factory=list)
    booking_type: BookingType | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=500)

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {"page": str(self.page), "limit": str(self.limit)}
        if self.status:
            params["status"] = ",".join(s.value for s in self.status)
        if self.booking_type is not None:
            params["type"] = self.booking_type.value
        if self.date_from is not None:
            params["dateFrom"] = self.date_from.isoformat()
        if self.date_to is not None:
            params["dateTo"] = self.date_to.isoformat()
        return params


# ---------------------------------------------------------------------------
# Deployments
# ---------------------------------------------------------------------------


class CreateDeploymentRequest(DeploymentWindow):
    """Body of ``POST /deployments``."""

    model_config = ConfigDict(extra="forbid")

    start_location: GeoPoint
    end_location: GeoPoint | None = None
    purpose: DeploymentPurpose
    priority: DeploymentPriority = DeploymentPriority.MEDIUM
    passenger_count: int = Field(default=0, ge=0, le=8)
    estimated_cost: float | None = Field(default=None, ge=0)
    trip_distance: float | None = Field(default=None, ge=0, le=1000)
    notes: str | None = Field(default=None, max_length=1000)


class TrackingUpdateRequest(_Request):
    """Real-time snapshot for ``PUT /deployments/:id/tracking``."""

    deployment_id: NonEmptyStr
    snapshot: TrackingSnapshot


class CompleteDeploymentRequest(_Request):
    """Closing data for a deployment; the final snapshot is mandatory at transition time."""

    deployment_id: NonEmptyStr
    actual_end_time: UtcDatetime | None = None
    final_tracking: TrackingSnapshot | None = None
    end_location: GeoPoint | None = None
    actual_cost: float | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=1000)


class DeploymentStatusRequest(_Request):
    """Start or cancel a deployment."""

    deployment_id: NonEmptyStr
    reason: str | None = None


class DeploymentStatusUpdate(FleetBaseModel):
    """Body of ``PUT /deployments/:id``."""

    status: DeploymentStatus
    actual_end_time: UtcDatetime | None = None
    tracking: TrackingSnapshot | None = None
    end_location: GeoPoint | None = None
    actual_cost: float | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class DeploymentQuery(_Request):
    """Filters and pagination for ``GET /deployments``."""

    status: list[DeploymentStatus] = Field(default_factory=list)
    vehicle_id: str | None = None
    pilot_id: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=500)

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {"page": str(self.page), "limit": str(self.limit)}
        if self.status:
            params["status"] = ",".join(s.value for s in self.status)
        if self.vehicle_id:
            params["vehicleId"] = self.vehicle_id
        if self.pilot_id:
            params["pilotId"] = self.pilot_id
        return params


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


class AssignmentRequest(_Request):
    """Where a vehicle is needed and the constraints it must satisfy.

    ``None`` constraints fall back to the configured defaults.
    """

    location: GeoPoint
    min_battery: float | None = Field(default=None, ge=0, le=100)
    max_distance_km: float | None = Field(default=None, gt=0)
    seating_required: int | None = Field(default=None, ge=1)
    limit: int | None = Field(default=None, ge=1)
