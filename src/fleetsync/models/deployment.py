"""Deployment record and tracking snapshot models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, model_validator

from fleetsync.models._base import FleetBaseModel, FleetEnum, UtcDatetime
from fleetsync.models.geo import GeoPoint
from fleetsync.models.status import DeploymentStatus


class DeploymentPurpose(FleetEnum):
    PASSENGER_TRIP = "passenger_trip"
    DELIVERY = "delivery"
    MAINTENANCE = "maintenance"
    TESTING = "testing"
    RELOCATION = "relocation"
    EMERGENCY = "emergency"


class DeploymentPriority(FleetEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TrackingSnapshot(FleetBaseModel):
    """Real-time position and telemetry of a deployed vehicle.

    Parameters
    ----------
    location : GeoPoint
        Current position.
    battery_level : float
        State of charge in percent (0-100).
    speed : float or None
        Speed in km/h (0-200).
    odometer : float or None
        Odometer reading in km.
    recorded_at : datetime or None
        When the snapshot was taken on the vehicle side.
    """

    location: GeoPoint
    battery_level: float = Field(ge=0, le=100)
    speed: float | None = Field(default=None, ge=0, le=200)
    odometer: float | None = Field(default=None, ge=0)
    recorded_at: UtcDatetime | None = None


class DeploymentWindow(FleetBaseModel):
    """Vehicle/pilot assignment over a half-open time window."""

    vehicle_id: str = Field(min_length=1)
    pilot_id: str = Field(min_length=1)
    start_time: UtcDatetime
    estimated_end_time: UtcDatetime

    @model_validator(mode="after")
    def _check_window(self) -> DeploymentWindow:
        if self.estimated_end_time <= self.start_time:
            raise ValueError("estimatedEndTime must be after startTime")
        return self


class Deployment(DeploymentWindow):
    """A vehicle deployment with a pilot.

    ``pending_sync`` is local metadata, see :class:`fleetsync.models.booking.Booking`.
    """

    id: str = Field(validation_alias="deploymentId", serialization_alias="deploymentId")
    status: DeploymentStatus = DeploymentStatus.SCHEDULED
    start_location: GeoPoint
    end_location: GeoPoint | None = None
    purpose: DeploymentPurpose
    priority: DeploymentPriority = DeploymentPriority.MEDIUM
    passenger_count: int = Field(default=0, ge=0, le=8)
    actual_end_time: UtcDatetime | None = None
    tracking: TrackingSnapshot | None = None
    estimated_cost: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)
    trip_distance: float | None = Field(default=None, ge=0, le=1000)
    notes: str | None = Field(default=None, max_length=1000)
    cancellation_reason: str | None = Field(default=None, max_length=500)
    cancelled_at: UtcDatetime | None = None
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None
    is_active: bool = True
    pending_sync: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_id(cls, values: object) -> object:
        if isinstance(values, dict) and "deploymentId" not in values:
            for key in ("id", "_id"):
                if values.get(key):
                    return {**values, "deploymentId": values[key]}
        return values

    @model_validator(mode="after")
    def _check_end_time(self) -> Deployment:
        if self.actual_end_time is not None and self.actual_end_time < self.start_time:
            raise ValueError("actualEndTime cannot be before startTime")
        return self

    @property
    def duration_minutes(self) -> int:
        end: datetime = self.actual_end_time or self.estimated_end_time
        return round((end - self.start_time).total_seconds() / 60)
