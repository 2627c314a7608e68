"""Status enumerations for bookings and deployments."""

from __future__ import annotations

from fleetsync.models._base import FleetEnum


class BookingStatus(FleetEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeploymentStatus(FleetEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VehicleStatus(FleetEnum):
    AVAILABLE = "available"
    DEPLOYED = "deployed"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"
