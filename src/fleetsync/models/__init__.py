"""Data models for fleetsync records, DTOs and sync queue items."""

from fleetsync.models._base import FleetBaseModel, FleetEnum, UtcDatetime, parse_timestamp, utcnow
from fleetsync.models.booking import (
    Booking,
    BookingFields,
    BookingStats,
    BookingSubType,
    BookingType,
    PaymentMode,
    PaymentStatus,
)
from fleetsync.models.deployment import (
    Deployment,
    DeploymentPriority,
    DeploymentPurpose,
    DeploymentWindow,
    TrackingSnapshot,
)
from fleetsync.models.geo import GeoPoint
from fleetsync.models.requests import (
    AssignmentRequest,
    BookingQuery,
    BookingStatusUpdate,
    CancelBookingRequest,
    CompleteDeploymentRequest,
    CreateBookingRequest,
    CreateDeploymentRequest,
    DeploymentQuery,
    DeploymentStatusRequest,
    DeploymentStatusUpdate,
    TrackingUpdateRequest,
    UpdateBookingStatusRequest,
)
from fleetsync.models.status import BookingStatus, DeploymentStatus, VehicleStatus
from fleetsync.models.sync import (
    DeadLetter,
    EntityKind,
    MutationScope,
    ReplayReport,
    SyncOperation,
    SyncQueueItem,
    build_idempotency_key,
)
from fleetsync.models.vehicle import Vehicle

__all__ = [
    "AssignmentRequest",
    "Booking",
    "BookingFields",
    "BookingQuery",
    "BookingStats",
    "BookingStatus",
    "BookingStatusUpdate",
    "BookingSubType",
    "BookingType",
    "CancelBookingRequest",
    "CompleteDeploymentRequest",
    "CreateBookingRequest",
    "CreateDeploymentRequest",
    "DeadLetter",
    "Deployment",
    "DeploymentPriority",
    "DeploymentPurpose",
    "DeploymentQuery",
    "DeploymentStatus",
    "DeploymentStatusRequest",
    "DeploymentStatusUpdate",
    "DeploymentWindow",
    "EntityKind",
    "FleetBaseModel",
    "FleetEnum",
    "GeoPoint",
    "MutationScope",
    "PaymentMode",
    "PaymentStatus",
    "ReplayReport",
    "SyncOperation",
    "SyncQueueItem",
    "TrackingSnapshot",
    "TrackingUpdateRequest",
    "UpdateBookingStatusRequest",
    "UtcDatetime",
    "Vehicle",
    "VehicleStatus",
    "build_idempotency_key",
    "parse_timestamp",
    "utcnow",
]
