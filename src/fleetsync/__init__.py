"""fleetsync - Offline-tolerant async client for fleet bookings and deployments."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetsync")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetsync.client import FleetClient
from fleetsync.config import FleetSyncConfig, RetryPolicy, ScoringWeights
from fleetsync.exceptions import (
    ConflictError,
    DeadLetterError,
    FleetSyncConfigError,
    FleetSyncError,
    IllegalTransitionError,
    PreconditionError,
    RecordNotFoundError,
    RemoteApiError,
    StoreError,
    TerminalStateError,
    TransientNetworkError,
    TransitionError,
    ValidationError,
)
from fleetsync.matching.selector import Candidate
from fleetsync.models import (
    AssignmentRequest,
    Booking,
    BookingQuery,
    BookingStats,
    BookingStatus,
    BookingType,
    CancelBookingRequest,
    CompleteDeploymentRequest,
    CreateBookingRequest,
    CreateDeploymentRequest,
    DeadLetter,
    Deployment,
    DeploymentQuery,
    DeploymentStatus,
    DeploymentStatusRequest,
    GeoPoint,
    ReplayReport,
    SyncQueueItem,
    TrackingSnapshot,
    TrackingUpdateRequest,
    UpdateBookingStatusRequest,
    Vehicle,
    VehicleStatus,
)
from fleetsync.sync.store import JsonFileSyncStore, MemorySyncStore, SyncStore

__all__ = [
    "__version__",
    "AssignmentRequest",
    "Booking",
    "BookingQuery",
    "BookingStats",
    "BookingStatus",
    "BookingType",
    "CancelBookingRequest",
    "Candidate",
    "CompleteDeploymentRequest",
    "ConflictError",
    "CreateBookingRequest",
    "CreateDeploymentRequest",
    "DeadLetter",
    "DeadLetterError",
    "Deployment",
    "DeploymentQuery",
    "DeploymentStatus",
    "DeploymentStatusRequest",
    "FleetClient",
    "FleetSyncConfig",
    "FleetSyncConfigError",
    "FleetSyncError",
    "GeoPoint",
    "IllegalTransitionError",
    "JsonFileSyncStore",
    "MemorySyncStore",
    "PreconditionError",
    "RecordNotFoundError",
    "RemoteApiError",
    "ReplayReport",
    "RetryPolicy",
    "ScoringWeights",
    "StoreError",
    "SyncQueueItem",
    "SyncStore",
    "TerminalStateError",
    "TrackingSnapshot",
    "TrackingUpdateRequest",
    "TransientNetworkError",
    "TransitionError",
    "UpdateBookingStatusRequest",
    "ValidationError",
    "Vehicle",
    "VehicleStatus",
]
