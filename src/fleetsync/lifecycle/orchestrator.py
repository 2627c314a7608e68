"""Lifecycle orchestrator: validate locally, write remotely, fall back to the queue.

Every mutating operation follows the same four steps:

1. Validate the request DTO, the conflict detector and the state machine
   locally; violations raise immediately.
2. Attempt the remote write under a bounded timeout, sending an
   idempotency key.
3. On success, cache and return the canonical server record.
4. On a transient failure, cache an optimistic local record with
   ``pending_sync=True``, queue the mutation under the same idempotency
   key, and return the local record.

Writes for an entity that still has queued mutations are queued behind
them instead of being sent directly, so the remote never sees an update
before the create it depends on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from fleetsync._api import bookings as _bookings_api
from fleetsync._api import deployments as _deployments_api
from fleetsync._api import vehicles as _vehicles_api
from fleetsync._constants import BOOKING_ID_PREFIX, DEPLOYMENT_ID_PREFIX
from fleetsync._transport import Transport
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import (
    PreconditionError,
    TerminalStateError,
    TransientNetworkError,
    ValidationError,
)
from fleetsync.lifecycle.conflicts import ActiveAssignment, ProposedAssignment, detect_conflict
from fleetsync.lifecycle.state_machine import TransitionContext, is_terminal, transition
from fleetsync.matching.selector import Candidate, select_candidates
from fleetsync.models._base import FleetBaseModel, utcnow
from fleetsync.models.booking import Booking, BookingStats
from fleetsync.models.deployment import Deployment
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
from fleetsync.models.status import BookingStatus, DeploymentStatus
from fleetsync.models.sync import (
    EntityKind,
    MutationScope,
    SyncOperation,
    SyncQueueItem,
    build_idempotency_key,
    epoch_ms,
)
from fleetsync.models.vehicle import Vehicle
from fleetsync.sync.queue import SyncQueue, server_id_from
from fleetsync.sync.store import SyncStore

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=FleetBaseModel)

_MODELS: dict[EntityKind, type[Booking] | type[Deployment]] = {
    EntityKind.BOOKING: Booking,
    EntityKind.DEPLOYMENT: Deployment,
}
_ID_KEY = {EntityKind.BOOKING: "bookingId", EntityKind.DEPLOYMENT: "deploymentId"}


def to_validation_error(exc: PydanticValidationError, what: str) -> ValidationError:
    """Convert a pydantic error into a :class:`ValidationError` keyed by camelCase field."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(to_camel(str(part)) if isinstance(part, str) else str(part) for part in err["loc"]) or "_"
        errors.setdefault(field, err["msg"])
    summary = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
    return ValidationError(f"Invalid {what}: {summary}", errors=errors)


def validate_as(model_cls: type[M], data: M | Mapping[str, Any]) -> M:
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise to_validation_error(exc, model_cls.__name__) from exc


class LifecycleOrchestrator:
    """Entry point for booking and deployment mutations.

    Parameters
    ----------
    transport : Transport
        Remote authority transport.
    store : SyncStore
        Local record cache; must be open.
    queue : SyncQueue
        Queue receiving mutations the remote could not accept.
    config : FleetSyncConfig or None
        Timeouts, matching defaults and booking duration default.
    clock : callable
        Returns the current aware UTC time.
    """

    def __init__(
        self,
        transport: Transport,
        store: SyncStore,
        queue: SyncQueue,
        *,
        config: FleetSyncConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._transport = transport
        self._store = store
        self._queue = queue
        self._config = config or FleetSyncConfig()
        self._clock = clock
        self._last_id_ms = 0
        queue.add_success_listener(self._reconcile)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_id(self, prefix: str) -> str:
        ms = epoch_ms(self._clock())
        if ms <= self._last_id_ms:
            ms = self._last_id_ms + 1
        self._last_id_ms = ms
        return f"{prefix}{ms}"

    async def _cache(self, kind: EntityKind, record: Booking | Deployment) -> None:
        await self._store.put_record(kind, record.id, record.to_wire())

    async def _cached(self, kind: EntityKind, record_id: str) -> Any:
        raw = await self._store.get_record(kind, record_id)
        return _MODELS[kind].model_validate(raw) if raw is not None else None

    async def _write(
        self,
        kind: EntityKind,
        operation: SyncOperation,
        entity_id: str,
        payload: dict[str, Any],
        call: Callable[[str], Awaitable[dict[str, Any]]],
        *,
        scope: MutationScope = MutationScope.RECORD,
    ) -> dict[str, Any] | None:
        """Send a mutation, or queue it. Returns the server record, ``None`` if queued."""
        at = self._queue.next_enqueue_time()
        key = build_idempotency_key(entity_id, operation, at)
        if await self._queue.pending_count(kind, await self._store.resolve_id(kind, entity_id)):
            await self._queue.enqueue(
                kind, operation, entity_id, payload, scope=scope, idempotency_key=key, enqueued_at=at
            )
            _logger.debug("%s %s has queued mutations; queued %s behind them", kind.value, entity_id, operation.value)
            return None
        try:
            return await asyncio.wait_for(call(key), timeout=self._config.request_timeout)
        except TimeoutError:
            reason = f"timed out after {self._config.request_timeout}s"
        except TransientNetworkError as exc:
            reason = str(exc)
        _logger.info(
            "Remote %s of %s %s unavailable (%s); queued for replay",
            operation.value,
            kind.value,
            entity_id,
            reason,
        )
        await self._queue.enqueue(
            kind, operation, entity_id, payload, scope=scope, idempotency_key=key, enqueued_at=at
        )
        return None

    def _merge(self, kind: EntityKind, local: Booking | Deployment, server: Mapping[str, Any], *, pending: bool) -> Any:
        """Combine a server record with the local one.

        While more mutations are queued the local fields win (they are
        ahead of the server); otherwise the server is authoritative.
        """
        model_cls = _MODELS[kind]
        server_id = server_id_from(kind, server) or local.id
        local_wire = local.to_wire()
        merged = {**server, **local_wire} if pending else {**local_wire, **server}
        merged.update({_ID_KEY[kind]: server_id, "pendingSync": pending})
        merged.pop("_id", None)
        try:
            return model_cls.model_validate(merged)
        except PydanticValidationError:
            _logger.debug("Server %s %s did not validate; keeping local fields", kind.value, server_id, exc_info=True)
            return local.model_copy(update={"id": server_id, "pending_sync": pending})

    async def _settle(
        self,
        kind: EntityKind,
        local: Booking | Deployment,
        server: dict[str, Any] | None,
    ) -> Any:
        """Cache and return the record after :meth:`_write`."""
        if server is None:
            record = local.model_copy(update={"pending_sync": True})
        else:
            record = self._merge(kind, local, server, pending=False)
        await self._cache(kind, record)
        return record

    async def _reconcile(self, item: SyncQueueItem, response: Mapping[str, Any] | None) -> None:
        """Queue success listener: fold the server record into the cache."""
        kind = item.entity_kind
        local = await self._cached(kind, item.entity_id)
        if local is None:
            return
        server_id = server_id_from(kind, response) or await self._store.resolve_id(kind, item.entity_id)
        pending = await self._queue.pending_count(kind, server_id) > 0
        record = self._merge(kind, local, response or {_ID_KEY[kind]: server_id}, pending=pending)
        if record.id != local.id:
            await self._store.delete_record(kind, local.id)
            await self._store.set_alias(kind, local.id, record.id)
        await self._cache(kind, record)
        _logger.debug("Reconciled %s %s (pending_sync=%s)", kind.value, record.id, pending)

    async def _load(self, kind: EntityKind, record_id: str) -> Any:
        """Local record if it has unsynced changes, else the remote one (cache on miss)."""
        resolved = await self._store.resolve_id(kind, record_id)
        local = await self._cached(kind, resolved)
        if local is not None and local.pending_sync:
            return local
        fetch = _bookings_api.get_booking if kind == EntityKind.BOOKING else _deployments_api.get_deployment
        try:
            remote = await asyncio.wait_for(fetch(self._transport, resolved), timeout=self._config.request_timeout)
        except (TimeoutError, TransientNetworkError):
            if local is None:
                raise
            _logger.debug("Remote unavailable; using cached %s %s", kind.value, resolved)
            return local
        await self._cache(kind, remote)
        return remote

    async def _active_assignments(self) -> list[ActiveAssignment]:
        default_minutes = self._config.default_booking_duration_minutes
        active: list[ActiveAssignment] = []
        for raw in await self._store.list_records(EntityKind.DEPLOYMENT):
            deployment = Deployment.model_validate(raw)
            if not is_terminal(deployment.status):
                active.append(ActiveAssignment.from_deployment(deployment))
        for raw in await self._store.list_records(EntityKind.BOOKING):
            booking = Booking.model_validate(raw)
            if not is_terminal(booking.status) and (booking.vehicle_id or booking.pilot_id):
                active.append(ActiveAssignment.from_booking(booking, default_minutes))
        return active

    async def _ensure_no_conflict(self, proposed: ProposedAssignment, exclude_id: str | None = None) -> None:
        result = detect_conflict(proposed, await self._active_assignments(), exclude_id=exclude_id)
        if result.has_conflict:
            _logger.info("Rejected assignment %s: conflicts with %s", proposed, result.conflicting_ids)
        result.raise_if_conflict()

    def _booking_with(self, booking: Booking, changes: Mapping[str, Any]) -> Booking:
        return validate_as(Booking, {**booking.model_dump(), **changes, "pending_sync": booking.pending_sync})

    def _deployment_with(self, deployment: Deployment, changes: Mapping[str, Any]) -> Deployment:
        return validate_as(Deployment, {**deployment.model_dump(), **changes, "pending_sync": deployment.pending_sync})

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def create_booking(self, request: CreateBookingRequest | Mapping[str, Any]) -> Booking:
        """Create a booking in ``pending`` status.

        Returns the server record, or the local record with
        ``pending_sync=True`` when the remote was unreachable.
        """
        req = validate_as(CreateBookingRequest, request)
        if req.vehicle_id or req.pilot_id:
            await self._ensure_no_conflict(
                ProposedAssignment(
                    req.vehicle_id,
                    req.pilot_id,
                    req.scheduled_start,
                    req.scheduled_end(self._config.default_booking_duration_minutes),
                )
            )
        now = self._clock()
        local = validate_as(
            Booking,
            {
                **req.model_dump(),
                "id": self._new_id(BOOKING_ID_PREFIX),
                "status": BookingStatus.PENDING,
                "created_at": now,
                "updated_at": now,
            },
        )
        server = await self._write(
            EntityKind.BOOKING,
            SyncOperation.CREATE,
            local.id,
            req.to_wire(),
            lambda key: _bookings_api.create_booking(self._transport, req, idempotency_key=key),
        )
        booking = await self._settle(EntityKind.BOOKING, local, server)
        _logger.info("Created booking %s (pending_sync=%s)", booking.id, booking.pending_sync)
        return booking

    async def update_booking_status(self, request: UpdateBookingStatusRequest | Mapping[str, Any]) -> Booking:
        """Move a booking along the state machine.

        Raises
        ------
        IllegalTransitionError, TerminalStateError, PreconditionError
            The transition is not allowed or lacks required data.
        ConflictError
            Assigning a vehicle or pilot that is busy in the booking window.
        """
        req = validate_as(UpdateBookingStatusRequest, request)
        booking: Booking = await self._load(EntityKind.BOOKING, req.booking_id)
        now = self._clock()
        vehicle_id = req.vehicle_id or booking.vehicle_id
        outcome = transition(
            booking.status,
            req.status,
            TransitionContext(vehicle_id=vehicle_id, actual_cost=req.actual_cost, reason=req.reason, at=now),
        )
        if outcome.status == BookingStatus.ASSIGNED:
            await self._ensure_no_conflict(
                ProposedAssignment(
                    vehicle_id,
                    req.pilot_id or booking.pilot_id,
                    booking.scheduled_start,
                    booking.scheduled_end(self._config.default_booking_duration_minutes),
                ),
                exclude_id=booking.id,
            )
        update = BookingStatusUpdate(
            status=outcome.status,
            vehicle_id=req.vehicle_id,
            pilot_id=req.pilot_id,
            actual_cost=req.actual_cost,
            rating=req.rating,
            feedback=req.feedback,
            cancellation_reason=req.reason if outcome.status == BookingStatus.CANCELLED else None,
            updated_at=now,
            **outcome.stamps,
        )
        local = self._booking_with(booking, update.model_dump(exclude_none=True))
        server = await self._write(
            EntityKind.BOOKING,
            SyncOperation.UPDATE,
            booking.id,
            update.to_wire(),
            lambda key: _bookings_api.update_booking(self._transport, booking.id, update, idempotency_key=key),
        )
        result = await self._settle(EntityKind.BOOKING, local, server)
        _logger.info("Booking %s: %s -> %s", booking.id, booking.status.value, outcome.status.value)
        return result

    async def cancel_booking(self, request: CancelBookingRequest | Mapping[str, Any]) -> Booking:
        """Cancel (soft-delete) a booking with a reason of at least 10 characters."""
        req = validate_as(CancelBookingRequest, request)
        booking: Booking = await self._load(EntityKind.BOOKING, req.booking_id)
        now = self._clock()
        outcome = transition(booking.status, BookingStatus.CANCELLED, TransitionContext(reason=req.reason, at=now))
        local = self._booking_with(
            booking,
            {
                "status": outcome.status,
                "cancellation_reason": req.reason,
                "is_active": False,
                "updated_at": now,
                **outcome.stamps,
            },
        )
        server = await self._write(
            EntityKind.BOOKING,
            SyncOperation.DELETE,
            booking.id,
            {"reason": req.reason},
            lambda key: _bookings_api.cancel_booking(self._transport, booking.id, req.reason, idempotency_key=key),
        )
        result = await self._settle(EntityKind.BOOKING, local, server)
        _logger.info("Cancelled booking %s", booking.id)
        return result

    async def get_booking(self, booking_id: str) -> Booking:
        """Fetch a booking by server or provisional local id."""
        return await self._load(EntityKind.BOOKING, booking_id)

    async def list_bookings(self, query: BookingQuery | Mapping[str, Any] | None = None) -> list[Booking]:
        """One page of bookings; served from the local cache when the remote is down.

        Records with unsynced local changes always replace their remote copy.
        """
        q = validate_as(BookingQuery, query or {})
        local = [Booking.model_validate(raw) for raw in await self._store.list_records(EntityKind.BOOKING)]
        try:
            remote = await asyncio.wait_for(
                _bookings_api.list_bookings(self._transport, q), timeout=self._config.request_timeout
            )
        except (TimeoutError, TransientNetworkError):
            _logger.info("Listing bookings from local cache (remote unavailable)")
            return _page(sorted(_filter_bookings(local, q), key=_booking_sort_key), q.page, q.limit)
        return await self._overlay(EntityKind.BOOKING, remote, _filter_bookings(local, q), q.page)

    async def booking_stats(self, date_from: Any = None, date_to: Any = None) -> BookingStats:
        """Aggregates over cached active bookings, optionally within a scheduled-date range."""
        q = validate_as(BookingQuery, {"date_from": date_from, "date_to": date_to})
        bookings = [Booking.model_validate(raw) for raw in await self._store.list_records(EntityKind.BOOKING)]
        return BookingStats.from_bookings(list(_filter_bookings(bookings, q)))

    # ------------------------------------------------------------------
    # Deployments
    # ------------------------------------------------------------------

    async def create_deployment(self, request: CreateDeploymentRequest | Mapping[str, Any]) -> Deployment:
        """Schedule a deployment after checking vehicle and pilot availability.

        Raises
        ------
        ConflictError
            The vehicle or the pilot has an overlapping active deployment
            or booking; ``conflicting_ids`` names them.
        """
        req = validate_as(CreateDeploymentRequest, request)
        await self._ensure_no_conflict(
            ProposedAssignment(req.vehicle_id, req.pilot_id, req.start_time, req.estimated_end_time)
        )
        now = self._clock()
        local = validate_as(
            Deployment,
            {
                **req.model_dump(),
                "id": self._new_id(DEPLOYMENT_ID_PREFIX),
                "status": DeploymentStatus.SCHEDULED,
                "created_at": now,
                "updated_at": now,
            },
        )
        server = await self._write(
            EntityKind.DEPLOYMENT,
            SyncOperation.CREATE,
            local.id,
            req.to_wire(),
            lambda key: _deployments_api.create_deployment(self._transport, req, idempotency_key=key),
        )
        deployment = await self._settle(EntityKind.DEPLOYMENT, local, server)
        _logger.info(
            "Created deployment %s vehicle=%s pilot=%s (pending_sync=%s)",
            deployment.id,
            deployment.vehicle_id,
            deployment.pilot_id,
            deployment.pending_sync,
        )
        return deployment

    async def _update_deployment(self, deployment: Deployment, update: DeploymentStatusUpdate) -> Deployment:
        local = self._deployment_with(deployment, update.model_dump(exclude_none=True))
        server = await self._write(
            EntityKind.DEPLOYMENT,
            SyncOperation.UPDATE,
            deployment.id,
            update.to_wire(),
            lambda key: _deployments_api.update_deployment(self._transport, deployment.id, update, idempotency_key=key),
        )
        result = await self._settle(EntityKind.DEPLOYMENT, local, server)
        _logger.info("Deployment %s: %s -> %s", deployment.id, deployment.status.value, update.status.value)
        return result

    async def start_deployment(self, request: DeploymentStatusRequest | Mapping[str, Any]) -> Deployment:
        req = validate_as(DeploymentStatusRequest, request)
        deployment: Deployment = await self._load(EntityKind.DEPLOYMENT, req.deployment_id)
        now = self._clock()
        outcome = transition(deployment.status, DeploymentStatus.IN_PROGRESS, TransitionContext(at=now))
        return await self._update_deployment(
            deployment, DeploymentStatusUpdate(status=outcome.status, updated_at=now, **outcome.stamps)
        )

    async def update_deployment_tracking(self, request: TrackingUpdateRequest | Mapping[str, Any]) -> Deployment:
        """Record a real-time snapshot of an in-progress deployment.

        Raises
        ------
        TerminalStateError
            The deployment is completed or cancelled.
        PreconditionError
            The deployment has not started yet.
        """
        req = validate_as(TrackingUpdateRequest, request)
        deployment: Deployment = await self._load(EntityKind.DEPLOYMENT, req.deployment_id)
        if is_terminal(deployment.status):
            raise TerminalStateError(deployment.status.value, "tracking")
        if deployment.status != DeploymentStatus.IN_PROGRESS:
            raise PreconditionError("status", "Tracking updates require an in-progress deployment")
        now = self._clock()
        snapshot = req.snapshot
        if snapshot.recorded_at is None:
            snapshot = snapshot.model_copy(update={"recorded_at": now})
        local = self._deployment_with(deployment, {"tracking": snapshot.model_dump(), "updated_at": now})
        server = await self._write(
            EntityKind.DEPLOYMENT,
            SyncOperation.UPDATE,
            deployment.id,
            snapshot.to_wire(),
            lambda key: _deployments_api.update_tracking(self._transport, deployment.id, snapshot, idempotency_key=key),
            scope=MutationScope.TRACKING,
        )
        return await self._settle(EntityKind.DEPLOYMENT, local, server)

    async def complete_deployment(self, request: CompleteDeploymentRequest | Mapping[str, Any]) -> Deployment:
        """Close an in-progress deployment; needs the actual end time and a final snapshot."""
        req = validate_as(CompleteDeploymentRequest, request)
        deployment: Deployment = await self._load(EntityKind.DEPLOYMENT, req.deployment_id)
        now = self._clock()
        outcome = transition(
            deployment.status,
            DeploymentStatus.COMPLETED,
            TransitionContext(actual_end_time=req.actual_end_time, final_tracking=req.final_tracking, at=now),
        )
        update = DeploymentStatusUpdate(
            status=outcome.status,
            actual_end_time=req.actual_end_time,
            tracking=req.final_tracking,
            end_location=req.end_location,
            actual_cost=req.actual_cost,
            notes=req.notes,
            updated_at=now,
            **outcome.stamps,
        )
        return await self._update_deployment(deployment, update)

    async def cancel_deployment(self, request: DeploymentStatusRequest | Mapping[str, Any]) -> Deployment:
        req = validate_as(DeploymentStatusRequest, request)
        deployment: Deployment = await self._load(EntityKind.DEPLOYMENT, req.deployment_id)
        now = self._clock()
        context = TransitionContext(reason=req.reason, at=now)
        outcome = transition(deployment.status, DeploymentStatus.CANCELLED, context)
        update = DeploymentStatusUpdate(
            status=outcome.status,
            cancellation_reason=(req.reason or "").strip(),
            updated_at=now,
            **outcome.stamps,
        )
        return await self._update_deployment(deployment, update)

    async def get_deployment(self, deployment_id: str) -> Deployment:
        return await self._load(EntityKind.DEPLOYMENT, deployment_id)

    async def list_deployments(self, query: DeploymentQuery | Mapping[str, Any] | None = None) -> list[Deployment]:
        q = validate_as(DeploymentQuery, query or {})
        local = [Deployment.model_validate(raw) for raw in await self._store.list_records(EntityKind.DEPLOYMENT)]
        try:
            remote = await asyncio.wait_for(
                _deployments_api.list_deployments(self._transport, q), timeout=self._config.request_timeout
            )
        except (TimeoutError, TransientNetworkError):
            _logger.info("Listing deployments from local cache (remote unavailable)")
            ordered = sorted(_filter_deployments(local, q), key=lambda d: d.start_time, reverse=True)
            return _page(ordered, q.page, q.limit)
        return await self._overlay(EntityKind.DEPLOYMENT, remote, _filter_deployments(local, q), q.page)

    async def _overlay(self, kind: EntityKind, remote: list[Any], local: Iterable[Any], page: int) -> list[Any]:
        pending = {record.id: record for record in local if record.pending_sync}
        result = []
        for record in remote:
            if record.id in pending:
                result.append(pending.pop(record.id))
            else:
                await self._cache(kind, record)
                result.append(record)
        if page == 1:
            # Provisional records the server has not seen yet.
            result.extend(pending.values())
        return result

    # ------------------------------------------------------------------
    # Matching and sync status
    # ------------------------------------------------------------------

    async def find_optimal_vehicles(
        self,
        request: AssignmentRequest | Mapping[str, Any],
        pool: Iterable[Vehicle] | None = None,
    ) -> list[Candidate]:
        """Rank available vehicles for *request*; fetches the registry when *pool* is omitted."""
        req = validate_as(AssignmentRequest, request)
        vehicles = list(pool) if pool is not None else await _vehicles_api.fetch_vehicle_list(self._transport)
        candidates = select_candidates(
            req,
            vehicles,
            weights=self._config.scoring,
            now=self._clock(),
            min_battery=self._config.min_battery,
            max_distance_km=self._config.max_distance_km,
        )
        _logger.debug("%d of %d vehicles qualify", len(candidates), len(vehicles))
        return candidates

    async def pending_sync_count(self) -> int:
        return await self._queue.pending_count()


def _page(records: list[Any], page: int, limit: int) -> list[Any]:
    start = (page - 1) * limit
    return records[start : start + limit]


def _booking_sort_key(booking: Booking) -> tuple[Any, ...]:
    return (booking.scheduled_date, booking.scheduled_time, booking.id)


def _filter_bookings(bookings: Iterable[Booking], query: BookingQuery) -> Iterable[Booking]:
    for booking in bookings:
        if query.status and booking.status not in query.status:
            continue
        if query.booking_type is not None and booking.booking_type != query.booking_type:
            continue
        if query.date_from is not None and booking.scheduled_date < query.date_from:
            continue
        if query.date_to is not None and booking.scheduled_date > query.date_to:
            continue
        yield booking


def _filter_deployments(deployments: Iterable[Deployment], query: DeploymentQuery) -> Iterable[Deployment]:
    for deployment in deployments:
        if query.status and deployment.status not in query.status:
            continue
        if query.vehicle_id and deployment.vehicle_id != query.vehicle_id:
            continue
        if query.pilot_id and deployment.pilot_id != query.pilot_id:
            continue
        yield deployment


__all__ = ["LifecycleOrchestrator", "to_validation_error", "validate_as"]
