"""High-level async client for the fleet operations backend."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

import aiohttp

from fleetsync._api.dispatch import dispatch_item
from fleetsync._transport import HttpTransport, Transport
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncError
from fleetsync.lifecycle.orchestrator import LifecycleOrchestrator
from fleetsync.matching.selector import Candidate
from fleetsync.models._base import utcnow
from fleetsync.models.booking import Booking, BookingStats
from fleetsync.models.deployment import Deployment
from fleetsync.models.requests import (
    AssignmentRequest,
    BookingQuery,
    CancelBookingRequest,
    CompleteDeploymentRequest,
    CreateBookingRequest,
    CreateDeploymentRequest,
    DeploymentQuery,
    DeploymentStatusRequest,
    TrackingUpdateRequest,
    UpdateBookingStatusRequest,
)
from fleetsync.models.sync import DeadLetter, ReplayReport, SyncQueueItem
from fleetsync.models.vehicle import Vehicle
from fleetsync.sync.queue import DeadLetterCallback, SyncQueue
from fleetsync.sync.scheduler import ReplayScheduler
from fleetsync.sync.store import JsonFileSyncStore, MemorySyncStore, SyncStore

_logger = logging.getLogger(__name__)


class FleetClient:
    """Async client for bookings, deployments and vehicle matching.

    Mutations are validated locally, sent to the backend and, when it
    cannot be reached, kept in a durable queue that a background task
    replays.

    Usage::

        async with FleetClient(FleetSyncConfig.from_env()) as client:
            booking = await client.create_booking({...})
            await client.update_booking_status(
                {"bookingId": booking.id, "status": "confirmed"}
            )

    Parameters
    ----------
    config : FleetSyncConfig or None
        Client configuration; defaults to :meth:`FleetSyncConfig.from_env`.
    session : aiohttp.ClientSession or None
        Externally managed HTTP session. When omitted the client creates
        and closes its own.
    store : SyncStore or None
        Local store. Defaults to a JSON file at ``config.store_path`` or
        an in-memory store.
    transport : Transport or None
        Replaces the HTTP transport (tests, alternative backends).
    clock : callable
        Returns the current aware UTC time.
    on_dead_letter : callable or None
        Notified whenever a queued mutation is dead-lettered.
    """

    def __init__(
        self,
        config: FleetSyncConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        store: SyncStore | None = None,
        transport: Transport | None = None,
        clock: Callable[[], datetime] = utcnow,
        on_dead_letter: DeadLetterCallback | None = None,
    ) -> None:
        self._config = config or FleetSyncConfig.from_env()
        self._external_session = session is not None
        self._http_session = session
        self._custom_transport = transport
        self._store = store
        self._clock = clock
        self._on_dead_letter = on_dead_letter
        self._transport: Transport | None = None
        self._queue: SyncQueue | None = None
        self._orchestrator: LifecycleOrchestrator | None = None
        self._scheduler: ReplayScheduler | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetClient:
        if self._custom_transport is not None:
            self._transport = self._custom_transport
        else:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)

        if self._store is None:
            if self._config.store_path is not None:
                self._store = JsonFileSyncStore(self._config.store_path)
            else:
                self._store = MemorySyncStore()
        await self._store.open()

        transport = self._transport
        self._queue = SyncQueue(
            self._store,
            lambda item: dispatch_item(transport, item),
            policy=self._config.retry,
            concurrency=self._config.replay_concurrency,
            attempt_timeout=self._config.request_timeout,
            clock=self._clock,
            on_dead_letter=self._on_dead_letter,
        )
        self._orchestrator = LifecycleOrchestrator(
            transport,
            self._store,
            self._queue,
            config=self._config,
            clock=self._clock,
        )
        self._scheduler = ReplayScheduler(
            self._queue.replay,
            interval=self._config.replay_interval,
            on_report=self._log_report,
        )
        self._scheduler.start()
        pending = await self._queue.pending_count()
        if pending:
            _logger.info("%d queued mutation(s) from a previous session; replaying", pending)
            self._scheduler.trigger()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = None
        if self._store is not None:
            await self._store.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._queue = None
        self._orchestrator = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_orchestrator(self) -> LifecycleOrchestrator:
        if self._orchestrator is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._orchestrator

    def _require_queue(self) -> SyncQueue:
        if self._queue is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._queue

    @staticmethod
    def _log_report(report: ReplayReport) -> None:
        if report.succeeded or report.failed or report.dead_lettered:
            _logger.info(
                "Replay: %d delivered, %d failed, %d dead-lettered, %d remaining",
                report.succeeded,
                report.failed,
                report.dead_lettered,
                report.remaining,
            )

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def create_booking(self, request: CreateBookingRequest | Mapping[str, Any]) -> Booking:
        return await self._require_orchestrator().create_booking(request)

    async def update_booking_status(self, request: UpdateBookingStatusRequest | Mapping[str, Any]) -> Booking:
        return await self._require_orchestrator().update_booking_status(request)

    async def cancel_booking(self, request: CancelBookingRequest | Mapping[str, Any]) -> Booking:
        return await self._require_orchestrator().cancel_booking(request)

    async def get_booking(self, booking_id: str) -> Booking:
        return await self._require_orchestrator().get_booking(booking_id)

    async def list_bookings(self, query: BookingQuery | Mapping[str, Any] | None = None) -> list[Booking]:
        return await self._require_orchestrator().list_bookings(query)

    async def booking_stats(self, date_from: Any = None, date_to: Any = None) -> BookingStats:
        return await self._require_orchestrator().booking_stats(date_from, date_to)

    # ------------------------------------------------------------------
    # Deployments
    # ------------------------------------------------------------------

    async def create_deployment(self, request: CreateDeploymentRequest | Mapping[str, Any]) -> Deployment:
        return await self._require_orchestrator().create_deployment(request)

    async def start_deployment(self, request: DeploymentStatusRequest | Mapping[str, Any]) -> Deployment:
        return await self._require_orchestrator().start_deployment(request)

    async def update_deployment_tracking(self, request: TrackingUpdateRequest | Mapping[str, Any]) -> Deployment:
        return await self._require_orchestrator().update_deployment_tracking(request)

    async def complete_deployment(self, request: CompleteDeploymentRequest | Mapping[str, Any]) -> Deployment:
        return await self._require_orchestrator().complete_deployment(request)

    async def cancel_deployment(self, request: DeploymentStatusRequest | Mapping[str, Any]) -> Deployment:
        return await self._require_orchestrator().cancel_deployment(request)

    async def get_deployment(self, deployment_id: str) -> Deployment:
        return await self._require_orchestrator().get_deployment(deployment_id)

    async def list_deployments(self, query: DeploymentQuery | Mapping[str, Any] | None = None) -> list[Deployment]:
        return await self._require_orchestrator().list_deployments(query)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def find_optimal_vehicles(
        self,
        request: AssignmentRequest | Mapping[str, Any],
        pool: Iterable[Vehicle] | None = None,
    ) -> list[Candidate]:
        """Rank available vehicles for a location; see :func:`fleetsync.matching.selector.select_candidates`."""
        return await self._require_orchestrator().find_optimal_vehicles(request, pool)

    # ------------------------------------------------------------------
    # Sync queue
    # ------------------------------------------------------------------

    async def replay(self) -> ReplayReport:
        """Run a replay pass now and wait for it."""
        return await self._require_queue().replay()

    def connectivity_restored(self) -> None:
        """Signal that the backend is reachable again; the scheduler replays immediately."""
        if self._scheduler is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        self._scheduler.trigger()

    async def pending_sync_count(self) -> int:
        return await self._require_orchestrator().pending_sync_count()

    async def pending_items(self) -> list[SyncQueueItem]:
        return await self._require_queue().pending_items()

    async def dead_letters(self) -> list[DeadLetter]:
        return await self._require_queue().dead_letters()

    async def requeue_dead_letter(self, item_id: str) -> SyncQueueItem:
        return await self._require_queue().requeue_dead_letter(item_id)

    async def discard_dead_letter(self, item_id: str) -> bool:
        return await self._require_queue().discard_dead_letter(item_id)
