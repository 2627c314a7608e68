from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio

from fleetsync._api.dispatch import dispatch_item
from fleetsync._transport import HttpResponse
from fleetsync.config import FleetSyncConfig, RetryPolicy
from fleetsync.exceptions import TransientNetworkError
from fleetsync.lifecycle.orchestrator import LifecycleOrchestrator
from fleetsync.sync.queue import SyncQueue
from fleetsync.sync.store import MemorySyncStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRemote:
    """In-memory backend answering the REST routes the client uses.

    ``offline`` makes every request fail like a dropped connection;
    ``delay`` makes every request hang (for timeout tests). Responses are
    replayed for a repeated idempotency key.
    """

    def __init__(self) -> None:
        self.bookings: dict[str, dict[str, Any]] = {}
        self.deployments: dict[str, dict[str, Any]] = {}
        self.vehicles: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str, str | None]] = []
        self.offline = False
        self.delay = 0.0
        self._responses: dict[str, HttpResponse] = {}
        self._seq = 0

    @property
    def writes(self) -> list[tuple[str, str, str | None]]:
        return [call for call in self.calls if call[0] != "GET"]

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> HttpResponse:
        self.calls.append((method, endpoint, idempotency_key))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.offline:
            raise TransientNetworkError("connection refused", endpoint=endpoint)
        if idempotency_key and idempotency_key in self._responses:
            return self._responses[idempotency_key]
        response = self._route(method, endpoint, dict(json_body or {}))
        if idempotency_key:
            self._responses[idempotency_key] = response
        return response

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq:04d}"

    def _route(self, method: str, endpoint: str, body: dict[str, Any]) -> HttpResponse:
        parts = endpoint.strip("/").split("/")
        collection = parts[0]
        if collection == "vehicles":
            return HttpResponse(200, {"success": True, "data": self.vehicles}, endpoint)

        table = self.bookings if collection == "bookings" else self.deployments
        id_key = "bookingId" if collection == "bookings" else "deploymentId"

        if len(parts) == 1:
            if method == "GET":
                return HttpResponse(200, {"success": True, "data": list(table.values())}, endpoint)
            record_id = self._next_id("BK" if collection == "bookings" else "DP")
            status = "pending" if collection == "bookings" else "scheduled"
            table[record_id] = {**body, id_key: record_id, "status": status}
            return HttpResponse(201, {"success": True, "data": table[record_id]}, endpoint)

        record = table.get(parts[1])
        if record is None:
            return HttpResponse(404, {"success": False, "message": "Not found"}, endpoint)
        if method == "GET":
            return HttpResponse(200, {"success": True, "data": record}, endpoint)
        if len(parts) == 3 and parts[2] == "tracking":
            if record["status"] in ("completed", "cancelled"):
                return HttpResponse(409, {"from": record["status"], "to": "tracking"}, endpoint)
            record["tracking"] = body
        elif method == "DELETE":
            record.update(status="cancelled", cancellationReason=body.get("reason"), isActive=False)
        else:
            record.update(body)
        return HttpResponse(200, {"success": True, "data": record}, endpoint)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 11, 1, 8, 0, tzinfo=UTC))


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def config() -> FleetSyncConfig:
    return FleetSyncConfig(
        request_timeout=0.2,
        retry=RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0, jitter=0.0),
    )


@pytest_asyncio.fixture
async def store() -> MemorySyncStore:
    memory = MemorySyncStore()
    await memory.open()
    return memory


@pytest.fixture
def queue(store: MemorySyncStore, remote: FakeRemote, config: FleetSyncConfig, clock: FakeClock) -> SyncQueue:
    return SyncQueue(
        store,
        lambda item: dispatch_item(remote, item),
        policy=config.retry,
        attempt_timeout=1.0,
        clock=clock,
    )


@pytest.fixture
def orchestrator(
    remote: FakeRemote,
    store: MemorySyncStore,
    queue: SyncQueue,
    config: FleetSyncConfig,
    clock: FakeClock,
) -> LifecycleOrchestrator:
    return LifecycleOrchestrator(remote, store, queue, config=config, clock=clock)


def booking_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "customerName": "Asha Rao",
        "customerPhone": "9876543210",
        "bookingType": "airport",
        "subType": "pickup",
        "pickupLocation": "Terminal 2",
        "scheduledDate": "2026-11-02",
        "scheduledTime": "09:30",
        "estimatedCost": 850,
    }
    payload.update(overrides)
    return payload


def deployment_payload(vehicle_id: str, pilot_id: str, start: str, end: str, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "vehicleId": vehicle_id,
        "pilotId": pilot_id,
        "startTime": start,
        "estimatedEndTime": end,
        "startLocation": {"latitude": 12.9716, "longitude": 77.5946},
        "purpose": "passenger_trip",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_booking() -> Any:
    return booking_payload


@pytest.fixture
def make_deployment() -> Any:
    return deployment_payload
