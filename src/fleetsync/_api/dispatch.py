"""Route a queued mutation to its endpoint.

Queue payloads are the camelCase wire form of the request DTOs; they
are validated back into the DTO before sending so a replayed request is
exactly as typed as a direct one.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from fleetsync._api import bookings as _bookings_api
from fleetsync._api import deployments as _deployments_api
from fleetsync._transport import Transport
from fleetsync.exceptions import ValidationError
from fleetsync.models.deployment import TrackingSnapshot
from fleetsync.models.requests import (
    BookingStatusUpdate,
    CreateBookingRequest,
    CreateDeploymentRequest,
    DeploymentStatusUpdate,
)
from fleetsync.models.sync import EntityKind, MutationScope, SyncOperation, SyncQueueItem


async def _dispatch_booking(transport: Transport, item: SyncQueueItem) -> dict[str, Any]:
    key = item.idempotency_key
    if item.operation == SyncOperation.CREATE:
        request = CreateBookingRequest.model_validate(item.payload)
        return await _bookings_api.create_booking(transport, request, idempotency_key=key)
    if item.operation == SyncOperation.UPDATE:
        update = BookingStatusUpdate.model_validate(item.payload)
        return await _bookings_api.update_booking(transport, item.entity_id, update, idempotency_key=key)
    return await _bookings_api.cancel_booking(
        transport,
        item.entity_id,
        str(item.payload.get("reason", "")),
        idempotency_key=key,
    )


async def _dispatch_deployment(transport: Transport, item: SyncQueueItem) -> dict[str, Any]:
    key = item.idempotency_key
    if item.operation == SyncOperation.CREATE:
        request = CreateDeploymentRequest.model_validate(item.payload)
        return await _deployments_api.create_deployment(transport, request, idempotency_key=key)
    if item.operation == SyncOperation.UPDATE and item.scope == MutationScope.TRACKING:
        snapshot = TrackingSnapshot.model_validate(item.payload)
        return await _deployments_api.update_tracking(transport, item.entity_id, snapshot, idempotency_key=key)
    if item.operation == SyncOperation.UPDATE:
        update = DeploymentStatusUpdate.model_validate(item.payload)
        return await _deployments_api.update_deployment(transport, item.entity_id, update, idempotency_key=key)
    raise ValidationError(
        "Deployments are cancelled through a status update, not deleted",
        errors={"operation": item.operation.value},
    )


async def dispatch_item(transport: Transport, item: SyncQueueItem) -> dict[str, Any]:
    """Deliver *item* and return the server record (``{}`` when none was returned)."""
    try:
        if item.entity_kind == EntityKind.BOOKING:
            return await _dispatch_booking(transport, item)
        return await _dispatch_deployment(transport, item)
    except PydanticValidationError as exc:
        # A payload that no longer validates can never be delivered.
        raise ValidationError(f"Queued payload for {item.entity_id} is invalid: {exc}") from exc
