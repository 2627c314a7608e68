"""Custom exception hierarchy for fleetsync."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fleetsync.models.sync import SyncQueueItem


class FleetSyncError(Exception):
    """Base exception for all fleetsync errors."""


class FleetSyncConfigError(FleetSyncError):
    """Invalid or missing configuration."""


class ValidationError(FleetSyncError):
    """Malformed input; the caller can recover by correcting it.

    ``errors`` maps a field name (camelCase, as on the wire) to a
    human-readable message.
    """

    def __init__(self, message: str, *, errors: Mapping[str, str] | None = None) -> None:
        self.errors: dict[str, str] = dict(errors or {})
        super().__init__(message)


class RecordNotFoundError(ValidationError):
    """No booking or deployment exists with the given id."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id!r} not found", errors={"id": "not found"})


class TransitionError(FleetSyncError):
    """Base for status state-machine violations."""


class IllegalTransitionError(TransitionError):
    """The requested status is not reachable from the current one."""

    def __init__(self, from_status: str, to_status: str, message: str | None = None) -> None:
        self.from_status = str(from_status)
        self.to_status = str(to_status)
        super().__init__(message or f"Cannot transition from {self.from_status!r} to {self.to_status!r}")


class TerminalStateError(IllegalTransitionError):
    """The record is already completed or cancelled."""

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            from_status,
            to_status,
            f"Status {str(from_status)!r} is terminal; cannot move to {str(to_status)!r}",
        )


class PreconditionError(TransitionError):
    """A side-constraint of the transition is not met (e.g. missing ``actualCost``)."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Transition requires field {field!r}")


class ConflictError(FleetSyncError):
    """The proposed assignment overlaps an active booking or deployment.

    Never resolved automatically; ``conflicting_ids`` names the records
    the caller has to deal with.
    """

    def __init__(self, conflicting_ids: Iterable[str], message: str | None = None) -> None:
        self.conflicting_ids: list[str] = list(conflicting_ids)
        names = ", ".join(self.conflicting_ids) or "an active record"
        super().__init__(message or f"Assignment conflicts with {names}")


class TransientNetworkError(FleetSyncError):
    """Network failure, timeout or retryable HTTP status.

    The orchestrator absorbs this into the sync queue.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RemoteApiError(FleetSyncError):
    """Remote authority rejected the request permanently (non-retryable 4xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class DeadLetterError(FleetSyncError):
    """A queued mutation exhausted its retries or was permanently rejected.

    Handed to the ``on_dead_letter`` callback of the sync queue; an
    operator has to requeue or discard the item.
    """

    def __init__(self, item: SyncQueueItem, reason: str) -> None:
        self.item = item
        self.reason = reason
        super().__init__(f"{item.operation} {item.entity_kind} {item.entity_id} dead-lettered: {reason}")


class StoreError(FleetSyncError):
    """Local persistent storage failed or is not open."""
