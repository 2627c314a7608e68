"""Booking and deployment status state machine.

The two transition tables below are the single authority for which
status changes are legal. Both the orchestrator and the sync queue
consult them; nothing else hard-codes edges.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import datetime

from fleetsync._constants import MIN_CANCELLATION_REASON_LENGTH
from fleetsync.exceptions import (
    IllegalTransitionError,
    PreconditionError,
    TerminalStateError,
    ValidationError,
)
from fleetsync.models._base import utcnow
from fleetsync.models.deployment import TrackingSnapshot
from fleetsync.models.status import BookingStatus, DeploymentStatus

Status = BookingStatus | DeploymentStatus

BOOKING_TRANSITIONS: Mapping[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ASSIGNED, BookingStatus.CANCELLED}),
    BookingStatus.ASSIGNED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

DEPLOYMENT_TRANSITIONS: Mapping[DeploymentStatus, frozenset[DeploymentStatus]] = {
    DeploymentStatus.SCHEDULED: frozenset({DeploymentStatus.IN_PROGRESS, DeploymentStatus.CANCELLED}),
    DeploymentStatus.IN_PROGRESS: frozenset({DeploymentStatus.COMPLETED, DeploymentStatus.CANCELLED}),
    DeploymentStatus.COMPLETED: frozenset(),
    DeploymentStatus.CANCELLED: frozenset(),
}

_TABLES: dict[type, Mapping] = {
    BookingStatus: BOOKING_TRANSITIONS,
    DeploymentStatus: DEPLOYMENT_TRANSITIONS,
}


@dataclasses.dataclass(frozen=True)
class TransitionContext:
    """Data a transition may require or stamp.

    ``at`` is the instant used for timestamps; it defaults to now.
    """

    vehicle_id: str | None = None
    actual_cost: float | None = None
    actual_end_time: datetime | None = None
    final_tracking: TrackingSnapshot | None = None
    reason: str | None = None
    at: datetime | None = None


@dataclasses.dataclass(frozen=True)
class TransitionOutcome:
    """The accepted new status and the timestamps it sets (snake_case field -> value)."""

    status: Status
    stamps: dict[str, datetime] = dataclasses.field(default_factory=dict)


def _table_for(status: Status) -> Mapping:
    table = _TABLES.get(type(status))
    if table is None:
        raise ValidationError(
            f"Unknown status type {type(status).__name__}",
            errors={"status": "must be a booking or deployment status"},
        )
    return table


def coerce_status(status_type: type[Status], value: str | Status) -> Status:
    """Parse *value* as a member of *status_type*, raising :class:`ValidationError` if unknown."""
    if isinstance(value, status_type):
        return value
    try:
        return status_type(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Unknown status {value!r}",
            errors={"status": f"must be one of {', '.join(status_type.values())}"},
        ) from exc


def allowed_transitions(status: Status) -> frozenset[Status]:
    """Statuses reachable from *status* in one step."""
    return _table_for(status)[status]


def is_terminal(status: Status) -> bool:
    return not allowed_transitions(status)


def _check_preconditions(target: Status, context: TransitionContext) -> None:
    if isinstance(target, BookingStatus):
        if target == BookingStatus.ASSIGNED and not (context.vehicle_id or "").strip():
            raise PreconditionError("vehicleId", "Assigning a booking requires a vehicle")
        if target == BookingStatus.COMPLETED and context.actual_cost is None:
            raise PreconditionError("actualCost", "Completing a booking requires the actual cost")
    else:
        if target == DeploymentStatus.COMPLETED:
            if context.actual_end_time is None:
                raise PreconditionError("actualEndTime", "Completing a deployment requires the actual end time")
            if context.final_tracking is None:
                raise PreconditionError("tracking", "Completing a deployment requires a final tracking snapshot")

    if target in (BookingStatus.CANCELLED, DeploymentStatus.CANCELLED):
        reason = (context.reason or "").strip()
        if len(reason) < MIN_CANCELLATION_REASON_LENGTH:
            raise PreconditionError(
                "reason",
                f"Cancellation reason must be at least {MIN_CANCELLATION_REASON_LENGTH} characters",
            )


def _stamps(target: Status, at: datetime) -> dict[str, datetime]:
    # Both enums share the "in_progress"/"completed"/"cancelled" values, so compare by type too.
    if target in (BookingStatus.CANCELLED, DeploymentStatus.CANCELLED):
        return {"cancelled_at": at}
    if isinstance(target, BookingStatus) and target is BookingStatus.IN_PROGRESS:
        return {"actual_start_time": at}
    if isinstance(target, BookingStatus) and target is BookingStatus.COMPLETED:
        return {"completed_at": at}
    return {}


def transition(
    current: Status,
    requested: str | Status,
    context: TransitionContext | None = None,
) -> TransitionOutcome:
    """Validate a status change and compute the timestamps it sets.

    Parameters
    ----------
    current : BookingStatus or DeploymentStatus
        Status the record is in now. Its type selects the table.
    requested : str or status enum
        Desired status; strings are parsed against the same enum.
    context : TransitionContext or None
        Side data required by some targets.

    Returns
    -------
    TransitionOutcome
        The new status and its timestamps.

    Raises
    ------
    ValidationError
        *requested* is not a known status.
    TerminalStateError
        *current* is completed or cancelled.
    IllegalTransitionError
        The edge is not in the table.
    PreconditionError
        A side-constraint (vehicle, actual cost, end time, reason) is missing.
    """
    table = _table_for(current)
    target = coerce_status(type(current), requested)
    context = context or TransitionContext()

    if not table[current]:
        raise TerminalStateError(current.value, target.value)
    if target not in table[current]:
        raise IllegalTransitionError(current.value, target.value)

    _check_preconditions(target, context)
    return TransitionOutcome(status=target, stamps=_stamps(target, context.at or utcnow()))
