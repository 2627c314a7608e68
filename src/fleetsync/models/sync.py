"""Sync queue item, dead-letter and replay report models."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import Field

from fleetsync.models._base import FleetBaseModel, FleetEnum, UtcDatetime


class EntityKind(FleetEnum):
    BOOKING = "booking"
    DEPLOYMENT = "deployment"


class SyncOperation(FleetEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationScope(FleetEnum):
    """Which endpoint an update targets."""

    RECORD = "record"
    TRACKING = "tracking"


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def epoch_ms(at: datetime) -> int:
    """Whole milliseconds since the Unix epoch, without float rounding."""
    return (at - _EPOCH) // timedelta(milliseconds=1)


def build_idempotency_key(entity_id: str, operation: SyncOperation, enqueued_at: datetime) -> str:
    """Entity id + operation + enqueue time (epoch milliseconds)."""
    return f"{entity_id}:{operation.value}:{epoch_ms(enqueued_at)}"


class SyncQueueItem(FleetBaseModel):
    """A mutation waiting to be delivered to the remote authority."""

    id: str = Field(default_factory=lambda: secrets.token_hex(8))
    entity_kind: EntityKind
    operation: SyncOperation
    scope: MutationScope = MutationScope.RECORD
    entity_id: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    enqueued_at: UtcDatetime
    idempotency_key: str = ""
    retry_count: int = Field(default=0, ge=0)
    next_attempt_at: UtcDatetime | None = None
    last_error: str | None = None

    def model_post_init(self, __context: Any) -> None:
        if not self.idempotency_key:
            self.idempotency_key = build_idempotency_key(self.entity_id, self.operation, self.enqueued_at)

    @property
    def entity_key(self) -> tuple[EntityKind, str]:
        return (self.entity_kind, self.entity_id)

    def is_due(self, now: datetime) -> bool:
        return self.next_attempt_at is None or self.next_attempt_at <= now


class DeadLetter(FleetBaseModel):
    """A queued item that will not be retried without operator action."""

    item: SyncQueueItem
    reason: str
    dead_lettered_at: UtcDatetime


class ReplayReport(FleetBaseModel):
    """Outcome counts of one or more replay passes."""

    succeeded: int = 0
    failed: int = 0
    dead_lettered: int = 0
    remaining: int = 0

    def merged(self, other: ReplayReport) -> ReplayReport:
        return ReplayReport(
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
            dead_lettered=self.dead_lettered + other.dead_lettered,
            remaining=other.remaining,
        )
