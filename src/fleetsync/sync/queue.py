"""Durable sync queue: persist failed remote writes and replay them.

Guarantees
----------
* Only one replay pass runs at a time. Calling :meth:`SyncQueue.replay`
  while a pass is active schedules one follow-up pass and awaits the
  same run instead of starting a second one.
* Items of one entity are delivered in enqueue order. A head item that
  is backing off or failed in the current pass blocks the items behind
  it. Different entities replay concurrently.
* Every item carries an idempotency key that the dispatcher sends with
  each attempt, so a redelivered mutation is a no-op remotely.
* Transient failures back off exponentially; after ``max_attempts`` the
  item is dead-lettered. Permanent rejections dead-letter at once.
  Dead letters are never dropped silently: they are logged at ERROR,
  handed to ``on_dead_letter`` and kept until an operator requeues or
  discards them.
* A terminal mutation drops the queued updates it makes obsolete, even
  when a running pass has already listed them. Only an update already
  in flight is still delivered.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from fleetsync.config import RetryPolicy
from fleetsync.exceptions import (
    ConflictError,
    DeadLetterError,
    RemoteApiError,
    TransientNetworkError,
    TransitionError,
    ValidationError,
)
from fleetsync.lifecycle.state_machine import BOOKING_TRANSITIONS, DEPLOYMENT_TRANSITIONS, is_terminal
from fleetsync.models._base import utcnow
from fleetsync.models.status import BookingStatus, DeploymentStatus
from fleetsync.models.sync import (
    DeadLetter,
    EntityKind,
    MutationScope,
    ReplayReport,
    SyncOperation,
    SyncQueueItem,
    epoch_ms,
)
from fleetsync.sync.backoff import next_attempt_at
from fleetsync.sync.store import SyncStore

_logger = logging.getLogger(__name__)

Dispatcher = Callable[[SyncQueueItem], Awaitable[Mapping[str, Any] | None]]
"""Delivers one item to the remote authority and returns the server record (if any)."""

SuccessListener = Callable[[SyncQueueItem, Mapping[str, Any] | None], Awaitable[None]]
DeadLetterCallback = Callable[[DeadLetterError], Awaitable[None] | None]

_PERMANENT_ERRORS = (RemoteApiError, ValidationError, ConflictError, TransitionError)

_TERMINAL_VALUES: dict[EntityKind, frozenset[str]] = {
    EntityKind.BOOKING: frozenset(s.value for s in BOOKING_TRANSITIONS if is_terminal(s)),
    EntityKind.DEPLOYMENT: frozenset(s.value for s in DEPLOYMENT_TRANSITIONS if is_terminal(s)),
}
_CANCELLED_VALUES: dict[EntityKind, str] = {
    EntityKind.BOOKING: BookingStatus.CANCELLED.value,
    EntityKind.DEPLOYMENT: DeploymentStatus.CANCELLED.value,
}

_ID_KEYS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.BOOKING: ("bookingId", "id", "_id"),
    EntityKind.DEPLOYMENT: ("deploymentId", "id", "_id"),
}


class _Outcome(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"


def server_id_from(kind: EntityKind, record: Mapping[str, Any] | None) -> str | None:
    """Identifier the remote authority assigned, read from a response record."""
    if not record:
        return None
    for key in _ID_KEYS[kind]:
        value = record.get(key)
        if value:
            return str(value)
    return None


def _is_cancellation(item: SyncQueueItem) -> bool:
    return item.operation == SyncOperation.DELETE or item.payload.get("status") == _CANCELLED_VALUES[item.entity_kind]


def _is_terminal(item: SyncQueueItem) -> bool:
    return _is_cancellation(item) or item.payload.get("status") in _TERMINAL_VALUES[item.entity_kind]


class SyncQueue:
    """Persisted queue of pending remote mutations.

    Parameters
    ----------
    store : SyncStore
        Where items and dead letters are persisted. Must be open.
    dispatcher : Dispatcher
        Coroutine delivering one item to the remote authority.
    policy : RetryPolicy or None
        Backoff and dead-letter ceiling.
    concurrency : int
        Maximum number of entities replayed in parallel.
    attempt_timeout : float
        Seconds allowed per remote attempt; a timeout counts as a
        transient failure.
    clock : callable
        Returns the current aware UTC time.
    rng : random.Random or None
        Jitter source.
    on_dead_letter : callable or None
        Called (sync or async) with a :class:`DeadLetterError` whenever
        an item is dead-lettered.
    """

    def __init__(
        self,
        store: SyncStore,
        dispatcher: Dispatcher,
        *,
        policy: RetryPolicy | None = None,
        concurrency: int = 4,
        attempt_timeout: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
        on_dead_letter: DeadLetterCallback | None = None,
    ) -> None:
        self._store = store
        self._dispatch = dispatcher
        self._policy = policy or RetryPolicy()
        self._concurrency = concurrency
        self._attempt_timeout = attempt_timeout
        self._clock = clock
        self._rng = rng or random.Random()
        self._on_dead_letter = on_dead_letter
        self._success_listeners: list[SuccessListener] = []
        self._entity_locks: dict[tuple[EntityKind, str], asyncio.Lock] = {}
        self._in_flight: set[str] = set()
        self._superseded: set[str] = set()
        self._active: asyncio.Task[ReplayReport] | None = None
        self._rerun = False
        self._last_enqueued_at: datetime | None = None

    def add_success_listener(self, listener: SuccessListener) -> None:
        """Register a coroutine called after an item was confirmed remotely."""
        self._success_listeners.append(listener)

    @property
    def is_replaying(self) -> bool:
        return self._active is not None and not self._active.done()

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def next_enqueue_time(self) -> datetime:
        """Strictly increasing instant, at least one millisecond after the previous one.

        Idempotency keys embed this instant, so two mutations never share
        a key even when the clock has not moved between them.
        """
        now = self._clock()
        last = self._last_enqueued_at
        if last is not None and epoch_ms(now) <= epoch_ms(last):
            now = last + timedelta(milliseconds=1)
        self._last_enqueued_at = now
        return now

    async def enqueue(
        self,
        kind: EntityKind,
        operation: SyncOperation,
        entity_id: str,
        payload: Mapping[str, Any],
        *,
        scope: MutationScope = MutationScope.RECORD,
        idempotency_key: str | None = None,
        enqueued_at: datetime | None = None,
    ) -> str:
        """Persist a mutation for later delivery and return the queue item id.

        Pass the *idempotency_key* and *enqueued_at* of a failed direct
        attempt (see :meth:`next_enqueue_time`) so that a write which
        reached the server before the failure is not applied twice.
        """
        resolved = await self._store.resolve_id(kind, entity_id)
        item = SyncQueueItem(
            entity_kind=kind,
            operation=operation,
            scope=scope,
            entity_id=resolved,
            payload=dict(payload),
            enqueued_at=enqueued_at or self.next_enqueue_time(),
            idempotency_key=idempotency_key or "",
        )
        if _is_terminal(item):
            await self._supersede(item)
        await self._store.put_item(item)
        _logger.info(
            "Queued %s %s %s (item=%s key=%s)",
            operation.value,
            kind.value,
            resolved,
            item.id,
            item.idempotency_key,
        )
        return item.id

    async def _supersede(self, terminal: SyncQueueItem) -> None:
        """Drop queued updates a terminal mutation makes obsolete.

        Tracking updates go whenever the entity reaches a terminal status.
        Record updates go only on cancellation; intermediate status steps
        are still needed to reach ``completed``. The create is always kept.
        """
        cancellation = _is_cancellation(terminal)
        dropped = 0
        for item in await self._store.list_items():
            if item.entity_key != terminal.entity_key or item.id in self._in_flight:
                continue
            if item.operation != SyncOperation.UPDATE:
                continue
            if item.scope == MutationScope.TRACKING or cancellation:
                await self._store.remove_item(item.id)
                self._superseded.add(item.id)
                dropped += 1
        if dropped:
            _logger.info(
                "Superseded %d queued update(s) for %s %s",
                dropped,
                terminal.entity_kind.value,
                terminal.entity_id,
            )

    # ------------------------------------------------------------------
    # Inspection and ops
    # ------------------------------------------------------------------

    async def pending_items(self) -> list[SyncQueueItem]:
        items = await self._store.list_items()
        return sorted(items, key=lambda item: item.enqueued_at)

    async def pending_count(self, kind: EntityKind | None = None, entity_id: str | None = None) -> int:
        items = await self._store.list_items()
        return sum(
            1
            for item in items
            if (kind is None or item.entity_kind == kind) and (entity_id is None or item.entity_id == entity_id)
        )

    async def dead_letters(self) -> list[DeadLetter]:
        return await self._store.list_dead_letters()

    async def requeue_dead_letter(self, item_id: str) -> SyncQueueItem:
        """Move a dead letter back into the queue with its retry count reset."""
        letter = await self._store.remove_dead_letter(item_id)
        if letter is None:
            raise KeyError(item_id)
        item = letter.item.model_copy(update={"retry_count": 0, "next_attempt_at": None, "last_error": None})
        item.entity_id = await self._store.resolve_id(item.entity_kind, item.entity_id)
        await self._store.put_item(item)
        _logger.info("Requeued dead letter %s (%s %s)", item.id, item.operation.value, item.entity_id)
        return item

    async def discard_dead_letter(self, item_id: str) -> bool:
        letter = await self._store.remove_dead_letter(item_id)
        if letter is not None:
            _logger.warning("Discarded dead letter %s: %s", item_id, letter.reason)
        return letter is not None

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def replay(self) -> ReplayReport:
        """Deliver every due item; concurrent callers share one run."""
        if self._active is not None and not self._active.done():
            self._rerun = True
            return await asyncio.shield(self._active)
        self._active = asyncio.create_task(self._run())
        return await asyncio.shield(self._active)

    async def _run(self) -> ReplayReport:
        report = ReplayReport()
        while True:
            self._rerun = False
            report = report.merged(await self._pass())
            if not self._rerun:
                break
        _logger.debug(
            "Replay finished: succeeded=%d failed=%d dead_lettered=%d remaining=%d",
            report.succeeded,
            report.failed,
            report.dead_lettered,
            report.remaining,
        )
        return report

    async def _pass(self) -> ReplayReport:
        self._superseded.clear()
        groups: dict[tuple[EntityKind, str], list[SyncQueueItem]] = {}
        for item in await self.pending_items():
            groups.setdefault(item.entity_key, []).append(item)

        semaphore = asyncio.Semaphore(self._concurrency)
        counts = await asyncio.gather(*(self._drain_entity(key, items, semaphore) for key, items in groups.items()))

        return ReplayReport(
            succeeded=sum(c[_Outcome.SUCCEEDED] for c in counts),
            failed=sum(c[_Outcome.FAILED] for c in counts),
            dead_lettered=sum(c[_Outcome.DEAD_LETTERED] for c in counts),
            remaining=len(await self._store.list_items()),
        )

    async def _drain_entity(
        self,
        key: tuple[EntityKind, str],
        items: list[SyncQueueItem],
        semaphore: asyncio.Semaphore,
    ) -> dict[_Outcome, int]:
        counts = dict.fromkeys(_Outcome, 0)
        async with semaphore:
            lock = self._entity_locks.setdefault(key, asyncio.Lock())
            async with lock:
                for index, item in enumerate(items):
                    # Dropped by a terminal mutation enqueued during this pass.
                    if item.id in self._superseded:
                        continue
                    if not item.is_due(self._clock()):
                        break
                    outcome = await self._attempt(item, items[index + 1 :])
                    counts[outcome] += 1
                    if outcome is _Outcome.FAILED:
                        break
                    if outcome is _Outcome.DEAD_LETTERED and item.operation == SyncOperation.CREATE:
                        for orphan in items[index + 1 :]:
                            if orphan.id in self._superseded:
                                continue
                            await self._dead_letter(orphan, f"create {item.id} for this entity was dead-lettered")
                            counts[_Outcome.DEAD_LETTERED] += 1
                        break
        return counts

    async def _attempt(self, item: SyncQueueItem, followers: list[SyncQueueItem]) -> _Outcome:
        self._in_flight.add(item.id)
        try:
            response = await asyncio.wait_for(self._dispatch(item), timeout=self._attempt_timeout)
        except TimeoutError:
            return await self._record_failure(
                item, TransientNetworkError(f"Attempt timed out after {self._attempt_timeout}s")
            )
        except TransientNetworkError as exc:
            return await self._record_failure(item, exc)
        except _PERMANENT_ERRORS as exc:
            await self._dead_letter(item, f"rejected by remote: {exc}")
            return _Outcome.DEAD_LETTERED
        finally:
            self._in_flight.discard(item.id)

        await self._store.remove_item(item.id)
        if item.operation == SyncOperation.CREATE:
            await self._rekey(item, server_id_from(item.entity_kind, response), followers)
        _logger.debug("Delivered %s %s %s", item.operation.value, item.entity_kind.value, item.entity_id)
        for listener in self._success_listeners:
            await listener(item, response)
        return _Outcome.SUCCEEDED

    async def _rekey(self, created: SyncQueueItem, server_id: str | None, followers: list[SyncQueueItem]) -> None:
        if not server_id or server_id == created.entity_id:
            return
        await self._store.set_alias(created.entity_kind, created.entity_id, server_id)
        for item in await self._store.list_items():
            if item.entity_key == created.entity_key:
                item.entity_id = server_id
                await self._store.put_item(item)
        for item in followers:
            item.entity_id = server_id
        _logger.info(
            "%s %s now known remotely as %s",
            created.entity_kind.value.capitalize(),
            created.entity_id,
            server_id,
        )

    async def _record_failure(self, item: SyncQueueItem, exc: Exception) -> _Outcome:
        if item.id in self._superseded:
            return _Outcome.FAILED
        item.retry_count += 1
        item.last_error = str(exc)
        if item.retry_count >= self._policy.max_attempts:
            await self._dead_letter(item, f"gave up after {item.retry_count} attempts: {exc}")
            return _Outcome.DEAD_LETTERED
        item.next_attempt_at = next_attempt_at(self._clock(), item.retry_count, self._policy, self._rng)
        await self._store.put_item(item)
        _logger.warning(
            "Attempt %d/%d for %s %s %s failed: %s (next attempt at %s)",
            item.retry_count,
            self._policy.max_attempts,
            item.operation.value,
            item.entity_kind.value,
            item.entity_id,
            exc,
            item.next_attempt_at.isoformat(),
        )
        return _Outcome.FAILED

    async def _dead_letter(self, item: SyncQueueItem, reason: str) -> None:
        if item.id in self._superseded:
            return
        await self._store.put_dead_letter(DeadLetter(item=item, reason=reason, dead_lettered_at=self._clock()))
        error = DeadLetterError(item, reason)
        _logger.error("%s", error)
        if self._on_dead_letter is not None:
            result = self._on_dead_letter(error)
            if inspect.isawaitable(result):
                await result
