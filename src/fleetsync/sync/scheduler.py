"""Background task that replays the sync queue on a timer or on demand."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from fleetsync.exceptions import FleetSyncError
from fleetsync.models.sync import ReplayReport

_logger = logging.getLogger(__name__)


class ReplayScheduler:
    """Runs ``replay`` every ``interval`` seconds and whenever :meth:`trigger` is called.

    Parameters
    ----------
    replay : callable
        Coroutine function performing one replay (usually
        :meth:`fleetsync.sync.queue.SyncQueue.replay`).
    interval : float
        Seconds between timed passes.
    on_report : callable or None
        Called with each :class:`ReplayReport`.
    """

    def __init__(
        self,
        replay: Callable[[], Awaitable[ReplayReport]],
        *,
        interval: float = 30.0,
        on_report: Callable[[ReplayReport], None] | None = None,
    ) -> None:
        self._replay = replay
        self._interval = interval
        self._on_report = on_report
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._wake.clear()
        self._task = asyncio.create_task(self._loop(), name="fleetsync-replay")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def trigger(self) -> None:
        """Connectivity restored: run a pass now instead of waiting for the timer."""
        self._wake.set()

    async def _loop(self) -> None:
        while True:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            self._wake.clear()
            try:
                report = await self._replay()
            except FleetSyncError:
                _logger.exception("Scheduled replay failed")
                continue
            except Exception:
                _logger.exception("Unexpected error in scheduled replay")
                continue
            if self._on_report is not None:
                self._on_report(report)
