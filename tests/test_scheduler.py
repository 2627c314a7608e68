from __future__ import annotations

import asyncio

import pytest

from fleetsync.exceptions import StoreError
from fleetsync.models.sync import ReplayReport
from fleetsync.sync.scheduler import ReplayScheduler


class _Replayer:
    def __init__(self, *errors: Exception) -> None:
        self.calls = 0
        self.ran = asyncio.Event()
        self._errors = list(errors)

    async def __call__(self) -> ReplayReport:
        self.calls += 1
        self.ran.set()
        if self._errors:
            raise self._errors.pop(0)
        return ReplayReport(succeeded=1)


@pytest.mark.asyncio
async def test_trigger_runs_a_pass_immediately() -> None:
    replayer = _Replayer()
    reports: list[ReplayReport] = []
    scheduler = ReplayScheduler(replayer, interval=60.0, on_report=reports.append)
    scheduler.start()
    try:
        scheduler.trigger()
        await asyncio.wait_for(replayer.ran.wait(), timeout=1.0)
        await asyncio.sleep(0)
    finally:
        await scheduler.stop()

    assert replayer.calls == 1
    assert reports == [ReplayReport(succeeded=1)]
    assert not scheduler.is_running


@pytest.mark.asyncio
async def test_timer_fires_without_trigger() -> None:
    replayer = _Replayer()
    scheduler = ReplayScheduler(replayer, interval=0.01)
    scheduler.start()
    try:
        await asyncio.wait_for(replayer.ran.wait(), timeout=1.0)
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [StoreError("disk full"), ValueError("bad store row")])
async def test_loop_survives_a_failed_pass(error: Exception, caplog: pytest.LogCaptureFixture) -> None:
    replayer = _Replayer(error)
    scheduler = ReplayScheduler(replayer, interval=60.0)
    scheduler.start()
    try:
        scheduler.trigger()
        await asyncio.wait_for(replayer.ran.wait(), timeout=1.0)
        replayer.ran.clear()
        await asyncio.sleep(0)
        assert scheduler.is_running

        scheduler.trigger()
        await asyncio.wait_for(replayer.ran.wait(), timeout=1.0)
    finally:
        await scheduler.stop()

    assert replayer.calls == 2
    assert any(record.exc_info for record in caplog.records if record.name == "fleetsync.sync.scheduler")


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_without_start_is_safe() -> None:
    scheduler = ReplayScheduler(_Replayer(), interval=60.0)
    await scheduler.stop()
    scheduler.start()
    scheduler.start()
    assert scheduler.is_running
    await scheduler.stop()
    assert not scheduler.is_running
