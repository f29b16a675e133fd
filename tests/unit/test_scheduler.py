from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from nyc_compliance.config import SyncSettings
from nyc_compliance.errors import BuildingNotFoundError, ConfigError
from nyc_compliance.scheduler import (
    ChangeNotificationBus,
    RefreshScheduler,
    Ticker,
    is_within_business_hours,
)
from tests.fakes import SleepRecorder


class FakeService:
    def __init__(self, sweep_error=None, sync_error=None):
        self.sweeps = 0
        self.synced = []
        self.sweep_error = sweep_error
        self.sync_error = sync_error

    async def run_full_sweep(self):
        if self.sweep_error:
            raise self.sweep_error
        self.sweeps += 1

    async def sync_one(self, building_id):
        if self.sync_error:
            raise self.sync_error
        self.synced.append(building_id)


class GateSleep:
    """Sleep that blocks until released, so debounce windows can be held open."""

    def __init__(self):
        self.calls = []
        self.event = None

    async def __call__(self, seconds):
        self.calls.append(seconds)
        if self.event is None:
            self.event = asyncio.Event()
        await self.event.wait()

    def release(self):
        if self.event is None:
            self.event = asyncio.Event()
        self.event.set()


def at_hour(hour: int):
    return lambda: datetime(2024, 5, 1, hour, 30)


@pytest.mark.parametrize(
    "hour, expected",
    [(8, False), (9, True), (13, True), (18, True), (19, False)],
)
def test_business_hours_are_inclusive(hour, expected):
    assert is_within_business_hours(datetime(2024, 5, 1, hour, 59), (9, 18)) is expected


def test_scheduler_reads_business_hours_from_its_clock():
    early = RefreshScheduler(FakeService(), SyncSettings(business_hours=(7, 8)), clock=at_hour(7))
    late = RefreshScheduler(FakeService(), SyncSettings(business_hours=(7, 8)), clock=at_hour(9))

    assert early.in_business_hours() is True
    assert late.in_business_hours() is False


def test_tick_outside_business_hours_skips_sweep():
    service = FakeService()
    scheduler = RefreshScheduler(service, SyncSettings(), clock=at_hour(22))

    ran = asyncio.run(scheduler.on_tick())

    assert ran is False
    assert service.sweeps == 0


def test_tick_inside_business_hours_runs_sweep():
    service = FakeService()
    scheduler = RefreshScheduler(service, SyncSettings(), clock=at_hour(10))

    assert asyncio.run(scheduler.on_tick()) is True
    assert service.sweeps == 1


def test_failed_sweep_is_logged_not_raised():
    service = FakeService(sweep_error=ConfigError("directory unavailable"))
    scheduler = RefreshScheduler(service, SyncSettings(), clock=at_hour(10))

    assert asyncio.run(scheduler.on_tick()) is False


def test_ticker_waits_between_ticks():
    sleep = SleepRecorder()

    async def collect():
        return [tick async for tick in Ticker(60, sleep=sleep, max_ticks=3)]

    assert asyncio.run(collect()) == [1, 2, 3]
    assert sleep.calls == [60, 60, 60]


def test_run_processes_ticks_until_exhausted():
    service = FakeService()
    sleep = SleepRecorder()
    ticker = Ticker(14400, sleep=sleep, immediate=True, max_ticks=2)
    scheduler = RefreshScheduler(service, SyncSettings(), clock=at_hour(11), ticker=ticker)

    asyncio.run(scheduler.run())

    assert service.sweeps == 2
    assert sleep.calls == [14400]


def test_change_notifications_are_debounced_per_building():
    service = FakeService()
    gate = GateSleep()
    scheduler = RefreshScheduler(service, SyncSettings(debounce_seconds=2.0), sleep=gate)

    async def run():
        scheduler.notify_building_changed("A")
        await asyncio.sleep(0)
        scheduler.notify_building_changed("A")
        scheduler.notify_building_changed("B")
        await asyncio.sleep(0)
        gate.release()
        await scheduler.drain()

    asyncio.run(run())

    assert sorted(service.synced) == ["A", "B"]
    assert gate.calls == [2.0, 2.0, 2.0]


def test_bus_publish_triggers_targeted_sync():
    service = FakeService()
    bus = ChangeNotificationBus()
    scheduler = RefreshScheduler(service, SyncSettings(), bus=bus, sleep=SleepRecorder())

    async def run():
        scheduler.start()
        bus.publish("7")
        await scheduler.drain()
        scheduler.stop()
        bus.publish("8")
        await scheduler.drain()

    asyncio.run(run())

    assert service.synced == ["7"]


def test_stop_cancels_pending_syncs():
    service = FakeService()
    gate = GateSleep()
    scheduler = RefreshScheduler(service, SyncSettings(), sleep=gate)

    async def run():
        scheduler.notify_building_changed("A")
        await asyncio.sleep(0)
        scheduler.stop()
        await scheduler.drain()

    asyncio.run(run())

    assert service.synced == []


def test_targeted_sync_errors_are_logged():
    service = FakeService(sync_error=BuildingNotFoundError("missing"))
    scheduler = RefreshScheduler(service, SyncSettings(), sleep=SleepRecorder())

    async def run():
        scheduler.notify_building_changed("missing")
        await scheduler.drain()

    asyncio.run(run())

    assert service.synced == []


def test_unsubscribe_removes_callback():
    bus = ChangeNotificationBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)

    bus.publish("1")
    unsubscribe()
    bus.publish("2")

    assert seen == ["1"]
