"""
Refresh scheduling.

Two triggers feed the sync service:

    - a periodic ticker that only fires a full sweep inside business hours
    - "building changed" notifications, debounced per building, that fire a
      targeted single-building sync

Clock, ticker and sleep are injectable so the scheduler can be tested
without real waits.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set, Tuple

from nyc_compliance.config import DEFAULT_SETTINGS, SyncSettings
from nyc_compliance.errors import ComplianceError

logger = logging.getLogger(__name__)


def is_within_business_hours(moment: datetime, hours: Tuple[int, int]) -> bool:
    """True when ``moment``'s local hour is in the inclusive ``hours`` range."""
    start, end = hours
    return start <= moment.hour <= end


class Ticker:
    """Async iterator that yields a tick number every ``interval`` seconds."""

    def __init__(
        self,
        interval: float,
        sleep: Callable = asyncio.sleep,
        immediate: bool = False,
        max_ticks: Optional[int] = None,
    ):
        """
        Args:
            interval: Seconds between ticks
            sleep: Awaitable sleep, injectable for tests
            immediate: Yield the first tick without waiting
            max_ticks: Stop after this many ticks (None runs forever)
        """
        self.interval = interval
        self._sleep = sleep
        self.immediate = immediate
        self.max_ticks = max_ticks
        self.count = 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> int:
        if self.max_ticks is not None and self.count >= self.max_ticks:
            raise StopAsyncIteration
        if self.count > 0 or not self.immediate:
            await self._sleep(self.interval)
        self.count += 1
        return self.count


class ChangeNotificationBus:
    """In-process publish/subscribe channel for building change events."""

    def __init__(self):
        self._subscribers: List[Callable[[str], None]] = []

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, building_id: str) -> None:
        for callback in list(self._subscribers):
            callback(building_id)


class RefreshScheduler:
    """Drives ComplianceSyncService from a ticker and change notifications."""

    def __init__(
        self,
        service,
        settings: SyncSettings = DEFAULT_SETTINGS,
        bus: Optional[ChangeNotificationBus] = None,
        clock: Callable[[], datetime] = datetime.now,
        ticker: Optional[Ticker] = None,
        sleep: Callable = asyncio.sleep,
    ):
        """
        Args:
            service: Object exposing run_full_sweep() and sync_one(building_id)
            settings: Business hours, refresh interval and debounce window
            bus: Change notifications to subscribe to
            clock: Returns local "now"
            ticker: Tick source; defaults to every refresh_interval seconds
            sleep: Awaitable used for the debounce window
        """
        self.service = service
        self.settings = settings
        self.bus = bus
        self.clock = clock
        self.ticker = ticker or Ticker(settings.refresh_interval)
        self._sleep = sleep
        self._pending: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def in_business_hours(self) -> bool:
        return is_within_business_hours(self.clock(), self.settings.business_hours)

    async def on_tick(self) -> bool:
        """
        Handle one periodic tick.

        Returns:
            True if a full sweep ran
        """
        if not self.in_business_hours():
            logger.debug("Skipping scheduled sweep outside business hours")
            return False

        logger.info("Scheduled full sweep starting")
        try:
            await self.service.run_full_sweep()
        except ComplianceError as e:
            logger.error(f"Scheduled sweep failed: {e}")
            return False
        return True

    def notify_building_changed(self, building_id: str) -> None:
        """
        Debounce a change event for one building.

        A new event within the window restarts the timer; only the last one
        triggers a sync. Must be called from a running event loop.
        """
        previous = self._pending.get(building_id)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.get_running_loop().create_task(self._debounced_sync(building_id))
        self._pending[building_id] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _debounced_sync(self, building_id: str) -> None:
        await self._sleep(self.settings.debounce_seconds)
        self._pending.pop(building_id, None)
        logger.info(f"Building {building_id} changed, running targeted sync")
        try:
            await self.service.sync_one(building_id)
        except ComplianceError as e:
            logger.error(f"Targeted sync for {building_id} failed: {e}")

    async def drain(self) -> None:
        """Wait for every pending debounced sync to finish or be cancelled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def start(self) -> None:
        """Subscribe to the change bus."""
        if self.bus is not None and self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self.notify_building_changed)

    def stop(self) -> None:
        """Unsubscribe and cancel debounced syncs that have not started."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()

    async def run(self) -> None:
        """Process ticks until the ticker is exhausted or the task is cancelled."""
        self.start()
        try:
            async for _ in self.ticker:
                await self.on_tick()
        finally:
            self.stop()
            await self.drain()
