"""
Recurring schedule for Certificate Expiry Monitor.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from cert_expiry_monitor.config import Config
from cert_expiry_monitor.logger import get_logger
from cert_expiry_monitor.monitor import CycleReport, MonitorCycle

SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]


class Scheduler:
    """
    Runs a monitor cycle once per check interval until stopped.

    Cycles fire on a fixed period measured from ``start``, so a slow cycle
    does not push later ticks back. The first cycle fires after one full
    interval; an immediate check is the caller's job. Ticks that pass while
    a cycle is still running are skipped. The configuration snapshot is
    never reloaded.
    """

    def __init__(
        self,
        config: Config,
        cycle: MonitorCycle,
        sleep: SleepFunc = asyncio.sleep,
        clock: ClockFunc = time.monotonic,
    ):
        self.config = config
        self.cycle = cycle
        self.logger = get_logger("scheduler")

        self._sleep = sleep
        self._clock = clock
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.cycles_run = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the recurring schedule."""
        if self._running:
            self.logger.warning("Scheduler is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        self.logger.info(f"Started schedule - Interval: {self.config.check_interval}")

    async def stop(self) -> None:
        """Stop the schedule, cancelling a cycle in progress."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self.logger.info("Scheduler stopped")

    async def run_cycle(self) -> Optional[CycleReport]:
        """Run one cycle; errors are logged and never propagate."""
        self.logger.info(f"Now: {datetime.now(timezone.utc)}")
        try:
            return await self.cycle.run(self.config)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Error in monitor cycle: {e}")
            return None
        finally:
            self.cycles_run += 1

    async def _run_loop(self) -> None:
        """Main schedule loop."""
        interval = self.config.check_interval_seconds
        next_tick = self._clock() + interval

        while self._running:
            try:
                await self._sleep(max(0.0, next_tick - self._clock()))
            except asyncio.CancelledError:
                break

            if not self._running:
                break

            await self.run_cycle()

            next_tick += interval
            now = self._clock()
            if next_tick < now:
                missed = int((now - next_tick) // interval) + 1
                self.logger.warning(f"Cycle overran the interval, skipping {missed} tick(s)")
                next_tick += missed * interval
