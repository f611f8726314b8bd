from __future__ import annotations

import threading
import time
from typing import Callable

from loguru import logger

HEARTBEAT_EVERY_SECONDS = 60.0


class TickScheduler(threading.Thread):
    """
    Calls `tick` on a fixed monotonic cadence.

    Ticks run on this thread, one after another. A tick that overruns
    its slot makes the scheduler skip the missed slots instead of
    firing a burst to catch up.
    """

    def __init__(
        self,
        tick: Callable[[], object],
        interval_seconds: Callable[[], float],
        name: str = "updown-scheduler",
    ):
        super().__init__(name=name, daemon=True)
        self._tick = tick
        self._interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._last_heartbeat = time.monotonic()
        self.ticks_run = 0

    def run(self) -> None:
        next_run = time.monotonic()

        while not self._stop_event.is_set():
            now = time.monotonic()
            if now < next_run:
                self._stop_event.wait(next_run - now)
                continue

            try:
                self._tick()
            except Exception:
                logger.exception("💥 Tick raised past the engine boundary")
            self.ticks_run += 1
            self._heartbeat()

            interval = self._interval_seconds()
            next_run += interval
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // interval) + 1
                logger.warning("Tick overran its slot, skipping {} slot(s)", missed)
                next_run += missed * interval

        logger.info("⏹️ Scheduler loop exited")

    def stop(self) -> None:
        self._stop_event.set()

    def _heartbeat(self) -> None:
        now = time.monotonic()
        if now - self._last_heartbeat >= HEARTBEAT_EVERY_SECONDS:
            logger.info("💓 Loop alive | ticks={}", self.ticks_run)
            self._last_heartbeat = now
