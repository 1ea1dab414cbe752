import logging
import threading
from typing import Callable

from models import CycleState

logger = logging.getLogger(__name__)


class Scheduler:
    """Daemon loop: one cycle, then ``interval`` seconds of rest, repeated.

    The wait starts only after the cycle finished, so two cycles never
    overlap. The loop never gives up on a failed cycle; it only ends once
    ``stop()`` has been called, and a cycle already running is allowed to
    finish first.
    """

    def __init__(
        self,
        cycle: Callable[[], CycleState],
        interval: float,
        log: logging.Logger | None = None,
        stop_event: threading.Event | None = None,
    ):
        self._cycle = cycle
        self._interval = min(interval, threading.TIMEOUT_MAX)
        self._log = log or logger
        self._stop = stop_event or threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def run_once(self) -> CycleState:
        self._log.info("Performing database backup...")
        try:
            state = self._cycle()
        except Exception:
            self._log.exception("Backup cycle crashed")
            state = CycleState.FAILED

        if state is CycleState.DONE:
            self._log.info("Successfully performed database backup...")
        else:
            self._log.warning("Database backup failed, next attempt in %ss", self._interval)
        return state

    def run_forever(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            # Event.wait returns early when stop() is called.
            self._stop.wait(self._interval)
        self._log.info("Backup daemon stopped")
