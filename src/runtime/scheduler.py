"""Thread-backed repeating timers used for countdown ticks and sound fades."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional


class ThreadScheduledHandle:
    """Cancels one repeating timer; safe to call from the timer thread itself."""

    def __init__(self, stop_event: threading.Event):
        self._stop_event = stop_event

    def cancel(self) -> None:
        self._stop_event.set()


class ThreadScheduler:
    """Runs each repeating callback in its own daemon thread."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("runtime.scheduler")

    def call_every(
        self,
        interval_seconds: float,
        callback: Callable[[], None],
    ) -> ThreadScheduledHandle:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        stop_event = threading.Event()

        def run() -> None:
            while not stop_event.wait(interval_seconds):
                try:
                    callback()
                except Exception as error:
                    self._logger.error(
                        "Scheduled callback failed: %s",
                        error,
                        exc_info=True,
                    )

        thread = threading.Thread(target=run, name="scheduler-timer", daemon=True)
        handle = ThreadScheduledHandle(stop_event)
        thread.start()
        return handle
