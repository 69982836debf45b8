"""Drift-corrected countdown driven by a repeating scheduler callback."""

from __future__ import annotations

import functools
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from contracts.collaborators import ScheduledHandle, SchedulerLike

from .constants import (
    DEFAULT_TICK_INTERVAL_SECONDS,
    REASON_ALREADY_RUNNING,
    REASON_EXPIRED,
    REASON_NOT_RUNNING,
    REASON_PAUSED,
    REASON_RESET,
    REASON_STARTED,
)


def display_seconds(milliseconds: float) -> int:
    """Round milliseconds to whole seconds, halves rounding up."""
    return int(math.floor(max(0.0, milliseconds) / 1000.0 + 0.5))


@dataclass(frozen=True)
class CountdownSnapshot:
    """Immutable countdown state exposed to the state machine and UI."""
    duration_ms: int
    remaining_ms: float
    is_running: bool
    completed: bool = False
    run_id: int = 0

    @property
    def display_seconds(self) -> int:
        return display_seconds(self.remaining_ms)


@dataclass(frozen=True)
class CountdownResult:
    """Result envelope returned by countdown operations."""
    accepted: bool
    reason: str
    snapshot: CountdownSnapshot


class CountdownTimer:
    """Countdown core that subtracts real elapsed time on every tick.

    Each tick measures the monotonic delta since the previous tick, so a
    throttled or late callback reconciles the full elapsed time instead of
    counting fixed intervals. The completion callback fires once per
    start-to-zero run and is invoked outside the internal lock.
    """

    def __init__(
        self,
        *,
        duration_ms: int,
        scheduler: SchedulerLike,
        on_complete: Optional[Callable[[CountdownSnapshot], None]] = None,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        monotonic_fn: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be greater than zero")

        self._scheduler = scheduler
        self._on_complete = on_complete
        self._tick_interval_seconds = float(tick_interval_seconds)
        self._monotonic = monotonic_fn or time.monotonic
        self._logger = logger or logging.getLogger("countdown")
        self._lock = threading.Lock()

        self._duration_ms = max(0, int(duration_ms))
        self._remaining_ms: float = float(self._duration_ms)
        self._running = False
        self._completed = False
        self._last_tick_at: float = 0.0
        self._run_token = 0
        self._handle: Optional[ScheduledHandle] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def snapshot(self) -> CountdownSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def start(self) -> CountdownResult:
        with self._lock:
            if self._running:
                return CountdownResult(False, REASON_ALREADY_RUNNING, self._snapshot_locked())
            if self._remaining_ms <= 0:
                return CountdownResult(False, REASON_EXPIRED, self._snapshot_locked())

            self._running = True
            self._run_token += 1
            self._last_tick_at = self._monotonic()
            self._handle = self._scheduler.call_every(
                self._tick_interval_seconds,
                functools.partial(self._tick_run, self._run_token),
            )
            self._logger.debug(
                "Countdown started: remaining=%.0fms duration=%sms",
                self._remaining_ms,
                self._duration_ms,
            )
            return CountdownResult(True, REASON_STARTED, self._snapshot_locked())

    def pause(self) -> CountdownResult:
        with self._lock:
            if not self._running:
                return CountdownResult(False, REASON_NOT_RUNNING, self._snapshot_locked())

            self._running = False
            self._cancel_handle_locked()
            self._logger.debug("Countdown paused: remaining=%.0fms", self._remaining_ms)
            return CountdownResult(True, REASON_PAUSED, self._snapshot_locked())

    def reset(self, duration_ms: int) -> CountdownResult:
        with self._lock:
            self._running = False
            self._cancel_handle_locked()
            self._duration_ms = max(0, int(duration_ms))
            self._remaining_ms = float(self._duration_ms)
            self._completed = False
            self._logger.debug("Countdown reset: duration=%sms", self._duration_ms)
            return CountdownResult(True, REASON_RESET, self._snapshot_locked())

    def tick(self) -> None:
        """Process one tick of the current run immediately."""
        with self._lock:
            token = self._run_token
        self._tick_run(token)

    def _tick_run(self, token: int) -> None:
        with self._lock:
            # Ticks from a cancelled run may still be delivered once.
            if not self._running or token != self._run_token:
                return

            now = self._monotonic()
            elapsed_ms = max(0.0, (now - self._last_tick_at) * 1000.0)
            self._last_tick_at = now
            self._remaining_ms = max(0.0, self._remaining_ms - elapsed_ms)
            if self._remaining_ms > 0:
                return

            self._running = False
            self._completed = True
            self._cancel_handle_locked()
            snapshot = self._snapshot_locked()

        self._logger.info("Countdown completed: duration=%sms", snapshot.duration_ms)
        if self._on_complete is not None:
            self._on_complete(snapshot)

    def _cancel_handle_locked(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

    def _snapshot_locked(self) -> CountdownSnapshot:
        return CountdownSnapshot(
            duration_ms=self._duration_ms,
            remaining_ms=self._remaining_ms,
            is_running=self._running,
            completed=self._completed,
            run_id=self._run_token,
        )
