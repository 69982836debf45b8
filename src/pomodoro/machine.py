"""Focus / break mode state machine with auto-advance and confirmation gating."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from contracts.collaborators import SchedulerLike

from .constants import (
    ACTION_CANCEL,
    ACTION_CONFIRM,
    ACTION_PAUSE,
    ACTION_RESET,
    ACTION_START,
    ACTION_SWITCH_MODE,
    ACTION_TOGGLE,
    DEFAULT_TICK_INTERVAL_SECONDS,
    EVENT_AUTO_ADVANCED,
    EVENT_COMPLETED,
    EVENT_MODE_CHANGED,
    EVENT_PAUSED,
    EVENT_RESET,
    EVENT_STARTED,
    MODE_FOCUS,
    MODE_LONG_BREAK,
    MODE_SHORT_BREAK,
    MODES,
    REASON_ALREADY_ACTIVE,
    REASON_CANCELLED,
    REASON_CONFIRMATION_REQUIRED,
    REASON_CONFIRMED,
    REASON_MODE_CHANGED,
    REASON_NOTHING_PENDING,
    REASON_RESET,
    REASON_UNKNOWN_MODE,
    REASON_UNSUPPORTED_ACTION,
)
from .countdown import CountdownSnapshot, CountdownTimer, display_seconds
from .settings import FocusAutomationSettings, SessionSettingsStore, TimerSettings

if TYPE_CHECKING:
    from ledger import HistoryLedger, SessionRecord, TaskLedger


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the machine for front ends and listeners."""
    mode: str
    duration_ms: int
    remaining_ms: float
    is_running: bool
    completed: bool
    pending_mode: Optional[str]
    pending_reset: bool
    active_task_title: Optional[str]
    focus_count: int

    @property
    def display_seconds(self) -> int:
        return display_seconds(self.remaining_ms)

    @property
    def awaiting_confirmation(self) -> bool:
        return self.pending_mode is not None or self.pending_reset


@dataclass(frozen=True)
class SessionActionResult:
    """Result envelope returned after applying a state-machine action."""
    action: str
    accepted: bool
    reason: str
    snapshot: SessionSnapshot


@dataclass(frozen=True)
class SessionEvent:
    """Notification delivered to subscribed listeners."""
    kind: str
    snapshot: SessionSnapshot
    record: Optional["SessionRecord"] = None


SessionListener = Callable[[SessionEvent], None]


class SessionMachine:
    """Owns the current mode and drives the countdown core.

    Switching or resetting while the countdown runs only records a pending
    request; `confirm()` applies it and `cancel()` discards it. Natural
    completions record history, credit the active task, and may auto-advance
    into a break that starts immediately.
    """

    def __init__(
        self,
        *,
        settings: SessionSettingsStore,
        history: "HistoryLedger",
        tasks: "TaskLedger",
        scheduler: SchedulerLike,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        monotonic_fn: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
        initial_mode: str = MODE_FOCUS,
    ):
        if initial_mode not in MODES:
            raise ValueError(f"Unknown timer mode: {initial_mode!r}")

        self._settings = settings
        self._history = history
        self._tasks = tasks
        self._logger = logger or logging.getLogger("pomodoro")
        self._lock = threading.RLock()
        self._listeners: list[SessionListener] = []

        self._mode = initial_mode
        self._pending_mode: Optional[str] = None
        self._pending_reset = False
        self._settled_run_id = 0
        self._countdown = CountdownTimer(
            duration_ms=settings.timer.duration_ms(initial_mode),
            scheduler=scheduler,
            on_complete=self._handle_completion,
            tick_interval_seconds=tick_interval_seconds,
            monotonic_fn=monotonic_fn,
            logger=logging.getLogger("countdown"),
        )

    @property
    def countdown(self) -> CountdownTimer:
        return self._countdown

    @property
    def timer_settings(self) -> TimerSettings:
        return self._settings.timer

    @property
    def automation_settings(self) -> FocusAutomationSettings:
        return self._settings.automation

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register `listener`; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def apply(self, action: str, *, mode: Optional[str] = None) -> SessionActionResult:
        if action == ACTION_START:
            return self.start()
        if action == ACTION_PAUSE:
            return self.pause()
        if action == ACTION_TOGGLE:
            return self.toggle()
        if action == ACTION_RESET:
            return self.reset()
        if action == ACTION_SWITCH_MODE:
            return self.switch_mode(mode or "")
        if action == ACTION_CONFIRM:
            return self.confirm()
        if action == ACTION_CANCEL:
            return self.cancel()
        return self._result(action, False, REASON_UNSUPPORTED_ACTION)

    def start(self) -> SessionActionResult:
        with self._lock:
            events = self._settle_completion_locked()
            if self._countdown.snapshot().remaining_ms <= 0:
                # An expired countdown restarts from the configured duration.
                self._countdown.reset(self._settings.timer.duration_ms(self._mode))
            outcome = self._countdown.start()
            if outcome.accepted:
                self._logger.info("Session started: mode=%s", self._mode)
                events.append(self._event_locked(EVENT_STARTED))
            result = self._result_locked(ACTION_START, outcome.accepted, outcome.reason)
        self._emit(events)
        return result

    def pause(self) -> SessionActionResult:
        with self._lock:
            events = self._settle_completion_locked()
            outcome = self._countdown.pause()
            if outcome.accepted:
                # Confirmation requests only apply to the run they interrupted.
                self._clear_pending_locked()
                self._logger.info(
                    "Session paused: mode=%s remaining=%ss",
                    self._mode,
                    outcome.snapshot.display_seconds,
                )
                events.append(self._event_locked(EVENT_PAUSED))
            result = self._result_locked(ACTION_PAUSE, outcome.accepted, outcome.reason)
        self._emit(events)
        return result

    def toggle(self) -> SessionActionResult:
        with self._lock:
            running = self._countdown.is_running
        return self.pause() if running else self.start()

    def reset(self) -> SessionActionResult:
        with self._lock:
            events = self._settle_completion_locked()
            if self._countdown.is_running:
                self._pending_mode = None
                self._pending_reset = True
                self._logger.info("Reset requested while running; awaiting confirmation")
                result = self._result_locked(ACTION_RESET, False, REASON_CONFIRMATION_REQUIRED)
            else:
                self._clear_pending_locked()
                self._countdown.reset(self._settings.timer.duration_ms(self._mode))
                events.append(self._event_locked(EVENT_RESET))
                result = self._result_locked(ACTION_RESET, True, REASON_RESET)
        self._emit(events)
        return result

    def switch_mode(self, mode: str) -> SessionActionResult:
        if mode not in MODES:
            return self._result(ACTION_SWITCH_MODE, False, REASON_UNKNOWN_MODE)

        with self._lock:
            events = self._settle_completion_locked()
            if self._countdown.is_running:
                if mode == self._mode:
                    result = self._result_locked(ACTION_SWITCH_MODE, False, REASON_ALREADY_ACTIVE)
                else:
                    self._pending_mode = mode
                    self._pending_reset = False
                    self._logger.info(
                        "Switch to %s requested while running; awaiting confirmation",
                        mode,
                    )
                    result = self._result_locked(
                        ACTION_SWITCH_MODE,
                        False,
                        REASON_CONFIRMATION_REQUIRED,
                    )
            else:
                self._clear_pending_locked()
                self._enter_mode_locked(mode)
                events.append(self._event_locked(EVENT_MODE_CHANGED))
                result = self._result_locked(ACTION_SWITCH_MODE, True, REASON_MODE_CHANGED)
        self._emit(events)
        return result

    def confirm(self) -> SessionActionResult:
        with self._lock:
            events = self._settle_completion_locked()
            pending_mode = self._pending_mode
            pending_reset = self._pending_reset
            if pending_mode is None and not pending_reset:
                result = self._result_locked(ACTION_CONFIRM, False, REASON_NOTHING_PENDING)
            else:
                self._clear_pending_locked()
                self._countdown.pause()
                if pending_mode is not None:
                    self._enter_mode_locked(pending_mode)
                    events.append(self._event_locked(EVENT_MODE_CHANGED))
                else:
                    self._countdown.reset(self._settings.timer.duration_ms(self._mode))
                    self._logger.info("Session reset after confirmation: mode=%s", self._mode)
                    events.append(self._event_locked(EVENT_RESET))
                result = self._result_locked(ACTION_CONFIRM, True, REASON_CONFIRMED)
        self._emit(events)
        return result

    def cancel(self) -> SessionActionResult:
        with self._lock:
            if self._pending_mode is None and not self._pending_reset:
                return self._result_locked(ACTION_CANCEL, False, REASON_NOTHING_PENDING)
            self._clear_pending_locked()
            return self._result_locked(ACTION_CANCEL, True, REASON_CANCELLED)

    def update_duration(self, mode: str, minutes: int) -> TimerSettings:
        """Persist `minutes` for `mode`; re-baseline now only if it is idle and shown.

        Unknown modes are logged and leave the settings unchanged.
        """
        if mode not in MODES:
            self._logger.warning("Ignoring duration update for unknown mode %r", mode)
            return self._settings.timer

        with self._lock:
            events = self._settle_completion_locked()
            updated = self._settings.update_duration(mode, minutes)
            if mode == self._mode:
                self._rebaseline_locked(updated, events)
        self._emit(events)
        return updated

    def reset_durations(self) -> TimerSettings:
        """Restore the default minutes for every mode."""
        with self._lock:
            events = self._settle_completion_locked()
            updated = self._settings.reset_to_defaults()
            self._rebaseline_locked(updated, events)
        self._emit(events)
        return updated

    def update_automation(
        self,
        *,
        auto_short_break: Optional[bool] = None,
        auto_long_break: Optional[bool] = None,
        long_break_every: Optional[int] = None,
    ) -> FocusAutomationSettings:
        return self._settings.update_automation(
            auto_short_break=auto_short_break,
            auto_long_break=auto_long_break,
            long_break_every=long_break_every,
        )

    def _handle_completion(self, completed: CountdownSnapshot) -> None:
        with self._lock:
            events = self._settle_completion_locked()
        self._emit(events)

    def _settle_completion_locked(self) -> list[SessionEvent]:
        """Record a finished run exactly once, whoever observes it first.

        The countdown invokes its completion callback after releasing its own
        lock, so a command may reach the machine before the callback does.
        Every state-changing operation settles the finished run before it
        touches the countdown.
        """
        events: list[SessionEvent] = []
        completed = self._countdown.snapshot()
        if not completed.completed or completed.run_id == self._settled_run_id:
            return events
        self._settled_run_id = completed.run_id

        mode = self._mode
        self._clear_pending_locked()
        active_task = self._tasks.active_task
        record = self._history.record_completion(
            mode,
            completed.duration_ms,
            task_title=active_task.title if active_task is not None else None,
        )
        if mode == MODE_FOCUS and active_task is not None:
            self._tasks.log_focus_for_active_task(
                display_seconds(completed.duration_ms),
                1,
            )
        events.append(self._event_locked(EVENT_COMPLETED, record))
        self._logger.info("Session completed: mode=%s", mode)

        if mode == MODE_FOCUS:
            next_mode = self._auto_advance_target(self._history.focus_count())
            if next_mode is not None:
                self._enter_mode_locked(next_mode)
                self._countdown.start()
                self._logger.info("Auto-advanced to %s", next_mode)
                events.append(self._event_locked(EVENT_AUTO_ADVANCED))
        return events

    def _auto_advance_target(self, focus_count: int) -> Optional[str]:
        automation = self._settings.automation
        if (
            automation.auto_long_break
            and focus_count > 0
            and focus_count % automation.long_break_every == 0
        ):
            return MODE_LONG_BREAK
        if automation.auto_short_break:
            return MODE_SHORT_BREAK
        return None

    def _rebaseline_locked(self, settings: TimerSettings, events: list[SessionEvent]) -> None:
        # A running countdown keeps its duration until the next reset or mode entry.
        if self._countdown.is_running:
            return
        self._countdown.reset(settings.duration_ms(self._mode))
        events.append(self._event_locked(EVENT_RESET))

    def _enter_mode_locked(self, mode: str) -> None:
        self._mode = mode
        self._countdown.reset(self._settings.timer.duration_ms(mode))
        self._logger.info("Mode set: %s", mode)

    def _clear_pending_locked(self) -> None:
        self._pending_mode = None
        self._pending_reset = False

    def _emit(self, events: list[SessionEvent]) -> None:
        if not events:
            return
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event)
                except Exception as error:
                    self._logger.error(
                        "Session listener failed on %s: %s",
                        event.kind,
                        error,
                        exc_info=True,
                    )

    def _event_locked(
        self,
        kind: str,
        record: Optional["SessionRecord"] = None,
    ) -> SessionEvent:
        return SessionEvent(kind=kind, snapshot=self._snapshot_locked(), record=record)

    def _result(self, action: str, accepted: bool, reason: str) -> SessionActionResult:
        with self._lock:
            return self._result_locked(action, accepted, reason)

    def _result_locked(self, action: str, accepted: bool, reason: str) -> SessionActionResult:
        return SessionActionResult(
            action=action,
            accepted=accepted,
            reason=reason,
            snapshot=self._snapshot_locked(),
        )

    def _snapshot_locked(self) -> SessionSnapshot:
        countdown = self._countdown.snapshot()
        active_task = self._tasks.active_task
        return SessionSnapshot(
            mode=self._mode,
            duration_ms=countdown.duration_ms,
            remaining_ms=countdown.remaining_ms,
            is_running=countdown.is_running,
            completed=countdown.completed,
            pending_mode=self._pending_mode,
            pending_reset=self._pending_reset,
            active_task_title=active_task.title if active_task is not None else None,
            focus_count=self._history.focus_count(),
        )
