"""Persisted per-mode durations and focus automation flags."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from contracts.collaborators import KeyValueStoreLike
from storage import PersistenceReadError, PersistenceWriteError, read_document, write_document

from .constants import (
    DEFAULT_AUTO_LONG_BREAK,
    DEFAULT_AUTO_SHORT_BREAK,
    DEFAULT_DURATION_MINUTES,
    DEFAULT_LONG_BREAK_EVERY,
    MAX_DURATION_MINUTES,
    MAX_LONG_BREAK_EVERY,
    MIN_DURATION_MINUTES,
    MIN_LONG_BREAK_EVERY,
    MODE_FOCUS,
    MODE_LONG_BREAK,
    MODE_SHORT_BREAK,
    MODES,
    STORAGE_KEY_AUTOMATION_SETTINGS,
    STORAGE_KEY_TIMER_SETTINGS,
)


@dataclass(frozen=True)
class TimerSettings:
    """Configured minutes per mode, each within 1..60."""
    focus_minutes: int = DEFAULT_DURATION_MINUTES[MODE_FOCUS]
    short_break_minutes: int = DEFAULT_DURATION_MINUTES[MODE_SHORT_BREAK]
    long_break_minutes: int = DEFAULT_DURATION_MINUTES[MODE_LONG_BREAK]

    def minutes_for(self, mode: str) -> int:
        if mode == MODE_FOCUS:
            return self.focus_minutes
        if mode == MODE_SHORT_BREAK:
            return self.short_break_minutes
        if mode == MODE_LONG_BREAK:
            return self.long_break_minutes
        raise ValueError(f"Unknown timer mode: {mode!r}")

    def duration_ms(self, mode: str) -> int:
        return self.minutes_for(mode) * 60 * 1000

    def with_minutes(self, mode: str, minutes: int) -> "TimerSettings":
        clamped = clamp_duration_minutes(minutes, self.minutes_for(mode))
        if mode == MODE_FOCUS:
            return replace(self, focus_minutes=clamped)
        if mode == MODE_SHORT_BREAK:
            return replace(self, short_break_minutes=clamped)
        return replace(self, long_break_minutes=clamped)

    def to_document(self) -> dict[str, int]:
        return {mode: self.minutes_for(mode) for mode in MODES}

    @classmethod
    def from_document(cls, raw: Any) -> "TimerSettings":
        if not isinstance(raw, Mapping):
            return cls()
        defaults = cls()
        return cls(
            focus_minutes=clamp_duration_minutes(raw.get(MODE_FOCUS), defaults.focus_minutes),
            short_break_minutes=clamp_duration_minutes(
                raw.get(MODE_SHORT_BREAK),
                defaults.short_break_minutes,
            ),
            long_break_minutes=clamp_duration_minutes(
                raw.get(MODE_LONG_BREAK),
                defaults.long_break_minutes,
            ),
        )


@dataclass(frozen=True)
class FocusAutomationSettings:
    """Auto-advance policy applied after a focus session completes."""
    auto_short_break: bool = DEFAULT_AUTO_SHORT_BREAK
    auto_long_break: bool = DEFAULT_AUTO_LONG_BREAK
    long_break_every: int = DEFAULT_LONG_BREAK_EVERY

    def to_document(self) -> dict[str, Any]:
        return {
            "autoShortBreak": self.auto_short_break,
            "autoLongBreak": self.auto_long_break,
            "longBreakEvery": self.long_break_every,
        }

    @classmethod
    def from_document(cls, raw: Any) -> "FocusAutomationSettings":
        if not isinstance(raw, Mapping):
            return cls()
        defaults = cls()
        auto_short = raw.get("autoShortBreak")
        auto_long = raw.get("autoLongBreak")
        return cls(
            auto_short_break=auto_short if isinstance(auto_short, bool) else defaults.auto_short_break,
            auto_long_break=auto_long if isinstance(auto_long, bool) else defaults.auto_long_break,
            long_break_every=clamp_long_break_every(
                raw.get("longBreakEvery"),
                defaults.long_break_every,
            ),
        )


def clamp_duration_minutes(value: Any, fallback: int) -> int:
    return _clamp_int(value, MIN_DURATION_MINUTES, MAX_DURATION_MINUTES, fallback)


def clamp_long_break_every(value: Any, fallback: int) -> int:
    return _clamp_int(value, MIN_LONG_BREAK_EVERY, MAX_LONG_BREAK_EVERY, fallback)


def _clamp_int(value: Any, lower: int, upper: int, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if value != value:  # NaN
        return fallback
    return max(lower, min(upper, int(value)))


class SessionSettingsStore:
    """Owns the `timerSettings` and `focusAutomationSettings` documents."""

    def __init__(
        self,
        store: KeyValueStoreLike,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._logger = logger or logging.getLogger("pomodoro.settings")
        self._lock = threading.Lock()
        self._timer = TimerSettings.from_document(
            self._load(STORAGE_KEY_TIMER_SETTINGS)
        )
        self._automation = FocusAutomationSettings.from_document(
            self._load(STORAGE_KEY_AUTOMATION_SETTINGS)
        )

    @property
    def timer(self) -> TimerSettings:
        with self._lock:
            return self._timer

    @property
    def automation(self) -> FocusAutomationSettings:
        with self._lock:
            return self._automation

    def update_duration(self, mode: str, minutes: int) -> TimerSettings:
        with self._lock:
            self._timer = self._timer.with_minutes(mode, minutes)
            self._persist(STORAGE_KEY_TIMER_SETTINGS, self._timer.to_document())
            return self._timer

    def update_automation(
        self,
        *,
        auto_short_break: Optional[bool] = None,
        auto_long_break: Optional[bool] = None,
        long_break_every: Optional[int] = None,
    ) -> FocusAutomationSettings:
        with self._lock:
            current = self._automation
            self._automation = FocusAutomationSettings(
                auto_short_break=(
                    bool(auto_short_break)
                    if auto_short_break is not None
                    else current.auto_short_break
                ),
                auto_long_break=(
                    bool(auto_long_break)
                    if auto_long_break is not None
                    else current.auto_long_break
                ),
                long_break_every=(
                    clamp_long_break_every(long_break_every, current.long_break_every)
                    if long_break_every is not None
                    else current.long_break_every
                ),
            )
            self._persist(STORAGE_KEY_AUTOMATION_SETTINGS, self._automation.to_document())
            return self._automation

    def reset_to_defaults(self) -> TimerSettings:
        with self._lock:
            self._timer = TimerSettings()
            self._persist(STORAGE_KEY_TIMER_SETTINGS, self._timer.to_document())
            return self._timer

    def _load(self, key: str) -> Any:
        try:
            return read_document(self._store, key)
        except PersistenceReadError as error:
            self._logger.warning("Falling back to default %s: %s", key, error)
            return None

    def _persist(self, key: str, document: dict[str, Any]) -> None:
        try:
            write_document(self._store, key, document)
        except PersistenceWriteError as error:
            self._logger.error("Failed to persist %s: %s", key, error)
