"""Mode, action, event, and reason constants used by the session engine."""

from __future__ import annotations

from typing import Literal

MODE_FOCUS = "Focus"
MODE_SHORT_BREAK = "Short Break"
MODE_LONG_BREAK = "Long Break"

TimerMode = Literal["Focus", "Short Break", "Long Break"]

MODES: tuple[str, ...] = (MODE_FOCUS, MODE_SHORT_BREAK, MODE_LONG_BREAK)

DEFAULT_DURATION_MINUTES: dict[str, int] = {
    MODE_FOCUS: 25,
    MODE_SHORT_BREAK: 5,
    MODE_LONG_BREAK: 15,
}
MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 60

DEFAULT_AUTO_SHORT_BREAK = False
DEFAULT_AUTO_LONG_BREAK = True
DEFAULT_LONG_BREAK_EVERY = 4
MIN_LONG_BREAK_EVERY = 2
MAX_LONG_BREAK_EVERY = 8

DEFAULT_TICK_INTERVAL_SECONDS = 0.1

STORAGE_KEY_TIMER_SETTINGS = "timerSettings"
STORAGE_KEY_AUTOMATION_SETTINGS = "focusAutomationSettings"

ACTION_START = "start"
ACTION_PAUSE = "pause"
ACTION_TOGGLE = "toggle"
ACTION_RESET = "reset"
ACTION_SWITCH_MODE = "switch_mode"
ACTION_CONFIRM = "confirm"
ACTION_CANCEL = "cancel"

EVENT_STARTED = "started"
EVENT_PAUSED = "paused"
EVENT_RESET = "reset"
EVENT_MODE_CHANGED = "mode_changed"
EVENT_COMPLETED = "completed"
EVENT_AUTO_ADVANCED = "auto_advanced"

REASON_STARTED = "started"
REASON_PAUSED = "paused"
REASON_RESET = "reset"
REASON_MODE_CHANGED = "mode_changed"
REASON_CONFIRMATION_REQUIRED = "confirmation_required"
REASON_CONFIRMED = "confirmed"
REASON_CANCELLED = "cancelled"
REASON_ALREADY_RUNNING = "already_running"
REASON_ALREADY_ACTIVE = "already_active"
REASON_NOT_RUNNING = "not_running"
REASON_EXPIRED = "expired"
REASON_NOTHING_PENDING = "nothing_pending"
REASON_UNKNOWN_MODE = "unknown_mode"
REASON_UNSUPPORTED_ACTION = "unsupported_action"
