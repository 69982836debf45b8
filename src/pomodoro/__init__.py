from .constants import (
    MODE_FOCUS,
    MODE_LONG_BREAK,
    MODE_SHORT_BREAK,
    MODES,
    TimerMode,
)
from .countdown import CountdownResult, CountdownSnapshot, CountdownTimer
from .machine import SessionActionResult, SessionEvent, SessionMachine, SessionSnapshot
from .settings import FocusAutomationSettings, SessionSettingsStore, TimerSettings

__all__ = [
    "MODE_FOCUS",
    "MODE_LONG_BREAK",
    "MODE_SHORT_BREAK",
    "MODES",
    "CountdownResult",
    "CountdownSnapshot",
    "CountdownTimer",
    "FocusAutomationSettings",
    "SessionActionResult",
    "SessionEvent",
    "SessionMachine",
    "SessionSettingsStore",
    "SessionSnapshot",
    "TimerMode",
    "TimerSettings",
]
