"""Status, title, and quote text builders for session snapshots."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from .constants import (
    ACTION_CANCEL,
    ACTION_CONFIRM,
    ACTION_PAUSE,
    ACTION_RESET,
    ACTION_START,
    ACTION_SWITCH_MODE,
    MODE_FOCUS,
    REASON_ALREADY_ACTIVE,
    REASON_ALREADY_RUNNING,
    REASON_CONFIRMATION_REQUIRED,
    REASON_EXPIRED,
    REASON_NOT_RUNNING,
    REASON_NOTHING_PENDING,
    REASON_UNKNOWN_MODE,
)
from .machine import SessionSnapshot


@dataclass(frozen=True)
class Quote:
    text: str
    author: str


FOCUS_QUOTES: tuple[Quote, ...] = (
    Quote("Focus is the key to all success.", "Unknown"),
    Quote("The successful warrior is the average man, with laser-like focus.", "Bruce Lee"),
    Quote("Starve your distractions, feed your focus.", "Unknown"),
    Quote("It's not about having time. It's about making time.", "Unknown"),
    Quote("Do it with passion or not at all.", "Unknown"),
)

BREAK_QUOTES: tuple[Quote, ...] = (
    Quote("Rest is not idleness.", "John Lubbock"),
    Quote(
        "Almost everything will work again if you unplug it for a few minutes, including you.",
        "Anne Lamott",
    ),
    Quote("Taking a break can lead to breakthroughs.", "Unknown"),
    Quote("Relax, recharge, and reflect.", "Unknown"),
)


def format_clock(seconds: int) -> str:
    """Format whole seconds as `M:SS`."""
    minutes, remainder = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{remainder:02d}"


def random_quote(mode: str, rng: Optional[random.Random] = None) -> Quote:
    """Pick a focus quote for Focus, a break quote for either break."""
    pool = FOCUS_QUOTES if mode == MODE_FOCUS else BREAK_QUOTES
    return (rng or random).choice(pool)


def window_title(snapshot: SessionSnapshot) -> str:
    label = "Work" if snapshot.mode == MODE_FOCUS else snapshot.mode
    return f"{format_clock(snapshot.display_seconds)} - {label}"


def status_line(snapshot: SessionSnapshot) -> str:
    """Build a one-line status summary for the current snapshot."""
    clock = format_clock(snapshot.display_seconds)
    if snapshot.is_running:
        state = "running"
    elif snapshot.completed:
        state = "done"
    else:
        state = "paused"
    parts = [f"{snapshot.mode} {clock} ({state})"]
    if snapshot.active_task_title:
        parts.append(f"task: {snapshot.active_task_title}")
    if snapshot.pending_mode is not None:
        parts.append(f"switch to {snapshot.pending_mode}? confirm/cancel")
    elif snapshot.pending_reset:
        parts.append("reset running session? confirm/cancel")
    return " | ".join(parts)


def rejection_text(action: str, reason: str) -> str:
    """Return user-facing text for a rejected state-machine action."""
    if reason == REASON_CONFIRMATION_REQUIRED:
        return "A session is running. Type 'confirm' to interrupt it or 'cancel' to keep going."
    if reason == REASON_ALREADY_RUNNING:
        return "The timer is already running."
    if reason == REASON_ALREADY_ACTIVE:
        return "That mode is already running."
    if reason == REASON_NOT_RUNNING:
        return "The timer is not running."
    if reason == REASON_EXPIRED:
        return "The session has finished. Reset to start again."
    if reason == REASON_NOTHING_PENDING:
        return "Nothing is waiting for confirmation."
    if reason == REASON_UNKNOWN_MODE:
        return "Unknown mode. Use focus, short, or long."
    return f"'{action}' is not possible right now."


def action_text(action: str, snapshot: SessionSnapshot) -> str:
    """Return user-facing text for an accepted state-machine action."""
    clock = format_clock(snapshot.display_seconds)
    if action == ACTION_START:
        return f"{snapshot.mode} started: {clock} remaining."
    if action == ACTION_PAUSE:
        return f"{snapshot.mode} paused at {clock}."
    if action == ACTION_RESET:
        return f"{snapshot.mode} reset to {clock}."
    if action == ACTION_SWITCH_MODE:
        return f"Switched to {snapshot.mode} ({clock})."
    if action == ACTION_CONFIRM:
        return f"{snapshot.mode} ready at {clock}."
    if action == ACTION_CANCEL:
        return "Keeping the current session."
    return f"{snapshot.mode}: {clock}"
