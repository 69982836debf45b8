"""Dispatcher that executes parsed terminal commands against runtime services."""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Optional

from ledger import HistoryLedger, Task, TaskLedger
from pomodoro import SessionMachine
from pomodoro.constants import (
    ACTION_CANCEL,
    ACTION_CONFIRM,
    ACTION_PAUSE,
    ACTION_RESET,
    ACTION_START,
    ACTION_SWITCH_MODE,
    ACTION_TOGGLE,
    MODES,
    REASON_UNKNOWN_MODE,
)
from pomodoro.messages import (
    action_text,
    format_clock,
    random_quote,
    rejection_text,
    status_line,
)
from sound import AmbientSoundEngine

from .commands import (
    COMMAND_AUTO,
    COMMAND_CANCEL,
    COMMAND_CONFIRM,
    COMMAND_DURATION,
    COMMAND_EXPORT,
    COMMAND_HELP,
    COMMAND_HISTORY,
    COMMAND_IMPORT,
    COMMAND_MODE,
    COMMAND_MUTE,
    COMMAND_NOTIFY,
    COMMAND_PAUSE,
    COMMAND_QUOTE,
    COMMAND_RESET,
    COMMAND_SOUND,
    COMMAND_START,
    COMMAND_STATUS,
    COMMAND_TASK,
    COMMAND_TOGGLE,
    COMMAND_VOLUME,
    HELP_TEXT,
    Command,
    parse_int,
    parse_mode,
    parse_switch,
)

_TIMER_COMMANDS = {
    COMMAND_START: ACTION_START,
    COMMAND_PAUSE: ACTION_PAUSE,
    COMMAND_TOGGLE: ACTION_TOGGLE,
    COMMAND_RESET: ACTION_RESET,
    COMMAND_CONFIRM: ACTION_CONFIRM,
    COMMAND_CANCEL: ACTION_CANCEL,
}

_HISTORY_PREVIEW_LIMIT = 10


class RuntimeCommandDispatcher:
    """Routes commands to the session machine, ledgers, and sound engine."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        machine: SessionMachine,
        tasks: TaskLedger,
        history: HistoryLedger,
        sound: AmbientSoundEngine,
        export_dir: Path,
        rng: Optional[random.Random] = None,
    ):
        self._logger = logger
        self._machine = machine
        self._tasks = tasks
        self._history = history
        self._sound = sound
        self._export_dir = export_dir
        self._rng = rng

    def handle_command(self, command: Command) -> str:
        # Any user interaction is a chance to retry blocked playback.
        self._sound.resume()

        if command.name in _TIMER_COMMANDS:
            return self._handle_timer_action(_TIMER_COMMANDS[command.name])
        if command.name == COMMAND_MODE:
            return self._handle_mode(command)

        handler = {
            COMMAND_DURATION: self._handle_duration,
            COMMAND_AUTO: self._handle_auto,
            COMMAND_TASK: self._handle_task,
            COMMAND_HISTORY: self._handle_history,
            COMMAND_EXPORT: self._handle_export,
            COMMAND_IMPORT: self._handle_import,
            COMMAND_SOUND: self._handle_sound,
            COMMAND_VOLUME: self._handle_volume,
            COMMAND_MUTE: self._handle_mute,
            COMMAND_NOTIFY: self._handle_notify,
            COMMAND_STATUS: self._handle_status,
            COMMAND_QUOTE: self._handle_quote,
            COMMAND_HELP: self._handle_help,
        }.get(command.name)
        if handler is None:
            self._logger.warning("Unsupported command: %s", command.name)
            return f"Unknown command '{command.name}'. Type 'help' for a list."
        return handler(command)

    def _handle_timer_action(self, action: str) -> str:
        result = self._machine.apply(action)
        if result.accepted:
            return action_text(result.action, result.snapshot)
        return rejection_text(result.action, result.reason)

    def _handle_mode(self, command: Command) -> str:
        mode = parse_mode(command.argument)
        if mode is None:
            return rejection_text(ACTION_SWITCH_MODE, REASON_UNKNOWN_MODE)
        result = self._machine.apply(ACTION_SWITCH_MODE, mode=mode)
        if result.accepted:
            return action_text(result.action, result.snapshot)
        if result.snapshot.pending_mode is not None:
            return (
                f"{result.snapshot.mode} is running. Type 'confirm' to switch to "
                f"{result.snapshot.pending_mode} or 'cancel' to keep going."
            )
        return rejection_text(result.action, result.reason)

    def _handle_duration(self, command: Command) -> str:
        words = command.argument.split()
        if not words:
            settings = self._machine.timer_settings
            return ", ".join(f"{mode}: {settings.minutes_for(mode)} min" for mode in MODES)
        if [word.lower() for word in words] == ["reset"]:
            restored = self._machine.reset_durations()
            summary = "/".join(str(restored.minutes_for(mode)) for mode in MODES)
            return f"Durations reset to {summary} minutes."
        minutes = parse_int(words[-1])
        mode = parse_mode(" ".join(words[:-1]))
        if mode is None or minutes is None:
            return "Usage: duration <focus|short|long> <minutes>"
        updated = self._machine.update_duration(mode, minutes)
        return f"{mode} set to {updated.minutes_for(mode)} minutes."

    def _handle_auto(self, command: Command) -> str:
        head, rest = command.split_argument()
        if head == "every":
            every = parse_int(rest)
            if every is None:
                return "Usage: auto every <n>"
            self._machine.update_automation(long_break_every=every)
        elif head in ("short", "long"):
            enabled = parse_switch(rest)
            if enabled is None:
                return f"Usage: auto {head} <on|off>"
            if head == "short":
                self._machine.update_automation(auto_short_break=enabled)
            else:
                self._machine.update_automation(auto_long_break=enabled)
        elif head:
            return "Usage: auto [short|long <on|off>] | auto every <n>"

        automation = self._machine.automation_settings
        return (
            f"Auto short break: {_on_off(automation.auto_short_break)}, "
            f"auto long break: {_on_off(automation.auto_long_break)} "
            f"every {automation.long_break_every} focus sessions."
        )

    def _handle_task(self, command: Command) -> str:
        head, rest = command.split_argument()
        if head in ("", "list"):
            return self._task_list_text()
        if head == "add":
            task = self._tasks.add_task(rest)
            if task is None:
                return "Task title cannot be empty."
            return f"Added and focused: {task.title}"
        if head == "focus":
            task = self._resolve_task(rest)
            if task is not None:
                if self._tasks.set_active_task(task.id):
                    return f"Focusing on: {task.title}"
                return f"'{task.title}' is already done."
            task = self._tasks.upsert_task(rest)
            if task is None:
                return "Usage: task focus <n|title>"
            return f"Focusing on: {task.title}"
        if head == "done":
            if not rest:
                completed = self._tasks.complete_active_task()
                if completed is None:
                    return "No active task."
                return f"Completed: {completed.title}"
            task = self._resolve_task(rest)
            if task is None or not self._tasks.complete_task(task.id):
                return f"No task matches '{rest}'."
            return f"Completed: {task.title}"
        if head == "delete":
            task = self._resolve_task(rest)
            if task is None or not self._tasks.delete_task(task.id):
                return f"No task matches '{rest}'."
            return f"Deleted: {task.title}"
        if head == "clear":
            self._tasks.clear_all()
            return "All tasks cleared."
        if head == "abandon":
            active = self._tasks.active_task
            if active is None:
                return "No active task."
            self._tasks.abandon_active_task()
            return f"Stopped focusing on: {active.title}"
        return "Usage: task add|focus|done|delete|list|clear|abandon"

    def _handle_history(self, command: Command) -> str:
        head, _ = command.split_argument()
        if head == "clear":
            self._history.clear()
            return "Session history cleared."
        if head:
            return "Usage: history [clear]"

        lines = [self._today_text()]
        sessions = self._history.sessions
        for record in sessions[:_HISTORY_PREVIEW_LIMIT]:
            completed_at = record.completed_at.astimezone().strftime("%Y-%m-%d %H:%M")
            task = f" - {record.task_title}" if record.task_title else ""
            lines.append(f"  {completed_at}  {record.mode} ({record.duration_minutes} min){task}")
        if len(sessions) > _HISTORY_PREVIEW_LIMIT:
            lines.append(f"  ... {len(sessions) - _HISTORY_PREVIEW_LIMIT} more")
        return "\n".join(lines)

    def _handle_export(self, command: Command) -> str:
        head, rest = command.split_argument()
        if head == "csv":
            directory = Path(rest).expanduser() if rest else self._export_dir
            try:
                path = self._history.write_csv(directory)
            except OSError as error:
                self._logger.error("CSV export failed: %s", error)
                return f"Export failed: {error}"
            return f"Exported sessions to {path}"
        if head == "tasks" and rest:
            path = Path(rest).expanduser()
            try:
                path.write_text(self._tasks.export_document(), encoding="utf-8")
            except OSError as error:
                self._logger.error("Task export failed: %s", error)
                return f"Export failed: {error}"
            return f"Exported tasks to {path}"
        return "Usage: export csv [dir] | export tasks <file>"

    def _handle_import(self, command: Command) -> str:
        head, rest = command.split_argument()
        if head != "tasks" or not rest:
            return "Usage: import tasks <file>"
        path = Path(rest).expanduser()
        try:
            payload = path.read_text(encoding="utf-8")
        except OSError as error:
            self._logger.error("Task import failed: %s", error)
            return f"Import failed: {error}"
        if not self._tasks.import_document(payload):
            return f"{path} is not a valid task export."
        done, total = self._tasks.progress()
        return f"Imported {total} tasks ({done} done)."

    def _handle_sound(self, command: Command) -> str:
        head, rest = command.split_argument()
        if not head:
            return self._sound_text()
        if head == "autoplay":
            enabled = parse_switch(rest)
            if enabled is None:
                return "Usage: sound autoplay <on|off>"
            self._sound.set_auto_play_with_timer(enabled)
            return f"Ambient auto-play with timer: {_on_off(enabled)}"
        if not self._sound.toggle(head):
            return f"Unknown track '{head}'. Tracks: {', '.join(self._sound.track_names)}"
        state = self._sound.state(head)
        return f"{head}: {_on_off(state is not None and state.enabled)}"

    def _handle_volume(self, command: Command) -> str:
        head, rest = command.split_argument()
        percent = parse_int(rest)
        if not head or percent is None:
            return "Usage: volume <track|notify> <0-100>"
        if head == "notify":
            volume = self._sound.set_notification_volume(percent / 100.0)
            return f"Notification volume: {round(volume * 100)}%"
        if not self._sound.set_volume(head, percent / 100.0):
            return f"Unknown track '{head}'."
        state = self._sound.state(head)
        return f"{head} volume: {round(state.volume * 100) if state else percent}%"

    def _handle_mute(self, command: Command) -> str:
        muted = self._sound.mute_all()
        return f"Muted {muted} ambient track(s)." if muted else "No ambient tracks playing."

    def _handle_notify(self, command: Command) -> str:
        if self._sound.play_notification():
            return "Playing notification."
        return "Notification is muted or unavailable."

    def _handle_status(self, command: Command) -> str:
        snapshot = self._machine.snapshot()
        done, total = self._tasks.progress()
        lines = [status_line(snapshot), self._today_text()]
        if total:
            lines.append(f"Tasks: {done}/{total} done")
        return "\n".join(lines)

    def _handle_quote(self, command: Command) -> str:
        quote = random_quote(self._machine.snapshot().mode, self._rng)
        return f'"{quote.text}" - {quote.author}'

    def _handle_help(self, command: Command) -> str:
        return HELP_TEXT

    def _resolve_task(self, reference: str) -> Optional[Task]:
        text = reference.strip()
        if not text:
            return None
        tasks = self._tasks.tasks
        index = parse_int(text)
        if index is not None:
            if 1 <= index <= len(tasks):
                return tasks[index - 1]
            return None
        wanted = text.casefold()
        for task in tasks:
            if task.title.casefold() == wanted:
                return task
        return None

    def _task_list_text(self) -> str:
        tasks = self._tasks.tasks
        if not tasks:
            return "No tasks yet. Add one with 'task add <title>'."
        active_id = self._tasks.active_task_id
        done, total = self._tasks.progress()
        lines = [f"Tasks ({done}/{total} done):"]
        for number, task in enumerate(tasks, start=1):
            marker = "x" if task.is_completed else ("*" if task.id == active_id else " ")
            focus = format_clock(task.focus_seconds)
            lines.append(f"  {number}. [{marker}] {task.title} ({task.pomo_units:g} pomos, {focus})")
        return "\n".join(lines)

    def _today_text(self) -> str:
        today = self._history.today()
        return (
            f"Today: {self._history.focus_count_on_day(today)} focus sessions, "
            f"{self._history.focus_minutes_on_day(today)} min"
        )

    def _sound_text(self) -> str:
        lines = []
        for state in self._sound.states():
            flags = _on_off(state.enabled)
            if state.blocked:
                flags += ", blocked"
            lines.append(f"  {state.name}: {flags}, volume {round(state.volume * 100)}%")
        lines.append(
            f"  notify volume {round(self._sound.notification_volume * 100)}%, "
            f"autoplay {_on_off(self._sound.auto_play_with_timer)}"
        )
        return "\n".join(lines)


def _on_off(value: bool) -> str:
    return "on" if value else "off"
