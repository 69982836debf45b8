"""Runtime orchestration loop for terminal commands and session events."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue
from typing import Callable, Optional, Union

from app_config_schema import AppConfig
from ledger import HistoryLedger, TaskLedger
from pomodoro import SessionEvent, SessionMachine
from pomodoro.constants import EVENT_AUTO_ADVANCED, EVENT_COMPLETED
from pomodoro.messages import random_quote, status_line, window_title
from sound import AmbientSoundEngine

from .commands import COMMAND_NAMES, COMMAND_QUIT, parse_command
from .dispatch import RuntimeCommandDispatcher


@dataclass(frozen=True)
class RuntimeHooks:
    """Injectable lifecycle hooks used by runtime startup and shutdown flow."""
    setup_signal_handlers: Callable[[Callable[[], None]], None]
    start_input_reader: Callable[[Callable[[str], None], Callable[[], None]], None]
    output: Callable[[str], None]


@dataclass(frozen=True)
class RuntimeBootstrap:
    """Dependency bundle required to construct the runtime engine."""
    logger: logging.Logger
    app_config: AppConfig
    machine: SessionMachine
    tasks: TaskLedger
    history: HistoryLedger
    sound: AmbientSoundEngine
    hooks: RuntimeHooks
    rng: Optional[random.Random] = None


class _StopRequest:
    pass


_STOP = _StopRequest()

RuntimeItem = Union[str, SessionEvent, _StopRequest]


class RuntimeEngine:
    """Main loop that serializes user commands and session events.

    Input lines and machine events arrive on one queue so that replies,
    sound changes, and completion notices are handled in order on the
    loop thread.
    """
    def __init__(self, bootstrap: RuntimeBootstrap):
        self._bootstrap = bootstrap
        self._logger = bootstrap.logger
        self._machine = bootstrap.machine
        self._sound = bootstrap.sound
        self._output = bootstrap.hooks.output
        self._rng = bootstrap.rng
        self._dispatcher = RuntimeCommandDispatcher(
            logger=self._logger,
            machine=bootstrap.machine,
            tasks=bootstrap.tasks,
            history=bootstrap.history,
            sound=bootstrap.sound,
            export_dir=Path(bootstrap.app_config.storage.export_dir),
            rng=bootstrap.rng,
        )
        self._queue: Queue[RuntimeItem] = Queue()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._last_title: Optional[str] = None

    def submit(self, line: str) -> None:
        self._queue.put(line)

    def request_stop(self) -> None:
        self._queue.put(_STOP)

    def run(self) -> int:
        self._unsubscribe = self._machine.subscribe(self._queue.put)
        try:
            self._bootstrap.hooks.setup_signal_handlers(self.request_stop)
            self._bootstrap.hooks.start_input_reader(self.submit, self.request_stop)

            self._logger.info("Ready! Type 'help' for commands.")
            self._output(status_line(self._machine.snapshot()))

            while True:
                self._log_running_title()

                item = self._poll_item()
                if item is None:
                    continue
                if isinstance(item, _StopRequest):
                    return 0
                if isinstance(item, SessionEvent):
                    self._handle_session_event(item)
                    continue
                if self._handle_line(item):
                    return 0

        except KeyboardInterrupt:
            self._logger.info("Shutdown requested by keyboard interrupt.")
            return 0
        except Exception as error:
            self._logger.error("Unexpected error: %s", error, exc_info=True)
            return 1
        finally:
            self._shutdown()

    def _poll_item(self) -> Optional[RuntimeItem]:
        try:
            return self._queue.get(timeout=0.25)
        except Empty:
            return None

    def _handle_line(self, line: str) -> bool:
        """Dispatch one input line; returns True when the user asked to quit."""
        command = parse_command(line)
        if command is None:
            return False
        if command.name == COMMAND_QUIT:
            self._logger.info("Quit requested.")
            return True
        if command.name not in COMMAND_NAMES:
            self._logger.debug("Unknown input: %s", line.strip())
        self._output(self._dispatcher.handle_command(command))
        return False

    def _handle_session_event(self, event: SessionEvent) -> None:
        snapshot = event.snapshot
        # Queued events may be stale; follow the machine's current running state.
        self._sound.set_timer_running(self._machine.snapshot().is_running)

        if event.kind == EVENT_COMPLETED:
            self._sound.play_notification()
            finished = event.record.mode if event.record is not None else snapshot.mode
            self._output(f"{finished} complete! Focus sessions so far: {snapshot.focus_count}")
            return

        if event.kind == EVENT_AUTO_ADVANCED:
            quote = random_quote(snapshot.mode, self._rng)
            self._output(f"Starting {snapshot.mode}. \"{quote.text}\" - {quote.author}")
            return

        self._logger.debug("Session %s: %s", event.kind, status_line(snapshot))

    def _log_running_title(self) -> None:
        snapshot = self._machine.snapshot()
        if not snapshot.is_running:
            self._last_title = None
            return
        title = window_title(snapshot)
        if title != self._last_title:
            self._last_title = title
            self._logger.debug("%s", title)

    def _shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._machine.snapshot().is_running:
            self._logger.info("Pausing running session...")
            self._machine.pause()
        self._logger.info("Stopping sound engine...")
        self._sound.shutdown()
