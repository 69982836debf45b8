"""Task ledger with pomodoro accounting, one active task, and import/export."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from contracts.collaborators import KeyValueStoreLike
from storage import PersistenceReadError, PersistenceWriteError, read_document, write_document

from .history import format_timestamp, parse_timestamp

STORAGE_KEY_TASKS = "tasks"
TASKS_DOCUMENT_VERSION = 1
MAX_TITLE_LENGTH = 200


@dataclass(frozen=True)
class Task:
    """User task credited with completed focus sessions."""
    id: str
    title: str
    created_at: str
    completed_at: Optional[str] = None
    pomo_units: float = 0
    focus_seconds: int = 0

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at,
            "pomoUnits": self.pomo_units,
            "focusSeconds": self.focus_seconds,
        }
        if self.completed_at is not None:
            document["completedAt"] = self.completed_at
        return document


@dataclass(frozen=True)
class TaskLedgerState:
    """Immutable ledger contents; replaced wholesale on every mutation."""
    tasks: tuple[Task, ...] = ()
    active_task_id: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return {
            "version": TASKS_DOCUMENT_VERSION,
            "tasks": [task.to_document() for task in self.tasks],
            "activeTaskId": self.active_task_id,
        }


def decode_task_state(
    raw: Any,
    *,
    id_fn: Callable[[], str],
    now_iso: Callable[[], str],
) -> TaskLedgerState:
    """Decode the current document shape, else the legacy shape, else empty.

    The legacy shape is `{"title": str, "completed": [{"title", "completedAt"}]}`
    where `title` was the single in-progress task.
    """
    if not isinstance(raw, Mapping):
        return TaskLedgerState()
    if isinstance(raw.get("tasks"), list):
        return _decode_current(raw, id_fn=id_fn, now_iso=now_iso)
    if "title" in raw or "completed" in raw:
        return _decode_legacy(raw, id_fn=id_fn, now_iso=now_iso)
    return TaskLedgerState()


def _decode_current(
    raw: Mapping[str, Any],
    *,
    id_fn: Callable[[], str],
    now_iso: Callable[[], str],
) -> TaskLedgerState:
    tasks: list[Task] = []
    seen_ids: set[str] = set()
    for item in raw["tasks"]:
        if not isinstance(item, Mapping):
            continue
        title = _clean_title(item.get("title"))
        if title is None:
            continue
        task_id = item.get("id")
        if not isinstance(task_id, str) or not task_id or task_id in seen_ids:
            task_id = id_fn()
        seen_ids.add(task_id)
        tasks.append(
            Task(
                id=task_id,
                title=title,
                created_at=_timestamp_or(item.get("createdAt"), now_iso),
                completed_at=_optional_timestamp(item.get("completedAt")),
                pomo_units=_non_negative(item.get("pomoUnits")),
                focus_seconds=int(_non_negative(item.get("focusSeconds"))),
            )
        )

    active_id = raw.get("activeTaskId")
    return TaskLedgerState(
        tasks=tuple(tasks),
        active_task_id=_valid_active_id(tasks, active_id),
    )


def _decode_legacy(
    raw: Mapping[str, Any],
    *,
    id_fn: Callable[[], str],
    now_iso: Callable[[], str],
) -> TaskLedgerState:
    tasks: list[Task] = []
    active_id: Optional[str] = None

    title = _clean_title(raw.get("title"))
    if title is not None:
        active_id = id_fn()
        tasks.append(Task(id=active_id, title=title, created_at=now_iso()))

    completed = raw.get("completed")
    if isinstance(completed, list):
        for item in completed:
            if not isinstance(item, Mapping):
                continue
            completed_title = _clean_title(item.get("title"))
            if completed_title is None:
                continue
            completed_at = _timestamp_or(item.get("completedAt"), now_iso)
            tasks.append(
                Task(
                    id=id_fn(),
                    title=completed_title,
                    created_at=completed_at,
                    completed_at=completed_at,
                )
            )

    return TaskLedgerState(tasks=tuple(tasks), active_task_id=active_id)


def _clean_title(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    compact = " ".join(value.split())[:MAX_TITLE_LENGTH]
    return compact or None


def _non_negative(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value or value < 0:
        return 0
    return value


def _optional_timestamp(value: Any) -> Optional[str]:
    if isinstance(value, str) and parse_timestamp(value) is not None:
        return value
    return None


def _timestamp_or(value: Any, now_iso: Callable[[], str]) -> str:
    return _optional_timestamp(value) or now_iso()


def _valid_active_id(tasks: list[Task], active_id: Any) -> Optional[str]:
    if not isinstance(active_id, str):
        return None
    for task in tasks:
        if task.id == active_id and not task.is_completed:
            return active_id
    return None


class TaskLedger:
    """Owns the `tasks` document. Every mutation is one persisted write."""

    def __init__(
        self,
        store: KeyValueStoreLike,
        logger: Optional[logging.Logger] = None,
        *,
        now_fn: Optional[Callable[[], datetime]] = None,
        id_fn: Optional[Callable[[], str]] = None,
    ):
        self._store = store
        self._logger = logger or logging.getLogger("ledger.tasks")
        self._now = now_fn or (lambda: datetime.now().astimezone())
        self._new_id = id_fn or (lambda: str(uuid.uuid4()))
        self._lock = threading.RLock()
        self._state = self._load()

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return list(self._state.tasks)

    @property
    def active_task_id(self) -> Optional[str]:
        with self._lock:
            return self._state.active_task_id

    @property
    def active_task(self) -> Optional[Task]:
        with self._lock:
            return self._find_locked(self._state.active_task_id)

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._find_locked(task_id)

    def progress(self) -> tuple[int, int]:
        """Return `(completed, total)` task counts."""
        with self._lock:
            done = sum(1 for task in self._state.tasks if task.is_completed)
            return done, len(self._state.tasks)

    def add_task(self, title: str) -> Optional[Task]:
        clean = _clean_title(title)
        if clean is None:
            return None
        with self._lock:
            task = self._create_task_locked(clean)
            self._replace_locked(
                TaskLedgerState(
                    tasks=(task,) + self._state.tasks,
                    active_task_id=task.id,
                )
            )
            self._logger.info("Task added: %s", task.title)
            return task

    def set_active_task(self, task_id: str) -> bool:
        with self._lock:
            task = self._find_locked(task_id)
            if task is None or task.is_completed:
                return False
            self._replace_locked(replace(self._state, active_task_id=task.id))
            return True

    def upsert_task(self, title: str) -> Optional[Task]:
        clean = _clean_title(title)
        if clean is None:
            return None
        with self._lock:
            wanted = clean.casefold()
            for task in self._state.tasks:
                if not task.is_completed and task.title.casefold() == wanted:
                    self._replace_locked(replace(self._state, active_task_id=task.id))
                    return task
            return self.add_task(clean)

    def abandon_active_task(self) -> None:
        with self._lock:
            if self._state.active_task_id is None:
                return
            self._replace_locked(replace(self._state, active_task_id=None))

    def complete_active_task(
        self,
        *,
        add_pomo_units: float = 0,
        add_focus_seconds: int = 0,
    ) -> Optional[Task]:
        with self._lock:
            active = self._find_locked(self._state.active_task_id)
            if active is None:
                return None
            updated = replace(
                active,
                completed_at=active.completed_at or self._now_iso(),
                pomo_units=active.pomo_units + max(0, add_pomo_units),
                focus_seconds=active.focus_seconds + max(0, int(add_focus_seconds)),
            )
            self._replace_locked(
                TaskLedgerState(
                    tasks=self._swap_locked(updated),
                    active_task_id=None,
                )
            )
            self._logger.info("Task completed: %s", updated.title)
            return updated

    def complete_task(self, task_id: str) -> bool:
        with self._lock:
            task = self._find_locked(task_id)
            if task is None:
                return False
            updated = replace(task, completed_at=task.completed_at or self._now_iso())
            active_id = self._state.active_task_id
            self._replace_locked(
                TaskLedgerState(
                    tasks=self._swap_locked(updated),
                    active_task_id=None if active_id == task_id else active_id,
                )
            )
            self._logger.info("Task completed: %s", updated.title)
            return True

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            if self._find_locked(task_id) is None:
                return False
            active_id = self._state.active_task_id
            self._replace_locked(
                TaskLedgerState(
                    tasks=tuple(task for task in self._state.tasks if task.id != task_id),
                    active_task_id=None if active_id == task_id else active_id,
                )
            )
            return True

    def clear_all(self) -> None:
        with self._lock:
            self._replace_locked(TaskLedgerState())
            self._logger.info("All tasks cleared")

    def log_focus_for_active_task(self, seconds: int, units: float) -> Optional[Task]:
        with self._lock:
            active = self._find_locked(self._state.active_task_id)
            if active is None:
                return None
            updated = replace(
                active,
                pomo_units=active.pomo_units + max(0, units),
                focus_seconds=active.focus_seconds + max(0, int(seconds)),
            )
            self._replace_locked(replace(self._state, tasks=self._swap_locked(updated)))
            self._logger.info(
                "Focus logged for task %s: +%ss +%s units",
                updated.title,
                int(seconds),
                units,
            )
            return updated

    def export_document(self) -> str:
        with self._lock:
            return json.dumps(self._state.to_document(), indent=2, ensure_ascii=False)

    def import_document(self, payload: str) -> bool:
        """Replace the ledger with an exported document.

        Returns False, leaving the ledger unchanged, when `payload` is not JSON.
        """
        try:
            raw = json.loads(payload)
        except (TypeError, json.JSONDecodeError) as error:
            self._logger.warning("Rejected task import: %s", error)
            return False
        with self._lock:
            state = decode_task_state(raw, id_fn=self._new_id, now_iso=self._now_iso)
            self._replace_locked(state)
            self._logger.info("Imported %d tasks", len(state.tasks))
        return True

    def _create_task_locked(self, title: str) -> Task:
        return Task(id=self._new_id(), title=title, created_at=self._now_iso())

    def _find_locked(self, task_id: Optional[str]) -> Optional[Task]:
        if task_id is None:
            return None
        for task in self._state.tasks:
            if task.id == task_id:
                return task
        return None

    def _swap_locked(self, updated: Task) -> tuple[Task, ...]:
        return tuple(updated if task.id == updated.id else task for task in self._state.tasks)

    def _replace_locked(self, state: TaskLedgerState) -> None:
        try:
            write_document(self._store, STORAGE_KEY_TASKS, state.to_document())
        except PersistenceWriteError as error:
            self._logger.error("Failed to persist tasks: %s", error)
        self._state = state

    def _now_iso(self) -> str:
        return format_timestamp(self._now())

    def _load(self) -> TaskLedgerState:
        try:
            raw = read_document(self._store, STORAGE_KEY_TASKS)
        except PersistenceReadError as error:
            self._logger.warning("Falling back to empty task ledger: %s", error)
            return TaskLedgerState()
        return decode_task_state(raw, id_fn=self._new_id, now_iso=self._now_iso)
