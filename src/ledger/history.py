"""Append-only ledger of completed sessions with day aggregation and CSV export."""

from __future__ import annotations

import csv
import io
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from contracts.collaborators import KeyValueStoreLike
from pomodoro.constants import MODE_FOCUS, MODES
from storage import PersistenceReadError, PersistenceWriteError, read_document, write_document

STORAGE_KEY_SESSIONS = "sessions"
CSV_HEADER: tuple[str, ...] = ("completedAt", "mode", "durationMinutes", "task")
CSV_FILENAME_PREFIX = "pomodoro-sessions"


@dataclass(frozen=True)
class SessionRecord:
    """One naturally completed session. Never mutated after creation."""
    id: str
    mode: str
    duration_ms: int
    completed_at: datetime
    task_title: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        return int(self.duration_ms / 60000 + 0.5)

    def local_day(self) -> date:
        return self.completed_at.astimezone().date()

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "mode": self.mode,
            "durationMs": self.duration_ms,
            "completedAt": format_timestamp(self.completed_at),
        }
        if self.task_title:
            document["task"] = self.task_title
        return document

    @classmethod
    def from_document(cls, raw: Any) -> Optional["SessionRecord"]:
        if not isinstance(raw, Mapping):
            return None
        mode = raw.get("mode")
        duration_ms = raw.get("durationMs")
        completed_at = parse_timestamp(raw.get("completedAt"))
        if mode not in MODES or completed_at is None:
            return None
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, (int, float)):
            return None
        record_id = raw.get("id")
        task = raw.get("task", raw.get("taskTitle"))
        return cls(
            id=record_id if isinstance(record_id, str) and record_id else str(uuid.uuid4()),
            mode=mode,
            duration_ms=max(0, int(duration_ms)),
            completed_at=completed_at,
            task_title=task.strip() or None if isinstance(task, str) else None,
        )


def format_timestamp(value: datetime) -> str:
    """Format as a UTC ISO-8601 string with millisecond precision and `Z`."""
    if value.tzinfo is None:
        value = value.astimezone()
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


class HistoryLedger:
    """Owns the `sessions` document, newest record first."""

    def __init__(
        self,
        store: KeyValueStoreLike,
        logger: Optional[logging.Logger] = None,
        *,
        now_fn: Optional[Callable[[], datetime]] = None,
        id_fn: Optional[Callable[[], str]] = None,
    ):
        self._store = store
        self._logger = logger or logging.getLogger("ledger.history")
        self._now = now_fn or (lambda: datetime.now().astimezone())
        self._new_id = id_fn or (lambda: str(uuid.uuid4()))
        self._lock = threading.Lock()
        self._sessions: deque[SessionRecord] = deque(self._load())

    @property
    def sessions(self) -> list[SessionRecord]:
        with self._lock:
            return list(self._sessions)

    def append(self, record: SessionRecord) -> None:
        with self._lock:
            self._sessions.appendleft(record)
            self._persist_locked()
        self._logger.info(
            "Session recorded: mode=%s duration=%sms task=%s",
            record.mode,
            record.duration_ms,
            record.task_title,
        )

    def record_completion(
        self,
        mode: str,
        duration_ms: int,
        *,
        task_title: Optional[str] = None,
    ) -> SessionRecord:
        record = SessionRecord(
            id=self._new_id(),
            mode=mode,
            duration_ms=max(0, int(duration_ms)),
            completed_at=self._now(),
            task_title=task_title or None,
        )
        self.append(record)
        return record

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._persist_locked()
        self._logger.info("Session history cleared")

    def focus_count(self) -> int:
        with self._lock:
            return sum(1 for record in self._sessions if record.mode == MODE_FOCUS)

    def sessions_on_day(self, day: date) -> list[SessionRecord]:
        with self._lock:
            return [record for record in self._sessions if record.local_day() == day]

    def focus_count_on_day(self, day: date) -> int:
        return sum(1 for record in self.sessions_on_day(day) if record.mode == MODE_FOCUS)

    def focus_minutes_on_day(self, day: date) -> int:
        return sum(
            record.duration_minutes
            for record in self.sessions_on_day(day)
            if record.mode == MODE_FOCUS
        )

    def today(self) -> date:
        return self._now().astimezone().date()

    def export_csv(self) -> str:
        """Return every session as RFC 4180 CSV with all fields quoted."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
        writer.writerow(CSV_HEADER)
        for record in self.sessions:
            writer.writerow(
                (
                    format_timestamp(record.completed_at),
                    record.mode,
                    str(record.duration_minutes),
                    record.task_title or "",
                )
            )
        return buffer.getvalue()

    def csv_filename(self, day: Optional[date] = None) -> str:
        export_day = day or self.today()
        return f"{CSV_FILENAME_PREFIX}-{export_day.isoformat()}.csv"

    def write_csv(self, directory: str | Path) -> Path:
        target_dir = Path(directory).expanduser()
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / self.csv_filename()
        path.write_text(self.export_csv(), encoding="utf-8", newline="")
        self._logger.info("Exported %d sessions to %s", len(self.sessions), path)
        return path

    def _load(self) -> list[SessionRecord]:
        try:
            raw = read_document(self._store, STORAGE_KEY_SESSIONS)
        except PersistenceReadError as error:
            self._logger.warning("Falling back to empty session history: %s", error)
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            self._logger.warning("Ignoring malformed session history document")
            return []

        records = [SessionRecord.from_document(item) for item in raw]
        valid = [record for record in records if record is not None]
        if len(valid) != len(raw):
            self._logger.warning("Dropped %d malformed session records", len(raw) - len(valid))
        return valid

    def _persist_locked(self) -> None:
        try:
            write_document(
                self._store,
                STORAGE_KEY_SESSIONS,
                [record.to_document() for record in self._sessions],
            )
        except PersistenceWriteError as error:
            self._logger.error("Failed to persist session history: %s", error)
