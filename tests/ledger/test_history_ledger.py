import csv
import io
import itertools
import json
import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from ledger import CSV_HEADER, HistoryLedger, SessionRecord
from pomodoro.constants import MODE_FOCUS, MODE_LONG_BREAK, MODE_SHORT_BREAK
from storage import MemoryKeyValueStore


def _local(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute).astimezone()


class _SteppingClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


class HistoryLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryKeyValueStore()
        self.clock = _SteppingClock(_local(2024, 6, 3, 9))
        ids = itertools.count(1)
        self.history = HistoryLedger(
            self.store,
            now_fn=self.clock,
            id_fn=lambda: f"rec-{next(ids)}",
        )

    def _record(self, mode: str, minutes: float, *, task: str | None = None) -> SessionRecord:
        record = self.history.record_completion(
            mode,
            int(minutes * 60_000),
            task_title=task,
        )
        self.clock.now += timedelta(minutes=30)
        return record

    def test_records_are_kept_newest_first_and_persisted(self) -> None:
        first = self._record(MODE_FOCUS, 25)
        second = self._record(MODE_SHORT_BREAK, 5)

        self.assertEqual([second.id, first.id], [record.id for record in self.history.sessions])
        document = json.loads(self.store.get("sessions"))
        self.assertEqual(["rec-2", "rec-1"], [item["id"] for item in document])
        self.assertEqual(25 * 60_000, document[1]["durationMs"])
        self.assertTrue(document[1]["completedAt"].endswith("Z"))

    def test_history_reloads_from_store(self) -> None:
        self._record(MODE_FOCUS, 25, task="Essay")

        reloaded = HistoryLedger(self.store)

        self.assertEqual(1, len(reloaded.sessions))
        self.assertEqual("Essay", reloaded.sessions[0].task_title)
        self.assertEqual(MODE_FOCUS, reloaded.sessions[0].mode)

    def test_malformed_records_are_dropped_on_load(self) -> None:
        store = MemoryKeyValueStore(
            {
                "sessions": json.dumps(
                    [
                        {"id": "ok", "mode": "Focus", "durationMs": 60000,
                         "completedAt": "2024-06-03T07:00:00.000Z"},
                        {"id": "bad-mode", "mode": "Nap", "durationMs": 60000,
                         "completedAt": "2024-06-03T07:00:00.000Z"},
                        {"id": "bad-time", "mode": "Focus", "durationMs": 60000,
                         "completedAt": "yesterday"},
                        "not a record",
                    ]
                )
            }
        )

        with self.assertLogs("ledger.history", level="WARNING"):
            history = HistoryLedger(store)

        self.assertEqual(["ok"], [record.id for record in history.sessions])

    def test_day_aggregates_count_only_focus_on_local_day(self) -> None:
        self._record(MODE_FOCUS, 25)
        self._record(MODE_SHORT_BREAK, 5)
        self._record(MODE_FOCUS, 24.6)
        self._record(MODE_LONG_BREAK, 15)
        self.clock.now = _local(2024, 6, 4, 9)
        self._record(MODE_FOCUS, 50)

        day = date(2024, 6, 3)
        self.assertEqual(4, len(self.history.sessions_on_day(day)))
        self.assertEqual(2, self.history.focus_count_on_day(day))
        self.assertEqual(50, self.history.focus_minutes_on_day(day))
        self.assertEqual(1, self.history.focus_count_on_day(date(2024, 6, 4)))
        self.assertEqual(3, self.history.focus_count())

    def test_duration_minutes_rounds_half_up(self) -> None:
        record = SessionRecord(
            id="r",
            mode=MODE_FOCUS,
            duration_ms=90_000,
            completed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        self.assertEqual(2, record.duration_minutes)

    def test_export_csv_quotes_every_field(self) -> None:
        self._record(MODE_FOCUS, 25, task='Fix "quoted", comma task')
        self._record(MODE_SHORT_BREAK, 5)

        text = self.history.export_csv()

        lines = text.split("\r\n")
        self.assertEqual('"completedAt","mode","durationMinutes","task"', lines[0])
        self.assertTrue(lines[1].startswith('"'))
        self.assertIn('"Fix ""quoted"", comma task"', text)

        rows = list(csv.reader(io.StringIO(text, newline="")))
        self.assertEqual(list(CSV_HEADER), rows[0])
        self.assertEqual(["Short Break", "5", ""], rows[1][1:])
        self.assertEqual(["Focus", "25", 'Fix "quoted", comma task'], rows[2][1:])

    def test_export_csv_with_no_sessions_has_only_header(self) -> None:
        rows = list(csv.reader(io.StringIO(self.history.export_csv(), newline="")))
        self.assertEqual([list(CSV_HEADER)], rows)

    def test_write_csv_uses_dated_filename(self) -> None:
        self._record(MODE_FOCUS, 25)

        with tempfile.TemporaryDirectory() as temp_dir:
            path = self.history.write_csv(Path(temp_dir) / "exports")

            self.assertEqual("pomodoro-sessions-2024-06-03.csv", path.name)
            self.assertTrue(path.read_text(encoding="utf-8").startswith('"completedAt"'))

    def test_clear_empties_history(self) -> None:
        self._record(MODE_FOCUS, 25)

        self.history.clear()

        self.assertEqual([], self.history.sessions)
        self.assertEqual([], json.loads(self.store.get("sessions")))


if __name__ == "__main__":
    unittest.main()
