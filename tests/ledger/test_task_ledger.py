import itertools
import json
import unittest
from datetime import datetime, timezone

from ledger import TaskLedger
from storage import MemoryKeyValueStore


def _ledger(store: MemoryKeyValueStore | None = None) -> TaskLedger:
    ids = itertools.count(1)
    return TaskLedger(
        store if store is not None else MemoryKeyValueStore(),
        now_fn=lambda: datetime(2024, 5, 6, 8, 30, tzinfo=timezone.utc),
        id_fn=lambda: f"task-{next(ids)}",
    )


class TaskLedgerTests(unittest.TestCase):
    def test_add_task_prepends_and_activates(self) -> None:
        ledger = _ledger()

        first = ledger.add_task("  Draft   outline ")
        second = ledger.add_task("Review PR")

        self.assertEqual("Draft outline", first.title)
        self.assertEqual([second.id, first.id], [task.id for task in ledger.tasks])
        self.assertEqual(second.id, ledger.active_task_id)

    def test_add_task_rejects_blank_title(self) -> None:
        ledger = _ledger()
        self.assertIsNone(ledger.add_task("   "))
        self.assertEqual([], ledger.tasks)

    def test_upsert_twice_reuses_open_task_case_insensitively(self) -> None:
        ledger = _ledger()

        first = ledger.upsert_task("Write Report")
        ledger.add_task("Something else")
        second = ledger.upsert_task("write report")

        self.assertEqual(first.id, second.id)
        self.assertEqual(2, len(ledger.tasks))
        self.assertEqual(first.id, ledger.active_task_id)

    def test_upsert_ignores_completed_match(self) -> None:
        ledger = _ledger()
        done = ledger.add_task("Inbox zero")
        ledger.complete_task(done.id)

        reopened = ledger.upsert_task("inbox zero")

        self.assertNotEqual(done.id, reopened.id)
        self.assertEqual(2, len(ledger.tasks))

    def test_set_active_task_rejects_unknown_and_completed(self) -> None:
        ledger = _ledger()
        task = ledger.add_task("Plan sprint")
        ledger.complete_task(task.id)

        self.assertFalse(ledger.set_active_task("missing"))
        self.assertFalse(ledger.set_active_task(task.id))
        self.assertIsNone(ledger.active_task_id)

    def test_complete_active_task_clears_pointer_and_credits(self) -> None:
        ledger = _ledger()
        ledger.add_task("Refactor parser")

        completed = ledger.complete_active_task(add_pomo_units=0.5, add_focus_seconds=600)

        self.assertTrue(completed.is_completed)
        self.assertEqual(0.5, completed.pomo_units)
        self.assertEqual(600, completed.focus_seconds)
        self.assertIsNone(ledger.active_task_id)
        self.assertEqual((1, 1), ledger.progress())

    def test_complete_active_task_without_active_is_noop(self) -> None:
        self.assertIsNone(_ledger().complete_active_task())

    def test_abandon_keeps_task_but_clears_pointer(self) -> None:
        ledger = _ledger()
        task = ledger.add_task("Read paper")

        ledger.abandon_active_task()

        self.assertIsNone(ledger.active_task)
        self.assertFalse(ledger.get(task.id).is_completed)

    def test_delete_active_task_clears_pointer(self) -> None:
        ledger = _ledger()
        task = ledger.add_task("Temporary")

        self.assertTrue(ledger.delete_task(task.id))
        self.assertFalse(ledger.delete_task(task.id))
        self.assertIsNone(ledger.active_task_id)
        self.assertEqual([], ledger.tasks)

    def test_log_focus_accumulates_on_active_task(self) -> None:
        ledger = _ledger()
        ledger.add_task("Deep work")

        ledger.log_focus_for_active_task(1500, 1)
        updated = ledger.log_focus_for_active_task(1500, 1)

        self.assertEqual(2, updated.pomo_units)
        self.assertEqual(3000, updated.focus_seconds)

    def test_log_focus_without_active_task_is_noop(self) -> None:
        ledger = _ledger()
        task = ledger.add_task("Idle")
        ledger.abandon_active_task()

        self.assertIsNone(ledger.log_focus_for_active_task(1500, 1))
        self.assertEqual(0, ledger.get(task.id).pomo_units)

    def test_state_persists_versioned_document(self) -> None:
        store = MemoryKeyValueStore()
        ledger = _ledger(store)
        task = ledger.add_task("Persist me")

        document = json.loads(store.get("tasks"))

        self.assertEqual(1, document["version"])
        self.assertEqual(task.id, document["activeTaskId"])
        self.assertEqual("Persist me", document["tasks"][0]["title"])
        self.assertEqual(task.id, _ledger(store).active_task_id)

    def test_import_of_export_is_idempotent(self) -> None:
        ledger = _ledger()
        ledger.add_task("One")
        second = ledger.add_task("Two")
        ledger.log_focus_for_active_task(900, 0.5)
        ledger.complete_task(second.id)
        exported = ledger.export_document()

        self.assertTrue(ledger.import_document(exported))

        self.assertEqual(exported, ledger.export_document())

    def test_import_migrates_legacy_shape(self) -> None:
        ledger = _ledger()
        legacy = json.dumps(
            {
                "title": "Current thing",
                "completed": [
                    {"title": "Old thing", "completedAt": "2024-05-01T10:00:00.000Z"},
                    {"title": ""},
                ],
            }
        )

        self.assertTrue(ledger.import_document(legacy))

        titles = [task.title for task in ledger.tasks]
        self.assertEqual(["Current thing", "Old thing"], titles)
        self.assertEqual(ledger.tasks[0].id, ledger.active_task_id)
        self.assertTrue(ledger.tasks[1].is_completed)
        self.assertEqual(2, len({task.id for task in ledger.tasks}))

    def test_import_unknown_shape_yields_empty_ledger(self) -> None:
        ledger = _ledger()
        ledger.add_task("Will be replaced")

        self.assertTrue(ledger.import_document(json.dumps({"something": "else"})))

        self.assertEqual([], ledger.tasks)
        self.assertIsNone(ledger.active_task_id)

    def test_import_invalid_json_leaves_state_unchanged(self) -> None:
        ledger = _ledger()
        task = ledger.add_task("Keep me")

        with self.assertLogs("ledger.tasks", level="WARNING"):
            self.assertFalse(ledger.import_document("{broken"))

        self.assertEqual([task], ledger.tasks)

    def test_import_drops_active_pointer_to_completed_task(self) -> None:
        ledger = _ledger()
        payload = json.dumps(
            {
                "version": 1,
                "tasks": [
                    {
                        "id": "a",
                        "title": "Done already",
                        "createdAt": "2024-05-01T10:00:00.000Z",
                        "completedAt": "2024-05-01T11:00:00.000Z",
                    }
                ],
                "activeTaskId": "a",
            }
        )

        ledger.import_document(payload)

        self.assertIsNone(ledger.active_task_id)

    def test_clear_all(self) -> None:
        ledger = _ledger()
        ledger.add_task("A")
        ledger.add_task("B")

        ledger.clear_all()

        self.assertEqual([], ledger.tasks)
        self.assertEqual((0, 0), ledger.progress())


if __name__ == "__main__":
    unittest.main()
