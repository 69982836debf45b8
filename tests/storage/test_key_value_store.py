import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from storage import (
    FileKeyValueStore,
    MemoryKeyValueStore,
    PersistenceReadError,
    PersistenceWriteError,
    read_document,
    write_document,
)


class FileKeyValueStoreTests(unittest.TestCase):
    def test_set_creates_directory_and_round_trips(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "nested" / "data"
            store = FileKeyValueStore(data_dir)

            store.set("timerSettings", '{"Focus": 30}')

            self.assertEqual('{"Focus": 30}', store.get("timerSettings"))
            self.assertTrue((data_dir / "timerSettings.json").is_file())
            self.assertEqual([], list(data_dir.glob("*.tmp")))

    def test_missing_key_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertIsNone(FileKeyValueStore(temp_dir).get("sessions"))

    def test_remove_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = FileKeyValueStore(temp_dir)
            store.set("tasks", "{}")

            store.remove("tasks")
            store.remove("tasks")

            self.assertIsNone(store.get("tasks"))

    def test_invalid_key_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = FileKeyValueStore(temp_dir)
            with self.assertRaises(ValueError):
                store.set("../escape", "{}")

    def test_write_failure_raises_persistence_write_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = FileKeyValueStore(temp_dir)
            with patch("storage.store.os.replace", side_effect=OSError("read-only")):
                with self.assertRaises(PersistenceWriteError):
                    store.set("sessions", "[]")
            self.assertEqual([], list(Path(temp_dir).glob("*.tmp")))

    def test_unreadable_file_raises_persistence_read_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            (Path(temp_dir) / "sessions.json").write_bytes(b"\xff\xfe\x00bad")
            store = FileKeyValueStore(temp_dir)
            with self.assertRaises(PersistenceReadError):
                store.get("sessions")


class DocumentHelperTests(unittest.TestCase):
    def test_write_then_read_document(self) -> None:
        store = MemoryKeyValueStore()
        write_document(store, "soundPreferences", {"notificationVolume": 50, "title": "Café"})

        self.assertIn("Café", store.get("soundPreferences"))
        self.assertEqual(
            {"notificationVolume": 50, "title": "Café"},
            read_document(store, "soundPreferences"),
        )

    def test_blank_document_reads_as_none(self) -> None:
        store = MemoryKeyValueStore({"tasks": "   "})
        self.assertIsNone(read_document(store, "tasks"))

    def test_corrupt_document_raises(self) -> None:
        store = MemoryKeyValueStore({"tasks": "{nope"})
        with self.assertRaises(PersistenceReadError):
            read_document(store, "tasks")


if __name__ == "__main__":
    unittest.main()
