"""File-backed and in-memory string-keyed document stores."""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Optional

from contracts.collaborators import KeyValueStoreLike

from .errors import PersistenceReadError, PersistenceWriteError

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _validate_key(key: str) -> str:
    if not isinstance(key, str) or not _KEY_PATTERN.match(key):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class FileKeyValueStore:
    """Stores each key as `<data_dir>/<key>.json`, replaced atomically on write."""

    def __init__(
        self,
        data_dir: str | Path,
        logger: Optional[logging.Logger] = None,
    ):
        self._data_dir = Path(data_dir).expanduser()
        self._logger = logger or logging.getLogger("storage")
        self._lock = threading.Lock()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                return path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as error:
                raise PersistenceReadError(f"Failed to read {path}: {error}") from error

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        temp_path = path.with_suffix(".tmp")
        with self._lock:
            try:
                self._data_dir.mkdir(parents=True, exist_ok=True)
                temp_path.write_text(value, encoding="utf-8")
                os.replace(temp_path, path)
            except OSError as error:
                if temp_path.exists():
                    try:
                        temp_path.unlink()
                    except OSError:
                        self._logger.debug("Could not remove temp file %s", temp_path)
                raise PersistenceWriteError(f"Failed to write {path}: {error}") from error

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as error:
                raise PersistenceWriteError(f"Failed to remove {path}: {error}") from error

    def _path_for(self, key: str) -> Path:
        return self._data_dir / f"{_validate_key(key)}.json"


class MemoryKeyValueStore:
    """Dictionary-backed store used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(_validate_key(key))

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[_validate_key(key)] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(_validate_key(key), None)


def read_document(store: KeyValueStoreLike, key: str) -> Optional[Any]:
    """Return the decoded JSON document for `key`, or None when absent.

    Raises:
        PersistenceReadError: If the stored text cannot be read or parsed.
    """
    raw = store.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as error:
        raise PersistenceReadError(f"Stored document {key!r} is not valid JSON: {error}") from error


def write_document(store: KeyValueStoreLike, key: str, document: Any) -> None:
    """Serialize `document` as JSON and write it under `key` in one call."""
    store.set(key, json.dumps(document, ensure_ascii=False))
