"""Public exports for persisted key-value document storage."""

from .errors import PersistenceReadError, PersistenceWriteError, StorageError
from .store import (
    FileKeyValueStore,
    MemoryKeyValueStore,
    read_document,
    write_document,
)

__all__ = [
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "PersistenceReadError",
    "PersistenceWriteError",
    "StorageError",
    "read_document",
    "write_document",
]
