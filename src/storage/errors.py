class StorageError(Exception):
    """Base exception for persisted document storage."""


class PersistenceReadError(StorageError):
    """Raised when a stored document cannot be read or decoded."""


class PersistenceWriteError(StorageError):
    """Raised when a document cannot be written to the store."""
