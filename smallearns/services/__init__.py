"""Services package."""

from smallearns.services.storage import (
    CorruptValueError,
    DebouncedWriter,
    FileKeyValueBackend,
    InMemoryKeyValueBackend,
    KeyValueBackend,
    NotFoundError,
    PreferenceStore,
    RecordStore,
    StorageError,
    StorageWriteError,
)

__all__ = [
    # Storage services
    "CorruptValueError",
    "DebouncedWriter",
    "FileKeyValueBackend",
    "InMemoryKeyValueBackend",
    "KeyValueBackend",
    "NotFoundError",
    "PreferenceStore",
    "RecordStore",
    "StorageError",
    "StorageWriteError",
]
