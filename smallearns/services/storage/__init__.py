"""
Storage Services Package

Provides the abstract key-value interface, concrete backends, and the
collection-level record store, debounced writer and preference store
built on top of it. The file backend is the default, but any backend
implementing KeyValueBackend can be swapped in.
"""

from smallearns.services.storage.interface import (
    CorruptValueError,
    KeyValueBackend,
    NotFoundError,
    StorageError,
    StorageWriteError,
)
from smallearns.services.storage.backends import (
    FileKeyValueBackend,
    InMemoryKeyValueBackend,
)
from smallearns.services.storage.preferences import (
    PREFERENCE_KEYS,
    PreferenceStore,
    UnknownPreferenceError,
)
from smallearns.services.storage.record_store import LEGACY_KEYS, RecordStore
from smallearns.services.storage.writer import DebouncedWriter, WriterClosedError

__all__ = [
    # Interfaces
    "KeyValueBackend",
    # Exceptions
    "CorruptValueError",
    "NotFoundError",
    "StorageError",
    "StorageWriteError",
    "UnknownPreferenceError",
    "WriterClosedError",
    # Backends
    "FileKeyValueBackend",
    "InMemoryKeyValueBackend",
    # Collections
    "LEGACY_KEYS",
    "RecordStore",
    "DebouncedWriter",
    # Preferences
    "PREFERENCE_KEYS",
    "PreferenceStore",
]
