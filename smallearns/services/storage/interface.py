"""
Abstract Storage Interface

The store persists everything in a flat key-value space: one key per
collection, holding a JSON array, plus small marker and preference keys.
Any durable backend (files on disk, a browser-like local storage, a test
dictionary) only has to provide these four string operations.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueBackend(ABC):
    """
    Abstract interface for durable key-value storage.

    Values are opaque strings (JSON text). Implementations must make a
    successful `set` durable before returning.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored text, or None if the key does not exist

        Raises:
            CorruptValueError: If the stored bytes are not valid UTF-8
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: Storage key
            value: Text to store

        Raises:
            StorageWriteError: If the value could not be made durable
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Args:
            key: Storage key

        Returns:
            True if the key existed and was removed, False if it was absent

        Raises:
            StorageWriteError: If the key exists but could not be removed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """
        List every stored key.

        Returns:
            Keys in no particular order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageWriteError(StorageError):
    """A value could not be written or deleted (quota, permissions, disk)."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(message)


class CorruptValueError(StorageError):
    """A stored value exists but is not valid text."""

    def __init__(self, key: str, raw: bytes, message: str):
        self.key = key
        self.raw = raw
        super().__init__(message)

    @property
    def text(self) -> str:
        """The value with undecodable bytes escaped, nothing dropped."""
        return self.raw.decode("utf-8", errors="backslashreplace")


class NotFoundError(StorageError):
    """Record not found in a collection."""
    pass
