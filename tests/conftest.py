"""
Pytest fixtures for testing
"""
import pytest

from smallearns.audit import AuditLogger, InMemoryAuditSink
from smallearns.services.storage import (
    InMemoryKeyValueBackend,
    RecordStore,
    StorageWriteError,
)
from smallearns.store import LocalDataStore


NAMESPACE = "smallearns_"


class CountingBackend(InMemoryKeyValueBackend):
    """In-memory backend that counts writes per key."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.set_calls: dict[str, int] = {}

    def set(self, key, value):
        self.set_calls[key] = self.set_calls.get(key, 0) + 1
        super().set(key, value)


class FailingBackend(InMemoryKeyValueBackend):
    """In-memory backend whose writes always fail, like a full disk."""

    def set(self, key, value):
        raise StorageWriteError(key, f"quota exceeded writing {key}")


@pytest.fixture
def backend():
    """Fresh in-memory key-value backend."""
    return CountingBackend()


@pytest.fixture
def audit_sink():
    """Collects audit events for assertions."""
    return InMemoryAuditSink()


@pytest.fixture
def audit_logger(audit_sink):
    return AuditLogger(sink=audit_sink)


@pytest.fixture
def record_store(backend, audit_logger):
    return RecordStore(backend, namespace=NAMESPACE, audit_logger=audit_logger)


@pytest.fixture
def store(backend, audit_sink):
    """Store with a short debounce; outside an event loop writes are immediate."""
    return LocalDataStore.create(
        backend=backend,
        audit_sink=audit_sink,
        debounce_seconds=0.02,
        namespace=NAMESPACE,
    )


@pytest.fixture
def failing_backend():
    """Backend that rejects every write."""
    return FailingBackend()
