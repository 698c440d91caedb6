"""
Tests for the debounced writer.

Timers need a running event loop, so the coalescing tests drive one with
asyncio.run.
"""

import asyncio
import atexit
import json

import pytest

from smallearns.models.records import Client, Collection
from smallearns.services.storage import (
    DebouncedWriter,
    RecordStore,
    StorageWriteError,
    WriterClosedError,
)


CLIENTS_KEY = "smallearns_clients"


def _names(backend):
    return [r["name"] for r in json.loads(backend.get(CLIENTS_KEY))]


class TestDebouncedWriter:
    """Tests for write coalescing."""

    def test_burst_is_coalesced_into_one_write(self, record_store, backend):
        """Test that only the final state of a burst is written, once."""

        async def scenario():
            writer = DebouncedWriter(record_store, debounce_seconds=0.05)
            for i in range(5):
                writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": f"Dana v{i}"}])

            assert backend.get(CLIENTS_KEY) is None
            assert writer.has_pending(Collection.CLIENTS)

            await asyncio.sleep(0.2)
            assert not writer.has_pending()

        asyncio.run(scenario())

        assert backend.set_calls[CLIENTS_KEY] == 1
        assert _names(backend) == ["Dana v4"]

    def test_collections_are_independent(self, record_store, backend):
        async def scenario():
            writer = DebouncedWriter(record_store, debounce_seconds=0.02)
            writer.schedule(Collection.CLIENTS, [Client(id="c1", name="Dana")])
            writer.schedule(Collection.EXPENSES, [])
            assert set(writer.pending_collections()) == {Collection.CLIENTS, Collection.EXPENSES}
            await asyncio.sleep(0.1)

        asyncio.run(scenario())

        assert backend.get("smallearns_expenses") == "[]"
        assert _names(backend) == ["Dana"]

    def test_payload_is_snapshotted(self, record_store, backend):
        """Test that later changes to the caller's list do not leak into the write."""

        async def scenario():
            writer = DebouncedWriter(record_store, debounce_seconds=0.02)
            records = [{"id": "c1", "name": "Dana"}]
            writer.schedule(Collection.CLIENTS, records)
            records[0]["name"] = "Changed"
            records.append({"id": "c2", "name": "Lee"})
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert _names(backend) == ["Dana"]

    def test_flush_writes_pending_now(self, record_store, backend):
        """Test teardown flushing inside a running loop."""

        async def scenario():
            writer = DebouncedWriter(record_store, debounce_seconds=5)
            writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": "Dana"}])
            assert writer.flush() is True
            assert not writer.has_pending()

        asyncio.run(scenario())
        assert _names(backend) == ["Dana"]

    def test_discard_drops_pending(self, record_store, backend):
        async def scenario():
            writer = DebouncedWriter(record_store, debounce_seconds=0.02)
            writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": "Dana"}])
            writer.discard(Collection.CLIENTS)
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert backend.get(CLIENTS_KEY) is None

    def test_without_event_loop_writes_immediately(self, record_store, backend):
        writer = DebouncedWriter(record_store, debounce_seconds=5)
        writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": "Dana"}])
        assert not writer.has_pending()
        assert _names(backend) == ["Dana"]

    def test_close_flushes_and_refuses_new_writes(self, record_store, backend):
        async def scenario():
            writer = DebouncedWriter(record_store, debounce_seconds=5)
            writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": "Dana"}])
            assert writer.close() is True
            assert writer.closed
            with pytest.raises(WriterClosedError):
                writer.schedule(Collection.CLIENTS, [])

        asyncio.run(scenario())
        assert _names(backend) == ["Dana"]

    def test_failed_write_is_reported(self, failing_backend, audit_logger):
        """Test that a storage failure reaches the callback and flush result."""
        failed = []
        store = RecordStore(failing_backend, namespace="smallearns_", audit_logger=audit_logger)

        async def scenario():
            writer = DebouncedWriter(store, debounce_seconds=5, on_write_failed=failed.append)
            writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": "Dana"}])
            assert writer.flush() is False

        asyncio.run(scenario())
        assert failed == [Collection.CLIENTS]

    def test_failed_payload_is_retried_on_flush(self, backend, audit_logger, monkeypatch):
        """Test that a payload survives a failed write and lands on the next flush."""
        store = RecordStore(backend, namespace="smallearns_", audit_logger=audit_logger)
        writer = DebouncedWriter(store, debounce_seconds=5)
        real_set = backend.set

        def full_disk(key, value):
            raise StorageWriteError(key, "quota exceeded")

        monkeypatch.setattr(backend, "set", full_disk)
        writer.schedule(Collection.CLIENTS, [{"id": "c1", "name": "Dana"}])
        assert writer.has_pending(Collection.CLIENTS)

        monkeypatch.setattr(backend, "set", real_set)
        assert writer.flush() is True
        assert not writer.has_pending()
        assert _names(backend) == ["Dana"]

    def test_teardown_hook(self, record_store, monkeypatch):
        registered = []
        monkeypatch.setattr(atexit, "register", registered.append)
        monkeypatch.setattr(atexit, "unregister", registered.remove)

        writer = DebouncedWriter(record_store, debounce_seconds=5)
        writer.install_teardown_hook()
        writer.install_teardown_hook()
        assert registered == [writer.flush]

        writer.close()
        assert registered == []

    def test_default_delay_from_settings(self, record_store):
        assert DebouncedWriter(record_store).delay == 0.5
