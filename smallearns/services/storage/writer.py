"""
Debounced Writer

Coalesces bursts of mutations into one durable write per collection.

Every `schedule()` replaces the pending payload of that collection and
restarts its quiet-interval timer, so only the final state is ever
written.

Debouncing needs a running asyncio event loop: timers live on it. Called
from synchronous code with no running loop, `schedule()` writes straight
through and nothing is coalesced.

A payload whose write fails stays pending, so a later `flush()` retries it.
On teardown call `flush()` (or `close()`, or install the atexit hook) so
pending writes are made durable instead of lost.
"""

import asyncio
import atexit
from typing import Callable, Iterable, Optional, Union

import structlog

from smallearns.config import get_settings
from smallearns.models.records import Collection, StoredRecord
from smallearns.services.storage.record_store import RecordStore


WriteFailedCallback = Callable[[Collection], None]


class WriterClosedError(RuntimeError):
    """A write was scheduled after the writer was closed."""
    pass


class DebouncedWriter:
    """Per-collection write coalescing on top of a RecordStore."""

    def __init__(
        self,
        record_store: RecordStore,
        debounce_seconds: Optional[float] = None,
        on_write_failed: Optional[WriteFailedCallback] = None,
    ):
        """
        Initialize the writer.

        Args:
            record_store: Where payloads are finally written
            debounce_seconds: Quiet interval; defaults to the configured one
            on_write_failed: Called with the collection whenever a durable
                             write fails. In-memory state is unaffected.
        """
        self._store = record_store
        self._delay = (
            debounce_seconds
            if debounce_seconds is not None
            else get_settings().writer.debounce_seconds
        )
        self._on_write_failed = on_write_failed
        self._pending: dict[Collection, list] = {}
        self._timers: dict[Collection, asyncio.TimerHandle] = {}
        self._closed = False
        self._hook_installed = False
        self._logger = structlog.get_logger(__name__)

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def closed(self) -> bool:
        return self._closed

    def has_pending(self, collection: Optional[Collection] = None) -> bool:
        if collection is None:
            return bool(self._pending)
        return collection in self._pending

    def pending_collections(self) -> list[Collection]:
        return list(self._pending)

    def schedule(
        self,
        collection: Collection,
        records: Iterable[Union[StoredRecord, dict]],
    ) -> None:
        """
        Schedule `records` as the next durable state of `collection`.

        The payload is snapshotted now: later changes to the caller's list
        do not leak into the write.
        """
        if self._closed:
            raise WriterClosedError(f"Writer is closed; cannot schedule {collection.value}")

        self._pending[collection] = [
            record.to_storage() if isinstance(record, StoredRecord) else dict(record)
            for record in records
        ]
        self._cancel_timer(collection)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write(collection)
            return

        self._timers[collection] = loop.call_later(self._delay, self._write, collection)

    def flush(self, collection: Optional[Collection] = None) -> bool:
        """
        Write pending payloads now.

        Args:
            collection: Only flush this collection; None flushes all

        Returns:
            True if every flushed write succeeded
        """
        targets = [collection] if collection is not None else list(self._pending)
        ok = True
        for target in targets:
            self._cancel_timer(target)
            ok = self._write(target) and ok
        return ok

    def discard(self, collection: Optional[Collection] = None) -> None:
        """Drop pending payloads without writing them."""
        targets = [collection] if collection is not None else list(self._pending)
        for target in targets:
            self._cancel_timer(target)
            if self._pending.pop(target, None) is not None:
                self._logger.debug("pending_write_discarded", collection=target.value)

    def close(self) -> bool:
        """Flush everything and refuse further schedules."""
        ok = self.flush()
        self._closed = True
        if self._hook_installed:
            atexit.unregister(self.flush)
            self._hook_installed = False
        return ok

    def install_teardown_hook(self) -> None:
        """Flush pending writes when the interpreter exits."""
        if not self._hook_installed:
            atexit.register(self.flush)
            self._hook_installed = True

    def _cancel_timer(self, collection: Collection) -> None:
        timer = self._timers.pop(collection, None)
        if timer is not None:
            timer.cancel()

    def _write(self, collection: Collection) -> bool:
        self._timers.pop(collection, None)
        records = self._pending.pop(collection, None)
        if records is None:
            return True

        if self._store.write(collection, records):
            return True

        # Kept for the next flush unless a newer payload was scheduled meanwhile
        self._pending.setdefault(collection, records)
        self._logger.warning(
            "debounced_write_failed",
            collection=collection.value,
            records=len(records),
        )
        if self._on_write_failed is not None:
            self._on_write_failed(collection)
        return False
