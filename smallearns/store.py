"""
Local Data Store

The one object callers hold. It ties together the components and defines
the flows for:
1. Load (storage -> migrate -> validate -> cache, healing what it can)
2. Mutate (update cache -> schedule a debounced write)
3. Commit (update cache -> write now, used by the recurrence engine)
4. Replace everything (snapshot import)

The cache is the source of truth for readers. Durability lags it by at
most one debounce interval; a failed write leaves the cache correct and is
reported, never raised.
"""

from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from smallearns.audit import AuditLogger, AuditSinkInterface
from smallearns.models.audit import AuditEventBuilder
from smallearns.models.records import (
    RECORD_MODELS,
    Appointment,
    Collection,
    IncomeEntry,
    StoredRecord,
    ValidationReport,
)
from smallearns.services.storage import (
    DebouncedWriter,
    FileKeyValueBackend,
    InMemoryKeyValueBackend,
    KeyValueBackend,
    NotFoundError,
    PreferenceStore,
    RecordStore,
)
from smallearns.services.storage.writer import WriteFailedCallback
from smallearns.validation import RecordValidator


RecordLike = Union[StoredRecord, dict]


class DanglingReference(BaseModel):
    """A soft reference pointing at a record that does not exist."""

    collection: Collection
    record_id: str
    field: str
    target_id: str


class StoreHealth(BaseModel):
    """Snapshot of store consistency, for diagnostics screens."""

    counts: dict[str, int] = Field(default_factory=dict)
    quarantine_keys: list[str] = Field(default_factory=list)
    dangling_references: list[DanglingReference] = Field(default_factory=list)
    pending_writes: list[str] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.quarantine_keys and not self.dangling_references


# (collection, attribute, target collection) for every soft reference
REFERENCES = (
    (Collection.APPOINTMENTS, "client_id", Collection.CLIENTS),
    (Collection.APPOINTMENTS, "recurring_rule_id", Collection.RECURRING_RULES),
    (Collection.INCOME, "client_id", Collection.CLIENTS),
    (Collection.INCOME, "appointment_id", Collection.APPOINTMENTS),
    (Collection.MILEAGE, "client_id", Collection.CLIENTS),
    (Collection.INVOICES, "client_id", Collection.CLIENTS),
    (Collection.RECURRING_RULES, "client_id", Collection.CLIENTS),
)


def _missing_id(raw: object) -> bool:
    # A record given a fresh id must keep it across reloads
    return isinstance(raw, dict) and raw.get("id") in (None, "")


class LocalDataStore:
    """
    Cached, validated access to every collection.

    Flow for readers: `get()` loads a collection on first use, so
    "never initialized" and "empty" look the same.
    """

    def __init__(
        self,
        record_store: RecordStore,
        writer: Optional[DebouncedWriter] = None,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._records = record_store
        self._writer = writer or DebouncedWriter(record_store)
        self._validator = validator or RecordValidator()
        self._audit = audit_logger or AuditLogger()
        self._preferences = PreferenceStore(record_store.backend)
        self._cache: dict[Collection, list[StoredRecord]] = {}

    @classmethod
    def create(
        cls,
        backend: Optional[KeyValueBackend] = None,
        audit_sink: Optional[AuditSinkInterface] = None,
        debounce_seconds: Optional[float] = None,
        on_write_failed: Optional[WriteFailedCallback] = None,
        namespace: Optional[str] = None,
    ) -> "LocalDataStore":
        """
        Wire up a store with its collaborators.

        Args:
            backend: Durable storage; defaults to files in the configured data dir
            audit_sink: Optional destination for audit events
            debounce_seconds: Overrides the configured quiet interval
            on_write_failed: Called with the collection when a write is lost
            namespace: Overrides the configured key namespace
        """
        audit_logger = AuditLogger(sink=audit_sink)
        record_store = RecordStore(
            backend or FileKeyValueBackend(),
            namespace=namespace,
            audit_logger=audit_logger,
        )
        writer = DebouncedWriter(
            record_store,
            debounce_seconds=debounce_seconds,
            on_write_failed=on_write_failed,
        )
        return cls(record_store, writer=writer, audit_logger=audit_logger)

    @classmethod
    def in_memory(
        cls,
        audit_sink: Optional[AuditSinkInterface] = None,
        debounce_seconds: Optional[float] = None,
    ) -> "LocalDataStore":
        """Throwaway store, nothing touches the disk."""
        return cls.create(
            backend=InMemoryKeyValueBackend(),
            audit_sink=audit_sink,
            debounce_seconds=debounce_seconds,
        )

    @property
    def record_store(self) -> RecordStore:
        return self._records

    @property
    def writer(self) -> DebouncedWriter:
        return self._writer

    @property
    def validator(self) -> RecordValidator:
        return self._validator

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def preferences(self) -> PreferenceStore:
        return self._preferences

    # =========================================================================
    # Loading
    # =========================================================================

    def load(
        self,
        collections: Optional[Iterable[Collection]] = None,
    ) -> dict[Collection, ValidationReport]:
        """
        Read, migrate and validate collections into the cache.

        Dropped records are quarantined, and a collection that was migrated,
        healed or read from a legacy key is written back in its current
        shape right away.

        Raises:
            UnsupportedSchemaVersionError: If stored data is newer than this
                build; nothing is overwritten in that case
        """
        reports = {}
        for collection in collections or list(Collection):
            reports[collection] = self._load_collection(collection)
        return reports

    def _load_collection(self, collection: Collection) -> ValidationReport:
        source_key = self._records.source_key(collection)
        raw = self._records.read(collection)
        version = self._records.read_version(collection)

        records, report = self._validator.validate(collection, raw, version)

        if report.rejected:
            self._records.quarantine(
                collection,
                report.rejected,
                reason=f"{report.dropped_count} record(s) failed validation",
            )

        self._cache[collection] = records
        self._audit.log_validation(report)

        needs_rewrite = (
            report.migrated
            or report.dropped_count > 0
            or (source_key is not None and source_key != self._records.key_for(collection))
            or any(_missing_id(raw_record) for raw_record in raw)
        )
        if raw and needs_rewrite:
            self._records.write(collection, records)

        return report

    def _ensure_loaded(self, collection: Collection) -> list[StoredRecord]:
        if collection not in self._cache:
            self._load_collection(collection)
        return self._cache[collection]

    def is_loaded(self, collection: Collection) -> bool:
        return collection in self._cache

    # =========================================================================
    # Reading
    # =========================================================================

    def get(self, collection: Collection) -> list[StoredRecord]:
        """Current records of a collection (a new list each call)."""
        return list(self._ensure_loaded(collection))

    def find(self, collection: Collection, record_id: str) -> Optional[StoredRecord]:
        for record in self._ensure_loaded(collection):
            if record.id == record_id:
                return record
        return None

    def require(self, collection: Collection, record_id: str) -> StoredRecord:
        """Like find(), but a missing record is an error."""
        record = self.find(collection, record_id)
        if record is None:
            raise NotFoundError(f"No {collection.value} record with id {record_id}")
        return record

    def linked_appointment(self, income: IncomeEntry) -> Optional[Appointment]:
        """
        The appointment an income entry explicitly references.

        Only `appointment_id` counts. No id means no linked appointment.
        """
        if not income.appointment_id:
            return None
        return self.find(Collection.APPOINTMENTS, income.appointment_id)

    # =========================================================================
    # Mutating
    # =========================================================================

    def _coerce(self, collection: Collection, records: Iterable[RecordLike]) -> list[StoredRecord]:
        model = RECORD_MODELS[collection]
        coerced = []
        for record in records:
            if isinstance(record, model):
                coerced.append(record)
            elif isinstance(record, StoredRecord):
                coerced.append(model.model_validate(record.to_storage()))
            else:
                coerced.append(model.model_validate(record))
        return coerced

    def set(self, collection: Collection, records: Iterable[RecordLike]) -> list[StoredRecord]:
        """
        Replace a collection in the cache and schedule its durable write.

        Raises:
            pydantic.ValidationError: If a record does not fit the collection
        """
        coerced = self._coerce(collection, records)
        self._cache[collection] = coerced
        self._writer.schedule(collection, coerced)
        return list(coerced)

    def upsert(self, collection: Collection, record: RecordLike) -> StoredRecord:
        """Insert a record, or replace the one with the same id."""
        (new_record,) = self._coerce(collection, [record])
        records = self.get(collection)
        for index, existing in enumerate(records):
            if existing.id == new_record.id:
                records[index] = new_record
                break
        else:
            records.append(new_record)
        self.set(collection, records)
        return new_record

    def remove(self, collection: Collection, record_id: str) -> bool:
        """Delete a record by id. Returns False if it did not exist."""
        records = self.get(collection)
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        self.set(collection, remaining)
        return True

    def commit(
        self,
        collection: Collection,
        records: Optional[Iterable[RecordLike]] = None,
    ) -> bool:
        """
        Write a collection now, bypassing the debounce.

        Any pending debounced write of the collection is superseded.

        Returns:
            True if the write was durable
        """
        if records is not None:
            self._cache[collection] = self._coerce(collection, records)
        current = self._ensure_loaded(collection)
        self._writer.discard(collection)
        return self._records.write(collection, current)

    def replace_all(self, collections: dict[Collection, list[StoredRecord]]) -> bool:
        """
        Replace every collection at once (no merge).

        Collections absent from `collections` become empty. Pending
        debounced writes are discarded first so none of them can land on
        top of the new state.

        Returns:
            True if every collection was written
        """
        self._writer.discard()
        ok = True
        for collection in Collection:
            records = self._coerce(collection, collections.get(collection, []))
            self._cache[collection] = records
            ok = self._records.write(collection, records) and ok
        return ok

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def flush(self) -> bool:
        return self._writer.flush()

    def close(self) -> bool:
        return self._writer.close()

    def reset(self) -> list[str]:
        """
        Delete every stored collection, marker, quarantine and preference.

        Returns:
            The deleted keys
        """
        self._writer.discard()
        deleted = [
            key for key in self._records.namespaced_keys()
            if self._records.delete_key(key)
        ]
        deleted.extend(self._preferences.clear_all())
        self._cache.clear()
        self._audit.log(AuditEventBuilder.store_reset(deleted_keys=deleted))
        return deleted

    def health_check(self) -> StoreHealth:
        """Counts, quarantined data and dangling soft references."""
        ids = {
            collection: {record.id for record in self._ensure_loaded(collection)}
            for collection in Collection
        }

        dangling = []
        for collection, attribute, target in REFERENCES:
            for record in self._ensure_loaded(collection):
                target_id = getattr(record, attribute, None)
                if target_id and target_id not in ids[target]:
                    dangling.append(DanglingReference(
                        collection=collection,
                        record_id=record.id,
                        field=attribute,
                        target_id=target_id,
                    ))

        return StoreHealth(
            counts={c.value: len(ids[c]) for c in Collection},
            quarantine_keys=self._records.quarantine_keys(),
            dangling_references=dangling,
            pending_writes=[c.value for c in self._writer.pending_collections()],
        )
