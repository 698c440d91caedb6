"""
Record Store

Typed access to the flat key-value space: one JSON array per collection,
one schema version marker per collection, and quarantine keys that hold
whatever could not be loaded.

Key layout (default namespace "smallearns_"):
    smallearns_<collection>                 JSON array of records
    smallearns_<collection>_schemaVersion   integer version marker
    smallearns_quarantine_<collection>      JSON array of set-aside payloads

Failure policy:
- `read` never raises for missing or corrupt data: it returns [] and sets
  the corrupt payload aside in quarantine
- `write` never raises for storage failures: it returns False and logs
- writes are last-writer-wins; nothing spans collections
"""

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

import structlog

from smallearns.audit import AuditLogger
from smallearns.config import get_settings
from smallearns.models.records import SCHEMA_VERSION, Collection, StoredRecord
from smallearns.services.storage.interface import (
    CorruptValueError,
    KeyValueBackend,
    StorageError,
)


VERSION_SUFFIX = "_schemaVersion"
QUARANTINE_PREFIX = "quarantine_"

# Keys written by older releases before the collection names were unified.
# Read only when the current key is absent.
LEGACY_KEYS: dict[Collection, str] = {
    Collection.RECURRING_RULES: "recurring_appointments",
    Collection.BUSINESS_GOALS: "business_goals",
    Collection.SERVICE_PACKAGES: "service_packages",
}


class RecordStore:
    """
    Collection-level persistence over a KeyValueBackend.

    Knows nothing about record shapes beyond "a JSON array"; migration
    and validation happen in smallearns.validation.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        namespace: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the record store.

        Args:
            backend: Durable key-value storage
            namespace: Key prefix; defaults to the configured namespace
            audit_logger: Receives quarantine and write-failure events.
                          If None, a sink-less logger is used.
        """
        self._backend = backend
        self._namespace = namespace or get_settings().storage.key_namespace
        self._audit = audit_logger or AuditLogger()
        self._logger = structlog.get_logger(__name__)

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    @property
    def namespace(self) -> str:
        return self._namespace

    # =========================================================================
    # Keys
    # =========================================================================

    def key_for(self, collection: Collection) -> str:
        return f"{self._namespace}{collection.value}"

    def version_key_for(self, collection: Collection) -> str:
        return f"{self.key_for(collection)}{VERSION_SUFFIX}"

    def quarantine_key_for(self, collection: Collection) -> str:
        return f"{self._namespace}{QUARANTINE_PREFIX}{collection.value}"

    def legacy_key_for(self, collection: Collection) -> Optional[str]:
        legacy = LEGACY_KEYS.get(collection)
        return f"{self._namespace}{legacy}" if legacy else None

    def namespaced_keys(self) -> list[str]:
        """Every stored key that belongs to this store's namespace."""
        return sorted(
            key for key in self._backend.keys()
            if key.startswith(self._namespace)
        )

    def quarantine_keys(self) -> list[str]:
        prefix = f"{self._namespace}{QUARANTINE_PREFIX}"
        return [key for key in self.namespaced_keys() if key.startswith(prefix)]

    # =========================================================================
    # Collections
    # =========================================================================

    def _get(self, key: str) -> Optional[str]:
        try:
            return self._backend.get(key)
        except CorruptValueError:
            raise
        except StorageError as e:
            self._logger.warning("storage_read_failed", key=key, error=str(e))
            return None

    def _present(self, key: str) -> bool:
        try:
            return self._get(key) is not None
        except CorruptValueError:
            return True

    def source_key(self, collection: Collection) -> Optional[str]:
        """Key the collection is currently read from (current or legacy)."""
        key = self.key_for(collection)
        if self._present(key):
            return key
        legacy = self.legacy_key_for(collection)
        if legacy and self._present(legacy):
            return legacy
        return None

    def read(self, collection: Collection) -> list:
        """
        Read the raw records of a collection.

        Returns:
            The decoded JSON array, or [] when the key is missing, unreadable,
            not UTF-8, not JSON, or not an array
        """
        key = self.source_key(collection)
        if key is None:
            return []

        try:
            text = self._get(key)
        except CorruptValueError as e:
            self._set_aside(collection, key, e.text, f"invalid UTF-8: {e}")
            return []
        if text is None:
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            self._set_aside(collection, key, text, f"invalid JSON: {e}")
            return []

        if not isinstance(data, list):
            self._set_aside(
                collection,
                key,
                data,
                f"expected a JSON array, got {type(data).__name__}",
            )
            return []

        return data

    def read_version(self, collection: Collection) -> Any:
        """
        Read the stored schema version marker.

        Returns:
            The decoded marker (normally an int), or None when absent.
            Data read from a legacy key never has a marker.
        """
        if self.source_key(collection) != self.key_for(collection):
            return None
        try:
            text = self._get(self.version_key_for(collection))
        except CorruptValueError as e:
            return e.text
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    def write(
        self,
        collection: Collection,
        records: Iterable[Union[StoredRecord, dict]],
    ) -> bool:
        """
        Replace a collection and stamp it with the current schema version.

        Returns:
            True if both the data and the marker were written
        """
        payload = [
            record.to_storage() if isinstance(record, StoredRecord) else record
            for record in records
        ]
        key = self.key_for(collection)
        try:
            self._backend.set(key, json.dumps(payload, ensure_ascii=False))
            self._backend.set(self.version_key_for(collection), str(SCHEMA_VERSION))
        except StorageError as e:
            self._audit.log_write_failed(collection, key, str(e))
            return False
        return True

    def delete(self, collection: Collection) -> bool:
        """Remove a collection, its marker and any legacy copy."""
        keys = [self.key_for(collection), self.version_key_for(collection)]
        legacy = self.legacy_key_for(collection)
        if legacy:
            keys.append(legacy)
        try:
            for key in keys:
                self._backend.delete(key)
        except StorageError as e:
            self._audit.log_write_failed(collection, self.key_for(collection), str(e))
            return False
        return True

    # =========================================================================
    # Quarantine
    # =========================================================================

    def read_quarantine(self, collection: Collection) -> list:
        try:
            text = self._get(self.quarantine_key_for(collection))
        except CorruptValueError as e:
            return [{"reason": "unreadable quarantine", "payload": e.text}]
        if text is None:
            return []
        try:
            entries = json.loads(text)
        except json.JSONDecodeError:
            return [{"reason": "unreadable quarantine", "payload": text}]
        return entries if isinstance(entries, list) else [entries]

    def quarantine(
        self,
        collection: Collection,
        payload: Any,
        reason: str,
    ) -> Optional[str]:
        """
        Set data aside instead of loading it.

        Entries are appended to the collection's quarantine key, so
        repeated problems never overwrite earlier evidence.

        Returns:
            The quarantine key, or None if it could not be written
        """
        key = self.quarantine_key_for(collection)
        entries = self.read_quarantine(collection)
        entries.append({
            "quarantinedAt": datetime.now(timezone.utc).isoformat(),
            "reason": reason,
            "payload": payload,
        })
        try:
            self._backend.set(key, json.dumps(entries, ensure_ascii=False, default=str))
        except StorageError as e:
            self._audit.log_write_failed(collection, key, str(e))
            return None

        self._audit.log_quarantined(collection, reason, key)
        return key

    def delete_key(self, key: str) -> bool:
        """Remove a single raw key (used by reset)."""
        try:
            return self._backend.delete(key)
        except StorageError as e:
            self._audit.log_write_failed(None, key, str(e))
            return False

    def _set_aside(self, collection: Collection, key: str, payload: Any, reason: str) -> None:
        # The corrupt original is replaced only once its copy is safe
        if self.quarantine(collection, payload, reason=reason) is None:
            return
        if key == self.key_for(collection):
            # An empty current key keeps a stale legacy key shadowed
            self.write(collection, [])
        else:
            self.delete_key(key)
