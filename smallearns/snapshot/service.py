"""
Snapshot Export/Import (backup and restore)

A snapshot is one JSON document holding every collection:

    {
      "clients": [...], "appointments": [...], "income": [...],
      "expenses": [...], "mileage": [...], "invoices": [...],
      "businessGoals": [...], "recurringRules": [...],
      "servicePackages": [...],
      "exportDate": "<ISO-8601 timestamp>",
      "version": "3"
    }

IMPORT IS DESTRUCTIVE: a successful import replaces every collection
wholesale, nothing is merged. This module performs no confirmation of its
own; callers must get explicit user confirmation before calling
`import_snapshot` or `import_file`.

Import is all-or-nothing at the document level: the whole document is
parsed, version-checked, shape-checked, migrated and validated before the
first collection is replaced. A rejected document leaves the store exactly
as it was.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from smallearns.audit import AuditLogger
from smallearns.models.audit import AuditEventBuilder
from smallearns.models.records import (
    REQUIRED_SNAPSHOT_COLLECTIONS,
    SCHEMA_VERSION,
    Collection,
    StoredRecord,
)
from smallearns.store import LocalDataStore
from smallearns.validation import UnsupportedSchemaVersionError, coerce_version


EXPORT_DATE_KEY = "exportDate"
VERSION_KEY = "version"

# Collection names used by backups from older releases
SNAPSHOT_ALIASES: dict[str, Collection] = {
    "incomeEntries": Collection.INCOME,
    "goals": Collection.BUSINESS_GOALS,
    "recurringAppointments": Collection.RECURRING_RULES,
}


class SnapshotError(Exception):
    """Base exception for snapshot operations."""
    pass


class InvalidSnapshotError(SnapshotError):
    """The document is not a usable backup (not JSON, wrong shape)."""
    pass


class UnsupportedSnapshotVersionError(SnapshotError):
    """The backup was written by a newer or unknown format version."""

    def __init__(self, version: Any):
        self.version = version
        super().__init__(
            f"Unsupported backup version {version!r}; "
            f"this build reads versions 1 to {SCHEMA_VERSION}"
        )


class ImportResult(BaseModel):
    """Outcome of an import attempt."""

    success: bool
    error_message: Optional[str] = None
    version: Optional[int] = Field(
        default=None,
        description="Format version the backup was written with"
    )
    counts: dict[str, int] = Field(
        default_factory=dict,
        description="Records imported per collection"
    )
    dropped: dict[str, int] = Field(
        default_factory=dict,
        description="Records dropped by validation per collection"
    )
    durable: bool = Field(
        default=True,
        description="False if the new state could not be written to storage"
    )

    @classmethod
    def rejected(cls, error_message: str) -> "ImportResult":
        return cls(success=False, error_message=error_message)


def default_backup_name(today: Optional[datetime] = None) -> str:
    """File name for a backup taken today."""
    today = today or datetime.now(timezone.utc)
    return f"smallearns-backup-{today.date().isoformat()}.json"


class SnapshotService:
    """Exports the store to a document and restores it from one."""

    def __init__(
        self,
        store: LocalDataStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or store.audit_logger

    # =========================================================================
    # Export
    # =========================================================================

    def export_snapshot(self, now: Optional[datetime] = None) -> dict:
        """
        Build a snapshot of the current, validated state.

        Pending debounced writes are irrelevant: the snapshot is taken from
        the in-memory state, which is never behind storage.
        """
        now = now or datetime.now(timezone.utc)
        document: dict[str, Any] = {
            collection.value: [
                record.to_storage() for record in self._store.get(collection)
            ]
            for collection in Collection
        }
        document[EXPORT_DATE_KEY] = now.isoformat()
        document[VERSION_KEY] = str(SCHEMA_VERSION)

        self._audit.log(AuditEventBuilder.snapshot_exported(
            counts={c.value: len(document[c.value]) for c in Collection},
        ))
        return document

    def export_to_file(
        self,
        path: Optional[Union[str, Path]] = None,
        now: Optional[datetime] = None,
    ) -> Path:
        """
        Write a snapshot as indented JSON.

        Args:
            path: Target file, or a directory to place the default-named
                  backup in. Defaults to the current directory.

        Returns:
            The written file
        """
        now = now or datetime.now(timezone.utc)
        target = Path(path) if path is not None else Path.cwd()
        if target.is_dir():
            target = target / default_backup_name(now)

        document = self.export_snapshot(now)
        target.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        return target

    # =========================================================================
    # Import
    # =========================================================================

    def parse_snapshot(
        self,
        document: Union[str, bytes, dict],
    ) -> tuple[int, dict[Collection, list]]:
        """
        Check a document's version and shape.

        Returns:
            (version, raw records per collection). Optional collections the
            document lacks are empty lists.

        Raises:
            InvalidSnapshotError: Not JSON, not an object, or missing/ill-typed
                                  collections
            UnsupportedSnapshotVersionError: Newer or unknown version tag
        """
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise InvalidSnapshotError(f"Backup is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise InvalidSnapshotError(
                f"Backup must be a JSON object, got {type(document).__name__}"
            )

        # Backups from before version tags existed are version 1
        try:
            version = coerce_version(document.get(VERSION_KEY))
        except UnsupportedSchemaVersionError:
            raise UnsupportedSnapshotVersionError(document.get(VERSION_KEY))

        collections: dict[Collection, list] = {}
        for collection in Collection:
            raw = document.get(collection.value)
            if raw is None:
                raw = next(
                    (document[alias] for alias, target in SNAPSHOT_ALIASES.items()
                     if target == collection and alias in document),
                    None,
                )
            if raw is None:
                if collection in REQUIRED_SNAPSHOT_COLLECTIONS:
                    raise InvalidSnapshotError(
                        f"Backup is missing the required '{collection.value}' collection"
                    )
                raw = []
            if not isinstance(raw, list):
                raise InvalidSnapshotError(
                    f"Backup collection '{collection.value}' must be an array, "
                    f"got {type(raw).__name__}"
                )
            collections[collection] = raw

        return version, collections

    def import_snapshot(self, document: Union[str, bytes, dict]) -> ImportResult:
        """
        Replace ALL data with the contents of a backup.

        DESTRUCTIVE. No confirmation is asked here; the caller must have
        obtained it. On any rejection nothing is changed.
        """
        try:
            version, raw_collections = self.parse_snapshot(document)
        except SnapshotError as e:
            self._audit.log(AuditEventBuilder.snapshot_rejected(str(e)))
            return ImportResult.rejected(str(e))

        validated: dict[Collection, list[StoredRecord]] = {}
        rejected: dict[Collection, list] = {}
        for collection, raw in raw_collections.items():
            records, report = self._store.validator.validate(collection, raw, version)
            validated[collection] = records
            if report.rejected:
                rejected[collection] = report.rejected

        durable = self._store.replace_all(validated)

        for collection, records in rejected.items():
            self._store.record_store.quarantine(
                collection,
                records,
                reason=f"{len(records)} record(s) in imported backup failed validation",
            )

        counts = {c.value: len(validated[c]) for c in Collection}
        dropped = {c.value: len(rejected.get(c, [])) for c in Collection}
        self._audit.log(AuditEventBuilder.snapshot_imported(
            counts=counts,
            dropped=dropped,
            version=version,
        ))

        return ImportResult(
            success=True,
            error_message=None if durable else "Backup loaded but could not be saved to storage",
            version=version,
            counts=counts,
            dropped=dropped,
            durable=durable,
        )

    async def import_file(self, path: Union[str, Path]) -> ImportResult:
        """
        Read a backup file without blocking the event loop, then import it.

        DESTRUCTIVE, see `import_snapshot`.
        """
        try:
            text = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            message = f"Could not read backup file {path}: {e}"
            self._audit.log(AuditEventBuilder.snapshot_rejected(message))
            return ImportResult.rejected(message)

        return self.import_snapshot(text)
