"""
Audit Models for the SmallEarns data store

Everything the store does on its own behalf (healing records, migrating,
quarantining, generating appointments, replacing state on import) is
recorded as an audit event. These are the only trace of silent repairs, so
every one of them is logged.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from smallearns.models.records import Collection


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Loading
    COLLECTION_LOADED = "collection_loaded"
    COLLECTION_MIGRATED = "collection_migrated"
    COLLECTION_QUARANTINED = "collection_quarantined"
    RECORD_DROPPED = "record_dropped"

    # Persistence
    WRITE_FAILED = "write_failed"
    STORE_RESET = "store_reset"

    # Recurrence
    RULE_SKIPPED = "rule_skipped"
    OCCURRENCE_GENERATED = "occurrence_generated"

    # Backup / restore
    SNAPSHOT_EXPORTED = "snapshot_exported"
    SNAPSHOT_IMPORTED = "snapshot_imported"
    SNAPSHOT_REJECTED = "snapshot_rejected"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # What is this about?
    collection: Optional[Collection] = None
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the record or rule this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "collection": self.collection.value if self.collection else None,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_dropped(Collection.CLIENTS, 3, None, "name missing")
        event = AuditEventBuilder.rule_skipped("r1", "missing frequency")
    """

    @staticmethod
    def collection_loaded(
        collection: Collection,
        count: int,
        version: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_LOADED,
            severity=AuditSeverity.DEBUG,
            collection=collection,
            description=f"Loaded {count} {collection.value} record(s)",
            details={"count": count, "schema_version": version},
        )

    @staticmethod
    def collection_migrated(
        collection: Collection,
        from_version: int,
        to_version: int,
        count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_MIGRATED,
            collection=collection,
            description=f"Migrated {collection.value} from v{from_version} to v{to_version}",
            details={
                "from_version": from_version,
                "to_version": to_version,
                "count": count,
            },
        )

    @staticmethod
    def collection_quarantined(
        collection: Collection,
        reason: str,
        quarantine_key: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_QUARANTINED,
            severity=AuditSeverity.WARNING,
            collection=collection,
            description=f"Unreadable {collection.value} data moved to quarantine",
            details={"quarantine_key": quarantine_key},
            error_message=reason,
        )

    @staticmethod
    def record_dropped(
        collection: Collection,
        record_index: int,
        record_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DROPPED,
            severity=AuditSeverity.WARNING,
            collection=collection,
            entity_id=record_id,
            description=f"Dropped invalid {collection.value} record #{record_index}",
            details={"record_index": record_index},
            error_message=reason,
        )

    @staticmethod
    def write_failed(
        collection: Optional[Collection],
        key: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            collection=collection,
            description=f"Could not persist {key}; in-memory data is not durable",
            details={"key": key},
            error_message=error_message,
        )

    @staticmethod
    def store_reset(deleted_keys: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_RESET,
            severity=AuditSeverity.WARNING,
            description=f"All local data was deleted ({len(deleted_keys)} key(s))",
            details={"deleted_keys": deleted_keys},
        )

    @staticmethod
    def rule_skipped(
        rule_id: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_SKIPPED,
            severity=AuditSeverity.WARNING,
            collection=Collection.RECURRING_RULES,
            entity_id=rule_id,
            description="Recurring rule skipped during generation",
            error_message=reason,
        )

    @staticmethod
    def occurrence_generated(
        rule_id: str,
        appointment_id: str,
        occurrence: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_GENERATED,
            collection=Collection.APPOINTMENTS,
            entity_id=appointment_id,
            description=f"Generated recurring appointment for {occurrence}",
            details={"rule_id": rule_id, "date": occurrence},
        )

    @staticmethod
    def snapshot_exported(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_EXPORTED,
            description=f"Exported {sum(counts.values())} record(s)",
            details={"counts": counts},
        )

    @staticmethod
    def snapshot_imported(
        counts: dict[str, int],
        dropped: dict[str, int],
        version: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORTED,
            severity=AuditSeverity.WARNING,
            description=f"Replaced all data with a v{version} backup",
            details={"counts": counts, "dropped": dropped, "version": version},
        )

    @staticmethod
    def snapshot_rejected(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_REJECTED,
            severity=AuditSeverity.ERROR,
            description="Backup rejected; existing data left untouched",
            error_message=error_message,
        )
