"""Record migration and validation."""

from smallearns.validation.migrations import (
    MIGRATIONS,
    UnsupportedSchemaVersionError,
    canonical_status,
    coerce_version,
    migrate_records,
)
from smallearns.validation.validator import RecordValidator

__all__ = [
    "MIGRATIONS",
    "RecordValidator",
    "UnsupportedSchemaVersionError",
    "canonical_status",
    "coerce_version",
    "migrate_records",
]
