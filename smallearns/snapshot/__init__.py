"""Backup and restore of the whole dataset."""

from smallearns.snapshot.service import (
    SNAPSHOT_ALIASES,
    ImportResult,
    InvalidSnapshotError,
    SnapshotError,
    SnapshotService,
    UnsupportedSnapshotVersionError,
    default_backup_name,
)

__all__ = [
    "SNAPSHOT_ALIASES",
    "ImportResult",
    "InvalidSnapshotError",
    "SnapshotError",
    "SnapshotService",
    "UnsupportedSnapshotVersionError",
    "default_backup_name",
]
