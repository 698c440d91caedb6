"""
Two-Stage Record Validation

Raw collections read from storage (or from a backup) pass through two
stages before anyone sees them:

STAGE 1 - MIGRATION:
- The stored version marker selects the migration steps to run
- Older record shapes are upgraded to the current one
- Unknown/future versions are rejected, never guessed at

STAGE 2 - SCHEMA VALIDATION:
- Each record is parsed into its pydantic model
- Missing optional fields get their defaults, a missing id is assigned
- A record that is not an object, misses a required field or carries an
  invalid value is dropped on its own; the rest of the collection loads
- A record repeating an id seen earlier in the collection is dropped

IMPORTANT: Validation never fails a whole collection because of one bad
record. Dropped raw records are returned in the report so the caller can
quarantine them.
"""

from typing import Any, Optional

from pydantic import ValidationError

from smallearns.models.records import (
    RECORD_MODELS,
    SCHEMA_VERSION,
    Collection,
    StoredRecord,
    ValidationIssue,
    ValidationReport,
)
from smallearns.validation.migrations import coerce_version, migrate_records


class RecordValidator:
    """
    Migrates and validates raw collections.

    Stage 1: Migration (needs the stored version)
    Stage 2: Schema validation (per record)
    """

    def _raw_id(self, record: Any) -> Optional[str]:
        if isinstance(record, dict) and record.get("id") not in (None, ""):
            return str(record["id"])
        return None

    def _issues_from_error(
        self,
        index: int,
        record: Any,
        error: ValidationError,
    ) -> list[ValidationIssue]:
        issues = []
        for detail in error.errors():
            location = ".".join(str(part) for part in detail.get("loc", ())) or "record"
            issue_type = "missing" if detail.get("type") == "missing" else "invalid_value"
            issues.append(ValidationIssue(
                record_index=index,
                record_id=self._raw_id(record),
                field=location,
                issue_type=issue_type,
                message=detail.get("msg", "invalid"),
                severity="error",
            ))
        return issues

    def _validate_schema(
        self,
        collection: Collection,
        records: list,
    ) -> tuple[list[StoredRecord], list[ValidationIssue], list[Any]]:
        """
        Stage 2: Parse each record into its model.

        Returns: (kept_records, issues, rejected_raw_records)
        """
        model = RECORD_MODELS[collection]
        kept: list[StoredRecord] = []
        issues: list[ValidationIssue] = []
        rejected: list[Any] = []
        seen_ids: set[str] = set()

        for index, raw in enumerate(records):
            if not isinstance(raw, dict):
                issues.append(ValidationIssue(
                    record_index=index,
                    field="record",
                    issue_type="not_an_object",
                    message=f"Expected an object, got {type(raw).__name__}",
                ))
                rejected.append(raw)
                continue

            candidate = raw
            if raw.get("id") in (None, ""):
                # Healed below by the model's id factory
                candidate = {k: v for k, v in raw.items() if k != "id"}

            try:
                record = model.model_validate(candidate)
            except ValidationError as e:
                issues.extend(self._issues_from_error(index, raw, e))
                rejected.append(raw)
                continue

            if record.id in seen_ids:
                issues.append(ValidationIssue(
                    record_index=index,
                    record_id=record.id,
                    field="id",
                    issue_type="duplicate_id",
                    message=f"Id {record.id} already used earlier in {collection.value}",
                ))
                rejected.append(raw)
                continue

            seen_ids.add(record.id)
            kept.append(record)

        return kept, issues, rejected

    def validate(
        self,
        collection: Collection,
        records: list,
        source_version: Any = SCHEMA_VERSION,
    ) -> tuple[list[StoredRecord], ValidationReport]:
        """
        Run the full two-stage pipeline on one collection.

        Args:
            collection: Which collection the records belong to
            records: Raw records as decoded from JSON
            source_version: Version marker the records were stored with
                            (None means version 1)

        Returns:
            (valid_records, report)

        Raises:
            UnsupportedSchemaVersionError: If the version cannot be migrated
        """
        version = coerce_version(source_version, collection)

        # Stage 1: Migration
        migrated = migrate_records(collection, records, version)

        # Stage 2: Schema validation
        kept, issues, rejected = self._validate_schema(collection, migrated)

        report = ValidationReport(
            collection=collection,
            source_version=version,
            target_version=SCHEMA_VERSION,
            total=len(records),
            kept=len(kept),
            issues=issues,
            rejected=rejected,
        )
        return kept, report

    def get_summary(self, report: ValidationReport) -> str:
        """One-line human summary of a validation report."""
        parts = [f"{report.collection.value}: {report.kept}/{report.total} records loaded"]
        if report.migrated:
            parts.append(f"migrated v{report.source_version} -> v{report.target_version}")
        if report.dropped_count:
            parts.append(f"{report.dropped_count} dropped")
        return ", ".join(parts)
