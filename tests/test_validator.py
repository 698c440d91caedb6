"""
Tests for the two-stage record validator.
"""

import pytest

from smallearns.models.records import SCHEMA_VERSION, AppointmentStatus, Collection
from smallearns.validation import RecordValidator, UnsupportedSchemaVersionError


@pytest.fixture
def validator():
    return RecordValidator()


class TestRecordValidator:
    """Tests for RecordValidator.validate."""

    def test_partial_corruption_tolerance(self, validator):
        """One good record and one missing a required field: only the good one loads."""
        raw = [
            {"id": "a1", "clientId": "c1", "date": "2024-01-08", "status": "Scheduled"},
            {"id": "a2", "clientId": "c1", "status": "Scheduled"},
        ]
        records, report = validator.validate(Collection.APPOINTMENTS, raw, SCHEMA_VERSION)

        assert [r.id for r in records] == ["a1"]
        assert report.total == 2
        assert report.kept == 1
        assert report.dropped_count == 1
        assert report.rejected == [raw[1]]
        assert report.issues[0].record_id == "a2"
        assert report.issues[0].field == "date"
        assert report.issues[0].issue_type == "missing"

    def test_missing_status_defaults_to_scheduled(self, validator):
        records, _ = validator.validate(
            Collection.APPOINTMENTS,
            [{"id": "a1", "date": "2024-01-08"}],
            SCHEMA_VERSION,
        )
        assert records[0].status == AppointmentStatus.SCHEDULED

    def test_non_object_entries_dropped(self, validator):
        records, report = validator.validate(
            Collection.CLIENTS,
            [{"id": "c1", "name": "Dana"}, "junk", 42],
            SCHEMA_VERSION,
        )
        assert len(records) == 1
        assert {issue.issue_type for issue in report.issues} == {"not_an_object"}
        assert report.rejected == ["junk", 42]

    def test_duplicate_ids_dropped(self, validator):
        """Test that a repeated id keeps only the first record."""
        records, report = validator.validate(
            Collection.CLIENTS,
            [{"id": "c1", "name": "Dana"}, {"id": "c1", "name": "Dupe"}],
            SCHEMA_VERSION,
        )
        assert [r.name for r in records] == ["Dana"]
        assert report.issues[0].issue_type == "duplicate_id"

    def test_missing_id_is_assigned(self, validator):
        records, report = validator.validate(
            Collection.CLIENTS,
            [{"name": "Dana"}, {"id": "", "name": "Lee"}],
            SCHEMA_VERSION,
        )
        assert len(records) == 2
        assert all(r.id for r in records)
        assert records[0].id != records[1].id
        assert report.dropped_count == 0

    def test_invalid_value_dropped(self, validator):
        records, report = validator.validate(
            Collection.INCOME,
            [{"id": "i1", "amount": "lots", "date": "2024-01-08"}],
            SCHEMA_VERSION,
        )
        assert records == []
        assert report.issues[0].issue_type == "invalid_value"

    def test_empty_collection(self, validator):
        records, report = validator.validate(Collection.MILEAGE, [], None)
        assert records == []
        assert report.total == 0

    def test_migration_runs_before_validation(self, validator):
        """Test that a v1 record is upgraded and then parsed."""
        records, report = validator.validate(
            Collection.APPOINTMENTS,
            [{"id": "a1", "date": "2024-01-08", "status": "canceled", "recurringId": "r1"}],
            None,
        )
        assert report.migrated is True
        assert records[0].status == AppointmentStatus.CANCELLED
        assert records[0].recurring_rule_id == "r1"

    def test_future_version_rejected(self, validator):
        with pytest.raises(UnsupportedSchemaVersionError):
            validator.validate(Collection.CLIENTS, [], SCHEMA_VERSION + 1)

    def test_summary(self, validator):
        _, report = validator.validate(
            Collection.CLIENTS,
            [{"id": "c1", "name": "Dana"}, {"id": "c2"}],
            1,
        )
        summary = validator.get_summary(report)
        assert "clients: 1/2 records loaded" in summary
        assert "migrated v1 -> v3" in summary
        assert "1 dropped" in summary
