"""
Tests for SmallEarns data models

Test strategy:
1. Unit tests for individual components (models, migrations, validator)
2. Integration tests for flows against an in-memory backend
3. No real disk access except where a test asks for tmp_path
"""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from smallearns.models.records import (
    RECORD_MODELS,
    Appointment,
    AppointmentStatus,
    BusinessGoal,
    Client,
    Collection,
    ExpenseEntry,
    GoalPeriod,
    IncomeEntry,
    Invoice,
    RecurringRule,
    ServicePackage,
    ValidationIssue,
    ValidationReport,
)
from smallearns.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestRecordModels:
    """Tests for the persisted record models."""

    def test_client_creation(self):
        """Test Client model creation."""
        client = Client(name="Dana Smith", phone="555-0100")
        assert client.name == "Dana Smith"
        assert client.phone == "555-0100"
        assert client.id

    def test_client_strips_whitespace(self):
        """Test that whitespace is stripped from the client name."""
        client = Client(name="  Dana  ")
        assert client.name == "Dana"

    def test_client_requires_name(self):
        """Test that a client without a name is rejected."""
        with pytest.raises(ValidationError):
            Client.model_validate({"id": "c1", "phone": "555"})

    def test_appointment_defaults(self):
        """Test that optional appointment fields get their defaults."""
        appointment = Appointment.model_validate({"id": "a1", "date": "2024-01-05"})
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.notes == ""
        assert appointment.recurring_rule_id is None
        assert appointment.date == date(2024, 1, 5)

    def test_appointment_requires_date(self):
        """Test that an appointment without a date is rejected."""
        with pytest.raises(ValidationError):
            Appointment.model_validate({"id": "a1", "clientId": "c1"})

    def test_blank_optional_date_becomes_none(self):
        """Test that forms' empty strings are read as 'no date'."""
        client = Client.model_validate({"name": "Dana", "lastVisitDate": ""})
        assert client.last_visit_date is None

    def test_null_text_becomes_empty(self):
        """Test that null free text is read as an empty string."""
        appointment = Appointment.model_validate({"date": "2024-01-05", "notes": None})
        assert appointment.notes == ""

    def test_numeric_id_is_coerced_to_string(self):
        """Test that timestamp-style numeric ids are kept as strings."""
        client = Client.model_validate({"id": 1700000000000, "name": "Dana"})
        assert client.id == "1700000000000"

    def test_to_storage_uses_camel_case(self):
        """Test that storage output uses the on-disk key names."""
        appointment = Appointment(
            id="a1",
            client_id="c1",
            date=date(2024, 1, 5),
            price=Decimal("45.00"),
            recurring_rule_id="r1",
        )
        stored = appointment.to_storage()
        assert stored["clientId"] == "c1"
        assert stored["recurringRuleId"] == "r1"
        assert stored["date"] == "2024-01-05"
        assert stored["status"] == "Scheduled"
        assert Decimal(stored["price"]) == Decimal("45.00")

    def test_unknown_fields_are_kept(self):
        """Test that fields the models do not know survive a round trip."""
        client = Client.model_validate({"id": "c1", "name": "Dana", "favoriteColor": "teal"})
        assert client.to_storage()["favoriteColor"] == "teal"

    def test_income_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            IncomeEntry(amount=Decimal("-1"), date=date(2024, 1, 1))

    def test_goal_target_must_be_positive(self):
        """Test that a zero goal target is rejected."""
        with pytest.raises(ValidationError):
            BusinessGoal.model_validate({"type": "revenue", "target": 0})

    @pytest.mark.parametrize("period", ["weekly", "monthly", "quarterly", "yearly"])
    def test_goal_periods(self, period):
        """Test that every period the goal form offers is accepted."""
        goal = BusinessGoal.model_validate({"type": "clients", "target": 10, "period": period})
        assert goal.period == GoalPeriod(period)

    def test_service_package_defaults(self):
        package = ServicePackage.model_validate({"name": "Starter", "price": 100, "duration": 60})
        assert package.price == Decimal("100")
        assert package.category == "Other"
        assert package.is_active is True
        assert package.to_storage()["isActive"] is True

    def test_invoice_items(self):
        """Test Invoice model with line items."""
        invoice = Invoice.model_validate({
            "date": "2024-02-01",
            "items": [{"description": "Haircut", "quantity": 2, "rate": "30", "amount": "60"}],
            "total": "60",
        })
        assert invoice.items[0].amount == Decimal("60")
        assert invoice.to_storage()["items"][0]["description"] == "Haircut"

    def test_expense_miles_optional(self):
        """Test that expenses without miles are valid."""
        expense = ExpenseEntry.model_validate({"amount": "12.50", "date": "2024-03-01", "miles": ""})
        assert expense.miles is None

    def test_every_collection_has_a_model(self):
        """Test that every collection maps to a record model."""
        assert set(RECORD_MODELS) == set(Collection)


class TestRecurringRuleSchedule:
    """Tests for RecurringRule.schedule_problem."""

    def _rule(self, **overrides):
        data = {"id": "r1", "clientId": "c1", "startDate": "2024-01-01", "frequency": "weekly"}
        data.update(overrides)
        return RecurringRule.model_validate(data)

    def test_well_formed_rule(self):
        assert self._rule().schedule_problem() is None

    def test_missing_frequency(self):
        assert self._rule(frequency=None).schedule_problem() == "missing frequency"

    def test_unknown_frequency(self):
        assert "unknown frequency" in self._rule(frequency="fortnightly").schedule_problem()

    def test_non_positive_interval(self):
        assert "interval" in self._rule(interval=0).schedule_problem()
        assert "interval" in self._rule(interval=-2).schedule_problem()


class TestAuditModels:
    """Tests for audit-related Pydantic models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.STORE_RESET,
            description="Test event",
        )
        assert event.event_type == AuditEventType.STORE_RESET
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.record_dropped(
            collection=Collection.APPOINTMENTS,
            record_index=1,
            record_id="a2",
            reason="date: Field required",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "record_dropped"
        assert log_dict["collection"] == "appointments"
        assert "timestamp" in log_dict

    def test_audit_event_builder_rule_skipped(self):
        """Test building a rule_skipped event."""
        event = AuditEventBuilder.rule_skipped(rule_id="r1", reason="missing frequency")
        assert event.event_type == AuditEventType.RULE_SKIPPED
        assert event.entity_id == "r1"

    def test_audit_event_builder_snapshot_rejected(self):
        """Test that rejected backups are errors."""
        event = AuditEventBuilder.snapshot_rejected("not JSON")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "not JSON"


class TestValidationReport:
    """Tests for ValidationReport model."""

    def test_report_counts(self):
        """Test dropped count and error detection."""
        report = ValidationReport(
            collection=Collection.CLIENTS,
            source_version=1,
            total=3,
            kept=2,
            issues=[
                ValidationIssue(
                    record_index=2,
                    field="name",
                    issue_type="missing",
                    message="Field required",
                ),
            ],
        )
        assert report.migrated is True
        assert report.dropped_count == 1
        assert report.has_errors is True

    def test_report_clean(self):
        """Test a report with nothing to say."""
        report = ValidationReport(collection=Collection.CLIENTS, source_version=3, total=1, kept=1)
        assert report.migrated is False
        assert report.has_errors is False
