"""
Data Models Package

Pydantic models for every persisted collection, plus the validation and
audit models used by the store. All data read from or written to storage
passes through these schemas.
"""

from smallearns.models.records import (
    EXPENSE_CATEGORIES,
    MILEAGE_CATEGORY,
    PAYMENT_METHODS,
    RECORD_MODELS,
    REQUIRED_SNAPSHOT_COLLECTIONS,
    SCHEMA_VERSION,
    Appointment,
    AppointmentStatus,
    BusinessGoal,
    Client,
    Collection,
    ExpenseEntry,
    Frequency,
    GoalPeriod,
    GoalType,
    IncomeEntry,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    MileageEntry,
    RecurringRule,
    ServicePackage,
    StoredRecord,
    ValidationIssue,
    ValidationReport,
    new_record_id,
)
from smallearns.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "EXPENSE_CATEGORIES",
    "MILEAGE_CATEGORY",
    "PAYMENT_METHODS",
    "RECORD_MODELS",
    "REQUIRED_SNAPSHOT_COLLECTIONS",
    "SCHEMA_VERSION",
    "Appointment",
    "AppointmentStatus",
    "BusinessGoal",
    "Client",
    "Collection",
    "ExpenseEntry",
    "Frequency",
    "GoalPeriod",
    "GoalType",
    "IncomeEntry",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "MileageEntry",
    "RecurringRule",
    "ServicePackage",
    "StoredRecord",
    "ValidationIssue",
    "ValidationReport",
    "new_record_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
