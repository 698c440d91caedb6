"""
Core Data Models for the SmallEarns data store

These models define the current (v3) shape of every persisted collection.
They are designed to:
1. Fill documented defaults for optional fields
2. Reject records that miss a required field (the caller drops them)
3. Serialize to the camelCase JSON layout used on disk and in backups
4. Keep unknown fields so that nothing written by the UI is lost

Python attributes are snake_case; `to_storage()` emits the camelCase aliases.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel


# Version of the record shapes below. Bump it together with a new step
# in smallearns.validation.migrations.
SCHEMA_VERSION = 3


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Collection(str, Enum):
    """Named collections persisted by the store, one storage key each."""
    CLIENTS = "clients"
    APPOINTMENTS = "appointments"
    INCOME = "income"
    EXPENSES = "expenses"
    MILEAGE = "mileage"
    INVOICES = "invoices"
    BUSINESS_GOALS = "businessGoals"
    RECURRING_RULES = "recurringRules"
    SERVICE_PACKAGES = "servicePackages"


# A backup missing any of these is rejected outright
REQUIRED_SNAPSHOT_COLLECTIONS = (
    Collection.CLIENTS,
    Collection.APPOINTMENTS,
    Collection.INCOME,
    Collection.EXPENSES,
)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Frequency(str, Enum):
    """Recurrence frequency of a RecurringRule."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class InvoiceStatus(str, Enum):
    """Invoice payment status."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class GoalType(str, Enum):
    """What a business goal measures."""
    REVENUE = "revenue"
    CLIENTS = "clients"
    APPOINTMENTS = "appointments"
    EXPENSES = "expenses"


class GoalPeriod(str, Enum):
    """Period a business goal is measured over."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


MILEAGE_CATEGORY = "Travel & Mileage"

EXPENSE_CATEGORIES = (
    "Office Supplies",
    "Software & Tools",
    MILEAGE_CATEGORY,
    "Professional Services",
    "Marketing & Advertising",
    "Equipment",
    "Phone & Internet",
    "Rent & Utilities",
    "Meals & Entertainment",
    "Other",
)

PAYMENT_METHODS = (
    "Cash",
    "Check",
    "Bank Transfer",
    "PayPal",
    "Venmo",
    "Zelle",
    "Credit Card",
    "Other",
)


# =============================================================================
# FIELD TYPES
# =============================================================================

def new_record_id() -> str:
    """Opaque identifier for a new record."""
    return uuid4().hex


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


# Forms store "" for an unset date
OptionalDate = Annotated[Optional[dt.date], BeforeValidator(_blank_to_none)]
OptionalAmount = Annotated[Optional[Decimal], BeforeValidator(_blank_to_none)]
OptionalRef = Annotated[Optional[str], BeforeValidator(_blank_to_none)]

# Free text never comes back as null
Text = Annotated[str, BeforeValidator(_none_to_empty)]


class StoredRecord(BaseModel):
    """
    Base for every persisted record.

    Unknown keys are kept (extra="allow") and written back untouched.
    A missing id is healed with a fresh one.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        extra="allow",
    )

    id: str = Field(
        default_factory=new_record_id,
        min_length=1,
        description="Opaque record identity"
    )

    def to_storage(self) -> dict:
        """JSON-ready dict using the on-disk camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# COLLECTION MODELS
# =============================================================================

class Client(StoredRecord):
    """A customer of the business."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name (required)"
    )
    phone: OptionalRef = None
    email: OptionalRef = None
    address: OptionalRef = None
    notes: Text = ""
    last_visit_date: OptionalDate = None
    created_at: OptionalRef = None


class Appointment(StoredRecord):
    """
    A booked appointment.

    `recurring_rule_id` is set only on appointments materialized from a
    RecurringRule. It is a lookup key, never ownership: deleting the rule
    leaves its appointments in place.
    """

    client_id: OptionalRef = None
    date: dt.date = Field(
        ...,
        description="Day of the appointment (required)"
    )
    time: Text = ""
    service: Text = ""
    status: AppointmentStatus = Field(
        default=AppointmentStatus.SCHEDULED,
        description="Lifecycle status"
    )
    duration: Optional[int] = Field(
        default=None,
        ge=0,
        description="Length in minutes"
    )
    price: OptionalAmount = None
    notes: Text = ""
    recurring_rule_id: OptionalRef = None


class RecurringRule(StoredRecord):
    """
    Source of truth for which recurring appointments should exist.

    `frequency` and `interval` are deliberately loose: a rule with an
    unknown frequency or a non-positive interval still loads, and the
    recurrence engine skips it (see `schedule_problem`).
    """

    client_id: str = Field(
        ...,
        min_length=1,
        description="Client the appointments are booked for (required)"
    )
    time: Text = ""
    service: Text = ""
    frequency: OptionalRef = None
    interval: int = Field(
        default=1,
        description="Every N frequency units"
    )
    start_date: dt.date = Field(
        ...,
        description="Anchor date of the series (required)"
    )
    last_generated_date: OptionalDate = Field(
        default=None,
        description="High-water mark: latest occurrence already processed"
    )
    is_active: bool = True
    notes: Text = ""
    created_at: OptionalRef = None

    def schedule_problem(self) -> Optional[str]:
        """Why this rule cannot be expanded, or None if it can."""
        if self.frequency is None:
            return "missing frequency"
        if self.frequency not in {f.value for f in Frequency}:
            return f"unknown frequency {self.frequency!r}"
        if self.interval <= 0:
            return f"interval must be at least 1 (got {self.interval})"
        return None


class IncomeEntry(StoredRecord):
    """
    Money received.

    `appointment_id` is the only link to an appointment. An entry without
    one has no linked appointment.
    """

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount received (required)"
    )
    date: dt.date = Field(
        ...,
        description="Day the payment was received (required)"
    )
    method: Text = ""
    client_id: OptionalRef = None
    appointment_id: OptionalRef = None
    service: Text = ""
    taxable: bool = True
    notes: Text = ""


class ExpenseEntry(StoredRecord):
    """
    Money spent.

    Entries in the `Travel & Mileage` category may carry `miles`; their
    amount was derived from the mileage rate in force on `date`.
    """

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount spent (required)"
    )
    date: dt.date = Field(
        ...,
        description="Day of the expense (required)"
    )
    category: Text = "Other"
    method: Text = ""
    description: Text = ""
    tax_deductible: bool = True
    miles: OptionalAmount = None
    notes: Text = ""


class MileageEntry(StoredRecord):
    """A business trip. The per-mile rate is looked up, never stored."""

    date: dt.date = Field(
        ...,
        description="Day of the trip (required)"
    )
    miles: Decimal = Field(
        ...,
        ge=0,
        description="Distance driven (required)"
    )
    start_location: Text = ""
    end_location: Text = ""
    purpose: Text = ""
    client_id: OptionalRef = None
    notes: Text = ""


class InvoiceItem(BaseModel):
    """A single billed line."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="allow",
    )

    description: Text = ""
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0)
    amount: Decimal = Field(default=Decimal("0"), ge=0)


class Invoice(StoredRecord):
    """An invoice issued to a client."""

    invoice_number: Text = ""
    client_id: OptionalRef = None
    date: dt.date = Field(
        ...,
        description="Issue date (required)"
    )
    due_date: OptionalDate = None
    items: list[InvoiceItem] = Field(default_factory=list)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: Text = ""


class BusinessGoal(StoredRecord):
    """A target the owner tracks progress against."""

    type: GoalType = Field(
        ...,
        description="What is measured (required)"
    )
    target: Decimal = Field(
        ...,
        gt=0,
        description="Target value (required)"
    )
    period: GoalPeriod = GoalPeriod.MONTHLY
    created_at: OptionalRef = None


class ServicePackage(StoredRecord):
    """
    A bookable bundle of service, duration and price.

    Booking a package creates an appointment and an income entry that
    carry its id as `packageId`.
    """

    name: Text = ""
    description: Text = ""
    duration: Optional[int] = Field(
        default=None,
        ge=0,
        description="Length in minutes"
    )
    price: OptionalAmount = None
    category: Text = "Other"
    is_active: bool = True
    created_at: OptionalRef = None


RECORD_MODELS: dict[Collection, type[StoredRecord]] = {
    Collection.CLIENTS: Client,
    Collection.APPOINTMENTS: Appointment,
    Collection.INCOME: IncomeEntry,
    Collection.EXPENSES: ExpenseEntry,
    Collection.MILEAGE: MileageEntry,
    Collection.INVOICES: Invoice,
    Collection.BUSINESS_GOALS: BusinessGoal,
    Collection.RECURRING_RULES: RecurringRule,
    Collection.SERVICE_PACKAGES: ServicePackage,
}


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found while loading a collection."""

    record_index: int = Field(
        ...,
        ge=0,
        description="Position of the record in the raw array"
    )
    record_id: Optional[str] = Field(
        default=None,
        description="Id of the offending record, when it had one"
    )
    field: str = Field(
        ...,
        description="Field with the issue ('record' for the whole record)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'not_an_object')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationReport(BaseModel):
    """Outcome of migrating and validating one collection."""

    collection: Collection
    source_version: int = Field(
        ...,
        ge=1,
        description="Schema version the raw data was stored at"
    )
    target_version: int = Field(
        default=SCHEMA_VERSION,
        description="Schema version of the returned records"
    )
    total: int = Field(
        default=0,
        ge=0,
        description="Number of raw records examined"
    )
    kept: int = Field(
        default=0,
        ge=0,
        description="Number of records that passed validation"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    # Raw records that were dropped, kept for quarantine
    rejected: list[Any] = Field(default_factory=list)

    @property
    def migrated(self) -> bool:
        """Was at least one migration step applied?"""
        return self.source_version != self.target_version

    @property
    def dropped_count(self) -> int:
        return self.total - self.kept

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)
