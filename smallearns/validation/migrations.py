"""
Schema Migrations

Persisted collections carry a schema version marker. Data written before
markers existed is version 1. Upgrading is a linear chain of steps
(v1 -> v2 -> v3 ...), one per version, each a pure function from an old
record dict to a new record dict.

Rules for steps:
- Never mutate the input record; return a new dict
- Be idempotent on records that already have the newer shape (a crash
  between writing data and writing its marker re-runs a step)
- Leave non-dict entries alone; the validator drops them

Versions:
  v1  Original layout (recurringId, lastGenerated, paymentMethod, tripDate,
      lowercase status, per-entry mileage rate)
  v2  Field names unified with the rest of the data model
  v3  Canonical appointment status, explicit income -> appointment
      reference, mileage rate no longer stored
"""

from typing import Any, Callable, Optional

from smallearns.models.records import SCHEMA_VERSION, AppointmentStatus, Collection


MigrationStep = Callable[[dict], dict]


class UnsupportedSchemaVersionError(Exception):
    """Data was written by a newer (or unknown) schema version."""

    def __init__(self, version: Any, collection: Optional[Collection] = None):
        self.version = version
        self.collection = collection
        where = f" for {collection.value}" if collection else ""
        super().__init__(
            f"Unsupported schema version {version!r}{where}; "
            f"this build understands versions 1 to {SCHEMA_VERSION}"
        )


def coerce_version(raw: Any, collection: Optional[Collection] = None) -> int:
    """
    Turn a stored version marker into a supported version number.

    A missing marker means version 1. Anything that is not a whole
    number between 1 and SCHEMA_VERSION is rejected, never guessed at.
    """
    if raw is None:
        return 1
    if isinstance(raw, bool):
        raise UnsupportedSchemaVersionError(raw, collection)
    if isinstance(raw, int):
        version = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        version = int(raw.strip())
    else:
        raise UnsupportedSchemaVersionError(raw, collection)

    if version < 1 or version > SCHEMA_VERSION:
        raise UnsupportedSchemaVersionError(raw, collection)
    return version


def _rename(record: dict, old: str, new: str) -> None:
    if old not in record:
        return
    value = record.pop(old)
    record.setdefault(new, value)


# =============================================================================
# v1 -> v2
# =============================================================================

def _v1_common(record: dict) -> dict:
    out = dict(record)
    _rename(out, "createdDate", "createdAt")
    return out


def _v1_clients(record: dict) -> dict:
    out = _v1_common(record)
    _rename(out, "lastVisit", "lastVisitDate")
    _rename(out, "serviceNotes", "notes")
    return out


def _v1_appointments(record: dict) -> dict:
    out = _v1_common(record)
    _rename(out, "recurringId", "recurringRuleId")
    return out


def _v1_income(record: dict) -> dict:
    out = _v1_common(record)
    _rename(out, "paymentMethod", "method")
    return out


def _v1_expenses(record: dict) -> dict:
    out = _v1_common(record)
    _rename(out, "paymentMethod", "method")
    _rename(out, "mileageDistance", "miles")
    return out


def _v1_mileage(record: dict) -> dict:
    out = _v1_common(record)
    _rename(out, "tripDate", "date")
    _rename(out, "totalMiles", "miles")
    _rename(out, "businessPurpose", "purpose")
    # Trips logged by odometer only
    start, end = out.get("startOdometer"), out.get("endOdometer")
    if (
        out.get("miles") in (None, "")
        and isinstance(start, (int, float)) and not isinstance(start, bool)
        and isinstance(end, (int, float)) and not isinstance(end, bool)
        and end >= start
    ):
        out["miles"] = end - start
    return out


def _v1_recurring_rules(record: dict) -> dict:
    out = _v1_common(record)
    _rename(out, "lastGenerated", "lastGeneratedDate")
    return out


# =============================================================================
# v2 -> v3
# =============================================================================

_STATUS_ALIASES = {
    "scheduled": AppointmentStatus.SCHEDULED.value,
    "confirmed": AppointmentStatus.SCHEDULED.value,
    "pending": AppointmentStatus.SCHEDULED.value,
    "completed": AppointmentStatus.COMPLETED.value,
    "done": AppointmentStatus.COMPLETED.value,
    "cancelled": AppointmentStatus.CANCELLED.value,
    "canceled": AppointmentStatus.CANCELLED.value,
}


def canonical_status(raw: Any) -> str:
    """Map any historical status spelling onto AppointmentStatus values."""
    if not isinstance(raw, str) or not raw.strip():
        return AppointmentStatus.SCHEDULED.value
    return _STATUS_ALIASES.get(raw.strip().lower(), AppointmentStatus.SCHEDULED.value)


def _v2_appointments(record: dict) -> dict:
    out = dict(record)
    out["status"] = canonical_status(out.get("status"))
    return out


def _v2_income(record: dict) -> dict:
    out = dict(record)
    # No free-text matching against appointments: unknown means unlinked
    out.setdefault("appointmentId", None)
    return out


def _v2_mileage(record: dict) -> dict:
    out = dict(record)
    out.pop("rate", None)
    return out


def _v2_recurring_rules(record: dict) -> dict:
    out = dict(record)
    if out.get("interval") is None:
        out["interval"] = 1
    if out.get("isActive") is None:
        out["isActive"] = True
    return out


# Steps keyed by the version they upgrade FROM. Collections without an
# entry are unchanged by that step.
MIGRATIONS: dict[int, dict[Collection, MigrationStep]] = {
    1: {
        Collection.CLIENTS: _v1_clients,
        Collection.APPOINTMENTS: _v1_appointments,
        Collection.INCOME: _v1_income,
        Collection.EXPENSES: _v1_expenses,
        Collection.MILEAGE: _v1_mileage,
        Collection.INVOICES: _v1_common,
        Collection.BUSINESS_GOALS: _v1_common,
        Collection.RECURRING_RULES: _v1_recurring_rules,
        Collection.SERVICE_PACKAGES: _v1_common,
    },
    2: {
        Collection.APPOINTMENTS: _v2_appointments,
        Collection.INCOME: _v2_income,
        Collection.MILEAGE: _v2_mileage,
        Collection.RECURRING_RULES: _v2_recurring_rules,
    },
}


def migrate_records(
    collection: Collection,
    records: list,
    from_version: int,
    to_version: int = SCHEMA_VERSION,
) -> list:
    """
    Upgrade raw records of one collection from `from_version` to `to_version`.

    Every step between the two versions is applied once, in order.
    The input list and its records are left untouched.

    Raises:
        UnsupportedSchemaVersionError: If either version is outside 1..SCHEMA_VERSION
    """
    coerce_version(from_version, collection)
    coerce_version(to_version, collection)
    if to_version < from_version:
        raise UnsupportedSchemaVersionError(from_version, collection)

    migrated = list(records)
    for version in range(from_version, to_version):
        step = MIGRATIONS[version].get(collection)
        if step is None:
            continue
        migrated = [
            step(record) if isinstance(record, dict) else record
            for record in migrated
        ]
    return migrated
