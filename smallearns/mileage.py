"""
Mileage deduction.

The per-mile rate is a versioned constant looked up by the date of the
trip, never stored on the entry. Years outside the table use the nearest
known year.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from smallearns.models.records import MILEAGE_CATEGORY, ExpenseEntry, MileageEntry


# Standard business mileage rate, dollars per mile
MILEAGE_RATES: dict[int, Decimal] = {
    2023: Decimal("0.655"),
    2024: Decimal("0.67"),
    2025: Decimal("0.70"),
}

CENT = Decimal("0.01")


def rate_for(day: date) -> Decimal:
    """Per-mile rate in force on `day`."""
    if day.year in MILEAGE_RATES:
        return MILEAGE_RATES[day.year]
    years = sorted(MILEAGE_RATES)
    return MILEAGE_RATES[years[0]] if day.year < years[0] else MILEAGE_RATES[years[-1]]


def mileage_deduction(miles: Union[Decimal, int, float, str], day: date) -> Decimal:
    """Deductible amount for a trip, rounded to cents."""
    miles = Decimal(str(miles))
    if miles < 0:
        raise ValueError(f"miles cannot be negative (got {miles})")
    return (miles * rate_for(day)).quantize(CENT, rounding=ROUND_HALF_UP)


def mileage_expense(
    miles: Union[Decimal, int, float, str],
    day: date,
    purpose: str,
    start_location: str = "",
    end_location: str = "",
    record_id: Optional[str] = None,
) -> ExpenseEntry:
    """Build the `Travel & Mileage` expense for a trip."""
    miles = Decimal(str(miles))
    rate = rate_for(day)
    fields = dict(
        amount=mileage_deduction(miles, day),
        date=day,
        category=MILEAGE_CATEGORY,
        description=purpose,
        miles=miles,
        notes=f"{purpose} - {miles} miles @ ${rate}/mile ({start_location} to {end_location})",
    )
    if record_id:
        fields["id"] = record_id
    return ExpenseEntry(**fields)


def expense_from_trip(entry: MileageEntry) -> ExpenseEntry:
    """The expense a logged trip is worth."""
    return mileage_expense(
        entry.miles,
        entry.date,
        entry.purpose,
        start_location=entry.start_location,
        end_location=entry.end_location,
    )
