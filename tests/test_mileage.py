"""
Tests for the mileage rate table and deduction.
"""

from datetime import date
from decimal import Decimal

import pytest

from smallearns.mileage import expense_from_trip, mileage_deduction, mileage_expense, rate_for
from smallearns.models.records import MILEAGE_CATEGORY, MileageEntry


class TestRates:
    """Tests for rate lookup by trip date."""

    @pytest.mark.parametrize("day, rate", [
        (date(2023, 6, 1), Decimal("0.655")),
        (date(2024, 1, 1), Decimal("0.67")),
        (date(2025, 12, 31), Decimal("0.70")),
        (date(2030, 3, 1), Decimal("0.70")),
        (date(2020, 3, 1), Decimal("0.655")),
    ])
    def test_rate_for(self, day, rate):
        assert rate_for(day) == rate


class TestDeduction:
    """Tests for computing the deductible amount."""

    def test_whole_miles(self):
        assert mileage_deduction(100, date(2024, 5, 1)) == Decimal("67.00")

    def test_rounds_half_up_to_cents(self):
        assert mileage_deduction("12.5", date(2024, 5, 1)) == Decimal("8.38")

    def test_negative_miles_rejected(self):
        with pytest.raises(ValueError):
            mileage_deduction(-1, date(2024, 5, 1))


class TestMileageExpense:
    """Tests for the generated Travel & Mileage expense."""

    def test_expense_fields(self):
        expense = mileage_expense(
            "12.5", date(2024, 5, 1), "Client visit",
            start_location="Home", end_location="Office",
        )

        assert expense.category == MILEAGE_CATEGORY
        assert expense.amount == Decimal("8.38")
        assert expense.miles == Decimal("12.5")
        assert expense.description == "Client visit"
        assert expense.notes == "Client visit - 12.5 miles @ $0.67/mile (Home to Office)"

    def test_explicit_id(self):
        assert mileage_expense(10, date(2024, 5, 1), "Supplies", record_id="e9").id == "e9"

    def test_from_trip(self):
        trip = MileageEntry(date=date(2023, 2, 1), miles=Decimal("20"), purpose="Bank")
        expense = expense_from_trip(trip)
        assert expense.amount == Decimal("13.10")
        assert expense.date == date(2023, 2, 1)
