"""
Calendar arithmetic for recurring rules.

All functions are pure: the same inputs always give the same date.
Month and year steps are calendar-aware and clamp to the end of shorter
months instead of overflowing into the next one.
"""

import calendar
from datetime import date, timedelta
from typing import Optional, Union

from smallearns.models.records import Frequency


def add_months(day: date, months: int, anchor_day: Optional[int] = None) -> date:
    """
    Move `day` by a number of calendar months.

    Args:
        day: Starting date
        months: Months to add (may be negative)
        anchor_day: Preferred day of month; defaults to `day.day`. Passing the
                    series' original day keeps Jan 31 -> Feb 29 -> Mar 31
                    instead of drifting to the 29th.

    Returns:
        The target date, clamped to the last day of the target month
    """
    target_day = anchor_day or day.day
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(target_day, last_day))


def advance(
    cursor: date,
    frequency: Union[Frequency, str],
    interval: int,
    anchor_day: Optional[int] = None,
) -> date:
    """
    Next occurrence after `cursor`.

    daily   -> +interval days
    weekly  -> +7 x interval days
    monthly -> +interval calendar months
    yearly  -> +interval calendar years (Feb 29 clamps to Feb 28)

    Raises:
        ValueError: On an unknown frequency or an interval below 1
    """
    if interval < 1:
        raise ValueError(f"interval must be at least 1 (got {interval})")

    frequency = Frequency(frequency)
    if frequency == Frequency.DAILY:
        return cursor + timedelta(days=interval)
    if frequency == Frequency.WEEKLY:
        return cursor + timedelta(weeks=interval)
    if frequency == Frequency.MONTHLY:
        return add_months(cursor, interval, anchor_day)
    return add_months(cursor, 12 * interval, anchor_day)


def horizon_from(today: date, months: int) -> date:
    """Last day occurrences are materialized for, `months` ahead of today."""
    return add_months(today, months)
