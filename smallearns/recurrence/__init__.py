"""Recurring appointment generation."""

from smallearns.recurrence.dates import add_months, advance, horizon_from
from smallearns.recurrence.engine import (
    GenerationReport,
    MalformedRuleError,
    RecurrenceEngine,
)

__all__ = [
    "GenerationReport",
    "MalformedRuleError",
    "RecurrenceEngine",
    "add_months",
    "advance",
    "horizon_from",
]
