"""
Recurrence Engine

Expands every active RecurringRule into concrete Appointment records from
today through a fixed horizon, without ever booking the same occurrence
twice.

HOW IT STAYS IDEMPOTENT:
- Each rule carries a high-water mark, `last_generated_date`: the latest
  occurrence already processed. Generation resumes after it.
- An occurrence is materialized only if no appointment with the same
  (rule id, date, client id) exists.
- For every occurrence from today onwards the appointment is committed
  first and the advanced mark right after it, both immediately. A crash
  between the two leaves an appointment the existence check will find.

POLICIES:
- Past occurrences are fast-forwarded, never materialized
- An inactive rule is not touched; its mark stays frozen and reactivation
  resumes from it, so the inactive period is never back-filled
- An appointment the user deleted stays deleted: the mark is past it
- A malformed rule is skipped and logged; the other rules still run

The engine only ever creates appointments. It never deletes one.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from smallearns.audit import AuditLogger
from smallearns.config import get_settings
from smallearns.models.records import (
    Appointment,
    AppointmentStatus,
    Collection,
    RecurringRule,
)
from smallearns.recurrence.dates import advance, horizon_from
from smallearns.services.storage import NotFoundError
from smallearns.store import LocalDataStore


class MalformedRuleError(ValueError):
    """A rule cannot be expanded (missing/unknown frequency, bad interval)."""

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Recurring rule {rule_id} is malformed: {reason}")


class GenerationReport(BaseModel):
    """Outcome of one generation run."""

    today: date
    horizon: date
    rules_processed: int = Field(
        default=0,
        ge=0,
        description="Active, well-formed rules that were expanded"
    )
    created: list[Appointment] = Field(default_factory=list)
    skipped_rules: list[str] = Field(
        default_factory=list,
        description="Ids of malformed rules"
    )

    @property
    def created_count(self) -> int:
        return len(self.created)


class RecurrenceEngine:
    """
    Materializes recurring appointments through a LocalDataStore.

    All reads and writes go through the store, so a pending debounced
    write can never land on top of generated appointments.
    """

    def __init__(
        self,
        store: LocalDataStore,
        horizon_months: Optional[int] = None,
        note_suffix: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        settings = get_settings().recurrence
        self._store = store
        self._horizon_months = horizon_months or settings.generation_horizon_months
        self._note_suffix = note_suffix if note_suffix is not None else settings.generated_note_suffix
        self._audit = audit_logger or store.audit_logger

    @property
    def horizon_months(self) -> int:
        return self._horizon_months

    # =========================================================================
    # Pure helpers
    # =========================================================================

    @staticmethod
    def check_rule(rule: RecurringRule) -> None:
        """
        Raises:
            MalformedRuleError: If the rule cannot be expanded
        """
        problem = rule.schedule_problem()
        if problem is not None:
            raise MalformedRuleError(rule.id, problem)

    @staticmethod
    def next_cursor(rule: RecurringRule) -> date:
        """First occurrence not yet processed for this rule."""
        if rule.last_generated_date is None:
            return rule.start_date
        return advance(
            rule.last_generated_date,
            rule.frequency,
            rule.interval,
            anchor_day=rule.start_date.day,
        )

    def preview(
        self,
        rule: RecurringRule,
        count: int = 5,
        today: Optional[date] = None,
    ) -> list[date]:
        """
        Upcoming occurrence dates of a rule, without side effects.

        Occurrences before `today` are skipped, as generation would.

        Raises:
            MalformedRuleError: If the rule cannot be expanded
        """
        self.check_rule(rule)
        today = today or date.today()
        upcoming = []
        cursor = self.next_cursor(rule)
        while len(upcoming) < count:
            if cursor >= today:
                upcoming.append(cursor)
            cursor = advance(cursor, rule.frequency, rule.interval, anchor_day=rule.start_date.day)
        return upcoming

    # =========================================================================
    # Generation
    # =========================================================================

    def generate(
        self,
        today: Optional[date] = None,
        horizon: Optional[date] = None,
    ) -> GenerationReport:
        """
        Bring every active rule up to the horizon.

        Args:
            today: Occurrences before this day are never materialized
            horizon: Last day to materialize; defaults to today plus the
                     configured number of months

        Returns:
            GenerationReport with the created appointments
        """
        today = today or date.today()
        horizon = horizon or horizon_from(today, self._horizon_months)
        report = GenerationReport(today=today, horizon=horizon)

        for rule in self._store.get(Collection.RECURRING_RULES):
            if not rule.is_active:
                continue
            try:
                self.check_rule(rule)
            except MalformedRuleError as e:
                self._audit.log_rule_skipped(e.rule_id, e.reason)
                report.skipped_rules.append(rule.id)
                continue

            report.rules_processed += 1
            report.created.extend(self._expand(rule, today, horizon))

        return report

    def _expand(self, rule: RecurringRule, today: date, horizon: date) -> list[Appointment]:
        created = []
        mark = rule.last_generated_date
        cursor = self.next_cursor(rule)

        while cursor <= horizon:
            if cursor >= today:
                if not self._exists(rule, cursor):
                    created.append(self._materialize(rule, cursor))
                mark = cursor
                self._save_mark(rule, mark)
            else:
                # Fast-forward: nothing is created before today, so the mark
                # only needs to be durable once the loop reaches the present
                mark = cursor
            cursor = advance(cursor, rule.frequency, rule.interval, anchor_day=rule.start_date.day)

        if mark != rule.last_generated_date and not self._mark_saved(rule, mark):
            self._save_mark(rule, mark)
        return created

    def _exists(self, rule: RecurringRule, occurrence: date) -> bool:
        return any(
            appointment.recurring_rule_id == rule.id
            and appointment.date == occurrence
            and appointment.client_id == rule.client_id
            for appointment in self._store.get(Collection.APPOINTMENTS)
        )

    def _materialize(self, rule: RecurringRule, occurrence: date) -> Appointment:
        notes = f"{rule.notes} {self._note_suffix}".strip()
        appointment = Appointment(
            client_id=rule.client_id,
            date=occurrence,
            time=rule.time,
            service=rule.service,
            status=AppointmentStatus.SCHEDULED,
            notes=notes,
            recurring_rule_id=rule.id,
        )
        appointments = self._store.get(Collection.APPOINTMENTS)
        appointments.append(appointment)
        self._store.commit(Collection.APPOINTMENTS, appointments)
        self._audit.log_occurrence_generated(rule.id, appointment.id, occurrence.isoformat())
        return appointment

    def _current_rule(self, rule_id: str) -> Optional[RecurringRule]:
        return self._store.find(Collection.RECURRING_RULES, rule_id)

    def _mark_saved(self, rule: RecurringRule, mark: date) -> bool:
        current = self._current_rule(rule.id)
        return current is not None and current.last_generated_date == mark

    def _save_mark(self, rule: RecurringRule, mark: date) -> None:
        rules = self._store.get(Collection.RECURRING_RULES)
        for index, existing in enumerate(rules):
            if existing.id == rule.id:
                rules[index] = existing.model_copy(update={"last_generated_date": mark})
                break
        else:
            return
        self._store.commit(Collection.RECURRING_RULES, rules)

    # =========================================================================
    # Rule management
    # =========================================================================

    def set_active(self, rule_id: str, is_active: bool) -> RecurringRule:
        """
        Pause or resume a rule.

        The high-water mark is left as is: resuming continues forward from
        it and never fills in the paused period.

        Raises:
            NotFoundError: If no rule has this id
        """
        rules = self._store.get(Collection.RECURRING_RULES)
        for index, existing in enumerate(rules):
            if existing.id == rule_id:
                updated = existing.model_copy(update={"is_active": is_active})
                rules[index] = updated
                self._store.commit(Collection.RECURRING_RULES, rules)
                return updated
        raise NotFoundError(f"No recurring rule with id {rule_id}")
