"""
Audit Logger

Every repair or side effect the store performs without being asked
(dropping a bad record, migrating a collection, generating an appointment,
replacing everything on import) goes through here.

The audit logger:
- Always writes a structured local log line
- Optionally appends the event to an audit sink
- Never raises: a failing sink is logged and ignored
"""

from typing import Optional

import structlog

from smallearns.audit.sink import AuditSinkInterface
from smallearns.models.audit import AuditEvent, AuditEventBuilder
from smallearns.models.records import Collection, ValidationReport


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit sink, when one is configured
    """

    def __init__(
        self,
        sink: Optional[AuditSinkInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            sink: Where events are persisted.
                  If None, only logs locally.
        """
        self._sink = sink
        self._logger = structlog.get_logger("smallearns.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the sink accepted it (or no sink is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._sink:
            try:
                return self._sink.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_sink_failed",
                    error=str(e),
                    event_type=event.event_type.value,
                )
                return False

        return True

    def log_validation(self, report: ValidationReport) -> None:
        """Log the outcome of loading one collection."""
        if report.migrated:
            self.log(AuditEventBuilder.collection_migrated(
                collection=report.collection,
                from_version=report.source_version,
                to_version=report.target_version,
                count=report.kept,
            ))
        for issue in report.issues:
            self.log(AuditEventBuilder.record_dropped(
                collection=report.collection,
                record_index=issue.record_index,
                record_id=issue.record_id,
                reason=f"{issue.field}: {issue.message}",
            ))
        self.log(AuditEventBuilder.collection_loaded(
            collection=report.collection,
            count=report.kept,
            version=report.target_version,
        ))

    def log_quarantined(
        self,
        collection: Collection,
        reason: str,
        quarantine_key: str,
    ) -> None:
        """Log that raw data was set aside instead of loaded."""
        self.log(AuditEventBuilder.collection_quarantined(
            collection=collection,
            reason=reason,
            quarantine_key=quarantine_key,
        ))

    def log_write_failed(
        self,
        collection: Optional[Collection],
        key: str,
        error_message: str,
    ) -> None:
        """Log a lost durable write."""
        self.log(AuditEventBuilder.write_failed(
            collection=collection,
            key=key,
            error_message=error_message,
        ))

    def log_rule_skipped(self, rule_id: str, reason: str) -> None:
        """Log a recurring rule the engine could not expand."""
        self.log(AuditEventBuilder.rule_skipped(rule_id=rule_id, reason=reason))

    def log_occurrence_generated(
        self,
        rule_id: str,
        appointment_id: str,
        occurrence: str,
    ) -> None:
        """Log a materialized recurring appointment."""
        self.log(AuditEventBuilder.occurrence_generated(
            rule_id=rule_id,
            appointment_id=appointment_id,
            occurrence=occurrence,
        ))
