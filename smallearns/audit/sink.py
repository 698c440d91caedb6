"""
Audit Sinks

Where audit events go besides the local log. Sinks are append-only:
events are never modified or deleted.
"""

from abc import ABC, abstractmethod

from smallearns.models.audit import AuditEvent, AuditEventType


class AuditSinkInterface(ABC):
    """Abstract interface for audit event persistence."""

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event.

        Args:
            event: The audit event to record

        Returns:
            True if recorded successfully
        """
        pass


class InMemoryAuditSink(AuditSinkInterface):
    """Keeps audit events in memory, oldest first."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        """Events of one type, oldest first."""
        return [e for e in self.events if e.event_type == event_type]
