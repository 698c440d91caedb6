"""Audit logging package."""

from smallearns.audit.logger import AuditLogger
from smallearns.audit.sink import AuditSinkInterface, InMemoryAuditSink

__all__ = ["AuditLogger", "AuditSinkInterface", "InMemoryAuditSink"]
