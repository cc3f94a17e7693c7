"""Storage collaborators: record stores, audit sinks, and job-state stores."""

from .base import AuditSink, JobStateStore, RecordStore
from .memory import InMemoryAuditLog, InMemoryJobStateStore, InMemoryRecordStore, matches_filter
from .audit import JsonlAuditLog, render_audit_note
from .jsonl import JsonlRecordStore

__all__ = [
    "RecordStore",
    "AuditSink",
    "JobStateStore",
    "InMemoryRecordStore",
    "InMemoryAuditLog",
    "InMemoryJobStateStore",
    "matches_filter",
    "JsonlAuditLog",
    "render_audit_note",
    "JsonlRecordStore",
]
