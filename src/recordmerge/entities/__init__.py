"""Domain entities for the record consolidation system."""

from .core import (
    ConsolidationOutcome,
    FieldConflict,
    FieldSelection,
    FieldSpec,
    JobConfig,
    JobState,
    JobStatus,
    MasterStrategy,
    MatchType,
    MergeAuditEntry,
    Record,
    Value,
    is_populated,
)

__all__ = [
    "Value",
    "Record",
    "is_populated",
    "FieldSpec",
    "MatchType",
    "MasterStrategy",
    "FieldSelection",
    "JobConfig",
    "JobStatus",
    "JobState",
    "ConsolidationOutcome",
    "FieldConflict",
    "MergeAuditEntry",
]
