"""Collaborator protocols the engine depends on.

The consolidation core never talks to a concrete database. Record retrieval,
consolidation, audit output and job-state persistence all go through these
narrow interfaces so hosts can plug in their own storage.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from recordmerge.entities.core import ConsolidationOutcome, JobState, MergeAuditEntry, Record, Value


@runtime_checkable
class RecordStore(Protocol):
    def object_types(self) -> Sequence[str]:
        ...

    def fetch(
        self,
        object_type: str,
        filter: Mapping[str, Value] | None,
        after_id: Optional[str],
        limit: int,
    ) -> List[Record]:
        """Return up to *limit* records with ids greater than *after_id*, ordered by id."""

    def count(self, object_type: str, filter: Mapping[str, Value] | None) -> int:
        ...

    def update(self, object_type: str, record_id: str, values: Mapping[str, Value]) -> None:
        ...

    def consolidate(
        self,
        object_type: str,
        master_id: str,
        duplicate_ids: Sequence[str],
    ) -> List[ConsolidationOutcome]:
        """Absorb *duplicate_ids* into *master_id*; may raise ``StorageError`` for the batch."""


@runtime_checkable
class AuditSink(Protocol):
    def record(self, entry: MergeAuditEntry) -> None:
        ...


@runtime_checkable
class JobStateStore(Protocol):
    def save(self, state: JobState) -> None:
        ...

    def load(self, job_id: str) -> Optional[JobState]:
        ...

    def list_jobs(self) -> List[str]:
        ...


__all__ = ["RecordStore", "AuditSink", "JobStateStore"]
