"""In-memory collaborators for tests, dry runs, and embedding hosts."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from recordmerge.entities.core import ConsolidationOutcome, JobState, MergeAuditEntry, Record, Value
from recordmerge.errors import StorageError
from recordmerge.utils.helpers import value_to_text
from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


def matches_filter(record: Record, filter: Mapping[str, Value] | None) -> bool:
    """Exact-value filter on raw fields; textual comparison keeps types lenient."""

    if not filter:
        return True
    for name, expected in filter.items():
        actual = record.fields.get(name)
        if value_to_text(actual) != value_to_text(expected):
            return False
    return True


class InMemoryRecordStore:
    """Dictionary-backed record store keyed by object type and record id."""

    def __init__(
        self,
        records: Mapping[str, Iterable[Record]] | None = None,
        *,
        object_types: Iterable[str] | None = None,
    ) -> None:
        self._records: Dict[str, Dict[str, Record]] = {}
        self._lock = threading.RLock()
        for name in object_types or ():
            self._records.setdefault(name, {})
        for object_type, items in (records or {}).items():
            self.add(object_type, items)

    def add(self, object_type: str, records: Iterable[Record]) -> None:
        with self._lock:
            bucket = self._records.setdefault(object_type, {})
            for record in records:
                bucket[record.id] = record

    def _bucket(self, object_type: str) -> Dict[str, Record]:
        bucket = self._records.get(object_type)
        if bucket is None:
            raise StorageError(f"unknown object type '{object_type}'", {"object_type": object_type})
        return bucket

    def object_types(self) -> List[str]:
        return sorted(self._records)

    def get(self, object_type: str, record_id: str) -> Optional[Record]:
        return self._bucket(object_type).get(record_id)

    def all(self, object_type: str) -> List[Record]:
        bucket = self._bucket(object_type)
        return [bucket[record_id] for record_id in sorted(bucket)]

    def fetch(
        self,
        object_type: str,
        filter: Mapping[str, Value] | None,
        after_id: Optional[str],
        limit: int,
    ) -> List[Record]:
        with self._lock:
            selected: List[Record] = []
            for record in self.all(object_type):
                if after_id is not None and record.id <= after_id:
                    continue
                if not matches_filter(record, filter):
                    continue
                selected.append(record)
                if len(selected) >= limit:
                    break
            return selected

    def count(self, object_type: str, filter: Mapping[str, Value] | None) -> int:
        with self._lock:
            return sum(1 for record in self._bucket(object_type).values() if matches_filter(record, filter))

    def update(self, object_type: str, record_id: str, values: Mapping[str, Value]) -> None:
        with self._lock:
            bucket = self._bucket(object_type)
            record = bucket.get(record_id)
            if record is None:
                raise StorageError(f"record {record_id} not found", {"object_type": object_type})
            fields = dict(record.fields)
            fields.update(values)
            bucket[record_id] = record.model_copy(update={"fields": fields})
            self._after_write(object_type)

    def consolidate(
        self,
        object_type: str,
        master_id: str,
        duplicate_ids: Sequence[str],
    ) -> List[ConsolidationOutcome]:
        with self._lock:
            bucket = self._bucket(object_type)
            if master_id not in bucket:
                raise StorageError(f"master record {master_id} not found", {"object_type": object_type})
            outcomes: List[ConsolidationOutcome] = []
            for record_id in duplicate_ids:
                if record_id == master_id:
                    outcomes.append(ConsolidationOutcome(record_id=record_id, success=False, error="cannot merge a record into itself"))
                elif bucket.pop(record_id, None) is None:
                    outcomes.append(ConsolidationOutcome(record_id=record_id, success=False, error="record not found"))
                else:
                    outcomes.append(ConsolidationOutcome(record_id=record_id, success=True))
            _LOGGER.debug(
                "Consolidated records",
                object_type=object_type,
                master_id=master_id,
                requested=len(duplicate_ids),
                removed=sum(1 for outcome in outcomes if outcome.success),
            )
            self._after_write(object_type)
            return outcomes

    def _after_write(self, object_type: str) -> None:
        """Hook for persistent subclasses."""


class InMemoryAuditLog:
    """Collects audit entries in a list."""

    def __init__(self) -> None:
        self.entries: List[MergeAuditEntry] = []

    def record(self, entry: MergeAuditEntry) -> None:
        self.entries.append(entry)

    def for_master(self, master_id: str) -> List[MergeAuditEntry]:
        return [entry for entry in self.entries if entry.master_id == master_id]


class InMemoryJobStateStore:
    """Keeps deep copies of job states so callers cannot mutate stored snapshots."""

    def __init__(self) -> None:
        self._states: Dict[str, JobState] = {}
        self.saves = 0

    def save(self, state: JobState) -> None:
        self._states[state.job_id] = state.model_copy(deep=True)
        self.saves += 1

    def load(self, job_id: str) -> Optional[JobState]:
        state = self._states.get(job_id)
        return state.model_copy(deep=True) if state is not None else None

    def list_jobs(self) -> List[str]:
        return sorted(self._states)


__all__ = [
    "InMemoryRecordStore",
    "InMemoryAuditLog",
    "InMemoryJobStateStore",
    "matches_filter",
]
