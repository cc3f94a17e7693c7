"""Consolidate duplicate groups into their master records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from recordmerge.config.policies import MergePolicy
from recordmerge.entities.core import FieldSelection, MasterStrategy, MergeAuditEntry, Record, Value
from recordmerge.errors import MergeError, StorageError
from recordmerge.pipeline.deduplication.conflicts import ConflictSet
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.pipeline.deduplication.keys import read_value
from recordmerge.storage.base import AuditSink, RecordStore
from recordmerge.utils.helpers import chunked, value_to_text
from recordmerge.utils.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from recordmerge.orchestration.budget import ResourceBudget


_LOGGER = get_logger(module=__name__)


@dataclass
class MergeResult:
    """Outcome of consolidating one group; always well formed, even on failure."""

    records_merged: int
    errors: List[str] = field(default_factory=list)
    master_id: Optional[str] = None
    merged_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)
    failures: List[MergeError] = field(default_factory=list)
    conflicts: Optional[ConflictSet] = None
    survivor_updates: Dict[str, Value] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.errors


def resolve_survivor_values(
    master: Record,
    others: Sequence[Record],
    selection: FieldSelection,
) -> Dict[str, Value]:
    """Compute the master field overwrites demanded by *selection*.

    ``MasterWins`` never overwrites. ``NonBlank`` fills master blanks from the
    first absorbed record (group order) that has a value. ``MostRecent`` takes,
    per field, the value of the most recently created record holding one.
    """

    if selection == FieldSelection.MASTER_WINS:
        return {}

    names: List[str] = []
    for record in [master, *others]:
        for name in record.field_names():
            if name not in names:
                names.append(name)

    updates: Dict[str, Value] = {}
    for name in sorted(names):
        master_value = read_value(master, name)
        if selection == FieldSelection.NON_BLANK:
            if master_value is not None:
                continue
            for other in others:
                value = read_value(other, name)
                if value is not None:
                    updates[name] = value
                    break
            continue

        newest: Optional[Record] = None
        newest_value: Value = None
        for record in [master, *others]:
            value = read_value(record, name)
            if value is None:
                continue
            if newest is None or record.created_at > newest.created_at:
                newest = record
                newest_value = value
        if newest is None or newest.id == master.id:
            continue
        if value_to_text(newest_value).strip() != value_to_text(master_value).strip():
            updates[name] = newest_value
    return updates


class MergeExecutor:
    """Apply survivorship, consolidate duplicates, and emit an audit entry per group."""

    def __init__(
        self,
        store: RecordStore,
        object_type: str,
        *,
        audit_sink: AuditSink | None = None,
        policy: MergePolicy | None = None,
        budget: "ResourceBudget | None" = None,
    ) -> None:
        self.store = store
        self.object_type = object_type
        self.audit_sink = audit_sink
        self.policy = policy or MergePolicy()
        self.budget = budget

    def _consume(self, counter: str, amount: float) -> None:
        if self.budget is not None:
            self.budget.consume(counter, amount)

    def _consolidate(self, master: Record, duplicate_ids: Sequence[str]) -> tuple[List[str], Dict[str, MergeError]]:
        merged: List[str] = []
        failures: Dict[str, MergeError] = {}
        for batch in chunked(duplicate_ids, self.policy.sub_batch_size):
            try:
                outcomes = self.store.consolidate(self.object_type, master.id, batch)
            except StorageError as exc:
                _LOGGER.warning(
                    "Consolidation sub-batch failed",
                    master_id=master.id,
                    batch_size=len(batch),
                    error=str(exc),
                )
                for record_id in batch:
                    failures[record_id] = MergeError(master.id, record_id, str(exc))
                continue
            finally:
                self._consume("dml_rows", len(batch))
            reported = {outcome.record_id: outcome for outcome in outcomes}
            for record_id in batch:
                outcome = reported.get(record_id)
                if outcome is None:
                    failures[record_id] = MergeError(master.id, record_id, "no consolidation outcome reported")
                elif outcome.success:
                    merged.append(record_id)
                else:
                    failures[record_id] = MergeError(master.id, record_id, outcome.error or "consolidation failed")
        return merged, failures

    def _emit_audit(self, entry: MergeAuditEntry) -> Optional[str]:
        if self.audit_sink is None:
            return None
        try:
            self.audit_sink.record(entry)
        except Exception as exc:  # the merges above are already committed
            _LOGGER.error("Failed to record merge audit entry", master_id=entry.master_id, error=str(exc))
            return f"audit entry failed for {entry.master_id}: {exc}"
        return None

    def merge(
        self,
        group: DuplicateGroup,
        strategy: MasterStrategy | str | None = None,
        *,
        field_selection: FieldSelection | None = None,
    ) -> MergeResult:
        """Consolidate *group* into the master chosen by *strategy*.

        Individual record failures are collected and the remaining duplicates
        are still attempted.
        """

        try:
            return self._merge(group, strategy, field_selection or self.policy.field_selection)
        except Exception as exc:
            _LOGGER.exception("Merge aborted", group_key=group.group_key, error=str(exc))
            return MergeResult(records_merged=0, errors=[f"merge aborted for group {group.group_key}: {exc}"])

    def _merge(
        self,
        group: DuplicateGroup,
        strategy: MasterStrategy | str | None,
        selection: FieldSelection,
    ) -> MergeResult:
        master = group.get_master(strategy)
        if master is None or not group.has_duplicates():
            return MergeResult(records_merged=0, master_id=master.id if master else None)
        group.assign_master(master)
        others = [record for record in group.records if record.id != master.id]
        duplicate_ids = group.get_duplicate_ids(master)

        conflicts = ConflictSet.build(
            master,
            others,
            capture_non_mergeable=self.policy.capture_non_mergeable,
        )
        errors: List[str] = []

        updates = resolve_survivor_values(master, others, selection)
        if updates:
            try:
                self.store.update(self.object_type, master.id, updates)
            except StorageError as exc:
                _LOGGER.warning("Survivor update failed", master_id=master.id, error=str(exc))
                errors.append(f"survivor update failed for {master.id}: {exc}")
                updates = {}
            finally:
                self._consume("dml_rows", 1)

        merged, failures = self._consolidate(master, duplicate_ids)
        for error in failures.values():
            _LOGGER.warning("Record merge failed", **error.details, error=error.message)
            errors.append(f"merge failed for {error.record_id} into {error.master_id}: {error.message}")

        entry = MergeAuditEntry(
            master_id=master.id,
            merged_ids=merged,
            failed_ids=list(failures),
            object_type=self.object_type,
            group_key=group.group_key,
            match_score=group.match_score,
            is_exact_match=group.is_exact_match,
            conflicts=conflicts.conflicts,
            non_mergeable_data=conflicts.non_mergeable,
            survivor_updates=updates,
            actor=self.policy.actor,
        )
        audit_error = self._emit_audit(entry)
        if audit_error:
            errors.append(audit_error)

        _LOGGER.info(
            "Group merged",
            group_key=group.group_key,
            master_id=master.id,
            merged=len(merged),
            failed=len(failures),
            conflicts=len(conflicts),
        )
        return MergeResult(
            records_merged=len(merged),
            errors=errors,
            master_id=master.id,
            merged_ids=merged,
            failed_ids=list(failures),
            failures=list(failures.values()),
            conflicts=conflicts,
            survivor_updates=updates,
        )


__all__ = ["MergeExecutor", "MergeResult", "resolve_survivor_values"]
