"""Duplicate group value object and master-selection policies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from recordmerge.entities.core import MasterStrategy, Record


def _first_by(records: Sequence[Record], better: Callable[[Record, Record], bool]) -> Optional[Record]:
    """Linear scan keeping the first record unless a later one is strictly better."""

    best: Optional[Record] = None
    for record in records:
        if best is None or better(record, best):
            best = record
    return best


def select_master(records: Sequence[Record], strategy: MasterStrategy | str | None) -> Optional[Record]:
    """Pick the surviving record; ties always resolve to the earliest record.

    Unknown strategy names fall back to ``OldestCreated``.
    """

    if not records:
        return None
    resolved = MasterStrategy.parse(strategy)
    if resolved == MasterStrategy.NEWEST_CREATED:
        return _first_by(records, lambda candidate, best: candidate.created_at > best.created_at)
    if resolved == MasterStrategy.MOST_COMPLETE:
        return _first_by(
            records,
            lambda candidate, best: candidate.populated_field_count() > best.populated_field_count(),
        )
    return _first_by(records, lambda candidate, best: candidate.created_at < best.created_at)


@dataclass
class DuplicateGroup:
    """A cluster of records believed to describe the same entity."""

    records: List[Record]
    match_score: float
    group_key: str
    is_exact_match: bool
    master_id: Optional[str] = field(default=None)

    @property
    def size(self) -> int:
        return len(self.records)

    def has_duplicates(self) -> bool:
        return len(self.records) > 1

    @property
    def record_ids(self) -> List[str]:
        return [record.id for record in self.records]

    def get_master(self, strategy: MasterStrategy | str | None = None) -> Optional[Record]:
        return select_master(self.records, strategy)

    def get_duplicate_ids(self, master: Optional[Record]) -> List[str]:
        if master is None or not self.records:
            return []
        return [record.id for record in self.records if record.id != master.id]

    def assign_master(self, master: Record) -> None:
        """Record which member survives; the only mutation a group allows."""

        if master.id not in self.record_ids:
            raise ValueError(f"record {master.id} is not a member of group {self.group_key}")
        self.master_id = master.id

    def summary(self, strategy: MasterStrategy | str | None = None) -> Dict[str, Any]:
        """Report view; without an assigned master, *strategy* names the would-be survivor."""

        master_id = self.master_id
        if master_id is None and strategy is not None:
            master = self.get_master(strategy)
            master_id = master.id if master else None
        return {
            "group_key": self.group_key,
            "size": self.size,
            "match_score": round(self.match_score, 4),
            "is_exact_match": self.is_exact_match,
            "record_ids": self.record_ids,
            "master_id": master_id,
        }


__all__ = ["DuplicateGroup", "select_master"]
