"""Chunk-level coordinator tying grouping and merging together."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, Iterable, List, Sequence

from recordmerge.entities.core import FieldSelection, FieldSpec, MasterStrategy, Record
from recordmerge.pipeline.deduplication.grouping import DuplicateGroupingEngine
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.pipeline.deduplication.merger import MergeExecutor, MergeResult
from recordmerge.utils.logging import get_logger, log_timing


_LOGGER = get_logger(module=__name__)


@dataclass
class ChunkResult:
    """Aggregate result from processing one chunk of records."""

    groups: Dict[str, DuplicateGroup]
    records_processed: int
    duplicates_found: int
    records_merged: int = 0
    errors: List[str] = field(default_factory=list)
    merge_results: List[MergeResult] = field(default_factory=list)
    stats: Dict[str, object] = field(default_factory=dict)

    @property
    def last_record_id(self) -> str | None:
        return self.stats.get("last_record_id")  # type: ignore[return-value]


class DeduplicationProcessor:
    """Run grouping, then optionally merging, over one chunk.

    Calls to :meth:`process` are serialized with an internal threading lock so a
    single processor instance can be shared without additional coordination.
    Dry runs never touch the merge executor.
    """

    def __init__(
        self,
        engine: DuplicateGroupingEngine,
        executor: MergeExecutor | None = None,
    ) -> None:
        self.engine = engine
        self.executor = executor
        self._lock = threading.Lock()

    def process(
        self,
        records: Iterable[Record],
        field_specs: Sequence[FieldSpec],
        *,
        strategy: MasterStrategy | str | None = None,
        threshold: float | None = None,
        dry_run: bool = True,
        field_selection: FieldSelection | None = None,
    ) -> ChunkResult:
        with self._lock:
            start_time = perf_counter()
            chunk = list(records)
            groups = self.engine.find_groups(chunk, field_specs, threshold=threshold)
            duplicates = sum(group.size - 1 for group in groups.values())
            result = ChunkResult(
                groups=groups,
                records_processed=len(chunk),
                duplicates_found=duplicates,
                stats={
                    "grouping": self.engine.last_stats.as_dict(),
                    "last_record_id": chunk[-1].id if chunk else None,
                },
            )

            if not dry_run and groups:
                if self.executor is None:
                    raise RuntimeError("a merge executor is required for live runs")
                with log_timing("merge", logger_=_LOGGER):
                    for group in groups.values():
                        if not group.has_duplicates():
                            continue
                        outcome = self.executor.merge(group, strategy, field_selection=field_selection)
                        result.merge_results.append(outcome)
                        result.records_merged += outcome.records_merged
                        result.errors.extend(outcome.errors)

            result.stats["elapsed_seconds"] = perf_counter() - start_time
            _LOGGER.info(
                "Chunk processed",
                records=result.records_processed,
                groups=len(groups),
                duplicates=duplicates,
                merged=result.records_merged,
                errors=len(result.errors),
                dry_run=dry_run,
            )
            return result


__all__ = ["DeduplicationProcessor", "ChunkResult"]
