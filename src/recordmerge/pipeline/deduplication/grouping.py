"""Two-phase duplicate grouping: exact key partitions, then greedy fuzzy clustering."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, Iterable, List, Optional, Sequence

from recordmerge.config.policies import MatchingPolicy
from recordmerge.entities.core import FieldSpec, Record
from recordmerge.errors import ConfigurationError
from recordmerge.pipeline.deduplication.graph import UnionFind
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.pipeline.deduplication.keys import CompositeKey, CompositeKeyBuilder
from recordmerge.pipeline.deduplication.matchers import MatcherRegistry
from recordmerge.pipeline.deduplication.weights import FieldWeights
from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)

FUZZY_GROUP_PREFIX = "fuzzy-"
# Scores are compared at this precision so float noise cannot flip a boundary decision.
_SCORE_PRECISION = 6


@dataclass
class GroupingStats:
    """Counters describing one grouping invocation."""

    records: int = 0
    excluded_from_exact: int = 0
    partitions: int = 0
    folded_partitions: int = 0
    exact_groups: int = 0
    fuzzy_groups: int = 0
    pairs_compared: int = 0
    fuzzy_skipped: bool = False
    elapsed_seconds: float = 0.0

    def as_dict(self) -> Dict[str, object]:
        return {
            "records": self.records,
            "excluded_from_exact": self.excluded_from_exact,
            "partitions": self.partitions,
            "folded_partitions": self.folded_partitions,
            "exact_groups": self.exact_groups,
            "fuzzy_groups": self.fuzzy_groups,
            "pairs_compared": self.pairs_compared,
            "fuzzy_skipped": self.fuzzy_skipped,
            "elapsed_seconds": self.elapsed_seconds,
        }


@dataclass
class _Partition:
    key: CompositeKey
    records: List[Record] = field(default_factory=list)


class DuplicateGroupingEngine:
    """Group a chunk of records into exact and fuzzy duplicate clusters.

    The engine is deterministic for a given input order. Fuzzy clustering is
    greedy single-link: each unmatched record seeds a group and absorbs every
    later unmatched record that scores at or above the threshold against the
    seed. Chains (A~B, B~C, A!~C) are therefore not closed transitively.
    """

    def __init__(
        self,
        registry: MatcherRegistry | None = None,
        *,
        policy: MatchingPolicy | None = None,
        weights: FieldWeights | None = None,
        key_builder: CompositeKeyBuilder | None = None,
    ) -> None:
        self.policy = policy or MatchingPolicy()
        self.registry = registry or MatcherRegistry.default(self.policy)
        self.weights = weights or FieldWeights(self.policy.weight_overrides)
        self.key_builder = key_builder or CompositeKeyBuilder(self.registry.normalizer)
        self.last_stats = GroupingStats()

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def score_pair(self, record1: Record, record2: Record, field_specs: Sequence[FieldSpec]) -> Optional[float]:
        """Weighted per-field score, or ``None`` when no field is comparable.

        Fields null on both sides are left out of numerator and denominator.
        """

        profile1 = self.key_builder.comparison_profile(record1, field_specs)
        profile2 = self.key_builder.comparison_profile(record2, field_specs)
        numerator = 0.0
        denominator = 0.0
        for spec in field_specs:
            value1 = profile1[spec.name]
            value2 = profile2[spec.name]
            if value1 is None and value2 is None:
                continue
            weight = self.weights.weight_for(spec)
            numerator += self.registry.grouping_score(spec.name, value1, value2) * weight
            denominator += weight
        if denominator <= 0:
            return None
        return numerator / denominator

    @staticmethod
    def meets_threshold(score: Optional[float], threshold: float) -> bool:
        return score is not None and round(score, _SCORE_PRECISION) >= threshold

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------
    def _partition(self, records: Sequence[Record], field_specs: Sequence[FieldSpec], stats: GroupingStats) -> List[_Partition]:
        partitions: Dict[str, _Partition] = {}
        for record in records:
            key = self.key_builder.build(record, field_specs)
            if key.excluded:
                stats.excluded_from_exact += 1
                continue
            partition = partitions.get(key.value)
            if partition is None:
                partition = _Partition(key=key)
                partitions[key.value] = partition
            partition.records.append(record)
        stats.partitions = len(partitions)
        return list(partitions.values())

    def _fold_partitions(self, partitions: List[_Partition], stats: GroupingStats) -> List[List[_Partition]]:
        """Fold partitions with optional nulls into their single compatible partition."""

        if not self.policy.null_tolerant_exact:
            return [[partition] for partition in partitions]

        by_key = {partition.key.value: partition for partition in partitions}
        finder = UnionFind()
        for partition in partitions:
            finder.add(partition.key.value)

        for partition in partitions:
            key = partition.key
            if not key.has_nulls or key.null_count == len(key.parts):
                continue
            candidates = [
                other
                for other in partitions
                if other is not partition and key.covers(other.key)
            ]
            # Keep only the most specific candidates; a candidate covered by
            # another candidate is reached through it anyway.
            maximal = [
                candidate
                for candidate in candidates
                if not any(
                    other is not candidate and candidate.key.covers(other.key)
                    for other in candidates
                )
            ]
            if len(maximal) != 1:
                if maximal:
                    _LOGGER.debug(
                        "Ambiguous null-tolerant fold skipped",
                        key=key.value,
                        candidates=[candidate.key.value for candidate in maximal],
                    )
                continue
            finder.union(maximal[0].key.value, key.value)
            stats.folded_partitions += 1

        merged: List[List[_Partition]] = []
        for members in finder.components().values():
            merged.append([by_key[value] for value in members])
        return merged

    def _exact_groups(
        self,
        records: Sequence[Record],
        field_specs: Sequence[FieldSpec],
        stats: GroupingStats,
    ) -> Dict[str, DuplicateGroup]:
        partitions = self._partition(records, field_specs, stats)
        positions = {record.id: index for index, record in enumerate(records)}
        groups: List[DuplicateGroup] = []
        for cluster in self._fold_partitions(partitions, stats):
            members = [record for partition in cluster for record in partition.records]
            if len(members) < 2:
                continue
            members.sort(key=lambda record: positions[record.id])
            most_specific = min(cluster, key=lambda partition: partition.key.null_count)
            groups.append(
                DuplicateGroup(
                    records=members,
                    match_score=100.0,
                    group_key=most_specific.key.value,
                    is_exact_match=True,
                )
            )
        groups.sort(key=lambda group: positions[group.records[0].id])
        return {group.group_key: group for group in groups}

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------
    def _fuzzy_groups(
        self,
        residual: Sequence[Record],
        field_specs: Sequence[FieldSpec],
        threshold: float,
        stats: GroupingStats,
    ) -> Dict[str, DuplicateGroup]:
        groups: Dict[str, DuplicateGroup] = {}
        consumed: set[str] = set()
        for index, seed in enumerate(residual):
            if seed.id in consumed:
                continue
            members = [seed]
            best = 0.0
            for candidate in residual[index + 1 :]:
                if candidate.id in consumed:
                    continue
                score = self.score_pair(seed, candidate, field_specs)
                stats.pairs_compared += 1
                if self.meets_threshold(score, threshold):
                    members.append(candidate)
                    consumed.add(candidate.id)
                    best = max(best, score)
                    _LOGGER.debug(
                        "Fuzzy match accepted",
                        seed=seed.id,
                        candidate=candidate.id,
                        score=score,
                    )
            if len(members) > 1:
                consumed.add(seed.id)
                key = f"{FUZZY_GROUP_PREFIX}{seed.id}"
                groups[key] = DuplicateGroup(
                    records=members,
                    match_score=best,
                    group_key=key,
                    is_exact_match=False,
                )
        return groups

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def find_groups(
        self,
        records: Iterable[Record],
        field_specs: Sequence[FieldSpec],
        *,
        threshold: float | None = None,
    ) -> Dict[str, DuplicateGroup]:
        """Return discovered groups keyed by group key, exact groups first."""

        if not field_specs:
            raise ConfigurationError("at least one field spec is required for grouping")

        start = perf_counter()
        stats = GroupingStats()
        unique: List[Record] = []
        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                _LOGGER.warning("Duplicate record id in chunk; keeping first occurrence", record_id=record.id)
                continue
            seen.add(record.id)
            unique.append(record)
        stats.records = len(unique)

        resolved_threshold = self.policy.fuzzy_threshold if threshold is None else threshold
        groups = self._exact_groups(unique, field_specs, stats)
        stats.exact_groups = len(groups)

        if len(field_specs) < self.policy.min_fuzzy_fields:
            stats.fuzzy_skipped = True
        else:
            grouped = {record.id for group in groups.values() for record in group.records}
            residual = [record for record in unique if record.id not in grouped]
            fuzzy = self._fuzzy_groups(residual, field_specs, resolved_threshold, stats)
            stats.fuzzy_groups = len(fuzzy)
            groups.update(fuzzy)

        stats.elapsed_seconds = perf_counter() - start
        self.last_stats = stats
        _LOGGER.info(
            "Grouping finished",
            records=stats.records,
            exact_groups=stats.exact_groups,
            fuzzy_groups=stats.fuzzy_groups,
            pairs_compared=stats.pairs_compared,
            threshold=resolved_threshold,
        )
        return groups


__all__ = ["DuplicateGroupingEngine", "GroupingStats", "FUZZY_GROUP_PREFIX"]
