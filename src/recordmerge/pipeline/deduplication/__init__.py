"""Duplicate detection, grouping, and merge execution."""

from .conflicts import ConflictSet
from .graph import UnionFind
from .grouping import FUZZY_GROUP_PREFIX, DuplicateGroupingEngine, GroupingStats
from .groups import DuplicateGroup, select_master
from .io import load_records, write_group_report, write_records
from .keys import KEY_SEPARATOR, NULL_TOKEN, CompositeKey, CompositeKeyBuilder
from .matchers import (
    AddressMatcher,
    EmailMatcher,
    FieldMatcher,
    GenericMatcher,
    MatcherEntry,
    MatcherRegistry,
    NameMatcher,
    PhoneMatcher,
)
from .merger import MergeExecutor, MergeResult, resolve_survivor_values
from .processor import ChunkResult, DeduplicationProcessor
from .weights import DEFAULT_WEIGHT, FieldWeights, builtin_weight

__all__ = [
    "ConflictSet",
    "UnionFind",
    "DuplicateGroupingEngine",
    "GroupingStats",
    "FUZZY_GROUP_PREFIX",
    "DuplicateGroup",
    "select_master",
    "load_records",
    "write_records",
    "write_group_report",
    "CompositeKey",
    "CompositeKeyBuilder",
    "KEY_SEPARATOR",
    "NULL_TOKEN",
    "FieldMatcher",
    "GenericMatcher",
    "NameMatcher",
    "EmailMatcher",
    "PhoneMatcher",
    "AddressMatcher",
    "MatcherEntry",
    "MatcherRegistry",
    "MergeExecutor",
    "MergeResult",
    "resolve_survivor_values",
    "DeduplicationProcessor",
    "ChunkResult",
    "FieldWeights",
    "builtin_weight",
    "DEFAULT_WEIGHT",
]
