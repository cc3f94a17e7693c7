"""Tests for duplicate groups and master selection."""

from __future__ import annotations

import pytest

from recordmerge.entities.core import MasterStrategy
from recordmerge.pipeline.deduplication.groups import DuplicateGroup, select_master


def make_group(records, key: str = "g1") -> DuplicateGroup:
    return DuplicateGroup(records=list(records), match_score=91.23456, group_key=key, is_exact_match=False)


def test_oldest_created_is_the_default(make_record) -> None:
    records = [make_record("a", day=3), make_record("b", day=1), make_record("c", day=2)]

    assert select_master(records, None).id == "b"
    assert select_master(records, MasterStrategy.OLDEST_CREATED).id == "b"


def test_newest_created(make_record) -> None:
    records = [make_record("a", day=3), make_record("b", day=1), make_record("c", day=5)]

    assert select_master(records, "NewestCreated").id == "c"


def test_most_complete_counts_populated_fields(make_record) -> None:
    records = [
        make_record("a", Name="Acme", Phone="", Industry=None),
        make_record("b", Name="Acme", Phone="111", Website="acme.com"),
        make_record("c", Name="Acme", Phone="111"),
    ]

    assert select_master(records, MasterStrategy.MOST_COMPLETE).id == "b"


@pytest.mark.parametrize("strategy", ["OldestCreated", "NewestCreated", "MostComplete"])
def test_ties_resolve_to_the_first_record(make_record, strategy: str) -> None:
    records = [make_record("x", Name="1"), make_record("y", Name="2"), make_record("z", Name="3")]

    assert select_master(records, strategy).id == "x"


def test_unknown_strategy_falls_back_to_oldest(make_record) -> None:
    records = [make_record("a", day=2), make_record("b", day=0)]

    assert select_master(records, "Bogus").id == "b"
    assert select_master([], "Bogus") is None


def test_group_helpers(make_record) -> None:
    group = make_group([make_record("a"), make_record("b"), make_record("c")])
    master = group.get_master()

    assert group.size == 3
    assert group.has_duplicates()
    assert group.get_duplicate_ids(master) == ["b", "c"]
    assert group.get_duplicate_ids(None) == []
    assert make_group([]).get_duplicate_ids(master) == []
    assert not make_group([make_record("solo")]).has_duplicates()


def test_assign_master_requires_membership(make_record) -> None:
    group = make_group([make_record("a"), make_record("b")])
    group.assign_master(group.records[1])
    assert group.master_id == "b"

    with pytest.raises(ValueError):
        group.assign_master(make_record("outsider"))


def test_summary_reports_would_be_master_without_mutating(make_record) -> None:
    group = make_group([make_record("a", day=1), make_record("b", day=0)])

    summary = group.summary(MasterStrategy.OLDEST_CREATED)

    assert summary == {
        "group_key": "g1",
        "size": 2,
        "match_score": 91.2346,
        "is_exact_match": False,
        "record_ids": ["a", "b"],
        "master_id": "b",
    }
    assert group.master_id is None
    assert group.summary()["master_id"] is None


@pytest.mark.parametrize("strategy", list(MasterStrategy))
def test_master_selection_is_deterministic(make_record, strategy: MasterStrategy) -> None:
    group = make_group(
        [
            make_record("a", day=2, Name="Acme"),
            make_record("b", day=0, Name="Acme", Phone="1"),
            make_record("c", day=5),
        ]
    )

    assert group.get_master(strategy).id == group.get_master(strategy).id
