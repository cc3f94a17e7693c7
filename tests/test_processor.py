"""Tests for the chunk-level deduplication processor."""

from __future__ import annotations

import pytest

from recordmerge.entities.core import FieldSpec
from recordmerge.pipeline.deduplication import (
    DeduplicationProcessor,
    DuplicateGroupingEngine,
    MergeExecutor,
)
from recordmerge.storage import InMemoryAuditLog, InMemoryRecordStore

SPECS = [FieldSpec(name="Name"), FieldSpec(name="Phone")]


@pytest.fixture()
def chunk(make_record):
    return [
        make_record("a", day=0, Name="Acme", Phone="111-2222"),
        make_record("b", day=1, Name="ACME", Phone="1112222"),
        make_record("c", day=2, Name="acme.", Phone="111 2222"),
        make_record("d", day=3, Name="Globex", Phone="999-0000"),
    ]


def test_dry_run_reports_groups_without_merging(chunk) -> None:
    store = InMemoryRecordStore({"Account": chunk})
    executor = MergeExecutor(store, "Account")
    processor = DeduplicationProcessor(DuplicateGroupingEngine(), executor)

    result = processor.process(chunk, SPECS, dry_run=True)

    assert result.records_processed == 4
    assert result.duplicates_found == 2
    assert result.records_merged == 0
    assert result.merge_results == []
    assert result.last_record_id == "d"
    assert len(store.all("Account")) == 4
    assert all(group.master_id is None for group in result.groups.values())
    assert result.stats["grouping"]["exact_groups"] == 1


def test_live_run_merges_each_group(chunk) -> None:
    store = InMemoryRecordStore({"Account": chunk})
    audit = InMemoryAuditLog()
    processor = DeduplicationProcessor(
        DuplicateGroupingEngine(),
        MergeExecutor(store, "Account", audit_sink=audit),
    )

    result = processor.process(chunk, SPECS, strategy="NewestCreated", dry_run=False)

    assert result.records_merged == 2
    assert result.errors == []
    assert [record.id for record in store.all("Account")] == ["c", "d"]
    assert [entry.master_id for entry in audit.entries] == ["c"]


def test_live_run_requires_an_executor(chunk) -> None:
    processor = DeduplicationProcessor(DuplicateGroupingEngine())

    with pytest.raises(RuntimeError):
        processor.process(chunk, SPECS, dry_run=False)


def test_empty_chunk(make_record) -> None:
    processor = DeduplicationProcessor(DuplicateGroupingEngine())

    result = processor.process([], SPECS)

    assert result.groups == {}
    assert result.records_processed == 0
    assert result.last_record_id is None
