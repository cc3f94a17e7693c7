"""Tests for domain entities and the error hierarchy."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from recordmerge.entities.core import (
    FieldSpec,
    JobConfig,
    JobState,
    JobStatus,
    MasterStrategy,
    MatchType,
    Record,
)
from recordmerge.errors import MergeError, RecordAccessError, RecordMergeError


def test_record_rejects_nested_values() -> None:
    with pytest.raises(ValidationError):
        Record(id="a", fields={"Tags": ["x", "y"]})


def test_record_timestamps_default_to_utc() -> None:
    record = Record(id=" a ", created_at=datetime(2024, 5, 1, 12, 0))

    assert record.id == "a"
    assert record.created_at.tzinfo == timezone.utc


def test_unavailable_fields_raise_on_access(make_record) -> None:
    record = make_record("a", unavailable=["Secret"], Name="Acme", Secret="x", Blank="  ", Empty=None)

    with pytest.raises(RecordAccessError) as excinfo:
        record.get("Secret")
    assert excinfo.value.record_id == "a"
    assert excinfo.value.field == "Secret"
    assert not record.has_value("Secret")
    assert record.get("Missing") is None
    assert record.populated_field_count() == 1


def test_match_type_parsing_is_case_insensitive() -> None:
    assert MatchType("fuzzy") is MatchType.FUZZY
    assert FieldSpec.model_validate({"name": "Email", "matchType": "EXACT"}).match_type is MatchType.EXACT
    assert FieldSpec(name="Email").match_type is MatchType.FUZZY


def test_field_spec_names_must_not_be_blank() -> None:
    with pytest.raises(ValidationError):
        FieldSpec(name="   ")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("MostComplete", MasterStrategy.MOST_COMPLETE),
        ("newestcreated", MasterStrategy.NEWEST_CREATED),
        ("MOST_COMPLETE", MasterStrategy.MOST_COMPLETE),
        ("whatever", MasterStrategy.OLDEST_CREATED),
        (None, MasterStrategy.OLDEST_CREATED),
    ],
)
def test_master_strategy_parse(raw, expected) -> None:
    assert MasterStrategy.parse(raw) is expected


def test_job_config_tolerates_unknown_strategies() -> None:
    config = JobConfig(object_type="Account", master_strategy="Random")
    assert config.master_strategy is MasterStrategy.OLDEST_CREATED


def test_completed_at_requires_a_terminal_status() -> None:
    config = JobConfig(object_type="Account")
    now = datetime.now(timezone.utc)

    with pytest.raises(ValidationError):
        JobState(job_id="j", config=config, status=JobStatus.RUNNING, completed_at=now)
    assert JobState(job_id="j", config=config, status=JobStatus.ABORTED, completed_at=now).status.is_terminal


def test_job_progress_and_statistics() -> None:
    state = JobState(
        job_id="j",
        config=JobConfig(object_type="Account"),
        status=JobStatus.RUNNING,
        total_records=10,
        records_processed=4,
        duplicates_found=1,
    )

    assert state.progress == pytest.approx(40.0)
    assert state.duplicate_rate == pytest.approx(0.25)
    stats = state.statistics()
    assert stats["status"] == "Running"
    assert stats["object_type"] == "Account"
    assert stats["completed_at"] is None

    state.status = JobStatus.COMPLETED
    assert state.progress == 100.0
    assert JobState(job_id="k", config=JobConfig(object_type="Account")).progress == 0.0


def test_error_details_render_in_messages() -> None:
    error = MergeError("m1", "r2", "locked")

    assert isinstance(error, RecordMergeError)
    assert str(error) == "locked (master_id=m1, record_id=r2)"
    payload = error.to_dict()
    assert payload["type"] == "MergeError"
    assert payload["details"] == {"master_id": "m1", "record_id": "r2"}
    assert str(RecordMergeError("plain")) == "plain"
