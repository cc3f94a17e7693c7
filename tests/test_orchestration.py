"""Tests for the resumable batch orchestrator, budgets, and schedulers."""

from __future__ import annotations

import pytest

from recordmerge.config.policies import BatchPolicy, Policies
from recordmerge.entities.core import FieldSpec, JobConfig, JobState, JobStatus
from recordmerge.errors import ConfigurationError, JobFailure
from recordmerge.orchestration import (
    BatchOrchestrator,
    CycleBudget,
    DeferredScheduler,
    InlineScheduler,
    UnlimitedBudget,
    check_budget,
)
from recordmerge.storage import InMemoryAuditLog, InMemoryJobStateStore, InMemoryRecordStore

SPECS = [FieldSpec(name="Name"), FieldSpec(name="Phone")]


def job_config(**overrides) -> JobConfig:
    payload = {"object_type": "Account", "field_specs": SPECS, "is_dry_run": True}
    payload.update(overrides)
    return JobConfig(**payload)


def batch_policies(**batch) -> Policies:
    return Policies(batch=BatchPolicy(**batch))


@pytest.fixture()
def distinct_records(make_record):
    return [make_record(f"r{index}", Name=f"Company {index}", Phone=f"555-000{index}") for index in range(1, 7)]


def test_empty_population_completes_immediately() -> None:
    job_store = InMemoryJobStateStore()
    orchestrator = BatchOrchestrator(InMemoryRecordStore(object_types=["Account"]), job_store)

    state = orchestrator.start(job_config(), job_id="job-empty")

    assert state.status == JobStatus.COMPLETED
    assert state.records_processed == 0
    assert state.duplicates_found == 0
    assert state.records_merged == 0
    assert state.errors == []
    assert state.passes == 1
    assert state.completed_at is not None
    assert job_store.load("job-empty").status == JobStatus.COMPLETED


def test_configuration_errors_create_no_job() -> None:
    job_store = InMemoryJobStateStore()
    orchestrator = BatchOrchestrator(InMemoryRecordStore(object_types=["Account"]), job_store)

    with pytest.raises(ConfigurationError):
        orchestrator.start(job_config(field_specs=[]))
    with pytest.raises(ConfigurationError):
        orchestrator.start(job_config(object_type="Contact"))
    assert job_store.list_jobs() == []


def test_dry_run_reports_groups_and_leaves_records(make_record) -> None:
    records = [
        make_record("a", Name="Acme", Phone="111-2222"),
        make_record("b", Name="ACME", Phone="1112222"),
        make_record("c", Name="Globex", Phone="999-0000"),
    ]
    store = InMemoryRecordStore({"Account": records})
    reported = {}
    orchestrator = BatchOrchestrator(
        store,
        InMemoryJobStateStore(),
        on_groups=lambda state, groups: reported.update(groups),
    )

    state = orchestrator.start(job_config())

    assert state.status == JobStatus.COMPLETED
    assert state.total_records == 3
    assert state.records_processed == 3
    assert state.duplicates_found == 1
    assert state.groups_found == 1
    assert state.records_merged == 0
    assert [group.record_ids for group in reported.values()] == [["a", "b"]]
    assert len(store.all("Account")) == 3
    assert state.duplicate_rate == pytest.approx(1 / 3)


def test_live_run_merges_and_audits(make_record) -> None:
    records = [
        make_record("a", day=0, Name="Acme", Phone="111-2222"),
        make_record("b", day=1, Name="ACME", Phone="1112222"),
        make_record("c", day=2, Name="Globex", Phone="999-0000"),
    ]
    store = InMemoryRecordStore({"Account": records})
    audit = InMemoryAuditLog()
    orchestrator = BatchOrchestrator(store, InMemoryJobStateStore(), audit_sink=audit)

    state = orchestrator.start(job_config(is_dry_run=False))

    assert state.status == JobStatus.COMPLETED
    assert state.records_merged == 1
    assert [record.id for record in store.all("Account")] == ["a", "c"]
    assert [entry.merged_ids for entry in audit.entries] == [["b"]]


def test_population_is_processed_in_chunks(distinct_records) -> None:
    store = InMemoryRecordStore({"Account": distinct_records[:5]})
    orchestrator = BatchOrchestrator(
        store,
        InMemoryJobStateStore(),
        policies=batch_policies(chunk_size=2),
        budget=UnlimitedBudget(),
    )

    state = orchestrator.start(job_config())

    assert state.status == JobStatus.COMPLETED
    assert state.chunks_processed == 3
    assert state.records_processed == 5
    assert state.cursor == "r5"


def test_filter_limits_the_population(make_record) -> None:
    records = [
        make_record("a", Name="Acme", Phone="1", Region="West"),
        make_record("b", Name="Acme", Phone="1", Region="East"),
        make_record("c", Name="Acme", Phone="1", Region="West"),
    ]
    orchestrator = BatchOrchestrator(InMemoryRecordStore({"Account": records}), InMemoryJobStateStore())

    state = orchestrator.start(job_config(filter={"Region": "West"}))

    assert state.total_records == 2
    assert state.records_processed == 2
    assert state.duplicates_found == 1


def _yielding_orchestrator(store, job_store, scheduler, **batch) -> BatchOrchestrator:
    return BatchOrchestrator(
        store,
        job_store,
        policies=batch_policies(chunk_size=2, yield_fraction=0.75, **batch),
        budget=CycleBudget({"queries": 2}),
        scheduler=scheduler,
    )


def test_job_yields_when_budget_runs_low_and_resumes(distinct_records) -> None:
    store = InMemoryRecordStore({"Account": distinct_records})
    job_store = InMemoryJobStateStore()
    scheduler = DeferredScheduler()
    orchestrator = _yielding_orchestrator(store, job_store, scheduler)

    state = orchestrator.start(job_config(), job_id="job-yield")

    assert state.status == JobStatus.RUNNING
    assert state.records_processed == 4
    assert state.cursor == "r4"
    assert len(scheduler.submissions) == 1
    assert job_store.load("job-yield").cursor == "r4"

    assert scheduler.run_next()
    assert not scheduler.run_next()

    final = orchestrator.status("job-yield")
    assert final.status == JobStatus.COMPLETED
    assert final.records_processed == 6
    assert final.passes == 2
    assert final.chunks_processed == 3


def test_inline_scheduler_drains_continuations(distinct_records) -> None:
    scheduler = InlineScheduler()
    orchestrator = _yielding_orchestrator(
        InMemoryRecordStore({"Account": distinct_records}),
        InMemoryJobStateStore(),
        scheduler,
    )

    state = orchestrator.start(job_config(), job_id="job-inline")

    assert scheduler.pending == 1
    assert scheduler.drain() == 1
    assert scheduler.cycles_run == 1
    final = orchestrator.status(state.job_id)
    assert final.status == JobStatus.COMPLETED
    assert final.records_processed == 6


def test_fresh_orchestrator_resumes_from_persisted_cursor(distinct_records) -> None:
    store = InMemoryRecordStore({"Account": distinct_records})
    job_store = InMemoryJobStateStore()
    _yielding_orchestrator(store, job_store, DeferredScheduler()).start(job_config(), job_id="job-restart")

    resumed = _yielding_orchestrator(store, job_store, DeferredScheduler()).resume("job-restart")

    assert resumed.status == JobStatus.COMPLETED
    assert resumed.records_processed == 6
    assert resumed.passes == 2


def test_pass_limit_truncates_the_job(distinct_records) -> None:
    scheduler = DeferredScheduler()
    orchestrator = _yielding_orchestrator(
        InMemoryRecordStore({"Account": distinct_records}),
        InMemoryJobStateStore(),
        scheduler,
        max_passes=1,
    )

    state = orchestrator.start(job_config())

    assert state.status == JobStatus.COMPLETED
    assert state.truncated
    assert state.records_processed == 4
    assert scheduler.submissions == []


def test_cancellation_is_observed_at_the_next_chunk(distinct_records) -> None:
    job_store = InMemoryJobStateStore()
    scheduler = DeferredScheduler()
    orchestrator = _yielding_orchestrator(InMemoryRecordStore({"Account": distinct_records}), job_store, scheduler)
    orchestrator.start(job_config(), job_id="job-cancel")

    orchestrator.request_cancel("job-cancel")
    scheduler.run_next()

    final = orchestrator.status("job-cancel")
    assert final.status == JobStatus.ABORTED
    assert final.records_processed == 4
    assert final.completed_at is not None


class BrokenStore(InMemoryRecordStore):
    def fetch(self, object_type, filter, after_id, limit):
        raise RuntimeError("boom")


def test_unexpected_errors_fail_the_job() -> None:
    job_store = InMemoryJobStateStore()
    orchestrator = BatchOrchestrator(BrokenStore(object_types=["Account"]), job_store)

    state = orchestrator.start(job_config(), job_id="job-broken")

    assert state.status == JobStatus.FAILED
    assert state.errors == ["RuntimeError: boom"]
    assert job_store.load("job-broken").status == JobStatus.FAILED


def test_finished_jobs_are_not_rerun() -> None:
    job_store = InMemoryJobStateStore()
    orchestrator = BatchOrchestrator(InMemoryRecordStore(object_types=["Account"]), job_store)
    orchestrator.start(job_config(), job_id="job-done")
    saves = job_store.saves

    state = orchestrator.resume("job-done")

    assert state.status == JobStatus.COMPLETED
    assert state.passes == 1
    assert job_store.saves == saves
    assert orchestrator.request_cancel("job-done").cancel_requested is False


def test_starting_an_existing_job_id_is_rejected(distinct_records) -> None:
    job_store = InMemoryJobStateStore()
    orchestrator = BatchOrchestrator(InMemoryRecordStore({"Account": distinct_records}), job_store)
    first = orchestrator.start(job_config(), job_id="job-taken")

    with pytest.raises(ConfigurationError, match="resume"):
        orchestrator.start(job_config(), job_id="job-taken")

    stored = job_store.load("job-taken")
    assert stored.records_processed == first.records_processed == 6
    assert stored.cursor == "r6"


def test_unknown_job_raises() -> None:
    orchestrator = BatchOrchestrator(InMemoryRecordStore(), InMemoryJobStateStore())

    with pytest.raises(JobFailure):
        orchestrator.status("nope")


def test_error_list_keeps_the_most_recent_entries() -> None:
    orchestrator = BatchOrchestrator(
        InMemoryRecordStore(),
        InMemoryJobStateStore(),
        policies=batch_policies(max_errors_retained=2),
    )
    state = JobState(job_id="job-1", config=job_config(), errors=["e1"])

    orchestrator._append_errors(state, ["e2", "e3"])

    assert state.errors == ["e2", "e3"]


def test_cycle_budget_measures_cpu_from_the_clock() -> None:
    ticks = [0.0]
    budget = CycleBudget({"cpu_seconds": 10, "queries": 4}, clock=lambda: ticks[0])

    ticks[0] = 8.0
    budget.consume("queries")
    assert budget.fraction_consumed("cpu_seconds") == pytest.approx(0.8)
    assert budget.fraction_consumed("queries") == pytest.approx(0.25)
    check = check_budget(budget, 0.75)
    assert check
    assert check.counter == "cpu_seconds"

    budget.start_cycle()
    assert budget.snapshot() == {"cpu_seconds": 0.0, "queries": 0.0}
    assert not check_budget(budget, 0.75)


def test_unlimited_budget_never_yields() -> None:
    budget = UnlimitedBudget()
    budget.consume("queries", 1_000)

    assert not check_budget(budget, 0.01)


def test_inline_scheduler_stops_at_its_cycle_limit() -> None:
    scheduler = InlineScheduler(max_cycles=2)
    state = JobState(job_id="job-loop", config=job_config())

    def forever(current: JobState) -> None:
        scheduler.submit(forever, current)

    scheduler.submit(forever, state)

    assert scheduler.drain() == 2
    assert scheduler.pending == 1
