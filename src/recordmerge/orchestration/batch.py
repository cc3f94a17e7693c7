"""Resumable, budget-aware batch orchestration of grouping and merging."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from recordmerge.config.policies import Policies
from recordmerge.entities.core import JobConfig, JobState, JobStatus
from recordmerge.errors import ConfigurationError, JobFailure
from recordmerge.orchestration.budget import BudgetCheck, CycleBudget, ResourceBudget, check_budget
from recordmerge.orchestration.scheduler import InlineScheduler, Scheduler
from recordmerge.pipeline.deduplication.grouping import DuplicateGroupingEngine
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.pipeline.deduplication.matchers import MatcherRegistry
from recordmerge.pipeline.deduplication.merger import MergeExecutor
from recordmerge.pipeline.deduplication.processor import ChunkResult, DeduplicationProcessor
from recordmerge.storage.base import AuditSink, JobStateStore, RecordStore
from recordmerge.utils.logging import get_logger, logging_context


_LOGGER = get_logger(module=__name__)

GroupsCallback = Callable[[JobState, Dict[str, DuplicateGroup]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchOrchestrator:
    """Drive a consolidation job over a record population chunk by chunk.

    Each call to :meth:`run_cycle` is one execution cycle: it processes at least
    one chunk, then keeps going while the resource budget stays below the yield
    fraction. On yield the state is persisted and a continuation is handed to
    the scheduler; the next cycle resumes from the persisted cursor.
    Cancellation is observed only at chunk boundaries.
    """

    def __init__(
        self,
        store: RecordStore,
        job_store: JobStateStore,
        *,
        policies: Policies | None = None,
        audit_sink: AuditSink | None = None,
        budget: ResourceBudget | None = None,
        scheduler: Scheduler | None = None,
        registry_factory: Callable[[Policies], MatcherRegistry] | None = None,
        on_groups: GroupsCallback | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.job_store = job_store
        self.policies = policies or Policies()
        self.audit_sink = audit_sink
        self.budget = budget or CycleBudget(self.policies.batch.limits)
        self.scheduler = scheduler or InlineScheduler()
        self.registry_factory = registry_factory or (lambda policies: MatcherRegistry.default(policies.matching))
        self.on_groups = on_groups
        self.now = now

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def validate(self, config: JobConfig) -> None:
        if not config.field_specs:
            raise ConfigurationError(
                "at least one field spec is required",
                {"object_type": config.object_type},
            )
        known = list(self.store.object_types())
        if config.object_type not in known:
            raise ConfigurationError(
                f"unknown object type '{config.object_type}'",
                {"object_type": config.object_type, "known": known},
            )

    def start(self, config: JobConfig, job_id: str | None = None) -> JobState:
        """Validate *config*, create and persist the job, then run its first cycle."""

        self.validate(config)
        if job_id is not None and self.job_store.load(job_id) is not None:
            raise ConfigurationError(
                f"job '{job_id}' already exists; use resume to continue it",
                {"job_id": job_id},
            )
        total = self.store.count(config.object_type, config.filter)
        state = JobState(
            job_id=job_id or f"job-{uuid4().hex[:12]}",
            config=config,
            total_records=total,
            created_at=self.now(),
            updated_at=self.now(),
        )
        self.job_store.save(state)
        _LOGGER.info(
            "Job queued",
            job_id=state.job_id,
            object_type=config.object_type,
            total_records=total,
            dry_run=config.is_dry_run,
        )
        return self.run_cycle(state)

    def resume(self, job_id: str) -> JobState:
        state = self.status(job_id)
        if state.status.is_terminal:
            _LOGGER.info("Job already finished", job_id=job_id, status=state.status.value)
            return state
        return self.run_cycle(state)

    def status(self, job_id: str) -> JobState:
        state = self.job_store.load(job_id)
        if state is None:
            raise JobFailure(job_id, f"job {job_id} not found")
        return state

    def request_cancel(self, job_id: str) -> JobState:
        """Flag the job for cancellation; it stops at its next chunk boundary."""

        state = self.status(job_id)
        if state.status.is_terminal:
            return state
        state.cancel_requested = True
        state.updated_at = self.now()
        self.job_store.save(state)
        _LOGGER.info("Cancellation requested", job_id=job_id)
        return state

    # ------------------------------------------------------------------
    # Execution cycle
    # ------------------------------------------------------------------
    def _build_processor(self, config: JobConfig) -> DeduplicationProcessor:
        engine = DuplicateGroupingEngine(self.registry_factory(self.policies), policy=self.policies.matching)
        executor = None
        if not config.is_dry_run:
            executor = MergeExecutor(
                self.store,
                config.object_type,
                audit_sink=self.audit_sink,
                policy=self.policies.merge,
                budget=self.budget,
            )
        return DeduplicationProcessor(engine, executor)

    def chunk_size_for(self, config: JobConfig) -> int:
        return config.chunk_size or self.policies.batch.chunk_size

    def run_cycle(self, state: JobState) -> JobState:
        with logging_context(job_id=state.job_id, step="cycle"):
            if state.status.is_terminal:
                return state
            if state.started_at is None:
                state.started_at = self.now()
            state.status = JobStatus.RUNNING
            state.passes += 1
            self.budget.start_cycle()
            _LOGGER.info("Execution cycle started", job_id=state.job_id, passes=state.passes, cursor=state.cursor)

            try:
                return self._run_chunks(state)
            except Exception as exc:
                failure = JobFailure(state.job_id, f"{type(exc).__name__}: {exc}")
                _LOGGER.exception("Job failed", **failure.details, error=failure.message)
                self._append_errors(state, [failure.message])
                return self._finish(state, JobStatus.FAILED)

    def _run_chunks(self, state: JobState) -> JobState:
        config = state.config
        processor = self._build_processor(config)
        chunk_size = self.chunk_size_for(config)
        chunks_this_cycle = 0
        while True:
            if self._cancel_requested(state):
                _LOGGER.warning("Job cancelled at chunk boundary", job_id=state.job_id)
                return self._finish(state, JobStatus.ABORTED)
            if chunks_this_cycle > 0:
                check = check_budget(self.budget, self.policies.batch.yield_fraction)
                if check.exceeded:
                    return self._yield(state, check)

            chunk = self.store.fetch(config.object_type, config.filter, state.cursor, chunk_size)
            self.budget.consume("queries", 1)
            if not chunk:
                return self._finish(state, JobStatus.COMPLETED)

            result = processor.process(
                chunk,
                config.field_specs,
                strategy=config.master_strategy,
                threshold=config.fuzzy_threshold,
                dry_run=config.is_dry_run,
                field_selection=config.field_selection,
            )
            self._accumulate(state, chunk[-1].id, result)
            if config.is_dry_run and self.on_groups is not None:
                self.on_groups(state, result.groups)
            self._persist(state)
            chunks_this_cycle += 1

            if len(chunk) < chunk_size:
                return self._finish(state, JobStatus.COMPLETED)

    def _accumulate(self, state: JobState, last_id: str, result: ChunkResult) -> None:
        state.records_processed += result.records_processed
        state.duplicates_found += result.duplicates_found
        state.records_merged += result.records_merged
        state.groups_found += sum(1 for group in result.groups.values() if group.has_duplicates())
        state.chunks_processed += 1
        state.cursor = last_id
        if result.errors:
            self._append_errors(state, result.errors)
        _LOGGER.info(
            "Chunk accumulated",
            job_id=state.job_id,
            chunk=state.chunks_processed,
            records_processed=state.records_processed,
            duplicates_found=state.duplicates_found,
            records_merged=state.records_merged,
            cursor=state.cursor,
        )

    def _append_errors(self, state: JobState, errors: Iterable[str]) -> None:
        limit = self.policies.batch.max_errors_retained
        combined: List[str] = [*state.errors, *errors]
        if len(combined) > limit:
            _LOGGER.debug("Dropping oldest job errors", job_id=state.job_id, dropped=len(combined) - limit)
        state.errors = combined[-limit:]

    def _cancel_requested(self, state: JobState) -> bool:
        if state.cancel_requested:
            return True
        stored = self.job_store.load(state.job_id)
        if stored is not None and stored.cancel_requested:
            state.cancel_requested = True
        return state.cancel_requested

    def _persist(self, state: JobState) -> None:
        stored = self.job_store.load(state.job_id)
        if stored is not None and stored.cancel_requested:
            state.cancel_requested = True
        state.updated_at = self.now()
        self.job_store.save(state)

    def _yield(self, state: JobState, check: BudgetCheck) -> JobState:
        if state.passes >= self.policies.batch.max_passes:
            _LOGGER.warning(
                "Pass limit reached; stopping early",
                job_id=state.job_id,
                passes=state.passes,
                cursor=state.cursor,
            )
            state.truncated = True
            return self._finish(state, JobStatus.COMPLETED)
        self._persist(state)
        _LOGGER.warning(
            "Resource budget nearly consumed; yielding",
            job_id=state.job_id,
            counter=check.counter,
            fraction=round(check.fraction, 4),
            cursor=state.cursor,
        )
        self.scheduler.submit(self.run_cycle, state)
        return state

    def _finish(self, state: JobState, status: JobStatus) -> JobState:
        state.status = status
        state.completed_at = self.now()
        self._persist(state)
        _LOGGER.info(
            "Job finished",
            job_id=state.job_id,
            status=status.value,
            records_processed=state.records_processed,
            duplicates_found=state.duplicates_found,
            records_merged=state.records_merged,
            errors=len(state.errors),
            truncated=state.truncated,
        )
        return state


__all__ = ["BatchOrchestrator", "GroupsCallback"]
