"""Continuation schedulers that resume a job in a fresh execution cycle."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, List, Protocol, Tuple, runtime_checkable

from recordmerge.entities.core import JobState
from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)

Continuation = Callable[[JobState], object]


@runtime_checkable
class Scheduler(Protocol):
    def submit(self, continuation: Continuation, state: JobState) -> None:
        ...


class InlineScheduler:
    """Trampoline: submissions queue up and run when the caller drains them.

    Running continuations from :meth:`drain` instead of from :meth:`submit`
    keeps the stack flat however many cycles a job needs.
    """

    def __init__(self, *, max_cycles: int = 10_000) -> None:
        self.max_cycles = max_cycles
        self._queue: Deque[Tuple[Continuation, JobState]] = deque()
        self.cycles_run = 0

    def submit(self, continuation: Continuation, state: JobState) -> None:
        self._queue.append((continuation, state))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def drain(self) -> int:
        """Run queued continuations until none remain; returns how many ran."""

        ran = 0
        while self._queue:
            if ran >= self.max_cycles:
                _LOGGER.warning("Inline scheduler cycle limit reached", pending=len(self._queue), limit=self.max_cycles)
                break
            continuation, state = self._queue.popleft()
            continuation(state)
            ran += 1
        self.cycles_run += ran
        return ran


class DeferredScheduler:
    """Records submissions so a host can run them later, one at a time."""

    def __init__(self) -> None:
        self.submissions: List[Tuple[Continuation, JobState]] = []

    def submit(self, continuation: Continuation, state: JobState) -> None:
        self.submissions.append((continuation, state.model_copy(deep=True)))
        _LOGGER.debug("Continuation deferred", job_id=state.job_id, pending=len(self.submissions))

    def run_next(self) -> bool:
        if not self.submissions:
            return False
        continuation, state = self.submissions.pop(0)
        continuation(state)
        return True


__all__ = ["Scheduler", "InlineScheduler", "DeferredScheduler", "Continuation"]
