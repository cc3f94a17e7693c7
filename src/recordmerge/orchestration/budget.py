"""Per-cycle resource budget consulted at chunk boundaries."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)

CPU_SECONDS = "cpu_seconds"


@runtime_checkable
class ResourceBudget(Protocol):
    def start_cycle(self) -> None:
        ...

    def consume(self, counter: str, amount: float = 1.0) -> None:
        ...

    def fraction_consumed(self, counter: str) -> float:
        ...

    def counter_names(self) -> List[str]:
        ...


@dataclass(frozen=True)
class BudgetCheck:
    """Result of a yield check; exceeding the budget is a signal, not an error."""

    exceeded: bool
    counter: Optional[str] = None
    fraction: float = 0.0

    def __bool__(self) -> bool:
        return self.exceeded


def check_budget(budget: ResourceBudget, yield_fraction: float) -> BudgetCheck:
    """Report the first counter at or past *yield_fraction* of its limit."""

    highest = 0.0
    for name in budget.counter_names():
        fraction = budget.fraction_consumed(name)
        if fraction >= yield_fraction:
            return BudgetCheck(exceeded=True, counter=name, fraction=fraction)
        highest = max(highest, fraction)
    return BudgetCheck(exceeded=False, fraction=highest)


class CycleBudget:
    """Counters replenished at every :meth:`start_cycle`.

    ``cpu_seconds`` is not consumed explicitly; it is measured from ``clock``
    since the cycle started. Counters without a configured limit are tracked but
    never trigger a yield.
    """

    def __init__(
        self,
        limits: Mapping[str, float],
        *,
        clock: Callable[[], float] = time.process_time,
    ) -> None:
        self.limits = {name: float(limit) for name, limit in limits.items()}
        self.clock = clock
        self._used: Dict[str, float] = {}
        self._cycle_started = clock()

    def start_cycle(self) -> None:
        self._used = {}
        self._cycle_started = self.clock()

    def used(self, counter: str) -> float:
        if counter == CPU_SECONDS:
            return max(0.0, self.clock() - self._cycle_started)
        return self._used.get(counter, 0.0)

    def consume(self, counter: str, amount: float = 1.0) -> None:
        if counter == CPU_SECONDS:
            return
        self._used[counter] = self._used.get(counter, 0.0) + amount

    def fraction_consumed(self, counter: str) -> float:
        limit = self.limits.get(counter)
        if not limit:
            return 0.0
        return self.used(counter) / limit

    def counter_names(self) -> List[str]:
        return sorted(self.limits)

    def snapshot(self) -> Dict[str, float]:
        return {name: self.used(name) for name in self.counter_names()}


class UnlimitedBudget:
    """Budget that never asks for a yield."""

    def start_cycle(self) -> None:
        return None

    def consume(self, counter: str, amount: float = 1.0) -> None:
        return None

    def fraction_consumed(self, counter: str) -> float:
        return 0.0

    def counter_names(self) -> List[str]:
        return []


__all__ = [
    "ResourceBudget",
    "BudgetCheck",
    "CycleBudget",
    "UnlimitedBudget",
    "check_budget",
    "CPU_SECONDS",
]
