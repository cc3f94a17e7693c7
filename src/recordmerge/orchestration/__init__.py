"""Batch orchestration: budgets, schedulers, job-state persistence."""

from .batch import BatchOrchestrator, GroupsCallback
from .budget import CPU_SECONDS, BudgetCheck, CycleBudget, ResourceBudget, UnlimitedBudget, check_budget
from .checkpoints import FileJobStateStore
from .scheduler import DeferredScheduler, InlineScheduler, Scheduler

__all__ = [
    "BatchOrchestrator",
    "GroupsCallback",
    "ResourceBudget",
    "BudgetCheck",
    "CycleBudget",
    "UnlimitedBudget",
    "check_budget",
    "CPU_SECONDS",
    "FileJobStateStore",
    "Scheduler",
    "InlineScheduler",
    "DeferredScheduler",
]
