"""Duplicate record detection, grouping, and consolidation engine."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("recordmerge")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import FieldSpec, JobConfig, JobState, JobStatus, MasterStrategy, MatchType, Record

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Record",
    "FieldSpec",
    "MatchType",
    "MasterStrategy",
    "JobConfig",
    "JobState",
    "JobStatus",
]
