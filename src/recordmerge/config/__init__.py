"""Configuration utilities for the consolidation engine."""

from .policies import BatchPolicy, MatchingPolicy, MergePolicy, Policies, load_policies
from .settings import LoggingConfig, PathsConfig, Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "PathsConfig",
    "LoggingConfig",
    "Policies",
    "load_policies",
    "MatchingPolicy",
    "MergePolicy",
    "BatchPolicy",
]
