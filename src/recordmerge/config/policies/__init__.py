"""Versioned policy bundle for matching, merging and batching."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from ..overrides import deep_merge, env_overrides
from .batch import BatchPolicy
from .matching import MatchingPolicy
from .merge import MergePolicy

POLICY_ENV_PREFIX = "RECORDMERGE_POLICY__"


class Policies(BaseModel):
    """Everything a job needs to know beyond its own :class:`JobConfig`."""

    policy_version: str = Field(default="2025-04-01")
    matching: MatchingPolicy = Field(default_factory=MatchingPolicy)
    merge: MergePolicy = Field(default_factory=MergePolicy)
    batch: BatchPolicy = Field(default_factory=BatchPolicy)

    @field_validator("policy_version")
    @classmethod
    def _require_version(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("policy_version must be provided")
        return value


def _read_policy_file(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Policy file not found: {path}")
    loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"Policy file '{path}' must contain a mapping at the top level")
    return loaded


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any]) -> Policies:
    """Build :class:`Policies` from a mapping or YAML file.

    ``RECORDMERGE_POLICY__*`` variables are layered on top, so
    ``RECORDMERGE_POLICY__BATCH__CHUNK_SIZE=25`` wins over any file value.
    """

    raw = source if isinstance(source, Mapping) else _read_policy_file(Path(source))
    return Policies.model_validate(deep_merge(raw, env_overrides(POLICY_ENV_PREFIX)))


__all__ = [
    "Policies",
    "load_policies",
    "MatchingPolicy",
    "MergePolicy",
    "BatchPolicy",
    "POLICY_ENV_PREFIX",
]
