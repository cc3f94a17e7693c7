"""Batch orchestration policy models."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, field_validator


def _default_limits() -> Dict[str, float]:
    return {"queries": 100, "dml_rows": 10000, "cpu_seconds": 60}


class BatchPolicy(BaseModel):
    """Chunking, pass bounds, and resource budget for batch jobs."""

    chunk_size: int = Field(default=200, ge=1)
    max_passes: int = Field(
        default=50,
        ge=1,
        description="Execution cycles a job may take before it stops at a yield point.",
    )
    yield_fraction: float = Field(
        default=0.75,
        gt=0.0,
        le=1.0,
        description="Fraction of any budget counter that triggers a yield at the next chunk boundary.",
    )
    limits: Dict[str, float] = Field(default_factory=_default_limits)
    max_errors_retained: int = Field(default=500, ge=1)

    @field_validator("limits")
    @classmethod
    def _validate_limits(cls, value: Dict[str, float]) -> Dict[str, float]:
        for name, limit in value.items():
            if limit <= 0:
                raise ValueError(f"budget limit '{name}' must be positive")
        return {name: float(limit) for name, limit in value.items()}
