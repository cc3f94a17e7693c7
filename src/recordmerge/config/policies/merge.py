"""Merge execution policy models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from recordmerge.entities.core import FieldSelection


class MergePolicy(BaseModel):
    """Controls how a group is consolidated into its master record."""

    sub_batch_size: int = Field(
        default=100,
        ge=1,
        description="Maximum absorbed records sent to the store per consolidation call.",
    )
    field_selection: FieldSelection = Field(default=FieldSelection.MASTER_WINS)
    actor: str = Field(default="recordmerge", min_length=1)
    capture_non_mergeable: bool = Field(
        default=True,
        description="Record fields populated only on absorbed records in the audit entry.",
    )
