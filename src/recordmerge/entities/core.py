"""Core domain entities used throughout the consolidation pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from recordmerge.errors import RecordAccessError

Value = Union[bool, int, float, datetime, str, None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchType(str, Enum):
    """How a field is normalized when building composite keys."""

    EXACT = "Exact"
    FUZZY = "Fuzzy"
    PHONETIC = "Phonetic"

    @classmethod
    def _missing_(cls, value: object) -> "MatchType | None":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class MasterStrategy(str, Enum):
    """Policies used to pick the surviving record of a group."""

    OLDEST_CREATED = "OldestCreated"
    NEWEST_CREATED = "NewestCreated"
    MOST_COMPLETE = "MostComplete"

    @classmethod
    def parse(cls, value: "MasterStrategy | str | None") -> "MasterStrategy":
        """Resolve *value* to a strategy, defaulting to ``OldestCreated``."""

        if isinstance(value, MasterStrategy):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered or member.name.lower() == lowered:
                    return member
        return cls.OLDEST_CREATED


class FieldSelection(str, Enum):
    """Survivorship rule applied to master fields during consolidation."""

    MASTER_WINS = "MasterWins"
    NON_BLANK = "NonBlank"
    MOST_RECENT = "MostRecent"


class JobStatus(str, Enum):
    QUEUED = "Queued"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ABORTED = "Aborted"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.ABORTED}


class Record(BaseModel):
    """Identity-bearing attribute bag for one business entity.

    ``unavailable`` lists fields the storage layer could not read; accessing
    them raises :class:`~recordmerge.errors.RecordAccessError` so callers can
    decide whether to treat the value as null or drop the record.
    """

    id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
    fields: Dict[str, Value] = Field(default_factory=dict)
    unavailable: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value).strip() if value is not None else value

    @field_validator("fields", mode="before")
    @classmethod
    def _reject_nested_values(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        for name, item in value.items():
            if isinstance(item, (dict, list, tuple, set)):
                raise ValueError(f"field '{name}' must hold a scalar value")
        return value

    @field_validator("created_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def get(self, name: str) -> Value:
        """Return the value for *name* or ``None`` when the field is absent."""

        if name in self.unavailable:
            raise RecordAccessError(self.id, name)
        return self.fields.get(name)

    def has_value(self, name: str) -> bool:
        try:
            return is_populated(self.get(name))
        except RecordAccessError:
            return False

    def populated_field_count(self) -> int:
        return sum(1 for name, value in self.fields.items() if name not in self.unavailable and is_populated(value))

    def field_names(self) -> List[str]:
        return sorted(self.fields)


def is_populated(value: Value) -> bool:
    """A value counts as populated when it is non-null and not blank text."""

    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class FieldSpec(BaseModel):
    """Describes how one field participates in keys and scoring."""

    name: str = Field(..., min_length=1)
    required: bool = False
    match_type: MatchType = Field(default=MatchType.FUZZY, alias="matchType")
    weight: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Explicit scoring weight; falls back to overrides and the built-in table.",
    )

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("field spec name must not be blank")
        return cleaned


class JobConfig(BaseModel):
    """Configuration of one consolidation job."""

    object_type: str = Field(..., min_length=1)
    field_specs: List[FieldSpec] = Field(default_factory=list)
    master_strategy: MasterStrategy = MasterStrategy.OLDEST_CREATED
    fuzzy_threshold: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    chunk_size: Optional[int] = Field(default=None, ge=1)
    is_dry_run: bool = False
    filter: Dict[str, Value] = Field(default_factory=dict)
    field_selection: Optional[FieldSelection] = None

    @field_validator("master_strategy", mode="before")
    @classmethod
    def _parse_strategy(cls, value: Any) -> MasterStrategy:
        return MasterStrategy.parse(value)


class ConsolidationOutcome(BaseModel):
    """Per-record result reported by the storage layer for a consolidation."""

    record_id: str
    success: bool
    error: Optional[str] = None


class FieldConflict(BaseModel):
    """One differing value observed on an absorbed record."""

    field: str
    master_value: Value = None
    other_value: Value = None
    other_id: str


class MergeAuditEntry(BaseModel):
    """Audit payload written for every consolidated group."""

    master_id: str
    merged_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
    object_type: str
    group_key: str = ""
    match_score: float = 0.0
    is_exact_match: bool = False
    conflicts: Dict[str, List[FieldConflict]] = Field(default_factory=dict)
    non_mergeable_data: Dict[str, Dict[str, Value]] = Field(default_factory=dict)
    survivor_updates: Dict[str, Value] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    actor: str = "recordmerge"


class JobState(BaseModel):
    """Persistent progress of a batch consolidation job."""

    job_id: str = Field(..., min_length=1)
    config: JobConfig
    status: JobStatus = JobStatus.QUEUED
    records_processed: int = Field(default=0, ge=0)
    duplicates_found: int = Field(default=0, ge=0)
    records_merged: int = Field(default=0, ge=0)
    groups_found: int = Field(default=0, ge=0)
    chunks_processed: int = Field(default=0, ge=0)
    passes: int = Field(default=0, ge=0)
    total_records: Optional[int] = Field(default=None, ge=0)
    cursor: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    cancel_requested: bool = False
    truncated: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _validate_completion(self) -> "JobState":
        if self.completed_at is not None and not self.status.is_terminal:
            raise ValueError("completed_at is only valid for terminal job states")
        return self

    @property
    def progress(self) -> float:
        """Percentage of the population processed, when the total is known."""

        if self.status == JobStatus.COMPLETED:
            return 100.0
        if not self.total_records:
            return 0.0
        return min(100.0, 100.0 * self.records_processed / self.total_records)

    @property
    def duplicate_rate(self) -> float:
        if not self.records_processed:
            return 0.0
        return self.duplicates_found / self.records_processed

    def statistics(self) -> Dict[str, Any]:
        """Snapshot consumed by job-statistics collaborators."""

        return {
            "job_id": self.job_id,
            "object_type": self.config.object_type,
            "status": self.status.value,
            "records_processed": self.records_processed,
            "duplicates_found": self.duplicates_found,
            "records_merged": self.records_merged,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "errors": list(self.errors),
        }


__all__ = [
    "Value",
    "MatchType",
    "MasterStrategy",
    "FieldSelection",
    "JobStatus",
    "Record",
    "is_populated",
    "FieldSpec",
    "JobConfig",
    "ConsolidationOutcome",
    "FieldConflict",
    "MergeAuditEntry",
    "JobState",
]
