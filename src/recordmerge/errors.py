"""Exception hierarchy shared by the matching, merge, and batch layers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RecordMergeError(Exception):
    """Base exception for all record consolidation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception to a dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(RecordMergeError):
    """Raised when a job configuration cannot be executed.

    Missing field specifications and unknown object types are fatal and are
    surfaced before any job state is created.
    """


class RecordAccessError(RecordMergeError):
    """Raised when a record or one of its fields cannot be read."""

    def __init__(self, record_id: str, field: str | None = None, message: str | None = None) -> None:
        self.record_id = record_id
        self.field = field
        text = message or (
            f"Field '{field}' unavailable on record {record_id}"
            if field
            else f"Record {record_id} unavailable"
        )
        super().__init__(text, {"record_id": record_id, "field": field} if field else {"record_id": record_id})


class MergeError(RecordMergeError):
    """Raised when consolidating one duplicate into its master fails."""

    def __init__(self, master_id: str, record_id: str, message: str) -> None:
        self.master_id = master_id
        self.record_id = record_id
        super().__init__(message, {"master_id": master_id, "record_id": record_id})


class StorageError(RecordMergeError):
    """Raised by storage collaborators when an operation cannot complete."""


class JobFailure(RecordMergeError):
    """Raised when a batch job cannot continue."""

    def __init__(self, job_id: str, message: str) -> None:
        self.job_id = job_id
        super().__init__(message, {"job_id": job_id})


__all__ = [
    "RecordMergeError",
    "ConfigurationError",
    "RecordAccessError",
    "MergeError",
    "StorageError",
    "JobFailure",
]
