"""File-backed persistence of batch job state for resumable runs."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from recordmerge.entities.core import JobState
from recordmerge.utils.helpers import ensure_directory, serialize_json
from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


class FileJobStateStore:
    """Persists one ``<job_id>.state.json`` file per job under ``base_directory``."""

    suffix = ".state.json"

    def __init__(self, base_directory: Path | str) -> None:
        self.base_directory = ensure_directory(base_directory)

    def state_path(self, job_id: str) -> Path:
        return self.base_directory / f"{job_id}{self.suffix}"

    def save(self, state: JobState) -> Path:
        payload = {
            "job_id": state.job_id,
            "state": state.model_dump(mode="json"),
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        path = self.state_path(state.job_id)
        serialize_json(payload, path)
        _LOGGER.debug("Saved job state", job_id=state.job_id, status=state.status.value)
        return path

    def load(self, job_id: str) -> Optional[JobState]:
        path = self.state_path(job_id)
        if not path.exists():
            return None
        payload = json.loads(path.read_text(encoding="utf-8"))
        self.validate_payload(job_id, payload)
        return JobState.model_validate(payload["state"])

    def validate_payload(self, job_id: str, payload: dict) -> None:
        stored = payload.get("job_id")
        if stored != job_id:
            raise ValueError(f"Job state id mismatch: expected {job_id}, found {stored}")

    def list_jobs(self) -> List[str]:
        return sorted(path.name[: -len(self.suffix)] for path in self.base_directory.glob(f"*{self.suffix}"))


__all__ = ["FileJobStateStore"]
