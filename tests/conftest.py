"""Shared fixtures for the recordmerge test-suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest

from recordmerge.config.settings import Settings
from recordmerge.entities.core import Record

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_record(record_id: str, *, day: int = 0, unavailable: list[str] | None = None, **fields) -> Record:
    return Record(
        id=record_id,
        created_at=BASE_TIME + timedelta(days=day),
        fields=fields,
        unavailable=unavailable or [],
    )


@pytest.fixture
def make_record() -> Callable[..., Record]:
    return build_record


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        paths={
            "data_dir": str(tmp_path / "data"),
            "state_dir": str(tmp_path / "state"),
            "audit_dir": str(tmp_path / "audit"),
            "logs_dir": str(tmp_path / "logs"),
        },
    )
