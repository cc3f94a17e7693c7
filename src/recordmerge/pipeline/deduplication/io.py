"""JSONL readers and writers for record files and group reports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator, Mapping, TextIO

from recordmerge.entities.core import MasterStrategy, Record
from recordmerge.pipeline.deduplication.groups import DuplicateGroup
from recordmerge.utils.helpers import atomic_write


def load_records(path: str | Path) -> Iterator[Record]:
    """Yield records from a JSONL file, skipping blank lines."""

    with Path(path).open("r", encoding="utf-8") as handle:
        for line in handle:
            if line.strip():
                yield Record.model_validate(json.loads(line))


def _write_lines(destination: str | Path, payloads: Iterable[Mapping]) -> Path:
    def _writer(handle: TextIO) -> None:
        for payload in payloads:
            handle.write(json.dumps(payload, sort_keys=True))
            handle.write("\n")

    return atomic_write(destination, _writer)


def write_records(records: Iterable[Record], destination: str | Path) -> Path:
    return _write_lines(destination, (record.model_dump(mode="json") for record in records))


def write_group_report(
    groups: Mapping[str, DuplicateGroup] | Iterable[DuplicateGroup],
    destination: str | Path,
    *,
    strategy: MasterStrategy | str | None = None,
) -> Path:
    """Persist one JSON summary line per group, in the order given."""

    members = groups.values() if isinstance(groups, Mapping) else groups
    return _write_lines(destination, (group.summary(strategy) for group in members))


__all__ = ["load_records", "write_records", "write_group_report"]
