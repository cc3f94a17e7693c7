"""Merge audit sinks and the human-readable audit note."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Iterator, List

from recordmerge.entities.core import MergeAuditEntry
from recordmerge.utils.helpers import ensure_directory, value_to_text
from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


def render_audit_note(entry: MergeAuditEntry) -> str:
    """Summarize one consolidation the way a merge note would read."""

    kind = "exact" if entry.is_exact_match else "fuzzy"
    lines = [
        f"Merged {len(entry.merged_ids)} {entry.object_type} record(s) into {entry.master_id}",
        f"Group: {entry.group_key} ({kind}, score {entry.match_score:.1f})",
        f"When: {entry.timestamp.isoformat()} by {entry.actor}",
    ]
    if entry.merged_ids:
        lines.append("Merged ids: " + ", ".join(entry.merged_ids))
    if entry.failed_ids:
        lines.append("Failed ids: " + ", ".join(entry.failed_ids))
    if entry.survivor_updates:
        lines.append("Master updates:")
        for name, value in sorted(entry.survivor_updates.items()):
            lines.append(f"  {name} -> {value_to_text(value)!r}")
    if entry.conflicts:
        lines.append("Conflicts:")
        for name, conflicts in sorted(entry.conflicts.items()):
            for conflict in conflicts:
                lines.append(
                    f"  {name}: master {value_to_text(conflict.master_value)!r}"
                    f" vs {conflict.other_id} {value_to_text(conflict.other_value)!r}"
                )
    if entry.non_mergeable_data:
        lines.append("Non-mergeable data:")
        for name, values in sorted(entry.non_mergeable_data.items()):
            for record_id, value in values.items():
                lines.append(f"  {name} on {record_id}: {value_to_text(value)!r}")
    return "\n".join(lines)


class JsonlAuditLog:
    """Append-only JSONL audit log; one line per merged group."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        ensure_directory(self.path.parent)
        self._lock = threading.Lock()

    def record(self, entry: MergeAuditEntry) -> None:
        payload = entry.model_dump(mode="json")
        payload["note"] = render_audit_note(entry)
        with self._lock, self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, sort_keys=True))
            handle.write("\n")
        _LOGGER.debug("Recorded merge audit entry", master_id=entry.master_id, path=str(self.path))

    def __iter__(self) -> Iterator[MergeAuditEntry]:
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if not line.strip():
                    continue
                payload = json.loads(line)
                payload.pop("note", None)
                yield MergeAuditEntry.model_validate(payload)

    def entries(self) -> List[MergeAuditEntry]:
        return list(self)


__all__ = ["JsonlAuditLog", "render_audit_note"]
