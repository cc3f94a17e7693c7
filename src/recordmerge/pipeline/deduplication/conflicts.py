"""Field-level conflict capture between a master and its absorbed records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from recordmerge.entities.core import FieldConflict, Record, Value
from recordmerge.pipeline.deduplication.keys import read_value
from recordmerge.utils.helpers import value_to_text


def _same(value1: Value, value2: Value) -> bool:
    return value_to_text(value1).strip() == value_to_text(value2).strip()


@dataclass
class ConflictSet:
    """Differing values per field plus data that only absorbed records carry."""

    master_id: str
    conflicts: Dict[str, List[FieldConflict]] = field(default_factory=dict)
    non_mergeable: Dict[str, Dict[str, Value]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        master: Record,
        others: Sequence[Record],
        *,
        capture_non_mergeable: bool = True,
    ) -> "ConflictSet":
        result = cls(master_id=master.id)
        for other in others:
            if other.id == master.id:
                continue
            for name in other.field_names():
                other_value = read_value(other, name)
                if other_value is None:
                    continue
                master_value = read_value(master, name)
                if master_value is None and capture_non_mergeable:
                    result.non_mergeable.setdefault(name, {})[other.id] = other_value
                if _same(master_value, other_value):
                    continue
                result.conflicts.setdefault(name, []).append(
                    FieldConflict(
                        field=name,
                        master_value=master_value,
                        other_value=other_value,
                        other_id=other.id,
                    )
                )
        return result

    def __len__(self) -> int:
        return sum(len(items) for items in self.conflicts.values())

    @property
    def fields(self) -> List[str]:
        return sorted(self.conflicts)

    def differing_values(self, field_name: str) -> List[Value]:
        return [conflict.other_value for conflict in self.conflicts.get(field_name, [])]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "master_id": self.master_id,
            "conflicts": {
                name: [conflict.model_dump(mode="json") for conflict in items]
                for name, items in sorted(self.conflicts.items())
            },
            "non_mergeable_data": {
                name: {record_id: value_to_text(value) for record_id, value in values.items()}
                for name, values in sorted(self.non_mergeable.items())
            },
        }

    def render_text(self) -> str:
        """Human-readable conflict listing for audit notes."""

        if not self.conflicts and not self.non_mergeable:
            return "No field conflicts."
        lines: List[str] = []
        for name in self.fields:
            lines.append(f"{name}:")
            for conflict in self.conflicts[name]:
                lines.append(
                    f"  master={value_to_text(conflict.master_value)!r} "
                    f"{conflict.other_id}={value_to_text(conflict.other_value)!r}"
                )
        if self.non_mergeable:
            lines.append("Non-mergeable data:")
            for name, values in sorted(self.non_mergeable.items()):
                rendered = ", ".join(f"{record_id}={value_to_text(value)!r}" for record_id, value in values.items())
                lines.append(f"  {name}: {rendered}")
        return "\n".join(lines)


__all__ = ["ConflictSet"]
