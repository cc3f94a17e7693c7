"""Composite key construction for exact-match partitioning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from recordmerge.entities.core import FieldSpec, MatchType, Record, Value, is_populated
from recordmerge.errors import RecordAccessError
from recordmerge.utils.helpers import value_to_text
from recordmerge.utils.logging import get_logger
from recordmerge.utils.normalization import Normalizer
from recordmerge.utils.phonetic import phonetic_key


_LOGGER = get_logger(module=__name__)

KEY_SEPARATOR = "|#|"
NULL_TOKEN = "\u2400"


@dataclass(frozen=True)
class CompositeKey:
    """Normalized key parts for one record; ``parts`` is empty when excluded."""

    parts: Tuple[str, ...]

    @property
    def value(self) -> str:
        return KEY_SEPARATOR.join(self.parts)

    @property
    def excluded(self) -> bool:
        return not self.parts

    @property
    def null_count(self) -> int:
        return sum(1 for part in self.parts if part == NULL_TOKEN)

    @property
    def has_nulls(self) -> bool:
        return self.null_count > 0

    def covers(self, other: "CompositeKey") -> bool:
        """Return ``True`` when *other* agrees with every non-null part of this key."""

        if self.excluded or len(self.parts) != len(other.parts):
            return False
        for mine, theirs in zip(self.parts, other.parts):
            if mine == NULL_TOKEN:
                continue
            if mine != theirs:
                return False
        return True

    def __str__(self) -> str:
        return self.value


def read_value(record: Record, name: str) -> Value:
    """Read *name* from *record*, treating unreadable and blank values as null."""

    try:
        value = record.get(name)
    except RecordAccessError as exc:
        _LOGGER.debug("Field unavailable; treating as null", record_id=record.id, field=name, error=str(exc))
        return None
    return value if is_populated(value) else None


class CompositeKeyBuilder:
    """Build exact-match keys and fuzzy comparison profiles from field specs."""

    def __init__(self, normalizer: Normalizer | None = None) -> None:
        self.normalizer = normalizer or Normalizer()

    def normalize_part(self, value: Value, match_type: MatchType) -> str:
        if match_type == MatchType.PHONETIC:
            return phonetic_key(value)
        if match_type == MatchType.FUZZY:
            return self.normalizer.normalize(value).replace(" ", "")
        text = value_to_text(value).strip().lower()
        return text.replace(KEY_SEPARATOR, "").replace(NULL_TOKEN, "")

    def build(self, record: Record, field_specs: Sequence[FieldSpec]) -> CompositeKey:
        parts: List[str] = []
        for spec in field_specs:
            value = read_value(record, spec.name)
            part = self.normalize_part(value, spec.match_type) if value is not None else ""
            if not part:
                if spec.required:
                    return CompositeKey(parts=())
                part = NULL_TOKEN
            parts.append(part)
        return CompositeKey(parts=tuple(parts))

    def build_key(self, record: Record, field_specs: Sequence[FieldSpec]) -> str:
        """Return the joined key string; empty when a required field is missing."""

        return self.build(record, field_specs).value

    def comparison_profile(self, record: Record, field_specs: Sequence[FieldSpec]) -> Dict[str, Optional[Value]]:
        """Raw, null-safe values keyed by field name for weighted fuzzy scoring."""

        return {spec.name: read_value(record, spec.name) for spec in field_specs}


__all__ = [
    "CompositeKey",
    "CompositeKeyBuilder",
    "KEY_SEPARATOR",
    "NULL_TOKEN",
    "read_value",
]
