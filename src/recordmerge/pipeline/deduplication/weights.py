"""Field weight lookup used by weighted fuzzy scoring."""

from __future__ import annotations

from typing import Mapping, Tuple

from recordmerge.entities.core import FieldSpec

DEFAULT_WEIGHT = 0.5

# Checked in order against the lowercased field name; the first fragment found wins.
_WEIGHT_TABLE: Tuple[Tuple[str, float], ...] = (
    ("email", 0.8),
    ("phone", 0.7),
    ("mobile", 0.7),
    ("fax", 0.6),
    ("website", 0.6),
    ("firstname", 0.5),
    ("lastname", 0.6),
    ("name", 0.6),
    ("street", 0.5),
    ("address", 0.5),
    ("postal", 0.4),
    ("zip", 0.4),
    ("city", 0.4),
    ("state", 0.3),
    ("country", 0.3),
)


def builtin_weight(field_name: str) -> float:
    """Return the built-in weight for *field_name* or :data:`DEFAULT_WEIGHT`."""

    lowered = field_name.lower()
    for fragment, weight in _WEIGHT_TABLE:
        if fragment in lowered:
            return weight
    return DEFAULT_WEIGHT


class FieldWeights:
    """Resolve weights: explicit spec weight, then overrides, then the table."""

    def __init__(self, overrides: Mapping[str, float] | None = None) -> None:
        self.overrides = {name.lower(): float(weight) for name, weight in (overrides or {}).items()}

    def weight_for(self, spec: FieldSpec | str) -> float:
        if isinstance(spec, FieldSpec):
            if spec.weight is not None:
                return spec.weight
            name = spec.name
        else:
            name = spec
        override = self.overrides.get(name.lower())
        if override is not None:
            return override
        return builtin_weight(name)


__all__ = ["FieldWeights", "builtin_weight", "DEFAULT_WEIGHT"]
