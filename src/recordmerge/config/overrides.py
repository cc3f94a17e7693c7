"""Nested overrides from environment variables and dotted paths.

Both the settings layer (``RECORDMERGE_SETTINGS__``) and policy loading
(``RECORDMERGE_POLICY__``) read double-underscore separated variables such as
``RECORDMERGE_POLICY__MATCHING__FUZZY_THRESHOLD=80``. Segments are lowercased
and values are JSON-decoded when possible, so ``80`` arrives as a number and
``NonBlank`` stays a string.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Mapping, MutableMapping, Sequence

SEGMENT_SEPARATOR = "__"


def decode_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return raw


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new mapping with *override* merged into *base* recursively."""

    merged: Dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def assign_path(target: MutableMapping[str, Any], path: Sequence[str], value: Any) -> None:
    """Set ``target[path[0]][path[1]]... = value``, creating mappings on the way."""

    if not path:
        raise ValueError("override path must not be empty")
    cursor = target
    for index, segment in enumerate(path[:-1]):
        existing = cursor.get(segment)
        if existing is None:
            existing = {}
            cursor[segment] = existing
        elif not isinstance(existing, MutableMapping):
            walked = "/".join(path[: index + 1])
            raise ValueError(f"Cannot override '{'/'.join(path)}': '{walked}' is not a mapping")
        cursor = existing
    cursor[path[-1]] = value


def env_overrides(prefix: str, environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    """Collect ``<prefix>A__B=value`` variables into ``{"a": {"b": value}}``."""

    source = os.environ if environ is None else environ
    collected: Dict[str, Any] = {}
    for key in sorted(source):
        if not key.startswith(prefix):
            continue
        path = [segment.lower() for segment in key[len(prefix) :].split(SEGMENT_SEPARATOR) if segment]
        if not path:
            continue
        assign_path(collected, path, decode_value(source[key]))
    return collected


__all__ = ["decode_value", "deep_merge", "assign_path", "env_overrides", "SEGMENT_SEPARATOR"]
