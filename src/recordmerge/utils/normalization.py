"""Value normalization used by matchers, composite keys, and conflict capture.

The pure helpers (:func:`normalize_text`, :func:`normalize_phone`,
:func:`normalize_email`) accept any scalar field value and never raise on
``None`` or blank input; they return an empty string instead.  The
:class:`Normalizer` wraps them with a bounded memoization cache owned by the
instance, so every execution context can hold (and clear) its own cache rather
than sharing process-wide state.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Callable, Dict, Tuple

from .helpers import fold_diacritics, value_to_text

_NON_ALNUM_RE = re.compile(r"[\W_]+", re.UNICODE)
_NON_DIGIT_RE = re.compile(r"\D+")

DEFAULT_CACHE_SIZE = 4096
DEFAULT_MAX_KEY_LENGTH = 200


def normalize_text(value: object) -> str:
    """Lowercase, replace non-alphanumerics with a space, collapse, and trim."""

    text = value_to_text(value)
    if not text or not text.strip():
        return ""
    lowered = fold_diacritics(text).lower()
    return " ".join(_NON_ALNUM_RE.sub(" ", lowered).split())


def normalize_phone(value: object) -> str:
    """Strip everything but digits."""

    text = value_to_text(value)
    if not text:
        return ""
    return _NON_DIGIT_RE.sub("", text)


def normalize_email(value: object) -> str:
    """Lowercase and trim only so ``@`` and ``.`` survive."""

    text = value_to_text(value)
    if not text:
        return ""
    return text.strip().lower()


_KINDS: Dict[str, Callable[[object], str]] = {
    "text": normalize_text,
    "phone": normalize_phone,
    "email": normalize_email,
}


class Normalizer:
    """Memoizing front-end for the normalization helpers.

    The cache is an LRU bounded by ``max_entries``.  Inputs whose rendered text
    exceeds ``max_key_length`` characters are normalized but never cached.
    """

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_CACHE_SIZE,
        max_key_length: int = DEFAULT_MAX_KEY_LENGTH,
    ) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be non-negative")
        self.max_entries = max_entries
        self.max_key_length = max_key_length
        self._cache: "OrderedDict[Tuple[str, str], str]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()
        self.hits = 0
        self.misses = 0

    def _lookup(self, kind: str, value: object) -> str:
        if value is None:
            return ""
        raw = value_to_text(value)
        key = (kind, raw)
        cacheable = self.max_entries > 0 and len(raw) <= self.max_key_length
        if cacheable:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                self.hits += 1
                return cached
        self.misses += 1
        result = _KINDS[kind](raw)
        if cacheable:
            self._cache[key] = result
            if len(self._cache) > self.max_entries:
                self._cache.popitem(last=False)
        return result

    def normalize(self, value: object) -> str:
        return self._lookup("text", value)

    def normalize_phone(self, value: object) -> str:
        return self._lookup("phone", value)

    def normalize_email(self, value: object) -> str:
        return self._lookup("email", value)


__all__ = [
    "Normalizer",
    "normalize_text",
    "normalize_phone",
    "normalize_email",
    "DEFAULT_CACHE_SIZE",
    "DEFAULT_MAX_KEY_LENGTH",
]
