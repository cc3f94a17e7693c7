"""Phonetic encoding helpers for composite keys."""

from __future__ import annotations

import re
from functools import lru_cache

from .helpers import fold_diacritics, value_to_text


_NON_ALPHA_RE = re.compile(r"[^a-z]+")
_VOWELS = frozenset("aeiou")


@lru_cache(maxsize=2048)
def consonant_skeleton(text: str) -> str:
    """Keep the first letter and the consonants that follow it.

    Non-letters are dropped before the transform, so ``"O'Brien & Co"`` and
    ``"obrn co"`` share the skeleton ``"obrnc"``.
    """

    if not text:
        return ""
    letters = _NON_ALPHA_RE.sub("", fold_diacritics(text).lower())
    if not letters:
        return ""
    head, tail = letters[0], letters[1:]
    return head + "".join(ch for ch in tail if ch not in _VOWELS)


def phonetic_key(value: object) -> str:
    """Return the consonant skeleton for any scalar field value."""

    return consonant_skeleton(value_to_text(value))


__all__ = ["consonant_skeleton", "phonetic_key"]
