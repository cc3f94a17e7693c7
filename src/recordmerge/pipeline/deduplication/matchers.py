"""Field-semantic matchers and the registry that dispatches to them.

Every matcher exposes two scores on a 0-100 scale:

``score``
    The field comparison used when presenting or ranking a pair of values.
``grouping_score``
    The stricter per-field rule used while forming fuzzy groups (emails and
    phones only count when they match exactly after normalization).

Both treat ``None`` as "no evidence" and return 0, and both are symmetric in
their arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Sequence

from recordmerge.config.policies import MatchingPolicy
from recordmerge.entities.core import Value
from recordmerge.utils.logging import get_logger
from recordmerge.utils.normalization import Normalizer
from recordmerge.utils.similarity import common_token_count, similarity_ratio, token_overlap_score


_LOGGER = get_logger(module=__name__)

EXACT_SCORE = 100.0
NO_MATCH = 0.0


class FieldMatcher:
    """Base class for field matchers; the default behaviour is generic text."""

    category = "generic"

    def __init__(self, normalizer: Normalizer, *, min_token_length: int = 3) -> None:
        self.normalizer = normalizer
        self.min_token_length = min_token_length

    def normalize(self, value: Value) -> str:
        return self.normalizer.normalize(value)

    def score(self, value1: Value, value2: Value) -> float:
        if value1 is None or value2 is None:
            return NO_MATCH
        norm1 = self.normalize(value1)
        norm2 = self.normalize(value2)
        if norm1 == norm2:
            return EXACT_SCORE
        return self._score_normalized(norm1, norm2)

    def grouping_score(self, value1: Value, value2: Value) -> float:
        if value1 is None or value2 is None:
            return NO_MATCH
        norm1 = self.normalize(value1)
        norm2 = self.normalize(value2)
        if norm1 == norm2:
            return EXACT_SCORE
        return similarity_ratio(norm1, norm2)

    def _too_short(self, norm1: str, norm2: str) -> bool:
        return len(norm1) < self.min_token_length or len(norm2) < self.min_token_length

    def _score_normalized(self, norm1: str, norm2: str) -> float:
        if self._too_short(norm1, norm2):
            return NO_MATCH
        return similarity_ratio(norm1, norm2)


class GenericMatcher(FieldMatcher):
    """Catch-all text matcher based on edit-distance similarity."""


class NameMatcher(FieldMatcher):
    """Blend whole-string similarity with order-independent token agreement."""

    category = "name"
    whole_string_weight = 0.4
    token_weight = 0.6

    def _score_normalized(self, norm1: str, norm2: str) -> float:
        if self._too_short(norm1, norm2):
            return NO_MATCH
        tokens1 = norm1.split()
        tokens2 = norm2.split()
        longest = max(len(tokens1), len(tokens2))
        token_score = 100.0 * common_token_count(tokens1, tokens2) / longest if longest else 0.0
        whole = similarity_ratio(norm1, norm2)
        return self.whole_string_weight * whole + self.token_weight * token_score


class EmailMatcher(FieldMatcher):
    """Domain-aware email comparison."""

    category = "email"

    def __init__(self, normalizer: Normalizer, *, min_token_length: int = 3) -> None:
        super().__init__(normalizer, min_token_length=min_token_length)
        self._fallback = GenericMatcher(normalizer, min_token_length=min_token_length)

    def normalize(self, value: Value) -> str:
        return self.normalizer.normalize_email(value)

    def _score_normalized(self, norm1: str, norm2: str) -> float:
        if norm1.count("@") != 1 or norm2.count("@") != 1:
            return self._fallback.score(norm1, norm2)
        local1, domain1 = norm1.split("@")
        local2, domain2 = norm2.split("@")
        if domain1 != domain2:
            return NO_MATCH
        return similarity_ratio(local1, local2)

    def grouping_score(self, value1: Value, value2: Value) -> float:
        if value1 is None or value2 is None:
            return NO_MATCH
        return EXACT_SCORE if self.normalize(value1) == self.normalize(value2) else NO_MATCH


class PhoneMatcher(FieldMatcher):
    """Digit-only comparison for phone-like fields."""

    category = "phone"
    national_digits = 10

    def __init__(self, normalizer: Normalizer, *, min_token_length: int = 3) -> None:
        super().__init__(normalizer, min_token_length=min_token_length)
        self._fallback = GenericMatcher(normalizer, min_token_length=min_token_length)

    def normalize(self, value: Value) -> str:
        return self.normalizer.normalize_phone(value)

    def _national(self, digits: str) -> str:
        return digits[-self.national_digits :] if len(digits) >= self.national_digits else digits

    def score(self, value1: Value, value2: Value) -> float:
        if value1 is None or value2 is None:
            return NO_MATCH
        digits1 = self.normalize(value1)
        digits2 = self.normalize(value2)
        if not digits1 or not digits2:
            return self._fallback.score(value1, value2)
        if digits1 == digits2 or self._national(digits1) == self._national(digits2):
            return EXACT_SCORE
        return similarity_ratio(digits1, digits2)

    def grouping_score(self, value1: Value, value2: Value) -> float:
        if value1 is None or value2 is None:
            return NO_MATCH
        digits1 = self.normalize(value1)
        digits2 = self.normalize(value2)
        if not digits1 or not digits2:
            return self._fallback.grouping_score(value1, value2)
        return EXACT_SCORE if digits1 == digits2 else NO_MATCH


class AddressMatcher(FieldMatcher):
    """Token-overlap comparison with street-suffix canonicalization."""

    category = "address"

    def __init__(
        self,
        normalizer: Normalizer,
        *,
        min_token_length: int = 3,
        abbreviations: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(normalizer, min_token_length=min_token_length)
        self.abbreviations = dict(abbreviations or {})

    def tokens(self, normalized: str) -> List[str]:
        return [self.abbreviations.get(token, token) for token in normalized.split()]

    def normalize(self, value: Value) -> str:
        return " ".join(self.tokens(self.normalizer.normalize(value)))

    def _score_normalized(self, norm1: str, norm2: str) -> float:
        return token_overlap_score(norm1.split(), norm2.split())

    def grouping_score(self, value1: Value, value2: Value) -> float:
        return self.score(value1, value2)


Predicate = Callable[[str], bool]


def field_name_contains(*fragments: str) -> Predicate:
    """Build a case-insensitive substring predicate over field names."""

    lowered = tuple(fragment.lower() for fragment in fragments)

    def predicate(field_name: str) -> bool:
        name = field_name.lower()
        return any(fragment in name for fragment in lowered)

    return predicate


@dataclass(frozen=True)
class MatcherEntry:
    """A named ``(predicate, matcher)`` pair held by the registry."""

    name: str
    predicate: Predicate
    matcher: FieldMatcher


class MatcherRegistry:
    """Ordered list of matchers; the first predicate that accepts a field wins."""

    def __init__(self, entries: Sequence[MatcherEntry], fallback: FieldMatcher) -> None:
        self._entries: List[MatcherEntry] = list(entries)
        self.fallback = fallback
        self._resolved: Dict[str, FieldMatcher] = {}

    @classmethod
    def default(
        cls,
        policy: MatchingPolicy | None = None,
        *,
        normalizer: Normalizer | None = None,
    ) -> "MatcherRegistry":
        policy = policy or MatchingPolicy()
        normalizer = normalizer or Normalizer(
            max_entries=policy.normalizer_cache_size,
            max_key_length=policy.normalizer_max_key_length,
        )
        min_len = policy.min_token_length
        entries = [
            MatcherEntry("email", field_name_contains("email"), EmailMatcher(normalizer, min_token_length=min_len)),
            MatcherEntry("phone", field_name_contains("phone", "fax", "mobile"), PhoneMatcher(normalizer, min_token_length=min_len)),
            MatcherEntry("name", field_name_contains("name"), NameMatcher(normalizer, min_token_length=min_len)),
            MatcherEntry(
                "address",
                field_name_contains("address", "street", "city", "state", "country", "postal", "zip"),
                AddressMatcher(
                    normalizer,
                    min_token_length=min_len,
                    abbreviations=policy.address_abbreviations,
                ),
            ),
        ]
        return cls(entries, GenericMatcher(normalizer, min_token_length=min_len))

    @property
    def normalizer(self) -> Normalizer:
        return self.fallback.normalizer

    @property
    def entries(self) -> List[MatcherEntry]:
        return list(self._entries)

    def register(self, entry: MatcherEntry, *, prepend: bool = True) -> None:
        """Add a matcher; prepended entries take priority over the defaults."""

        if prepend:
            self._entries.insert(0, entry)
        else:
            self._entries.append(entry)
        self._resolved.clear()

    def matcher_for(self, field_name: str) -> FieldMatcher:
        cached = self._resolved.get(field_name)
        if cached is not None:
            return cached
        matcher = self.fallback
        for entry in self._entries:
            if entry.predicate(field_name):
                matcher = entry.matcher
                break
        self._resolved[field_name] = matcher
        _LOGGER.debug("Resolved field matcher", field=field_name, category=matcher.category)
        return matcher

    def category_for(self, field_name: str) -> str:
        return self.matcher_for(field_name).category

    def score(self, field_name: str, value1: Value, value2: Value) -> float:
        return self.matcher_for(field_name).score(value1, value2)

    def grouping_score(self, field_name: str, value1: Value, value2: Value) -> float:
        return self.matcher_for(field_name).grouping_score(value1, value2)


__all__ = [
    "FieldMatcher",
    "GenericMatcher",
    "NameMatcher",
    "EmailMatcher",
    "PhoneMatcher",
    "AddressMatcher",
    "MatcherEntry",
    "MatcherRegistry",
    "field_name_contains",
    "EXACT_SCORE",
    "NO_MATCH",
]
