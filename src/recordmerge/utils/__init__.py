"""Utility helpers shared across recordmerge modules."""

from .helpers import atomic_write, chunked, ensure_directory, fold_diacritics, serialize_json, value_to_text
from .logging import configure_logging, get_logger, log_timing, logging_context
from .normalization import Normalizer, normalize_email, normalize_phone, normalize_text
from .phonetic import consonant_skeleton, phonetic_key
from .similarity import (
    clear_similarity_caches,
    common_token_count,
    edit_distance,
    similarity_ratio,
    token_overlap_score,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "logging_context",
    "log_timing",
    "atomic_write",
    "chunked",
    "ensure_directory",
    "fold_diacritics",
    "serialize_json",
    "value_to_text",
    "Normalizer",
    "normalize_text",
    "normalize_phone",
    "normalize_email",
    "consonant_skeleton",
    "phonetic_key",
    "edit_distance",
    "similarity_ratio",
    "common_token_count",
    "token_overlap_score",
    "clear_similarity_caches",
]
