"""Matching and grouping policy models."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, field_validator


def _default_address_abbreviations() -> Dict[str, str]:
    return {
        "street": "st",
        "avenue": "ave",
        "road": "rd",
        "drive": "dr",
        "boulevard": "blvd",
        "lane": "ln",
        "court": "ct",
        "place": "pl",
        "apartment": "apt",
        "suite": "ste",
        "floor": "fl",
        "highway": "hwy",
        "parkway": "pkwy",
        "north": "n",
        "south": "s",
        "east": "e",
        "west": "w",
    }


class MatchingPolicy(BaseModel):
    """Thresholds and normalization controls for duplicate detection."""

    fuzzy_threshold: float = Field(
        default=75.0,
        ge=0.0,
        le=100.0,
        description="Minimum weighted score (0-100) for two records to share a fuzzy group.",
    )
    min_fuzzy_fields: int = Field(
        default=2,
        ge=1,
        description="Fuzzy grouping is skipped when fewer field specs are configured.",
    )
    min_token_length: int = Field(
        default=3,
        ge=1,
        description="Values shorter than this must match exactly for name/generic scoring.",
    )
    null_tolerant_exact: bool = Field(
        default=True,
        description="Fold keys with optional nulls into the single compatible exact partition.",
    )
    normalizer_cache_size: int = Field(default=4096, ge=0)
    normalizer_max_key_length: int = Field(
        default=200,
        ge=1,
        description="Inputs longer than this are normalized but never cached.",
    )
    weight_overrides: Dict[str, float] = Field(
        default_factory=dict,
        description="Per-field weights taking precedence over the built-in weight table.",
    )
    address_abbreviations: Dict[str, str] = Field(
        default_factory=_default_address_abbreviations,
        description="Token canonicalization applied to address values before overlap scoring.",
    )

    @field_validator("weight_overrides")
    @classmethod
    def _validate_weights(cls, value: Dict[str, float]) -> Dict[str, float]:
        cleaned: Dict[str, float] = {}
        for name, weight in value.items():
            if weight < 0:
                raise ValueError(f"weight override for '{name}' must be non-negative")
            cleaned[name.strip().lower()] = float(weight)
        return cleaned

    @field_validator("address_abbreviations")
    @classmethod
    def _lower_abbreviations(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {key.strip().lower(): target.strip().lower() for key, target in value.items() if key.strip()}
