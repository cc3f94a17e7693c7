"""Tests for exact and fuzzy duplicate grouping."""

from __future__ import annotations

import pytest

from recordmerge.config.policies import MatchingPolicy
from recordmerge.entities.core import FieldSpec, MatchType
from recordmerge.errors import ConfigurationError
from recordmerge.pipeline.deduplication.grouping import FUZZY_GROUP_PREFIX, DuplicateGroupingEngine
from recordmerge.pipeline.deduplication.keys import NULL_TOKEN
from recordmerge.pipeline.deduplication.weights import DEFAULT_WEIGHT, FieldWeights, builtin_weight

ACCOUNT_SPECS = [FieldSpec(name="Name"), FieldSpec(name="BillingStreet"), FieldSpec(name="Phone")]


@pytest.fixture()
def engine() -> DuplicateGroupingEngine:
    return DuplicateGroupingEngine()


def test_identical_normalized_keys_form_an_exact_group(engine, make_record) -> None:
    specs = [FieldSpec(name="Name"), FieldSpec(name="Phone"), FieldSpec(name="BillingCity")]
    records = [
        make_record("a", Name="Acme Inc", Phone="(415) 555-1234", BillingCity="San Francisco"),
        make_record("b", Name="ACME Inc.", Phone="415-555-1234", BillingCity="san francisco"),
        make_record("c", Name="Globex", Phone="212-555-0000", BillingCity="New York"),
    ]

    groups = engine.find_groups(records, specs)

    assert len(groups) == 1
    group = next(iter(groups.values()))
    assert group.is_exact_match
    assert group.match_score == 100.0
    assert group.size == 2
    assert group.record_ids == ["a", "b"]
    assert group.group_key == "acmeinc|#|4155551234|#|sanfrancisco"


def test_similar_records_form_a_fuzzy_group(engine, make_record) -> None:
    records = [
        make_record("a", Name="Acme Corporation", BillingStreet="100 Pine Street", Phone="(415) 555-1234"),
        make_record("b", Name="Acme Corp.", BillingStreet="100 Pine St", Phone="415-555-1234"),
        make_record("c", Name="Globex Industries", BillingStreet="1 Main St", Phone="212-555-0000"),
    ]

    groups = engine.find_groups(records, ACCOUNT_SPECS)

    assert list(groups) == [f"{FUZZY_GROUP_PREFIX}a"]
    group = groups["fuzzy-a"]
    assert not group.is_exact_match
    assert group.record_ids == ["a", "b"]
    assert 75.0 < group.match_score < 100.0
    assert group.match_score == pytest.approx((0.6 * 56.25 + 0.5 * 100 + 0.7 * 100) / 1.8)


def test_optional_null_folds_into_compatible_exact_group(engine, make_record) -> None:
    records = [
        make_record("a", Name="Acme", Phone="415-555-1234"),
        make_record("b", Name="Acme", BillingStreet="100 Pine St", Phone="(415) 555-1234"),
    ]

    groups = engine.find_groups(records, ACCOUNT_SPECS)

    assert len(groups) == 1
    group = next(iter(groups.values()))
    assert group.is_exact_match
    assert group.record_ids == ["a", "b"]
    assert NULL_TOKEN not in group.group_key
    assert engine.last_stats.folded_partitions == 1


def test_null_folding_can_be_disabled(make_record) -> None:
    engine = DuplicateGroupingEngine(policy=MatchingPolicy(null_tolerant_exact=False))
    records = [
        make_record("a", Name="Acme", Phone="415-555-1234"),
        make_record("b", Name="Acme", BillingStreet="100 Pine St", Phone="(415) 555-1234"),
    ]

    # (0.6 * 100 + 0.5 * 0 + 0.7 * 100) / 1.8 is below the default threshold of 75
    assert engine.find_groups(records, ACCOUNT_SPECS) == {}


def test_ambiguous_null_fold_is_skipped(engine, make_record) -> None:
    records = [
        make_record("a", Name="Acme", Phone="415-555-1234"),
        make_record("b", Name="Acme", BillingStreet="100 Pine St", Phone="415-555-1234"),
        make_record("c", Name="Acme", BillingStreet="200 Elm St", Phone="415-555-1234"),
    ]

    groups = engine.find_groups(records, ACCOUNT_SPECS, threshold=95)

    assert groups == {}
    assert engine.last_stats.folded_partitions == 0
    assert engine.last_stats.partitions == 3


def test_threshold_is_inclusive(engine, make_record) -> None:
    specs = [FieldSpec(name="Code", weight=1.0), FieldSpec(name="Label", weight=1.0)]
    records = [make_record("a", Code="abcd", Label="same"), make_record("b", Code="abcx", Label="same")]

    assert engine.score_pair(records[0], records[1], specs) == pytest.approx(87.5)
    assert len(engine.find_groups(records, specs, threshold=87.5)) == 1
    assert engine.find_groups(records, specs, threshold=88.5) == {}


def test_fuzzy_grouping_is_greedy_not_transitive(engine, make_record) -> None:
    specs = [FieldSpec(name="Code", weight=1.0), FieldSpec(name="Tag", weight=1.0)]
    records = [
        make_record("a", Code="aaaa", Tag="same"),
        make_record("b", Code="aaab", Tag="same"),
        make_record("c", Code="aabb", Tag="same"),
    ]

    groups = engine.find_groups(records, specs, threshold=80)

    assert list(groups) == ["fuzzy-a"]
    assert groups["fuzzy-a"].record_ids == ["a", "b"]


def test_every_record_lands_in_at_most_one_group(engine, make_record) -> None:
    records = [
        make_record("a1", Name="Acme", BillingStreet="100 Pine St", Phone="415-555-1234"),
        make_record("a2", Name="acme", BillingStreet="100 Pine St.", Phone="4155551234"),
        make_record("b1", Name="Acme Corporation", BillingStreet="9 Oak Ave", Phone="(650) 555-0000"),
        make_record("b2", Name="Acme Corp.", BillingStreet="9 Oak Avenue", Phone="650-555-0000"),
        make_record("c1", Name="Initech", BillingStreet="1 Main St", Phone="212-555-9999"),
    ]

    groups = engine.find_groups(records, ACCOUNT_SPECS)

    seen: list[str] = []
    for group in groups.values():
        assert group.size >= 2
        seen.extend(group.record_ids)
    assert len(seen) == len(set(seen))
    assert "c1" not in seen
    first = next(iter(groups.values()))
    assert first.is_exact_match
    assert first.record_ids == ["a1", "a2"]
    assert groups["fuzzy-b1"].record_ids == ["b1", "b2"]


def test_fuzzy_phase_skipped_with_a_single_field(engine, make_record) -> None:
    records = [make_record("a", Name="Acme Corporation"), make_record("b", Name="Acme Corp")]

    assert engine.find_groups(records, [FieldSpec(name="Name")], threshold=10) == {}
    assert engine.last_stats.fuzzy_skipped


def test_phonetic_specs_group_spelling_variants(engine, make_record) -> None:
    specs = [FieldSpec(name="LastName", matchType="Phonetic"), FieldSpec(name="City", match_type=MatchType.EXACT)]
    records = [make_record("a", LastName="Smith", City="Boston"), make_record("b", LastName="Smeeth", City="boston")]

    groups = engine.find_groups(records, specs)

    assert [group.record_ids for group in groups.values()] == [["a", "b"]]


def test_missing_field_specs_are_rejected(engine, make_record) -> None:
    with pytest.raises(ConfigurationError):
        engine.find_groups([make_record("a", Name="Acme")], [])


def test_duplicate_record_ids_keep_first_occurrence(engine, make_record) -> None:
    records = [
        make_record("a", Name="Acme"),
        make_record("a", Name="Globex"),
        make_record("b", Name="Acme"),
    ]

    groups = engine.find_groups(records, [FieldSpec(name="Name")])

    assert [group.record_ids for group in groups.values()] == [["a", "b"]]
    assert engine.last_stats.records == 2


def test_records_missing_required_fields_skip_exact_phase(engine, make_record) -> None:
    specs = [FieldSpec(name="Name", required=True), FieldSpec(name="Phone")]
    records = [make_record("a", Phone="415-555-1234"), make_record("b", Phone="415-555-1234")]

    engine.find_groups(records, specs)

    assert engine.last_stats.excluded_from_exact == 2
    assert engine.last_stats.exact_groups == 0


def test_score_pair_ignores_fields_null_on_both_sides(engine, make_record) -> None:
    left = make_record("a", Name="Acme", Industry=None)
    right = make_record("b", Name="Acme")
    specs = [FieldSpec(name="Name"), FieldSpec(name="Industry")]

    assert engine.score_pair(left, right, specs) == pytest.approx(100.0)
    assert engine.score_pair(make_record("c"), make_record("d"), specs) is None


def test_weight_overrides_change_scores(make_record) -> None:
    engine = DuplicateGroupingEngine(policy=MatchingPolicy(weight_overrides={"Name": 0}))
    left = make_record("a", Name="Acme Corporation", BillingStreet="100 Pine Street", Phone="(415) 555-1234")
    right = make_record("b", Name="Acme Corp.", BillingStreet="100 Pine St", Phone="415-555-1234")

    assert engine.score_pair(left, right, ACCOUNT_SPECS) == pytest.approx(100.0)


def test_weight_precedence() -> None:
    weights = FieldWeights({"Email": 0.1})

    assert weights.weight_for(FieldSpec(name="Email", weight=0.9)) == 0.9
    assert weights.weight_for(FieldSpec(name="Email")) == 0.1
    assert weights.weight_for("Phone") == 0.7
    assert weights.weight_for("Industry") == DEFAULT_WEIGHT


@pytest.mark.parametrize(
    "field_name,expected",
    [
        ("Email", 0.8),
        ("Phone", 0.7),
        ("LastName", 0.6),
        ("FirstName", 0.5),
        ("CompanyName", 0.6),
        ("BillingStreet", 0.5),
        ("BillingCity", 0.4),
        ("BillingState", 0.3),
        ("Website", 0.6),
    ],
)
def test_builtin_weight_table(field_name: str, expected: float) -> None:
    assert builtin_weight(field_name) == expected
