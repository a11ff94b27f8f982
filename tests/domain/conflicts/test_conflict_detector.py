from __future__ import annotations

import logging

import pytest

from profilekit.domain.conflicts import (
    AttributeKind,
    AttributeSpec,
    ConflictDetector,
    ProfileSchema,
    SourceReliability,
    detect_conflicts,
    infer_kind,
)
from tests.helpers.profiles import observe, profile_of


def test_single_distinct_value_is_not_a_conflict() -> None:
    profile = profile_of(
        demographic={"city": [observe("NYC", "srcA", 1), observe("NYC", "srcB", 2)]}
    )

    assert detect_conflicts(profile) == ()
    assert ConflictDetector().uncontested(profile) == {("demographic", "city"): "NYC"}


def test_conflicts_list_every_candidate_with_reliability() -> None:
    profile = profile_of(
        transactional={
            "income": [
                observe(5000, "bank", 5),
                observe(7000, "survey", 9),
                observe(5000, "crm", 1),
            ]
        }
    )
    reliability = SourceReliability(scores={"bank": 0.9, "survey": 0.4})

    (conflict,) = detect_conflicts(profile, reliability=reliability)

    assert conflict.key == ("transactional", "income")
    assert conflict.kind is AttributeKind.NUMERIC
    assert [candidate.source for candidate in conflict.candidates] == ["bank", "survey", "crm"]
    assert [candidate.source_reliability for candidate in conflict.candidates] == [0.9, 0.4, 0.5]
    assert "transactional.income" in conflict.description
    assert "3 numeric candidates from 3 sources" in conflict.description


def test_numeric_values_within_tolerance_are_one_value() -> None:
    profile = profile_of(
        behavioral={"sessions_per_week": [observe(4.0, "web"), observe(4.04, "app")]}
    )
    loose = ProfileSchema(default=AttributeSpec(abs_tolerance=0.05))

    assert detect_conflicts(profile, schema=loose) == ()
    assert len(detect_conflicts(profile)) == 1


def test_tolerance_grouping_does_not_depend_on_input_order() -> None:
    values = [4.0, 4.08, 4.04]
    schema = ProfileSchema(default=AttributeSpec(abs_tolerance=0.05))
    forward = profile_of(
        behavioral={"score": [observe(v, f"s{i}") for i, v in enumerate(values)]}
    )
    backward = profile_of(
        behavioral={"score": [observe(v, f"s{i}") for i, v in enumerate(reversed(values))]}
    )

    assert len(detect_conflicts(forward, schema=schema)) == len(
        detect_conflicts(backward, schema=schema)
    )


def test_conflicts_are_sorted_by_dimension_then_attribute() -> None:
    profile = profile_of(
        preference={"channel": [observe("email", "a"), observe("sms", "b")]},
        demographic={
            "name": [observe("Jane", "a"), observe("Janet", "b")],
            "city": [observe("NYC", "a"), observe("LA", "b")],
        },
    )

    keys = [conflict.key for conflict in detect_conflicts(profile)]

    assert keys == [("demographic", "city"), ("demographic", "name"), ("preference", "channel")]


def test_infer_kind_separates_numbers_categories_and_free_text() -> None:
    assert infer_kind([1, 2.5]) is AttributeKind.NUMERIC
    assert infer_kind([True, False]) is AttributeKind.CATEGORICAL
    assert infer_kind(["gold", 3]) is AttributeKind.CATEGORICAL
    assert infer_kind([["a"], ["b"]]) is AttributeKind.FREE_TEXT


def test_unhashable_values_are_compared_pairwise() -> None:
    profile = profile_of(
        preference={
            "tags": [observe(["a", "b"], "web"), observe(["a", "b"], "app"), observe(["c"], "crm")]
        }
    )

    (conflict,) = detect_conflicts(profile)

    assert conflict.kind is AttributeKind.FREE_TEXT
    assert len(conflict.candidates) == 3


def test_declared_numeric_with_text_values_falls_back(caplog: pytest.LogCaptureFixture) -> None:
    profile = profile_of(demographic={"age": [observe("forty", "a"), observe(41, "b")]})
    schema = ProfileSchema(
        attributes={("demographic", "age"): AttributeSpec(kind=AttributeKind.NUMERIC)}
    )

    with caplog.at_level(logging.WARNING, logger="profilekit.domain.conflicts.detect"):
        (conflict,) = detect_conflicts(profile, schema=schema)

    assert conflict.kind is AttributeKind.CATEGORICAL
    assert "declared numeric" in caplog.text


def test_empty_attributes_are_skipped() -> None:
    profile = profile_of(demographic={"city": [], "name": [observe("Jane", "crm")]})

    assert detect_conflicts(profile) == ()
    assert ConflictDetector().uncontested(profile) == {("demographic", "name"): "Jane"}


def test_declared_categorical_with_unhashable_values_falls_back(
    caplog: pytest.LogCaptureFixture,
) -> None:
    profile = profile_of(preference={"tags": [observe(["vip"], "crm"), observe(["churn"], "web")]})
    schema = ProfileSchema(
        attributes={("preference", "tags"): AttributeSpec(kind=AttributeKind.CATEGORICAL)}
    )

    with caplog.at_level(logging.WARNING, logger="profilekit.domain.conflicts.detect"):
        (conflict,) = detect_conflicts(profile, schema=schema)

    assert conflict.kind is AttributeKind.FREE_TEXT
    assert "declared categorical" in caplog.text


@pytest.mark.parametrize(("left", "right"), [(1, True), (0, False), ("1", 1)])
def test_categorical_values_of_different_types_are_distinct(left: object, right: object) -> None:
    profile = profile_of(demographic={"opted_in": [observe(left, "crm"), observe(right, "web")]})

    (conflict,) = detect_conflicts(profile)

    assert conflict.kind is AttributeKind.CATEGORICAL
    assert [candidate.value for candidate in conflict.candidates] == [left, right]
    assert ConflictDetector().uncontested(profile) == {}


def test_declared_categorical_numbers_compare_exactly() -> None:
    profile = profile_of(preference={"tier": [observe(1, "crm"), observe(1.0, "web")]})
    schema = ProfileSchema(
        attributes={("preference", "tier"): AttributeSpec(kind=AttributeKind.CATEGORICAL)}
    )

    (conflict,) = detect_conflicts(profile, schema=schema)

    assert conflict.kind is AttributeKind.CATEGORICAL
    assert detect_conflicts(profile) == ()
