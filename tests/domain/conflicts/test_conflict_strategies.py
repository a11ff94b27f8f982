from __future__ import annotations

import math
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from profilekit.domain.conflicts import (
    AttributeSpec,
    CrossAttributeCheck,
    NumericAggregate,
    ProfileContext,
    RangeCheck,
    ResolutionStrategy,
    SourceReliability,
    StrategyContext,
    StrategyMismatchError,
    detect_conflicts,
    resolve_conflict,
)
from tests.helpers.profiles import observe, profile_of

if TYPE_CHECKING:
    from profilekit.domain.conflicts import AttributeConflict, Observation


def _conflict(
    dimension: str,
    attribute: str,
    observations: list[Observation],
    reliability: SourceReliability | None = None,
) -> AttributeConflict:
    (conflict,) = detect_conflicts(
        profile_of(**{dimension: {attribute: observations}}),
        reliability=reliability,
    )
    return conflict


def test_source_reliability_prefers_trusted_source() -> None:
    conflict = _conflict(
        "transactional",
        "income",
        [observe(5000, "bank", 5), observe(7000, "survey", 9)],
        SourceReliability(scores={"bank": 0.9, "survey": 0.4}),
    )

    entry = resolve_conflict(conflict, ResolutionStrategy.SOURCE_RELIABILITY, StrategyContext())

    assert entry.resolved_value == 5000
    assert entry.confidence == pytest.approx(0.9)
    assert entry.strategy_used is ResolutionStrategy.SOURCE_RELIABILITY
    assert entry.conflict_description == conflict.description
    assert "bank" in entry.explanation


def test_temporal_recency_confidence_grows_with_lead() -> None:
    conflict = _conflict(
        "demographic",
        "email",
        [observe("old@example.com", "crm", 1), observe("new@example.com", "web", 31)],
    )
    context = StrategyContext(recency_scale=timedelta(days=30))

    entry = resolve_conflict(conflict, ResolutionStrategy.TEMPORAL_RECENCY, context)

    assert entry.resolved_value == "new@example.com"
    assert entry.confidence == pytest.approx(0.5 + 0.5 * (1 - math.exp(-1)))


def test_temporal_recency_with_simultaneous_observations_has_half_confidence() -> None:
    conflict = _conflict("demographic", "city", [observe("NYC", "crm", 3), observe("LA", "web", 3)])

    entry = resolve_conflict(conflict, ResolutionStrategy.TEMPORAL_RECENCY)

    assert entry.resolved_value == "NYC"
    assert entry.confidence == pytest.approx(0.5)


def test_statistical_consensus_weighted_mean_and_median() -> None:
    conflict = _conflict(
        "behavioral", "visits", [observe(10, "web"), observe(20, "app"), observe(90, "pos")]
    )

    mean = resolve_conflict(conflict, ResolutionStrategy.STATISTICAL_CONSENSUS)
    median = resolve_conflict(
        conflict,
        ResolutionStrategy.STATISTICAL_CONSENSUS,
        StrategyContext(spec=AttributeSpec(numeric_aggregate=NumericAggregate.MEDIAN)),
    )

    assert mean.resolved_value == pytest.approx(40.0)
    assert median.resolved_value == 20
    assert 0.0 < mean.confidence < 1.0
    assert "median" in median.explanation


def test_statistical_consensus_confidence_drops_with_spread() -> None:
    tight = _conflict("behavioral", "visits", [observe(10, "web"), observe(11, "app")])
    loose = _conflict("behavioral", "visits", [observe(10, "web"), observe(30, "app")])

    tight_entry = resolve_conflict(tight, ResolutionStrategy.STATISTICAL_CONSENSUS)
    loose_entry = resolve_conflict(loose, ResolutionStrategy.STATISTICAL_CONSENSUS)

    assert loose_entry.confidence == pytest.approx(1 / (1 + 0.5))
    assert tight_entry.confidence > loose_entry.confidence


def test_statistical_consensus_takes_the_mode_for_categories() -> None:
    conflict = _conflict(
        "preference",
        "tier",
        [observe("gold", "crm"), observe("silver", "web"), observe("gold", "app")],
    )

    entry = resolve_conflict(conflict, ResolutionStrategy.STATISTICAL_CONSENSUS)

    assert entry.resolved_value == "gold"
    assert entry.confidence == pytest.approx(2 / 3)


def test_statistical_consensus_counts_booleans_apart_from_integers() -> None:
    conflict = _conflict(
        "demographic",
        "opted_in",
        [observe(1, "crm"), observe(True, "web"), observe(True, "app")],
    )

    entry = resolve_conflict(conflict, ResolutionStrategy.STATISTICAL_CONSENSUS)

    assert entry.resolved_value is True
    assert entry.confidence == pytest.approx(2 / 3)


def test_statistical_consensus_rejects_free_text() -> None:
    conflict = _conflict("preference", "tags", [observe(["a"], "web"), observe(["b"], "app")])

    with pytest.raises(StrategyMismatchError) as excinfo:
        resolve_conflict(conflict, ResolutionStrategy.STATISTICAL_CONSENSUS)

    assert excinfo.value.strategy is ResolutionStrategy.STATISTICAL_CONSENSUS
    assert excinfo.value.conflict is conflict


def test_contextual_plausibility_rejects_implausible_candidates() -> None:
    conflict = _conflict("demographic", "age", [observe(34, "crm", 1), observe(340, "web", 2)])
    context = StrategyContext(spec=AttributeSpec(checks=(RangeCheck(minimum=0, maximum=120),)))

    entry = resolve_conflict(conflict, ResolutionStrategy.CONTEXTUAL_PLAUSIBILITY, context)

    assert entry.resolved_value == 34
    assert entry.confidence == pytest.approx(1.0)
    assert "passed 1 of 1" in entry.explanation


def test_contextual_plausibility_consults_uncontested_attributes() -> None:
    conflict = _conflict("preference", "currency", [observe("EUR", "crm"), observe("USD", "web")])
    check = CrossAttributeCheck(
        dimension="demographic",
        attribute="country",
        predicate=lambda currency, country: (currency == "EUR") == (country == "DE"),
        label="currency_matches",
    )
    spec = AttributeSpec(checks=(check,))

    known = StrategyContext(
        spec=spec, profile=ProfileContext(values={("demographic", "country"): "US"})
    )
    unknown = StrategyContext(spec=spec)

    strategy = ResolutionStrategy.CONTEXTUAL_PLAUSIBILITY
    assert resolve_conflict(conflict, strategy, known).resolved_value == "USD"
    entry = resolve_conflict(conflict, strategy, unknown)
    assert entry.confidence == 0.0
    assert "currency_matches[demographic.country]" in entry.explanation


def test_contextual_plausibility_without_checks_is_a_mismatch() -> None:
    conflict = _conflict("demographic", "city", [observe("NYC", "crm"), observe("LA", "web")])

    with pytest.raises(StrategyMismatchError, match="no plausibility checks"):
        resolve_conflict(conflict, ResolutionStrategy.CONTEXTUAL_PLAUSIBILITY)
