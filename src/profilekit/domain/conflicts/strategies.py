"""Conflict resolution strategies.

Every strategy is a pure function from a conflict's candidates to a resolved
value, an explanation and a confidence in ``[0, 1]``. ``resolve_conflict``
dispatches over the closed ``ResolutionStrategy`` enum. A strategy that cannot
handle the conflict's attribute kind raises ``StrategyMismatchError``; the
resolver isolates that failure to the one conflict.
"""

from __future__ import annotations

import math
import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, cast

from .contracts import AttributeKind, ResolutionEntry, ResolutionStrategy
from .detect import categorical_key, values_match
from .schema import AttributeSpec, NumericAggregate, ProfileContext

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .contracts import AttributeConflict, Candidate
    from .detect import CategoricalKey
    from .schema import PlausibilityCheck


log = getLogger(__name__)

DEFAULT_RECENCY_SCALE = timedelta(days=30)


class StrategyMismatchError(TypeError):
    """Raised when a strategy cannot resolve a conflict of the given attribute kind."""

    def __init__(
        self,
        *,
        strategy: ResolutionStrategy,
        conflict: AttributeConflict,
        reason: str,
    ) -> None:
        self.strategy = strategy
        self.kind = conflict.kind
        self.conflict = conflict
        self.reason = reason
        super().__init__(
            f"{strategy.value} cannot resolve {conflict.dimension}.{conflict.attribute} "
            f"({conflict.kind.value}): {reason}"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class StrategyContext:
    """Inputs a strategy may consult besides the conflict itself."""

    spec: AttributeSpec = field(default_factory=AttributeSpec)
    profile: ProfileContext = field(default_factory=ProfileContext)
    recency_scale: timedelta = DEFAULT_RECENCY_SCALE


@dataclass(frozen=True, slots=True, kw_only=True)
class Resolution:
    resolved_value: object
    explanation: str
    confidence: float


def _timestamp(candidate: Candidate) -> float:
    return candidate.observed_at.timestamp()


def _recency_key(candidate: Candidate) -> tuple[float, float, str]:
    return (-_timestamp(candidate), -candidate.source_reliability, candidate.source)


def _reliability_key(candidate: Candidate) -> tuple[float, float, str]:
    return (-candidate.source_reliability, -_timestamp(candidate), candidate.source)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def resolve_by_temporal_recency(
    conflict: AttributeConflict,
    context: StrategyContext,
) -> Resolution:
    """Latest observation wins; confidence grows with its lead over the next differing value."""

    ordered = sorted(conflict.candidates, key=_recency_key)
    winner = ordered[0]
    runner_up = next(
        (
            candidate
            for candidate in ordered[1:]
            if not values_match(
                candidate.value, winner.value, kind=conflict.kind, spec=context.spec
            )
        ),
        None,
    )
    if runner_up is None:
        return Resolution(
            resolved_value=winner.value,
            explanation=f"{winner.source} reported the most recent value and no source disagrees",
            confidence=1.0,
        )

    gap = winner.observed_at - runner_up.observed_at
    scale = max(context.recency_scale.total_seconds(), 1.0)
    confidence = 0.5 + 0.5 * (1.0 - math.exp(-gap.total_seconds() / scale))
    return Resolution(
        resolved_value=winner.value,
        explanation=(
            f"{winner.source} reported the most recent value at {winner.observed_at.isoformat()}, "
            f"{gap} ahead of {runner_up.source}"
        ),
        confidence=_clamp(confidence),
    )


def resolve_by_source_reliability(
    conflict: AttributeConflict,
    context: StrategyContext,
) -> Resolution:
    """Most reliable source wins; confidence is that source's reliability."""

    winner = min(conflict.candidates, key=_reliability_key)
    return Resolution(
        resolved_value=winner.value,
        explanation=(
            f"{winner.source} has the highest declared reliability "
            f"({winner.source_reliability:.2f})"
        ),
        confidence=_clamp(winner.source_reliability),
    )


def resolve_by_statistical_consensus(
    conflict: AttributeConflict,
    context: StrategyContext,
) -> Resolution:
    """Weighted aggregate for numbers, mode for categories."""

    match conflict.kind:
        case AttributeKind.NUMERIC:
            return _numeric_consensus(conflict.candidates, context.spec)
        case AttributeKind.CATEGORICAL:
            return _categorical_consensus(conflict.candidates)
        case AttributeKind.FREE_TEXT:
            raise StrategyMismatchError(
                strategy=ResolutionStrategy.STATISTICAL_CONSENSUS,
                conflict=conflict,
                reason="free text has no meaningful aggregate or mode",
            )


def _numeric_consensus(candidates: Sequence[Candidate], spec: AttributeSpec) -> Resolution:
    values = [float(cast("float", candidate.value)) for candidate in candidates]
    weights = [candidate.source_reliability for candidate in candidates]
    if sum(weights) <= 0:
        weights = [1.0] * len(values)

    if spec.numeric_aggregate is NumericAggregate.MEDIAN:
        resolved = _weighted_median(values, weights)
        label = "reliability-weighted median"
    else:
        resolved = sum(value * weight for value, weight in zip(values, weights, strict=True)) / sum(
            weights
        )
        label = "reliability-weighted mean"

    mean = statistics.fmean(values)
    spread = statistics.pstdev(values)
    if mean == 0:
        confidence = 1.0 if spread == 0 else 0.0
        variation = math.inf if spread else 0.0
    else:
        variation = spread / abs(mean)
        confidence = 1.0 / (1.0 + variation)

    return Resolution(
        resolved_value=resolved,
        explanation=(
            f"{label} of {len(values)} candidates (coefficient of variation {variation:.3f})"
        ),
        confidence=_clamp(confidence),
    )


def _weighted_median(values: Sequence[float], weights: Sequence[float]) -> float:
    pairs = sorted(zip(values, weights, strict=True))
    half = sum(weights) / 2.0
    running = 0.0
    for value, weight in pairs:
        running += weight
        if running >= half:
            return value
    return pairs[-1][0]


def _categorical_consensus(candidates: Sequence[Candidate]) -> Resolution:
    counts: Counter[CategoricalKey] = Counter()
    reliability: dict[CategoricalKey, float] = {}
    for candidate in candidates:
        key = categorical_key(candidate.value)
        counts[key] += 1
        reliability[key] = reliability.get(key, 0.0) + candidate.source_reliability

    mode = min(
        counts,
        key=lambda key: (-counts[key], -reliability[key], repr(key[1]), key[0].__name__),
    )
    value = mode[1]
    agreement = counts[mode] / len(candidates)
    return Resolution(
        resolved_value=value,
        explanation=f"{counts[mode]} of {len(candidates)} candidates agree on {value!r}",
        confidence=_clamp(agreement),
    )


def resolve_by_contextual_plausibility(
    conflict: AttributeConflict,
    context: StrategyContext,
) -> Resolution:
    """Candidate passing the most plausibility checks wins."""

    checks = context.spec.checks
    if not checks:
        raise StrategyMismatchError(
            strategy=ResolutionStrategy.CONTEXTUAL_PLAUSIBILITY,
            conflict=conflict,
            reason="no plausibility checks are configured for this attribute",
        )

    results: list[tuple[Candidate, list[str]]] = []
    for candidate in conflict.candidates:
        failed = [check.name for check in checks if not _passes(check, candidate, context)]
        results.append((candidate, failed))

    winner, failed = min(
        results,
        key=lambda item: (
            len(item[1]),
            -item[0].source_reliability,
            -_timestamp(item[0]),
            item[0].source,
        ),
    )
    passed = len(checks) - len(failed)
    explanation = f"{winner.source} passed {passed} of {len(checks)} plausibility checks"
    if failed:
        explanation += f" (failed: {', '.join(failed)})"
    return Resolution(
        resolved_value=winner.value,
        explanation=explanation,
        confidence=_clamp(passed / len(checks)),
    )


def _passes(check: PlausibilityCheck, candidate: Candidate, context: StrategyContext) -> bool:
    try:
        return bool(check(candidate.value, context.profile))
    except (TypeError, ValueError) as exc:
        log.debug("Plausibility check %s rejected %r: %s", check, candidate.value, exc)
        return False


def resolve_conflict(
    conflict: AttributeConflict,
    strategy: ResolutionStrategy,
    context: StrategyContext | None = None,
) -> ResolutionEntry:
    """Resolve ``conflict`` with ``strategy`` and return its audit entry."""

    effective_context = context or StrategyContext()
    match strategy:
        case ResolutionStrategy.TEMPORAL_RECENCY:
            resolution = resolve_by_temporal_recency(conflict, effective_context)
        case ResolutionStrategy.SOURCE_RELIABILITY:
            resolution = resolve_by_source_reliability(conflict, effective_context)
        case ResolutionStrategy.STATISTICAL_CONSENSUS:
            resolution = resolve_by_statistical_consensus(conflict, effective_context)
        case ResolutionStrategy.CONTEXTUAL_PLAUSIBILITY:
            resolution = resolve_by_contextual_plausibility(conflict, effective_context)

    return ResolutionEntry(
        dimension=conflict.dimension,
        attribute=conflict.attribute,
        conflict_description=conflict.description,
        strategy_used=strategy,
        resolved_value=resolution.resolved_value,
        explanation=resolution.explanation,
        confidence=resolution.confidence,
    )


__all__ = [
    "DEFAULT_RECENCY_SCALE",
    "Resolution",
    "StrategyContext",
    "StrategyMismatchError",
    "resolve_by_contextual_plausibility",
    "resolve_by_source_reliability",
    "resolve_by_statistical_consensus",
    "resolve_by_temporal_recency",
    "resolve_conflict",
]
