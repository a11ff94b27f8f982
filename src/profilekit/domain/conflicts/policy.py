"""Per-conflict strategy selection."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .contracts import AttributeKind, ResolutionStrategy

if TYPE_CHECKING:
    from .contracts import AttributeConflict
    from .schema import AttributeSpec


log = getLogger(__name__)

DEFAULT_UNRELIABLE_THRESHOLD = 0.5
DEFAULT_LOW_RELIABILITY_THRESHOLD = 0.7
DEFAULT_CONSENSUS_MIN_SOURCES = 3


@dataclass(frozen=True, slots=True, kw_only=True)
class StrategyPolicy:
    """Pick a resolution strategy for one conflict.

    Rules, first match wins:
    - the attribute spec names a strategy explicitly
    - the attribute has plausibility checks: contextual plausibility
    - at least ``consensus_min_sources`` distinct sources, all below
      ``low_reliability_threshold``, on a non-free-text attribute: statistical consensus
    - any source below ``unreliable_threshold``: source reliability
    - otherwise: temporal recency
    """

    unreliable_threshold: float = DEFAULT_UNRELIABLE_THRESHOLD
    low_reliability_threshold: float = DEFAULT_LOW_RELIABILITY_THRESHOLD
    consensus_min_sources: int = DEFAULT_CONSENSUS_MIN_SOURCES

    def __post_init__(self) -> None:
        for label, value in (
            ("unreliable_threshold", self.unreliable_threshold),
            ("low_reliability_threshold", self.low_reliability_threshold),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{label} must be in [0.0, 1.0], got {value}")
        if self.consensus_min_sources < 2:
            raise ValueError("consensus_min_sources must be at least 2")

    def __call__(self, conflict: AttributeConflict, spec: AttributeSpec) -> ResolutionStrategy:
        strategy = self._select(conflict, spec)
        log.debug("Selected %s for %s.%s", strategy.value, conflict.dimension, conflict.attribute)
        return strategy

    def _select(self, conflict: AttributeConflict, spec: AttributeSpec) -> ResolutionStrategy:
        if spec.strategy is not None:
            return spec.strategy
        if spec.checks:
            return ResolutionStrategy.CONTEXTUAL_PLAUSIBILITY

        reliability = {
            candidate.source: candidate.source_reliability for candidate in conflict.candidates
        }
        if (
            conflict.kind is not AttributeKind.FREE_TEXT
            and len(reliability) >= self.consensus_min_sources
            and all(score < self.low_reliability_threshold for score in reliability.values())
        ):
            return ResolutionStrategy.STATISTICAL_CONSENSUS
        if any(score < self.unreliable_threshold for score in reliability.values()):
            return ResolutionStrategy.SOURCE_RELIABILITY
        return ResolutionStrategy.TEMPORAL_RECENCY


def select_strategy(
    conflict: AttributeConflict,
    spec: AttributeSpec,
    policy: StrategyPolicy | None = None,
) -> ResolutionStrategy:
    return (policy or StrategyPolicy())(conflict, spec)


__all__ = [
    "DEFAULT_CONSENSUS_MIN_SOURCES",
    "DEFAULT_LOW_RELIABILITY_THRESHOLD",
    "DEFAULT_UNRELIABLE_THRESHOLD",
    "StrategyPolicy",
    "select_strategy",
]
