"""Shared conflict resolution contract components.

This module intentionally holds only:
- profile-shape aliases
- the dataclasses/enums passed between detector, policy, strategies and resolver
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from profilekit.domain.identity.claims import SourceTag


type DimensionName = str
type AttributeName = str
type AttributeKey = tuple[DimensionName, AttributeName]


class AttributeKind(StrEnum):
    """Value family deciding equality and which strategies apply."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    FREE_TEXT = "free_text"


class ResolutionStrategy(StrEnum):
    """Closed set of conflict resolution strategies."""

    TEMPORAL_RECENCY = "temporal_recency"
    SOURCE_RELIABILITY = "source_reliability"
    STATISTICAL_CONSENSUS = "statistical_consensus"
    CONTEXTUAL_PLAUSIBILITY = "contextual_plausibility"


@dataclass(frozen=True, slots=True, kw_only=True)
class Observation:
    """One source's value for one profile attribute."""

    value: object
    source: SourceTag
    observed_at: datetime

    def __post_init__(self) -> None:
        if self.observed_at.tzinfo is None:
            raise ValueError("Observation timestamps must include timezone information")


type ProfileObservations = Mapping[DimensionName, Mapping[AttributeName, Sequence[Observation]]]
type ResolvedProfile = Mapping[DimensionName, Mapping[AttributeName, object]]


@dataclass(frozen=True, slots=True, kw_only=True)
class Candidate:
    """Candidate value inside a conflict, annotated with its source reliability."""

    value: object
    source: SourceTag
    observed_at: datetime
    source_reliability: float


@dataclass(frozen=True, slots=True, kw_only=True)
class AttributeConflict:
    """Disagreement among sources about one attribute; never persisted."""

    dimension: DimensionName
    attribute: AttributeName
    kind: AttributeKind
    candidates: tuple[Candidate, ...]

    def __post_init__(self) -> None:
        if len(self.candidates) < 2:
            raise ValueError("An attribute conflict needs at least two candidates")

    @property
    def key(self) -> AttributeKey:
        return (self.dimension, self.attribute)

    @property
    def sources(self) -> tuple[SourceTag, ...]:
        return tuple(dict.fromkeys(candidate.source for candidate in self.candidates))

    @property
    def description(self) -> str:
        values = ", ".join(
            f"{candidate.source}={candidate.value!r}" for candidate in self.candidates
        )
        return (
            f"{self.dimension}.{self.attribute}: {len(self.candidates)} {self.kind.value} "
            f"candidates from {len(self.sources)} sources disagree ({values})"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionEntry:
    """Audit record for one resolved conflict."""

    dimension: DimensionName
    attribute: AttributeName
    conflict_description: str
    strategy_used: ResolutionStrategy
    resolved_value: object
    explanation: str
    confidence: float


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictResolutionResult:
    """Outcome of one conflict resolution pass.

    ``len(resolution_log) + len(remaining_conflicts) == len(detected_conflicts)``.
    """

    resolved_profile: ResolvedProfile
    resolution_log: tuple[ResolutionEntry, ...]
    remaining_conflicts: tuple[AttributeConflict, ...]
    detected_conflicts: tuple[AttributeConflict, ...]

    def value_of(self, dimension: DimensionName, attribute: AttributeName) -> object | None:
        return self.resolved_profile.get(dimension, {}).get(attribute)

    def entry_for(
        self,
        dimension: DimensionName,
        attribute: AttributeName,
    ) -> ResolutionEntry | None:
        for entry in self.resolution_log:
            if entry.dimension == dimension and entry.attribute == attribute:
                return entry
        return None


__all__ = [
    "AttributeConflict",
    "AttributeKey",
    "AttributeKind",
    "AttributeName",
    "Candidate",
    "ConflictResolutionResult",
    "DimensionName",
    "Observation",
    "ProfileObservations",
    "ResolutionEntry",
    "ResolutionStrategy",
    "ResolvedProfile",
]
