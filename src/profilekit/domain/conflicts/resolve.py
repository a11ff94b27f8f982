"""Conflict resolution over a whole profile.

Responsibilities of this stage:
- pass attributes with a single distinct value through unchanged
- pick a strategy per conflict and append one log entry per resolved conflict
- isolate strategy mismatches to their conflict and return them as remaining
- re-run detection on the resolved profile to check the remaining conflicts report

Conflicts resolve independently of each other; cross-attribute checks only see
uncontested values. The log follows the detector's (dimension, attribute) order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING

from .contracts import ConflictResolutionResult, Observation
from .detect import ConflictDetector
from .policy import StrategyPolicy
from .schema import ProfileContext
from .strategies import (
    DEFAULT_RECENCY_SCALE,
    StrategyContext,
    StrategyMismatchError,
    resolve_conflict,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import timedelta

    from .contracts import (
        AttributeConflict,
        AttributeKey,
        AttributeName,
        DimensionName,
        ProfileObservations,
        ResolutionEntry,
    )


log = getLogger(__name__)

RESOLVED_SOURCE_PREFIX = "resolved:"


@dataclass(slots=True)
class ConflictResolver:
    """Resolve every detected conflict in a multi-source profile."""

    detector: ConflictDetector = field(default_factory=ConflictDetector)
    policy: StrategyPolicy = field(default_factory=StrategyPolicy)
    recency_scale: timedelta = DEFAULT_RECENCY_SCALE

    def __call__(self, profile: ProfileObservations) -> ConflictResolutionResult:
        detected = self.detector(profile)
        values: dict[AttributeKey, object] = self.detector.uncontested(profile)
        context = ProfileContext(values=MappingProxyType(dict(values)))

        log_entries: list[ResolutionEntry] = []
        failed: list[AttributeConflict] = []
        for conflict in detected:
            entry = self._resolve_one(conflict, context)
            if entry is None:
                failed.append(conflict)
                continue
            log_entries.append(entry)
            values[conflict.key] = entry.resolved_value

        remaining = self._remaining_conflicts(profile, log_entries, failed)
        result = ConflictResolutionResult(
            resolved_profile=_freeze(values),
            resolution_log=tuple(log_entries),
            remaining_conflicts=remaining,
            detected_conflicts=detected,
        )
        log.info(
            "Resolved %d of %d conflicts; %d remaining",
            len(result.resolution_log),
            len(detected),
            len(remaining),
        )
        return result

    def _resolve_one(
        self,
        conflict: AttributeConflict,
        profile_context: ProfileContext,
    ) -> ResolutionEntry | None:
        spec = self.detector.schema.spec_for(conflict.dimension, conflict.attribute)
        strategy = self.policy(conflict, spec)
        context = StrategyContext(
            spec=spec,
            profile=profile_context,
            recency_scale=self.recency_scale,
        )
        try:
            entry = resolve_conflict(conflict, strategy, context)
        except StrategyMismatchError as exc:
            log.info("Leaving %s.%s unresolved: %s", conflict.dimension, conflict.attribute, exc)
            return None
        log.debug(
            "Resolved %s.%s via %s to %r (confidence=%.3f)",
            conflict.dimension,
            conflict.attribute,
            strategy.value,
            entry.resolved_value,
            entry.confidence,
        )
        return entry

    def _remaining_conflicts(
        self,
        profile: ProfileObservations,
        log_entries: Sequence[ResolutionEntry],
        failed: Sequence[AttributeConflict],
    ) -> tuple[AttributeConflict, ...]:
        """Detect again on the resolved profile; only unresolved conflicts may survive."""

        remaining = self.detector(_collapse(profile, log_entries))
        expected = {conflict.key for conflict in failed}
        reported = {conflict.key for conflict in remaining}
        if reported != expected:
            log.warning(
                "Remaining conflicts disagree with unresolved conflicts: "
                "unexpected=%s, missing=%s",
                sorted(reported - expected),
                sorted(expected - reported),
            )
        return remaining


def _collapse(
    profile: ProfileObservations,
    log_entries: Sequence[ResolutionEntry],
) -> dict[DimensionName, dict[AttributeName, list[Observation]]]:
    """Replace each resolved attribute's observations with its resolved value."""

    resolved = {(entry.dimension, entry.attribute): entry for entry in log_entries}
    collapsed: dict[DimensionName, dict[AttributeName, list[Observation]]] = {}
    for dimension, attributes in profile.items():
        collapsed_attributes = collapsed.setdefault(dimension, {})
        for attribute, observations in attributes.items():
            entry = resolved.get((dimension, attribute))
            if entry is None or not observations:
                collapsed_attributes[attribute] = list(observations)
                continue
            collapsed_attributes[attribute] = [
                Observation(
                    value=entry.resolved_value,
                    source=f"{RESOLVED_SOURCE_PREFIX}{entry.strategy_used.value}",
                    observed_at=max(observation.observed_at for observation in observations),
                )
            ]
    return collapsed


def _freeze(
    values: dict[AttributeKey, object],
) -> MappingProxyType[DimensionName, MappingProxyType[AttributeName, object]]:
    nested: dict[DimensionName, dict[AttributeName, object]] = {}
    for dimension, attribute in sorted(values):
        nested.setdefault(dimension, {})[attribute] = values[(dimension, attribute)]
    return MappingProxyType(
        {dimension: MappingProxyType(attributes) for dimension, attributes in nested.items()}
    )


def resolve_conflicts(
    profile: ProfileObservations,
    *,
    detector: ConflictDetector | None = None,
    policy: StrategyPolicy | None = None,
) -> ConflictResolutionResult:
    """Resolve ``profile`` with a one-off ``ConflictResolver``."""

    resolver = ConflictResolver(
        detector=detector or ConflictDetector(),
        policy=policy or StrategyPolicy(),
    )
    return resolver(profile)


__all__ = [
    "RESOLVED_SOURCE_PREFIX",
    "ConflictResolver",
    "resolve_conflicts",
]
