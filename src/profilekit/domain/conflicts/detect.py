"""Conflict detection over multi-source profiles.

Responsibilities of this stage:
- decide each attribute's kind (declared in the schema or inferred from values)
- group observations into distinct values under kind-appropriate equality
- report every attribute with more than one distinct value as a conflict

Attributes with a single distinct value never reach the resolver; their value
is taken as-is. The detector is deterministic: conflicts come out sorted by
dimension, then attribute.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, cast

from .contracts import AttributeConflict, AttributeKind, Candidate
from .schema import ProfileSchema, SourceReliability, is_number

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .contracts import (
        AttributeKey,
        AttributeName,
        DimensionName,
        Observation,
        ProfileObservations,
    )
    from .schema import AttributeSpec


log = getLogger(__name__)

type CategoricalKey = tuple[type, object]


def _is_hashable(value: object) -> bool:
    try:
        hash(value)
    except TypeError:
        return False
    return True


def categorical_key(value: object) -> CategoricalKey:
    """Key categorical values by type too, so ``1``, ``1.0`` and ``True`` stay distinct."""

    return (type(value), value)


def infer_kind(values: Sequence[object]) -> AttributeKind:
    """Numbers are numeric, other hashable values categorical, the rest free text."""

    if values and all(is_number(value) for value in values):
        return AttributeKind.NUMERIC
    if all(_is_hashable(value) for value in values):
        return AttributeKind.CATEGORICAL
    return AttributeKind.FREE_TEXT


def values_match(left: object, right: object, *, kind: AttributeKind, spec: AttributeSpec) -> bool:
    if kind is AttributeKind.NUMERIC and is_number(left) and is_number(right):
        return math.isclose(
            float(cast("float", left)),
            float(cast("float", right)),
            rel_tol=spec.rel_tolerance,
            abs_tol=spec.abs_tolerance,
        )
    return type(left) is type(right) and left == right


def group_observations(
    observations: Sequence[Observation],
    *,
    kind: AttributeKind,
    spec: AttributeSpec,
) -> list[list[Observation]]:
    """Group observations that carry the same value.

    Numeric values are banded against the smallest value of each group, walking
    the values in ascending order, so the grouping does not depend on input order.
    """

    if kind is AttributeKind.NUMERIC:
        groups: list[list[Observation]] = []
        ordered = sorted(observations, key=lambda item: float(cast("float", item.value)))
        for observation in ordered:
            if groups and values_match(
                groups[-1][0].value, observation.value, kind=kind, spec=spec
            ):
                groups[-1].append(observation)
            else:
                groups.append([observation])
        return groups

    if kind is AttributeKind.CATEGORICAL:
        by_value: dict[CategoricalKey, list[Observation]] = {}
        for observation in observations:
            by_value.setdefault(categorical_key(observation.value), []).append(observation)
        return list(by_value.values())

    linear: list[list[Observation]] = []
    for observation in observations:
        for group in linear:
            if values_match(group[0].value, observation.value, kind=kind, spec=spec):
                group.append(observation)
                break
        else:
            linear.append([observation])
    return linear


@dataclass(frozen=True, slots=True, kw_only=True)
class _ScannedAttribute:
    dimension: DimensionName
    attribute: AttributeName
    kind: AttributeKind
    observations: tuple[Observation, ...]
    groups: list[list[Observation]]


@dataclass(slots=True)
class ConflictDetector:
    """Detect per-attribute source disagreements in a profile."""

    schema: ProfileSchema = field(default_factory=ProfileSchema)
    reliability: SourceReliability = field(default_factory=SourceReliability)

    def __call__(self, profile: ProfileObservations) -> tuple[AttributeConflict, ...]:
        conflicts = tuple(
            AttributeConflict(
                dimension=scanned.dimension,
                attribute=scanned.attribute,
                kind=scanned.kind,
                candidates=tuple(
                    Candidate(
                        value=observation.value,
                        source=observation.source,
                        observed_at=observation.observed_at,
                        source_reliability=self.reliability.score_for(observation.source),
                    )
                    for observation in scanned.observations
                ),
            )
            for scanned in self._scan(profile)
            if len(scanned.groups) > 1
        )
        log.debug("Detected %d attribute conflicts", len(conflicts))
        return conflicts

    def uncontested(self, profile: ProfileObservations) -> dict[AttributeKey, object]:
        """Return the as-is value of every attribute with one distinct value.

        Within a tolerance band the most recent observation supplies the value.
        """

        values: dict[AttributeKey, object] = {}
        for scanned in self._scan(profile):
            if len(scanned.groups) != 1:
                continue
            latest = max(scanned.observations, key=lambda observation: observation.observed_at)
            values[(scanned.dimension, scanned.attribute)] = latest.value
        return values

    def _scan(self, profile: ProfileObservations) -> Iterator[_ScannedAttribute]:
        for dimension in sorted(profile):
            attributes = profile[dimension]
            for attribute in sorted(attributes):
                observations = tuple(attributes[attribute])
                if not observations:
                    continue
                spec = self.schema.spec_for(dimension, attribute)
                inferred = infer_kind([observation.value for observation in observations])
                kind = spec.kind or inferred
                if _kind_cannot_hold(kind, inferred):
                    log.warning(
                        "Attribute %s.%s is declared %s but holds values it cannot compare; "
                        "treating it as %s",
                        dimension,
                        attribute,
                        kind.value,
                        inferred.value,
                    )
                    kind = inferred
                yield _ScannedAttribute(
                    dimension=dimension,
                    attribute=attribute,
                    kind=kind,
                    observations=observations,
                    groups=group_observations(observations, kind=kind, spec=spec),
                )


def _kind_cannot_hold(declared: AttributeKind, inferred: AttributeKind) -> bool:
    match declared:
        case AttributeKind.NUMERIC:
            return inferred is not AttributeKind.NUMERIC
        case AttributeKind.CATEGORICAL:
            return inferred is AttributeKind.FREE_TEXT
        case AttributeKind.FREE_TEXT:
            return False


def detect_conflicts(
    profile: ProfileObservations,
    *,
    schema: ProfileSchema | None = None,
    reliability: SourceReliability | None = None,
) -> tuple[AttributeConflict, ...]:
    """Detect conflicts with a one-off ``ConflictDetector``."""

    detector = ConflictDetector(
        schema=schema or ProfileSchema(),
        reliability=reliability or SourceReliability(),
    )
    return detector(profile)


__all__ = [
    "CategoricalKey",
    "ConflictDetector",
    "categorical_key",
    "detect_conflicts",
    "group_observations",
    "infer_kind",
    "values_match",
]
