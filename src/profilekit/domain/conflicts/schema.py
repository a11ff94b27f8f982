"""Per-attribute resolution schema, source reliability and plausibility checks."""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from .contracts import AttributeKind, ResolutionStrategy

if TYPE_CHECKING:
    from profilekit.domain.identity.claims import SourceTag

    from .contracts import AttributeKey, AttributeName, DimensionName

DEFAULT_SOURCE_RELIABILITY = 0.5
DEFAULT_ABS_TOLERANCE = 1e-9


class NumericAggregate(StrEnum):
    MEAN = "mean"
    MEDIAN = "median"


@dataclass(frozen=True, slots=True)
class SourceReliability:
    """Declared reliability per source; unknown sources get ``default``."""

    scores: Mapping[SourceTag, float] = field(default_factory=dict["SourceTag", "float"])
    default: float = DEFAULT_SOURCE_RELIABILITY

    def __post_init__(self) -> None:
        for source, score in (*self.scores.items(), ("<default>", self.default)):
            if not 0.0 <= score <= 1.0:
                raise ValueError(f"Reliability for {source} must be in [0.0, 1.0], got {score}")

    def score_for(self, source: SourceTag) -> float:
        return self.scores.get(source, self.default)


@dataclass(frozen=True, slots=True)
class ProfileContext:
    """Uncontested attribute values visible to cross-attribute checks."""

    values: Mapping[AttributeKey, object] = field(default_factory=dict["AttributeKey", "object"])

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def get(
        self,
        dimension: DimensionName,
        attribute: AttributeName,
        default: object = None,
    ) -> object:
        return self.values.get((dimension, attribute), default)


class PlausibilityCheck(Protocol):
    """Domain sanity check applied to one candidate value."""

    @property
    def name(self) -> str: ...

    def __call__(self, value: object, context: ProfileContext) -> bool: ...


def is_number(value: object) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(float(value))
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class RangeCheck:
    minimum: float | None = None
    maximum: float | None = None

    @property
    def name(self) -> str:
        return f"range[{self.minimum}, {self.maximum}]"

    def __call__(self, value: object, context: ProfileContext) -> bool:
        if not is_number(value):
            return False
        number = float(value)  # pyright: ignore[reportArgumentType]
        if self.minimum is not None and number < self.minimum:
            return False
        return not (self.maximum is not None and number > self.maximum)


@dataclass(frozen=True, slots=True, kw_only=True)
class AllowedValuesCheck:
    allowed: frozenset[Hashable]

    @property
    def name(self) -> str:
        return f"allowed{sorted(map(str, self.allowed))}"

    def __call__(self, value: object, context: ProfileContext) -> bool:
        return isinstance(value, Hashable) and value in self.allowed


@dataclass(frozen=True, slots=True, kw_only=True)
class PatternCheck:
    pattern: str

    @property
    def name(self) -> str:
        return f"pattern[{self.pattern}]"

    def __call__(self, value: object, context: ProfileContext) -> bool:
        return isinstance(value, str) and re.fullmatch(self.pattern, value) is not None


@dataclass(frozen=True, slots=True, kw_only=True)
class CrossAttributeCheck:
    """Compare a candidate against another attribute's uncontested value.

    The check fails when the other attribute is missing or itself contested.
    """

    dimension: DimensionName
    attribute: AttributeName
    predicate: Callable[[object, object], bool]
    label: str = "consistent"

    @property
    def name(self) -> str:
        return f"{self.label}[{self.dimension}.{self.attribute}]"

    def __call__(self, value: object, context: ProfileContext) -> bool:
        if (self.dimension, self.attribute) not in context:
            return False
        return bool(self.predicate(value, context.get(self.dimension, self.attribute)))


@dataclass(frozen=True, slots=True, kw_only=True)
class AttributeSpec:
    """Resolution settings for one attribute; unset fields fall back to policy/inference."""

    kind: AttributeKind | None = None
    strategy: ResolutionStrategy | None = None
    abs_tolerance: float = DEFAULT_ABS_TOLERANCE
    rel_tolerance: float = 0.0
    numeric_aggregate: NumericAggregate = NumericAggregate.MEAN
    checks: tuple[PlausibilityCheck, ...] = ()

    def __post_init__(self) -> None:
        if self.abs_tolerance < 0 or self.rel_tolerance < 0:
            raise ValueError("Attribute tolerances must be non-negative")


@dataclass(frozen=True, slots=True)
class ProfileSchema:
    """Attribute specs keyed by ``(dimension, attribute)``."""

    attributes: Mapping[AttributeKey, AttributeSpec] = field(
        default_factory=dict["AttributeKey", "AttributeSpec"]
    )
    default: AttributeSpec = field(default_factory=AttributeSpec)

    def spec_for(self, dimension: DimensionName, attribute: AttributeName) -> AttributeSpec:
        return self.attributes.get((dimension, attribute), self.default)


__all__ = [
    "DEFAULT_ABS_TOLERANCE",
    "DEFAULT_SOURCE_RELIABILITY",
    "AllowedValuesCheck",
    "AttributeSpec",
    "CrossAttributeCheck",
    "NumericAggregate",
    "PatternCheck",
    "PlausibilityCheck",
    "ProfileContext",
    "ProfileSchema",
    "RangeCheck",
    "SourceReliability",
    "is_number",
]
