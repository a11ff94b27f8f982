"""Attribute conflict detection and resolution.

Flow for one profile:
1) group each attribute's observations into distinct values
2) attributes with one distinct value pass through unchanged
3) the policy picks a strategy per conflict
4) each strategy yields a value, an explanation and a confidence, or a mismatch
5) mismatched conflicts are returned as remaining, never dropped
"""

from __future__ import annotations

from .contracts import (
    AttributeConflict,
    AttributeKey,
    AttributeKind,
    AttributeName,
    Candidate,
    ConflictResolutionResult,
    DimensionName,
    Observation,
    ProfileObservations,
    ResolutionEntry,
    ResolutionStrategy,
    ResolvedProfile,
)
from .detect import ConflictDetector, detect_conflicts, group_observations, infer_kind
from .policy import StrategyPolicy, select_strategy
from .resolve import ConflictResolver, resolve_conflicts
from .schema import (
    AllowedValuesCheck,
    AttributeSpec,
    CrossAttributeCheck,
    NumericAggregate,
    PatternCheck,
    PlausibilityCheck,
    ProfileContext,
    ProfileSchema,
    RangeCheck,
    SourceReliability,
)
from .strategies import StrategyContext, StrategyMismatchError, resolve_conflict

__all__ = [
    "AllowedValuesCheck",
    "AttributeConflict",
    "AttributeKey",
    "AttributeKind",
    "AttributeName",
    "AttributeSpec",
    "Candidate",
    "ConflictDetector",
    "ConflictResolutionResult",
    "ConflictResolver",
    "CrossAttributeCheck",
    "DimensionName",
    "NumericAggregate",
    "Observation",
    "PatternCheck",
    "PlausibilityCheck",
    "ProfileContext",
    "ProfileObservations",
    "ProfileSchema",
    "RangeCheck",
    "ResolutionEntry",
    "ResolutionStrategy",
    "ResolvedProfile",
    "SourceReliability",
    "StrategyContext",
    "StrategyMismatchError",
    "StrategyPolicy",
    "detect_conflicts",
    "group_observations",
    "infer_kind",
    "resolve_conflict",
    "resolve_conflicts",
    "select_strategy",
]
