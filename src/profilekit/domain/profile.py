"""Unified profile synthesis from a consensus identity and a resolved profile."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from statistics import fmean
from types import MappingProxyType
from typing import TYPE_CHECKING

from profilekit.domain.time_ranges import utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime
    from uuid import UUID

    from profilekit.domain.conflicts.contracts import (
        AttributeConflict,
        ConflictResolutionResult,
        DimensionName,
        ProfileObservations,
        ResolutionEntry,
        ResolvedProfile,
    )
    from profilekit.domain.identity.claims import IdentityKey
    from profilekit.domain.identity.resolve import ConsensusResult
    from profilekit.domain.time_ranges import Clock


log = getLogger(__name__)


class ProfileDimension(StrEnum):
    """Standard profile dimensions counted towards completeness."""

    DEMOGRAPHIC = "demographic"
    BEHAVIORAL = "behavioral"
    TRANSACTIONAL = "transactional"
    RELATIONAL = "relational"
    PREFERENCE = "preference"


@dataclass(frozen=True, slots=True, kw_only=True)
class ProfileMetadata:
    data_freshness: Mapping[DimensionName, datetime] = field(
        default_factory=dict["DimensionName", "datetime"]
    )
    profile_completeness: float = 0.0
    confidence_scores: Mapping[DimensionName, float] = field(
        default_factory=dict["DimensionName", "float"]
    )
    last_updated: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True, kw_only=True)
class UnifiedProfile:
    """Read-only customer profile keyed by the consensus identity."""

    customer_id: IdentityKey
    master_customer_id: UUID
    identity_confidence: float
    linked_identities: tuple[IdentityKey, ...]
    profile: ResolvedProfile
    metadata: ProfileMetadata
    resolution_log: tuple[ResolutionEntry, ...] = ()
    remaining_conflicts: tuple[AttributeConflict, ...] = ()


def build_unified_profile(
    *,
    initial_identifier: IdentityKey,
    consensus: ConsensusResult,
    resolution: ConflictResolutionResult,
    profile: ProfileObservations,
    clock: Clock = utcnow,
) -> UnifiedProfile:
    """Combine identity and conflict resolution outputs into one profile.

    ``confidence_scores`` averages per-attribute confidence within a dimension:
    uncontested attributes count ``1.0``, resolved ones their log confidence and
    unresolved ones ``0.0``.
    """

    metadata = ProfileMetadata(
        data_freshness=MappingProxyType(_data_freshness(profile)),
        profile_completeness=_profile_completeness(resolution.resolved_profile),
        confidence_scores=MappingProxyType(_confidence_scores(profile, resolution)),
        last_updated=clock(),
    )
    unified = UnifiedProfile(
        customer_id=initial_identifier,
        master_customer_id=consensus.master_customer_id,
        identity_confidence=consensus.overall_confidence,
        linked_identities=tuple(vote.identity for vote in consensus.ranking),
        profile=resolution.resolved_profile,
        metadata=metadata,
        resolution_log=resolution.resolution_log,
        remaining_conflicts=resolution.remaining_conflicts,
    )
    log.info(
        "Built unified profile for %s (master=%s, completeness=%.2f)",
        initial_identifier,
        unified.master_customer_id,
        metadata.profile_completeness,
    )
    return unified


def _data_freshness(profile: ProfileObservations) -> dict[DimensionName, datetime]:
    freshness: dict[DimensionName, datetime] = {}
    for dimension in sorted(profile):
        moments = [
            observation.observed_at
            for observations in profile[dimension].values()
            for observation in observations
        ]
        if moments:
            freshness[dimension] = max(moments)
    return freshness


def _profile_completeness(resolved: ResolvedProfile) -> float:
    present = sum(1 for dimension in ProfileDimension if resolved.get(dimension.value))
    return present / len(ProfileDimension)


def _confidence_scores(
    profile: ProfileObservations,
    resolution: ConflictResolutionResult,
) -> dict[DimensionName, float]:
    logged = {
        (entry.dimension, entry.attribute): entry.confidence for entry in resolution.resolution_log
    }
    unresolved = {conflict.key for conflict in resolution.remaining_conflicts}

    scores: dict[DimensionName, float] = {}
    for dimension in sorted(profile):
        per_attribute: list[float] = []
        for attribute, observations in profile[dimension].items():
            if not observations:
                continue
            key = (dimension, attribute)
            if key in unresolved:
                per_attribute.append(0.0)
            else:
                per_attribute.append(logged.get(key, 1.0))
        if per_attribute:
            scores[dimension] = fmean(per_attribute)
    return scores


__all__ = [
    "ProfileDimension",
    "ProfileMetadata",
    "UnifiedProfile",
    "build_unified_profile",
]
