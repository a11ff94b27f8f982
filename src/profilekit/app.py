"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from profilekit.config import get_conflict_resolution_config, get_identity_resolution_config
from profilekit.domain.conflicts.detect import ConflictDetector
from profilekit.domain.conflicts.policy import StrategyPolicy
from profilekit.domain.conflicts.resolve import ConflictResolver
from profilekit.domain.conflicts.schema import AttributeSpec, ProfileSchema, SourceReliability
from profilekit.domain.identity.resolve import ConsensusIdentityResolver
from profilekit.domain.identity.strategies import default_strategies
from profilekit.domain.profile import build_unified_profile
from profilekit.domain.time_ranges import utcnow

if TYPE_CHECKING:
    from collections.abc import Mapping

    from profilekit.config import ConflictResolutionConfig, IdentityResolutionConfig
    from profilekit.domain.conflicts.contracts import (
        ConflictResolutionResult,
        ProfileObservations,
    )
    from profilekit.domain.identity.claims import IdentityKey
    from profilekit.domain.identity.resolve import (
        CalibrateWeights,
        ConsensusResult,
        IdentityStrategy,
    )
    from profilekit.domain.profile import UnifiedProfile
    from profilekit.domain.time_ranges import Clock


log = getLogger(__name__)


def resolve_identity(
    initial_identifier: IdentityKey,
    per_source_raw_data: Mapping[str, object],
    *,
    strategies: Mapping[str, IdentityStrategy] | None = None,
    weights: Mapping[str, float] | None = None,
    calibrate: CalibrateWeights | None = None,
    config: IdentityResolutionConfig | None = None,
) -> ConsensusResult:
    """Resolve one consensus identity with the built-in or supplied strategies.

    Explicit ``weights`` win over ``calibrate``; without either, the configured
    strategy weights apply when any are set.
    """

    effective_config = config or get_identity_resolution_config()
    effective_strategies = strategies or default_strategies()
    effective_weights = weights
    if effective_weights is None and calibrate is None and effective_config.strategy_weights:
        effective_weights = effective_config.strategy_weights

    log.info(
        "Starting identity resolution for %s: strategies=%s, sources=%s",
        initial_identifier,
        sorted(effective_strategies),
        sorted(per_source_raw_data),
    )
    resolver = ConsensusIdentityResolver(
        strategies=effective_strategies,
        weights=effective_weights,
        calibrate=calibrate,
    )
    return resolver(initial_identifier, per_source_raw_data)


def build_conflict_resolver(
    *,
    schema: ProfileSchema | None = None,
    reliability: SourceReliability | None = None,
    config: ConflictResolutionConfig | None = None,
) -> ConflictResolver:
    effective_config = config or get_conflict_resolution_config()
    effective_schema = schema or ProfileSchema(
        default=AttributeSpec(abs_tolerance=effective_config.numeric_abs_tolerance)
    )
    effective_reliability = reliability or SourceReliability(
        scores=dict(effective_config.source_reliability),
        default=effective_config.default_source_reliability,
    )
    return ConflictResolver(
        detector=ConflictDetector(schema=effective_schema, reliability=effective_reliability),
        policy=StrategyPolicy(
            unreliable_threshold=effective_config.unreliable_threshold,
            low_reliability_threshold=effective_config.low_reliability_threshold,
            consensus_min_sources=effective_config.consensus_min_sources,
        ),
        recency_scale=effective_config.recency_scale,
    )


def resolve_conflicts(
    profile: ProfileObservations,
    *,
    schema: ProfileSchema | None = None,
    reliability: SourceReliability | None = None,
    config: ConflictResolutionConfig | None = None,
) -> ConflictResolutionResult:
    """Detect and resolve attribute conflicts in a multi-source profile."""

    resolver = build_conflict_resolver(schema=schema, reliability=reliability, config=config)
    log.info("Starting conflict resolution over dimensions=%s", sorted(profile))
    return resolver(profile)


def construct_unified_profile(
    initial_identifier: IdentityKey,
    per_source_raw_data: Mapping[str, object],
    profile: ProfileObservations,
    *,
    strategies: Mapping[str, IdentityStrategy] | None = None,
    weights: Mapping[str, float] | None = None,
    schema: ProfileSchema | None = None,
    reliability: SourceReliability | None = None,
    identity_config: IdentityResolutionConfig | None = None,
    conflict_config: ConflictResolutionConfig | None = None,
    clock: Clock = utcnow,
) -> UnifiedProfile:
    """Resolve identity, then conflicts, then synthesise the unified profile."""

    consensus = resolve_identity(
        initial_identifier,
        per_source_raw_data,
        strategies=strategies,
        weights=weights,
        config=identity_config,
    )
    resolution = resolve_conflicts(
        profile,
        schema=schema,
        reliability=reliability,
        config=conflict_config,
    )
    unified = build_unified_profile(
        initial_identifier=initial_identifier,
        consensus=consensus,
        resolution=resolution,
        profile=profile,
        clock=clock,
    )
    log.info(
        "Finished unified profile: master=%s, resolved=%d, remaining=%d",
        unified.master_customer_id,
        len(unified.resolution_log),
        len(unified.remaining_conflicts),
    )
    return unified
