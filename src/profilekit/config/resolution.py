"""Identity and conflict resolution settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from profilekit.domain.conflicts.policy import (
    DEFAULT_CONSENSUS_MIN_SOURCES,
    DEFAULT_LOW_RELIABILITY_THRESHOLD,
    DEFAULT_UNRELIABLE_THRESHOLD,
)
from profilekit.domain.conflicts.schema import DEFAULT_ABS_TOLERANCE, DEFAULT_SOURCE_RELIABILITY
from profilekit.domain.conflicts.strategies import DEFAULT_RECENCY_SCALE

from .env import env_float, env_int, env_weights

if TYPE_CHECKING:
    from collections.abc import Mapping

STRATEGY_WEIGHTS_ENV: Final[str] = "PROFILEKIT_STRATEGY_WEIGHTS"
SOURCE_RELIABILITY_ENV: Final[str] = "PROFILEKIT_SOURCE_RELIABILITY"
DEFAULT_SOURCE_RELIABILITY_ENV: Final[str] = "PROFILEKIT_DEFAULT_SOURCE_RELIABILITY"
NUMERIC_ABS_TOLERANCE_ENV: Final[str] = "PROFILEKIT_NUMERIC_ABS_TOLERANCE"
RECENCY_SCALE_DAYS_ENV: Final[str] = "PROFILEKIT_RECENCY_SCALE_DAYS"
CONSENSUS_MIN_SOURCES_ENV: Final[str] = "PROFILEKIT_CONSENSUS_MIN_SOURCES"
UNRELIABLE_THRESHOLD_ENV: Final[str] = "PROFILEKIT_UNRELIABLE_THRESHOLD"
LOW_RELIABILITY_THRESHOLD_ENV: Final[str] = "PROFILEKIT_LOW_RELIABILITY_THRESHOLD"


@dataclass(frozen=True, slots=True)
class IdentityResolutionConfig:
    """Per-strategy vote weights; strategies not listed weigh ``1.0``."""

    strategy_weights: Mapping[str, float] = field(default_factory=dict["str", "float"])


@dataclass(frozen=True, slots=True)
class ConflictResolutionConfig:
    source_reliability: Mapping[str, float] = field(default_factory=dict["str", "float"])
    default_source_reliability: float = DEFAULT_SOURCE_RELIABILITY
    numeric_abs_tolerance: float = DEFAULT_ABS_TOLERANCE
    recency_scale: timedelta = DEFAULT_RECENCY_SCALE
    consensus_min_sources: int = DEFAULT_CONSENSUS_MIN_SOURCES
    unreliable_threshold: float = DEFAULT_UNRELIABLE_THRESHOLD
    low_reliability_threshold: float = DEFAULT_LOW_RELIABILITY_THRESHOLD


def get_identity_resolution_config() -> IdentityResolutionConfig:
    return IdentityResolutionConfig(strategy_weights=env_weights(STRATEGY_WEIGHTS_ENV))


def get_conflict_resolution_config() -> ConflictResolutionConfig:
    recency_days = env_float(
        RECENCY_SCALE_DAYS_ENV,
        DEFAULT_RECENCY_SCALE / timedelta(days=1),
        minimum=0.0,
        maximum=timedelta.max.days,
    )
    return ConflictResolutionConfig(
        source_reliability=env_weights(SOURCE_RELIABILITY_ENV, minimum=0.0, maximum=1.0),
        default_source_reliability=env_float(
            DEFAULT_SOURCE_RELIABILITY_ENV,
            DEFAULT_SOURCE_RELIABILITY,
            minimum=0.0,
            maximum=1.0,
        ),
        numeric_abs_tolerance=env_float(
            NUMERIC_ABS_TOLERANCE_ENV,
            DEFAULT_ABS_TOLERANCE,
            minimum=0.0,
        ),
        recency_scale=timedelta(days=recency_days),
        consensus_min_sources=env_int(
            CONSENSUS_MIN_SOURCES_ENV,
            DEFAULT_CONSENSUS_MIN_SOURCES,
            minimum=2,
        ),
        unreliable_threshold=env_float(
            UNRELIABLE_THRESHOLD_ENV,
            DEFAULT_UNRELIABLE_THRESHOLD,
            minimum=0.0,
            maximum=1.0,
        ),
        low_reliability_threshold=env_float(
            LOW_RELIABILITY_THRESHOLD_ENV,
            DEFAULT_LOW_RELIABILITY_THRESHOLD,
            minimum=0.0,
            maximum=1.0,
        ),
    )
