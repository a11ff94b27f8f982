from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from profilekit.app import (
    build_conflict_resolver,
    construct_unified_profile,
    resolve_identity,
)
from profilekit.config import ConflictResolutionConfig, IdentityResolutionConfig
from profilekit.domain.conflicts import ResolutionStrategy
from profilekit.domain.identity import PrecomputedClaimsStrategy
from tests.helpers.profiles import at, make_claim, observe, profile_of

RAW = {
    "s1": [make_claim("A", 1.0, source="crm")],
    "s2": [make_claim("B", 0.5, source="web")],
}
STRATEGIES = {"s1": PrecomputedClaimsStrategy(), "s2": PrecomputedClaimsStrategy()}


def test_configured_weights_apply_without_explicit_weights() -> None:
    config = IdentityResolutionConfig(strategy_weights={"s1": 0.1})

    configured = resolve_identity("cust-0", RAW, strategies=STRATEGIES, config=config)
    explicit = resolve_identity(
        "cust-0",
        RAW,
        strategies=STRATEGIES,
        weights={"s1": 1.0},
        config=config,
    )

    assert configured.master_identity == "B"
    assert explicit.master_identity == "A"


def test_conflict_resolver_follows_configuration() -> None:
    config = ConflictResolutionConfig(
        source_reliability={"bank": 0.9},
        default_source_reliability=0.4,
        recency_scale=timedelta(days=7),
        consensus_min_sources=2,
    )

    resolver = build_conflict_resolver(config=config)

    assert resolver.recency_scale == timedelta(days=7)
    assert resolver.policy.consensus_min_sources == 2
    assert resolver.detector.reliability.score_for("bank") == 0.9
    assert resolver.detector.reliability.score_for("survey") == 0.4

    result = resolver(
        profile_of(behavioral={"visits": [observe(10, "web"), observe(20, "app")]})
    )
    (entry,) = result.resolution_log
    assert entry.strategy_used is ResolutionStrategy.STATISTICAL_CONSENSUS
    assert entry.resolved_value == pytest.approx(15.0)


def test_construct_unified_profile_runs_every_stage(caplog: pytest.LogCaptureFixture) -> None:
    profile = profile_of(
        demographic={"city": [observe("NYC", "crm", 1), observe("LA", "web", 3)]},
    )

    with caplog.at_level(logging.INFO, logger="profilekit.app"):
        unified = construct_unified_profile(
            "cust-0",
            RAW,
            profile,
            strategies=STRATEGIES,
            identity_config=IdentityResolutionConfig(),
            conflict_config=ConflictResolutionConfig(),
            clock=lambda: at(5),
        )

    assert unified.linked_identities == ("A", "B")
    assert unified.profile["demographic"]["city"] == "LA"
    assert unified.metadata.last_updated == at(5)
    assert unified.metadata.profile_completeness == pytest.approx(1 / 5)
    (finished,) = [
        record
        for record in caplog.records
        if record.getMessage().startswith("Finished unified profile")
    ]
    assert finished.msg == "Finished unified profile: master=%s, resolved=%d, remaining=%d"
    assert finished.args == (unified.master_customer_id, 1, 0)
