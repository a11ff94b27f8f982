"""Consensus identity resolution.

Responsibilities of this stage:
- run every identity strategy concurrently over its own raw data
- absorb individual strategy failures as empty evidence
- aggregate claims by weighted vote after all strategies have finished
- build the identity graph and report one consensus identity

Out of scope for this stage:
- fetching raw data (strategies receive it already materialised)
- merging several winning identities into one profile; ``ConsensusResult.votes``
  exposes the full ranking for collaborators that need secondary identities
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol
from uuid import NAMESPACE_URL, UUID, uuid5

from .graph import EdgeMetadata, IdentityGraph, NodeMetadata
from .voting import rank_votes, tally_votes

if TYPE_CHECKING:
    from collections.abc import Awaitable, Mapping, Sequence

    from .claims import IdentityClaim, IdentityKey
    from .voting import Vote


log = getLogger(__name__)

INITIAL_SOURCE = "initial"
MASTER_ID_NAMESPACE = uuid5(NAMESPACE_URL, "profilekit:master-customer-id")


class IdentityStrategy(Protocol):
    """Produce identity claims for ``initial_identifier`` from one source's raw data."""

    def __call__(
        self,
        initial_identifier: IdentityKey,
        raw: Any,  # noqa: ANN401
        /,
    ) -> Sequence[IdentityClaim] | Awaitable[Sequence[IdentityClaim]]: ...


class CalibrateWeights(Protocol):
    """Derive per-strategy reliability weights from the collected claims."""

    def __call__(
        self,
        claims_by_strategy: Mapping[str, Sequence[IdentityClaim]],
    ) -> Mapping[str, float]: ...


class NoIdentityEvidenceError(LookupError):
    """Raised when no strategy produced a single identity claim."""

    def __init__(
        self,
        *,
        initial_identifier: IdentityKey,
        failed: tuple[str, ...] = (),
        empty: tuple[str, ...] = (),
    ) -> None:
        self.initial_identifier = initial_identifier
        self.failed = failed
        self.empty = empty
        super().__init__(
            f"No identity evidence for {initial_identifier!r}: "
            f"failed={list(failed)}, empty={list(empty)}"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class StrategyOutcome:
    """Per-strategy result captured at the join point."""

    name: str
    claims: tuple[IdentityClaim, ...] = ()
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True, slots=True, kw_only=True)
class ConsensusResult:
    """Outcome of one identity resolution call; read-only for consumers."""

    master_identity: IdentityKey
    identity_graph: IdentityGraph
    overall_confidence: float
    attributes: Mapping[str, object] = field(default_factory=dict["str", "object"])
    votes: Mapping[IdentityKey, Vote] = field(default_factory=dict["IdentityKey", "Vote"])
    failed_strategies: tuple[str, ...] = ()
    empty_strategies: tuple[str, ...] = ()

    @property
    def master_customer_id(self) -> UUID:
        return uuid5(MASTER_ID_NAMESPACE, self.master_identity)

    @property
    def ranking(self) -> tuple[Vote, ...]:
        return tuple(rank_votes(self.votes))


@dataclass(slots=True)
class ConsensusIdentityResolver:
    """Resolve one consensus identity from independent strategies.

    ``weights`` wins over ``calibrate``; strategies missing from either default
    to weight ``1.0``. The overall confidence is normalised by the weights of
    all configured strategies, so a failed strategy lowers it.
    """

    strategies: Mapping[str, IdentityStrategy]
    weights: Mapping[str, float] | None = None
    calibrate: CalibrateWeights | None = None

    def __call__(
        self,
        initial_identifier: IdentityKey,
        per_source_raw_data: Mapping[str, object],
    ) -> ConsensusResult:
        return asyncio.run(self.resolve_async(initial_identifier, per_source_raw_data))

    async def resolve_async(
        self,
        initial_identifier: IdentityKey,
        per_source_raw_data: Mapping[str, object],
    ) -> ConsensusResult:
        if not self.strategies:
            raise ValueError("Consensus identity resolution requires at least one strategy")

        outcomes = await asyncio.gather(
            *(
                _run_strategy(name, strategy, initial_identifier, per_source_raw_data.get(name))
                for name, strategy in self.strategies.items()
            )
        )
        return self.aggregate(initial_identifier, outcomes)

    def aggregate(
        self,
        initial_identifier: IdentityKey,
        outcomes: Sequence[StrategyOutcome],
    ) -> ConsensusResult:
        """Reduce joined strategy outcomes into a consensus result."""

        failed = tuple(outcome.name for outcome in outcomes if outcome.failed)
        empty = tuple(
            outcome.name for outcome in outcomes if not outcome.failed and not outcome.claims
        )
        if all(not outcome.claims for outcome in outcomes):
            raise NoIdentityEvidenceError(
                initial_identifier=initial_identifier,
                failed=failed,
                empty=empty,
            )

        weights = self._weights_for(outcomes)
        votes = tally_votes((weights[outcome.name], outcome.claims) for outcome in outcomes)
        winner = rank_votes(votes)[0]
        weight_sum = sum(weights.values())
        overall_confidence = min(max(winner.total_weight / weight_sum, 0.0), 1.0)

        graph = build_identity_graph(initial_identifier, outcomes)
        attributes = _identity_attributes(winner.identity, outcomes)

        log.info(
            "Resolved %s to %s: confidence=%.3f, candidates=%d, failed=%s, empty=%s",
            initial_identifier,
            winner.identity,
            overall_confidence,
            len(votes),
            list(failed),
            list(empty),
        )
        return ConsensusResult(
            master_identity=winner.identity,
            identity_graph=graph,
            overall_confidence=overall_confidence,
            attributes=MappingProxyType(attributes),
            votes=MappingProxyType(votes),
            failed_strategies=failed,
            empty_strategies=empty,
        )

    def _weights_for(self, outcomes: Sequence[StrategyOutcome]) -> dict[str, float]:
        names = [outcome.name for outcome in outcomes]
        if self.weights is not None:
            source: Mapping[str, float] = self.weights
        elif self.calibrate is not None:
            source = self.calibrate({outcome.name: outcome.claims for outcome in outcomes})
        else:
            source = {}

        weights = {name: float(source.get(name, 1.0)) for name in names}
        negative = sorted(name for name, weight in weights.items() if weight < 0)
        if negative:
            raise ValueError(f"Strategy weights must be non-negative: {', '.join(negative)}")
        if sum(weights.values()) <= 0:
            raise ValueError("Strategy weights must not all be zero")
        return weights


async def _run_strategy(
    name: str,
    strategy: IdentityStrategy,
    initial_identifier: IdentityKey,
    raw: object | None,
) -> StrategyOutcome:
    if raw is None:
        log.debug("No raw data for identity strategy %s", name)
        return StrategyOutcome(name=name)

    try:
        if _is_coroutine_callable(strategy):
            claims = await strategy(initial_identifier, raw)  # type: ignore[misc]
        else:
            claims = await asyncio.to_thread(strategy, initial_identifier, raw)
            if inspect.isawaitable(claims):
                claims = await claims
        collected = tuple(claims)
    except Exception as exc:  # noqa: BLE001
        log.warning("Identity strategy %s failed, treating as no evidence: %s", name, exc)
        return StrategyOutcome(name=name, error=exc)

    log.debug("Identity strategy %s produced %d claims", name, len(collected))
    return StrategyOutcome(name=name, claims=collected)


def _is_coroutine_callable(candidate: object) -> bool:
    if inspect.iscoroutinefunction(candidate):
        return True
    call = getattr(candidate, "__call__", None)  # noqa: B004
    return call is not None and inspect.iscoroutinefunction(call)


def build_identity_graph(
    initial_identifier: IdentityKey,
    outcomes: Sequence[StrategyOutcome],
) -> IdentityGraph:
    """Insert the initial identifier, then one node and one edge per claim."""

    graph = IdentityGraph()
    graph.add_node(initial_identifier, NodeMetadata(source=INITIAL_SOURCE, confidence=1.0))
    for outcome in outcomes:
        for claim in outcome.claims:
            graph.add_node(
                claim.identity,
                NodeMetadata(source=claim.source, confidence=claim.confidence),
            )
            graph.add_edge(
                initial_identifier,
                claim.identity,
                EdgeMetadata(
                    relationship=claim.relationship,
                    confidence=claim.confidence,
                    temporal_validity=claim.temporal_validity,
                ),
            )
    return graph


def _identity_attributes(
    identity: IdentityKey,
    outcomes: Sequence[StrategyOutcome],
) -> dict[str, object]:
    claims = [
        claim for outcome in outcomes for claim in outcome.claims if claim.identity == identity
    ]
    claims.sort(key=lambda claim: claim.confidence, reverse=True)
    attributes: dict[str, object] = {}
    for claim in claims:
        for key, value in claim.attributes.items():
            attributes.setdefault(key, value)
    return attributes


__all__ = [
    "INITIAL_SOURCE",
    "MASTER_ID_NAMESPACE",
    "CalibrateWeights",
    "ConsensusIdentityResolver",
    "ConsensusResult",
    "IdentityStrategy",
    "NoIdentityEvidenceError",
    "StrategyOutcome",
    "build_identity_graph",
]
