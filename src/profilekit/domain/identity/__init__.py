"""Identity resolution core.

Flow for one profile-construction request:
1) every strategy turns its source's raw data into identity claims, concurrently
2) failed strategies count as empty evidence
3) claims are tallied by weighted vote after the join point
4) the best-ranked identity becomes the consensus identity
5) the identity graph records every claim as an edge from the initial identifier
"""

from __future__ import annotations

from .claims import IdentityClaim, IdentityKey, RelationshipKind, SourceTag
from .graph import (
    DanglingReferenceError,
    EdgeMetadata,
    IdentityEdge,
    IdentityGraph,
    IdentityNode,
    NodeMetadata,
    UnknownIdentityError,
)
from .resolve import (
    CalibrateWeights,
    ConsensusIdentityResolver,
    ConsensusResult,
    IdentityStrategy,
    NoIdentityEvidenceError,
    StrategyOutcome,
)
from .strategies import (
    BehavioralSimilarityStrategy,
    ContactFingerprintStrategy,
    DeviceLinkageStrategy,
    IdentityRecord,
    PrecomputedClaimsStrategy,
    StrategyInput,
    TransactionLinkageStrategy,
    default_strategies,
)
from .voting import Vote, rank_votes, select_consensus, tally_votes

__all__ = [
    "BehavioralSimilarityStrategy",
    "CalibrateWeights",
    "ConsensusIdentityResolver",
    "ConsensusResult",
    "ContactFingerprintStrategy",
    "DanglingReferenceError",
    "DeviceLinkageStrategy",
    "EdgeMetadata",
    "IdentityClaim",
    "IdentityEdge",
    "IdentityGraph",
    "IdentityKey",
    "IdentityNode",
    "IdentityRecord",
    "IdentityStrategy",
    "NoIdentityEvidenceError",
    "NodeMetadata",
    "PrecomputedClaimsStrategy",
    "RelationshipKind",
    "SourceTag",
    "StrategyInput",
    "StrategyOutcome",
    "TransactionLinkageStrategy",
    "UnknownIdentityError",
    "Vote",
    "default_strategies",
    "rank_votes",
    "select_consensus",
    "tally_votes",
]
