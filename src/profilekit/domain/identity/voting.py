"""Weighted voting over identity claims.

Voting runs after every strategy has returned. It is a single linear pass over
the union of claims, so there is never more than one writer to the tally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from .claims import IdentityClaim, IdentityKey, SourceTag

# Votes are compared at this precision so float summation order cannot decide ties.
VOTE_PRECISION = 9


@dataclass(slots=True, kw_only=True)
class Vote:
    """Accumulated weight for one identity key."""

    identity: IdentityKey
    total_weight: float = 0.0
    sources: list[SourceTag] = field(default_factory=list["SourceTag"])

    @property
    def source_count(self) -> int:
        return len(set(self.sources))

    def add(self, claim: IdentityClaim, *, weight: float) -> None:
        self.total_weight += weight * claim.confidence
        self.sources.append(claim.source)


def tally_votes(
    claim_sets: Iterable[tuple[float, Sequence[IdentityClaim]]],
) -> dict[IdentityKey, Vote]:
    """Accumulate ``weight * confidence`` per identity across ``(weight, claims)`` pairs."""

    votes: dict[IdentityKey, Vote] = {}
    for weight, claims in claim_sets:
        for claim in claims:
            vote = votes.get(claim.identity)
            if vote is None:
                vote = votes[claim.identity] = Vote(identity=claim.identity)
            vote.add(claim, weight=weight)
    return votes


def _ranking_key(vote: Vote) -> tuple[float, int, IdentityKey]:
    return (-round(vote.total_weight, VOTE_PRECISION), -vote.source_count, vote.identity)


def rank_votes(votes: Mapping[IdentityKey, Vote]) -> list[Vote]:
    """Order votes best first.

    Highest vote wins; ties go to the identity with more distinct contributing
    sources, then to the lexicographically smaller identity key.
    """

    return sorted(votes.values(), key=_ranking_key)


def select_consensus(votes: Mapping[IdentityKey, Vote]) -> Vote:
    if not votes:
        raise ValueError("Cannot select a consensus identity from an empty tally")
    return rank_votes(votes)[0]


__all__ = ["VOTE_PRECISION", "Vote", "rank_votes", "select_consensus", "tally_votes"]
