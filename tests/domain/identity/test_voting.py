from __future__ import annotations

import pytest

from profilekit.domain.identity import rank_votes, select_consensus, tally_votes
from tests.helpers.profiles import make_claim


def test_tally_votes_accumulates_weighted_confidence() -> None:
    votes = tally_votes(
        [
            (1.0, [make_claim("A", 0.9, source="s1")]),
            (0.5, [make_claim("A", 0.3, source="s2")]),
            (1.0, [make_claim("B", 0.8, source="s3")]),
        ]
    )

    assert votes["A"].total_weight == pytest.approx(1.05)
    assert votes["A"].sources == ["s1", "s2"]
    assert votes["B"].total_weight == pytest.approx(0.8)
    assert select_consensus(votes).identity == "A"


def test_adding_a_positive_claim_never_lowers_a_vote() -> None:
    base = [(1.0, [make_claim("A", 0.4, source="s1"), make_claim("B", 0.6, source="s1")])]
    before = tally_votes(base)["A"].total_weight

    after = tally_votes([*base, (0.7, [make_claim("A", 0.2, source="s2")])])["A"].total_weight

    assert after >= before


def test_rank_votes_breaks_ties_by_distinct_sources_then_key() -> None:
    votes = tally_votes(
        [
            (1.0, [make_claim("B", 0.9, source="s1")]),
            (1.0, [make_claim("A", 0.3, source="s1")]),
            (1.0, [make_claim("A", 0.3, source="s2")]),
            (1.0, [make_claim("A", 0.3, source="s3")]),
            (1.0, [make_claim("C", 0.9, source="s4")]),
        ]
    )

    assert [vote.identity for vote in rank_votes(votes)] == ["A", "B", "C"]


def test_repeated_source_counts_once_for_tie_breaks() -> None:
    votes = tally_votes(
        [
            (1.0, [make_claim("B", 0.4, source="s1"), make_claim("B", 0.4, source="s1")]),
            (1.0, [make_claim("A", 0.4, source="s2"), make_claim("A", 0.4, source="s3")]),
        ]
    )

    assert votes["B"].source_count == 1
    assert select_consensus(votes).identity == "A"


def test_select_consensus_rejects_empty_tally() -> None:
    with pytest.raises(ValueError, match="empty tally"):
        select_consensus({})
