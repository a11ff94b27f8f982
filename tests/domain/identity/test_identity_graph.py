from __future__ import annotations

from datetime import UTC, datetime

import pytest

from profilekit.domain.identity import (
    DanglingReferenceError,
    EdgeMetadata,
    IdentityGraph,
    NodeMetadata,
    RelationshipKind,
    UnknownIdentityError,
)
from profilekit.domain.identity.graph import EdgeEndpoint
from profilekit.domain.time_ranges import TimeRange


def _edge(
    relationship: RelationshipKind = RelationshipKind.USED_BY,
    confidence: float = 0.5,
    temporal_validity: TimeRange | None = None,
) -> EdgeMetadata:
    return EdgeMetadata(
        relationship=relationship,
        confidence=confidence,
        temporal_validity=temporal_validity or TimeRange.always(),
    )


def test_add_node_merges_metadata_idempotently() -> None:
    graph = IdentityGraph()
    graph.add_node("cust-1", NodeMetadata(source="crm", confidence=0.4))
    graph.add_node("cust-1", NodeMetadata(source="web", confidence=0.9))
    node = graph.add_node("cust-1", NodeMetadata(source="web", confidence=0.2))

    assert len(graph) == 1
    assert node.confidence == 0.9
    assert node.origin_source == "crm"
    assert node.origin_sources == ["crm", "web"]


def test_add_edge_rejects_missing_endpoints() -> None:
    graph = IdentityGraph()
    graph.add_node("a", NodeMetadata(source="initial", confidence=1.0))

    with pytest.raises(DanglingReferenceError, match="edge target") as excinfo:
        graph.add_edge("a", "b", _edge())
    assert excinfo.value.endpoint is EdgeEndpoint.TARGET
    assert excinfo.value.identity == "b"

    with pytest.raises(DanglingReferenceError, match="edge source"):
        graph.add_edge("b", "a", _edge())
    assert graph.edges == ()


def test_add_edge_keeps_parallel_edges() -> None:
    graph = IdentityGraph()
    graph.add_node("a", NodeMetadata(source="initial", confidence=1.0))
    graph.add_node("b", NodeMetadata(source="crm", confidence=0.7))
    january = TimeRange(
        start=datetime(2025, 1, 1, tzinfo=UTC),
        end=datetime(2025, 1, 31, tzinfo=UTC),
    )

    graph.add_edge("a", "b", _edge())
    graph.add_edge("a", "b", _edge(temporal_validity=january))
    graph.add_edge("a", "b", _edge(relationship=RelationshipKind.CO_RESIDENT))

    assert len(graph.edges_between("a", "b")) == 3
    assert graph.edges_between("b", "a") == ()
    graph.validate_invariants()


def test_neighbors_is_restartable_and_reads_current_state() -> None:
    graph = IdentityGraph()
    graph.add_node("a", NodeMetadata(source="initial", confidence=1.0))
    graph.add_node("b", NodeMetadata(source="crm", confidence=0.7))
    graph.add_edge("a", "b", _edge())

    view = graph.neighbors("a")
    assert [node.identity for _, node in view] == ["b"]
    assert [node.identity for _, node in view] == ["b"]

    graph.add_node("c", NodeMetadata(source="web", confidence=0.3))
    graph.add_edge("a", "c", _edge(relationship=RelationshipKind.SHARED_DEVICE))

    pairs = list(view)
    assert [node.identity for _, node in pairs] == ["b", "c"]
    assert pairs[1][0].relationship is RelationshipKind.SHARED_DEVICE


def test_neighbors_rejects_unknown_identity() -> None:
    with pytest.raises(UnknownIdentityError):
        IdentityGraph().neighbors("ghost")


def test_walk_terminates_on_cycles() -> None:
    graph = IdentityGraph()
    for identity in ("a", "b", "c"):
        graph.add_node(identity, NodeMetadata(source="crm", confidence=0.5))
    graph.add_edge("a", "b", _edge())
    graph.add_edge("b", "a", _edge(relationship=RelationshipKind.CO_RESIDENT))
    graph.add_edge("b", "c", _edge())
    graph.add_edge("c", "a", _edge())

    assert [node.identity for node in graph.walk("a")] == ["a", "b", "c"]
    assert [node.identity for node in graph.walk("a", max_depth=1)] == ["a", "b"]


def test_walk_rejects_unknown_start() -> None:
    with pytest.raises(UnknownIdentityError):
        list(IdentityGraph().walk("ghost"))


def test_metadata_rejects_out_of_range_confidence() -> None:
    with pytest.raises(ValueError, match="Node confidence"):
        NodeMetadata(source="crm", confidence=1.5)
    with pytest.raises(ValueError, match="Edge confidence"):
        _edge(confidence=-0.1)
