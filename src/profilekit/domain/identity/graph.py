"""Identity graph built for one profile-construction request.

The graph is intentionally explicit and mutable:
- the resolver inserts the initial identifier and every claimed identity as nodes
- each claim becomes its own edge, so parallel edges between the same pair of
  identities are kept when they differ in relationship or temporal scope
- cycles are allowed; traversal helpers track a visited set

A graph is owned by the resolution call that created it. Readers receive it only
after the resolver returns.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .claims import require_confidence

if TYPE_CHECKING:
    from collections.abc import Iterator

    from profilekit.domain.time_ranges import TimeRange

    from .claims import IdentityKey, RelationshipKind, SourceTag


class EdgeEndpoint(StrEnum):
    """Endpoint marker used by dangling reference errors."""

    SOURCE = "source"
    TARGET = "target"


class DanglingReferenceError(ValueError):
    """Raised when an edge references an identity that is not a node yet."""

    def __init__(self, *, identity: IdentityKey, endpoint: EdgeEndpoint) -> None:
        self.identity = identity
        self.endpoint = endpoint
        super().__init__(
            f"Identity graph has no node for edge {endpoint.value}: identity={identity!r}"
        )


class UnknownIdentityError(KeyError):
    """Raised when a lookup names an identity that is not in the graph."""

    def __init__(self, identity: IdentityKey) -> None:
        self.identity = identity
        super().__init__(identity)


@dataclass(frozen=True, slots=True, kw_only=True)
class NodeMetadata:
    source: SourceTag
    confidence: float

    def __post_init__(self) -> None:
        require_confidence(self.confidence, label="Node confidence")


@dataclass(frozen=True, slots=True, kw_only=True)
class EdgeMetadata:
    relationship: RelationshipKind
    confidence: float
    temporal_validity: TimeRange

    def __post_init__(self) -> None:
        require_confidence(self.confidence, label="Edge confidence")


@dataclass(slots=True, kw_only=True)
class IdentityNode:
    """Vertex for one identity key; merged in place when re-added."""

    identity: IdentityKey
    confidence: float
    origin_sources: list[SourceTag] = field(default_factory=list["SourceTag"])

    @property
    def origin_source(self) -> SourceTag:
        return self.origin_sources[0]

    def merge(self, metadata: NodeMetadata) -> None:
        self.confidence = max(self.confidence, metadata.confidence)
        if metadata.source not in self.origin_sources:
            self.origin_sources.append(metadata.source)


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityEdge:
    """Directed, confidence-weighted, time-scoped relationship between identities."""

    source_identity: IdentityKey
    target_identity: IdentityKey
    relationship: RelationshipKind
    confidence: float
    temporal_validity: TimeRange


class NeighborView:
    """Restartable view over the outgoing edges of one identity.

    Every iteration reads the graph as it is at that moment; nothing is
    snapshotted when the view is created.
    """

    __slots__ = ("_graph", "_identity")

    def __init__(self, graph: IdentityGraph, identity: IdentityKey) -> None:
        self._graph = graph
        self._identity = identity

    def __iter__(self) -> Iterator[tuple[IdentityEdge, IdentityNode]]:
        for edge in self._graph.edges_from(self._identity):
            yield edge, self._graph.require_node(edge.target_identity)


@dataclass(slots=True)
class IdentityGraph:
    """Directed multigraph of identity nodes and claim edges."""

    _nodes_by_identity: dict[IdentityKey, IdentityNode] = field(
        default_factory=dict["IdentityKey", "IdentityNode"], repr=False
    )
    _edges: list[IdentityEdge] = field(default_factory=list["IdentityEdge"], repr=False)
    _edge_indexes_by_source: dict[IdentityKey, list[int]] = field(
        default_factory=dict["IdentityKey", "list[int]"], repr=False
    )

    @property
    def nodes(self) -> tuple[IdentityNode, ...]:
        return tuple(self._nodes_by_identity.values())

    @property
    def edges(self) -> tuple[IdentityEdge, ...]:
        return tuple(self._edges)

    def __contains__(self, identity: object) -> bool:
        return identity in self._nodes_by_identity

    def __len__(self) -> int:
        return len(self._nodes_by_identity)

    def add_node(self, identity: IdentityKey, metadata: NodeMetadata) -> IdentityNode:
        """Insert ``identity`` or merge ``metadata`` into the existing node."""

        existing = self._nodes_by_identity.get(identity)
        if existing is not None:
            existing.merge(metadata)
            return existing

        node = IdentityNode(
            identity=identity,
            confidence=metadata.confidence,
            origin_sources=[metadata.source],
        )
        self._nodes_by_identity[identity] = node
        return node

    def add_edge(
        self,
        source_identity: IdentityKey,
        target_identity: IdentityKey,
        metadata: EdgeMetadata,
    ) -> IdentityEdge:
        """Append an edge; both endpoints must already be nodes."""

        self._assert_node_exists(source_identity, endpoint=EdgeEndpoint.SOURCE)
        self._assert_node_exists(target_identity, endpoint=EdgeEndpoint.TARGET)

        edge = IdentityEdge(
            source_identity=source_identity,
            target_identity=target_identity,
            relationship=metadata.relationship,
            confidence=metadata.confidence,
            temporal_validity=metadata.temporal_validity,
        )
        self._edge_indexes_by_source.setdefault(source_identity, []).append(len(self._edges))
        self._edges.append(edge)
        return edge

    def node_for(self, identity: IdentityKey) -> IdentityNode | None:
        return self._nodes_by_identity.get(identity)

    def require_node(self, identity: IdentityKey) -> IdentityNode:
        node = self._nodes_by_identity.get(identity)
        if node is None:
            raise UnknownIdentityError(identity)
        return node

    def edges_from(self, identity: IdentityKey) -> tuple[IdentityEdge, ...]:
        indexes = self._edge_indexes_by_source.get(identity, [])
        return tuple(self._edges[index] for index in indexes)

    def edges_between(
        self,
        source_identity: IdentityKey,
        target_identity: IdentityKey,
    ) -> tuple[IdentityEdge, ...]:
        return tuple(
            edge
            for edge in self.edges_from(source_identity)
            if edge.target_identity == target_identity
        )

    def neighbors(self, identity: IdentityKey) -> NeighborView:
        """Return a lazy, restartable view of ``(edge, target node)`` pairs."""

        self.require_node(identity)
        return NeighborView(self, identity)

    def walk(self, start: IdentityKey, *, max_depth: int | None = None) -> Iterator[IdentityNode]:
        """Yield nodes reachable from ``start`` breadth-first, each exactly once."""

        self.require_node(start)
        visited: set[IdentityKey] = {start}
        queue: deque[tuple[IdentityKey, int]] = deque([(start, 0)])
        while queue:
            identity, depth = queue.popleft()
            yield self._nodes_by_identity[identity]
            if max_depth is not None and depth >= max_depth:
                continue
            for edge in self.edges_from(identity):
                if edge.target_identity in visited:
                    continue
                visited.add(edge.target_identity)
                queue.append((edge.target_identity, depth + 1))

    def validate_invariants(self) -> None:
        for identity, node in self._nodes_by_identity.items():
            if node.identity != identity:
                raise ValueError(
                    f"Identity node index mismatch: {node.identity!r} != {identity!r}"
                )
            if not node.origin_sources:
                raise ValueError(f"Identity node {identity!r} has no origin source")

        for edge in self._edges:
            self._assert_node_exists(edge.source_identity, endpoint=EdgeEndpoint.SOURCE)
            self._assert_node_exists(edge.target_identity, endpoint=EdgeEndpoint.TARGET)

    def _assert_node_exists(self, identity: IdentityKey, *, endpoint: EdgeEndpoint) -> None:
        if identity not in self._nodes_by_identity:
            raise DanglingReferenceError(identity=identity, endpoint=endpoint)


__all__ = [
    "DanglingReferenceError",
    "EdgeEndpoint",
    "EdgeMetadata",
    "IdentityEdge",
    "IdentityGraph",
    "IdentityNode",
    "NeighborView",
    "NodeMetadata",
    "UnknownIdentityError",
]
