"""Graph Builder - Assembles edges from all relationship kinds.

This module provides IssueGraph, the per-call container that merges edges
of every kind into one adjacency view with a stable child ordering, and
holds the node registry for the build pass.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Iterator

from issuegraph.graph.extractor import Extraction
from issuegraph.graph.IssueNode import IssueNode
from issuegraph.graph.relations import Edge, EdgeKind


@dataclass
class IssueGraph:
    """Container for one hierarchy build pass.

    Holds one adjacency map per edge kind (parent -> ordered,
    duplicate-free children, in discovery order) and an append-only node
    registry. Nothing is ever removed; a fresh IssueGraph is created for
    every build call.
    """

    # Internal storage (prefixed) - excluded from constructor
    _adjacency: dict[EdgeKind, dict[str, list[str]]] = field(
        default_factory=lambda: {kind: {} for kind in EdgeKind.ordered()},
        init=False,
        repr=False,
    )
    _child_keys: set[str] = field(default_factory=set, init=False, repr=False)
    _referenced: dict[str, None] = field(default_factory=dict, init=False, repr=False)
    _nodes: dict[str, IssueNode] = field(default_factory=dict, init=False)

    # ─────────────────────────────────────────────────────────────────────────
    # Node registry
    # ─────────────────────────────────────────────────────────────────────────

    def register(self, node: IssueNode) -> bool:
        """Register a node unless its key is already known.

        Returns:
            True if the node was added, False if the key was taken.
        """
        if node.key in self._nodes:
            return False
        self._nodes[node.key] = node
        return True

    def find_by_key(self, key: str) -> IssueNode | None:
        """Find a registered node by key."""
        return self._nodes.get(key)

    def has_node(self, key: str) -> bool:
        """Check if a key is registered."""
        return key in self._nodes

    def all_nodes(self) -> Iterator[IssueNode]:
        """Iterate registered nodes in registration order."""
        yield from self._nodes.values()

    def node_count(self) -> int:
        """Return number of registered nodes."""
        return len(self._nodes)

    def unavailable_keys(self) -> list[str]:
        """Keys registered as placeholders, in registration order."""
        return [node.key for node in self._nodes.values() if node.unavailable]

    # ─────────────────────────────────────────────────────────────────────────
    # Edges
    # ─────────────────────────────────────────────────────────────────────────

    def add_edge(self, edge: Edge) -> bool:
        """Add an edge to the adjacency map of its kind.

        Self-loops are ignored; repeated edges keep their first position.

        Returns:
            True if the edge was new.
        """
        if edge.parent_key == edge.child_key:
            return False
        self._referenced.setdefault(edge.parent_key)
        self._referenced.setdefault(edge.child_key)
        children = self._adjacency[edge.kind].setdefault(edge.parent_key, [])
        if edge.child_key in children:
            return False
        children.append(edge.child_key)
        self._child_keys.add(edge.child_key)
        return True

    def add_edges(self, edges: Iterable[Edge]) -> int:
        """Add several edges; return how many were new."""
        return sum(1 for edge in edges if self.add_edge(edge))

    def add_extraction(self, extraction: Extraction) -> None:
        """Add the edges of an extraction and register its stub nodes.

        Stubs never replace an already registered node.
        """
        self.add_edges(extraction.edges)
        for stub in extraction.stubs.values():
            self.register(stub)

    def children(self, key: str) -> list[str]:
        """Return the unified, ordered children of ``key``.

        Children of each kind keep discovery order and the kinds are
        concatenated in the fixed order GROUP_LINK, CONTAINMENT, COVERAGE.
        A child reachable through several kinds is listed once, at its
        first position.
        """
        seen: dict[str, None] = {}
        for kind in EdgeKind.ordered():
            for child in self._adjacency[kind].get(key, ()):
                seen.setdefault(child)
        return list(seen)

    def children_of_kind(self, key: str, kind: EdgeKind) -> list[str]:
        """Return the children of ``key`` through one edge kind."""
        return list(self._adjacency[kind].get(key, ()))

    def parents_of_kind(self, key: str, kind: EdgeKind) -> list[str]:
        """Return the parents of ``key`` through one edge kind."""
        return [parent for parent, kids in self._adjacency[kind].items() if key in kids]

    def is_child_somewhere(self, key: str) -> bool:
        """True if ``key`` is the child end of any edge."""
        return key in self._child_keys

    def group_keys(self) -> list[str]:
        """Keys that group at least one issue, in discovery order."""
        return [key for key, kids in self._adjacency[EdgeKind.GROUP_LINK].items() if kids]

    def referenced_keys(self) -> list[str]:
        """Every key that appears as an edge endpoint, in discovery order."""
        return list(self._referenced)

    def edge_count(self, kind: EdgeKind) -> int:
        """Return the number of edges of one kind."""
        return sum(len(kids) for kids in self._adjacency[kind].values())

    def edge_counts(self) -> dict[EdgeKind, int]:
        """Return edge counts for every kind."""
        return {kind: self.edge_count(kind) for kind in EdgeKind.ordered()}

    def iter_edges(self, kind: EdgeKind | None = None) -> Iterator[Edge]:
        """Iterate edges, optionally of one kind only."""
        kinds = (kind,) if kind is not None else EdgeKind.ordered()
        for edge_kind in kinds:
            for parent, kids in self._adjacency[edge_kind].items():
                for child in kids:
                    yield Edge(parent, child, edge_kind)
