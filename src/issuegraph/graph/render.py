"""Tree Renderer - Cycle-safe depth-first walk of an IssueGraph.

The walk flattens the relationship DAG into a tree: one visited set spans
the whole call, so a key reachable through several parents is rendered
once, under whichever parent reached it first.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Union

from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.IssueNode import IssueNode

DEFAULT_CHILD_LIMIT = 20


@dataclass
class RenderedNode:
    """One visited node in render order.

    Attributes:
        key: Issue key.
        depth: Distance from the root the walk started at.
        is_last_sibling: True for the last entry emitted under its parent.
        node: The registered node, or None if the key was never registered.
    """

    key: str
    depth: int
    is_last_sibling: bool = False
    node: IssueNode | None = None

    @property
    def unavailable(self) -> bool:
        """True when the node is a placeholder (or missing entirely)."""
        return self.node is None or self.node.unavailable


@dataclass(frozen=True)
class OmittedChildren:
    """Marker following the children shown for a node with too many.

    Attributes:
        parent_key: Node whose children were cut.
        depth: Depth the omitted children would have had.
        count: Number of children beyond the limit.
    """

    parent_key: str
    depth: int
    count: int


RenderEntry = Union[RenderedNode, OmittedChildren]


@dataclass
class RenderResult:
    """Output of one render walk."""

    entries: list[RenderEntry] = field(default_factory=list)
    depth_limit_reached: bool = False

    def nodes(self) -> list[RenderedNode]:
        """Rendered nodes only, without omission markers."""
        return [entry for entry in self.entries if isinstance(entry, RenderedNode)]

    def keys(self) -> list[str]:
        """Keys in render order."""
        return [entry.key for entry in self.nodes()]

    def omitted(self) -> list[OmittedChildren]:
        """Omission markers only."""
        return [entry for entry in self.entries if isinstance(entry, OmittedChildren)]


@dataclass
class _Frame:
    """A node whose children are still being walked."""

    entry: RenderedNode
    children: list[str]
    omitted: int
    index: int = 0
    last_child: RenderedNode | None = None


def render_tree(
    graph: IssueGraph,
    roots: Iterable[str],
    *,
    child_limit: int = DEFAULT_CHILD_LIMIT,
    max_depth: int | None = None,
    visited: set[str] | None = None,
) -> RenderResult:
    """Walk the graph depth-first from each root in turn.

    Args:
        graph: Assembled graph for this build pass.
        roots: Keys to start from, each emitted at depth 0. Roots already
            visited are skipped.
        child_limit: Maximum children walked per node; the remainder is
            reported with an OmittedChildren marker. 0 disables the limit.
        max_depth: Nodes at this depth are emitted but not expanded.
            None walks without a bound.
        visited: Visited set shared with other walks of the same call;
            updated in place. A fresh set is used when None.

    Returns:
        RenderResult with entries in render order.
    """
    if visited is None:
        visited = set()
    result = RenderResult()
    last_root: RenderedNode | None = None

    def visit(key: str, depth: int) -> RenderedNode:
        visited.add(key)
        entry = RenderedNode(key, depth, False, graph.find_by_key(key))
        result.entries.append(entry)
        return entry

    def open_frame(entry: RenderedNode) -> _Frame | None:
        children = graph.children(entry.key)
        if not children:
            return None
        if max_depth is not None and entry.depth >= max_depth:
            if any(child not in visited for child in children):
                result.depth_limit_reached = True
            return None
        omitted = 0
        if child_limit and len(children) > child_limit:
            omitted = len(children) - child_limit
            children = children[:child_limit]
        return _Frame(entry, children, omitted)

    for root_key in roots:
        if root_key in visited:
            continue
        last_root = visit(root_key, 0)
        stack: list[_Frame] = []
        frame = open_frame(last_root)
        if frame is not None:
            stack.append(frame)

        while stack:
            frame = stack[-1]
            if frame.index < len(frame.children):
                child_key = frame.children[frame.index]
                frame.index += 1
                if child_key in visited:
                    continue
                child = visit(child_key, frame.entry.depth + 1)
                frame.last_child = child
                child_frame = open_frame(child)
                if child_frame is not None:
                    stack.append(child_frame)
                continue

            stack.pop()
            if frame.last_child is not None:
                frame.last_child.is_last_sibling = True
            if frame.omitted:
                result.entries.append(
                    OmittedChildren(frame.entry.key, frame.entry.depth + 1, frame.omitted)
                )

    if last_root is not None:
        last_root.is_last_sibling = True
    return result
