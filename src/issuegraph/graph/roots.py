"""Root Selector - Traversal entry points for forest and rooted builds.

Forest builds start from a query result: group (epic) nodes become
section headers and every query issue that nothing else contains becomes
a root of its own. Rooted builds start from one key and first gather a
bounded working set around it, one depth level at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from issuegraph.exceptions import IssueGraphError, IssueNotFoundError
from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.extractor import Extraction, extract_relationships
from issuegraph.graph.IssueNode import IssueNode
from issuegraph.graph.relations import EdgeKind

if TYPE_CHECKING:
    from issuegraph.graph.hierarchy import HierarchyOptions
    from issuegraph.tracker.repository import IssueRepository

logger = structlog.get_logger()

MIN_DEPTH = 1
MAX_DEPTH = 20
DEFAULT_MAX_DEPTH = 10


# ─────────────────────────────────────────────────────────────────────────────
# Forest mode
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ForestRoots:
    """Entry points of a forest build.

    Attributes:
        groups: Group node keys, rendered as section headers.
        roots: Ungrouped root keys, in query order.
    """

    groups: list[str] = field(default_factory=list)
    roots: list[str] = field(default_factory=list)


def select_forest_roots(
    graph: IssueGraph,
    query_keys: Sequence[str],
    group_types: Iterable[str] = (),
) -> ForestRoots:
    """Select section headers and roots for a forest build.

    Group nodes are the parents of GROUP_LINK edges, plus query issues
    whose type is a grouping type. They are ordered by first appearance
    while scanning the query result, where a record counts as an
    appearance of its own key and of the group it references.

    Args:
        graph: Assembled graph for the build pass.
        query_keys: Keys of the query result, in result order.
        group_types: Lowercased issue type names that mark group nodes.

    Returns:
        ForestRoots. When no group nodes exist, ``groups`` is empty and the
        ungrouped roots are the only entry points.
    """
    types = frozenset(group_types)
    groups_by_child: dict[str, list[str]] = {}
    for edge in graph.iter_edges(EdgeKind.GROUP_LINK):
        groups_by_child.setdefault(edge.child_key, []).append(edge.parent_key)

    group_set = set(graph.group_keys())
    for key in query_keys:
        node = graph.find_by_key(key)
        if node is not None and types and node.is_group_type(types):
            group_set.add(key)

    ordered: dict[str, None] = {}
    for key in query_keys:
        if key in group_set:
            ordered.setdefault(key)
        for group_key in groups_by_child.get(key, ()):
            ordered.setdefault(group_key)
    for group_key in graph.group_keys():
        ordered.setdefault(group_key)

    roots: dict[str, None] = {}
    for key in query_keys:
        if key in group_set or graph.is_child_somewhere(key):
            continue
        roots.setdefault(key)

    return ForestRoots(groups=list(ordered), roots=list(roots))


# ─────────────────────────────────────────────────────────────────────────────
# Rooted mode
# ─────────────────────────────────────────────────────────────────────────────


def clamp_depth(max_depth: int | None) -> int:
    """Clamp a requested depth into the supported range."""
    if max_depth is None:
        return DEFAULT_MAX_DEPTH
    return max(MIN_DEPTH, min(MAX_DEPTH, int(max_depth)))


@dataclass
class RootedWorkingSet:
    """Issues gathered around a root key.

    Attributes:
        root_key: Starting key.
        max_depth: Depth bound after clamping.
        records: Fetched records by key, in fetch order.
        extractions: Extracted relationships per fetched key.
        depths: BFS depth at which each key was first reached.
        failed: Keys within the bound whose lookup failed.
        truncated: True if child-side relations continued past the depth bound.
    """

    root_key: str
    max_depth: int
    records: dict[str, dict[str, Any]] = field(default_factory=dict)
    extractions: dict[str, Extraction] = field(default_factory=dict)
    depths: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    truncated: bool = False

    def stubs(self) -> dict[str, IssueNode]:
        """Stub nodes from every extraction, first one per key."""
        merged = Extraction()
        for extraction in self.extractions.values():
            merged.extend(extraction)
        return merged.stubs


def _neighbours(key: str, extraction: Extraction, include_epic: bool) -> list[str]:
    """Keys related to ``key`` through edges the rooted walk follows."""
    found: dict[str, None] = {}
    for edge in extraction.edges:
        if edge.kind is EdgeKind.GROUP_LINK and not include_epic:
            continue
        other = edge.child_key if edge.parent_key == key else edge.parent_key
        if other != key:
            found.setdefault(other)
    return list(found)


def _child_neighbours(key: str, extraction: Extraction, include_epic: bool) -> list[str]:
    """Neighbours on the child side of ``key``, the ones a deeper render would show."""
    return [
        edge.child_key
        for edge in extraction.edges
        if edge.parent_key == key
        and edge.child_key != key
        and (include_epic or edge.kind is not EdgeKind.GROUP_LINK)
    ]


async def fetch_rooted_working_set(
    repository: IssueRepository,
    root_key: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_epic: bool = False,
    *,
    options: HierarchyOptions,
) -> RootedWorkingSet:
    """Gather the issues within ``max_depth`` relations of ``root_key``.

    Works through an explicit frontier of keys, one level at a time: every
    key of a level is looked up concurrently, and the keys they relate to
    form the next level until the depth bound is hit. CONTAINMENT and
    COVERAGE links are followed in both directions. GROUP_LINK relations
    are followed only with ``include_epic``: the issue's own epic and, for
    a grouping-type issue, the members returned by the group member query.

    Raises:
        IssueNotFoundError: If the root key cannot be fetched.
    """
    depth_bound = clamp_depth(max_depth)
    working = RootedWorkingSet(root_key=root_key, max_depth=depth_bound)
    semaphore = asyncio.Semaphore(max(1, options.concurrency))
    prefetched: dict[str, dict[str, Any]] = {}

    async def lookup(key: str) -> dict[str, Any] | None:
        if key in prefetched:
            return prefetched.pop(key)
        async with semaphore:
            try:
                return await repository.get_issue(key, list(options.fields))
            except IssueGraphError as e:
                if key == root_key:
                    if isinstance(e, IssueNotFoundError):
                        raise
                    raise IssueNotFoundError(root_key, str(e)) from e
                logger.warning("rooted_lookup_failed", key=key, error=str(e))
                return None

    async def members(group_key: str) -> list[dict[str, Any]]:
        query = options.group_member_query.format(key=group_key)
        async with semaphore:
            try:
                result = await repository.search_issues(
                    query, list(options.fields), options.max_results
                )
            except IssueGraphError as e:
                logger.warning("group_member_query_failed", key=group_key, error=str(e))
                return []
        return result.records

    frontier = [root_key]
    working.depths[root_key] = 0
    depth = 0
    while frontier:
        records = await asyncio.gather(*(lookup(key) for key in frontier))
        next_frontier: list[str] = []
        member_groups: list[str] = []

        for key, record in zip(frontier, records):
            if record is None:
                working.failed.append(key)
                continue
            working.records[key] = record
            extraction = extract_relationships(record, options.link_types, options.group_field)
            working.extractions[key] = extraction
            if depth >= depth_bound:
                below = _child_neighbours(key, extraction, include_epic)
                if any(other not in working.depths for other in below):
                    working.truncated = True
                continue
            related = _neighbours(key, extraction, include_epic)
            for other in related:
                if other not in working.depths:
                    working.depths[other] = depth + 1
                    next_frontier.append(other)
            node = IssueNode.from_record(record)
            if include_epic and node.is_group_type(options.group_issue_types):
                member_groups.append(key)

        if member_groups:
            found = await asyncio.gather(*(members(key) for key in member_groups))
            for member_records in found:
                for member in member_records:
                    member_key = member.get("key")
                    if not member_key or member_key in working.depths:
                        continue
                    working.depths[member_key] = depth + 1
                    prefetched[member_key] = member
                    next_frontier.append(member_key)

        logger.debug("rooted_level_fetched", depth=depth, fetched=len(frontier))
        frontier = next_frontier
        depth += 1

    return working
