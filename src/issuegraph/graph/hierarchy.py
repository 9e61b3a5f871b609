"""Hierarchy builds - Forest and rooted issue hierarchies.

The two public operations tie the graph components together:

- build_forest_hierarchy: a query result grouped into epic sections and
  ungrouped roots, optionally bucketed by folder
- build_rooted_hierarchy: everything within a bounded number of
  relations of one starting issue

Each call creates its own IssueGraph and visited set and discards them
afterwards.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from issuegraph.exceptions import IssueNotFoundError, TrackerError
from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.extractor import (
    DEFAULT_GROUP_FIELD,
    Extraction,
    LinkTypes,
    extract_relationships,
)
from issuegraph.graph.folders import (
    DEFAULT_TOPOLOGY_MAX_RESULTS,
    FolderOverlay,
    group_by_folder,
    resolve_folder_overlay,
)
from issuegraph.graph.IssueNode import IssueNode
from issuegraph.graph.relations import EdgeKind
from issuegraph.graph.render import DEFAULT_CHILD_LIMIT, RenderedNode, RenderResult, render_tree
from issuegraph.graph.resolver import DEFAULT_CONCURRENCY, resolve_missing_nodes
from issuegraph.graph.roots import (
    DEFAULT_MAX_DEPTH,
    clamp_depth,
    fetch_rooted_working_set,
    select_forest_roots,
)

if TYPE_CHECKING:
    from issuegraph.tracker.repository import FolderTopologyProvider, IssueRepository

logger = structlog.get_logger()

DEFAULT_QUERY = "assignee = currentUser() AND statusCategory != Done"
DEFAULT_MAX_RESULTS = 200
EPIC_QUERY_MAX_RESULTS = 100
DEFAULT_GROUP_TYPES = ("Epic", "Эпик")
DEFAULT_GROUP_MEMBER_QUERY = '"Epic Link" = {key}'
BASE_FIELDS = ("summary", "status", "priority", "issuetype", "issuelinks")


@dataclass(frozen=True)
class HierarchyOptions:
    """Settings shared by both hierarchy builds.

    Attributes:
        link_types: Which link types mean containment and coverage.
        group_field: Name of the grouping (Epic Link) field.
        group_issue_types: Lowercased issue type names of group nodes.
        group_member_query: Query template listing a group's members;
            ``{key}`` is replaced with the group key.
        child_limit: Children shown per node before the rest is counted.
        concurrency: Maximum tracker lookups in flight.
        max_results: Result cap for group member queries.
        topology_id: Folder topology (Structure) id, None to skip folders.
        topology_max_results: Element cap for the folder topology.
    """

    link_types: LinkTypes = field(default_factory=LinkTypes)
    group_field: str = DEFAULT_GROUP_FIELD
    group_issue_types: frozenset[str] = frozenset(t.lower() for t in DEFAULT_GROUP_TYPES)
    group_member_query: str = DEFAULT_GROUP_MEMBER_QUERY
    child_limit: int = DEFAULT_CHILD_LIMIT
    concurrency: int = DEFAULT_CONCURRENCY
    max_results: int = DEFAULT_MAX_RESULTS
    topology_id: str | None = None
    topology_max_results: int = DEFAULT_TOPOLOGY_MAX_RESULTS

    @property
    def fields(self) -> tuple[str, ...]:
        """Field selector for every issue lookup."""
        return (*BASE_FIELDS, self.group_field)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> HierarchyOptions:
        """Build options from a loaded configuration dict."""
        hierarchy = config.get("hierarchy", {})
        structure = config.get("structure", {})
        tracker = config.get("tracker", {})
        group_types = hierarchy.get("group_issue_types", DEFAULT_GROUP_TYPES)
        topology_id = structure.get("id")
        return cls(
            link_types=LinkTypes.from_config(config),
            group_field=config.get("fields", {}).get("group_link", DEFAULT_GROUP_FIELD),
            group_issue_types=frozenset(str(t).lower() for t in group_types),
            group_member_query=hierarchy.get("group_member_query", DEFAULT_GROUP_MEMBER_QUERY),
            child_limit=int(hierarchy.get("child_limit", DEFAULT_CHILD_LIMIT)),
            concurrency=int(tracker.get("max_concurrency", DEFAULT_CONCURRENCY)),
            max_results=int(hierarchy.get("max_results", DEFAULT_MAX_RESULTS)),
            topology_id=str(topology_id) if topology_id not in (None, "") else None,
            topology_max_results=int(
                structure.get("max_results", DEFAULT_TOPOLOGY_MAX_RESULTS)
            ),
        )


@dataclass
class HierarchySection:
    """One entry point of a forest and everything rendered under it.

    Attributes:
        root_key: Group key (header) or ungrouped root key.
        is_group: True when the root is a group node shown as a header.
        render: Render walk starting at the root (root entry at depth 0).
    """

    root_key: str
    is_group: bool
    render: RenderResult

    @property
    def nodes(self) -> list[RenderedNode]:
        return self.render.nodes()

    @property
    def root(self) -> RenderedNode:
        return self.render.nodes()[0]

    def member_count(self) -> int:
        """Issues rendered under the root."""
        return max(0, len(self.render.nodes()) - 1)


@dataclass
class ForestHierarchy:
    """Result of a forest (query-driven) build.

    Attributes:
        query: The query that was run.
        sections: Group sections in section order, then ungrouped roots.
        overlay: Folder overlay; ``folder_count`` is 0 when it was skipped.
        unavailable_keys: Keys rendered as placeholders.
        total: Total matches reported by the tracker for the query.
        edge_counts: Edges per relationship kind.
        node_count: Nodes in the registry.
    """

    query: str
    sections: list[HierarchySection] = field(default_factory=list)
    overlay: FolderOverlay = field(default_factory=FolderOverlay)
    unavailable_keys: list[str] = field(default_factory=list)
    total: int = 0
    edge_counts: dict[EdgeKind, int] = field(default_factory=dict)
    node_count: int = 0

    def group_sections(self) -> list[HierarchySection]:
        return [section for section in self.sections if section.is_group]

    def root_sections(self) -> list[HierarchySection]:
        return [section for section in self.sections if not section.is_group]

    def section(self, root_key: str) -> HierarchySection | None:
        """Find the section rooted at ``root_key``."""
        for section in self.sections:
            if section.root_key == root_key:
                return section
        return None

    def rendered_keys(self) -> list[str]:
        """All rendered keys across sections, in output order."""
        return [key for section in self.sections for key in section.render.keys()]


@dataclass
class RootedHierarchy:
    """Result of a rooted build.

    Attributes:
        root_key: Starting key.
        root: Node of the starting issue.
        max_depth: Depth bound after clamping.
        render: Render walk from the root.
        depth_limit_reached: True when relations continued past the bound.
        unavailable_keys: Keys within the bound that could not be fetched.
        edge_counts: Edges per relationship kind.
        node_count: Nodes in the registry.
    """

    root_key: str
    root: IssueNode
    max_depth: int
    render: RenderResult
    depth_limit_reached: bool = False
    unavailable_keys: list[str] = field(default_factory=list)
    edge_counts: dict[EdgeKind, int] = field(default_factory=dict)
    node_count: int = 0

    @property
    def nodes(self) -> list[RenderedNode]:
        return self.render.nodes()


def build_forest_queries(
    jql: str | None = None,
    assignee: str | None = None,
    default_query: str = DEFAULT_QUERY,
) -> tuple[str, str]:
    """Derive the issue query and its companion epic query.

    An explicit ``jql`` wins; otherwise ``assignee`` selects that user's
    unfinished issues; otherwise ``default_query`` applies.

    Returns:
        (query, epic_query)
    """
    if jql:
        query = jql
    elif assignee:
        query = f"assignee = {assignee} AND statusCategory != Done"
    else:
        query = default_query

    epic_query = "issuetype = Epic"
    if "assignee = currentUser()" in query:
        epic_query += " AND (assignee = currentUser() OR reporter = currentUser())"
    elif assignee:
        epic_query += f" AND (assignee = {assignee} OR reporter = {assignee})"
    elif jql:
        epic_query += f" AND ({jql})"
    return query, epic_query


async def build_forest_hierarchy(
    repository: IssueRepository,
    query: str,
    max_results: int = DEFAULT_MAX_RESULTS,
    *,
    topology: FolderTopologyProvider | None = None,
    epic_query: str | None = None,
    options: HierarchyOptions | None = None,
) -> ForestHierarchy:
    """Build the hierarchy of every issue matched by ``query``.

    Args:
        repository: Issue lookups and searches.
        query: Tracker query (JQL).
        max_results: Cap on the query result.
        topology: Folder topology source; folders are skipped when None or
            when no topology id is configured.
        epic_query: Optional companion query whose results pre-register
            group nodes with full data.
        options: Build settings.

    Returns:
        ForestHierarchy. Tracker failures other than the main search are
        absorbed and reported in the result.

    Raises:
        TrackerError: If the main search fails.
    """
    if options is None:
        options = HierarchyOptions()
    fields = list(options.fields)

    search = await repository.search_issues(query, fields, max_results)
    logger.info(
        "forest_query_fetched", query=query, records=len(search.records), total=search.total
    )

    graph = IssueGraph()
    query_keys: list[str] = []
    for record in search.records:
        try:
            node = IssueNode.from_record(record)
        except ValueError:
            logger.warning("record_without_key_skipped")
            continue
        graph.register(node)
        query_keys.append(node.key)

    if epic_query:
        try:
            epics = await repository.search_issues(epic_query, fields, EPIC_QUERY_MAX_RESULTS)
        except TrackerError as e:
            logger.warning("epic_query_failed", query=epic_query, error=str(e))
        else:
            for record in epics.records:
                if record.get("key"):
                    graph.register(IssueNode.from_record(record))

    stubs = Extraction()
    for record in search.records:
        extraction = extract_relationships(record, options.link_types, options.group_field)
        graph.add_edges(extraction.edges)
        stubs.extend(extraction)
    for stub in stubs.stubs.values():
        graph.register(stub)

    unavailable, overlay = await asyncio.gather(
        resolve_missing_nodes(graph, repository, fields, stubs.stubs, options.concurrency),
        resolve_folder_overlay(topology, options.topology_id, options.topology_max_results),
    )

    entry_points = select_forest_roots(graph, query_keys, options.group_issue_types)
    visited: set[str] = set()
    sections: list[HierarchySection] = []
    for group_key in entry_points.groups:
        rendered = render_tree(graph, [group_key], child_limit=options.child_limit, visited=visited)
        if rendered.entries:
            sections.append(HierarchySection(group_key, True, rendered))
    for root_key in entry_points.roots:
        rendered = render_tree(graph, [root_key], child_limit=options.child_limit, visited=visited)
        if rendered.entries:
            sections.append(HierarchySection(root_key, False, rendered))

    group_by_folder(overlay, graph, [s.root_key for s in sections if s.is_group])

    logger.debug(
        "forest_hierarchy_built",
        sections=len(sections),
        nodes=graph.node_count(),
        unavailable=len(unavailable),
        folders=overlay.folder_count,
    )
    return ForestHierarchy(
        query=query,
        sections=sections,
        overlay=overlay,
        unavailable_keys=graph.unavailable_keys(),
        total=search.total,
        edge_counts=graph.edge_counts(),
        node_count=graph.node_count(),
    )


async def build_rooted_hierarchy(
    repository: IssueRepository,
    root_key: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_epic: bool = False,
    *,
    options: HierarchyOptions | None = None,
) -> RootedHierarchy:
    """Build the hierarchy below one starting issue.

    Args:
        repository: Issue lookups and searches.
        root_key: Starting issue key.
        max_depth: Relation depth bound, clamped to 1-20.
        include_epic: Also follow Epic Link relations.
        options: Build settings.

    Returns:
        RootedHierarchy; ``depth_limit_reached`` marks a truncated walk.

    Raises:
        IssueNotFoundError: If the starting issue cannot be fetched.
    """
    if options is None:
        options = HierarchyOptions()
    depth_bound = clamp_depth(max_depth)

    working = await fetch_rooted_working_set(
        repository, root_key, depth_bound, include_epic, options=options
    )
    if root_key not in working.records:
        raise IssueNotFoundError(root_key)

    graph = IssueGraph()
    for record in working.records.values():
        graph.register(IssueNode.from_record(record))
    stubs = working.stubs()
    for key in working.failed:
        graph.register(IssueNode.placeholder(key, stubs.get(key)))

    for extraction in working.extractions.values():
        for edge in extraction.edges:
            if edge.kind is EdgeKind.GROUP_LINK and not include_epic:
                continue
            # Endpoints past the depth bound were never fetched
            if graph.has_node(edge.parent_key) and graph.has_node(edge.child_key):
                graph.add_edge(edge)

    rendered = render_tree(
        graph, [root_key], child_limit=options.child_limit, max_depth=depth_bound
    )
    root = IssueNode.from_record(working.records[root_key])

    logger.debug(
        "rooted_hierarchy_built",
        root=root_key,
        nodes=graph.node_count(),
        truncated=working.truncated or rendered.depth_limit_reached,
    )
    return RootedHierarchy(
        root_key=root_key,
        root=root,
        max_depth=depth_bound,
        render=rendered,
        depth_limit_reached=working.truncated or rendered.depth_limit_reached,
        unavailable_keys=graph.unavailable_keys(),
        edge_counts=graph.edge_counts(),
        node_count=graph.node_count(),
    )
