"""Read-only views - Structure trees, issue details and search results.

These operations sit beside the hierarchy builds and follow no issue
relations:

- build_structure_view: the whole folder topology as a tree
- build_folder_view: the subtree under one folder, optionally open issues only
- build_assignee_view: a user's unfinished issues placed in the topology
- get_issue_details: one issue with its people, dates and sub-items
- run_issue_search: a query result as table rows

Topology leaves only carry issue keys; their summaries and statuses come
from batched searches.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from issuegraph.exceptions import FolderNotFoundError, TopologyUnavailableError, TrackerError
from issuegraph.graph.folders import (
    DEFAULT_TOPOLOGY_MAX_RESULTS,
    FolderElement,
    FolderTopology,
    resolve_folder_overlay,
)
from issuegraph.graph.IssueNode import IssueNode, StatusCategory

if TYPE_CHECKING:
    from issuegraph.tracker.repository import FolderTopologyProvider, IssueRepository

logger = structlog.get_logger()

LEAF_FIELDS = ["summary", "status", "priority", "issuetype"]
SEARCH_FIELDS = ["summary", "status", "assignee", "priority", "issuetype", "updated"]
DETAIL_FIELDS = [
    "summary",
    "description",
    "status",
    "assignee",
    "reporter",
    "priority",
    "issuetype",
    "project",
    "created",
    "updated",
    "duedate",
    "labels",
    "components",
    "fixVersions",
    "parent",
    "subtasks",
    "timetracking",
    "resolution",
    "comment",
    "worklog",
]
KEY_BATCH_SIZE = 50
DEFAULT_SEARCH_RESULTS = 50
MAX_SEARCH_RESULTS = 100
RECENT_COMMENTS = 3
RECENT_WORKLOGS = 5
RICH_TEXT = "(rich text, open the issue in Jira to read it)"


# =============================================================================
# Topology Trees
# =============================================================================


@dataclass
class TopologyTreeNode:
    """An element of a topology view with its kept children.

    ``issue`` is the looked-up issue for leaf elements, None for folders
    and for leaves whose issue could not be read.
    """

    element: FolderElement
    issue: IssueNode | None = None
    children: list[TopologyTreeNode] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.element.is_folder

    @property
    def is_open(self) -> bool:
        """False only for issues known to be done."""
        return self.issue is None or self.issue.status.category is not StatusCategory.DONE

    def walk(self) -> Iterator[TopologyTreeNode]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class TreeCounts:
    """Folder and issue counts over the elements of a view."""

    folders: int = 0
    issues: int = 0
    open_issues: int = 0
    statuses: dict[str, int] = field(default_factory=dict)
    types: dict[str, int] = field(default_factory=dict)

    @property
    def closed_issues(self) -> int:
        return self.issues - self.open_issues

    @classmethod
    def of(cls, roots: Sequence[TopologyTreeNode]) -> TreeCounts:
        counts = cls()
        for root in roots:
            for node in root.walk():
                if node.is_folder:
                    counts.folders += 1
                    continue
                if node.element.issue_key is None:
                    continue
                counts.issues += 1
                if node.is_open:
                    counts.open_issues += 1
                status = node.issue.status.name if node.issue else "Unknown"
                issue_type = (node.issue.issue_type if node.issue else "") or "Unknown"
                counts.statuses[status] = counts.statuses.get(status, 0) + 1
                counts.types[issue_type] = counts.types.get(issue_type, 0) + 1
        return counts


@dataclass
class StructureView:
    """A whole topology, or the subtrees under one issue's leaves.

    Attributes:
        topology_id: Topology the view was read from.
        roots: Top-level elements shown.
        element_count: Elements in the topology, shown or not.
        issue_key: Issue the view was narrowed to, None for the whole tree.
    """

    topology_id: str
    roots: list[TopologyTreeNode] = field(default_factory=list)
    element_count: int = 0
    issue_key: str | None = None

    @property
    def counts(self) -> TreeCounts:
        return TreeCounts.of(self.roots)


@dataclass
class FolderView:
    """One folder and everything below it."""

    topology_id: str
    folder: TopologyTreeNode
    only_open: bool = False

    @property
    def counts(self) -> TreeCounts:
        return TreeCounts.of([self.folder])


@dataclass
class AssigneeView:
    """A user's unfinished issues arranged by the folder topology.

    Attributes:
        assignee: User the query selected.
        query: Query that was run.
        issues: Matched issues in query order.
        total: Server-side match count.
        topology_id: Topology consulted, None when none is configured.
        roots: Pruned topology: top-level folders holding a matched issue
            and the elements leading to each matched leaf.
        folders: Top-level folder name -> matched keys below it.
        unplaced: Matched keys found under no folder.
        error: Why the topology could not be read, None when it was.
    """

    assignee: str
    query: str
    issues: list[IssueNode] = field(default_factory=list)
    total: int = 0
    topology_id: str | None = None
    roots: list[TopologyTreeNode] = field(default_factory=list)
    folders: dict[str, list[str]] = field(default_factory=dict)
    unplaced: list[str] = field(default_factory=list)
    error: str | None = None


def _subtree(
    topology: FolderTopology,
    element: FolderElement,
    issues: dict[str, IssueNode],
    keep: Callable[[TopologyTreeNode], bool],
    seen: set[str],
) -> TopologyTreeNode | None:
    """Copy ``element`` and its descendants, dropping what ``keep`` rejects.

    A rejected element survives when a descendant was kept.
    """
    if element.id in seen:
        return None
    seen.add(element.id)
    node = TopologyTreeNode(element, issues.get(element.issue_key or ""))
    for child in topology.children(element.id):
        kept = _subtree(topology, child, issues, keep, seen)
        if kept is not None:
            node.children.append(kept)
    if node.children or keep(node):
        return node
    return None


def _keep_all(node: TopologyTreeNode) -> bool:
    return True


def _reachable(
    topology: FolderTopology, starts: Sequence[FolderElement]
) -> list[FolderElement]:
    """Elements at or below ``starts``, each once."""
    found: list[FolderElement] = []
    visited: set[str] = set()
    pending = list(reversed(starts))
    while pending:
        element = pending.pop()
        if element.id in visited:
            continue
        visited.add(element.id)
        found.append(element)
        pending.extend(reversed(topology.children(element.id)))
    return found


def _issue_keys(elements: Sequence[FolderElement]) -> list[str]:
    keys: dict[str, None] = {}
    for element in elements:
        if element.issue_key:
            keys.setdefault(element.issue_key)
    return list(keys)


async def fetch_leaf_issues(
    repository: IssueRepository | None,
    keys: Sequence[str],
) -> dict[str, IssueNode]:
    """Look up the issues topology leaves point at, in batches.

    A failed batch is logged and skipped; its leaves render without
    details.
    """
    found: dict[str, IssueNode] = {}
    if repository is None:
        return found
    for start in range(0, len(keys), KEY_BATCH_SIZE):
        batch = keys[start : start + KEY_BATCH_SIZE]
        query = f"key in ({', '.join(batch)})"
        try:
            result = await repository.search_issues(query, LEAF_FIELDS, len(batch))
        except TrackerError as e:
            logger.warning("leaf_lookup_failed", keys=len(batch), error=str(e))
            continue
        for record in result.records:
            if record.get("key"):
                node = IssueNode.from_record(record)
                found[node.key] = node
    return found


async def _load_topology(
    provider: FolderTopologyProvider | None,
    topology_id: str | None,
    max_results: int,
) -> FolderTopology:
    if provider is None or not topology_id:
        raise TopologyUnavailableError(
            "No structure id given and [structure] id is not set", not_found=True
        )
    elements = await provider.get_hierarchy(topology_id, max_results)
    logger.debug("structure_view_loaded", topology_id=topology_id, elements=len(elements))
    return FolderTopology(elements)


async def build_structure_view(
    provider: FolderTopologyProvider | None,
    topology_id: str | None,
    repository: IssueRepository | None = None,
    *,
    issue_key: str | None = None,
    max_results: int = DEFAULT_TOPOLOGY_MAX_RESULTS,
) -> StructureView:
    """Render a folder topology as a tree.

    Args:
        provider: Folder topology source.
        topology_id: Topology to read.
        repository: Source of leaf issue details; leaves show keys only
            when None.
        issue_key: Narrow the view to the subtrees under this issue's
            leaves.
        max_results: Maximum elements requested.

    Raises:
        TopologyUnavailableError: If no topology is configured or it
            cannot be read.
        TrackerError: If the tracker rejects the request.
    """
    topology = await _load_topology(provider, topology_id, max_results)
    if issue_key:
        starts = topology.leaves(issue_key)
    else:
        starts = topology.children(None)

    issues = await fetch_leaf_issues(repository, _issue_keys(_reachable(topology, starts)))
    seen: set[str] = set()
    roots = []
    for start in starts:
        node = _subtree(topology, start, issues, _keep_all, seen)
        if node is not None:
            roots.append(node)
    return StructureView(
        topology_id=str(topology_id),
        roots=roots,
        element_count=len(topology),
        issue_key=issue_key,
    )


async def build_folder_view(
    provider: FolderTopologyProvider | None,
    topology_id: str | None,
    folder_id: str,
    repository: IssueRepository | None = None,
    *,
    only_open: bool = False,
    max_results: int = DEFAULT_TOPOLOGY_MAX_RESULTS,
) -> FolderView:
    """Render one folder's subtree.

    With ``only_open`` issues known to be done are dropped unless
    something open sits below them. Folders are always kept.

    Raises:
        FolderNotFoundError: If ``folder_id`` is unknown or not a folder.
        TopologyUnavailableError: If the topology cannot be read.
    """
    topology = await _load_topology(provider, topology_id, max_results)
    folder = topology.get(str(folder_id))
    if folder is None:
        raise FolderNotFoundError(str(folder_id), str(topology_id))
    if not folder.is_folder:
        raise FolderNotFoundError(str(folder_id), str(topology_id), not_a_folder=True)

    issues = await fetch_leaf_issues(repository, _issue_keys(_reachable(topology, [folder])))

    def keep(node: TopologyTreeNode) -> bool:
        return not only_open or node.is_folder or node.is_open

    root = _subtree(topology, folder, issues, keep, set()) or TopologyTreeNode(folder)
    return FolderView(topology_id=str(topology_id), folder=root, only_open=only_open)


def assignee_query(assignee: str) -> str:
    """Query for a user's unfinished issues; the name is quoted."""
    escaped = assignee.replace("\\", "\\\\").replace('"', '\\"')
    return f'assignee = "{escaped}" AND statusCategory != Done'


async def build_assignee_view(
    repository: IssueRepository,
    assignee: str,
    provider: FolderTopologyProvider | None = None,
    topology_id: str | None = None,
    *,
    max_results: int = DEFAULT_TOPOLOGY_MAX_RESULTS,
    topology_max_results: int = DEFAULT_TOPOLOGY_MAX_RESULTS,
) -> AssigneeView:
    """Place a user's unfinished issues in the folder topology.

    The topology is only read when the query matched something. A missing
    or unreadable topology leaves every issue unplaced; the reason is kept
    in ``error``.

    Raises:
        TrackerError: If the query fails.
    """
    query = assignee_query(assignee)
    result = await repository.search_issues(query, LEAF_FIELDS, max_results)
    issues = [IssueNode.from_record(record) for record in result.records if record.get("key")]
    view = AssigneeView(
        assignee=assignee, query=query, issues=issues, total=result.total, topology_id=topology_id
    )
    if not issues:
        return view

    by_key = {node.key: node for node in issues}
    overlay = await resolve_folder_overlay(provider, topology_id, topology_max_results)
    view.error = overlay.error
    topology = overlay.topology
    if topology is None:
        view.unplaced = list(by_key)
        return view

    def keep(node: TopologyTreeNode) -> bool:
        return node.element.issue_key in by_key

    # Placement follows the pruned tree, so issues nested under other
    # leaves count for the folder above them
    seen: set[str] = set()
    for start in topology.children(None):
        node = _subtree(topology, start, by_key, keep, seen)
        if node is None or not node.is_folder:
            continue
        view.roots.append(node)
        keys = view.folders.setdefault(node.element.name, [])
        for below in node.walk():
            key = below.element.issue_key
            if key in by_key and key not in keys:
                keys.append(key)

    placed = {key for keys in view.folders.values() for key in keys}
    view.unplaced = [key for key in by_key if key not in placed]
    logger.debug(
        "assignee_view_built", assignee=assignee, issues=len(issues), unplaced=len(view.unplaced)
    )
    return view


# =============================================================================
# Issue Details and Search
# =============================================================================


def _display_name(raw: Any) -> str:
    if isinstance(raw, dict):
        return raw.get("displayName") or raw.get("name") or ""
    if isinstance(raw, str):
        return raw
    return ""


def _text(raw: Any) -> str:
    if raw is None or raw == "":
        return ""
    if isinstance(raw, str):
        return raw
    return RICH_TEXT


@dataclass(frozen=True)
class Comment:
    author: str
    created: str
    body: str


@dataclass(frozen=True)
class Worklog:
    author: str
    time_spent: str
    started: str
    comment: str = ""


@dataclass
class IssueDetails:
    """Everything get_issue_details shows about one issue.

    Dates are kept as the tracker sends them (ISO 8601). ``comments`` and
    ``worklogs`` hold the most recent entries only and are empty unless
    requested; the ``*_total`` counts cover all entries.
    """

    node: IssueNode
    description: str = ""
    status_category: str = ""
    assignee: str = "Unassigned"
    reporter: str = "Unknown"
    project: str = ""
    created: str = ""
    updated: str = ""
    due: str = ""
    labels: list[str] = field(default_factory=list)
    components: list[str] = field(default_factory=list)
    fix_versions: list[str] = field(default_factory=list)
    parent: IssueNode | None = None
    subtasks: list[IssueNode] = field(default_factory=list)
    resolution: str = ""
    time_tracking: dict[str, str] = field(default_factory=dict)
    comments: list[Comment] = field(default_factory=list)
    comment_total: int = 0
    worklogs: list[Worklog] = field(default_factory=list)
    worklog_total: int = 0

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        include_comments: bool = False,
        include_worklogs: bool = False,
    ) -> IssueDetails:
        fields = record.get("fields") or {}
        status = fields.get("status") if isinstance(fields.get("status"), dict) else {}
        project = fields.get("project") or {}
        parent = fields.get("parent")
        tracking = fields.get("timetracking") or {}
        comment_page = fields.get("comment") or {}
        worklog_page = fields.get("worklog") or {}
        comments = comment_page.get("comments") or []
        worklogs = worklog_page.get("worklogs") or []

        details = cls(
            node=IssueNode.from_record(record),
            description=_text(fields.get("description")),
            status_category=_display_name(status.get("statusCategory")),
            assignee=_display_name(fields.get("assignee")) or "Unassigned",
            reporter=_display_name(fields.get("reporter")) or "Unknown",
            project=(
                f"{project.get('name', '')} ({project.get('key', '')})" if project else ""
            ),
            created=fields.get("created") or "",
            updated=fields.get("updated") or "",
            due=fields.get("duedate") or "",
            labels=[str(label) for label in fields.get("labels") or []],
            components=[_display_name(c) for c in fields.get("components") or []],
            fix_versions=[_display_name(v) for v in fields.get("fixVersions") or []],
            parent=(
                IssueNode.from_record(parent)
                if isinstance(parent, dict) and parent.get("key")
                else None
            ),
            subtasks=[
                IssueNode.from_record(sub)
                for sub in fields.get("subtasks") or []
                if isinstance(sub, dict) and sub.get("key")
            ],
            resolution=_display_name(fields.get("resolution")),
            time_tracking={
                label: tracking[name]
                for name, label in (
                    ("originalEstimate", "original_estimate"),
                    ("remainingEstimate", "remaining_estimate"),
                    ("timeSpent", "time_spent"),
                )
                if tracking.get(name)
            },
            comment_total=int(comment_page.get("total", len(comments))),
            worklog_total=int(worklog_page.get("total", len(worklogs))),
        )
        if include_comments:
            details.comments = [
                Comment(
                    author=_display_name(c.get("author")) or "Unknown",
                    created=c.get("created") or "",
                    body=_text(c.get("body")),
                )
                for c in comments[-RECENT_COMMENTS:]
            ]
        if include_worklogs:
            details.worklogs = [
                Worklog(
                    author=_display_name(w.get("author")) or "Unknown",
                    time_spent=w.get("timeSpent") or "",
                    started=w.get("started") or "",
                    comment=_text(w.get("comment")),
                )
                for w in worklogs[-RECENT_WORKLOGS:]
            ]
        return details


async def get_issue_details(
    repository: IssueRepository,
    key: str,
    include_comments: bool = False,
    include_worklogs: bool = False,
) -> IssueDetails:
    """Fetch one issue with the detail fields.

    Raises:
        IssueNotFoundError: If the key does not resolve.
    """
    record = await repository.get_issue(key, DETAIL_FIELDS)
    return IssueDetails.from_record(record, include_comments, include_worklogs)


@dataclass(frozen=True)
class SearchRow:
    node: IssueNode
    assignee: str = "Unassigned"
    updated: str = ""


@dataclass
class SearchView:
    query: str
    rows: list[SearchRow] = field(default_factory=list)
    total: int = 0


def clamp_search_results(max_results: int | None) -> int:
    """Search page size within [1, MAX_SEARCH_RESULTS]."""
    if max_results is None:
        return DEFAULT_SEARCH_RESULTS
    return max(1, min(int(max_results), MAX_SEARCH_RESULTS))


async def run_issue_search(
    repository: IssueRepository,
    query: str,
    max_results: int | None = None,
) -> SearchView:
    """Run a query and return one table row per issue.

    Raises:
        TrackerError: If the query fails.
    """
    result = await repository.search_issues(
        query, SEARCH_FIELDS, clamp_search_results(max_results)
    )
    rows = []
    for record in result.records:
        if not record.get("key"):
            continue
        fields = record.get("fields") or {}
        rows.append(
            SearchRow(
                node=IssueNode.from_record(record),
                assignee=_display_name(fields.get("assignee")) or "Unassigned",
                updated=fields.get("updated") or "",
            )
        )
    return SearchView(query=query, rows=rows, total=result.total)
