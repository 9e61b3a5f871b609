"""issuegraph.mcp.server - MCP server implementation.

Creates and runs the MCP server exposing the hierarchy builds as tools.

The tools are thin wrappers: each delegates to a module-level helper that
takes a ServerState, so the helpers can be exercised without an MCP
runtime. Every helper returns a dict with a markdown ``content`` field
plus the structured result.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

try:
    from mcp.server.fastmcp import FastMCP
except ImportError:  # create_server() raises via require_mcp()
    FastMCP = None

from issuegraph.config import get_config, validate_config
from issuegraph.exceptions import FolderNotFoundError, IssueGraphError, IssueNotFoundError
from issuegraph.graph.hierarchy import (
    DEFAULT_QUERY,
    HierarchyOptions,
    build_forest_hierarchy,
    build_forest_queries,
    build_rooted_hierarchy,
)
from issuegraph.graph.navigation import describe_issue_links, navigate_hierarchy
from issuegraph.graph.roots import DEFAULT_MAX_DEPTH
from issuegraph.graph.views import (
    build_assignee_view,
    build_folder_view,
    build_structure_view,
    get_issue_details,
    run_issue_search,
)
from issuegraph.mcp import require_mcp, serializers
from issuegraph.tracker.client import JiraClient
from issuegraph.tracker.repository import (
    FolderTopologyProvider,
    IssueRepository,
    JiraIssueRepository,
    StructureTopologyProvider,
)
from issuegraph.tracker.state import (
    JsonFileLastIssueStore,
    LastIssueStore,
    MemoryLastIssueStore,
    resolve_issue_key,
)
from issuegraph.utilities.logging import configure_from_config

logger = structlog.get_logger()

MAX_STRUCTURE_RESULTS = 1000

MCP_SERVER_INSTRUCTIONS = """\
issuegraph MCP Server - Jira issue hierarchies

Tools return a markdown `content` field to show the user, plus the same
result as structured data.

## Tools

- `get_issue_hierarchy(jql=None, assignee=None, max_results=None)` - Issues
  matched by a JQL query (default: your unfinished issues), grouped by
  folder and epic, with parent-child and requirement (covers) links below.
- `get_issue_hierarchy_from_root(issue_key=None, max_depth=10,
  include_epic=False)` - Everything within max_depth relations (1-20) of
  one issue.
- `get_issue_links(issue_key=None)` - An issue's epic, requirement,
  parent-child and other links.
- `navigate_hierarchy(issue_key=None, direction="children")` - One step
  in a direction: parent, children, epic, covers, covered_by, siblings.
- `get_structure_hierarchy(structure_id=None, issue_key=None,
  max_results=None)` - A Jira Structure as a folder and issue tree.
- `get_folder_hierarchy(folder_id, structure_id=None, only_open=False)` -
  The issues inside one folder.
- `get_structure_hierarchy_by_assignee(assignee, max_results=None)` - A
  user's unfinished issues arranged by folder.
- `get_issue_details(issue_key=None, include_comments=False,
  include_worklogs=False)` - One issue in full.
- `search_issues(jql, max_results=None)` - Query results as a table.
- `get_last_viewed_issue()` - The issue most recently viewed.

Tools taking `issue_key` fall back to the last viewed issue when it is
omitted.
"""


@dataclass
class ServerState:
    """Collaborators shared by every tool call."""

    repository: IssueRepository
    topology: FolderTopologyProvider | None = None
    options: HierarchyOptions = field(default_factory=HierarchyOptions)
    store: LastIssueStore = field(default_factory=MemoryLastIssueStore)
    default_query: str = DEFAULT_QUERY
    structures: FolderTopologyProvider | None = None

    def structure_source(self) -> FolderTopologyProvider | None:
        """Topology source for the structure views, configured id or not."""
        return self.structures or self.topology


def _markdown(content: str, **data: Any) -> dict[str, Any]:
    return {"format": "markdown", "content": content, **data}


def _error(message: str, **data: Any) -> dict[str, Any]:
    return _markdown(f"# ❌ Error\n\n{message}", error=message, **data)


def _missing_key() -> dict[str, Any]:
    return _error(
        "No issue key given and no issue has been viewed yet. Pass issue_key explicitly."
    )


def _not_found(key: str, error: IssueNotFoundError) -> dict[str, Any]:
    return _markdown(serializers.not_found_markdown(key), error=str(error), issue_key=key)


# ─────────────────────────────────────────────────────────────────────────────
# Tool implementations
# ─────────────────────────────────────────────────────────────────────────────


async def _get_issue_hierarchy(
    state: ServerState,
    jql: str | None = None,
    assignee: str | None = None,
    max_results: int | None = None,
) -> dict[str, Any]:
    """Build the forest hierarchy for a query.

    Returns:
        Markdown plus ``hierarchy`` (see serializers.serialize_forest), or
        an ``error`` when the query itself fails.
    """
    query, epic_query = build_forest_queries(jql, assignee, state.default_query)
    try:
        hierarchy = await build_forest_hierarchy(
            state.repository,
            query,
            max_results or state.options.max_results,
            topology=state.topology,
            epic_query=epic_query,
            options=state.options,
        )
    except IssueGraphError as e:
        logger.error("forest_hierarchy_failed", query=query, error=str(e))
        return _error(f"Failed to get issue hierarchy: {e}", query=query)

    return _markdown(
        serializers.forest_to_markdown(hierarchy),
        hierarchy=serializers.serialize_forest(hierarchy),
    )


async def _get_issue_hierarchy_from_root(
    state: ServerState,
    issue_key: str | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    include_epic: bool = False,
) -> dict[str, Any]:
    """Build the rooted hierarchy below one issue and remember the issue."""
    key = resolve_issue_key(issue_key, state.store)
    if not key:
        return _missing_key()
    try:
        hierarchy = await build_rooted_hierarchy(
            state.repository, key, max_depth, include_epic, options=state.options
        )
    except IssueNotFoundError as e:
        return _not_found(key, e)
    except IssueGraphError as e:
        logger.error("rooted_hierarchy_failed", key=key, error=str(e))
        return _error(f"Failed to get hierarchy from {key}: {e}", issue_key=key)

    state.store.set(key)
    return _markdown(
        serializers.rooted_to_markdown(hierarchy),
        hierarchy=serializers.serialize_rooted(hierarchy),
    )


async def _get_issue_links(state: ServerState, issue_key: str | None = None) -> dict[str, Any]:
    """Describe an issue's links by category and remember the issue."""
    key = resolve_issue_key(issue_key, state.store)
    if not key:
        return _missing_key()
    try:
        links = await describe_issue_links(state.repository, key, state.options)
    except IssueNotFoundError as e:
        return _not_found(key, e)
    except IssueGraphError as e:
        return _error(f"Failed to get links for {key}: {e}", issue_key=key)

    state.store.set(key)
    return _markdown(serializers.links_to_markdown(links), links=serializers.serialize_links(links))


async def _navigate_hierarchy(
    state: ServerState,
    issue_key: str | None = None,
    direction: str = "children",
) -> dict[str, Any]:
    """Take one navigation step and remember the starting issue."""
    key = resolve_issue_key(issue_key, state.store)
    if not key:
        return _missing_key()
    try:
        navigation = await navigate_hierarchy(state.repository, key, direction, state.options)
    except IssueNotFoundError as e:
        return _not_found(key, e)
    except ValueError as e:
        return _error(str(e), issue_key=key)
    except IssueGraphError as e:
        return _error(f"Failed to navigate from {key}: {e}", issue_key=key)

    state.store.set(key)
    return _markdown(
        serializers.navigation_to_markdown(navigation),
        navigation=serializers.serialize_navigation(navigation),
    )


async def _get_structure_hierarchy(
    state: ServerState,
    structure_id: str | None = None,
    issue_key: str | None = None,
    max_results: int | None = None,
) -> dict[str, Any]:
    """Show a Structure as a folder and issue tree."""
    topology_id = structure_id or state.options.topology_id
    limit = max(1, min(max_results or state.options.topology_max_results, MAX_STRUCTURE_RESULTS))
    try:
        view = await build_structure_view(
            state.structure_source(),
            topology_id,
            state.repository,
            issue_key=issue_key,
            max_results=limit,
        )
    except IssueGraphError as e:
        logger.error("structure_view_failed", topology_id=topology_id, error=str(e))
        return _error(f"Failed to get structure hierarchy: {e}", structure_id=topology_id)
    return _markdown(
        serializers.structure_to_markdown(view),
        structure=serializers.serialize_structure_view(view),
    )


async def _get_folder_hierarchy(
    state: ServerState,
    folder_id: str,
    structure_id: str | None = None,
    only_open: bool = False,
) -> dict[str, Any]:
    """Show one Structure folder and everything below it."""
    topology_id = structure_id or state.options.topology_id
    try:
        view = await build_folder_view(
            state.structure_source(),
            topology_id,
            folder_id,
            state.repository,
            only_open=only_open,
            max_results=state.options.topology_max_results,
        )
    except FolderNotFoundError as e:
        return _error(str(e), structure_id=topology_id, folder_id=folder_id)
    except IssueGraphError as e:
        logger.error("folder_view_failed", topology_id=topology_id, error=str(e))
        return _error(f"Failed to get folder hierarchy: {e}", structure_id=topology_id)
    return _markdown(
        serializers.folder_to_markdown(view), folder=serializers.serialize_folder_view(view)
    )


async def _get_structure_hierarchy_by_assignee(
    state: ServerState,
    assignee: str,
    max_results: int | None = None,
) -> dict[str, Any]:
    """Place one user's unfinished issues in the configured Structure."""
    try:
        view = await build_assignee_view(
            state.repository,
            assignee,
            state.topology,
            state.options.topology_id,
            max_results=max_results or state.options.max_results,
            topology_max_results=state.options.topology_max_results,
        )
    except IssueGraphError as e:
        logger.error("assignee_view_failed", assignee=assignee, error=str(e))
        return _error(f"Failed to get issues of {assignee}: {e}", assignee=assignee)
    return _markdown(
        serializers.assignee_to_markdown(view),
        assignee_view=serializers.serialize_assignee_view(view),
    )


async def _get_issue_details(
    state: ServerState,
    issue_key: str | None = None,
    include_comments: bool = False,
    include_worklogs: bool = False,
) -> dict[str, Any]:
    """Describe one issue in full and remember it."""
    key = resolve_issue_key(issue_key, state.store)
    if not key:
        return _missing_key()
    try:
        details = await get_issue_details(
            state.repository, key, include_comments, include_worklogs
        )
    except IssueNotFoundError as e:
        return _not_found(key, e)
    except IssueGraphError as e:
        return _error(f"Failed to get details of {key}: {e}", issue_key=key)

    state.store.set(key)
    return _markdown(
        serializers.issue_details_to_markdown(details),
        details=serializers.serialize_issue_details(details),
    )


async def _search_issues(
    state: ServerState, jql: str, max_results: int | None = None
) -> dict[str, Any]:
    try:
        view = await run_issue_search(state.repository, jql, max_results)
    except IssueGraphError as e:
        logger.error("issue_search_failed", query=jql, error=str(e))
        return _error(f"Failed to search issues: {e}", query=jql)
    return _markdown(
        serializers.search_to_markdown(view), search=serializers.serialize_search(view)
    )


def _get_last_viewed_issue(state: ServerState) -> dict[str, Any]:
    key = state.store.get()
    if not key:
        return _markdown(
            "# 🕘 Last Viewed Issue\n\nNo issue has been viewed yet.", issue_key=None
        )
    return _markdown(f"# 🕘 Last Viewed Issue\n\n**{key}**", issue_key=key)


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


def create_state(
    config: dict[str, Any],
    client: JiraClient,
    state_store: LastIssueStore | None = None,
) -> ServerState:
    """Wire Jira-backed collaborators from a loaded configuration."""
    if state_store is None:
        state_file = config.get("state", {}).get("last_issue_file")
        if state_file:
            state_store = JsonFileLastIssueStore(Path(state_file).expanduser())
        else:
            state_store = MemoryLastIssueStore()
    options = HierarchyOptions.from_config(config)
    return ServerState(
        repository=JiraIssueRepository(client),
        topology=StructureTopologyProvider(client) if options.topology_id else None,
        structures=StructureTopologyProvider(client),
        options=options,
        store=state_store,
        default_query=config.get("hierarchy", {}).get("default_query", DEFAULT_QUERY),
    )


def create_server(
    config: dict[str, Any] | None = None,
    client: JiraClient | None = None,
    state_store: LastIssueStore | None = None,
) -> FastMCP:
    """Create the MCP server with all tools registered.

    Args:
        config: Loaded configuration (defaults to get_config()).
        client: Jira client (defaults to one built from ``config``); it is
            closed when the server shuts down.
        state_store: Last viewed issue store (defaults to the JSON file
            named by ``[state] last_issue_file``).

    Returns:
        FastMCP server instance.
    """
    require_mcp()

    if config is None:
        config = get_config()
    if client is None:
        client = JiraClient.from_config(config)
    state = create_state(config, client, state_store)

    @asynccontextmanager
    async def lifespan(server: FastMCP):
        try:
            yield {}
        finally:
            await client.aclose()

    mcp = FastMCP("issuegraph", instructions=MCP_SERVER_INSTRUCTIONS, lifespan=lifespan)

    # ─────────────────────────────────────────────────────────────────────
    # Register Tools
    # ─────────────────────────────────────────────────────────────────────

    @mcp.tool()
    async def get_issue_hierarchy(
        jql: str | None = None,
        assignee: str | None = None,
        max_results: int | None = None,
    ) -> dict[str, Any]:
        """Get issues matched by a JQL query as a hierarchy.

        Issues are grouped by Structure folder and epic, with parent-child
        and requirement (covers) relations nested below.

        Args:
            jql: JQL query (default: current user's unfinished issues).
            assignee: Username; shortcut for that user's unfinished issues.
            max_results: Maximum issues the query returns.
        """
        return await _get_issue_hierarchy(state, jql, assignee, max_results)

    @mcp.tool()
    async def get_issue_hierarchy_from_root(
        issue_key: str | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        include_epic: bool = False,
    ) -> dict[str, Any]:
        """Get everything within max_depth relations of one issue.

        Args:
            issue_key: Starting issue (default: last viewed issue).
            max_depth: Relation depth, 1-20.
            include_epic: Also follow Epic Link relations.
        """
        return await _get_issue_hierarchy_from_root(state, issue_key, max_depth, include_epic)

    @mcp.tool()
    async def get_issue_links(issue_key: str | None = None) -> dict[str, Any]:
        """Get an issue's epic, requirement, parent-child and other links.

        Args:
            issue_key: Issue key (default: last viewed issue).
        """
        return await _get_issue_links(state, issue_key)

    @mcp.tool()
    async def navigate_hierarchy(
        issue_key: str | None = None,
        direction: str = "children",
    ) -> dict[str, Any]:
        """Get the issues one step away in a direction.

        Args:
            issue_key: Starting issue (default: last viewed issue).
            direction: parent, children, epic, covers, covered_by or siblings.
        """
        return await _navigate_hierarchy(state, issue_key, direction)

    @mcp.tool()
    async def get_structure_hierarchy(
        structure_id: str | None = None,
        issue_key: str | None = None,
        max_results: int | None = None,
    ) -> dict[str, Any]:
        """Get a Jira Structure as a tree of folders and issues.

        Args:
            structure_id: Structure id (default: the configured one).
            issue_key: Only show the subtrees under this issue.
            max_results: Maximum elements read, 1-1000.
        """
        return await _get_structure_hierarchy(state, structure_id, issue_key, max_results)

    @mcp.tool()
    async def get_folder_hierarchy(
        folder_id: str,
        structure_id: str | None = None,
        only_open: bool = False,
    ) -> dict[str, Any]:
        """Get the issues inside one Structure folder, as a tree.

        Args:
            folder_id: Id of the folder element.
            structure_id: Structure id (default: the configured one).
            only_open: Leave out issues that are done.
        """
        return await _get_folder_hierarchy(state, folder_id, structure_id, only_open)

    @mcp.tool()
    async def get_structure_hierarchy_by_assignee(
        assignee: str,
        max_results: int | None = None,
    ) -> dict[str, Any]:
        """Get a user's unfinished issues arranged by Structure folder.

        Args:
            assignee: Jira user name or display name.
            max_results: Maximum issues the query returns.
        """
        return await _get_structure_hierarchy_by_assignee(state, assignee, max_results)

    @mcp.tool()
    async def get_issue_details(
        issue_key: str | None = None,
        include_comments: bool = False,
        include_worklogs: bool = False,
    ) -> dict[str, Any]:
        """Get everything about one issue: people, dates, versions, subtasks.

        Args:
            issue_key: Issue key (default: last viewed issue).
            include_comments: Add the three most recent comments.
            include_worklogs: Add the five most recent work logs.
        """
        return await _get_issue_details(state, issue_key, include_comments, include_worklogs)

    @mcp.tool()
    async def search_issues(jql: str, max_results: int | None = None) -> dict[str, Any]:
        """Search issues with JQL and list them as a table.

        Args:
            jql: JQL query.
            max_results: Rows shown, 1-100 (default 50).
        """
        return await _search_issues(state, jql, max_results)

    @mcp.tool()
    def get_last_viewed_issue() -> dict[str, Any]:
        """Get the key of the issue viewed most recently."""
        return _get_last_viewed_issue(state)

    return mcp


def run_server(
    transport: str = "stdio",
    config_path: Path | None = None,
) -> None:
    """Run the MCP server.

    Args:
        transport: Transport type ('stdio', 'sse' or 'streamable-http').
        config_path: Explicit config file (default: search from cwd).
    """
    config = get_config(config_path)
    configure_from_config(config)
    for problem in validate_config(config):
        logger.warning("config_problem", problem=problem)
    mcp = create_server(config)
    mcp.run(transport=transport)
