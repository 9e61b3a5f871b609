"""Tests for the MCP tool implementations.

The tool helpers take a ServerState, so they are exercised directly with
an in-memory repository; only the registration test needs the MCP SDK.
"""

from __future__ import annotations

import pytest

from issuegraph.config import DEFAULT_CONFIG, merge_configs
from issuegraph.exceptions import TrackerError
from issuegraph.graph.hierarchy import HierarchyOptions
from issuegraph.mcp.server import (
    ServerState,
    _get_folder_hierarchy,
    _get_issue_details,
    _get_issue_hierarchy,
    _get_issue_hierarchy_from_root,
    _get_issue_links,
    _get_last_viewed_issue,
    _get_structure_hierarchy,
    _get_structure_hierarchy_by_assignee,
    _navigate_hierarchy,
    _search_issues,
    create_state,
)
from issuegraph.tracker.client import JiraClient
from issuegraph.tracker.repository import StructureTopologyProvider
from issuegraph.tracker.state import JsonFileLastIssueStore, MemoryLastIssueStore
from tests.graph.graph_test_helpers import (
    FakeRepository,
    FakeTopology,
    child_link,
    folder,
    leaf,
    make_epic,
    make_issue,
    parent_link,
)

QUERY = "project = PROJ"


@pytest.fixture
def state():
    repository = FakeRepository(
        make_epic("E1", "Checkout"),
        make_issue("T1", "Cart", epic="E1", links=[child_link("T2")]),
        make_issue("T2", "Cart badge", epic="E1", links=[parent_link("T1")]),
        searches={QUERY: ["T1", "T2"]},
    )
    return ServerState(repository=repository, store=MemoryLastIssueStore())


class TestGetIssueHierarchy:
    """Tests for the get_issue_hierarchy tool."""

    @pytest.mark.asyncio
    async def test_markdown_and_structure(self, state):
        result = await _get_issue_hierarchy(state, jql=QUERY)
        assert result["format"] == "markdown"
        assert "### 📦 E1: Checkout" in result["content"]
        assert result["hierarchy"]["sections"][0]["root_key"] == "E1"

    @pytest.mark.asyncio
    async def test_default_query_used(self, state):
        state.repository.searches[state.default_query] = ["T1"]
        result = await _get_issue_hierarchy(state)
        assert result["hierarchy"]["query"] == state.default_query

    @pytest.mark.asyncio
    async def test_query_failure_reported(self, state):
        state.repository.search_errors[QUERY] = TrackerError("Jira API error: 400", 400, "Bad JQL")
        result = await _get_issue_hierarchy(state, jql=QUERY)
        assert result["content"].startswith("# ❌ Error")
        assert "Bad JQL" in result["error"]
        assert result["query"] == QUERY


class TestRootedTool:
    """Tests for get_issue_hierarchy_from_root and the last viewed issue."""

    @pytest.mark.asyncio
    async def test_remembers_viewed_issue(self, state):
        result = await _get_issue_hierarchy_from_root(state, "t1", max_depth=2)
        assert result["content"].startswith("# 🌳 Hierarchy from T1")
        assert result["hierarchy"]["root"]["key"] == "T1"
        assert state.store.get() == "T1"

    @pytest.mark.asyncio
    async def test_falls_back_to_last_viewed(self, state):
        state.store.set("T2")
        result = await _get_issue_hierarchy_from_root(state)
        assert result["hierarchy"]["root"]["key"] == "T2"

    @pytest.mark.asyncio
    async def test_no_key_and_nothing_viewed(self, state):
        result = await _get_issue_hierarchy_from_root(state)
        assert "No issue key given" in result["error"]

    @pytest.mark.asyncio
    async def test_not_found(self, state):
        result = await _get_issue_hierarchy_from_root(state, "NOPE-1")
        assert result["content"].startswith("# ❌ Issue Not Found")
        assert result["issue_key"] == "NOPE-1"
        assert state.store.get() is None


class TestLinkTools:
    """Tests for get_issue_links and navigate_hierarchy."""

    @pytest.mark.asyncio
    async def test_links(self, state):
        result = await _get_issue_links(state, "T1")
        assert result["links"]["epic"]["key"] == "E1"
        assert [item["key"] for item in result["links"]["parent_child"]] == ["T2"]
        assert state.store.get() == "T1"

    @pytest.mark.asyncio
    async def test_links_not_found(self, state):
        result = await _get_issue_links(state, "NOPE-1")
        assert "Issue **NOPE-1** not found" in result["content"]

    @pytest.mark.asyncio
    async def test_navigate(self, state):
        result = await _navigate_hierarchy(state, "T2", "parent")
        assert [node["key"] for node in result["navigation"]["related"]] == ["T1"]
        assert state.store.get() == "T2"

    @pytest.mark.asyncio
    async def test_navigate_bad_direction(self, state):
        result = await _navigate_hierarchy(state, "T2", "sideways")
        assert "Unknown direction" in result["error"]
        assert state.store.get() is None


@pytest.fixture
def structure_state(state):
    state.repository.searches["key in (E1, T1, T2)"] = ["E1", "T1", "T2"]
    state.structures = FakeTopology(
        [
            folder("1", "Web"),
            leaf("2", "E1", "1"),
            leaf("3", "T1", "2"),
            leaf("4", "T2", "3"),
            leaf("5", "T9", None),
        ]
    )
    state.topology = state.structures
    state.options = HierarchyOptions(topology_id="42")
    return state


class TestStructureTools:
    """Tests for the structure, folder and by-assignee views."""

    @pytest.mark.asyncio
    async def test_structure_hierarchy(self, structure_state):
        structure_state.repository.searches["key in (E1, T1, T2, T9)"] = ["E1", "T1", "T2"]
        result = await _get_structure_hierarchy(structure_state)
        assert result["content"].startswith("# 🌳 Structure Hierarchy")
        assert "📁 **Web** (Folder)" in result["content"]
        assert "└── 📦 **E1** - Checkout" in result["content"]
        assert "📄 **T9**" in result["content"]
        assert result["structure"]["topology_id"] == "42"
        assert result["structure"]["counts"]["issues"] == 4
        assert structure_state.structures.calls == ["42"]

    @pytest.mark.asyncio
    async def test_explicit_structure_id(self, structure_state):
        await _get_structure_hierarchy(structure_state, structure_id="7", issue_key="T1")
        assert structure_state.structures.calls == ["7"]

    @pytest.mark.asyncio
    async def test_structure_without_id(self, state):
        state.structures = FakeTopology([])
        result = await _get_structure_hierarchy(state)
        assert "No structure id given" in result["error"]

    @pytest.mark.asyncio
    async def test_folder_hierarchy(self, structure_state):
        result = await _get_folder_hierarchy(structure_state, "1")
        assert result["content"].startswith("# 📁 Folder Hierarchy: Web")
        assert result["folder"]["folder"]["children"][0]["issue_key"] == "E1"

    @pytest.mark.asyncio
    async def test_folder_not_found(self, structure_state):
        result = await _get_folder_hierarchy(structure_state, "2")
        assert result["error"] == "Element 2 of structure 42 is not a folder"
        assert result["folder_id"] == "2"

    @pytest.mark.asyncio
    async def test_by_assignee(self, structure_state):
        query = 'assignee = "jdoe" AND statusCategory != Done'
        structure_state.repository.searches[query] = ["T2", "T1"]
        result = await _get_structure_hierarchy_by_assignee(structure_state, "jdoe")
        data = result["assignee_view"]
        assert data["folders"] == {"Web": ["T1", "T2"]}
        assert data["unplaced"] == []
        assert result["content"].startswith("# 📋 Issues of jdoe by folder")

    @pytest.mark.asyncio
    async def test_by_assignee_query_failure(self, state):
        query = 'assignee = "jdoe" AND statusCategory != Done'
        state.repository.search_errors[query] = TrackerError("Jira API error: 400", 400)
        result = await _get_structure_hierarchy_by_assignee(state, "jdoe")
        assert result["assignee"] == "jdoe"
        assert "Failed to get issues of jdoe" in result["error"]


class TestIssueDetailsAndSearch:
    """Tests for get_issue_details and search_issues."""

    @pytest.mark.asyncio
    async def test_details_remember_issue(self, state):
        result = await _get_issue_details(state, "t1")
        assert result["content"].startswith("# 📋 Issue Details: T1")
        assert result["details"]["issue"]["summary"] == "Cart"
        assert state.store.get() == "T1"

    @pytest.mark.asyncio
    async def test_details_fall_back_to_last_viewed(self, state):
        state.store.set("E1")
        result = await _get_issue_details(state)
        assert result["details"]["issue"]["key"] == "E1"

    @pytest.mark.asyncio
    async def test_details_not_found(self, state):
        result = await _get_issue_details(state, "NOPE-1")
        assert result["content"].startswith("# ❌ Issue Not Found")
        assert state.store.get() is None

    @pytest.mark.asyncio
    async def test_search(self, state):
        result = await _search_issues(state, QUERY)
        assert "| T1 | Cart |" in result["content"]
        assert [issue["key"] for issue in result["search"]["issues"]] == ["T1", "T2"]
        assert result["search"]["total"] == 2

    @pytest.mark.asyncio
    async def test_search_failure(self, state):
        state.repository.search_errors[QUERY] = TrackerError("Jira API error: 400", 400, "Bad JQL")
        result = await _search_issues(state, QUERY)
        assert "Bad JQL" in result["error"]
        assert result["query"] == QUERY


class TestLastViewedIssue:
    def test_nothing_viewed(self, state):
        result = _get_last_viewed_issue(state)
        assert result["issue_key"] is None
        assert "No issue has been viewed yet" in result["content"]

    def test_viewed(self, state):
        state.store.set("T1")
        assert _get_last_viewed_issue(state)["issue_key"] == "T1"


class TestCreateState:
    """Tests for wiring collaborators from configuration."""

    def test_without_structure(self, tmp_path):
        config = merge_configs(
            DEFAULT_CONFIG, {"state": {"last_issue_file": str(tmp_path / "last.json")}}
        )
        state = create_state(config, JiraClient("https://jira.example.com"))
        assert state.topology is None
        assert isinstance(state.structures, StructureTopologyProvider)
        assert isinstance(state.store, JsonFileLastIssueStore)
        assert state.store.path == tmp_path / "last.json"

    def test_with_structure(self):
        config = merge_configs(DEFAULT_CONFIG, {"structure": {"id": "42"}})
        state = create_state(
            config, JiraClient("https://jira.example.com"), MemoryLastIssueStore()
        )
        assert isinstance(state.topology, StructureTopologyProvider)
        assert state.options.topology_id == "42"

    def test_memory_store_without_state_file(self):
        config = merge_configs(DEFAULT_CONFIG, {"state": {"last_issue_file": ""}})
        state = create_state(config, JiraClient("https://jira.example.com"))
        assert isinstance(state.store, MemoryLastIssueStore)


class TestCreateServer:
    def test_tools_registered(self):
        pytest.importorskip("mcp")
        import asyncio

        from issuegraph.mcp.server import create_server

        server = create_server(
            DEFAULT_CONFIG,
            client=JiraClient("https://jira.example.com"),
            state_store=MemoryLastIssueStore(),
        )
        tools = asyncio.run(server.list_tools())
        assert {tool.name for tool in tools} == {
            "get_issue_hierarchy",
            "get_issue_hierarchy_from_root",
            "get_issue_links",
            "navigate_hierarchy",
            "get_last_viewed_issue",
            "get_structure_hierarchy",
            "get_folder_hierarchy",
            "get_structure_hierarchy_by_assignee",
            "get_issue_details",
            "search_issues",
        }
