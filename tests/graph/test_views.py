"""Tests for the read-only structure, issue detail and search views."""

from __future__ import annotations

import pytest

from issuegraph.exceptions import (
    FolderNotFoundError,
    IssueNotFoundError,
    TopologyUnavailableError,
    TrackerError,
)
from issuegraph.graph.folders import FolderElement, FolderTopology
from issuegraph.graph.views import (
    DEFAULT_SEARCH_RESULTS,
    RICH_TEXT,
    assignee_query,
    build_assignee_view,
    build_folder_view,
    build_structure_view,
    clamp_search_results,
    get_issue_details,
    run_issue_search,
)
from tests.graph.graph_test_helpers import (
    FakeRepository,
    FakeTopology,
    folder,
    leaf,
    make_epic,
    make_issue,
    missing_topology,
)

ALL_LEAVES = "key in (E-1, T-1, T-2, T-3, T-4, T-9)"
PLATFORM_LEAVES = "key in (E-1, T-1, T-2, T-3)"
JANE = 'assignee = "Jane Doe" AND statusCategory != Done'


def _elements() -> list[FolderElement]:
    return [
        folder("1", "Platform"),
        leaf("2", "E-1", "1"),
        leaf("3", "T-1", "2"),
        leaf("4", "T-2", "2"),
        folder("5", "Archive", "1"),
        leaf("6", "T-3", "5"),
        folder("7", "Mobile"),
        FolderElement(id="8", name="Open bugs", parent_id="7", element_type="generator"),
        leaf("9", "T-4", "8"),
        leaf("10", "T-9", None),
    ]


def _repository(**searches) -> FakeRepository:
    return FakeRepository(
        make_epic("E-1", "Checkout"),
        make_issue("T-1", "Cart", status="Done", category="done"),
        make_issue("T-2", "Cart badge", status="In Progress", category="indeterminate"),
        make_issue("T-3", "Old flow", status="Done", category="done"),
        make_issue("T-4", "Crash on start", issue_type="Bug"),
        make_issue("T-8", "Not in any structure"),
        make_issue("T-9", "Loose"),
        searches=searches,
    )


def _keys(node) -> list:
    return [child.element.issue_key or child.element.name for child in node.children]


class TestFolderTopologyChildren:
    def test_roots_include_orphans(self):
        topology = FolderTopology([folder("1", "A"), leaf("2", "K-1", "99"), folder("3", "B", "1")])
        assert [e.id for e in topology.children(None)] == ["1", "2"]
        assert [e.id for e in topology.children("1")] == ["3"]

    def test_self_parent_is_a_root(self):
        topology = FolderTopology([folder("1", "A", "1")])
        assert [e.id for e in topology.children(None)] == ["1"]


class TestStructureView:
    """Tests for build_structure_view."""

    @pytest.mark.asyncio
    async def test_whole_tree(self):
        repository = _repository(**{ALL_LEAVES: ["E-1", "T-1", "T-2", "T-3", "T-4", "T-9"]})
        view = await build_structure_view(FakeTopology(_elements()), "42", repository)

        assert [root.element.id for root in view.roots] == ["1", "7", "10"]
        platform = view.roots[0]
        assert _keys(platform) == ["E-1", "Archive"]
        assert _keys(platform.children[0]) == ["T-1", "T-2"]
        assert platform.children[0].issue.summary == "Checkout"
        assert view.element_count == 10
        assert repository.queries == [ALL_LEAVES]

        counts = view.counts
        assert (counts.folders, counts.issues, counts.open_issues) == (3, 6, 4)
        assert counts.types["Bug"] == 1
        assert counts.statuses["Done"] == 2

    @pytest.mark.asyncio
    async def test_narrowed_to_issue(self):
        view = await build_structure_view(FakeTopology(_elements()), "42", issue_key="E-1")
        assert [root.element.id for root in view.roots] == ["2"]
        assert _keys(view.roots[0]) == ["T-1", "T-2"]
        assert view.roots[0].issue is None

    @pytest.mark.asyncio
    async def test_issue_not_in_structure(self):
        view = await build_structure_view(FakeTopology(_elements()), "42", issue_key="X-1")
        assert view.roots == []
        assert view.element_count == 10

    @pytest.mark.asyncio
    async def test_failed_leaf_lookup_keeps_tree(self):
        repository = _repository()
        repository.search_errors[ALL_LEAVES] = TrackerError("Jira API error: 500", 500)
        view = await build_structure_view(FakeTopology(_elements()), "42", repository)
        assert len(view.roots) == 3
        assert all(node.issue is None for root in view.roots for node in root.walk())

    @pytest.mark.asyncio
    async def test_missing_structure_raises(self):
        with pytest.raises(TopologyUnavailableError):
            await build_structure_view(missing_topology(), "42")

    @pytest.mark.asyncio
    async def test_no_structure_id(self):
        provider = FakeTopology(_elements())
        with pytest.raises(TopologyUnavailableError, match="No structure id"):
            await build_structure_view(provider, None)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_cyclic_parents_terminate(self):
        elements = [folder("1", "A"), folder("2", "B", "3"), folder("3", "C", "2")]
        view = await build_structure_view(FakeTopology(elements), "42")
        assert [root.element.id for root in view.roots] == ["1"]


class TestFolderView:
    """Tests for build_folder_view."""

    @pytest.mark.asyncio
    async def test_subtree(self):
        repository = _repository(**{PLATFORM_LEAVES: ["E-1", "T-1", "T-2", "T-3"]})
        view = await build_folder_view(FakeTopology(_elements()), "42", "1", repository)
        assert view.folder.element.name == "Platform"
        assert _keys(view.folder) == ["E-1", "Archive"]
        assert repository.queries == [PLATFORM_LEAVES]
        assert view.counts.closed_issues == 2

    @pytest.mark.asyncio
    async def test_only_open_keeps_folders(self):
        repository = _repository(**{PLATFORM_LEAVES: ["E-1", "T-1", "T-2", "T-3"]})
        view = await build_folder_view(
            FakeTopology(_elements()), "42", "1", repository, only_open=True
        )
        assert _keys(view.folder) == ["E-1", "Archive"]
        assert _keys(view.folder.children[0]) == ["T-2"]
        assert view.folder.children[1].children == []
        counts = view.counts
        assert (counts.folders, counts.issues, counts.open_issues) == (2, 2, 2)

    @pytest.mark.asyncio
    async def test_done_parent_of_open_issue_is_kept(self):
        elements = [folder("1", "Team"), leaf("2", "T-1", "1"), leaf("3", "T-2", "2")]
        repository = _repository(**{"key in (T-1, T-2)": ["T-1", "T-2"]})
        view = await build_folder_view(
            FakeTopology(elements), "42", "1", repository, only_open=True
        )
        assert _keys(view.folder) == ["T-1"]
        assert _keys(view.folder.children[0]) == ["T-2"]

    @pytest.mark.asyncio
    async def test_unknown_folder(self):
        with pytest.raises(FolderNotFoundError) as exc_info:
            await build_folder_view(FakeTopology(_elements()), "42", "404")
        assert exc_info.value.not_a_folder is False
        assert str(exc_info.value) == "Folder 404 not found in structure 42"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("element_id", ["2", "8"])
    async def test_not_a_folder(self, element_id):
        with pytest.raises(FolderNotFoundError) as exc_info:
            await build_folder_view(FakeTopology(_elements()), "42", element_id)
        assert exc_info.value.not_a_folder is True


class TestAssigneeView:
    """Tests for build_assignee_view."""

    def test_query_quotes_name(self):
        assert assignee_query('Jane "JD" Doe') == (
            'assignee = "Jane \\"JD\\" Doe" AND statusCategory != Done'
        )

    @pytest.mark.asyncio
    async def test_placed_by_top_folder(self):
        repository = _repository(**{JANE: ["T-2", "T-4", "T-8"]})
        view = await build_assignee_view(
            repository, "Jane Doe", FakeTopology(_elements()), "42"
        )

        assert view.query == JANE
        assert [node.key for node in view.issues] == ["T-2", "T-4", "T-8"]
        assert view.folders == {"Platform": ["T-2"], "Mobile": ["T-4"]}
        assert view.unplaced == ["T-8"]
        platform, mobile = view.roots
        assert _keys(platform) == ["E-1"]
        assert _keys(platform.children[0]) == ["T-2"]
        assert _keys(mobile) == ["Open bugs"]
        assert repository.queries == [JANE]

    @pytest.mark.asyncio
    async def test_no_issues_skips_topology(self):
        provider = FakeTopology(_elements())
        view = await build_assignee_view(_repository(), "Jane Doe", provider, "42")
        assert view.issues == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_without_structure_everything_unplaced(self):
        repository = _repository(**{JANE: ["T-2", "T-4"]})
        view = await build_assignee_view(repository, "Jane Doe")
        assert view.unplaced == ["T-2", "T-4"]
        assert view.roots == []
        assert view.error is None

    @pytest.mark.asyncio
    async def test_unreadable_structure_recorded(self):
        repository = _repository(**{JANE: ["T-2"]})
        provider = FakeTopology(error=TopologyUnavailableError("HTML login page"))
        view = await build_assignee_view(repository, "Jane Doe", provider, "42")
        assert view.error == "HTML login page"
        assert view.unplaced == ["T-2"]


def _detailed_record() -> dict:
    record = make_issue("T-1", "Cart", priority="High")
    record["fields"].update(
        {
            "description": "Show the cart.",
            "assignee": {"displayName": "Jane Doe"},
            "reporter": {"name": "jsmith"},
            "project": {"key": "SHOP", "name": "Shop"},
            "created": "2026-01-05T10:00:00.000+0000",
            "updated": "2026-02-01T09:30:00.000+0000",
            "labels": ["ui"],
            "components": [{"name": "Web"}],
            "fixVersions": [{"name": "1.2"}],
            "parent": {"key": "T-0", "fields": {"summary": "Checkout"}},
            "subtasks": [make_issue("T-5", "Icon", status="Done", category="done")],
            "timetracking": {"originalEstimate": "2d", "timeSpent": "1d"},
            "comment": {
                "total": 4,
                "comments": [
                    {"author": {"displayName": f"User {n}"}, "created": "", "body": f"c{n}"}
                    for n in range(4)
                ],
            },
            "worklog": {"total": 1, "worklogs": [{"timeSpent": "1h", "comment": {"type": "doc"}}]},
        }
    )
    return record


class TestIssueDetails:
    """Tests for get_issue_details."""

    @pytest.mark.asyncio
    async def test_fields(self):
        details = await get_issue_details(FakeRepository(_detailed_record()), "T-1")
        assert details.node.priority == "High"
        assert (details.assignee, details.reporter) == ("Jane Doe", "jsmith")
        assert details.project == "Shop (SHOP)"
        assert (details.components, details.fix_versions) == (["Web"], ["1.2"])
        assert details.parent.key == "T-0"
        assert [sub.key for sub in details.subtasks] == ["T-5"]
        assert details.time_tracking == {"original_estimate": "2d", "time_spent": "1d"}
        assert details.comment_total == 4
        assert details.comments == []

    @pytest.mark.asyncio
    async def test_recent_comments_and_worklogs(self):
        details = await get_issue_details(
            FakeRepository(_detailed_record()), "T-1", include_comments=True, include_worklogs=True
        )
        assert [c.body for c in details.comments] == ["c1", "c2", "c3"]
        assert details.worklogs[0].author == "Unknown"
        assert details.worklogs[0].comment == RICH_TEXT

    @pytest.mark.asyncio
    async def test_missing_people(self):
        details = await get_issue_details(FakeRepository(make_issue("T-1")), "T-1")
        assert (details.assignee, details.reporter) == ("Unassigned", "Unknown")
        assert details.parent is None

    @pytest.mark.asyncio
    async def test_not_found(self):
        with pytest.raises(IssueNotFoundError):
            await get_issue_details(FakeRepository(), "T-404")


class TestSearch:
    """Tests for run_issue_search."""

    @pytest.mark.parametrize(
        "requested, expected", [(None, DEFAULT_SEARCH_RESULTS), (0, 1), (500, 100), (20, 20)]
    )
    def test_clamp(self, requested, expected):
        assert clamp_search_results(requested) == expected

    @pytest.mark.asyncio
    async def test_rows(self):
        assigned = make_issue("T-2", "Cart badge")
        assigned["fields"]["assignee"] = {"displayName": "Jane Doe"}
        assigned["fields"]["updated"] = "2026-02-01T09:30:00.000+0000"
        repository = FakeRepository(
            make_issue("T-1"), assigned, searches={"project = SHOP": ["T-1", "T-2", "T-1"]}
        )
        view = await run_issue_search(repository, "project = SHOP", 2)
        assert [(row.node.key, row.assignee) for row in view.rows] == [
            ("T-1", "Unassigned"),
            ("T-2", "Jane Doe"),
        ]
        assert view.total == 3

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        repository = FakeRepository(search_errors={"bad": TrackerError("Bad JQL", 400)})
        with pytest.raises(TrackerError):
            await run_issue_search(repository, "bad")
