"""Tests for the folder topology overlay."""

from __future__ import annotations

import pytest

from issuegraph.exceptions import TopologyUnavailableError, TrackerError
from issuegraph.graph.folders import (
    FolderElement,
    FolderOverlay,
    FolderTopology,
    format_path,
    group_by_folder,
    resolve_folder_overlay,
)
from tests.graph.graph_test_helpers import (
    FakeTopology,
    build_graph,
    folder,
    leaf,
    make_epic,
    make_issue,
    missing_topology,
)


def _topology():
    return FolderTopology(
        [
            folder("1", "Platform"),
            folder("2", "Auth", parent_id="1"),
            leaf("3", "E-1", parent_id="2"),
            folder("4", "Mobile"),
            leaf("5", "T-2", parent_id="4"),
            leaf("6", "T-9", parent_id=None),
        ]
    )


class TestFolderElement:
    """Tests for decoding Structure payloads."""

    @pytest.mark.parametrize(
        "marker", [{"type": "folder"}, {"folder": True}, {"elementType": "folder"}]
    )
    def test_folder_payload(self, marker):
        payload = {"id": 7, "name": "Platform", "parentId": None, **marker}
        element = FolderElement.from_payload(payload)
        assert element == FolderElement(id="7", name="Platform", element_type="folder")
        assert element.is_folder

    def test_keyless_element_needs_folder_type(self):
        element = FolderElement.from_payload({"id": 5, "name": "Generator", "type": "generator"})
        assert element.issue_key is None
        assert element.element_type == "generator"
        assert not element.is_folder
        assert not FolderElement.from_payload({"id": 6, "name": "Memo"}).is_folder

    def test_issue_payload(self):
        element = FolderElement.from_payload({"id": 8, "parentId": 7, "issueKey": "E-1"})
        assert element.parent_id == "7"
        assert element.issue_key == "E-1"
        assert not element.is_folder

    def test_unnamed_folder(self):
        assert FolderElement.from_payload({"id": 9, "folder": True}).name == "Unnamed Folder"
        assert FolderElement.from_payload({"id": 9}).name == ""


class TestFolderTopology:
    """Tests for folder path computation."""

    def test_folder_path(self):
        topology = _topology()
        assert topology.folder_path("2") == ("Platform", "Auth")
        assert topology.folder_path("missing") == ()
        assert topology.folder_path(None) == ()

    def test_issue_paths_and_top_folders(self):
        topology = _topology()
        assert topology.issue_paths("E-1") == [("Platform", "Auth")]
        assert topology.top_folders("E-1") == ["Platform"]
        assert topology.top_folders("T-9") == []
        assert topology.top_folders("UNKNOWN") == []

    def test_non_folder_parent_is_not_a_path_segment(self):
        topology = FolderTopology(
            [
                folder("1", "Platform"),
                FolderElement(id="2", name="Generator", parent_id="1", element_type="generator"),
                leaf("3", "E-1", parent_id="2"),
                leaf("4", "E-2", parent_id="1"),
            ]
        )
        assert [f.id for f in topology.folders()] == ["1"]
        assert topology.folder_path("2") == ()
        assert topology.issue_paths("E-1") == []
        assert topology.top_folders("E-2") == ["Platform"]

    def test_cyclic_parents_terminate(self):
        topology = FolderTopology(
            [folder("1", "A", parent_id="2"), folder("2", "B", parent_id="1")]
        )
        assert topology.folder_path("1") == ("B", "A")

    def test_duplicate_ids_keep_first(self):
        topology = FolderTopology([folder("1", "First"), folder("1", "Second")])
        assert len(topology) == 1
        assert topology.get("1").name == "First"

    def test_format_path(self):
        assert format_path(("Platform", "Auth")) == "Platform → Auth"


class TestResolveFolderOverlay:
    """Tests for loading the topology with failures absorbed."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        overlay = await resolve_folder_overlay(FakeTopology([folder("1", "A")]), None)
        assert overlay.available is False
        assert overlay.error is None

    @pytest.mark.asyncio
    async def test_loaded(self):
        provider = FakeTopology([folder("1", "A")])
        overlay = await resolve_folder_overlay(provider, "42")
        assert overlay.available is True
        assert overlay.topology_id == "42"
        assert provider.calls == ["42"]

    @pytest.mark.asyncio
    async def test_missing_structure_is_silent(self):
        overlay = await resolve_folder_overlay(missing_topology(), "42")
        assert overlay.available is False
        assert overlay.error is None

    @pytest.mark.asyncio
    async def test_unreadable_structure_records_error(self):
        provider = FakeTopology(error=TopologyUnavailableError("Received HTML instead of JSON"))
        overlay = await resolve_folder_overlay(provider, "42")
        assert overlay.available is False
        assert "HTML" in overlay.error

    @pytest.mark.asyncio
    async def test_tracker_error_absorbed(self):
        provider = FakeTopology(error=TrackerError("Jira API error: 403 Forbidden", 403))
        overlay = await resolve_folder_overlay(provider, "42")
        assert overlay.available is False
        assert "403" in overlay.error


class TestGroupByFolder:
    """Tests for bucketing group nodes by top-level folder."""

    def test_without_topology_everything_is_ungrouped(self):
        overlay = FolderOverlay()
        graph = build_graph(make_epic("E-1"))
        buckets = group_by_folder(overlay, graph, ["E-1"])
        assert overlay.folder_count == 0
        assert [(b.name, b.group_keys) for b in buckets] == [(None, ["E-1"])]

    def test_group_placed_by_itself_or_its_members(self):
        graph = build_graph(
            make_epic("E-1"),
            make_epic("E-2"),
            make_epic("E-3"),
            make_issue("T-2", epic="E-2"),
        )
        overlay = FolderOverlay(topology=_topology(), topology_id="42")

        group_by_folder(overlay, graph, ["E-1", "E-2", "E-3"])

        assert [(b.name, b.group_keys) for b in overlay.buckets] == [
            ("Mobile", ["E-2"]),
            ("Platform", ["E-1"]),
            (None, ["E-3"]),
        ]
        assert overlay.folder_count == 2
        assert overlay.ungrouped() == ["E-3"]
        assert overlay.issues_in_folders == ["E-1", "T-2"]

    def test_group_in_several_folders(self):
        graph = build_graph(make_epic("E-1"), make_issue("T-2", epic="E-1"))
        overlay = FolderOverlay(topology=_topology(), topology_id="42")

        group_by_folder(overlay, graph, ["E-1"])

        assert [(b.name, b.group_keys) for b in overlay.buckets] == [
            ("Mobile", ["E-1"]),
            ("Platform", ["E-1"]),
        ]
        assert overlay.ungrouped() == []
