"""Tests for single-issue link views and one-step navigation."""

from __future__ import annotations

import pytest

from issuegraph.exceptions import IssueNotFoundError
from issuegraph.graph.hierarchy import HierarchyOptions
from issuegraph.graph.navigation import Direction, describe_issue_links, navigate_hierarchy
from tests.graph.graph_test_helpers import (
    FakeRepository,
    child_link,
    covered_by_link,
    covers_link,
    make_epic,
    make_issue,
    parent_link,
    relates_link,
)

OPTIONS = HierarchyOptions()


def _family() -> FakeRepository:
    return FakeRepository(
        make_epic("E1", "Checkout"),
        make_issue("P1", "Parent", links=[child_link("T1"), child_link("T2"), child_link("T3")]),
        make_issue(
            "T1",
            "Middle child",
            epic={"key": "E1", "fields": {"summary": "Checkout"}},
            links=[
                parent_link("P1", "Parent"),
                child_link("C1", "Grandchild"),
                covered_by_link("R1", "Requirement"),
                covers_link("X1", "Covered"),
                relates_link("Z1", "Related"),
            ],
        ),
        make_issue("T2", "Sibling two"),
        # T3 is linked from P1 but cannot be fetched
    )


class TestDirection:
    """Tests for Direction.parse."""

    def test_parse_values(self):
        assert Direction.parse("children") is Direction.CHILDREN
        assert Direction.parse(" Covered-By ") is Direction.COVERED_BY
        assert Direction.parse(Direction.EPIC) is Direction.EPIC

    def test_unknown_direction(self):
        with pytest.raises(ValueError, match="expected one of"):
            Direction.parse("sideways")


class TestDescribeIssueLinks:
    """Tests for describe_issue_links."""

    @pytest.mark.asyncio
    async def test_categories(self):
        links = await describe_issue_links(_family(), "T1", OPTIONS)

        assert links.issue.key == "T1"
        assert links.epic.key == "E1"
        assert links.epic.summary == "Checkout"
        assert [item.key for item in links.parent_child] == ["P1", "C1"]
        assert [item.key for item in links.requirement] == ["R1", "X1"]
        assert [item.key for item in links.other] == ["Z1"]
        assert links.is_empty() is False

    @pytest.mark.asyncio
    async def test_no_links(self):
        links = await describe_issue_links(_family(), "T2", OPTIONS)
        assert links.is_empty() is True
        assert links.epic is None

    @pytest.mark.asyncio
    async def test_missing_issue(self):
        with pytest.raises(IssueNotFoundError):
            await describe_issue_links(_family(), "NOPE-1", OPTIONS)


class TestNavigateHierarchy:
    """Tests for navigate_hierarchy in every direction."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "direction, expected",
        [
            ("parent", ["P1"]),
            ("children", ["C1"]),
            ("covers", ["X1"]),
            ("covered_by", ["R1"]),
        ],
    )
    async def test_link_directions(self, direction, expected):
        navigation = await navigate_hierarchy(_family(), "T1", direction, OPTIONS)
        assert navigation.direction is Direction.parse(direction)
        assert [node.key for node in navigation.related] == expected

    @pytest.mark.asyncio
    async def test_epic_is_fetched(self):
        repository = _family()
        navigation = await navigate_hierarchy(repository, "T1", "epic", OPTIONS)
        assert [node.key for node in navigation.related] == ["E1"]
        assert navigation.related[0].issue_type == "Epic"
        assert repository.lookups == ["T1", "E1"]

    @pytest.mark.asyncio
    async def test_siblings_skip_self_and_unfetchable(self):
        navigation = await navigate_hierarchy(_family(), "T1", "siblings", OPTIONS)
        assert [node.key for node in navigation.related] == ["T2"]

    @pytest.mark.asyncio
    async def test_siblings_without_parent(self):
        navigation = await navigate_hierarchy(_family(), "T2", "siblings", OPTIONS)
        assert navigation.related == []

    @pytest.mark.asyncio
    async def test_invalid_direction_raises_before_lookup(self):
        repository = _family()
        with pytest.raises(ValueError):
            await navigate_hierarchy(repository, "T1", "sideways", OPTIONS)
        assert repository.lookups == []
