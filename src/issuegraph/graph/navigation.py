"""Navigation - Single-issue relationship views.

- describe_issue_links: an issue's relations grouped by category
- navigate_hierarchy: the issues one step away in a given direction
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from issuegraph.exceptions import IssueGraphError
from issuegraph.graph.extractor import LinkedIssue, decode_group_reference, iter_linked_issues
from issuegraph.graph.IssueNode import IssueNode
from issuegraph.graph.relations import EdgeKind

if TYPE_CHECKING:
    from issuegraph.graph.hierarchy import HierarchyOptions
    from issuegraph.tracker.repository import IssueRepository

logger = structlog.get_logger()


class Direction(Enum):
    """Directions accepted by navigate_hierarchy."""

    PARENT = "parent"
    CHILDREN = "children"
    EPIC = "epic"
    COVERS = "covers"
    COVERED_BY = "covered_by"
    SIBLINGS = "siblings"

    @classmethod
    def parse(cls, value: str | Direction) -> Direction:
        """Parse a direction name.

        Raises:
            ValueError: If the name is not a known direction.
        """
        if isinstance(value, Direction):
            return value
        normalized = value.strip().lower().replace("-", "_")
        for direction in cls:
            if direction.value == normalized:
                return direction
        choices = ", ".join(d.value for d in cls)
        raise ValueError(f"Unknown direction '{value}' (expected one of: {choices})")

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_TITLES = {
    Direction.PARENT: "Parent Issues",
    Direction.CHILDREN: "Child Issues",
    Direction.EPIC: "Epic",
    Direction.COVERS: "Covered Issues",
    Direction.COVERED_BY: "Covering Requirements",
    Direction.SIBLINGS: "Sibling Issues",
}

_DESCRIPTIONS = {
    Direction.PARENT: "Parent issues (via parent-child links)",
    Direction.CHILDREN: "Child issues (via parent-child links)",
    Direction.EPIC: "Epic linked to this issue",
    Direction.COVERS: "Issues covered by this requirement",
    Direction.COVERED_BY: "Requirements that cover this issue",
    Direction.SIBLINGS: "Sibling issues (same parent)",
}

# Direction -> (link kind, side of the link the related issue sits on)
_LINK_DIRECTIONS = {
    Direction.PARENT: (EdgeKind.CONTAINMENT, "inward"),
    Direction.CHILDREN: (EdgeKind.CONTAINMENT, "outward"),
    Direction.COVERS: (EdgeKind.COVERAGE, "outward"),
    Direction.COVERED_BY: (EdgeKind.COVERAGE, "inward"),
}


@dataclass
class IssueLinks:
    """Relations of one issue, by category."""

    issue: IssueNode
    epic: IssueNode | None = None
    requirement: list[LinkedIssue] = field(default_factory=list)
    parent_child: list[LinkedIssue] = field(default_factory=list)
    other: list[LinkedIssue] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.epic or self.requirement or self.parent_child or self.other)


@dataclass
class Navigation:
    """Issues one step away from ``issue`` in ``direction``."""

    issue: IssueNode
    direction: Direction
    related: list[IssueNode] = field(default_factory=list)


def _epic_node(raw: object, key: str) -> IssueNode:
    """Node for an Epic Link value, keeping an embedded summary if present."""
    if isinstance(raw, dict) and isinstance(raw.get("fields"), dict):
        return IssueNode.from_record({"key": key, "fields": raw["fields"]})
    return IssueNode(key=key)


async def describe_issue_links(
    repository: IssueRepository, key: str, options: HierarchyOptions
) -> IssueLinks:
    """Fetch an issue and group its relations.

    Typed links fall into the requirement or parent-child category by link
    type alone, in either direction; every other link type is "other".

    Raises:
        IssueNotFoundError: If the issue does not exist.
    """
    record = await repository.get_issue(key, list(options.fields))
    links = IssueLinks(issue=IssueNode.from_record(record))

    raw_group = (record.get("fields") or {}).get(options.group_field)
    group_key = decode_group_reference(raw_group)
    if group_key:
        links.epic = _epic_node(raw_group, group_key)

    for linked in iter_linked_issues(record, options.link_types):
        if linked.link_kind is EdgeKind.COVERAGE:
            links.requirement.append(linked)
        elif linked.link_kind is EdgeKind.CONTAINMENT:
            links.parent_child.append(linked)
        else:
            links.other.append(linked)
    return links


async def navigate_hierarchy(
    repository: IssueRepository,
    key: str,
    direction: Direction | str,
    options: HierarchyOptions,
) -> Navigation:
    """Find the issues one step from ``key`` in ``direction``.

    Related issues that cannot be fetched are logged and left out.

    Raises:
        IssueNotFoundError: If the starting issue does not exist.
        ValueError: If ``direction`` is not a known direction.
    """
    direction = Direction.parse(direction)
    record = await repository.get_issue(key, list(options.fields))
    navigation = Navigation(issue=IssueNode.from_record(record), direction=direction)
    linked = iter_linked_issues(record, options.link_types)

    if direction in _LINK_DIRECTIONS:
        kind, side = _LINK_DIRECTIONS[direction]
        navigation.related = [
            item.node for item in linked if item.kind is kind and item.direction == side
        ]
        return navigation

    if direction is Direction.EPIC:
        group_key = decode_group_reference((record.get("fields") or {}).get(options.group_field))
        if group_key:
            navigation.related = await _fetch_all(repository, [group_key], options)
        return navigation

    # Siblings: the first parent's other children
    parent_key = next(
        (
            item.key
            for item in linked
            if item.kind is EdgeKind.CONTAINMENT and item.direction == "inward"
        ),
        None,
    )
    if parent_key is None:
        return navigation
    try:
        parent = await repository.get_issue(parent_key, list(options.fields))
    except IssueGraphError as e:
        logger.warning("sibling_parent_unavailable", key=parent_key, error=str(e))
        return navigation

    sibling_keys = [
        item.key
        for item in iter_linked_issues(parent, options.link_types)
        if item.kind is EdgeKind.CONTAINMENT and item.direction == "outward" and item.key != key
    ]
    navigation.related = await _fetch_all(repository, sibling_keys, options)
    return navigation


async def _fetch_all(
    repository: IssueRepository, keys: list[str], options: HierarchyOptions
) -> list[IssueNode]:
    """Fetch issues concurrently, skipping the ones that fail."""
    semaphore = asyncio.Semaphore(max(1, options.concurrency))

    async def fetch(key: str) -> IssueNode | None:
        async with semaphore:
            try:
                return IssueNode.from_record(
                    await repository.get_issue(key, list(options.fields))
                )
            except IssueGraphError as e:
                logger.warning("related_issue_unavailable", key=key, error=str(e))
                return None

    nodes = await asyncio.gather(*(fetch(k) for k in dict.fromkeys(keys)))
    return [node for node in nodes if node is not None]
