"""Folder Overlay Resolver - Group epics by an external folder tree.

The folder topology (a Jira Structure) is a tree maintained outside the
issue relations. Its folder elements carry names; its leaf elements point
at issues. This module maps issues to the folder paths above them and
buckets group (epic) nodes by top-level folder for display.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from issuegraph.exceptions import TopologyUnavailableError, TrackerError
from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.relations import EdgeKind

if TYPE_CHECKING:
    from issuegraph.tracker.repository import FolderTopologyProvider

logger = structlog.get_logger()

PATH_SEPARATOR = " → "
DEFAULT_TOPOLOGY_MAX_RESULTS = 1000
FOLDER_TYPE = "folder"


@dataclass(frozen=True)
class FolderElement:
    """One element of a folder topology.

    Attributes:
        id: Element id, unique within the topology.
        name: Display name (folders only; may be empty for issue leaves).
        parent_id: Id of the parent element, None for roots.
        issue_key: Key of the issue a leaf element points at, None for folders.
        element_type: Declared element type ("folder" for folders). Keyless
            elements of any other type (generators, memos, rows whose issue
            was deleted) are neither folders nor issue leaves.
    """

    id: str
    name: str = ""
    parent_id: str | None = None
    issue_key: str | None = None
    element_type: str = ""

    @property
    def is_folder(self) -> bool:
        return self.issue_key is None and self.element_type == FOLDER_TYPE

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> FolderElement:
        """Decode an element from a Structure API payload."""
        parent = raw.get("parentId")
        issue_key = raw.get("issueKey") or None
        if (
            raw.get("type") == FOLDER_TYPE
            or raw.get("folder") is True
            or raw.get("elementType") == FOLDER_TYPE
        ):
            element_type = FOLDER_TYPE
        else:
            element_type = str(raw.get("type") or raw.get("elementType") or "")
        name = raw.get("name") or raw.get("summary") or ""
        if issue_key is None and element_type == FOLDER_TYPE and not name:
            name = "Unnamed Folder"
        return cls(
            id=str(raw.get("id", "")),
            name=name,
            parent_id=str(parent) if parent not in (None, "") else None,
            issue_key=issue_key,
            element_type=element_type,
        )


class FolderTopology:
    """Index over a flat list of folder elements.

    Folder paths are computed by walking ``parent_id`` links and memoized
    per element id, since many leaves share the same folder chain.
    """

    def __init__(self, elements: Iterable[FolderElement]) -> None:
        self._elements: dict[str, FolderElement] = {}
        for element in elements:
            self._elements.setdefault(element.id, element)
        self._paths: dict[str, tuple[str, ...]] = {}
        self._issue_paths: dict[str, list[tuple[str, ...]]] | None = None
        self._children: dict[str | None, list[FolderElement]] | None = None

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[FolderElement]:
        return iter(self._elements.values())

    def get(self, element_id: str) -> FolderElement | None:
        """Look up an element by id."""
        return self._elements.get(element_id)

    def children(self, element_id: str | None) -> list[FolderElement]:
        """Direct children of ``element_id`` in topology order.

        ``None`` lists the roots: elements without a parent, or whose
        parent is not part of the topology.
        """
        if self._children is None:
            index: dict[str | None, list[FolderElement]] = {}
            for element in self._elements.values():
                parent = element.parent_id if element.parent_id in self._elements else None
                if parent == element.id:
                    parent = None
                index.setdefault(parent, []).append(element)
            self._children = index
        return self._children.get(element_id, [])

    def leaves(self, issue_key: str) -> list[FolderElement]:
        """Elements pointing at ``issue_key``."""
        return [element for element in self._elements.values() if element.issue_key == issue_key]

    def folders(self) -> list[FolderElement]:
        """All folder elements, in topology order."""
        return [element for element in self._elements.values() if element.is_folder]

    def folder_path(self, element_id: str | None) -> tuple[str, ...]:
        """Root-to-leaf folder names ending at ``element_id``.

        Returns an empty tuple when the id is unknown or not a folder. The
        walk stops at the first non-folder ancestor and at any repeated id.
        """
        if element_id is None:
            return ()
        if element_id in self._paths:
            return self._paths[element_id]

        chain: list[str] = []
        seen: set[str] = set()
        current: str | None = element_id
        prefix: tuple[str, ...] = ()
        while current is not None and current not in seen:
            if current in self._paths:
                prefix = self._paths[current]
                break
            element = self._elements.get(current)
            if element is None or not element.is_folder:
                break
            seen.add(current)
            chain.append(current)
            current = element.parent_id

        # Fill memo from the top of the chain down
        path = prefix
        for chain_id in reversed(chain):
            path = path + (self._elements[chain_id].name,)
            self._paths[chain_id] = path
        return self._paths.get(element_id, ())

    def issue_paths(self, issue_key: str) -> list[tuple[str, ...]]:
        """Folder paths of every leaf pointing at ``issue_key``, deduplicated."""
        if self._issue_paths is None:
            index: dict[str, list[tuple[str, ...]]] = {}
            for element in self._elements.values():
                if element.issue_key is None:
                    continue
                path = self.folder_path(element.parent_id)
                if not path:
                    continue
                paths = index.setdefault(element.issue_key, [])
                if path not in paths:
                    paths.append(path)
            self._issue_paths = index
        return self._issue_paths.get(issue_key, [])

    def top_folders(self, issue_key: str) -> list[str]:
        """Top-level folder names containing ``issue_key``."""
        names: dict[str, None] = {}
        for path in self.issue_paths(issue_key):
            names.setdefault(path[0])
        return list(names)


@dataclass
class FolderBucket:
    """Group nodes shown under one top-level folder.

    ``name`` is None for the bucket of groups that match no folder.
    """

    name: str | None
    group_keys: list[str] = field(default_factory=list)

    @property
    def is_ungrouped(self) -> bool:
        return self.name is None


@dataclass
class FolderOverlay:
    """Result of consulting the folder topology for one build.

    Attributes:
        topology: Loaded topology, None when unavailable or not configured.
        topology_id: Configured topology id, None when not configured.
        error: Reason the topology could not be read, None when it was read
            or the structure simply does not exist.
        buckets: Group buckets, folders by name then the ungrouped bucket.
        issues_in_folders: Keys of working-set issues found under a folder.
    """

    topology: FolderTopology | None = None
    topology_id: str | None = None
    error: str | None = None
    buckets: list[FolderBucket] = field(default_factory=list)
    issues_in_folders: list[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.topology is not None

    @property
    def folder_count(self) -> int:
        """Number of folder buckets; zero when the overlay was skipped."""
        return sum(1 for bucket in self.buckets if not bucket.is_ungrouped)

    def ungrouped(self) -> list[str]:
        """Group keys matching no folder."""
        for bucket in self.buckets:
            if bucket.is_ungrouped:
                return bucket.group_keys
        return []


async def resolve_folder_overlay(
    provider: FolderTopologyProvider | None,
    topology_id: str | None,
    max_results: int = DEFAULT_TOPOLOGY_MAX_RESULTS,
) -> FolderOverlay:
    """Load the folder topology, absorbing every failure.

    Args:
        provider: Folder topology source, None when not configured.
        topology_id: Id of the topology to read, None when not configured.
        max_results: Maximum elements requested.

    Returns:
        FolderOverlay with a topology, or without one and the reason
        recorded. A structure that does not exist is not reported as an
        error.
    """
    overlay = FolderOverlay(topology_id=topology_id)
    if provider is None or not topology_id:
        return overlay

    try:
        elements = await provider.get_hierarchy(topology_id, max_results)
    except TopologyUnavailableError as e:
        if e.not_found:
            logger.debug("folder_topology_not_found", topology_id=topology_id)
        else:
            logger.warning("folder_topology_unavailable", topology_id=topology_id, error=str(e))
            overlay.error = str(e)
        return overlay
    except TrackerError as e:
        if e.status_code == 404:
            logger.debug("folder_topology_not_found", topology_id=topology_id)
        else:
            logger.warning("folder_topology_unavailable", topology_id=topology_id, error=str(e))
            overlay.error = str(e)
        return overlay

    overlay.topology = FolderTopology(elements)
    logger.debug("folder_topology_loaded", topology_id=topology_id, elements=len(elements))
    return overlay


def group_by_folder(
    overlay: FolderOverlay,
    graph: IssueGraph,
    group_keys: Sequence[str],
) -> list[FolderBucket]:
    """Bucket group nodes by top-level folder and store the buckets.

    A group belongs to folder F when the group itself, or any issue it
    groups through a GROUP_LINK edge, sits under F. A group may land in
    several folders. Groups matching none land in the ungrouped bucket.

    Args:
        overlay: Overlay from ``resolve_folder_overlay``; updated in place.
        graph: Assembled graph for this build pass.
        group_keys: Group node keys in section order.

    Returns:
        The buckets, folder buckets sorted by name, ungrouped last (only
        when non-empty).
    """
    topology = overlay.topology
    by_folder: dict[str, list[str]] = {}
    ungrouped: list[str] = []
    in_folders: dict[str, None] = {}

    for group_key in group_keys:
        folders: dict[str, None] = {}
        if topology is not None:
            for key in [group_key, *graph.children_of_kind(group_key, EdgeKind.GROUP_LINK)]:
                names = topology.top_folders(key)
                if names:
                    in_folders.setdefault(key)
                for name in names:
                    folders.setdefault(name)
        if not folders:
            ungrouped.append(group_key)
            continue
        for name in folders:
            members = by_folder.setdefault(name, [])
            if group_key not in members:
                members.append(group_key)

    buckets = [FolderBucket(name, by_folder[name]) for name in sorted(by_folder)]
    if ungrouped:
        buckets.append(FolderBucket(None, ungrouped))
    overlay.buckets = buckets
    overlay.issues_in_folders = list(in_folders)
    return buckets


def format_path(path: Sequence[str]) -> str:
    """Join a folder path for display."""
    return PATH_SEPARATOR.join(path)
