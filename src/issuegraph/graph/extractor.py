"""Relationship Extractor - Raw issue records to typed edges.

Turns one raw tracker record into direction-normalized edges plus stub
nodes for linked issues whose summary/status came embedded in the link.
Pure and synchronous: nothing here talks to the tracker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from issuegraph.graph.IssueNode import IssueNode
from issuegraph.graph.relations import Edge, EdgeKind

logger = structlog.get_logger()

DEFAULT_GROUP_FIELD = "customfield_10102"


@dataclass(frozen=True)
class LinkTypes:
    """Identifies which tracker link types carry hierarchy meaning.

    Link types are matched by id first and by a case-insensitive
    substring of their name second.
    """

    containment_id: str = "10600"
    containment_name: str = "parent"
    coverage_id: str = "10703"
    coverage_name: str = "requirement"

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> LinkTypes:
        """Build from the ``[links]`` config section."""
        links = config.get("links", {})
        defaults = cls()
        return cls(
            containment_id=str(links.get("containment_id", defaults.containment_id)),
            containment_name=str(links.get("containment_name", defaults.containment_name)),
            coverage_id=str(links.get("coverage_id", defaults.coverage_id)),
            coverage_name=str(links.get("coverage_name", defaults.coverage_name)),
        )


# (kind, direction) -> phrase that must appear in the link type's phrase
_DIRECTION_PHRASES = {
    (EdgeKind.CONTAINMENT, "outward"): "is parent of",
    (EdgeKind.CONTAINMENT, "inward"): "is child of",
    (EdgeKind.COVERAGE, "outward"): "covers",
    (EdgeKind.COVERAGE, "inward"): "covered by",
}


@dataclass
class Extraction:
    """Edges and stub nodes found in one issue record."""

    edges: list[Edge] = field(default_factory=list)
    stubs: dict[str, IssueNode] = field(default_factory=dict)

    def extend(self, other: Extraction) -> None:
        """Merge another extraction into this one (first stub wins)."""
        self.edges.extend(other.edges)
        for key, stub in other.stubs.items():
            self.stubs.setdefault(key, stub)


@dataclass(frozen=True)
class LinkedIssue:
    """One side of a typed link, as seen from the issue carrying it.

    ``link_kind`` is the classification of the link type alone; ``kind`` is
    set only when the phrase on this side also matches that kind.
    """

    key: str
    kind: EdgeKind | None
    direction: str  # "inward" or "outward"
    type_name: str
    phrase: str
    node: IssueNode
    embedded: bool = False
    link_kind: EdgeKind | None = None

    @property
    def is_parent_side(self) -> bool:
        """True if the linked issue is the coarser end of a hierarchy edge."""
        if self.kind is None:
            return False
        return self.direction == "inward"


def decode_group_reference(value: Any) -> str | None:
    """Decode the grouping (Epic Link) field into an issue key.

    The field arrives as a plain key, as an object carrying ``key`` (or,
    on some servers, only ``id``), or as an opaque value whose string form
    is the key.

    Args:
        value: Raw grouping field value.

    Returns:
        The group key, or None when no key can be recovered.
    """
    if value is None or value == "" or value == {} or value == []:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        for attr in ("key", "id"):
            candidate = value.get(attr)
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
        logger.debug("group_reference_unrecognized", value=value)
        return None
    if isinstance(value, (list, tuple, bool)):
        return None
    coerced = str(value).strip()
    return coerced or None


def classify_link(link_type: dict[str, Any], link_types: LinkTypes) -> EdgeKind | None:
    """Classify a tracker link type as containment, coverage or neither.

    Args:
        link_type: The ``type`` object of an issue link.
        link_types: Configured identifiers for the two hierarchy link types.

    Returns:
        EdgeKind.CONTAINMENT, EdgeKind.COVERAGE, or None when the link
        has no hierarchy meaning.
    """
    type_id = str(link_type.get("id") or "")
    name = (link_type.get("name") or "").lower()

    if type_id and type_id == link_types.containment_id:
        return EdgeKind.CONTAINMENT
    if type_id and type_id == link_types.coverage_id:
        return EdgeKind.COVERAGE
    if link_types.coverage_name and link_types.coverage_name.lower() in name:
        return EdgeKind.COVERAGE
    if link_types.containment_name and link_types.containment_name.lower() in name:
        return EdgeKind.CONTAINMENT
    return None


def iter_linked_issues(record: dict[str, Any], link_types: LinkTypes) -> list[LinkedIssue]:
    """List every issue linked from ``record`` through typed links.

    Hierarchy links only count when the link type's phrase for that side
    matches the expected direction; otherwise ``kind`` is None.
    """
    fields = record.get("fields") or {}
    linked: list[LinkedIssue] = []
    for link in fields.get("issuelinks") or []:
        link_type = link.get("type") or {}
        kind = classify_link(link_type, link_types)
        for direction in ("inward", "outward"):
            payload = link.get(f"{direction}Issue")
            if not payload or not payload.get("key"):
                continue
            phrase = (link_type.get(direction) or "").lower()
            side_kind = kind
            if kind is not None and _DIRECTION_PHRASES[(kind, direction)] not in phrase:
                side_kind = None
            linked.append(
                LinkedIssue(
                    key=payload["key"],
                    kind=side_kind,
                    direction=direction,
                    type_name=link_type.get("name") or "Unknown",
                    phrase=phrase,
                    node=IssueNode.from_record(payload),
                    embedded=_has_embedded_fields(payload),
                    link_kind=kind,
                )
            )
    return linked


def extract_relationships(
    record: dict[str, Any],
    link_types: LinkTypes | None = None,
    group_field: str = DEFAULT_GROUP_FIELD,
) -> Extraction:
    """Extract hierarchy edges and stub nodes from one issue record.

    Args:
        record: Raw issue record (``key`` plus ``fields``).
        link_types: Hierarchy link type identifiers; defaults apply if None.
        group_field: Name of the grouping (Epic Link) field.

    Returns:
        Extraction with the record's edges in discovery order: the group
        edge first, then typed links in the order the tracker listed them.
    """
    if link_types is None:
        link_types = LinkTypes()

    key = record.get("key")
    result = Extraction()
    if not key:
        return result

    fields = record.get("fields") or {}
    group_key = decode_group_reference(fields.get(group_field))
    if group_key:
        result.edges.append(Edge(group_key, key, EdgeKind.GROUP_LINK))

    for linked in iter_linked_issues(record, link_types):
        if linked.kind is None:
            continue
        if linked.is_parent_side:
            edge = Edge(linked.key, key, linked.kind)
        else:
            edge = Edge(key, linked.key, linked.kind)
        result.edges.append(edge)
        if linked.embedded:
            result.stubs.setdefault(linked.key, linked.node)

    return result


def _has_embedded_fields(payload: dict[str, Any]) -> bool:
    """True if a link payload carried the linked issue's summary or status."""
    fields = payload.get("fields") or {}
    return bool(fields.get("summary") or fields.get("status"))
