"""IssueNode - Node representation for the issue hierarchy.

This module provides the node data structures:
- StatusCategory: Enum of tracker status categories
- IssueStatus: Status name plus category
- IssueNode: Immutable issue snapshot, real or placeholder
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class StatusCategory(Enum):
    """Status categories shared by all tracker workflows."""

    NEW = "new"
    IN_PROGRESS = "indeterminate"
    DONE = "done"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Any) -> StatusCategory:
        """Decode a status category from a tracker payload.

        Accepts the category object (``{"key": "done", "name": "Done"}``),
        its key, or its display name.

        Args:
            raw: Category payload as found under ``status.statusCategory``.

        Returns:
            The matching StatusCategory, UNKNOWN when nothing matches.
        """
        if isinstance(raw, dict):
            candidates = [raw.get("key"), raw.get("name")]
        else:
            candidates = [raw]

        for candidate in candidates:
            if not isinstance(candidate, str) or not candidate:
                continue
            value = candidate.lower()
            if value in ("new", "todo", "to do", "undefined") or "new" in value:
                return cls.NEW
            if value == "indeterminate" or "progress" in value:
                return cls.IN_PROGRESS
            if "done" in value or "complete" in value:
                return cls.DONE
        return cls.UNKNOWN


@dataclass(frozen=True)
class IssueStatus:
    """Workflow status of an issue."""

    name: str = "Unknown"
    category: StatusCategory = StatusCategory.UNKNOWN

    @classmethod
    def from_payload(cls, raw: Any) -> IssueStatus:
        """Build a status from the ``status`` field of an issue record."""
        if isinstance(raw, dict):
            name = raw.get("name") or "Unknown"
            return cls(name=name, category=StatusCategory.parse(raw.get("statusCategory")))
        if isinstance(raw, str) and raw:
            return cls(name=raw)
        return cls()


@dataclass(frozen=True)
class IssueNode:
    """An issue in the hierarchy.

    Nodes are immutable snapshots taken during one build pass; identity is
    the key. A node is *unavailable* when its record could not be fetched
    and only partial (or no) data is known about it.

    Attributes:
        key: Tracker issue key (e.g. "PROJ-123").
        summary: One-line issue title.
        status: Workflow status.
        priority: Priority name, empty when unknown.
        issue_type: Issue type name (e.g. "Epic", "Story").
        unavailable: True for placeholder nodes.
    """

    key: str
    summary: str = ""
    status: IssueStatus = field(default_factory=IssueStatus)
    priority: str = ""
    issue_type: str = ""
    unavailable: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> IssueNode:
        """Build a node from a raw tracker issue record.

        Args:
            record: Issue payload with ``key`` and an optional ``fields`` dict.

        Returns:
            A populated IssueNode.

        Raises:
            ValueError: If the record carries no key.
        """
        key = record.get("key")
        if not key:
            raise ValueError("Issue record has no key")
        fields = record.get("fields") or {}
        return cls(
            key=key,
            summary=fields.get("summary") or "",
            status=IssueStatus.from_payload(fields.get("status")),
            priority=_named(fields.get("priority")),
            issue_type=_named(fields.get("issuetype")),
        )

    @classmethod
    def placeholder(cls, key: str, stub: IssueNode | None = None) -> IssueNode:
        """Build an unavailable node, keeping whatever a stub already knew."""
        if stub is not None:
            return replace(stub, key=key, unavailable=True)
        return cls(key=key, unavailable=True)

    def is_group_type(self, group_types: set[str] | frozenset[str]) -> bool:
        """True if this issue's type is one of the grouping (epic) types."""
        return self.issue_type.lower() in group_types


def _named(raw: Any) -> str:
    """Extract ``name`` from a named tracker object such as priority."""
    if isinstance(raw, dict):
        return raw.get("name") or ""
    if isinstance(raw, str):
        return raw
    return ""
