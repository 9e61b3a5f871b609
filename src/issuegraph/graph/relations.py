"""Relations - Edge types and relationship semantics.

This module defines the typed edges between issues:
- EdgeKind: Enum of relationship types, in child-ordering priority
- Edge: A direction-normalized edge between two issue keys
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EdgeKind(Enum):
    """Types of edges in the issue hierarchy.

    Each edge kind comes from a different tracker mechanism:
    - GROUP_LINK: Epic Link field; the epic groups the issue
    - CONTAINMENT: "is parent of" / "is child of" issue link
    - COVERAGE: "covers" / "covered by" requirement link

    Declaration order is the order in which children of the same parent
    are listed; see ``EdgeKind.ordered()``.
    """

    GROUP_LINK = "group_link"
    CONTAINMENT = "containment"
    COVERAGE = "coverage"

    @classmethod
    def ordered(cls) -> tuple[EdgeKind, ...]:
        """Return edge kinds in child-ordering priority."""
        return (cls.GROUP_LINK, cls.CONTAINMENT, cls.COVERAGE)

    @property
    def label(self) -> str:
        """Human-readable name used in statistics and link listings."""
        return _LABELS[self]


_LABELS = {
    EdgeKind.GROUP_LINK: "Epic Link",
    EdgeKind.CONTAINMENT: "parent-child",
    EdgeKind.COVERAGE: "covers (Requirement)",
}


@dataclass(frozen=True)
class Edge:
    """A typed edge between two issues.

    Direction is normalized when the edge is extracted: ``parent_key`` is
    always the coarser item (the epic, the container, the covering
    requirement) regardless of which side of the raw link carried it.

    Attributes:
        parent_key: Key of the containing/grouping/covering issue.
        child_key: Key of the contained/grouped/covered issue.
        kind: The type of relationship.
    """

    parent_key: str
    child_key: str
    kind: EdgeKind

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"{self.parent_key} --[{self.kind.value}]--> {self.child_key}"
