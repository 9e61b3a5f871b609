"""Graph module - Issue relationship graph and hierarchy builds.

Exports:
- IssueNode: Immutable issue snapshot (real or placeholder)
- IssueStatus / StatusCategory: Workflow status model
- Edge: Typed, direction-normalized edge between issues
- EdgeKind: Enum of relationship types, in child-ordering priority
- IssueGraph: Per-call adjacency and node registry
- LinkTypes / extract_relationships: Raw record to edges
- FolderElement / FolderTopology / FolderOverlay: Folder grouping
- RenderedNode / OmittedChildren / RenderResult / render_tree: Tree walk
- HierarchyOptions, build_forest_hierarchy, build_rooted_hierarchy
- StructureView / FolderView / AssigneeView: Read-only Structure trees

Note: the build operations live in issuegraph.graph.hierarchy.
"""

from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.extractor import (
    Extraction,
    LinkTypes,
    decode_group_reference,
    extract_relationships,
)
from issuegraph.graph.folders import FolderBucket, FolderElement, FolderOverlay, FolderTopology
from issuegraph.graph.hierarchy import (
    ForestHierarchy,
    HierarchyOptions,
    HierarchySection,
    RootedHierarchy,
    build_forest_hierarchy,
    build_rooted_hierarchy,
)
from issuegraph.graph.IssueNode import IssueNode, IssueStatus, StatusCategory
from issuegraph.graph.relations import Edge, EdgeKind
from issuegraph.graph.render import OmittedChildren, RenderedNode, RenderResult, render_tree
from issuegraph.graph.views import (
    AssigneeView,
    FolderView,
    StructureView,
    build_assignee_view,
    build_folder_view,
    build_structure_view,
)

__all__ = [
    "IssueNode",
    "IssueStatus",
    "StatusCategory",
    "Edge",
    "EdgeKind",
    "IssueGraph",
    "Extraction",
    "LinkTypes",
    "decode_group_reference",
    "extract_relationships",
    "FolderBucket",
    "FolderElement",
    "FolderOverlay",
    "FolderTopology",
    "OmittedChildren",
    "RenderedNode",
    "RenderResult",
    "render_tree",
    "ForestHierarchy",
    "HierarchyOptions",
    "HierarchySection",
    "RootedHierarchy",
    "build_forest_hierarchy",
    "build_rooted_hierarchy",
    "AssigneeView",
    "FolderView",
    "StructureView",
    "build_assignee_view",
    "build_folder_view",
    "build_structure_view",
]
