"""
issuegraph.mcp.serializers - Markdown and JSON views of hierarchy results.

Provides functions to turn the graph package's result objects into:
- JSON-compatible dicts (structured tool output, ``--json`` CLI output)
- Markdown text (the ``content`` field agents read)

Both the MCP server and the CLI format through this module.
"""

from __future__ import annotations

from typing import Any

from issuegraph.graph.folders import FolderOverlay
from issuegraph.graph.hierarchy import ForestHierarchy, HierarchySection, RootedHierarchy
from issuegraph.graph.IssueNode import IssueNode, IssueStatus, StatusCategory
from issuegraph.graph.navigation import IssueLinks, Navigation
from issuegraph.graph.relations import EdgeKind
from issuegraph.graph.render import OmittedChildren, RenderResult
from issuegraph.graph.views import (
    AssigneeView,
    FolderView,
    IssueDetails,
    SearchView,
    StructureView,
    TopologyTreeNode,
    TreeCounts,
)

SUMMARY_LIMIT = 70
TABLE_SUMMARY_LIMIT = 50

_CATEGORY_EMOJI = {
    StatusCategory.NEW: "📝",
    StatusCategory.IN_PROGRESS: "🔄",
    StatusCategory.DONE: "✅",
}

# Checked in order; the first substring found in the status name wins
_STATUS_NAME_EMOJI = (
    ("backlog", "📝"),
    ("to do", "📝"),
    ("new", "📝"),
    ("open", "📝"),
    ("in progress", "🔄"),
    ("в работе", "🔄"),
    ("in review", "👀"),
    ("under review", "👀"),
    ("review", "👀"),
    ("testing", "🧪"),
    ("done", "✅"),
    ("сделать", "✅"),
    ("готово", "✔️"),
    ("closed", "✔️"),
    ("resolved", "✔️"),
    ("выполнено", "✔️"),
    ("закрыто", "✔️"),
)

_TYPE_ICONS = {
    "Epic": "📦",
    "Эпик": "📦",
    "Story": "📖",
    "Task": "📋",
    "Задача": "📋",
    "Bug": "🐛",
    "Ошибка": "🐛",
    "Sub-task": "📌",
    "Subtask": "📌",
}

UNAVAILABLE_ICON = "❓"


# ─────────────────────────────────────────────────────────────────────────────
# Markers
# ─────────────────────────────────────────────────────────────────────────────


def status_emoji(status: IssueStatus) -> str:
    """Emoji for a status: by category when known, else by status name."""
    if status.category in _CATEGORY_EMOJI:
        return _CATEGORY_EMOJI[status.category]
    name = status.name.lower()
    for needle, emoji in _STATUS_NAME_EMOJI:
        if needle in name:
            return emoji
    return "⚪"


def type_icon(issue_type: str) -> str:
    return _TYPE_ICONS.get(issue_type, "📄")


def truncate(text: str, limit: int = SUMMARY_LIMIT) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# ─────────────────────────────────────────────────────────────────────────────
# JSON
# ─────────────────────────────────────────────────────────────────────────────


def serialize_node(node: IssueNode) -> dict[str, Any]:
    return {
        "key": node.key,
        "summary": node.summary,
        "status": node.status.name,
        "status_category": node.status.category.value,
        "priority": node.priority,
        "issue_type": node.issue_type,
        "unavailable": node.unavailable,
    }


def serialize_render(render: RenderResult) -> list[dict[str, Any]]:
    """Serialize render entries in order.

    Node entries carry ``key``, ``depth``, ``is_last_sibling`` and the node
    fields; omission markers carry ``omitted``, ``parent_key`` and ``depth``.
    """
    items: list[dict[str, Any]] = []
    for entry in render.entries:
        if isinstance(entry, OmittedChildren):
            items.append(
                {"omitted": entry.count, "parent_key": entry.parent_key, "depth": entry.depth}
            )
            continue
        item: dict[str, Any] = {
            "key": entry.key,
            "depth": entry.depth,
            "is_last_sibling": entry.is_last_sibling,
        }
        if entry.node is not None:
            item.update(serialize_node(entry.node))
        else:
            item["unavailable"] = True
        items.append(item)
    return items


def serialize_edge_counts(edge_counts: dict[EdgeKind, int]) -> dict[str, int]:
    return {kind.value: edge_counts.get(kind, 0) for kind in EdgeKind.ordered()}


def serialize_overlay(overlay: FolderOverlay) -> dict[str, Any]:
    return {
        "available": overlay.available,
        "topology_id": overlay.topology_id,
        "error": overlay.error,
        "folder_count": overlay.folder_count,
        "issues_in_folders": len(overlay.issues_in_folders),
        "buckets": [
            {"folder": bucket.name, "groups": list(bucket.group_keys)}
            for bucket in overlay.buckets
        ],
    }


def serialize_forest(hierarchy: ForestHierarchy) -> dict[str, Any]:
    return {
        "query": hierarchy.query,
        "total": hierarchy.total,
        "node_count": hierarchy.node_count,
        "sections": [
            {
                "root_key": section.root_key,
                "is_group": section.is_group,
                "entries": serialize_render(section.render),
            }
            for section in hierarchy.sections
        ],
        "folders": serialize_overlay(hierarchy.overlay),
        "unavailable_keys": list(hierarchy.unavailable_keys),
        "edge_counts": serialize_edge_counts(hierarchy.edge_counts),
    }


def serialize_rooted(hierarchy: RootedHierarchy) -> dict[str, Any]:
    return {
        "root": serialize_node(hierarchy.root),
        "max_depth": hierarchy.max_depth,
        "depth_limit_reached": hierarchy.depth_limit_reached,
        "node_count": hierarchy.node_count,
        "entries": serialize_render(hierarchy.render),
        "unavailable_keys": list(hierarchy.unavailable_keys),
        "edge_counts": serialize_edge_counts(hierarchy.edge_counts),
    }


def serialize_links(links: IssueLinks) -> dict[str, Any]:
    def linked(items):
        return [
            {
                "direction": item.direction,
                "type": item.type_name,
                "description": item.phrase,
                **serialize_node(item.node),
            }
            for item in items
        ]

    return {
        "issue": serialize_node(links.issue),
        "epic": serialize_node(links.epic) if links.epic else None,
        "requirement": linked(links.requirement),
        "parent_child": linked(links.parent_child),
        "other": linked(links.other),
    }


def serialize_navigation(navigation: Navigation) -> dict[str, Any]:
    return {
        "issue": serialize_node(navigation.issue),
        "direction": navigation.direction.value,
        "related": [serialize_node(node) for node in navigation.related],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Markdown
# ─────────────────────────────────────────────────────────────────────────────


def _issue_line(node: IssueNode | None, key: str) -> str:
    if node is None or (node.unavailable and not node.summary):
        return f"{UNAVAILABLE_ICON} **{key}** - (not found or not accessible)"
    icon = UNAVAILABLE_ICON if node.unavailable else type_icon(node.issue_type)
    return f"{icon} **{key}** - {truncate(node.summary)}"


def _detail_line(node: IssueNode | None) -> str:
    if node is None or node.unavailable:
        return "⚠️ unavailable"
    return f"{status_emoji(node.status)} {node.status.name} | {node.priority or 'None'}"


def render_tree_lines(render: RenderResult, skip_root: bool = False) -> list[str]:
    """Draw render entries as an indented box-drawing tree.

    Each issue takes two lines: key and summary, then status and priority.
    With ``skip_root`` the depth-0 entries are left out (their children
    keep their connectors).
    """
    lines: list[str] = []
    last_at_depth: list[bool] = []

    def prefix(depth: int) -> str:
        return "".join("    " if last_at_depth[i] else "│   " for i in range(1, depth))

    for entry in render.entries:
        if isinstance(entry, OmittedChildren):
            lines.append(f"{prefix(entry.depth)}    ... and {entry.count} more")
            continue

        del last_at_depth[entry.depth :]
        last_at_depth.append(entry.is_last_sibling)
        if entry.depth == 0:
            if not skip_root:
                lines.append(_issue_line(entry.node, entry.key))
                lines.append(f"   {_detail_line(entry.node)}")
            continue

        lead = prefix(entry.depth)
        connector = "└── " if entry.is_last_sibling else "├── "
        continuation = "    " if entry.is_last_sibling else "│   "
        lines.append(f"{lead}{connector}{_issue_line(entry.node, entry.key)}")
        lines.append(f"{lead}{continuation}   {_detail_line(entry.node)}")
    return lines


def _statistics(edge_counts: dict[EdgeKind, int], node_count: int) -> list[str]:
    lines = ["", "💡 **Statistics**:"]
    for kind in EdgeKind.ordered():
        lines.append(f"- Issues with {kind.label}: {edge_counts.get(kind, 0)}")
    lines.append(f"- Total issues in hierarchy: {node_count}")
    return lines


def _group_section_lines(section: HierarchySection, heading: str) -> list[str]:
    root = section.root
    node = root.node
    if node is None or (node.unavailable and not node.summary):
        title = f"{section.root_key}: (epic not found or not accessible)"
    else:
        title = f"{section.root_key}: {truncate(node.summary)}"
    lines = [f"{heading} 📦 {title}"]
    if node is not None and not node.unavailable:
        lines.append(
            f"   {status_emoji(node.status)} {node.status.name} | "
            f"{node.priority or 'None'} | Issues: {section.member_count()}"
        )
    else:
        lines.append(f"   Issues: {section.member_count()}")
    lines.append("")
    lines.extend(render_tree_lines(section.render, skip_root=True))
    lines.append("")
    return lines


def forest_to_markdown(hierarchy: ForestHierarchy) -> str:
    """Markdown view of a forest build.

    Layout: header with counts, folder sections (when the overlay found
    folders), epic sections, ungrouped issues, then statistics.
    """
    overlay = hierarchy.overlay
    group_count = len(hierarchy.group_sections())
    lines = [
        "# 🌳 Issue Hierarchy",
        "",
        f"**Query**: `{hierarchy.query}`",
        "**Built from**: Folders (Structure) → Epic Link → Parent-Child → "
        "Requirement (covers)",
        "",
    ]
    counts = f"**Total issues**: {hierarchy.total} | **Epics**: {group_count}"
    if overlay.folder_count:
        counts += f" | **Folders**: {overlay.folder_count}"
    if overlay.issues_in_folders:
        counts += f" | **Issues in folders**: {len(overlay.issues_in_folders)}"
    lines.extend([counts, ""])

    if overlay.error:
        lines.extend([f"⚠️ **Could not load folders**: {overlay.error}", ""])
    elif overlay.topology_id and not overlay.folder_count and group_count:
        lines.extend(
            [
                "ℹ️ **Note**: No folders found for these issues. "
                "Showing the hierarchy through Epic Links.",
                "",
            ]
        )

    if not hierarchy.sections:
        lines.append("**No issues found** for this query.")
        return "\n".join(lines)

    if overlay.folder_count:
        lines.extend(["## 📁 Folders and issue hierarchy", ""])
        shown: set[str] = set()
        for bucket in overlay.buckets:
            if bucket.is_ungrouped:
                continue
            lines.extend([f"### 📁 {bucket.name}", ""])
            for group_key in bucket.group_keys:
                section = hierarchy.section(group_key)
                if section is None:
                    continue
                if group_key in shown:
                    lines.extend([f"#### 📦 {group_key} (see above)", ""])
                    continue
                shown.add(group_key)
                lines.extend(_group_section_lines(section, "####"))
        ungrouped = [hierarchy.section(key) for key in overlay.ungrouped()]
        if ungrouped:
            lines.extend(["## 📦 Epics without folders", ""])
            for section in ungrouped:
                if section is not None:
                    lines.extend(_group_section_lines(section, "###"))
    elif group_count:
        lines.extend(["## 📦 Epics and related issues", ""])
        for section in hierarchy.group_sections():
            lines.extend(_group_section_lines(section, "###"))

    root_sections = hierarchy.root_sections()
    if root_sections:
        lines.extend(["## 📋 Issues without epics", ""])
        for section in root_sections:
            lines.extend(render_tree_lines(section.render))
        lines.append("")

    if hierarchy.unavailable_keys:
        keys = ", ".join(hierarchy.unavailable_keys)
        lines.extend([f"⚠️ **Partial data**: could not load {keys}", ""])

    lines.extend(_statistics(hierarchy.edge_counts, hierarchy.node_count))
    return "\n".join(lines)


def rooted_to_markdown(hierarchy: RootedHierarchy) -> str:
    """Markdown view of a rooted build."""
    lines = [
        f"# 🌳 Hierarchy from {hierarchy.root_key}",
        "",
        f"**Root issue**: {hierarchy.root.summary}",
        f"**Issues in hierarchy**: {hierarchy.node_count}",
        f"**Max depth**: {hierarchy.max_depth}",
        "",
    ]
    lines.extend(render_tree_lines(hierarchy.render))
    lines.append("")
    if hierarchy.depth_limit_reached:
        lines.extend(
            [
                f"⚠️ **Depth limit reached**: relations continue past depth "
                f"{hierarchy.max_depth}. Increase max_depth to see more.",
                "",
            ]
        )
    if hierarchy.unavailable_keys:
        keys = ", ".join(hierarchy.unavailable_keys)
        lines.extend([f"⚠️ **Partial data**: could not load {keys}", ""])
    lines.extend(_statistics(hierarchy.edge_counts, hierarchy.node_count))
    return "\n".join(lines)


def links_to_markdown(links: IssueLinks) -> str:
    """Markdown view of an issue's relations by category."""
    issue = links.issue
    lines = [
        f"# 🔗 Links for {issue.key}",
        "",
        f"**Issue**: {issue.summary}",
        f"**Status**: {issue.status.name}",
        "",
    ]

    if links.epic:
        lines.extend(["## 📦 Epic Links", ""])
        lines.append(f"- **{links.epic.key}**: {links.epic.summary or 'Epic'}")
        lines.append("")

    for title, items in (
        ("## 🔗 Requirement Links (covers/covered by)", links.requirement),
        ("## 👨‍👩‍👧‍👦 Parent-Child Links", links.parent_child),
        ("## 🔗 Other Links", links.other),
    ):
        if not items:
            continue
        lines.extend([title, ""])
        for item in items:
            arrow = "←" if item.direction == "inward" else "→"
            lines.append(f"{arrow} **{item.key}**: {item.node.summary or 'No summary'}")
            lines.append(
                f"   Type: {item.type_name} | {item.phrase} | "
                f"Status: {item.node.status.name}"
            )
            lines.append("")

    if links.is_empty():
        lines.extend(["**No links found** for this issue.", ""])
    return "\n".join(lines)


def navigation_to_markdown(navigation: Navigation) -> str:
    """Markdown view of one navigation step, as a table."""
    issue = navigation.issue
    direction = navigation.direction
    lines = [
        f"# 🧭 {direction.title} of {issue.key}",
        "",
        f"**From Issue**: {issue.key} - {issue.summary}",
        f"**Direction**: {direction.description}",
        "",
    ]
    if not navigation.related:
        lines.append("**No related issues found** in this direction.")
        return "\n".join(lines)

    lines.append("| Issue Key | Summary | Status | Priority | Type |")
    lines.append("|-----------|---------|--------|----------|------|")
    for node in navigation.related:
        summary = truncate(node.summary or "No summary", TABLE_SUMMARY_LIMIT)
        lines.append(
            f"| {node.key} | {summary} | {node.status.name} | "
            f"{node.priority or 'None'} | {node.issue_type or 'Task'} |"
        )
    return "\n".join(lines)


def not_found_markdown(key: str) -> str:
    return f"# ❌ Issue Not Found\n\nIssue **{key}** not found or not accessible."


# ─────────────────────────────────────────────────────────────────────────────
# Read-only views
# ─────────────────────────────────────────────────────────────────────────────


def serialize_tree_node(node: TopologyTreeNode) -> dict[str, Any]:
    element = node.element
    return {
        "id": element.id,
        "name": element.name,
        "is_folder": node.is_folder,
        "issue_key": element.issue_key,
        "issue": serialize_node(node.issue) if node.issue else None,
        "children": [serialize_tree_node(child) for child in node.children],
    }


def serialize_counts(counts: TreeCounts) -> dict[str, Any]:
    return {
        "folders": counts.folders,
        "issues": counts.issues,
        "open_issues": counts.open_issues,
        "closed_issues": counts.closed_issues,
        "statuses": dict(counts.statuses),
        "types": dict(counts.types),
    }


def serialize_structure_view(view: StructureView) -> dict[str, Any]:
    return {
        "topology_id": view.topology_id,
        "issue_key": view.issue_key,
        "element_count": view.element_count,
        "roots": [serialize_tree_node(root) for root in view.roots],
        "counts": serialize_counts(view.counts),
    }


def serialize_folder_view(view: FolderView) -> dict[str, Any]:
    return {
        "topology_id": view.topology_id,
        "only_open": view.only_open,
        "folder": serialize_tree_node(view.folder),
        "counts": serialize_counts(view.counts),
    }


def serialize_assignee_view(view: AssigneeView) -> dict[str, Any]:
    return {
        "assignee": view.assignee,
        "query": view.query,
        "total": view.total,
        "issues": [serialize_node(node) for node in view.issues],
        "topology_id": view.topology_id,
        "roots": [serialize_tree_node(root) for root in view.roots],
        "folders": {name: list(keys) for name, keys in view.folders.items()},
        "unplaced": list(view.unplaced),
        "error": view.error,
    }


def serialize_issue_details(details: IssueDetails) -> dict[str, Any]:
    return {
        "issue": serialize_node(details.node),
        "description": details.description,
        "assignee": details.assignee,
        "reporter": details.reporter,
        "project": details.project,
        "created": details.created,
        "updated": details.updated,
        "due": details.due,
        "labels": list(details.labels),
        "components": list(details.components),
        "fix_versions": list(details.fix_versions),
        "parent": serialize_node(details.parent) if details.parent else None,
        "subtasks": [serialize_node(node) for node in details.subtasks],
        "resolution": details.resolution,
        "time_tracking": dict(details.time_tracking),
        "comments": [
            {"author": c.author, "created": c.created, "body": c.body} for c in details.comments
        ],
        "comment_total": details.comment_total,
        "worklogs": [
            {
                "author": w.author,
                "time_spent": w.time_spent,
                "started": w.started,
                "comment": w.comment,
            }
            for w in details.worklogs
        ],
        "worklog_total": details.worklog_total,
    }


def serialize_search(view: SearchView) -> dict[str, Any]:
    return {
        "query": view.query,
        "total": view.total,
        "issues": [
            {**serialize_node(row.node), "assignee": row.assignee, "updated": row.updated}
            for row in view.rows
        ],
    }


def topology_tree_lines(roots: list[TopologyTreeNode]) -> list[str]:
    """Draw topology nodes as a box-drawing tree.

    Folders take one line; issues take two, like render_tree_lines, or
    one when their details were not looked up.
    """
    lines: list[str] = []

    def draw(node: TopologyTreeNode, lead: str, is_last: bool, top: bool) -> None:
        connector = "" if top else ("└── " if is_last else "├── ")
        continuation = "" if top else ("    " if is_last else "│   ")
        element = node.element
        if node.is_folder:
            lines.append(f"{lead}{connector}📁 **{element.name}** (Folder)")
        elif element.issue_key and node.issue is None:
            lines.append(f"{lead}{connector}{type_icon('')} **{element.issue_key}**")
        elif element.issue_key:
            lines.append(f"{lead}{connector}{_issue_line(node.issue, element.issue_key)}")
            lines.append(f"{lead}{continuation}   {_detail_line(node.issue)}")
        else:
            label = element.name or element.element_type or "Item"
            lines.append(f"{lead}{connector}▫️ {label}")
        for index, child in enumerate(node.children):
            draw(child, lead + continuation, index == len(node.children) - 1, False)

    for root in roots:
        draw(root, "", True, True)
    return lines


def _count_lines(counts: TreeCounts) -> list[str]:
    lines = ["## 📊 Statistics", "", f"- **Folders**: {counts.folders}"]
    lines.append(f"- **Issues**: {counts.issues}")
    lines.append(f"- **Open Issues**: {counts.open_issues}")
    lines.append(f"- **Closed Issues**: {counts.closed_issues}")
    if counts.statuses:
        lines.extend(["", "### Status Distribution"])
        lines.extend(f"- {status}: {n}" for status, n in counts.statuses.items())
    if counts.types:
        lines.extend(["", "### Type Distribution"])
        lines.extend(f"- {type_icon(name)} {name}: {n}" for name, n in counts.types.items())
    return lines


def structure_to_markdown(view: StructureView) -> str:
    lines = [
        "# 🌳 Structure Hierarchy",
        "",
        f"**Structure ID**: {view.topology_id}",
        f"**Total Elements**: {view.element_count}",
    ]
    if view.issue_key:
        lines.append(f"**Filtered by Issue**: {view.issue_key}")
    lines.append("")
    if not view.roots:
        if view.issue_key:
            lines.append(f"**{view.issue_key} is not in this structure.**")
        else:
            lines.append("**No elements found** in this structure.")
        return "\n".join(lines)
    lines.extend(topology_tree_lines(view.roots))
    lines.append("")
    lines.extend(_count_lines(view.counts))
    return "\n".join(lines)


def folder_to_markdown(view: FolderView) -> str:
    element = view.folder.element
    lines = [
        f"# 📁 Folder Hierarchy: {element.name}",
        "",
        f"**Structure ID**: {view.topology_id}",
        f"**Folder ID**: {element.id}",
    ]
    if view.only_open:
        lines.append("**Filter**: Only open issues")
    lines.append("")
    lines.extend(topology_tree_lines([view.folder]))
    lines.append("")
    lines.extend(_count_lines(view.counts))
    return "\n".join(lines)


def assignee_to_markdown(view: AssigneeView) -> str:
    lines = [
        f"# 📋 Issues of {view.assignee} by folder",
        "",
        f"**Query**: `{view.query}`",
        f"**Active issues**: {view.total}",
        "",
    ]
    if not view.issues:
        lines.append(f"**No active issues found** for {view.assignee}.")
        return "\n".join(lines)

    if view.error:
        lines.extend([f"⚠️ **Could not load folders**: {view.error}", ""])
    elif view.topology_id is None:
        lines.extend(["ℹ️ **Note**: No structure id set; issues stay outside folders.", ""])

    if view.roots:
        lines.extend([f"## 📁 Structure {view.topology_id}", ""])
        lines.extend(topology_tree_lines(view.roots))
        lines.append("")

    if view.unplaced:
        by_key = {node.key: node for node in view.issues}
        lines.extend(["## 📋 Issues outside any folder", ""])
        for key in view.unplaced:
            node = by_key[key]
            lines.append(f"- {status_emoji(node.status)} **{key}**: {truncate(node.summary)}")
        lines.append("")
    return "\n".join(lines)


def issue_details_to_markdown(details: IssueDetails) -> str:
    node = details.node
    status = node.status.name
    if details.status_category:
        status += f" ({details.status_category})"
    lines = [
        f"# 📋 Issue Details: {node.key}",
        "",
        f"## {node.summary}",
        "",
        "### Basic Information",
        f"- **Status**: {status_emoji(node.status)} {status}",
        f"- **Type**: {type_icon(node.issue_type)} {node.issue_type or 'Unknown'}",
        f"- **Priority**: {node.priority or 'None'}",
    ]
    if details.project:
        lines.append(f"- **Project**: {details.project}")
    lines.extend(
        [
            "",
            "### People",
            f"- **Assignee**: {details.assignee}",
            f"- **Reporter**: {details.reporter}",
            "",
            "### Dates",
            f"- **Created**: {details.created or 'Unknown'}",
            f"- **Updated**: {details.updated or 'Unknown'}",
        ]
    )
    if details.due:
        lines.append(f"- **Due Date**: {details.due}")

    if details.time_tracking:
        lines.extend(["", "### Time Tracking"])
        for name, value in details.time_tracking.items():
            lines.append(f"- **{name.replace('_', ' ').capitalize()}**: {value}")

    lines.extend(["", "### Labels & Components"])
    lines.append(f"- **Labels**: {', '.join(details.labels) or 'None'}")
    lines.append(f"- **Components**: {', '.join(details.components) or 'None'}")
    lines.append(f"- **Fix Versions**: {', '.join(details.fix_versions) or 'None'}")

    if details.description:
        lines.extend(["", "### Description", details.description])
    if details.parent:
        parent = details.parent
        lines.extend(["", "### Parent Issue", f"- **{parent.key}**: {parent.summary}"])
    if details.subtasks:
        lines.extend(["", f"### Subtasks ({len(details.subtasks)})"])
        for sub in details.subtasks:
            lines.append(f"- **{sub.key}**: {sub.summary} ({sub.status.name})")
    if details.resolution:
        lines.extend(["", "### Resolution", f"- {details.resolution}"])
    if details.comments:
        lines.extend(["", f"### Recent Comments ({details.comment_total} total)"])
        for comment in details.comments:
            lines.extend(["", f"**{comment.author}** ({comment.created[:10]}):", comment.body])
    if details.worklogs:
        lines.extend(["", f"### Recent Work Logs ({details.worklog_total} total)"])
        for worklog in details.worklogs:
            line = f"- **{worklog.author}**: {worklog.time_spent} on {worklog.started[:10]}"
            if worklog.comment:
                line += f" - {worklog.comment}"
            lines.append(line)
    return "\n".join(lines)


def search_to_markdown(view: SearchView) -> str:
    lines = [
        "# 🔍 Issue Search Results",
        "",
        f"**Query**: `{view.query}`",
        f"**Total Found**: {view.total} issues (showing {len(view.rows)})",
        "",
    ]
    if not view.rows:
        lines.append("**No issues found** for this query.")
        return "\n".join(lines)
    lines.append("| Key | Summary | Status | Assignee | Priority | Type | Updated |")
    lines.append("|-----|---------|--------|----------|----------|------|---------|")
    for row in view.rows:
        node = row.node
        summary = truncate(node.summary or "No summary", TABLE_SUMMARY_LIMIT)
        lines.append(
            f"| {node.key} | {summary} | {node.status.name} | {row.assignee} | "
            f"{node.priority or 'None'} | {node.issue_type or 'Task'} | {row.updated[:10]} |"
        )
    return "\n".join(lines)
