"""
issuegraph.commands.structure - Show Jira Structure trees.

Serves the `structure`, `folder` and `assigned` commands. The first two
read the Structure given by --id, or [structure] id when it is omitted;
`assigned` always uses [structure] id.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from issuegraph.commands import common
from issuegraph.exceptions import FolderNotFoundError, IssueGraphError
from issuegraph.graph.hierarchy import HierarchyOptions
from issuegraph.graph.views import build_assignee_view, build_folder_view, build_structure_view
from issuegraph.mcp import serializers
from issuegraph.tracker.repository import JiraIssueRepository, StructureTopologyProvider


def run(args: argparse.Namespace) -> int:
    """Run the structure, folder or assigned command."""
    config = common.load_configuration(args)
    if config is None or not common.require_tracker(config):
        return common.EXIT_ERROR
    return asyncio.run(_run(args, config))


async def _run(args: argparse.Namespace, config: dict[str, Any]) -> int:
    options = HierarchyOptions.from_config(config)
    topology_id = getattr(args, "id", None) or options.topology_id

    async with common.open_client(config) as client:
        repository = JiraIssueRepository(client)
        provider = StructureTopologyProvider(client)
        try:
            if args.command == "folder":
                view = await build_folder_view(
                    provider,
                    topology_id,
                    args.folder_id,
                    repository,
                    only_open=args.open,
                    max_results=options.topology_max_results,
                )
                data = serializers.serialize_folder_view(view)
                text = serializers.folder_to_markdown(view)
            elif args.command == "assigned":
                view = await build_assignee_view(
                    repository,
                    args.assignee,
                    provider if options.topology_id else None,
                    options.topology_id,
                    max_results=args.max_results or options.max_results,
                    topology_max_results=options.topology_max_results,
                )
                data = serializers.serialize_assignee_view(view)
                text = serializers.assignee_to_markdown(view)
            else:
                view = await build_structure_view(
                    provider,
                    topology_id,
                    repository,
                    issue_key=args.issue.upper() if args.issue else None,
                    max_results=args.max_results or options.topology_max_results,
                )
                data = serializers.serialize_structure_view(view)
                text = serializers.structure_to_markdown(view)
        except FolderNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_NOT_FOUND
        except IssueGraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_ERROR

    if args.json:
        common.print_json(data)
    else:
        print(text)
    return common.EXIT_OK
