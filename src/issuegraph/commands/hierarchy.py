"""
issuegraph.commands.hierarchy - Show the hierarchy of a query's issues.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from issuegraph.commands import common
from issuegraph.exceptions import IssueGraphError
from issuegraph.graph.hierarchy import (
    DEFAULT_QUERY,
    HierarchyOptions,
    build_forest_hierarchy,
    build_forest_queries,
)
from issuegraph.mcp.serializers import forest_to_markdown, serialize_forest
from issuegraph.tracker.repository import JiraIssueRepository, StructureTopologyProvider


def run(args: argparse.Namespace) -> int:
    """Run the hierarchy command."""
    config = common.load_configuration(args)
    if config is None or not common.require_tracker(config):
        return common.EXIT_ERROR
    return asyncio.run(_run(args, config))


async def _run(args: argparse.Namespace, config: dict[str, Any]) -> int:
    options = HierarchyOptions.from_config(config)
    default_query = config.get("hierarchy", {}).get("default_query", DEFAULT_QUERY)
    query, epic_query = build_forest_queries(args.jql, args.assignee, default_query)

    async with common.open_client(config) as client:
        try:
            hierarchy = await build_forest_hierarchy(
                JiraIssueRepository(client),
                query,
                args.max_results or options.max_results,
                topology=StructureTopologyProvider(client) if options.topology_id else None,
                epic_query=epic_query,
                options=options,
            )
        except IssueGraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_ERROR

    if args.json:
        common.print_json(serialize_forest(hierarchy))
    else:
        print(forest_to_markdown(hierarchy))
    return common.EXIT_OK
