"""
issuegraph.commands.tree - Show everything within N relations of one issue.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from issuegraph.commands import common
from issuegraph.exceptions import IssueGraphError, IssueNotFoundError
from issuegraph.graph.hierarchy import HierarchyOptions, build_rooted_hierarchy
from issuegraph.graph.roots import DEFAULT_MAX_DEPTH
from issuegraph.mcp.serializers import rooted_to_markdown, serialize_rooted
from issuegraph.tracker.repository import JiraIssueRepository
from issuegraph.tracker.state import resolve_issue_key


def run(args: argparse.Namespace) -> int:
    """Run the tree command."""
    config = common.load_configuration(args)
    if config is None or not common.require_tracker(config):
        return common.EXIT_ERROR
    return asyncio.run(_run(args, config))


async def _run(args: argparse.Namespace, config: dict[str, Any]) -> int:
    store = common.last_issue_store(config)
    key = resolve_issue_key(args.key, store)
    if not key:
        print("Error: no issue key given and no issue viewed yet", file=sys.stderr)
        return common.EXIT_ERROR

    max_depth = args.max_depth
    if max_depth is None:
        max_depth = config.get("hierarchy", {}).get("max_depth", DEFAULT_MAX_DEPTH)
    options = HierarchyOptions.from_config(config)

    async with common.open_client(config) as client:
        try:
            hierarchy = await build_rooted_hierarchy(
                JiraIssueRepository(client),
                key,
                int(max_depth),
                args.include_epic,
                options=options,
            )
        except IssueNotFoundError:
            print(f"Error: Issue {key} not found or not accessible", file=sys.stderr)
            return common.EXIT_NOT_FOUND
        except IssueGraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_ERROR

    store.set(key)
    if args.json:
        common.print_json(serialize_rooted(hierarchy))
    else:
        print(rooted_to_markdown(hierarchy))
    return common.EXIT_OK
