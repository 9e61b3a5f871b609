"""
issuegraph.commands.links - Show an issue's links by category.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from issuegraph.commands import common
from issuegraph.exceptions import IssueGraphError, IssueNotFoundError
from issuegraph.graph.hierarchy import HierarchyOptions
from issuegraph.graph.navigation import describe_issue_links
from issuegraph.mcp.serializers import links_to_markdown, serialize_links
from issuegraph.tracker.repository import JiraIssueRepository
from issuegraph.tracker.state import resolve_issue_key


def run(args: argparse.Namespace) -> int:
    """Run the links command."""
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

    async with common.open_client(config) as client:
        try:
            links = await describe_issue_links(
                JiraIssueRepository(client), key, HierarchyOptions.from_config(config)
            )
        except IssueNotFoundError:
            print(f"Error: Issue {key} not found or not accessible", file=sys.stderr)
            return common.EXIT_NOT_FOUND
        except IssueGraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_ERROR

    store.set(key)
    if args.json:
        common.print_json(serialize_links(links))
    else:
        print(links_to_markdown(links))
    return common.EXIT_OK
