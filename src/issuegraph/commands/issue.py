"""
issuegraph.commands.issue - Show one issue in full, or search issues with JQL.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from issuegraph.commands import common
from issuegraph.exceptions import IssueGraphError, IssueNotFoundError
from issuegraph.graph.views import get_issue_details, run_issue_search
from issuegraph.mcp import serializers
from issuegraph.tracker.repository import JiraIssueRepository
from issuegraph.tracker.state import resolve_issue_key


def run(args: argparse.Namespace) -> int:
    """Run the issue or search command."""
    config = common.load_configuration(args)
    if config is None or not common.require_tracker(config):
        return common.EXIT_ERROR
    if args.command == "search":
        return asyncio.run(_search(args, config))
    return asyncio.run(_details(args, config))


async def _details(args: argparse.Namespace, config: dict[str, Any]) -> int:
    store = common.last_issue_store(config)
    key = resolve_issue_key(args.key, store)
    if not key:
        print("Error: no issue key given and no issue viewed yet", file=sys.stderr)
        return common.EXIT_ERROR

    async with common.open_client(config) as client:
        try:
            details = await get_issue_details(
                JiraIssueRepository(client), key, args.comments, args.worklogs
            )
        except IssueNotFoundError:
            print(f"Error: Issue {key} not found or not accessible", file=sys.stderr)
            return common.EXIT_NOT_FOUND
        except IssueGraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_ERROR

    store.set(key)
    if args.json:
        common.print_json(serializers.serialize_issue_details(details))
    else:
        print(serializers.issue_details_to_markdown(details))
    return common.EXIT_OK


async def _search(args: argparse.Namespace, config: dict[str, Any]) -> int:
    async with common.open_client(config) as client:
        try:
            view = await run_issue_search(JiraIssueRepository(client), args.jql, args.max_results)
        except IssueGraphError as e:
            print(f"Error: {e}", file=sys.stderr)
            return common.EXIT_ERROR

    if args.json:
        common.print_json(serializers.serialize_search(view))
    else:
        print(serializers.search_to_markdown(view))
    return common.EXIT_OK
