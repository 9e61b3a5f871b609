"""
issuegraph.cli - Command-line interface.

Main entry point for the issuegraph CLI tool.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from issuegraph import __version__
from issuegraph.commands import (
    config_cmd,
    doctor,
    hierarchy,
    issue,
    links,
    navigate,
    structure,
    tree,
)
from issuegraph.graph.navigation import Direction
from issuegraph.graph.roots import MAX_DEPTH, MIN_DEPTH
from issuegraph.graph.views import DEFAULT_SEARCH_RESULTS, MAX_SEARCH_RESULTS


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="issuegraph",
        description="Jira issue hierarchies: epics, parent-child and requirement links",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  issuegraph hierarchy                      # Your unfinished issues as a tree
  issuegraph hierarchy --assignee jdoe      # Someone else's issues
  issuegraph hierarchy --jql "project = PROJ AND sprint in openSprints()"
  issuegraph tree PROJ-123 --max-depth 3    # Everything near one issue
  issuegraph links PROJ-123                 # An issue's links by category
  issuegraph navigate PROJ-123 siblings     # One step in a direction
  issuegraph issue PROJ-123 --comments      # One issue in full
  issuegraph search "project = PROJ"        # Query results as a table
  issuegraph structure --id 42              # A Structure as a folder tree
  issuegraph folder 1001 --open             # Open issues inside one folder
  issuegraph assigned jdoe                  # Someone's issues by folder
  issuegraph doctor                         # Check config and connection
  issuegraph mcp serve                      # Start the MCP server

For detailed command help:
  issuegraph <command> --help
""",
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file (default: nearest .issuegraph.toml)",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output (debug logging)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error log output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # hierarchy command
    hierarchy_parser = subparsers.add_parser(
        "hierarchy",
        help="Show the hierarchy of issues matched by a query",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Without --jql or --assignee the query from [hierarchy] default_query is
used (your unfinished issues). Issues are grouped by Structure folder (when
[structure] id is set) and by epic.
""",
    )
    hierarchy_parser.add_argument(
        "--jql",
        help="JQL query selecting the issues",
    )
    hierarchy_parser.add_argument(
        "--assignee",
        help="Show this user's unfinished issues",
    )
    hierarchy_parser.add_argument(
        "--max-results",
        type=int,
        help="Maximum issues returned by the query",
        metavar="N",
    )
    _add_json_flag(hierarchy_parser)

    # tree command
    tree_parser = subparsers.add_parser(
        "tree",
        help="Show everything within N relations of one issue",
    )
    tree_parser.add_argument(
        "key",
        nargs="?",
        help="Issue key (default: last viewed issue)",
    )
    tree_parser.add_argument(
        "--max-depth",
        type=int,
        help=f"Relation depth, {MIN_DEPTH}-{MAX_DEPTH} (default: [hierarchy] max_depth)",
        metavar="N",
    )
    tree_parser.add_argument(
        "--include-epic",
        action="store_true",
        help="Also follow Epic Link relations",
    )
    _add_json_flag(tree_parser)

    # links command
    links_parser = subparsers.add_parser(
        "links",
        help="Show an issue's epic, requirement, parent-child and other links",
    )
    links_parser.add_argument(
        "key",
        nargs="?",
        help="Issue key (default: last viewed issue)",
    )
    _add_json_flag(links_parser)

    # navigate command
    navigate_parser = subparsers.add_parser(
        "navigate",
        help="Show the issues one step away in a direction",
    )
    navigate_parser.add_argument(
        "key",
        nargs="?",
        help="Issue key (default: last viewed issue)",
    )
    navigate_parser.add_argument(
        "direction",
        nargs="?",
        default=Direction.CHILDREN.value,
        choices=[d.value for d in Direction],
        help="Direction to step (default: children)",
    )
    _add_json_flag(navigate_parser)

    # issue command
    issue_parser = subparsers.add_parser(
        "issue",
        help="Show one issue in full",
    )
    issue_parser.add_argument(
        "key",
        nargs="?",
        help="Issue key (default: last viewed issue)",
    )
    issue_parser.add_argument(
        "--comments",
        action="store_true",
        help="Include the three most recent comments",
    )
    issue_parser.add_argument(
        "--worklogs",
        action="store_true",
        help="Include the five most recent work logs",
    )
    _add_json_flag(issue_parser)

    # search command
    search_parser = subparsers.add_parser(
        "search",
        help="List the issues matched by a JQL query",
    )
    search_parser.add_argument(
        "jql",
        help="JQL query",
    )
    search_parser.add_argument(
        "--max-results",
        type=int,
        help=f"Rows shown, 1-{MAX_SEARCH_RESULTS} (default: {DEFAULT_SEARCH_RESULTS})",
        metavar="N",
    )
    _add_json_flag(search_parser)

    # structure command
    structure_parser = subparsers.add_parser(
        "structure",
        help="Show a Jira Structure as a tree of folders and issues",
    )
    _add_structure_id(structure_parser)
    structure_parser.add_argument(
        "--issue",
        help="Only show the subtrees under this issue",
        metavar="KEY",
    )
    structure_parser.add_argument(
        "--max-results",
        type=int,
        help="Maximum elements read (default: [structure] max_results)",
        metavar="N",
    )
    _add_json_flag(structure_parser)

    # folder command
    folder_parser = subparsers.add_parser(
        "folder",
        help="Show the issues inside one Structure folder",
    )
    folder_parser.add_argument(
        "folder_id",
        help="Id of the folder element",
    )
    _add_structure_id(folder_parser)
    folder_parser.add_argument(
        "--open",
        action="store_true",
        help="Leave out issues that are done",
    )
    _add_json_flag(folder_parser)

    # assigned command
    assigned_parser = subparsers.add_parser(
        "assigned",
        help="Show a user's unfinished issues arranged by Structure folder",
    )
    assigned_parser.add_argument(
        "assignee",
        help="Jira user name or display name",
    )
    assigned_parser.add_argument(
        "--max-results",
        type=int,
        help="Maximum issues returned by the query",
        metavar="N",
    )
    _add_json_flag(assigned_parser)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="View configuration (show, path)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration File:
  issuegraph looks for .issuegraph.toml in the current directory or parent
  directories. Environment variables override the file:

    JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN,
    JIRA_BEARER_TOKEN, JIRA_SESSION_COOKIES, LOG_LEVEL
    ISSUEGRAPH_<SECTION>_<KEY>   e.g. ISSUEGRAPH_STRUCTURE_ID=42

Quick Start (.issuegraph.toml):
  [tracker]
  base_url = "https://jira.example.com"
  email = "me@example.com"
  api_token = "..."

  [structure]
  id = "42"                      # Enables folder grouping
""",
    )
    config_subparsers = config_parser.add_subparsers(dest="config_action")

    config_show = config_subparsers.add_parser(
        "show",
        help="Show the effective configuration (secrets masked)",
    )
    config_show.add_argument(
        "--section",
        help="Show only a specific section (e.g., 'tracker', 'hierarchy')",
        metavar="SECTION",
    )
    _add_json_flag(config_show)

    config_subparsers.add_parser(
        "path",
        help="Show the config file in use",
    )

    # doctor command
    doctor_parser = subparsers.add_parser(
        "doctor",
        help="Check configuration and tracker connection",
    )
    _add_json_flag(doctor_parser)

    # mcp command
    mcp_parser = subparsers.add_parser(
        "mcp",
        help="MCP server commands (requires issuegraph[mcp])",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
MCP Client Configuration:

    {
      "mcpServers": {
        "issuegraph": {
          "command": "issuegraph",
          "args": ["mcp", "serve"],
          "env": {"JIRA_BASE_URL": "https://jira.example.com"}
        }
      }
    }

Tools:
  get_issue_hierarchy            Issues of a JQL query as a hierarchy
  get_issue_hierarchy_from_root  Everything near one issue
  get_issue_links                An issue's links by category
  navigate_hierarchy             One step in a direction
  get_structure_hierarchy        A Structure as a folder and issue tree
  get_folder_hierarchy           The issues inside one folder
  get_structure_hierarchy_by_assignee
                                 A user's unfinished issues by folder
  get_issue_details              One issue in full
  search_issues                  Query results as a table
  get_last_viewed_issue          The issue viewed most recently
""",
    )
    mcp_subparsers = mcp_parser.add_subparsers(dest="mcp_action")

    mcp_serve = mcp_subparsers.add_parser(
        "serve",
        help="Start MCP server",
    )
    mcp_serve.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport type (default: stdio)",
    )

    return parser


def _add_structure_id(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--id",
        help="Structure id (default: [structure] id)",
        metavar="ID",
    )


def _add_json_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 success, 1 error, 2 issue not found, 130 interrupted)
    """
    parser = create_parser()

    # Enable shell tab-completion if argcomplete is installed
    # Install with: pip install issuegraph[completion]
    # Then activate: eval "$(register-python-argcomplete issuegraph)"
    try:
        import argcomplete

        argcomplete.autocomplete(parser)
    except ImportError:
        pass

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command != "mcp":
        _configure_logging(args)

    try:
        if args.command == "hierarchy":
            return hierarchy.run(args)
        elif args.command == "tree":
            return tree.run(args)
        elif args.command == "links":
            return links.run(args)
        elif args.command == "navigate":
            return navigate.run(args)
        elif args.command in ("issue", "search"):
            return issue.run(args)
        elif args.command in ("structure", "folder", "assigned"):
            return structure.run(args)
        elif args.command == "config":
            return config_cmd.run(args)
        elif args.command == "doctor":
            return doctor.run(args)
        elif args.command == "mcp":
            return mcp_command(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _configure_logging(args: argparse.Namespace) -> None:
    """Set up logging before any command runs.

    A config that fails to load is reported by the command itself.
    """
    from issuegraph.config import DEFAULT_CONFIG, get_config
    from issuegraph.exceptions import ConfigError
    from issuegraph.utilities.logging import configure_from_config

    try:
        config = get_config(args.config)
    except ConfigError:
        config = DEFAULT_CONFIG
    configure_from_config(config, verbose=args.verbose, quiet=args.quiet)


def mcp_command(args: argparse.Namespace) -> int:
    """Handle MCP server commands."""
    from issuegraph.mcp import INSTALL_HINT, MCP_AVAILABLE

    if not MCP_AVAILABLE:
        print("Error: MCP dependencies not installed.", file=sys.stderr)
        print(INSTALL_HINT, file=sys.stderr)
        return 1

    if args.mcp_action == "serve":
        from issuegraph.mcp.server import run_server

        # stdout belongs to the stdio transport
        print("Starting issuegraph MCP server...", file=sys.stderr)
        print(f"Transport: {args.transport}", file=sys.stderr)

        try:
            run_server(transport=args.transport, config_path=args.config)
        except KeyboardInterrupt:
            print("\nServer stopped.", file=sys.stderr)
        return 0
    else:
        print("Usage: issuegraph mcp serve")
        return 1


if __name__ == "__main__":
    sys.exit(main())
