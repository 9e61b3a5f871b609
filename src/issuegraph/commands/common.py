"""
issuegraph.commands.common - Helpers shared by the tracker-backed commands.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from issuegraph.config import get_config, validate_config
from issuegraph.exceptions import ConfigError
from issuegraph.tracker.client import JiraClient
from issuegraph.tracker.state import JsonFileLastIssueStore, LastIssueStore, MemoryLastIssueStore

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def load_configuration(args: argparse.Namespace) -> dict[str, Any] | None:
    """Load configuration from --config or the nearest .issuegraph.toml."""
    try:
        return get_config(getattr(args, "config", None))
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def require_tracker(config: dict[str, Any]) -> bool:
    """Print tracker configuration problems; True when there are none."""
    problems = validate_config(config)
    for problem in problems:
        print(f"Config error: {problem}", file=sys.stderr)
    if problems:
        print("Run 'issuegraph doctor' for details.", file=sys.stderr)
    return not problems


def open_client(config: dict[str, Any]) -> JiraClient:
    return JiraClient.from_config(config)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def last_issue_store(config: dict[str, Any]) -> LastIssueStore:
    """The last viewed issue store named by ``[state] last_issue_file``.

    The file is shared with the MCP server; without one the store lives in
    memory only.
    """
    path = config.get("state", {}).get("last_issue_file")
    if not path:
        return MemoryLastIssueStore()
    return JsonFileLastIssueStore(Path(path).expanduser())
