"""
issuegraph.commands.config_cmd - Inspect the effective configuration.

Subcommands:
- show: Print the merged configuration (secrets masked)
- path: Print the config file in use
"""

from __future__ import annotations

import argparse
import copy
import json
import sys
from pathlib import Path
from typing import Any

import tomlkit

from issuegraph.commands import common
from issuegraph.config import SECRET_KEYS, find_config_file

MASK = "********"


def run(args: argparse.Namespace) -> int:
    """Run the config command."""
    action = getattr(args, "config_action", None)
    if action == "show":
        return cmd_show(args)
    if action == "path":
        return cmd_path(args)
    print("Usage: issuegraph config {show,path}", file=sys.stderr)
    return common.EXIT_ERROR


def mask_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``config`` with tracker credentials replaced by a mask."""
    masked = copy.deepcopy(config)
    tracker = masked.get("tracker", {})
    for key in SECRET_KEYS:
        if tracker.get(key):
            tracker[key] = MASK
    return masked


def cmd_show(args: argparse.Namespace) -> int:
    """Print the effective configuration, or one section of it."""
    config = common.load_configuration(args)
    if config is None:
        return common.EXIT_ERROR

    data: Any = mask_secrets(config)
    if args.section:
        for part in args.section.split("."):
            if not isinstance(data, dict) or part not in data:
                print(f"Error: Unknown section '{args.section}'", file=sys.stderr)
                return common.EXIT_ERROR
            data = data[part]

    if args.json:
        print(json.dumps(data, indent=2, ensure_ascii=False))
    elif isinstance(data, dict):
        print(tomlkit.dumps(data), end="")
    else:
        print(data)
    return common.EXIT_OK


def cmd_path(args: argparse.Namespace) -> int:
    """Print the path of the config file that would be loaded."""
    if args.config:
        path = Path(args.config)
        if not path.exists():
            print(f"Error: Config file not found: {path}", file=sys.stderr)
            return common.EXIT_ERROR
    else:
        path = find_config_file(Path.cwd())
    if path is None:
        print("No .issuegraph.toml found (using defaults)")
        return common.EXIT_OK
    print(path.resolve())
    return common.EXIT_OK
