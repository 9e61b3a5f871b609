"""
issuegraph.commands.doctor - Diagnose configuration and tracker access.

Checks are grouped by the part of the setup they exercise:
- config: the .issuegraph.toml file and the tracker settings in it
- tracker: an authenticated request (/myself) against Jira
- structure: the folder topology, when [structure] id is set
"""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from issuegraph.commands import common
from issuegraph.config import find_config_file, parse_toml, validate_config
from issuegraph.exceptions import IssueGraphError
from issuegraph.graph.hierarchy import HierarchyOptions
from issuegraph.tracker.repository import StructureTopologyProvider

AREAS = ("config", "tracker", "structure")


class CheckStatus(Enum):
    OK = "ok"
    INFO = "info"
    WARNING = "warning"
    FAILED = "failed"

    @property
    def icon(self) -> str:
        return {"ok": "✓", "info": "·", "warning": "⚠", "failed": "✗"}[self.value]


@dataclass
class HealthCheck:
    """Outcome of one check; ``name`` is ``<area>.<check>``."""

    name: str
    status: CheckStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def area(self) -> str:
        return self.name.split(".", 1)[0]

    @property
    def ok(self) -> bool:
        return self.status in (CheckStatus.OK, CheckStatus.INFO)


@dataclass
class HealthReport:
    checks: list[HealthCheck] = field(default_factory=list)

    def add(self, check: HealthCheck) -> None:
        self.checks.append(check)

    def count(self, status: CheckStatus) -> int:
        return sum(1 for c in self.checks if c.status is status)

    @property
    def is_healthy(self) -> bool:
        """Warnings (a skipped check, no folders) never make a setup unhealthy."""
        return self.count(CheckStatus.FAILED) == 0

    def by_area(self) -> dict[str, list[HealthCheck]]:
        grouped: dict[str, list[HealthCheck]] = {area: [] for area in AREAS}
        for check in self.checks:
            grouped.setdefault(check.area, []).append(check)
        return {area: checks for area, checks in grouped.items() if checks}

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.is_healthy,
            "counts": {status.value: self.count(status) for status in CheckStatus},
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "details": c.details,
                }
                for c in self.checks
            ],
        }


# =============================================================================
# Config Checks
# =============================================================================


def _config_file(config_path: Path | None, start_path: Path) -> Path | None:
    if config_path and config_path.exists():
        return config_path
    return find_config_file(start_path)


def check_config_file(config_path: Path | None, start_path: Path) -> list[HealthCheck]:
    """Locate the config file and check its TOML syntax.

    Running without a file (defaults plus JIRA_* variables) is fine.
    """
    found = _config_file(config_path, start_path)
    if found is None:
        return [
            HealthCheck(
                "config.file",
                CheckStatus.INFO,
                "No config file found, using defaults and environment variables",
            )
        ]

    checks = [HealthCheck("config.file", CheckStatus.OK, f"Config file found: {found}")]
    try:
        parse_toml(found.read_text(encoding="utf-8"))
    except Exception as e:
        checks.append(
            HealthCheck(
                "config.syntax",
                CheckStatus.FAILED,
                f"Invalid TOML in {found}: {e}",
                {"path": str(found)},
            )
        )
    else:
        checks.append(HealthCheck("config.syntax", CheckStatus.OK, "TOML syntax is valid"))
    return checks


def check_tracker_settings(config: dict[str, Any]) -> HealthCheck:
    """Check the tracker URL and credentials."""
    problems = validate_config(config)
    if problems:
        return HealthCheck(
            "config.tracker",
            CheckStatus.FAILED,
            f"{len(problems)} problem(s) with tracker settings",
            {"problems": problems},
        )
    return HealthCheck(
        "config.tracker", CheckStatus.OK, "Tracker URL and credentials are configured"
    )


# =============================================================================
# Tracker and Structure Checks
# =============================================================================


async def check_tracker_connection(client) -> HealthCheck:
    """Check that an authenticated request succeeds."""
    try:
        me = await client.get_myself()
    except IssueGraphError as e:
        return HealthCheck(
            "tracker.connection",
            CheckStatus.FAILED,
            f"Request to {client.base_url} failed: {e}",
            {"auth": client.auth_method},
        )
    user = me.get("displayName") or me.get("name") or me.get("emailAddress") or "unknown"
    return HealthCheck(
        "tracker.connection",
        CheckStatus.OK,
        f"Connected to {client.base_url} as {user}",
        {"auth": client.auth_method},
    )


async def check_structure_access(client, options: HierarchyOptions) -> HealthCheck:
    """Fetch the folder topology the hierarchy builds would use."""
    if options.topology_id is None:
        return HealthCheck(
            "structure.topology",
            CheckStatus.INFO,
            "No structure id set; hierarchies are shown without folders",
        )
    provider = StructureTopologyProvider(client)
    try:
        elements = await provider.get_hierarchy(
            options.topology_id, options.topology_max_results
        )
    except IssueGraphError as e:
        return HealthCheck(
            "structure.topology",
            CheckStatus.WARNING,
            f"Structure {options.topology_id} unavailable, folders will be skipped: {e}",
            {"id": options.topology_id},
        )
    folders = sum(1 for element in elements if element.is_folder)
    return HealthCheck(
        "structure.topology",
        CheckStatus.OK,
        f"Structure {options.topology_id}: {len(elements)} elements, {folders} folders",
        {"id": options.topology_id},
    )


async def run_remote_checks(config: dict[str, Any]) -> list[HealthCheck]:
    """Connection check, then the structure check once the connection works."""
    options = HierarchyOptions.from_config(config)
    async with common.open_client(config) as client:
        connection = await check_tracker_connection(client)
        if not connection.ok:
            return [connection]
        return [connection, await check_structure_access(client, options)]


def run(args: argparse.Namespace) -> int:
    """Run the doctor command."""
    config_path = Path(args.config) if getattr(args, "config", None) else None
    report = HealthReport()
    for check in check_config_file(config_path, Path.cwd()):
        report.add(check)

    config = common.load_configuration(args)
    if config is None:
        report.add(HealthCheck("config.load", CheckStatus.FAILED, "Failed to load config"))
        return _output_report(report, args)

    settings = check_tracker_settings(config)
    report.add(settings)
    if settings.ok:
        for check in asyncio.run(run_remote_checks(config)):
            report.add(check)
    else:
        report.add(
            HealthCheck(
                "tracker.connection",
                CheckStatus.WARNING,
                "Skipped: tracker settings are incomplete",
            )
        )
    return _output_report(report, args)


def _output_report(report: HealthReport, args: argparse.Namespace) -> int:
    if getattr(args, "json", False):
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_text_report(report, verbose=getattr(args, "verbose", False))
    return common.EXIT_OK if report.is_healthy else common.EXIT_ERROR


def _print_text_report(report: HealthReport, verbose: bool = False) -> None:
    for area, checks in report.by_area().items():
        print(f"[{area}]")
        for check in checks:
            print(f"  {check.status.icon} {check.name}: {check.message}")
            for problem in check.details.get("problems", []):
                print(f"      - {problem}")
            if verbose:
                for key, value in check.details.items():
                    if key != "problems":
                        print(f"      {key}: {value}")
        print()

    failed = report.count(CheckStatus.FAILED)
    warnings = report.count(CheckStatus.WARNING)
    verdict = "✓ HEALTHY" if report.is_healthy else "✗ UNHEALTHY"
    print(f"{verdict}: {failed} failed, {warnings} warning(s), {len(report.checks)} checks")
