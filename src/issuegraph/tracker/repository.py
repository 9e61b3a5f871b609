"""Tracker collaborators consumed by the hierarchy builds.

The graph package only sees these two protocols; JiraIssueRepository and
StructureTopologyProvider adapt a JiraClient to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from issuegraph.graph.folders import FolderElement

if TYPE_CHECKING:
    from issuegraph.tracker.client import JiraClient


@dataclass
class SearchResult:
    """Records returned by a search plus the server-side match count."""

    records: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0


@runtime_checkable
class IssueRepository(Protocol):
    """Issue lookups."""

    async def get_issue(self, key: str, fields: list[str]) -> dict[str, Any]:
        """Fetch one raw issue record.

        Raises:
            IssueNotFoundError: If the key does not resolve.
            TrackerError: On any other failure.
        """
        ...

    async def search_issues(
        self, query: str, fields: list[str], max_results: int
    ) -> SearchResult:
        """Run a query and return the matching raw records."""
        ...


@runtime_checkable
class FolderTopologyProvider(Protocol):
    """Source of folder topologies."""

    async def get_hierarchy(self, topology_id: str, max_results: int) -> list[FolderElement]:
        """Fetch the flat element list of a topology.

        Raises:
            TopologyUnavailableError: If the topology cannot be read.
        """
        ...


class JiraIssueRepository:
    """IssueRepository backed by the Jira REST API."""

    def __init__(self, client: JiraClient) -> None:
        self.client = client

    async def get_issue(self, key: str, fields: list[str]) -> dict[str, Any]:
        return await self.client.get_issue(key, fields)

    async def search_issues(
        self, query: str, fields: list[str], max_results: int
    ) -> SearchResult:
        payload = await self.client.search_issues(query, fields, max_results)
        records = payload.get("issues") or []
        return SearchResult(records=records, total=int(payload.get("total", len(records))))


class StructureTopologyProvider:
    """FolderTopologyProvider backed by the Jira Structure plug-in."""

    def __init__(self, client: JiraClient) -> None:
        self.client = client

    async def get_hierarchy(self, topology_id: str, max_results: int) -> list[FolderElement]:
        payload = await self.client.get_structure_hierarchy(topology_id, max_results)
        return [
            FolderElement.from_payload(raw)
            for raw in payload.get("elements") or []
            if isinstance(raw, dict)
        ]
