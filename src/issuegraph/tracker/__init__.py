"""Tracker module - Jira access for the hierarchy builds.

Exports:
- JiraClient: Async REST client (auth, rate limiting, Structure probing)
- IssueRepository / FolderTopologyProvider: Collaborator protocols
- JiraIssueRepository / StructureTopologyProvider: Jira-backed adapters
- SearchResult: Query records plus total match count
- LastIssueStore and its memory / JSON file implementations
"""

from issuegraph.tracker.client import JiraClient, RateLimiter
from issuegraph.tracker.repository import (
    FolderTopologyProvider,
    IssueRepository,
    JiraIssueRepository,
    SearchResult,
    StructureTopologyProvider,
)
from issuegraph.tracker.state import (
    JsonFileLastIssueStore,
    LastIssueStore,
    MemoryLastIssueStore,
    resolve_issue_key,
)

__all__ = [
    "JiraClient",
    "RateLimiter",
    "IssueRepository",
    "FolderTopologyProvider",
    "JiraIssueRepository",
    "StructureTopologyProvider",
    "SearchResult",
    "LastIssueStore",
    "MemoryLastIssueStore",
    "JsonFileLastIssueStore",
    "resolve_issue_key",
]
