"""
issuegraph - Issue relationship hierarchies for agents

issuegraph reads issues from a Jira tracker and assembles the relations
between them (Epic Links, parent/child links and requirement coverage,
optionally grouped by Structure folders) into a single cycle-safe tree
that an agent or a human can read.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("issuegraph")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed
__license__ = "MIT"

from issuegraph.exceptions import (
    ConfigError,
    IssueGraphError,
    IssueNotFoundError,
    TopologyUnavailableError,
    TrackerError,
)
from issuegraph.graph import Edge, EdgeKind, IssueGraph, IssueNode

__all__ = [
    "__version__",
    "ConfigError",
    "Edge",
    "EdgeKind",
    "IssueGraph",
    "IssueGraphError",
    "IssueNode",
    "IssueNotFoundError",
    "TopologyUnavailableError",
    "TrackerError",
]
