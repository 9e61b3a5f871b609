"""Missing Node Resolver - Fetch or fabricate referenced-but-absent nodes."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

import structlog

from issuegraph.exceptions import IssueGraphError
from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.IssueNode import IssueNode

if TYPE_CHECKING:
    from issuegraph.tracker.repository import IssueRepository

logger = structlog.get_logger()

DEFAULT_CONCURRENCY = 8


def missing_keys(graph: IssueGraph) -> list[str]:
    """Edge endpoints not yet in the registry, in discovery order."""
    return [key for key in graph.referenced_keys() if not graph.has_node(key)]


async def resolve_missing_nodes(
    graph: IssueGraph,
    repository: IssueRepository,
    fields: Sequence[str],
    stubs: Mapping[str, IssueNode] | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[str]:
    """Register a node for every edge endpoint missing from the registry.

    Each missing key is looked up once; lookups run concurrently, bounded
    by ``concurrency``, and are all joined before returning. A key whose
    lookup fails is registered as a placeholder carrying whatever its stub
    knew.

    Args:
        graph: Graph for the current build pass; updated in place.
        repository: Issue lookups.
        fields: Field selector passed to ``get_issue``.
        stubs: Partial nodes known from link payloads, used to populate
            placeholders. Stubs already registered count as resolved.
        concurrency: Maximum lookups in flight.

    Returns:
        Keys registered as unavailable placeholders, in discovery order.
    """
    stubs = stubs or {}
    pending = missing_keys(graph)
    if not pending:
        return []

    logger.debug("resolving_missing_nodes", count=len(pending))
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def lookup(key: str) -> IssueNode:
        async with semaphore:
            try:
                record = await repository.get_issue(key, list(fields))
                return IssueNode.from_record(record)
            except (IssueGraphError, ValueError) as e:
                logger.warning("missing_node_unavailable", key=key, error=str(e))
                return IssueNode.placeholder(key, stubs.get(key))

    nodes = await asyncio.gather(*(lookup(key) for key in pending))

    unavailable: list[str] = []
    for key, node in zip(pending, nodes):
        if node.key != key:
            node = replace(node, key=key)
        graph.register(node)
        if node.unavailable:
            unavailable.append(key)
    return unavailable

