"""issuegraph.mcp - MCP tools over the issue hierarchy builds.

The server needs the optional ``mcp`` extra; the serializers do not and are
shared with the CLI. Check MCP_AVAILABLE before importing
``issuegraph.mcp.server``::

    from issuegraph.mcp import MCP_AVAILABLE

    if MCP_AVAILABLE:
        from issuegraph.mcp.server import create_server
"""

try:
    import mcp.server.fastmcp  # noqa: F401

    MCP_AVAILABLE = True
except ImportError:
    MCP_AVAILABLE = False

INSTALL_HINT = "Install with: pip install issuegraph[mcp]"


def require_mcp() -> None:
    """Raise ImportError with an install hint when the extra is missing."""
    if not MCP_AVAILABLE:
        raise ImportError(f"MCP dependencies not installed. {INSTALL_HINT}")


__all__ = [
    "INSTALL_HINT",
    "MCP_AVAILABLE",
    "require_mcp",
]
