"""issuegraph.utilities - Process-level helpers shared by the CLI and MCP server."""
