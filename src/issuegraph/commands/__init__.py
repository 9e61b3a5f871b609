"""
issuegraph.commands - CLI command implementations
"""

__all__ = [
    "common",
    "config_cmd",
    "doctor",
    "hierarchy",
    "links",
    "navigate",
    "tree",
]
