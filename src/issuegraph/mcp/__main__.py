"""``python -m issuegraph.mcp [--transport ...]``, same as ``issuegraph mcp serve``."""

import sys

from issuegraph.cli import main

if __name__ == "__main__":
    sys.exit(main(["mcp", "serve", *sys.argv[1:]]))
