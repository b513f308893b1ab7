"""Entry point for running the quire MCP server directly.

Usage:
    python -m quire.mcp
"""

import logging
import sys

from quire.mcp.server import run_server

if __name__ == "__main__":
    logging.basicConfig(stream=sys.stderr, level=logging.WARNING)
    run_server()
