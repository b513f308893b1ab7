"""quire.mcp - Model Context Protocol surface for a markdown corpus.

The server publishes seven tools over one ``FileDocumentManager``:
``list_headings``, ``view_section``, ``section`` (batch edits), ``move``,
``resolve_task``, ``related_documents`` and ``mutation_log``.

Starting it:
    quire mcp serve [--root DOCS] [--config FILE] [--transport stdio|sse]
    python -m quire.mcp            # config discovered from the cwd

Embedding it:
    from quire.mcp import MCP_AVAILABLE, create_server

    if MCP_AVAILABLE:
        server = create_server(working_dir=repo, config=config, manager=manager)

Everything here needs the ``quire[mcp]`` extra; ``create_server`` and
``run_server`` raise ImportError with an install hint when it is missing.
"""

try:
    from mcp.server.fastmcp import FastMCP

    MCP_AVAILABLE = True
except ImportError:
    MCP_AVAILABLE = False
    FastMCP = None

_INSTALL_HINT = "MCP dependencies not installed. Install with: pip install quire[mcp]"


def create_server(*args, **kwargs):
    """Create the MCP server.

    Raises:
        ImportError: If MCP dependencies are not installed.
    """
    if not MCP_AVAILABLE:
        raise ImportError(_INSTALL_HINT)
    from quire.mcp.server import create_server as _create

    return _create(*args, **kwargs)


def run_server(*args, **kwargs):
    """Run the MCP server.

    Raises:
        ImportError: If MCP dependencies are not installed.
    """
    if not MCP_AVAILABLE:
        raise ImportError(_INSTALL_HINT)
    from quire.mcp.server import run_server as _run

    return _run(*args, **kwargs)


__all__ = [
    "MCP_AVAILABLE",
    "create_server",
    "run_server",
]
