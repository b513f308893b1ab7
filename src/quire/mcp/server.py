"""quire.mcp.server - MCP server implementation.

Exposes section editing, moves, task resolution and relationship analysis to
AI agents. Tools are thin: they parse arguments, call into the core and turn
results or structured errors into plain dicts.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from quire.addressing import (
    parse_document_address,
    parse_section_reference,
    resolve_task,
    validate_section,
)
from quire.config import get_config, get_docs_root
from quire.document.headings import hierarchical_slug
from quire.document.manager import FileDocumentManager
from quire.errors import AddressingError, DocumentNotFoundError, error_response
from quire.relations.analyzer import analyze_document_links
from quire.sections.engine import SectionLimits
from quire.sections.history import DEFAULT_MAX_ENTRIES, MutationLog
from quire.sections.operations import MAX_BATCH_SIZE, apply_batch, move_section

logger = logging.getLogger(__name__)

MCP_SERVER_INSTRUCTIONS = """\
quire MCP Server - Addressable markdown documents

Documents are addressed by slash-prefixed paths ending in .md (`/api/auth.md`).
Sections are addressed by heading slug (`overview`), by hierarchical slug
(`setup/database`), or together as `/api/auth.md#setup/database`.

## Tools

- `list_headings(document)` - Heading tree with hierarchical slugs
- `view_section(document, section)` - Content of one section
- `section(document, operations)` - Batch edits, applied in order
  - each operation: {section, operation, content, title}
  - operation: replace (default), append, prepend, insert_before,
    insert_after, append_child, remove
- `move(source, destination, reference, position)` - Relocate a section
  - position: before, after, child
- `resolve_task(document, task)` - Check that a section is a task
- `related_documents(document, link_depth=2)` - Links, backlinks, similar
  documents and a suggested dependency order
- `mutation_log(limit=20, document, mutation_id)` - Recent edits from this
  session; with `mutation_id`, one entry with its before/after content

Failed calls return {"success": false, "error", "code", "context"}; the
context lists available slugs so the request can be corrected directly.
"""


# ─────────────────────────────────────────────────────────────────────────────
# Tool implementations
# ─────────────────────────────────────────────────────────────────────────────


async def _list_headings(manager: FileDocumentManager, document: str) -> dict[str, Any]:
    """Heading tree of a document."""
    try:
        path = parse_document_address(document).path
        doc = await manager.get_document(path)
        if doc is None:
            raise DocumentNotFoundError(path)
    except AddressingError as e:
        return error_response(e)
    return {
        "success": True,
        "document": path,
        "title": doc.metadata.title,
        "headings": [
            {**h.to_dict(), "path": hierarchical_slug(doc.headings, h.index)}
            for h in doc.headings
        ],
    }


async def _view_section(
    manager: FileDocumentManager, document: str, section: str
) -> dict[str, Any]:
    """Content of one section, subtree included."""
    try:
        path, slug = parse_section_reference(section, document)
        doc = await manager.get_document(path)
        if doc is None:
            raise DocumentNotFoundError(path)
        heading = validate_section(path, slug, doc.headings)
        content = await manager.get_section_content(path, heading.slug)
    except AddressingError as e:
        return error_response(e)
    return {
        "success": True,
        "document": path,
        "section": heading.slug,
        "path": hierarchical_slug(doc.headings, heading.index),
        "title": heading.title,
        "depth": heading.depth,
        "content": (content or "").strip("\n"),
    }


async def _section(
    manager: FileDocumentManager,
    document: str,
    operations: list[dict[str, Any]],
    log: MutationLog,
    max_batch_size: int,
    limits: SectionLimits,
) -> dict[str, Any]:
    try:
        batch = await apply_batch(
            manager, document, operations, log, max_batch_size=max_batch_size, limits=limits
        )
    except AddressingError as e:
        return error_response(e)
    return batch.to_dict()


async def _move(
    manager: FileDocumentManager,
    source: str,
    destination: str,
    reference: str,
    position: str,
    log: MutationLog,
    limits: SectionLimits,
) -> dict[str, Any]:
    try:
        result = await move_section(
            manager, source, destination, reference, position, log=log, limits=limits
        )
    except AddressingError as e:
        logger.warning("move %s -> %s failed: %s", source, destination, e)
        return error_response(e)
    return {"success": True, **result.to_dict()}


async def _resolve_task(manager: FileDocumentManager, document: str, task: str) -> dict[str, Any]:
    try:
        path, _ = parse_section_reference(task, document)
        doc = await manager.get_document(path)
        if doc is None:
            raise DocumentNotFoundError(path)
        address = resolve_task(task, document, {path: doc.headings})
    except AddressingError as e:
        return error_response(e)
    return {
        "success": True,
        "document": address.document.path,
        "task": address.slug,
        "tasks_section": address.parent_tasks_slug,
        "address": str(address),
    }


async def _related_documents(
    manager: FileDocumentManager,
    document: str,
    link_depth: int,
    relations_config: dict[str, Any],
) -> dict[str, Any]:
    try:
        path = parse_document_address(document).path
    except AddressingError as e:
        return error_response(e)
    links = await analyze_document_links(
        manager,
        path,
        link_depth=link_depth,
        max_link_depth=int(relations_config.get("max_link_depth", 3)),
        similarity_threshold=float(relations_config.get("similarity_threshold", 0.6)),
        max_similar=int(relations_config.get("max_similar", 10)),
    )
    if links is None:
        return {
            "success": False,
            "document": path,
            "error": f"No relationship data available for {path}",
        }
    return {"success": True, "document": path, **links.to_dict()}


def _mutation_log(
    log: MutationLog,
    limit: int,
    document: str | None = None,
    mutation_id: str | None = None,
) -> dict[str, Any]:
    if mutation_id is not None:
        entry = log.find_by_id(mutation_id)
        if entry is None:
            return {
                "success": False,
                "error": f"Mutation not found: {mutation_id}",
                "code": "MUTATION_NOT_FOUND",
                "context": {"mutation_id": mutation_id, "retained": len(log)},
            }
        return {"success": True, "entry": entry.to_dict(include_content=True)}

    if document is not None:
        try:
            path = parse_document_address(document).path
        except AddressingError as e:
            return error_response(e)
        entries = list(reversed(log.for_document(path)))[: max(limit, 0)]
    else:
        entries = log.recent(limit)
    return {
        "success": True,
        "count": len(entries),
        "entries": [e.to_dict() for e in entries],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


def create_server(
    working_dir: Path | None = None,
    config: dict[str, Any] | None = None,
    manager: FileDocumentManager | None = None,
) -> FastMCP:
    """Create the MCP server with all tools registered.

    Args:
        working_dir: Directory to discover ``.quire.toml`` from.
        config: Pre-resolved configuration (for testing).
        manager: Pre-built document manager (for testing).

    Returns:
        FastMCP server instance.
    """
    if working_dir is None:
        working_dir = Path.cwd()
    if config is None:
        config = get_config(start_path=working_dir, quiet=True)
    if manager is None:
        documents = config.get("documents", {})
        manager = FileDocumentManager(
            get_docs_root(config, base=working_dir),
            extension=documents.get("extension", ".md"),
        )

    server_name = config.get("mcp", {}).get("server_name", "quire")
    mcp = FastMCP(server_name, instructions=MCP_SERVER_INSTRUCTIONS)

    _state: dict[str, Any] = {
        "manager": manager,
        "config": config,
        "log": MutationLog(
            int(config.get("mcp", {}).get("mutation_log_size", DEFAULT_MAX_ENTRIES))
        ),
        "limits": SectionLimits.from_config(config),
        "max_batch_size": int(config.get("sections", {}).get("max_batch_size", MAX_BATCH_SIZE)),
    }
    logger.info("serving documents from %s", manager.root)

    @mcp.tool()
    async def list_headings(document: str) -> dict[str, Any]:
        """List a document's headings with depth and hierarchical slug.

        Args:
            document: Document path, e.g. "/api/auth.md".
        """
        return await _list_headings(_state["manager"], document)

    @mcp.tool()
    async def view_section(document: str, section: str) -> dict[str, Any]:
        """Read one section's content.

        Args:
            document: Document path.
            section: Slug, hierarchical slug, or "doc.md#slug".
        """
        return await _view_section(_state["manager"], document, section)

    @mcp.tool()
    async def section(document: str, operations: list[dict[str, Any]]) -> dict[str, Any]:
        """Edit sections of a document in one sequential batch.

        Items are applied in order and reported individually; a failing item
        does not undo earlier ones.

        Args:
            document: Default document for the batch.
            operations: Items of {section, operation, content, title}.
        """
        return await _section(
            _state["manager"],
            document,
            operations,
            _state["log"],
            _state["max_batch_size"],
            _state["limits"],
        )

    @mcp.tool()
    async def move(
        source: str,
        destination: str,
        reference: str,
        position: str = "after",
    ) -> dict[str, Any]:
        """Move a section and its subsections.

        Args:
            source: "doc.md#slug" of the section to move.
            destination: Destination document path.
            reference: Slug in the destination to place against.
            position: "before", "after" or "child".
        """
        return await _move(
            _state["manager"],
            source,
            destination,
            reference,
            position,
            _state["log"],
            _state["limits"],
        )

    @mcp.tool()
    async def resolve_task(document: str, task: str) -> dict[str, Any]:
        """Confirm that a section is a task under a "Tasks" heading.

        Args:
            document: Document path.
            task: Task slug or "doc.md#slug".
        """
        return await _resolve_task(_state["manager"], document, task)

    @mcp.tool()
    async def related_documents(document: str, link_depth: int = 2) -> dict[str, Any]:
        """Find linked, linking and similar documents plus a dependency order.

        Args:
            document: Document path.
            link_depth: Traversal depth (capped at 3).
        """
        return await _related_documents(
            _state["manager"], document, link_depth, _state["config"].get("relations", {})
        )

    @mcp.tool()
    def mutation_log(
        limit: int = 20,
        document: str | None = None,
        mutation_id: str | None = None,
    ) -> dict[str, Any]:
        """List recent edits made through this server, or fetch one in full.

        Args:
            limit: Maximum entries, newest first.
            document: Only edits to this document.
            mutation_id: Return this entry with its before/after content.
        """
        return _mutation_log(_state["log"], limit, document, mutation_id)

    return mcp


def run_server(
    working_dir: Path | None = None,
    transport: str = "stdio",
    config: dict[str, Any] | None = None,
    manager: FileDocumentManager | None = None,
) -> None:
    """Run the MCP server.

    Args:
        working_dir: Directory to discover configuration from.
        transport: Transport type ('stdio' or 'sse').
        config: Already-resolved configuration; skips discovery.
        manager: Document manager to serve; skips building one from config.
    """
    mcp = create_server(working_dir=working_dir, config=config, manager=manager)
    mcp.run(transport=transport)


__all__ = ["MCP_SERVER_INSTRUCTIONS", "create_server", "run_server"]
