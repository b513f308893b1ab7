"""
quire.commands.related - Show documents related to a document.

Usage:
    quire related /api/auth.md             # Links, backlinks, similar documents
    quire related /api/auth.md --depth 3   # Deeper traversal budget
    quire related /api/auth.md --json      # Machine-readable output
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from quire.addressing import parse_document_address
from quire.commands.common import load_workspace, report_error
from quire.errors import AddressingError
from quire.relations.analyzer import RelatedDocument, analyze_document_links


def _print_group(heading: str, docs: list[RelatedDocument]) -> None:
    print(f"\n{heading} ({len(docs)})")
    for doc in docs:
        extra = f"  relevance={doc.relevance}" if doc.relevance is not None else ""
        print(f"  {doc.path}  [{doc.relationship.value}]  {doc.title}{extra}")


def run(args: argparse.Namespace) -> int:
    """Run the related command."""
    config, manager = load_workspace(args)
    relations = config.get("relations", {})
    as_json = getattr(args, "json", False)
    depth = getattr(args, "depth", None) or int(relations.get("link_depth", 2))

    try:
        path = parse_document_address(args.document).path
    except AddressingError as e:
        return report_error(e, as_json)

    links = asyncio.run(
        analyze_document_links(
            manager,
            path,
            link_depth=depth,
            max_link_depth=int(relations.get("max_link_depth", 3)),
            similarity_threshold=float(relations.get("similarity_threshold", 0.6)),
            max_similar=int(relations.get("max_similar", 10)),
        )
    )
    if links is None:
        print(f"No relationship data available for {path}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps({"document": path, **links.to_dict()}, indent=2))
        return 0

    print(path)
    _print_group("Links to", links.forward_links)
    _print_group("Linked from", links.backward_links)
    _print_group("Similar content", links.related_by_content)
    if links.dependency_chain:
        print("\nSuggested order")
        for node in links.dependency_chain:
            print(f"  {node.sequence}. {node.path}  [{node.status}]")
    return 0
