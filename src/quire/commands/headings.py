"""
quire.commands.headings - Show a document's heading tree.

Usage:
    quire headings /api/auth.md          # Indented tree with hierarchical slugs
    quire headings /api/auth.md --json   # Machine-readable output
"""

from __future__ import annotations

import argparse
import asyncio
import json

from quire.addressing import is_task_section, parse_document_address
from quire.commands.common import load_workspace, report_error
from quire.document.headings import hierarchical_slug
from quire.errors import AddressingError, DocumentNotFoundError


def run(args: argparse.Namespace) -> int:
    """Run the headings command."""
    _, manager = load_workspace(args)
    as_json = getattr(args, "json", False)

    try:
        path = parse_document_address(args.document).path
        document = asyncio.run(manager.get_document(path))
        if document is None:
            raise DocumentNotFoundError(path)
    except AddressingError as e:
        return report_error(e, as_json)

    rows = [
        {
            **h.to_dict(),
            "path": hierarchical_slug(document.headings, h.index),
            "task": is_task_section(h.slug, document.headings),
        }
        for h in document.headings
    ]

    if as_json:
        print(json.dumps({"document": path, "headings": rows}, indent=2))
        return 0

    print(f"{path}  ({document.metadata.title})")
    for row in rows:
        marker = " [task]" if row["task"] else ""
        print(f"{'  ' * (row['depth'] - 1)}- {row['title']}  #{row['path']}{marker}")
    return 0
