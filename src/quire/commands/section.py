"""
quire.commands.section - Edit document sections.

Usage:
    quire section /guide.md setup --content "New body"          # Replace body
    quire section /guide.md setup --op append --file notes.md   # Append file text
    quire section /guide.md setup --op insert_after --title "Teardown" --content "..."
    quire section /guide.md setup --op remove                   # Remove with subtree
    quire section /guide.md --batch edits.json                  # Sequential batch
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from quire.commands.common import load_workspace, report_error
from quire.errors import AddressingError
from quire.sections.engine import SectionLimits
from quire.sections.operations import MAX_BATCH_SIZE, apply_batch, edit_section


def _read_content(args: argparse.Namespace) -> str | None:
    file_path = getattr(args, "file", None)
    if file_path == "-":
        return sys.stdin.read()
    if file_path:
        return Path(file_path).read_text(encoding="utf-8")
    return getattr(args, "content", None)


def run(args: argparse.Namespace) -> int:
    """Run the section command."""
    config, manager = load_workspace(args)
    limits = SectionLimits.from_config(config)
    as_json = getattr(args, "json", False)
    batch_file = getattr(args, "batch", None)

    if batch_file:
        try:
            operations = json.loads(Path(batch_file).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error reading batch file: {e}", file=sys.stderr)
            return 1
        max_batch = int(config.get("sections", {}).get("max_batch_size", MAX_BATCH_SIZE))
        try:
            batch = asyncio.run(
                apply_batch(
                    manager, args.document, operations, max_batch_size=max_batch, limits=limits
                )
            )
        except AddressingError as e:
            return report_error(e, as_json)

        if as_json:
            print(json.dumps(batch.to_dict(), indent=2))
        else:
            for index, item in enumerate(batch.results, start=1):
                if item.success:
                    print(f"  {index}. {item.action} #{item.section}")
                else:
                    print(f"  {index}. FAILED #{item.section}: {item.error}")
            print(f"{batch.sections_modified}/{batch.total_operations} operations applied")
        return 0 if batch.sections_modified == batch.total_operations else 1

    if not getattr(args, "slug", None):
        print("Error: a section slug or --batch FILE is required", file=sys.stderr)
        return 1

    try:
        content = _read_content(args)
    except OSError as e:
        print(f"Error reading content: {e}", file=sys.stderr)
        return 1

    try:
        result = asyncio.run(
            edit_section(
                manager,
                args.document,
                args.slug,
                content=content,
                operation=args.op,
                title=getattr(args, "title", None),
                limits=limits,
            )
        )
    except AddressingError as e:
        return report_error(e, as_json)

    if as_json:
        print(json.dumps({"success": True, **result.to_dict()}, indent=2))
    else:
        depth = f" (depth {result.depth})" if result.depth is not None else ""
        print(f"{result.action} #{result.section}{depth}")
    return 0
