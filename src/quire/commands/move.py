"""
quire.commands.move - Move a section, with its subsections.

Usage:
    quire move /a.md#setup /b.md overview                  # After #overview in b.md
    quire move /a.md#setup /b.md overview --position child # Last child of #overview
"""

from __future__ import annotations

import argparse
import asyncio
import json

from quire.commands.common import load_workspace, report_error
from quire.errors import AddressingError
from quire.sections.engine import SectionLimits
from quire.sections.operations import move_section


def run(args: argparse.Namespace) -> int:
    """Run the move command."""
    config, manager = load_workspace(args)
    as_json = getattr(args, "json", False)

    try:
        result = asyncio.run(
            move_section(
                manager,
                args.source,
                args.destination,
                args.reference,
                args.position,
                limits=SectionLimits.from_config(config),
            )
        )
    except AddressingError as e:
        return report_error(e, as_json)

    data = result.to_dict()
    if as_json:
        print(json.dumps({"success": True, **data}, indent=2))
    else:
        print(
            f"Moved {data['type']} '{result.title}' from {data['from']['document']}"
            f"#{data['from']['section']} to {data['to']['document']}#{data['to']['section']}"
            f" ({result.position} #{result.reference})"
        )
    return 0
