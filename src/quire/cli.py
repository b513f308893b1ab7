"""
quire.cli - Command-line interface.

Main entry point for the quire CLI tool.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from quire import __version__
from quire.commands import config_cmd, headings, move, related, section
from quire.sections.engine import OPERATIONS, REPLACE
from quire.sections.operations import POSITIONS


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="quire",
        description="Addressable markdown documents: sections, moves and relationships",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quire headings /guide.md                         # Heading tree with slugs
  quire section /guide.md setup --content "..."    # Replace a section body
  quire section /guide.md --batch edits.json       # Apply a batch of edits
  quire move /a.md#setup /b.md overview            # Move a section
  quire related /api/auth.md                       # Related documents

Configuration:
  quire config show                                # Effective settings
  quire config path                                # Config file location

For detailed command help: quire <command> --help
        """,
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"quire {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
        metavar="PATH",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Override the documents root directory",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output (debug logging, full tracebacks)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # headings command
    headings_parser = subparsers.add_parser(
        "headings",
        help="Show a document's heading tree",
    )
    headings_parser.add_argument("document", help="Document path, e.g. /api/auth.md")
    headings_parser.add_argument("-j", "--json", action="store_true", help="Output JSON")

    # section command
    section_parser = subparsers.add_parser(
        "section",
        help="Edit a section (or apply a batch of edits)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Operations: {", ".join(OPERATIONS)}

Batch files hold a JSON list of objects:
  [{{"section": "setup", "operation": "append", "content": "..."}},
   {{"section": "setup", "operation": "insert_after", "title": "Next", "content": "..."}}]
""",
    )
    section_parser.add_argument("document", help="Document path")
    section_parser.add_argument("slug", nargs="?", help="Section slug or hierarchical slug")
    section_parser.add_argument(
        "--op",
        choices=OPERATIONS,
        default=REPLACE,
        help="Operation (default: replace)",
    )
    section_parser.add_argument("--title", help="Title for a new section")
    content_group = section_parser.add_mutually_exclusive_group()
    content_group.add_argument("--content", help="Section content")
    content_group.add_argument(
        "--file",
        help="Read content from a file ('-' for stdin)",
        metavar="PATH",
    )
    content_group.add_argument(
        "--batch",
        type=Path,
        help="Apply a JSON list of operations",
        metavar="PATH",
    )
    section_parser.add_argument("-j", "--json", action="store_true", help="Output JSON")

    # move command
    move_parser = subparsers.add_parser(
        "move",
        help="Move a section and its subsections",
    )
    move_parser.add_argument("source", help="Section to move, as document.md#slug")
    move_parser.add_argument("destination", help="Destination document")
    move_parser.add_argument("reference", help="Slug in the destination to position against")
    move_parser.add_argument(
        "--position",
        choices=list(POSITIONS),
        default="after",
        help="Placement relative to the reference (default: after)",
    )
    move_parser.add_argument("-j", "--json", action="store_true", help="Output JSON")

    # related command
    related_parser = subparsers.add_parser(
        "related",
        help="Show linked, linking and similar documents",
    )
    related_parser.add_argument("document", help="Document path")
    related_parser.add_argument(
        "--depth",
        type=int,
        help="Link traversal depth (default from config, capped at 3)",
    )
    related_parser.add_argument("-j", "--json", action="store_true", help="Output JSON")

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Inspect configuration",
    )
    config_parser.add_argument("config_action", choices=["show", "path"], nargs="?")

    # mcp command
    mcp_parser = subparsers.add_parser(
        "mcp",
        help="MCP server commands (requires quire[mcp])",
    )
    mcp_subparsers = mcp_parser.add_subparsers(dest="mcp_action")
    serve_parser = mcp_subparsers.add_parser("serve", help="Start the MCP server")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport type (default: stdio)",
    )

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    """Send log records to stderr at the configured level."""
    from quire.config import get_config

    if args.verbose:
        level = logging.DEBUG
    else:
        try:
            config = get_config(config_path=args.config, quiet=True)
        except (OSError, ValueError):
            config = {}
        name = str(config.get("logging", {}).get("level", "WARNING")).upper()
        level = getattr(logging, name, logging.WARNING)
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Handle no command
    if not args.command:
        parser.print_help()
        return 0

    _configure_logging(args)

    try:
        # Dispatch to command handlers
        if args.command == "headings":
            return headings.run(args)
        elif args.command == "section":
            return section.run(args)
        elif args.command == "move":
            return move.run(args)
        elif args.command == "related":
            return related.run(args)
        elif args.command == "config":
            return config_cmd.run(args)
        elif args.command == "mcp":
            return mcp_command(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


def mcp_command(args: argparse.Namespace) -> int:
    """Handle MCP server commands."""
    from quire.mcp import MCP_AVAILABLE

    if not MCP_AVAILABLE:
        print("Error: MCP dependencies not installed.", file=sys.stderr)
        print("Install with: pip install quire[mcp]", file=sys.stderr)
        return 1

    if args.mcp_action == "serve":
        from quire.commands.common import load_workspace
        from quire.mcp.server import run_server

        working_dir = Path.cwd()
        if args.config:
            working_dir = Path(args.config).resolve().parent
        config, manager = load_workspace(args)

        # stdout carries the protocol on stdio transport
        print("Starting quire MCP server...", file=sys.stderr)
        print(f"Documents: {manager.root}", file=sys.stderr)
        print(f"Transport: {args.transport}", file=sys.stderr)

        try:
            run_server(
                working_dir=working_dir,
                transport=args.transport,
                config=config,
                manager=manager,
            )
        except KeyboardInterrupt:
            print("\nServer stopped.", file=sys.stderr)
        return 0
    else:
        print("Usage: quire mcp serve", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
