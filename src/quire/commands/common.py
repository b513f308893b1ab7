"""
quire.commands.common - Helpers shared by CLI commands.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from quire.config import get_config, get_docs_root
from quire.document.manager import FileDocumentManager
from quire.errors import AddressingError


def load_workspace(args: argparse.Namespace) -> tuple[dict[str, Any], FileDocumentManager]:
    """Resolve configuration and a document manager from global CLI options.

    ``--root`` overrides ``documents.root`` from the config file.
    """
    config_path = getattr(args, "config", None)
    config = get_config(config_path=config_path, quiet=True)
    root = getattr(args, "root", None)
    docs_root = Path(root).resolve() if root else get_docs_root(config)
    extension = config.get("documents", {}).get("extension", ".md")
    return config, FileDocumentManager(docs_root, extension=extension)


def report_error(exc: AddressingError, as_json: bool = False) -> int:
    """Print a structured error and return the failure exit code."""
    if as_json:
        print(json.dumps({"success": False, **exc.to_dict()}, indent=2))
    else:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
    return 1
