"""
quire.commands.config_cmd - Inspect configuration.

Usage:
    quire config show   # Effective configuration as TOML
    quire config path   # Location of the .quire.toml in use
"""

from __future__ import annotations

import argparse
import sys

from quire.config import dump_config, get_config


def run(args: argparse.Namespace) -> int:
    """Run the config command."""
    config = get_config(config_path=getattr(args, "config", None), quiet=True)
    action = getattr(args, "config_action", None)

    if action == "show":
        print(dump_config(config), end="")
        return 0
    elif action == "path":
        path = config.get("_config_path")
        if path is None:
            print("No .quire.toml found; using defaults", file=sys.stderr)
            return 1
        print(path)
        return 0
    else:
        print("Usage: quire config <show|path>", file=sys.stderr)
        return 1
