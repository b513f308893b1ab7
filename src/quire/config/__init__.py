"""
quire.config - Configuration loading and defaults

Configuration lives in a ``.quire.toml`` file discovered by walking up from
the working directory. Values are merged over :data:`DEFAULT_CONFIG`, then
``QUIRE_<SECTION>_<KEY>`` environment variables are applied on top.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

import tomlkit

from quire.config.defaults import CONFIG_FILENAME, DEFAULT_CONFIG, ENV_PREFIX

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TOML parsing
# ---------------------------------------------------------------------------


def parse_toml_document(content: str) -> tomlkit.TOMLDocument:
    """Parse TOML text into a format-preserving tomlkit document.

    Use this when the document will be modified and written back, so that
    comments and layout survive.
    """
    return tomlkit.parse(content)


def parse_toml(content: str) -> dict[str, Any]:
    """Parse TOML text into plain Python containers.

    Args:
        content: TOML source text.

    Returns:
        Nested dicts, lists and scalars with tomlkit wrappers removed.
    """
    return parse_toml_document(content).unwrap()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def find_config_file(start_path: Path) -> Path | None:
    """Find ``.quire.toml`` in ``start_path`` or any parent directory.

    Args:
        start_path: Directory (or file) to start searching from.

    Returns:
        Path to the config file, or None when none exists.
    """
    current = Path(start_path).resolve()
    if current.is_file():
        current = current.parent

    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``.

    Nested dicts are merged key by key; any other value in ``override``
    replaces the base value.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a config file and merge it over the defaults.

    Args:
        config_path: Path to a ``.quire.toml`` file.

    Returns:
        The merged configuration dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        tomlkit.exceptions.ParseError: If the file is not valid TOML.
    """
    content = Path(config_path).read_text(encoding="utf-8")
    user_config = parse_toml(content)
    return merge_configs(DEFAULT_CONFIG, user_config)


def _try_parse_env_value(value: str) -> Any:
    """Interpret an environment variable value.

    JSON arrays and objects become lists and dicts, ``true``/``false`` become
    booleans and numeric strings become numbers. Anything else, including
    malformed JSON, is returned unchanged.
    """
    stripped = value.strip()
    if stripped.startswith(("[", "{")):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return float(stripped)
    except ValueError:
        return value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply ``QUIRE_<SECTION>_<KEY>`` environment variables to ``config``.

    The first underscore-separated word after the prefix names the section;
    the remainder, lower-cased, is the key. ``QUIRE_SECTIONS_MAX_BATCH_SIZE=50``
    sets ``config["sections"]["max_batch_size"] = 50``.
    """
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        remainder = name[len(ENV_PREFIX) :].lower()
        section, sep, key = remainder.partition("_")
        if not sep or not section or not key:
            continue
        config.setdefault(section, {})
        if not isinstance(config[section], dict):
            continue
        config[section][key] = _try_parse_env_value(raw)
        logger.debug("config override from %s", name)
    return config


def get_config(
    start_path: Path | None = None,
    quiet: bool = False,
    config_path: Path | None = None,
) -> dict[str, Any]:
    """Resolve the effective configuration.

    Args:
        start_path: Directory to search from; defaults to the working directory.
        quiet: Suppress the notice logged when no config file is found.
        config_path: Explicit config file, bypassing discovery.

    Returns:
        Defaults, merged with the discovered file, with env overrides applied.
    """
    path = config_path or find_config_file(start_path or Path.cwd())
    if path is not None:
        config = load_config(path)
        config["_config_path"] = str(path)
    else:
        if not quiet:
            logger.info("no %s found, using defaults", CONFIG_FILENAME)
        config = copy.deepcopy(DEFAULT_CONFIG)
    return _apply_env_overrides(config)


def get_docs_root(config: dict[str, Any], base: Path | None = None) -> Path:
    """Return the documents root directory from config.

    A relative ``documents.root`` is taken relative to the config file's
    directory when one was loaded, otherwise relative to ``base`` or the
    working directory.
    """
    root = Path(config.get("documents", {}).get("root", "."))
    if root.is_absolute():
        return root
    anchor = config.get("_config_path")
    if anchor:
        return (Path(anchor).parent / root).resolve()
    return ((base or Path.cwd()) / root).resolve()


def dump_config(config: dict[str, Any]) -> str:
    """Render a config dict as TOML text, dropping private keys."""
    public = {k: v for k, v in config.items() if not k.startswith("_")}
    return tomlkit.dumps(public)


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "dump_config",
    "find_config_file",
    "get_config",
    "get_docs_root",
    "load_config",
    "merge_configs",
    "parse_toml",
    "parse_toml_document",
]
