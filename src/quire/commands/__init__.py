"""
quire.commands - CLI command implementations
"""

__all__ = [
    "config_cmd",
    "headings",
    "move",
    "related",
    "section",
]
