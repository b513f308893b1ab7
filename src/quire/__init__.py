"""
quire - Addressable markdown document corpora

A quire is a gathering of folded sheets, the unit a book is sewn from.

quire treats a folder of markdown files as a set of addressable,
hierarchically-sectioned documents: sections and tasks are resolved by
slug, edited in place with structural checks, moved between documents
without losing content, and related to one another through links,
backlinks and shared vocabulary.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("quire")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed
__author__ = "Anspar"
__license__ = "MIT"

from quire.addressing import (
    DocumentAddress,
    SectionAddress,
    TaskAddress,
    resolve_document,
    resolve_section,
    resolve_task,
)
from quire.errors import (
    AddressingError,
    DocumentNotFoundError,
    OperationFailed,
    SectionNotFoundError,
)

__all__ = [
    "__version__",
    "AddressingError",
    "DocumentAddress",
    "DocumentNotFoundError",
    "OperationFailed",
    "SectionAddress",
    "SectionNotFoundError",
    "TaskAddress",
    "resolve_document",
    "resolve_section",
    "resolve_task",
]
