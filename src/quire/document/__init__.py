"""
quire.document - Heading index and document storage
"""

from quire.document.headings import Heading, parse_headings, title_to_slug
from quire.document.manager import (
    Document,
    DocumentManager,
    DocumentMetadata,
    FileDocumentManager,
    SearchMatch,
    SearchResult,
)

__all__ = [
    "Document",
    "DocumentManager",
    "DocumentMetadata",
    "FileDocumentManager",
    "Heading",
    "SearchMatch",
    "SearchResult",
    "parse_headings",
    "title_to_slug",
]
