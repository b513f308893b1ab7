"""
quire.relations - Link, backlink and content-similarity analysis
"""

from quire.relations.analyzer import (
    CycleDetectionContext,
    DependencyNode,
    DocumentLinks,
    RelatedDocument,
    analyze_document_links,
    build_dependency_chain,
    determine_completion_status,
)
from quire.relations.classifier import Relationship, classify_relationship
from quire.relations.keywords import extract_keywords, keyword_similarity

__all__ = [
    "CycleDetectionContext",
    "DependencyNode",
    "DocumentLinks",
    "RelatedDocument",
    "Relationship",
    "analyze_document_links",
    "build_dependency_chain",
    "classify_relationship",
    "determine_completion_status",
    "extract_keywords",
    "keyword_similarity",
]
