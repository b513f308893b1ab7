"""Cross-document relationship analysis.

For one document, discover:

- forward links: markdown links it makes to other documents
- backward links: other documents mentioning its path
- related by content: documents sharing enough of its vocabulary

and synthesize a spec -> guide -> implementation dependency chain from the
results. The three discoveries run concurrently; each gets its own copy of
the cycle-detection context, so nothing mutable is shared between them.

Analysis is best effort. A bad link, an unreadable candidate or a failed
search drops that item (or that whole discovery) rather than failing the
call. Only an unloadable source document yields ``None``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from quire.addressing import parse_document_address, path_to_namespace
from quire.document.manager import Document, DocumentManager, DocumentMetadata
from quire.errors import AddressingError
from quire.outcome import Outcome, capture, partition
from quire.relations.classifier import Relationship, classify_relationship
from quire.relations.keywords import extract_keywords, keyword_similarity, shared_keywords

logger = logging.getLogger(__name__)

LINK_RE = re.compile(r"\[([^\]]*)\]\(([^)]+)\)")

MAX_LINK_DEPTH = 3
DEFAULT_LINK_DEPTH = 2
SIMILARITY_THRESHOLD = 0.6
MAX_SIMILAR = 10
KEYWORD_SAMPLE_CHARS = 1000
QUERY_KEYWORDS = 5
CANDIDATE_SECTIONS = 3
SHARED_CONCEPTS = 5

_SPEC_NAMESPACE_WORDS = ("spec",)
_GUIDE_NAMESPACE_WORDS = ("guide",)
_IMPL_NAMESPACE_WORDS = ("backend", "frontend", "service", "component")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class RelatedDocument:
    """A document related to the one under analysis."""

    path: str
    title: str
    namespace: str
    relationship: Relationship
    relevance: float | None = None
    sections_linked: list[str] | None = None
    sections_linking: list[str] | None = None
    shared_concepts: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "title": self.title,
            "namespace": self.namespace,
            "relationship": self.relationship.value,
        }
        for key in ("relevance", "sections_linked", "sections_linking", "shared_concepts"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class DependencyNode:
    """One step of the synthesized dependency chain."""

    sequence: int
    path: str
    title: str
    status: str
    blocks: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sequence": self.sequence,
            "path": self.path,
            "title": self.title,
            "status": self.status,
        }
        if self.blocks:
            data["blocks"] = self.blocks
        if self.depends_on:
            data["depends_on"] = self.depends_on
        return data


@dataclass
class DocumentLinks:
    forward_links: list[RelatedDocument] = field(default_factory=list)
    backward_links: list[RelatedDocument] = field(default_factory=list)
    related_by_content: list[RelatedDocument] = field(default_factory=list)
    dependency_chain: list[DependencyNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "forward_links": [d.to_dict() for d in self.forward_links],
            "backward_links": [d.to_dict() for d in self.backward_links],
            "related_by_content": [d.to_dict() for d in self.related_by_content],
            "dependency_chain": [n.to_dict() for n in self.dependency_chain],
        }


@dataclass(frozen=True)
class CycleDetectionContext:
    """Traversal bookkeeping, copied (never mutated) for each sub-traversal."""

    visited: frozenset[str]
    current_path: tuple[str, ...]
    depth: int
    max_depth: int

    @classmethod
    def start(cls, document_path: str, link_depth: int, max_link_depth: int = MAX_LINK_DEPTH):
        return cls(
            visited=frozenset({document_path}),
            current_path=(document_path,),
            depth=0,
            max_depth=min(link_depth, max_link_depth),
        )

    def descend(self) -> CycleDetectionContext:
        return replace(self, depth=self.depth + 1)

    def is_cycle(self, target: str) -> bool:
        """True when following ``target`` would loop or exceed the depth budget."""
        return (
            self.depth >= self.max_depth
            or target in self.visited
            or target in self.current_path
        )


# ---------------------------------------------------------------------------
# Forward links
# ---------------------------------------------------------------------------


def _link_target(raw_target: str) -> tuple[str, str | None] | None:
    """(document path, section anchor) for a link target, or None for external URLs."""
    target = raw_target.strip()
    if target.startswith(("http://", "https://")):
        return None
    path, _, anchor = target.partition("#")
    path = path.strip()
    if not path:
        return None
    return parse_document_address(path).path, anchor.strip() or None


def _link_targets(document: Document) -> dict[str, tuple[str, list[str]]]:
    """Map of link target path to (first link text, target section anchors)."""
    found: dict[str, tuple[str, list[str]]] = {}
    for match in LINK_RE.finditer(document.content):
        outcome = _parse_target(match.group(2))
        if not outcome.succeeded or outcome.value is None:
            continue
        path, anchor = outcome.value
        _, anchors = found.setdefault(path, (match.group(1), []))
        if anchor is not None and anchor not in anchors:
            anchors.append(anchor)
    return found


def _parse_target(raw_target: str) -> Outcome[tuple[str, str | None] | None]:
    try:
        return Outcome.ok(_link_target(raw_target), raw_target)
    except AddressingError as exc:
        return Outcome.failed(exc, raw_target)


async def find_forward_links(
    manager: DocumentManager,
    document: Document,
    context: CycleDetectionContext,
) -> list[RelatedDocument]:
    """Documents linked from ``document``, one entry per target.

    Repeated links to the same target merge the section anchors they point at
    into ``sections_linked``, which stays None when no link carries an anchor.
    """
    targets = _link_targets(document)

    async def resolve(target: str, link_text: str, sections: list[str]) -> RelatedDocument:
        linked = await manager.get_document(target)
        if linked is None:
            raise LookupError(f"link target not found: {target}")
        title = linked.metadata.title
        return RelatedDocument(
            path=target,
            title=title,
            namespace=path_to_namespace(target),
            relationship=classify_relationship(document.path, target, link_text, title),
            sections_linked=sections or None,
        )

    outcomes = []
    for target, (link_text, sections) in targets.items():
        if target == document.path or context.is_cycle(target):
            logger.debug("forward link %s skipped (cycle or depth)", target)
            continue
        outcomes.append(
            await capture(target, lambda t=target, lt=link_text, s=sections: resolve(t, lt, s))
        )
    related, failures = partition(outcomes)
    for failure in failures:
        logger.debug("forward link %s dropped: %s", failure.label, failure.error)
    return related


# ---------------------------------------------------------------------------
# Backward links
# ---------------------------------------------------------------------------


async def find_backward_links(
    manager: DocumentManager,
    document: Document,
    context: CycleDetectionContext,
) -> list[RelatedDocument]:
    """Documents whose content mentions ``document``'s path."""
    results = await manager.search_documents(
        document.path, search_in=["content"], fuzzy=False, group_by_document=True
    )
    related: list[RelatedDocument] = []
    seen: set[str] = set()
    for result in results:
        path = result.document_path
        if path == document.path or path in seen or context.is_cycle(path):
            continue
        seen.add(path)
        sections = list(dict.fromkeys(m.slug for m in result.matches if m.slug))
        related.append(
            RelatedDocument(
                path=path,
                title=result.document_title,
                namespace=path_to_namespace(path),
                relationship=classify_relationship(
                    path, document.path, "", document.metadata.title
                ),
                sections_linking=sections,
            )
        )
    return related


# ---------------------------------------------------------------------------
# Content similarity
# ---------------------------------------------------------------------------


async def _sample_text(
    manager: DocumentManager, document: Document, title: str, sections: int | None = None
) -> str:
    headings = document.headings if sections is None else document.headings[:sections]
    parts = [title]
    for heading in headings:
        content = await manager.get_section_content(document.path, heading.slug)
        if content:
            parts.append(content)
    return " ".join(parts)[:KEYWORD_SAMPLE_CHARS]


async def find_related_by_content(
    manager: DocumentManager,
    document: Document,
    context: CycleDetectionContext,
    title: str | None = None,
    threshold: float = SIMILARITY_THRESHOLD,
    limit: int = MAX_SIMILAR,
) -> list[RelatedDocument]:
    """Documents sharing at least ``threshold`` of their keywords with ``document``."""
    source_title = title or document.metadata.title
    source_keywords = extract_keywords(await _sample_text(manager, document, source_title))
    if not source_keywords:
        return []

    query = " ".join(source_keywords[:QUERY_KEYWORDS])
    results = await manager.search_documents(
        query, search_in=["title", "content"], fuzzy=True, group_by_document=True
    )

    async def score(path: str, candidate_title: str) -> RelatedDocument | None:
        candidate = await manager.get_document(path)
        if candidate is None:
            raise LookupError(f"candidate not found: {path}")
        text = await _sample_text(manager, candidate, candidate_title, CANDIDATE_SECTIONS)
        keywords = extract_keywords(text)
        relevance = keyword_similarity(source_keywords, keywords)
        if relevance < threshold:
            return None
        return RelatedDocument(
            path=path,
            title=candidate_title,
            namespace=path_to_namespace(path),
            relationship=Relationship.SIMILAR_CONTENT,
            relevance=round(relevance, 2),
            shared_concepts=shared_keywords(source_keywords, keywords)[:SHARED_CONCEPTS],
        )

    outcomes = []
    for result in results:
        path = result.document_path
        if path == document.path or context.is_cycle(path):
            continue
        outcomes.append(
            await capture(path, lambda p=path, t=result.document_title: score(p, t))
        )
    scored, failures = partition(outcomes)
    for failure in failures:
        logger.debug("similarity candidate %s dropped: %s", failure.label, failure.error)

    related = [doc for doc in scored if doc is not None]
    related.sort(key=lambda d: d.relevance or 0.0, reverse=True)
    return related[:limit]


# ---------------------------------------------------------------------------
# Dependency chain
# ---------------------------------------------------------------------------


def determine_completion_status(metadata: DocumentMetadata | Mapping[str, Any] | None) -> str:
    """``completed``, ``in_progress`` or ``pending`` from document metadata.

    A numeric completion percentage decides when present; otherwise any
    linked tasks mean ``in_progress``.
    """
    if metadata is None:
        return "pending"
    if isinstance(metadata, Mapping):
        percentage = metadata.get("completion_percentage")
        tasks_linked = metadata.get("tasks_linked", 0)
    else:
        percentage = getattr(metadata, "completion_percentage", None)
        tasks_linked = getattr(metadata, "tasks_linked", 0)

    if isinstance(percentage, (int, float)) and not isinstance(percentage, bool):
        if percentage >= 100:
            return "completed"
        if percentage > 0:
            return "in_progress"
        return "pending"
    if isinstance(tasks_linked, int) and tasks_linked > 0:
        return "in_progress"
    return "pending"


def _namespace_has(doc: RelatedDocument, words: Iterable[str]) -> bool:
    namespace = doc.namespace.lower()
    return any(word in namespace for word in words)


def build_dependency_chain(
    forward: list[RelatedDocument],
    backward: list[RelatedDocument],
    similar: list[RelatedDocument],
    status_lookup: Callable[[str], str] | None = None,
) -> list[DependencyNode]:
    """Order related documents as specs, then guides, then implementations.

    Specs block the guides not yet emitted; guides block the implementations
    not yet emitted and depend on every spec; implementations depend on every
    spec and guide. Each path is emitted once, in the first bucket it fits.
    """
    everything = [*forward, *backward, *similar]
    specs = [
        d
        for d in everything
        if d.relationship is Relationship.IMPLEMENTS_SPEC
        or _namespace_has(d, _SPEC_NAMESPACE_WORDS)
    ]
    guides = [
        d
        for d in everything
        if d.relationship is Relationship.IMPLEMENTATION_GUIDE
        or _namespace_has(d, _GUIDE_NAMESPACE_WORDS)
    ]
    impls = [
        d
        for d in everything
        if d.relationship is Relationship.CONSUMES_API or _namespace_has(d, _IMPL_NAMESPACE_WORDS)
    ]
    spec_paths = list(dict.fromkeys(d.path for d in specs))
    guide_paths = list(dict.fromkeys(d.path for d in guides))

    lookup = status_lookup or (lambda _path: "pending")
    processed: set[str] = set()
    chain: list[DependencyNode] = []

    def emit(doc: RelatedDocument, blocks: list[str], depends_on: list[str]) -> None:
        processed.add(doc.path)
        chain.append(
            DependencyNode(
                sequence=len(chain) + 1,
                path=doc.path,
                title=doc.title,
                status=lookup(doc.path),
                blocks=list(dict.fromkeys(p for p in blocks if p != doc.path)),
                depends_on=list(dict.fromkeys(p for p in depends_on if p != doc.path)),
            )
        )

    for spec in specs:
        if spec.path in processed:
            continue
        emit(spec, [g.path for g in guides if g.path not in processed], [])
    for guide in guides:
        if guide.path in processed:
            continue
        emit(guide, [i.path for i in impls if i.path not in processed], spec_paths)
    for impl in impls:
        if impl.path in processed:
            continue
        emit(impl, [], spec_paths + guide_paths)
    return chain


async def _statuses(manager: DocumentManager, paths: Iterable[str]) -> dict[str, str]:
    statuses: dict[str, str] = {}
    for path in dict.fromkeys(paths):
        outcome = await capture(path, lambda p=path: manager.get_document(p))
        document = outcome.value if outcome.succeeded else None
        statuses[path] = determine_completion_status(document.metadata if document else None)
    return statuses


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _or_empty(label: str, work: Awaitable[list[RelatedDocument]]) -> list[RelatedDocument]:
    try:
        return await work
    except Exception as exc:  # noqa: BLE001
        logger.debug("%s discovery failed: %s", label, exc)
        return []


async def analyze_document_links(
    manager: DocumentManager,
    document_path: str,
    link_depth: int = DEFAULT_LINK_DEPTH,
    document_title: str | None = None,
    max_link_depth: int = MAX_LINK_DEPTH,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    max_similar: int = MAX_SIMILAR,
) -> DocumentLinks | None:
    """Discover how ``document_path`` relates to the rest of the corpus.

    Args:
        manager: Document storage and search.
        document_path: Document to analyze.
        link_depth: Traversal depth budget, capped at ``max_link_depth``.
        document_title: Overrides the stored title for keyword extraction.
        max_link_depth: Hard cap on ``link_depth``.
        similarity_threshold: Minimum keyword overlap for content matches.
        max_similar: Maximum content matches returned.

    Returns:
        The relationships found, or None when the document cannot be loaded
        or the analysis fails outright.
    """
    try:
        path = parse_document_address(document_path).path
        document = await manager.get_document(path)
        if document is None:
            return None

        context = CycleDetectionContext.start(path, link_depth, max_link_depth)
        forward, backward, similar = await asyncio.gather(
            _or_empty("forward", find_forward_links(manager, document, context.descend())),
            _or_empty("backward", find_backward_links(manager, document, context.descend())),
            _or_empty(
                "content",
                find_related_by_content(
                    manager,
                    document,
                    context.descend(),
                    title=document_title,
                    threshold=similarity_threshold,
                    limit=max_similar,
                ),
            ),
        )
        statuses = await _statuses(manager, (d.path for d in [*forward, *backward, *similar]))
        chain = build_dependency_chain(
            forward, backward, similar, lambda p: statuses.get(p, "pending")
        )
        return DocumentLinks(forward, backward, similar, chain)
    except Exception as exc:  # noqa: BLE001
        logger.warning("relationship analysis of %s failed: %s", document_path, exc)
        return None


__all__ = [
    "CycleDetectionContext",
    "DependencyNode",
    "DocumentLinks",
    "RelatedDocument",
    "analyze_document_links",
    "build_dependency_chain",
    "determine_completion_status",
    "find_backward_links",
    "find_forward_links",
    "find_related_by_content",
]
