"""Document storage collaborator.

``DocumentManager`` is the narrow interface the section and relation layers
depend on; ``FileDocumentManager`` implements it over a directory of markdown
files. Parsed documents are cached by path and dropped with
``invalidate_document`` after every write.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from quire.document.headings import Heading, body_span, find_heading, own_text, parse_headings
from quire.errors import AddressingError, OperationFailed

logger = logging.getLogger(__name__)

SNIPPET_RADIUS = 60
_CHECKBOX_RE = re.compile(r"^\s*[-*+]\s+\[([ xX])\]", re.MULTILINE)
_TOKEN_RE = re.compile(r"\S+")


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass
class DocumentMetadata:
    """Per-document facts derived at load time."""

    path: str
    title: str
    last_modified: str
    namespace: str = ""
    completion_percentage: int | None = None
    tasks_linked: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "title": self.title,
            "last_modified": self.last_modified,
            "namespace": self.namespace,
            "completion_percentage": self.completion_percentage,
            "tasks_linked": self.tasks_linked,
        }


@dataclass
class Document:
    """A loaded document: raw content plus its heading index."""

    metadata: DocumentMetadata
    headings: list[Heading]
    content: str

    @property
    def path(self) -> str:
        return self.metadata.path


@dataclass(frozen=True)
class SearchMatch:
    slug: str
    snippet: str
    score: float


@dataclass
class SearchResult:
    """Search hits for one document."""

    document_path: str
    document_title: str
    matches: list[SearchMatch] = field(default_factory=list)

    @property
    def score(self) -> float:
        return max((m.score for m in self.matches), default=0.0)


@runtime_checkable
class DocumentManager(Protocol):
    """Storage operations consumed by the section and relation layers."""

    async def get_document(self, path: str) -> Document | None: ...

    async def get_section_content(self, path: str, slug: str) -> str | None: ...

    async def search_documents(
        self,
        query: str,
        search_in: tuple[str, ...] | list[str] = ("title", "content"),
        fuzzy: bool = False,
        group_by_document: bool = True,
    ) -> list[SearchResult]: ...

    async def read_content(self, path: str) -> str | None: ...

    async def write_content(self, path: str, content: str) -> None: ...

    def invalidate_document(self, path: str) -> None: ...


# ---------------------------------------------------------------------------
# Filesystem implementation
# ---------------------------------------------------------------------------


def _namespace(path: str) -> str:
    parts = path.strip("/").split("/")
    return "/".join(parts[:-1])


def _snippet(text: str, pos: int, length: int) -> str:
    start = max(0, pos - SNIPPET_RADIUS)
    end = min(len(text), pos + length + SNIPPET_RADIUS)
    return " ".join(text[start:end].split())


def _completion(content: str) -> tuple[int | None, int]:
    boxes = _CHECKBOX_RE.findall(content)
    if not boxes:
        return None, 0
    done = sum(1 for mark in boxes if mark in "xX")
    return round(done * 100 / len(boxes)), len(boxes)


class FileDocumentManager:
    """Documents stored as markdown files under ``root``.

    Document paths are root-relative and slash-prefixed: ``/api/auth.md``
    maps to ``<root>/api/auth.md``. Paths that escape the root are rejected.
    """

    def __init__(self, root: Path, extension: str = ".md") -> None:
        self.root = Path(root).resolve()
        self.extension = extension
        self._cache: dict[str, Document] = {}

    # -- path handling --

    def _resolve(self, path: str) -> Path:
        relative = path.lstrip("/")
        target = (self.root / relative).resolve()
        if target != self.root and self.root not in target.parents:
            raise AddressingError(
                f"Path escapes the document root: {path}",
                "INVALID_ADDRESS",
                {"path": path},
            )
        return target

    def list_documents(self) -> list[str]:
        """All document paths under the root, sorted."""
        if not self.root.is_dir():
            return []
        return sorted(
            "/" + p.relative_to(self.root).as_posix()
            for p in self.root.rglob(f"*{self.extension}")
            if p.is_file()
        )

    # -- reads --

    async def read_content(self, path: str) -> str | None:
        file_path = self._resolve(path)
        if not file_path.is_file():
            return None
        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise OperationFailed(
                f"Failed to read {path}: {exc}", context={"path": path}, cause=exc
            ) from exc

    async def get_document(self, path: str) -> Document | None:
        cached = self._cache.get(path)
        if cached is not None:
            return cached

        content = await self.read_content(path)
        if content is None:
            return None

        headings = parse_headings(content)
        file_path = self._resolve(path)
        completion, task_count = _completion(content)
        metadata = DocumentMetadata(
            path=path,
            title=headings[0].title if headings else file_path.stem,
            last_modified=datetime.fromtimestamp(file_path.stat().st_mtime).isoformat(),
            namespace=_namespace(path),
            completion_percentage=completion,
            tasks_linked=task_count,
        )
        document = Document(metadata=metadata, headings=headings, content=content)
        self._cache[path] = document
        return document

    async def get_section_content(self, path: str, slug: str) -> str | None:
        """Body text of a section, subtree included.

        A hierarchical slug is looked up by its final segment.
        """
        document = await self.get_document(path)
        if document is None:
            return None
        heading = find_heading(document.headings, slug.rsplit("/", 1)[-1])
        if heading is None:
            return None
        start, end = body_span(document.content, document.headings, heading.index)
        return document.content[start:end]

    async def search_documents(
        self,
        query: str,
        search_in: tuple[str, ...] | list[str] = ("title", "content"),
        fuzzy: bool = False,
        group_by_document: bool = True,
    ) -> list[SearchResult]:
        """Case-insensitive substring search over titles and section text.

        Without ``fuzzy`` the whole query must appear; with it, any query token
        counts and the score grows with the number of tokens found.
        """
        needle = query.strip().lower()
        if not needle:
            return []
        terms = _TOKEN_RE.findall(needle) if fuzzy else [needle]

        results: list[SearchResult] = []
        for doc_path in self.list_documents():
            try:
                document = await self.get_document(doc_path)
            except OperationFailed as exc:
                logger.debug("search skipped %s: %s", doc_path, exc)
                continue
            if document is None or not document.headings:
                continue
            matches: list[SearchMatch] = []
            for heading in document.headings:
                fields: list[tuple[str, float]] = []
                if "title" in search_in:
                    fields.append((heading.title, 2.0))
                if "content" in search_in:
                    body = own_text(document.content, document.headings, heading.index)
                    fields.append((body, 1.0))
                best: SearchMatch | None = None
                for text, weight in fields:
                    lowered = text.lower()
                    hits = [(t, lowered.find(t)) for t in terms if t in lowered]
                    if not hits:
                        continue
                    score = weight * len(hits) / len(terms)
                    term, pos = hits[0]
                    if best is None or score > best.score:
                        best = SearchMatch(heading.slug, _snippet(text, pos, len(term)), score)
                if best is not None:
                    matches.append(best)
            if not matches:
                continue
            matches.sort(key=lambda m: m.score, reverse=True)
            if group_by_document:
                results.append(SearchResult(doc_path, document.metadata.title, matches))
            else:
                title = document.metadata.title
                results.extend(SearchResult(doc_path, title, [m]) for m in matches)

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    # -- writes --

    async def write_content(self, path: str, content: str) -> None:
        file_path = self._resolve(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")

    def invalidate_document(self, path: str) -> None:
        if self._cache.pop(path, None) is not None:
            logger.debug("invalidated cached document %s", path)


__all__ = [
    "Document",
    "DocumentManager",
    "DocumentMetadata",
    "FileDocumentManager",
    "SearchMatch",
    "SearchResult",
]
