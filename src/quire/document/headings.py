"""Heading index - ATX heading extraction and section geometry.

Builds the ordered ``Heading`` list for a markdown document and answers the
structural questions the addressing and section layers ask of it: where a
section's body ends, which heading is another's parent, and which slugs form
a heading's ancestor chain.

Only ATX headings (``#`` through ``######``) are recognised. Lines inside
fenced code blocks are ignored.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

MAX_HEADING_DEPTH = 6

HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)[ \t]*$")
_CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+$")
_FENCE_RE = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})")
_SLUG_STRIP_RE = re.compile(r"[^\w\- ]", re.UNICODE)


@dataclass(frozen=True)
class Heading:
    """A single heading in document order.

    Attributes:
        slug: Unique-within-document slug.
        title: Heading text without markers.
        depth: 1 for ``#`` through 6 for ``######``.
        index: Position in the document's heading list.
        start: Character offset of the heading line.
        line_end: Character offset just past the heading line (and its newline).
    """

    slug: str
    title: str
    depth: int
    index: int
    start: int = 0
    line_end: int = 0

    def to_dict(self) -> dict:
        return {"slug": self.slug, "title": self.title, "depth": self.depth, "index": self.index}


def title_to_slug(title: str) -> str:
    """Derive a GitHub-style slug from a heading title.

    Lower-cases, drops punctuation other than hyphens and underscores, and
    replaces spaces with hyphens. ``"Set Up: the DB!"`` becomes
    ``"set-up-the-db"``.
    """
    return _SLUG_STRIP_RE.sub("", title.strip().lower()).replace(" ", "-")


def _iter_lines(content: str):
    """Yield ``(offset, line_with_newline)`` pairs."""
    offset = 0
    for line in content.splitlines(keepends=True):
        yield offset, line
        offset += len(line)


def parse_headings(content: str) -> list[Heading]:
    """Extract headings from markdown content.

    Repeated slugs receive numeric suffixes in document order
    (``setup``, ``setup-1``, ``setup-2``) so every slug is unique within
    the document.

    Args:
        content: Raw markdown text.

    Returns:
        Headings in document order.
    """
    headings: list[Heading] = []
    seen: dict[str, int] = {}
    fence: str | None = None

    for offset, line in _iter_lines(content):
        text = line.rstrip("\r\n")
        fence_match = _FENCE_RE.match(text)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0] * len(marker)
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue

        match = HEADING_RE.match(text)
        if not match:
            continue
        title = _CLOSING_HASHES_RE.sub("", match.group(2)).strip()
        if not title:
            continue

        base = title_to_slug(title)
        slug = base
        if base in seen:
            seen[base] += 1
            slug = f"{base}-{seen[base]}"
            while slug in seen:
                seen[base] += 1
                slug = f"{base}-{seen[base]}"
        seen.setdefault(slug, 0)

        headings.append(
            Heading(
                slug=slug,
                title=title,
                depth=len(match.group(1)),
                index=len(headings),
                start=offset,
                line_end=offset + len(line),
            )
        )
    return headings


# ---------------------------------------------------------------------------
# Structural queries
# ---------------------------------------------------------------------------


def find_heading(headings: Sequence[Heading], slug: str) -> Heading | None:
    for heading in headings:
        if heading.slug == slug:
            return heading
    return None


def section_end_index(headings: Sequence[Heading], index: int) -> int:
    """Index of the first heading after ``index`` whose depth is <= its own.

    Returns ``len(headings)`` when the section runs to the end of the document.
    """
    depth = headings[index].depth
    for i in range(index + 1, len(headings)):
        if headings[i].depth <= depth:
            return i
    return len(headings)


def section_span(content: str, headings: Sequence[Heading], index: int) -> tuple[int, int]:
    """Character span of a whole section: heading line, body and subtree."""
    end_idx = section_end_index(headings, index)
    end = headings[end_idx].start if end_idx < len(headings) else len(content)
    return headings[index].start, end


def body_span(content: str, headings: Sequence[Heading], index: int) -> tuple[int, int]:
    """Character span of a section's body, from after the heading line to the section end."""
    _, end = section_span(content, headings, index)
    return headings[index].line_end, end


def own_text(content: str, headings: Sequence[Heading], index: int) -> str:
    """Text between a heading line and the next heading of any depth."""
    start = headings[index].line_end
    end = headings[index + 1].start if index + 1 < len(headings) else len(content)
    return content[start:end]


def parent_of(headings: Sequence[Heading], index: int) -> Heading | None:
    """Nearest preceding heading with a smaller depth."""
    depth = headings[index].depth
    for i in range(index - 1, -1, -1):
        if headings[i].depth < depth:
            return headings[i]
    return None


def ancestors_of(headings: Sequence[Heading], index: int) -> list[Heading]:
    """Ancestor chain from the outermost heading down to the direct parent."""
    chain: list[Heading] = []
    current = parent_of(headings, index)
    while current is not None:
        chain.append(current)
        current = parent_of(headings, current.index)
    chain.reverse()
    return chain


def hierarchical_slug(headings: Sequence[Heading], index: int) -> str:
    """Full ``a/b/c`` slug for the heading at ``index``."""
    chain = ancestors_of(headings, index) + [headings[index]]
    return "/".join(h.slug for h in chain)


def siblings_of(headings: Sequence[Heading], index: int) -> list[Heading]:
    """Headings sharing the parent and depth of the heading at ``index`` (itself included)."""
    parent = parent_of(headings, index)
    depth = headings[index].depth
    start = parent.index + 1 if parent is not None else 0
    stop = section_end_index(headings, parent.index) if parent is not None else len(headings)
    return [
        h for h in headings[start:stop] if h.depth == depth and _same_parent(headings, h, parent)
    ]


def _same_parent(headings: Sequence[Heading], heading: Heading, parent: Heading | None) -> bool:
    found = parent_of(headings, heading.index)
    if parent is None:
        return found is None
    return found is not None and found.index == parent.index


def children_of(headings: Sequence[Heading], index: int) -> list[Heading]:
    """Direct children of the heading at ``index``."""
    end = section_end_index(headings, index)
    return [
        h
        for h in headings[index + 1 : end]
        if (p := parent_of(headings, h.index)) is not None and p.index == index
    ]


def format_heading(title: str, depth: int) -> str:
    return f"{'#' * depth} {title.strip()}"


__all__ = [
    "HEADING_RE",
    "MAX_HEADING_DEPTH",
    "Heading",
    "ancestors_of",
    "body_span",
    "children_of",
    "find_heading",
    "format_heading",
    "hierarchical_slug",
    "own_text",
    "parent_of",
    "parse_headings",
    "section_end_index",
    "section_span",
    "siblings_of",
    "title_to_slug",
]
