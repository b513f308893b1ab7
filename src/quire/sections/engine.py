"""Section mutation engine - pure edits over a document's content string.

Each operation takes the current content and a heading slug and returns the
new content together with a ``SectionEditResult``. Nothing here touches
storage; ``quire.sections.operations`` wraps these functions with
read-modify-write and cache invalidation.

Section geometry:
    heading line   ``## Setup``
    body           everything after the heading line up to the next heading
                   of equal or shallower depth, descendants included
    extent         heading line plus body
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from quire.document.headings import (
    HEADING_RE,
    MAX_HEADING_DEPTH,
    Heading,
    body_span,
    children_of,
    find_heading,
    format_heading,
    parse_headings,
    section_span,
    siblings_of,
    title_to_slug,
)
from quire.errors import AddressingError, SectionNotFoundError

# Operation names
REPLACE = "replace"
APPEND = "append"
PREPEND = "prepend"
INSERT_BEFORE = "insert_before"
INSERT_AFTER = "insert_after"
APPEND_CHILD = "append_child"
REMOVE = "remove"

BODY_OPERATIONS = (REPLACE, APPEND, PREPEND)
CREATE_OPERATIONS = (INSERT_BEFORE, INSERT_AFTER, APPEND_CHILD)
OPERATIONS = BODY_OPERATIONS + CREATE_OPERATIONS + (REMOVE,)

_FENCE_RE = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})")


@dataclass(frozen=True)
class SectionLimits:
    """Size limits applied to every edit."""

    max_heading_title_length: int = 200
    max_section_body_length: int = 100_000
    max_headings_per_document: int = 1000

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> SectionLimits:
        sections = (config or {}).get("sections", {})
        defaults = cls()
        return cls(
            max_heading_title_length=int(
                sections.get("max_heading_title_length", defaults.max_heading_title_length)
            ),
            max_section_body_length=int(
                sections.get("max_section_body_length", defaults.max_section_body_length)
            ),
            max_headings_per_document=int(
                sections.get("max_headings_per_document", defaults.max_headings_per_document)
            ),
        )


DEFAULT_LIMITS = SectionLimits()


@dataclass
class SectionEditResult:
    """What an operation did.

    Attributes:
        action: ``edited``, ``created`` or ``removed``.
        section: Slug of the affected section, read back after the edit.
        depth: Depth of the affected heading after the edit.
        removed_content: Extent text removed by ``remove``.
    """

    action: str
    section: str
    depth: int | None = None
    removed_content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"action": self.action, "section": self.section}
        if self.depth is not None:
            result["depth"] = self.depth
        if self.removed_content is not None:
            result["removed_content"] = self.removed_content
        return result


@dataclass(frozen=True)
class SectionSnapshot:
    """A section lifted out of a document, ready to be recreated elsewhere."""

    slug: str
    title: str
    depth: int
    body: str


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _locate(content: str, slug: str, document_path: str) -> tuple[list[Heading], Heading]:
    headings = parse_headings(content)
    heading = find_heading(headings, slug.rsplit("/", 1)[-1])
    if heading is None:
        raise SectionNotFoundError(slug, document_path, [h.slug for h in headings])
    return headings, heading


def _require_body(body: str | None, limits: SectionLimits) -> str:
    if body is None or not body.strip():
        raise AddressingError(
            "Content is required for all operations except remove",
            "MISSING_CONTENT",
        )
    if len(body) > limits.max_section_body_length:
        raise AddressingError(
            f"Section content exceeds {limits.max_section_body_length} characters",
            "INVALID_SECTION_CONTENT",
            {"length": len(body), "limit": limits.max_section_body_length},
        )
    return body.strip("\n")


def _check_nested_headings(body: str, depth: int) -> list[Heading]:
    """Content may only carry headings deeper than the section it lands in."""
    nested = parse_headings(body)
    for heading in nested:
        if heading.depth <= depth:
            raise AddressingError(
                f"Content heading '{heading.title}' (depth {heading.depth}) must be deeper "
                f"than the target section (depth {depth})",
                "INVALID_SECTION_CONTENT",
                {"heading": heading.title, "heading_depth": heading.depth, "section_depth": depth},
            )
    return nested


def _require_title(title: str | None, limits: SectionLimits) -> str:
    if title is None or not title.strip():
        raise AddressingError("A title is required to create a section", "INVALID_TITLE")
    clean = title.strip()
    if "\n" in clean or "\r" in clean:
        raise AddressingError("Title must be a single line", "INVALID_TITLE", {"title": title})
    if len(clean) > limits.max_heading_title_length:
        raise AddressingError(
            f"Title exceeds {limits.max_heading_title_length} characters",
            "INVALID_TITLE",
            {"title": clean, "limit": limits.max_heading_title_length},
        )
    if not title_to_slug(clean):
        raise AddressingError(
            f"Title '{clean}' does not produce a usable slug", "INVALID_TITLE", {"title": clean}
        )
    return clean


def _with_newline(text: str) -> str:
    return text if not text or text.endswith("\n") else text + "\n"


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _edit_body(
    content: str,
    headings: list[Heading],
    heading: Heading,
    operation: str,
    body: str,
) -> tuple[str, SectionEditResult]:
    _check_nested_headings(body, heading.depth)
    start, end = body_span(content, headings, heading.index)
    current = content[start:end].strip("\n")

    if operation == REPLACE or not current.strip():
        new_body = body
    elif operation == APPEND:
        new_body = f"{current}\n\n{body}"
    else:
        new_body = f"{body}\n\n{current}"

    prefix = _with_newline(content[:start])
    suffix = content[end:]
    new_content = prefix + "\n" + new_body + "\n" + ("\n" if suffix else "") + suffix

    updated = parse_headings(new_content)[heading.index]
    return new_content, SectionEditResult("edited", updated.slug, updated.depth)


def _create(
    content: str,
    headings: list[Heading],
    heading: Heading,
    operation: str,
    body: str,
    title: str,
    limits: SectionLimits,
) -> tuple[str, SectionEditResult]:
    depth = heading.depth + 1 if operation == APPEND_CHILD else heading.depth
    if depth > MAX_HEADING_DEPTH:
        raise AddressingError(
            f"Cannot create a child of '{heading.slug}': depth {depth} exceeds "
            f"the markdown limit of {MAX_HEADING_DEPTH}",
            "INVALID_HEADING_DEPTH",
            {"slug": heading.slug, "depth": depth},
        )
    nested = _check_nested_headings(body, depth)
    if len(headings) + 1 + len(nested) > limits.max_headings_per_document:
        raise AddressingError(
            f"Document would exceed {limits.max_headings_per_document} headings",
            "INVALID_OPERATION",
            {"limit": limits.max_headings_per_document},
        )

    new_slug = title_to_slug(title)
    if operation == APPEND_CHILD:
        peers = children_of(headings, heading.index)
    else:
        peers = siblings_of(headings, heading.index)
    for peer in peers:
        if new_slug in (peer.slug, title_to_slug(peer.title)):
            raise AddressingError(
                f"A section '{peer.title}' already exists at this level "
                f"(slug '{new_slug}')",
                "DUPLICATE_HEADING",
                {"slug": new_slug, "existing": peer.slug, "title": title},
            )

    if operation == INSERT_BEFORE:
        position = heading.start
    else:
        _, position = section_span(content, headings, heading.index)

    prefix = _with_newline(content[:position])
    if prefix and not prefix.endswith("\n\n"):
        prefix += "\n"
    suffix = content[position:]
    block = f"{format_heading(title, depth)}\n\n{body}\n"
    new_content = prefix + block + ("\n" if suffix else "") + suffix

    new_index = sum(1 for h in headings if h.start < position)
    updated = parse_headings(new_content)
    _check_slugs_kept(headings, updated, new_index, new_slug)
    created = updated[new_index]
    return new_content, SectionEditResult("created", created.slug, created.depth)


def _check_slugs_kept(
    before: list[Heading], after: list[Heading], insert_index: int, new_slug: str
) -> None:
    """Existing headings must keep their slugs when a section is inserted before them."""
    added = len(after) - len(before)
    for old in before[insert_index:]:
        moved = after[old.index + added]
        if moved.slug != old.slug:
            raise AddressingError(
                f"Creating '{new_slug}' would rename existing section '{old.slug}' "
                f"to '{moved.slug}'",
                "DUPLICATE_HEADING",
                {"slug": new_slug, "existing": old.slug, "renamed_to": moved.slug},
            )


def _remove(
    content: str,
    headings: list[Heading],
    heading: Heading,
) -> tuple[str, SectionEditResult]:
    if heading.index == 0 and heading.depth == 1:
        raise AddressingError(
            "The document title heading cannot be removed",
            "INVALID_OPERATION",
            {"slug": heading.slug},
        )
    start, end = section_span(content, headings, heading.index)
    removed = content[start:end]
    prefix = content[:start].rstrip("\n")
    suffix = content[end:]
    if prefix and suffix:
        new_content = prefix + "\n\n" + suffix
    elif prefix:
        new_content = prefix + "\n"
    else:
        new_content = suffix
    return new_content, SectionEditResult("removed", heading.slug, removed_content=removed)


def apply_section_operation(
    content: str,
    slug: str,
    operation: str = REPLACE,
    body: str | None = None,
    title: str | None = None,
    limits: SectionLimits = DEFAULT_LIMITS,
    document_path: str = "",
) -> tuple[str, SectionEditResult]:
    """Apply one section operation to document content.

    Args:
        content: Current document text.
        slug: Target heading slug; for ``a/b/c`` only the last segment is used,
            so resolve hierarchical slugs before calling.
        operation: One of :data:`OPERATIONS`.
        body: Text to write. Required for everything except ``remove``.
        title: Heading title for ``insert_before``, ``insert_after`` and
            ``append_child``.
        limits: Size limits.
        document_path: Used only for error context.

    Returns:
        ``(new_content, result)``.

    Raises:
        SectionNotFoundError: ``slug`` is not a heading in ``content``.
        AddressingError: ``INVALID_OPERATION``, ``MISSING_CONTENT``,
            ``INVALID_TITLE``, ``INVALID_SECTION_CONTENT``,
            ``INVALID_HEADING_DEPTH`` or ``DUPLICATE_HEADING``.
    """
    if operation not in OPERATIONS:
        raise AddressingError(
            f"Invalid operation '{operation}'. Must be one of: {', '.join(OPERATIONS)}",
            "INVALID_OPERATION",
            {"operation": operation, "valid_operations": list(OPERATIONS)},
        )
    headings, heading = _locate(content, slug, document_path)

    if operation == REMOVE:
        return _remove(content, headings, heading)

    text = _require_body(body, limits)
    if operation in BODY_OPERATIONS:
        return _edit_body(content, headings, heading, operation, text)
    return _create(
        content, headings, heading, operation, text, _require_title(title, limits), limits
    )


# ---------------------------------------------------------------------------
# Move support
# ---------------------------------------------------------------------------


def extract_section(content: str, slug: str, document_path: str = "") -> SectionSnapshot:
    """Lift a section's title, depth and full body (subtree included)."""
    headings, heading = _locate(content, slug, document_path)
    start, end = body_span(content, headings, heading.index)
    return SectionSnapshot(
        slug=heading.slug,
        title=heading.title,
        depth=heading.depth,
        body=content[start:end].strip("\n"),
    )


def rebase_headings(text: str, delta: int) -> str:
    """Shift every heading in ``text`` by ``delta`` levels.

    Fenced code is left alone.

    Raises:
        AddressingError: ``INVALID_HEADING_DEPTH`` if any heading would leave 1..6.
    """
    if delta == 0:
        return text
    lines = text.splitlines(keepends=True)
    fence: str | None = None
    for i, line in enumerate(lines):
        stripped = line.rstrip("\r\n")
        fence_match = _FENCE_RE.match(stripped)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue
        match = HEADING_RE.match(stripped)
        if not match:
            continue
        depth = len(match.group(1)) + delta
        if not 1 <= depth <= MAX_HEADING_DEPTH:
            raise AddressingError(
                f"Moving would put heading '{match.group(2)}' at depth {depth}",
                "INVALID_HEADING_DEPTH",
                {"heading": match.group(2), "depth": depth},
            )
        lines[i] = "#" * depth + line[len(match.group(1)) :]
    return "".join(lines)


__all__ = [
    "APPEND",
    "APPEND_CHILD",
    "BODY_OPERATIONS",
    "CREATE_OPERATIONS",
    "DEFAULT_LIMITS",
    "INSERT_AFTER",
    "INSERT_BEFORE",
    "OPERATIONS",
    "PREPEND",
    "REMOVE",
    "REPLACE",
    "SectionEditResult",
    "SectionLimits",
    "SectionSnapshot",
    "apply_section_operation",
    "extract_section",
    "rebase_headings",
]
