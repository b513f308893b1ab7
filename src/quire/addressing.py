"""Address resolution for documents, sections and tasks.

Turns raw caller strings (``/api/auth.md``, ``auth.md#overview``,
``setup/database``) into immutable, validated address objects. Resolution is
pure: structural checks run against a heading-index snapshot supplied by the
caller as a mapping of document path to its headings.

Example:
    >>> index = {"/a.md": parse_headings("# A\\n## Tasks\\n### Setup\\n")}
    >>> resolve_task("setup", "/a.md", index).slug
    'setup'
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache

from quire.document.headings import Heading, ancestors_of, find_heading, hierarchical_slug
from quire.errors import AddressingError, DocumentNotFoundError, SectionNotFoundError

ADDRESS_CACHE_SIZE = 1000
DOCUMENT_EXTENSION = ".md"
TASKS_SLUG = "tasks"

MAX_SLUG_LENGTH = 1000
MAX_SLUG_SEGMENTS = 20
MAX_SEGMENT_LENGTH = 200

_FORBIDDEN_SLUG_RE = re.compile(r"[\x00-\x1f\x7f\\%]")

HeadingIndex = Mapping[str, Sequence[Heading]]


# ---------------------------------------------------------------------------
# Address types
# ---------------------------------------------------------------------------


def path_to_namespace(path: str) -> str:
    """Folder part of a document path: ``/api/specs/auth.md`` -> ``api/specs``."""
    parts = path.strip("/").split("/")
    return "/".join(parts[:-1])


def path_to_slug(path: str) -> str:
    """File stem of a document path: ``/api/specs/auth.md`` -> ``auth``."""
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return name[: -len(DOCUMENT_EXTENSION)] if name.endswith(DOCUMENT_EXTENSION) else name


@dataclass(frozen=True)
class DocumentAddress:
    """A document path, slash-prefixed and ending in ``.md``."""

    path: str
    namespace: str
    slug: str

    @classmethod
    def from_path(cls, path: str) -> DocumentAddress:
        return cls(path=path, namespace=path_to_namespace(path), slug=path_to_slug(path))

    def normalize(self) -> DocumentAddress:
        return parse_document_address(self.path)

    def validate(self) -> None:
        _check_document_path(self.path, self.path)

    @property
    def cache_key(self) -> str:
        return self.path

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class SectionAddress:
    """A hierarchical slug within a document.

    Attributes:
        document: The containing document.
        slug: ``a/b/c`` style slug as supplied (leading ``#`` removed).
        depth: Number of slug segments.
        full_path: ``<document path>#<slug>``.
    """

    document: DocumentAddress
    slug: str
    depth: int
    full_path: str

    @classmethod
    def create(cls, document: DocumentAddress, slug: str) -> SectionAddress:
        slug = validate_slug(slug)
        return cls(
            document=document,
            slug=slug,
            depth=len(slug.split("/")),
            full_path=f"{document.path}#{slug}",
        )

    @property
    def leaf(self) -> str:
        """Final slug segment, the heading actually addressed."""
        return self.slug.rsplit("/", 1)[-1]

    def normalize(self) -> SectionAddress:
        return SectionAddress.create(self.document.normalize(), self.slug)

    def validate(self) -> None:
        self.document.validate()
        validate_slug(self.slug)

    @property
    def cache_key(self) -> str:
        return self.document.path

    def __str__(self) -> str:
        return self.full_path


@dataclass(frozen=True)
class TaskAddress:
    """A section sitting exactly one level below a ``tasks`` heading."""

    section: SectionAddress
    parent_tasks_slug: str

    @property
    def document(self) -> DocumentAddress:
        return self.section.document

    @property
    def slug(self) -> str:
        return self.section.slug

    def normalize(self) -> TaskAddress:
        return TaskAddress(self.section.normalize(), self.parent_tasks_slug)

    def validate(self) -> None:
        self.section.validate()

    @property
    def cache_key(self) -> str:
        return self.section.cache_key

    def __str__(self) -> str:
        return self.section.full_path


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _invalid_address(message: str, raw: str) -> AddressingError:
    return AddressingError(message, "INVALID_ADDRESS", {"path": raw})


def _check_document_path(path: str, raw: str) -> None:
    if not path.startswith("/"):
        raise _invalid_address(f"Document path must start with '/': {raw}", raw)
    if not path.endswith(DOCUMENT_EXTENSION):
        raise _invalid_address(
            f"Document path must end with '{DOCUMENT_EXTENSION}': {raw}", raw
        )
    for segment in path[1:].split("/"):
        if segment in ("", ".", ".."):
            raise _invalid_address(f"Invalid path segment '{segment}' in {raw}", raw)


@lru_cache(maxsize=ADDRESS_CACHE_SIZE)
def _parse_document_address(raw: str, destination: bool) -> DocumentAddress:
    path = raw.strip()
    if not path:
        raise _invalid_address("Document path is empty", raw)
    if "\\" in path:
        raise _invalid_address(f"Document path must use '/' separators: {raw}", raw)
    if not path.startswith("/"):
        path = "/" + path
    if destination and not path.endswith(DOCUMENT_EXTENSION):
        path += DOCUMENT_EXTENSION
    _check_document_path(path, raw)
    return DocumentAddress.from_path(path)


def parse_document_address(raw: str, destination: bool = False) -> DocumentAddress:
    """Normalize a raw document reference.

    A missing leading ``/`` is added. A missing ``.md`` is appended only for
    destination paths; a source path must name an existing file as written.

    Raises:
        AddressingError: ``INVALID_ADDRESS`` for empty, backslashed or
            traversal paths, or a source path lacking ``.md``.
    """
    if not isinstance(raw, str):
        raise _invalid_address("Document path must be a string", repr(raw))
    return _parse_document_address(raw, destination)


def validate_slug(slug: str) -> str:
    """Reject slugs that could not have come from a heading title.

    Returns the slug with one leading ``#`` removed.

    Raises:
        AddressingError: ``INVALID_SLUG`` with the offending slug in context.
    """

    def invalid(reason: str) -> AddressingError:
        return AddressingError(f"Invalid slug '{slug}': {reason}", "INVALID_SLUG", {"slug": slug})

    if not isinstance(slug, str):
        raise AddressingError("Slug must be a string", "INVALID_SLUG", {"slug": repr(slug)})
    value = slug[1:] if slug.startswith("#") else slug
    if not value:
        raise invalid("slug is empty")
    if _FORBIDDEN_SLUG_RE.search(value):
        raise invalid("contains control characters, backslashes or '%'")
    if unicodedata.normalize("NFC", value) != value:
        raise invalid("not in Unicode NFC form")
    if value != value.strip() or "  " in value:
        raise invalid("contains leading, trailing or repeated whitespace")
    if len(value) > MAX_SLUG_LENGTH:
        raise invalid(f"longer than {MAX_SLUG_LENGTH} characters")
    if value.startswith("/") or value.endswith("/"):
        raise invalid("leading or trailing '/'")
    segments = value.split("/")
    if len(segments) > MAX_SLUG_SEGMENTS:
        raise invalid(f"more than {MAX_SLUG_SEGMENTS} segments")
    for segment in segments:
        if segment in ("", ".", ".."):
            raise invalid(f"invalid segment '{segment}'")
        if len(segment) > MAX_SEGMENT_LENGTH:
            raise invalid(f"segment longer than {MAX_SEGMENT_LENGTH} characters")
    return value


def parse_section_reference(
    raw: str,
    default_document: DocumentAddress | str | None = None,
) -> tuple[str, str]:
    """Split a section reference into ``(document_path, slug)``.

    ``doc.md#slug`` names the document explicitly and wins over
    ``default_document``. A bare slug uses ``default_document``.

    Raises:
        AddressingError: ``MISSING_DOCUMENT_PATH``, ``MISSING_SLUG`` or
            ``PATH_WITHOUT_SLUG``, plus any document or slug validation error.
    """
    value = raw.strip() if isinstance(raw, str) else ""
    if not value:
        raise AddressingError("Section reference is empty", "MISSING_SLUG", {"reference": raw})

    if "#" in value:
        doc_part, _, slug = value.partition("#")
        if not doc_part.strip():
            raise AddressingError(
                f"Missing document path in '{raw}'",
                "MISSING_DOCUMENT_PATH",
                {"reference": raw},
            )
        if not slug.strip():
            raise AddressingError(
                f"Missing section slug in '{raw}'", "MISSING_SLUG", {"reference": raw}
            )
        return parse_document_address(doc_part).path, validate_slug(slug.strip())

    if value.startswith("/"):
        raise AddressingError(
            f"'{raw}' looks like a document path; use '{raw}#<slug>' to name a section",
            "PATH_WITHOUT_SLUG",
            {"reference": raw},
        )
    if default_document is None:
        raise AddressingError(
            f"No document given for section '{raw}'",
            "MISSING_DOCUMENT_PATH",
            {"reference": raw},
        )
    default_path = (
        default_document.path
        if isinstance(default_document, DocumentAddress)
        else parse_document_address(default_document).path
    )
    return default_path, validate_slug(value)


# ---------------------------------------------------------------------------
# Structural resolution
# ---------------------------------------------------------------------------


def _headings_for(document_path: str, index: HeadingIndex) -> Sequence[Heading]:
    headings = index.get(document_path)
    if headings is None:
        raise DocumentNotFoundError(document_path)
    return headings


def validate_section(document_path: str, slug: str, headings: Sequence[Heading]) -> Heading:
    """Check a hierarchical slug against a document's heading index.

    The final segment must name a heading. Earlier segments, read left to
    right, must be its direct-parent chain: ``a/b/c`` requires ``b`` to be
    ``c``'s parent and ``a`` to be ``b``'s parent. The chain may start below
    the document root.

    Returns:
        The addressed heading.

    Raises:
        SectionNotFoundError: Naming the offending segment and listing every
            available slug.
    """
    available = [h.slug for h in headings]
    segments = slug.split("/")
    target = find_heading(headings, segments[-1])
    if target is None:
        raise SectionNotFoundError(slug, document_path, available, segment=segments[-1])
    if len(segments) == 1:
        return target

    wanted = segments[:-1]
    chain = [h.slug for h in ancestors_of(headings, target.index)]
    missing = len(wanted) - len(chain)
    aligned: list[str | None] = [None] * max(missing, 0) + chain[-len(wanted) :]
    for segment, actual in zip(wanted, aligned):
        if segment == actual:
            continue
        if segment not in available:
            reason = f"segment '{segment}' does not exist"
        else:
            reason = f"segment '{segment}' is not an ancestor of '{segments[-1]}'"
        raise SectionNotFoundError(
            slug,
            document_path,
            available,
            message=(
                f"Invalid hierarchical path '{slug}' in {document_path}: {reason}. "
                f"Actual path: {hierarchical_slug(headings, target.index)}. "
                f"Available sections: {', '.join(available)}"
            ),
            segment=segment,
            actual_path=hierarchical_slug(headings, target.index),
        )
    return target


def resolve_document(raw: str, index: HeadingIndex) -> DocumentAddress:
    """Resolve a source document reference that must already exist."""
    address = parse_document_address(raw)
    _headings_for(address.path, index)
    return address


def resolve_section(
    raw: str,
    context_document: DocumentAddress | str | None,
    index: HeadingIndex,
) -> SectionAddress:
    """Resolve ``raw`` to a section that exists in the index."""
    document_path, slug = parse_section_reference(raw, context_document)
    headings = _headings_for(document_path, index)
    validate_section(document_path, slug, headings)
    return SectionAddress.create(DocumentAddress.from_path(document_path), slug)


def is_tasks_heading(heading: Heading) -> bool:
    return heading.slug == TASKS_SLUG or heading.title.strip().lower() == TASKS_SLUG


def task_parent(headings: Sequence[Heading], heading: Heading) -> Heading | None:
    """The ``tasks`` heading directly containing ``heading``, if any.

    The nearest preceding ``tasks`` heading counts only when ``heading`` is
    exactly one level deeper and no heading at or above the tasks depth sits
    between them.
    """
    tasks = None
    for candidate in reversed(headings[: heading.index]):
        if is_tasks_heading(candidate):
            tasks = candidate
            break
    if tasks is None or heading.depth != tasks.depth + 1:
        return None
    for between in headings[tasks.index + 1 : heading.index]:
        if between.depth <= tasks.depth:
            return None
    return tasks


def is_task_section(slug: str, headings: Sequence[Heading]) -> bool:
    heading = find_heading(headings, slug.rsplit("/", 1)[-1])
    return heading is not None and task_parent(headings, heading) is not None


def resolve_task(
    raw: str,
    context_document: DocumentAddress | str | None,
    index: HeadingIndex,
) -> TaskAddress:
    """Resolve ``raw`` to a task: a direct child of a ``tasks`` section.

    Raises:
        AddressingError: ``NOT_A_TASK`` when the section exists but is not a task.
    """
    section = resolve_section(raw, context_document, index)
    headings = index[section.document.path]
    heading = find_heading(headings, section.leaf)
    tasks = task_parent(headings, heading) if heading is not None else None
    if tasks is None:
        raise AddressingError(
            f"Section '{section.slug}' in {section.document.path} is not a task; "
            f"tasks are headings one level below a 'Tasks' heading",
            "NOT_A_TASK",
            {
                "slug": section.slug,
                "document_path": section.document.path,
                "tasks_sections": [h.slug for h in headings if is_tasks_heading(h)],
            },
        )
    return TaskAddress(section=section, parent_tasks_slug=tasks.slug)


__all__ = [
    "ADDRESS_CACHE_SIZE",
    "DocumentAddress",
    "HeadingIndex",
    "SectionAddress",
    "TaskAddress",
    "is_task_section",
    "is_tasks_heading",
    "parse_document_address",
    "parse_section_reference",
    "path_to_namespace",
    "path_to_slug",
    "resolve_document",
    "resolve_section",
    "resolve_task",
    "task_parent",
    "validate_section",
    "validate_slug",
]
