"""Document-level section operations: single edits, batches and moves.

These wrap the pure engine with a read-modify-write cycle against an injected
``DocumentManager``. The cached document is invalidated after every write so
later reads never see stale headings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from quire.addressing import (
    DocumentAddress,
    is_task_section,
    parse_document_address,
    parse_section_reference,
    validate_section,
    validate_slug,
)
from quire.document.headings import MAX_HEADING_DEPTH, section_end_index
from quire.document.manager import Document, DocumentManager
from quire.errors import AddressingError, DocumentNotFoundError, OperationFailed
from quire.outcome import Outcome, capture
from quire.sections.engine import (
    APPEND_CHILD,
    DEFAULT_LIMITS,
    INSERT_AFTER,
    INSERT_BEFORE,
    OPERATIONS,
    REMOVE,
    REPLACE,
    SectionEditResult,
    SectionLimits,
    apply_section_operation,
    extract_section,
    rebase_headings,
)
from quire.sections.history import MutationEntry, MutationLog

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100

POSITIONS = {
    "before": INSERT_BEFORE,
    "after": INSERT_AFTER,
    "child": APPEND_CHILD,
}


async def _load(manager: DocumentManager, path: str) -> Document:
    try:
        document = await manager.get_document(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise OperationFailed(
            f"Failed to read {path}: {exc}", context={"path": path}, cause=exc
        ) from exc
    if document is None:
        raise DocumentNotFoundError(path)
    return document


async def _write(manager: DocumentManager, path: str, content: str) -> None:
    try:
        await manager.write_content(path, content)
    except OSError as exc:
        raise OperationFailed(
            f"Failed to write {path}: {exc}", context={"path": path}, cause=exc
        ) from exc
    finally:
        manager.invalidate_document(path)


# ---------------------------------------------------------------------------
# Single edit
# ---------------------------------------------------------------------------


async def edit_section(
    manager: DocumentManager,
    document: DocumentAddress | str,
    section: str,
    content: str | None = None,
    operation: str = REPLACE,
    title: str | None = None,
    log: MutationLog | None = None,
    limits: SectionLimits = DEFAULT_LIMITS,
) -> SectionEditResult:
    """Apply one operation to a section and persist it.

    Args:
        manager: Document storage.
        document: Default document; ``section`` may override it with ``doc#slug``.
        section: Slug, hierarchical slug, or ``doc#slug`` reference.
        content: Body text (not needed for ``remove``).
        operation: Engine operation name.
        title: Title for new sections.
        log: Optional mutation log to record into.
        limits: Size limits.

    Returns:
        The engine's result, with slug and depth read back after the edit.
    """
    document_path, slug = parse_section_reference(section, document)
    current = await _load(manager, document_path)
    validate_section(document_path, slug, current.headings)

    new_content, result = apply_section_operation(
        current.content,
        slug,
        operation,
        body=content,
        title=title,
        limits=limits,
        document_path=document_path,
    )
    await _write(manager, document_path, new_content)
    logger.info("%s %s#%s -> %s", operation, document_path, slug, result.section)

    if log is not None:
        log.append(
            MutationEntry(
                operation=operation,
                document=document_path,
                section=result.section,
                before_content=current.content,
                after_content=new_content,
                removed_content=result.removed_content,
            )
        )
    return result


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


@dataclass
class BatchItemResult:
    """Per-item batch outcome."""

    success: bool
    section: str
    action: str | None = None
    depth: int | None = None
    removed_content: str | None = None
    error: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "section": self.section}
        for key in ("action", "depth", "removed_content", "error", "code"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class BatchResult:
    document: str
    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def sections_modified(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_operations(self) -> int:
        return len(self.results)

    @property
    def success(self) -> bool:
        return self.sections_modified > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "document": self.document,
            "sections_modified": self.sections_modified,
            "total_operations": self.total_operations,
            "results": [r.to_dict() for r in self.results],
        }


def _validate_item(item: Any, position: int) -> tuple[str, str, str | None, str | None]:
    if not isinstance(item, Mapping):
        raise AddressingError(
            f"Operation {position} must be an object", "INVALID_BATCH_ITEM", {"index": position}
        )
    section = item.get("section")
    if not isinstance(section, str) or not section.strip():
        raise AddressingError(
            f"Operation {position} is missing 'section'", "MISSING_SECTION", {"index": position}
        )
    operation = item.get("operation") or REPLACE
    if operation not in OPERATIONS:
        raise AddressingError(
            f"Invalid operation '{operation}'. Must be one of: {', '.join(OPERATIONS)}",
            "INVALID_OPERATION",
            {"index": position, "operation": operation},
        )
    content = item.get("content")
    if operation != REMOVE and (not isinstance(content, str) or not content.strip()):
        raise AddressingError(
            "Content is required for all operations except remove",
            "MISSING_CONTENT",
            {"index": position, "section": section},
        )
    title = item.get("title")
    return section, operation, content, title if isinstance(title, str) else None


def _item_result(item: Any, outcome: Outcome[SectionEditResult]) -> BatchItemResult:
    section = item.get("section") if isinstance(item, Mapping) else None
    label = section if isinstance(section, str) else ""
    if outcome.succeeded:
        result = outcome.value
        return BatchItemResult(
            success=True,
            section=result.section,
            action=result.action,
            depth=result.depth,
            removed_content=result.removed_content,
        )
    error = outcome.error
    if isinstance(error, AddressingError):
        return BatchItemResult(False, label, error=error.message, code=error.code)
    return BatchItemResult(False, label, error=str(error), code="OPERATION_FAILED")


async def apply_batch(
    manager: DocumentManager,
    document: DocumentAddress | str,
    operations: Sequence[Any],
    log: MutationLog | None = None,
    max_batch_size: int = MAX_BATCH_SIZE,
    limits: SectionLimits = DEFAULT_LIMITS,
) -> BatchResult:
    """Apply section operations one after another.

    Items are independent: a failing item is reported in its own result and
    does not roll back earlier items or stop later ones.

    Each item is a mapping with ``section`` (required), ``operation``
    (default ``replace``), ``content`` (required except for ``remove``) and
    ``title`` (for creations).

    Raises:
        AddressingError: ``MISSING_OPERATIONS``, ``EMPTY_BATCH`` or
            ``BATCH_TOO_LARGE`` for an unusable batch as a whole.
    """
    if isinstance(operations, (str, bytes)) or not isinstance(operations, Sequence):
        raise AddressingError("operations must be a list", "MISSING_OPERATIONS")
    if not operations:
        raise AddressingError("operations list is empty", "EMPTY_BATCH")
    if len(operations) > max_batch_size:
        raise AddressingError(
            f"Batch of {len(operations)} operations exceeds the limit of {max_batch_size}",
            "BATCH_TOO_LARGE",
            {"size": len(operations), "limit": max_batch_size},
        )

    if isinstance(document, DocumentAddress):
        document_path = document.path
    else:
        document_path = parse_document_address(document).path
    batch = BatchResult(document=document_path)

    for position, item in enumerate(operations, start=1):

        async def run(item: Any = item, position: int = position) -> SectionEditResult:
            section, operation, content, title = _validate_item(item, position)
            return await edit_section(
                manager, document_path, section, content, operation, title, log, limits
            )

        outcome = await capture(f"operation {position}", run)
        if not outcome.succeeded:
            logger.debug("batch item %d failed: %s", position, outcome.error)
        batch.results.append(_item_result(item, outcome))

    logger.info(
        "batch on %s: %d/%d applied",
        document_path,
        batch.sections_modified,
        batch.total_operations,
    )
    return batch


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------


@dataclass
class MoveResult:
    """Where a section came from and where it landed."""

    kind: str
    source_document: str
    source_slug: str
    title: str
    destination_document: str
    destination_slug: str
    depth: int | None
    reference: str
    position: str
    document_title: str
    document_namespace: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": "moved",
            "type": self.kind,
            "from": {
                "document": self.source_document,
                "section": self.source_slug,
                "title": self.title,
            },
            "to": {
                "document": self.destination_document,
                "section": self.destination_slug,
                "depth": self.depth,
                "reference": self.reference,
                "position": self.position,
            },
            "document_info": {
                "path": self.destination_document,
                "title": self.document_title,
                "namespace": self.document_namespace,
            },
            "timestamp": self.timestamp,
        }


def _parse_move_source(source: Any) -> tuple[str, str]:
    if not isinstance(source, str) or not source.strip():
        raise AddressingError(
            "Source is required as 'document.md#section'", "INVALID_SOURCE_PATH", {"from": source}
        )
    if "#" not in source:
        raise AddressingError(
            f"Source '{source}' must include a section: 'document.md#section'",
            "INVALID_SOURCE_FORMAT",
            {"from": source},
        )
    return parse_section_reference(source.strip())


async def move_section(
    manager: DocumentManager,
    source: str,
    destination: str,
    reference: str,
    position: str = "after",
    log: MutationLog | None = None,
    limits: SectionLimits = DEFAULT_LIMITS,
) -> MoveResult:
    """Relocate a section, with its subtree, relative to a reference section.

    Across documents the destination is written first and the source removed
    only afterwards, so a failure can duplicate content but never lose it.
    Within one document the source is removed first; if recreating it fails
    the original content is written back.

    Args:
        manager: Document storage.
        source: ``document.md#slug`` of the section to move.
        destination: Destination document (``.md`` appended when missing).
        reference: Slug in the destination to position against.
        position: ``before``, ``after`` or ``child`` of ``reference``.
        log: Optional mutation log.
        limits: Size limits.

    Raises:
        AddressingError: ``INVALID_SOURCE_PATH``, ``INVALID_SOURCE_FORMAT``,
            ``INVALID_POSITION``, ``SOURCE_CONTENT_ERROR``,
            ``INVALID_HEADING_DEPTH`` or any resolution error.
        OperationFailed: ``MOVE_OPERATION_FAILED`` when the source could not
            be removed after the copy was created, or ``MOVE_ROLLBACK_FAILED``
            when a same-document move could not be undone.
    """
    source_path, source_slug = _parse_move_source(source)
    destination_path = parse_document_address(destination, destination=True).path
    reference_slug = validate_slug(reference.strip() if isinstance(reference, str) else reference)
    operation = POSITIONS.get(position)
    if operation is None:
        raise AddressingError(
            f"Invalid position '{position}'. Must be one of: {', '.join(POSITIONS)}",
            "INVALID_POSITION",
            {"position": position},
        )

    source_doc = await _load(manager, source_path)
    heading = validate_section(source_path, source_slug, source_doc.headings)
    if heading.index == 0 and heading.depth == 1:
        raise AddressingError(
            "The document title heading cannot be moved",
            "INVALID_OPERATION",
            {"from": source},
        )
    kind = "task" if is_task_section(heading.slug, source_doc.headings) else "section"

    try:
        snapshot = extract_section(source_doc.content, heading.slug, source_path)
    except AddressingError as exc:
        raise AddressingError(
            f"Could not read content of {source}: {exc.message}",
            "SOURCE_CONTENT_ERROR",
            {"from": source},
        ) from exc
    if not snapshot.body.strip():
        raise AddressingError(
            f"Section {source} has no content to move",
            "SOURCE_CONTENT_ERROR",
            {"from": source},
        )

    same_document = source_path == destination_path
    dest_doc = source_doc if same_document else await _load(manager, destination_path)
    ref_heading = validate_section(destination_path, reference_slug, dest_doc.headings)
    subtree_end = section_end_index(source_doc.headings, heading.index)
    if same_document and heading.index <= ref_heading.index < subtree_end:
        raise AddressingError(
            "A section cannot be moved relative to itself or one of its subsections",
            "INVALID_OPERATION",
            {"from": source, "reference": reference_slug},
        )

    target_depth = ref_heading.depth + (1 if operation == APPEND_CHILD else 0)
    if target_depth > MAX_HEADING_DEPTH:
        raise AddressingError(
            f"Cannot nest under '{ref_heading.slug}': depth {target_depth} exceeds "
            f"{MAX_HEADING_DEPTH}",
            "INVALID_HEADING_DEPTH",
            {"reference": ref_heading.slug, "depth": target_depth},
        )
    body = rebase_headings(snapshot.body, target_depth - snapshot.depth)

    if same_document:
        created = await _move_within(
            manager,
            source_doc,
            heading.slug,
            source_index=heading.index,
            removed_count=subtree_end - heading.index,
            reference_index=ref_heading.index,
            operation=operation,
            body=body,
            title=snapshot.title,
            log=log,
            limits=limits,
        )
    else:
        created = await _move_across(
            manager,
            source_path,
            heading.slug,
            destination_path,
            ref_heading.slug,
            operation=operation,
            body=body,
            title=snapshot.title,
            log=log,
            limits=limits,
        )

    final_doc = await manager.get_document(destination_path)
    return MoveResult(
        kind=kind,
        source_document=source_path,
        source_slug=heading.slug,
        title=snapshot.title,
        destination_document=destination_path,
        destination_slug=created.section,
        depth=created.depth,
        reference=ref_heading.slug,
        position=position,
        document_title=final_doc.metadata.title if final_doc else "",
        document_namespace=final_doc.metadata.namespace if final_doc else "",
    )


async def _move_across(
    manager: DocumentManager,
    source_path: str,
    source_slug: str,
    destination_path: str,
    reference_slug: str,
    operation: str,
    body: str,
    title: str,
    log: MutationLog | None,
    limits: SectionLimits,
) -> SectionEditResult:
    created = await edit_section(
        manager, destination_path, reference_slug, body, operation, title, log, limits
    )
    try:
        await edit_section(manager, source_path, source_slug, operation=REMOVE, log=log)
    except Exception as exc:
        logger.error(
            "move created %s#%s but could not remove %s#%s: %s",
            destination_path,
            created.section,
            source_path,
            source_slug,
            exc,
        )
        raise OperationFailed(
            f"Section was created at {destination_path}#{created.section} but removing "
            f"{source_path}#{source_slug} failed: {exc}. "
            "Note: content may be duplicated.",
            "MOVE_OPERATION_FAILED",
            {
                "from": f"{source_path}#{source_slug}",
                "to": f"{destination_path}#{created.section}",
                "content_may_be_duplicated": True,
            },
            cause=exc,
        ) from exc
    return created


async def _move_within(
    manager: DocumentManager,
    document: Document,
    source_slug: str,
    source_index: int,
    removed_count: int,
    reference_index: int,
    operation: str,
    body: str,
    title: str,
    log: MutationLog | None,
    limits: SectionLimits,
) -> SectionEditResult:
    path = document.path
    original = document.content
    await edit_section(manager, path, source_slug, operation=REMOVE, log=log)

    try:
        # Slug suffixes can renumber once the source is gone; re-find the reference by position.
        if reference_index > source_index:
            reference_index -= removed_count
        reduced = await _load(manager, path)
        reference_slug = reduced.headings[reference_index].slug
        return await edit_section(
            manager, path, reference_slug, body, operation, title, log, limits
        )
    except Exception as exc:
        logger.error("move within %s failed after removal, restoring: %s", path, exc)
        try:
            await _write(manager, path, original)
        except Exception as rollback_exc:
            raise OperationFailed(
                f"Moving {path}#{source_slug} failed ({exc}) and the rollback also failed "
                f"({rollback_exc}). Data may be lost; the removed section was: {title}",
                "MOVE_ROLLBACK_FAILED",
                {"from": f"{path}#{source_slug}", "data_may_be_lost": True},
                cause=rollback_exc,
            ) from rollback_exc
        if isinstance(exc, AddressingError):
            raise
        raise OperationFailed(
            f"Moving {path}#{source_slug} failed and was rolled back: {exc}",
            "MOVE_OPERATION_FAILED",
            {"from": f"{path}#{source_slug}", "rolled_back": True},
            cause=exc,
        ) from exc


__all__ = [
    "MAX_BATCH_SIZE",
    "POSITIONS",
    "BatchItemResult",
    "BatchResult",
    "MoveResult",
    "apply_batch",
    "edit_section",
    "move_section",
]
