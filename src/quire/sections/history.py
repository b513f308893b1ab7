"""Audit trail for section mutations.

Every applied edit can be recorded as a ``MutationEntry`` holding the
document content before and after, which is enough to undo it.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

DEFAULT_MAX_ENTRIES = 200


@dataclass
class MutationEntry:
    """Single applied section mutation.

    Attributes:
        operation: Operation name (``replace``, ``remove``, ``move`` ...).
        document: Path of the document that was written.
        section: Slug reported by the operation.
        before_content: Full document content before the write.
        after_content: Full document content after the write.
        removed_content: Extent text removed, for ``remove``.
        id: Unique mutation ID (UUID4 hex).
        timestamp: When the mutation was applied.
    """

    operation: str
    document: str
    section: str
    before_content: str
    after_content: str
    removed_content: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.id[:8]}] {self.operation}({self.document}#{self.section})"

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "operation": self.operation,
            "document": self.document,
            "section": self.section,
        }
        if self.removed_content is not None:
            data["removed_content"] = self.removed_content
        if include_content:
            data["before_content"] = self.before_content
            data["after_content"] = self.after_content
        return data


class MutationLog:
    """Bounded mutation history, oldest first.

    Once ``max_entries`` is reached the oldest entry is evicted on append, so a
    long-lived server holds at most that many document snapshots.
    """

    def __init__(self, max_entries: int | None = DEFAULT_MAX_ENTRIES) -> None:
        self._entries: deque[MutationEntry] = deque(maxlen=max_entries)

    @property
    def max_entries(self) -> int | None:
        return self._entries.maxlen

    def append(self, entry: MutationEntry) -> None:
        self._entries.append(entry)

    def __iter__(self) -> Iterator[MutationEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def recent(self, limit: int = 20) -> list[MutationEntry]:
        """The newest ``limit`` entries, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._entries))[:limit]

    def find_by_id(self, mutation_id: str) -> MutationEntry | None:
        for entry in self._entries:
            if entry.id == mutation_id:
                return entry
        return None

    def for_document(self, document: str) -> list[MutationEntry]:
        return [e for e in self if e.document == document]


__all__ = ["DEFAULT_MAX_ENTRIES", "MutationEntry", "MutationLog"]
