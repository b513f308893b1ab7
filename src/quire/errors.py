"""Structured error types shared by the addressing, section and relation layers.

Every error carries a machine-readable ``code`` and a ``context`` dict with
enough detail (offending path or slug, available alternatives) for a caller
to correct the request without re-querying.
"""

from __future__ import annotations

from typing import Any


class AddressingError(Exception):
    """A malformed or structurally invalid address or operation.

    Attributes:
        code: Machine-readable error code, e.g. ``"INVALID_SLUG"``.
        context: Diagnostic details for the caller.
    """

    def __init__(
        self,
        message: str,
        code: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for tool responses."""
        return {"error": self.message, "code": self.code, "context": self.context}


class DocumentNotFoundError(AddressingError):
    """The referenced document does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Document not found: {path}",
            "DOCUMENT_NOT_FOUND",
            {"path": path},
        )
        self.path = path


class SectionNotFoundError(AddressingError):
    """The referenced section does not exist in its document."""

    def __init__(
        self,
        slug: str,
        document_path: str,
        available: list[str] | None = None,
        message: str | None = None,
        **extra: Any,
    ) -> None:
        context: dict[str, Any] = {"slug": slug, "document_path": document_path}
        if available is not None:
            context["available_sections"] = available
        context.update(extra)
        if message is None:
            message = f"Section not found: {slug} in {document_path}"
            if available:
                message += f". Available sections: {', '.join(available)}"
        super().__init__(message, "SECTION_NOT_FOUND", context)
        self.slug = slug
        self.document_path = document_path


class OperationFailed(AddressingError):
    """An unexpected lower-layer failure while applying an operation.

    The original exception is kept as ``cause`` and chained via ``raise ... from``.
    """

    def __init__(
        self,
        message: str,
        code: str = "OPERATION_FAILED",
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, code, context)
        self.cause = cause


def error_response(exc: Exception) -> dict[str, Any]:
    """Convert an exception into the ``{"success": False, ...}`` tool shape."""
    if isinstance(exc, AddressingError):
        response: dict[str, Any] = {"success": False, **exc.to_dict()}
        return response
    return {"success": False, "error": str(exc), "code": "OPERATION_FAILED", "context": {}}


__all__ = [
    "AddressingError",
    "DocumentNotFoundError",
    "OperationFailed",
    "SectionNotFoundError",
    "error_response",
]
