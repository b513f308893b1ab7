"""Per-item success/failure values.

Batch edits and relationship traversal both process many independent items
where individual failures are expected. Each item yields an ``Outcome``;
callers collect them and ``partition`` into successes and failures instead
of threading exceptions through their loops.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or the exception that prevented it."""

    value: T | None = None
    error: Exception | None = None
    label: str = ""

    @classmethod
    def ok(cls, value: T, label: str = "") -> Outcome[T]:
        return cls(value=value, label=label)

    @classmethod
    def failed(cls, error: Exception, label: str = "") -> Outcome[T]:
        return cls(error=error, label=label)

    @property
    def succeeded(self) -> bool:
        return self.error is None


async def capture(label: str, func: Callable[[], Awaitable[T]]) -> Outcome[T]:
    """Await ``func`` and wrap its result or exception in an ``Outcome``."""
    try:
        return Outcome.ok(await func(), label)
    except Exception as exc:  # noqa: BLE001
        return Outcome.failed(exc, label)


def partition(outcomes: Iterable[Outcome[T]]) -> tuple[list[T], list[Outcome[T]]]:
    """Split outcomes into successful values and failed outcomes."""
    values: list[T] = []
    failures: list[Outcome[T]] = []
    for outcome in outcomes:
        if outcome.succeeded:
            values.append(outcome.value)  # type: ignore[arg-type]
        else:
            failures.append(outcome)
    return values, failures


__all__ = ["Outcome", "capture", "partition"]
