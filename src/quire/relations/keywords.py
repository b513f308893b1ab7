"""Keyword extraction and overlap scoring for content similarity."""

from __future__ import annotations

import re
from collections.abc import Sequence

STOP_WORDS = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "this", "that", "these", "those", "is", "are", "was", "were", "be", "been",
        "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "can", "may", "might", "must", "shall", "from", "up", "out", "down", "off",
        "over", "under", "again", "further", "then", "once", "here", "there", "when",
        "where", "why", "how", "all", "any", "both", "each", "few", "more", "most",
        "other", "some", "such", "no", "nor", "not", "only", "own", "same", "so",
        "than", "too", "very", "just", "now", "get", "set", "put", "use", "new",
    }
)  # fmt: skip

MIN_KEYWORD_LENGTH = 3

_MARKDOWN_PUNCT_RE = re.compile(r"[#*`_\[\]()]")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def extract_keywords(text: str) -> list[str]:
    """Significant words of ``text``, lower-cased, in first-seen order.

    Markdown punctuation is stripped; stop-words, pure numbers and words
    shorter than three characters are dropped.
    """
    cleaned = _MARKDOWN_PUNCT_RE.sub(" ", text).lower()
    cleaned = _WHITESPACE_RE.sub(" ", _NON_WORD_RE.sub(" ", cleaned)).strip()

    seen: set[str] = set()
    keywords: list[str] = []
    for word in cleaned.split(" "):
        if len(word) < MIN_KEYWORD_LENGTH or word in STOP_WORDS or word.isdigit():
            continue
        if word not in seen:
            seen.add(word)
            keywords.append(word)
    return keywords


def shared_keywords(source: Sequence[str], candidate: Sequence[str]) -> list[str]:
    """Keywords of ``source`` that also appear in ``candidate``, in source order."""
    other = set(candidate)
    return [word for word in source if word in other]


def keyword_similarity(source: Sequence[str], candidate: Sequence[str]) -> float:
    """``|shared| / max(|source|, |candidate|)``, or 0.0 when either is empty."""
    largest = max(len(source), len(candidate))
    if not source or not candidate:
        return 0.0
    return len(shared_keywords(source, candidate)) / largest


__all__ = [
    "STOP_WORDS",
    "extract_keywords",
    "keyword_similarity",
    "shared_keywords",
]
