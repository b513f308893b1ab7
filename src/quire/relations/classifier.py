"""Relationship classification - an ordered table of predicate rules.

Rules are evaluated in order and the first match decides. Each rule looks
only at the linking document's namespace, the linked document's namespace
and title, and the link text, so every rule can be checked in isolation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from quire.addressing import path_to_namespace


class Relationship(Enum):
    """How one document relates to another.

    - IMPLEMENTS_SPEC: the target is a specification or API description
    - IMPLEMENTATION_GUIDE: the target explains how to build something
    - CONSUMES_API: a client-side document pointing at an API
    - DEPENDS_ON: the link text declares a prerequisite
    - REFERENCES: any other link
    - SIMILAR_CONTENT: no link, only shared vocabulary
    """

    IMPLEMENTS_SPEC = "implements_spec"
    IMPLEMENTATION_GUIDE = "implementation_guide"
    CONSUMES_API = "consumes_api"
    DEPENDS_ON = "depends_on"
    REFERENCES = "references"
    SIMILAR_CONTENT = "similar_content"


@dataclass(frozen=True)
class LinkContext:
    """Inputs to classification, lower-cased once."""

    from_namespace: str
    to_namespace: str
    link_text: str
    to_title: str

    @classmethod
    def build(cls, from_path: str, to_path: str, link_text: str, to_title: str) -> LinkContext:
        return cls(
            from_namespace=path_to_namespace(from_path).lower(),
            to_namespace=path_to_namespace(to_path).lower(),
            link_text=link_text.lower(),
            to_title=to_title.lower(),
        )


def _any_in(text: str, *words: str) -> bool:
    return any(word in text for word in words)


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[LinkContext], bool]
    relationship: Relationship


RULES: tuple[Rule, ...] = (
    Rule(
        "spec_to_guide",
        lambda c: "spec" in c.from_namespace and _any_in(c.to_namespace, "guide", "impl"),
        Relationship.IMPLEMENTATION_GUIDE,
    ),
    Rule(
        "service_to_spec",
        lambda c: _any_in(c.from_namespace, "backend", "service") and "spec" in c.to_namespace,
        Relationship.IMPLEMENTS_SPEC,
    ),
    Rule(
        "client_to_api",
        lambda c: _any_in(c.from_namespace, "frontend", "component") and "api" in c.to_namespace,
        Relationship.CONSUMES_API,
    ),
    Rule(
        "prerequisite_link",
        lambda c: _any_in(c.link_text, "depend", "require", "prerequisite"),
        Relationship.DEPENDS_ON,
    ),
    Rule(
        "guide_title",
        lambda c: _any_in(c.to_title, "guide", "tutorial", "how"),
        Relationship.IMPLEMENTATION_GUIDE,
    ),
    Rule(
        "spec_title",
        lambda c: _any_in(c.to_title, "spec", "api"),
        Relationship.IMPLEMENTS_SPEC,
    ),
)


def classify_relationship(
    from_path: str,
    to_path: str,
    link_text: str = "",
    to_title: str = "",
    rules: tuple[Rule, ...] = RULES,
) -> Relationship:
    """Classify the link from ``from_path`` to ``to_path``.

    Returns:
        The relationship of the first matching rule, or ``REFERENCES``.
    """
    context = LinkContext.build(from_path, to_path, link_text, to_title)
    for rule in rules:
        if rule.matches(context):
            return rule.relationship
    return Relationship.REFERENCES


__all__ = [
    "RULES",
    "LinkContext",
    "Relationship",
    "Rule",
    "classify_relationship",
]
