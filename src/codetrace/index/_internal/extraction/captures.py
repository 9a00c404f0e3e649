"""Capture-tag vocabulary.

Query capture names have the form ``category.entity[.qualifier...]``. They
parse into a frozen ``CaptureTag``; names outside the closed vocabulary
parse to ``None`` and are dropped by the builders.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SemanticCategory(str, Enum):
    SCOPE = "scope"
    DEFINITION = "definition"
    REFERENCE = "reference"
    IMPORT = "import"
    EXPORT = "export"
    TYPE = "type"
    ASSIGNMENT = "assignment"
    RETURN = "return"
    DECORATOR = "decorator"
    MODIFIER = "modifier"


class SemanticEntity(str, Enum):
    # scopes
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    BLOCK = "block"
    # definitions
    VARIABLE = "variable"
    PARAMETER = "parameter"
    PROPERTY = "property"
    INTERFACE = "interface"
    ENUM = "enum"
    ENUM_MEMBER = "enum_member"
    TYPE_ALIAS = "type_alias"
    # references
    CALL = "call"
    CONSTRUCT = "construct"
    READ = "read"
    WRITE = "write"
    MEMBER_ACCESS = "member_access"
    TYPE = "type"
    # imports / exports
    NAMESPACE = "namespace"
    NAMED = "named"
    DEFAULT = "default"
    WILDCARD = "wildcard"
    REEXPORT = "reexport"
    DECLARATION = "declaration"
    # returns / modifiers
    VALUE = "value"
    ASYNC = "async"
    STATIC = "static"
    VISIBILITY = "visibility"


_CATEGORIES = {c.value: c for c in SemanticCategory}
_ENTITIES = {e.value: e for e in SemanticEntity}

# Same-node ordering: outer categories before inner ones, reads last so
# more specific reference captures claim the node first.
_CATEGORY_ORDER: dict[SemanticCategory, int] = {
    SemanticCategory.SCOPE: 0,
    SemanticCategory.IMPORT: 1,
    SemanticCategory.EXPORT: 2,
    SemanticCategory.DECORATOR: 3,
    SemanticCategory.DEFINITION: 4,
    SemanticCategory.ASSIGNMENT: 5,
    SemanticCategory.MODIFIER: 6,
    SemanticCategory.RETURN: 7,
    SemanticCategory.TYPE: 8,
    SemanticCategory.REFERENCE: 9,
}
_REFERENCE_ORDER: dict[SemanticEntity, int] = {
    SemanticEntity.CALL: 0,
    SemanticEntity.CONSTRUCT: 0,
    SemanticEntity.WRITE: 1,
    SemanticEntity.TYPE: 2,
    SemanticEntity.MEMBER_ACCESS: 3,
    SemanticEntity.READ: 4,
}


@dataclass(frozen=True, slots=True)
class CaptureTag:
    """Parsed ``category.entity[.qualifier]`` capture name."""

    category: SemanticCategory
    entity: SemanticEntity
    qualifier: str | None = None

    @property
    def key(self) -> tuple[SemanticCategory, SemanticEntity, str | None]:
        return (self.category, self.entity, self.qualifier)

    @property
    def order(self) -> tuple[int, int]:
        return (_CATEGORY_ORDER[self.category], _REFERENCE_ORDER.get(self.entity, 0))

    def __str__(self) -> str:
        base = f"{self.category.value}.{self.entity.value}"
        return f"{base}.{self.qualifier}" if self.qualifier else base


def parse_capture_name(name: str) -> CaptureTag | None:
    """Parse a capture name into a tag, or None if it is outside the vocabulary.

    Examples:
        >>> str(parse_capture_name("reference.call.member"))
        'reference.call.member'
        >>> parse_capture_name("name") is None
        True
    """
    parts = name.split(".")
    if len(parts) < 2:
        return None
    category = _CATEGORIES.get(parts[0])
    entity = _ENTITIES.get(parts[1])
    if category is None or entity is None:
        return None
    qualifier = ".".join(parts[2:]) or None
    return CaptureTag(category, entity, qualifier)


@dataclass(frozen=True, slots=True)
class Capture:
    """A tagged syntax node produced by a query match."""

    tag: CaptureTag
    node: Any

    @property
    def sort_key(self) -> tuple[int, int, int, int]:
        category_rank, entity_rank = self.tag.order
        return (self.node.start_byte, -self.node.end_byte, category_rank, entity_rank)


def order_captures(raw: list[tuple[str, Any]]) -> tuple[list[Capture], list[str]]:
    """Tag, dedupe and order raw ``(name, node)`` pairs for one file.

    Scope captures come first, outermost first. Every other capture follows
    in document order with enclosing nodes before nested ones and, on the
    same node, definitions before references.

    Returns:
        ``(captures, unknown_names)``.
    """
    seen: set[tuple[str, int, int]] = set()
    scopes: list[Capture] = []
    others: list[Capture] = []
    unknown: list[str] = []
    for name, node in raw:
        tag = parse_capture_name(name)
        if tag is None:
            unknown.append(name)
            continue
        dedupe_key = (str(tag), node.start_byte, node.end_byte)
        if dedupe_key in seen:
            continue
        seen.add(dedupe_key)
        capture = Capture(tag, node)
        if tag.category is SemanticCategory.SCOPE:
            scopes.append(capture)
        else:
            others.append(capture)
    scopes.sort(key=lambda c: c.sort_key)
    others.sort(key=lambda c: c.sort_key)
    return scopes + others, unknown
