"""Data model for the semantic index, registries, resolver and call graph.

Every definition and scope carries an identity derived from its kind, file
and source span (plus the name for named symbols). Identities are plain
strings so they can key dicts and sets directly; never substitute a bare
name for one, since names collide across scopes and files.

Lines are 1-indexed, columns are 0-indexed (tree-sitter byte columns).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

SymbolId = str
ScopeId = str

ANONYMOUS = "<anonymous>"


# =============================================================================
# Enums
# =============================================================================


class SymbolKind(str, Enum):
    """Definition variants."""

    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    ENUM_MEMBER = "enum_member"
    TYPE_ALIAS = "type_alias"
    VARIABLE = "variable"
    PARAMETER = "parameter"
    PROPERTY = "property"
    IMPORT = "import"


CALLABLE_KINDS = frozenset({SymbolKind.FUNCTION, SymbolKind.METHOD, SymbolKind.CONSTRUCTOR})
TYPE_KINDS = frozenset({SymbolKind.CLASS, SymbolKind.INTERFACE, SymbolKind.ENUM})
# Members are reached through their owning type, never by bare name.
MEMBER_KINDS = frozenset(
    {SymbolKind.METHOD, SymbolKind.CONSTRUCTOR, SymbolKind.PROPERTY, SymbolKind.ENUM_MEMBER}
)


class ScopeKind(str, Enum):
    """Kinds of lexical scope."""

    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    BLOCK = "block"


CALLABLE_SCOPE_KINDS = frozenset({ScopeKind.FUNCTION, ScopeKind.METHOD, ScopeKind.CONSTRUCTOR})


class ReferenceKind(str, Enum):
    """Use-site kinds."""

    CALL = "call"
    CONSTRUCT = "construct"
    READ = "read"
    WRITE = "write"
    TYPE = "type"
    MEMBER_ACCESS = "member_access"


class ImportKind(str, Enum):
    """How an import binds names."""

    NAMED = "named"  # import { a } / from m import a
    DEFAULT = "default"  # import a from 'm'
    NAMESPACE = "namespace"  # import * as ns / import m
    WILDCARD = "wildcard"  # from m import *


class TypeSource(str, Enum):
    """Where a variable's static type came from."""

    ANNOTATION = "annotation"
    CONSTRUCTOR = "constructor"
    CALL_RETURN = "call_return"


class ResolutionStatus(str, Enum):
    """Outcome of resolving a name.

    EXTERNAL and UNRESOLVED are both "no target in the project", but
    EXTERNAL means an import binds the name to a module outside the
    analyzed files, which is expected for library calls.
    """

    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"
    EXTERNAL = "external"


# =============================================================================
# Locations and identity
# =============================================================================


@dataclass(frozen=True, slots=True)
class Location:
    """A source span inside one file."""

    file_path: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @classmethod
    def from_node(cls, file_path: str, node: Any) -> Location:
        """Build a location from a tree-sitter node."""
        return cls(
            file_path=file_path,
            start_line=node.start_point[0] + 1,
            start_col=node.start_point[1],
            end_line=node.end_point[0] + 1,
            end_col=node.end_point[1],
        )

    @property
    def key(self) -> str:
        """Compact unique key for this span."""
        return (
            f"{self.file_path}:{self.start_line}:{self.start_col}:"
            f"{self.end_line}:{self.end_col}"
        )

    @property
    def start(self) -> tuple[int, int]:
        return (self.start_line, self.start_col)

    def precedes(self, other: Location) -> bool:
        """True if this span starts strictly before ``other`` starts."""
        return self.start < other.start

    def contains(self, line: int, col: int) -> bool:
        """True if (line, col) falls inside this span (end-inclusive)."""
        if line < self.start_line or line > self.end_line:
            return False
        if line == self.start_line and col < self.start_col:
            return False
        return not (line == self.end_line and col > self.end_col)

    def encloses(self, other: Location) -> bool:
        """True if ``other`` lies entirely within this span."""
        return (
            self.file_path == other.file_path
            and (self.start_line, self.start_col) <= (other.start_line, other.start_col)
            and (other.end_line, other.end_col) <= (self.end_line, self.end_col)
        )


def make_symbol_id(kind: SymbolKind, location: Location, name: str | None) -> SymbolId:
    """Compute the identity of a definition.

    Anonymous symbols derive identity from (kind, location) only, since
    several of them share the placeholder name.
    """
    base = f"{kind.value}:{location.key}"
    if name is None or name == ANONYMOUS:
        return base
    return f"{base}:{name}"


def make_scope_id(kind: ScopeKind, location: Location) -> ScopeId:
    return f"scope:{kind.value}:{location.key}"


def module_symbol_id(file_path: str) -> SymbolId:
    """Synthetic identity for a whole module (namespace targets, top-level callers)."""
    return f"module:{file_path}"


def is_module_symbol(symbol_id: SymbolId) -> bool:
    return symbol_id.startswith("module:")


def module_path_of(symbol_id: SymbolId) -> str:
    return symbol_id[len("module:") :]


# =============================================================================
# Per-file semantic entities
# =============================================================================


@dataclass
class LexicalScope:
    """A node in a file's scope tree."""

    id: ScopeId
    kind: ScopeKind
    location: Location
    parent_id: ScopeId | None
    name: str | None = None
    child_ids: list[ScopeId] = field(default_factory=list)

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_SCOPE_KINDS


@dataclass(frozen=True, slots=True)
class TypeInfo:
    """Best-effort static type of a binding."""

    type_name: str
    source: TypeSource
    is_array: bool = False


@dataclass(frozen=True, slots=True)
class CallbackContext:
    """Records that a callable was passed directly as a call argument."""

    call_location: Location
    argument_index: int
    callee_name: str | None = None


@dataclass
class Definition:
    """A named or anonymous declaration."""

    symbol_id: SymbolId
    name: str
    kind: SymbolKind
    location: Location
    scope_id: ScopeId
    name_location: Location | None = None
    body_scope_id: ScopeId | None = None
    hoisted: bool = False
    is_exported: bool = False
    is_private: bool = False
    parent_type_id: SymbolId | None = None
    type_info: TypeInfo | None = None
    return_type: str | None = None
    extends: list[str] = field(default_factory=list)
    implements: list[str] = field(default_factory=list)
    decorators: list[str] = field(default_factory=list)
    is_static: bool = False
    is_async: bool = False
    callback: CallbackContext | None = None

    @property
    def file_path(self) -> str:
        return self.location.file_path

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_KINDS

    @property
    def is_member(self) -> bool:
        return self.kind in MEMBER_KINDS

    @property
    def is_type(self) -> bool:
        return self.kind in TYPE_KINDS

    @property
    def is_anonymous(self) -> bool:
        return self.name == ANONYMOUS


@dataclass
class ImportDefinition(Definition):
    """A name bound by an import statement."""

    import_path: str = ""
    import_kind: ImportKind = ImportKind.NAMED
    original_name: str | None = None  # Name in the source module (NAMED imports)


@dataclass
class Reference:
    """A use-site occurrence of a name.

    ``property_chain`` holds the full dotted access for member expressions,
    e.g. ``("self", "repo", "save")`` for ``self.repo.save()``. Metadata is
    optional and language-dependent; its absence lowers precision only.
    """

    name: str
    kind: ReferenceKind
    location: Location
    scope_id: ScopeId
    receiver_location: Location | None = None
    property_chain: tuple[str, ...] = ()
    type_info: TypeInfo | None = None
    assigned_from: str | None = None
    argument_of: Location | None = None
    argument_index: int | None = None

    @property
    def file_path(self) -> str:
        return self.location.file_path

    @property
    def receiver_name(self) -> str | None:
        return self.property_chain[0] if len(self.property_chain) > 1 else None

    @property
    def is_member_call(self) -> bool:
        return self.kind in (ReferenceKind.CALL, ReferenceKind.CONSTRUCT) and (
            len(self.property_chain) > 1
        )


@dataclass(frozen=True, slots=True)
class ReExport:
    """Forwarding pointer of an ``export ... from`` statement.

    ``imported_name`` is None for namespace re-exports (``export * as ns``).
    """

    source: str
    imported_name: str | None


@dataclass
class ExportEntry:
    """One exported name of a module."""

    export_name: str
    location: Location
    symbol_id: SymbolId | None = None
    is_default: bool = False
    reexport: ReExport | None = None


@dataclass
class SemanticIndex:
    """Everything one file contributes to the project."""

    file_path: str
    language: str
    content_hash: str
    root_scope_id: ScopeId
    scopes: dict[ScopeId, LexicalScope] = field(default_factory=dict)
    definitions: dict[SymbolId, Definition] = field(default_factory=dict)
    references: list[Reference] = field(default_factory=list)
    imports: list[ImportDefinition] = field(default_factory=list)
    exports: list[ExportEntry] = field(default_factory=list)
    wildcard_reexports: list[str] = field(default_factory=list)
    error_count: int = 0

    @property
    def root_scope(self) -> LexicalScope:
        return self.scopes[self.root_scope_id]

    def definitions_named(self, name: str) -> list[Definition]:
        return [d for d in self.definitions.values() if d.name == name]


# =============================================================================
# Resolution and call graph
# =============================================================================


@dataclass(frozen=True, slots=True)
class Resolution:
    """Result of resolving a name: a target, or an explicit gap.

    ``via`` lists every file consulted on the way, which is the provenance
    used for cache invalidation.
    """

    status: ResolutionStatus
    symbol_id: SymbolId | None = None
    via: frozenset[str] = frozenset()
    detail: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED

    @classmethod
    def resolved(cls, symbol_id: SymbolId, via: frozenset[str] = frozenset()) -> Resolution:
        return cls(ResolutionStatus.RESOLVED, symbol_id, via)

    @classmethod
    def unresolved(cls, via: frozenset[str] = frozenset(), detail: str | None = None) -> Resolution:
        return cls(ResolutionStatus.UNRESOLVED, None, via, detail)

    @classmethod
    def external(cls, specifier: str, via: frozenset[str] = frozenset()) -> Resolution:
        return cls(ResolutionStatus.EXTERNAL, None, via, specifier)


@dataclass(frozen=True, slots=True)
class CallEdge:
    """One outgoing call from a calling context."""

    caller_id: SymbolId
    callee_id: SymbolId | None
    name: str
    location: Location
    status: ResolutionStatus
    kind: ReferenceKind = ReferenceKind.CALL
    via_callback: bool = False


@dataclass
class CallGraphNode:
    """A callable definition with its incoming and outgoing calls."""

    definition: Definition
    outgoing: list[CallEdge] = field(default_factory=list)
    callers: set[SymbolId] = field(default_factory=set)
    is_callback: bool = False
    callback_external: bool = False

    @property
    def symbol_id(self) -> SymbolId:
        return self.definition.symbol_id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def resolved_calls(self) -> list[CallEdge]:
        return [e for e in self.outgoing if e.status is ResolutionStatus.RESOLVED]

    @property
    def unresolved_calls(self) -> list[CallEdge]:
        return [e for e in self.outgoing if e.status is not ResolutionStatus.RESOLVED]


@dataclass(frozen=True)
class CallGraph:
    """Project-wide call graph, a derived view of registry state."""

    nodes: Mapping[SymbolId, CallGraphNode]
    entry_points: tuple[SymbolId, ...]
    callers: Mapping[SymbolId, frozenset[SymbolId]]
    top_level_calls: Mapping[str, tuple[CallEdge, ...]]
    generation: int = 0

    def callees_of(self, symbol_id: SymbolId) -> list[SymbolId]:
        node = self.nodes.get(symbol_id)
        if node is None:
            return []
        return [e.callee_id for e in node.outgoing if e.callee_id is not None]


@dataclass(frozen=True, slots=True)
class TextEdit:
    """An edit region for incremental reparse (tree-sitter ``Tree.edit`` shape)."""

    start_byte: int
    old_end_byte: int
    new_end_byte: int
    start_point: tuple[int, int]
    old_end_point: tuple[int, int]
    new_end_point: tuple[int, int]
