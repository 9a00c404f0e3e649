"""Semantic index builders and their registry.

A builder turns one parsed file into a ``SemanticIndex``. Captures produced
by the language's queries are dispatched through a class-level table keyed
by the capture tag ``(category, entity, qualifier)``; handlers are plain
methods registered with the ``@handles`` decorator. A tag without a
handler is dropped. A handler that finds a captured subtree missing an
expected part raises ``MalformedCapture`` and only that capture is skipped.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from codetrace.core.errors import InvariantViolation
from codetrace.index._internal.extraction.captures import (
    Capture,
    CaptureTag,
    SemanticCategory,
    SemanticEntity,
)
from codetrace.index.models import (
    ANONYMOUS,
    CALLABLE_KINDS,
    TYPE_KINDS,
    CallbackContext,
    Definition,
    ExportEntry,
    ImportDefinition,
    ImportKind,
    LexicalScope,
    Location,
    Reference,
    ReferenceKind,
    ReExport,
    ScopeId,
    ScopeKind,
    SemanticIndex,
    SymbolId,
    SymbolKind,
    TypeInfo,
    TypeSource,
    make_scope_id,
    make_symbol_id,
)

if TYPE_CHECKING:
    from tree_sitter import Node

    from codetrace.config.models import IndexerConfig
    from codetrace.index._internal.parsing.packs import LanguagePack

log = structlog.get_logger(__name__)

HandlerKey = tuple[SemanticCategory, SemanticEntity, str | None]
NodeKey = tuple[int, int, str]

_HOISTED_KINDS = frozenset(
    {
        SymbolKind.FUNCTION,
        SymbolKind.CLASS,
        SymbolKind.INTERFACE,
        SymbolKind.ENUM,
        SymbolKind.TYPE_ALIAS,
    }
)

_ENTITY_SCOPE_KINDS: dict[SemanticEntity, ScopeKind] = {
    SemanticEntity.MODULE: ScopeKind.MODULE,
    SemanticEntity.CLASS: ScopeKind.CLASS,
    SemanticEntity.FUNCTION: ScopeKind.FUNCTION,
    SemanticEntity.METHOD: ScopeKind.METHOD,
    SemanticEntity.CONSTRUCTOR: ScopeKind.CONSTRUCTOR,
    SemanticEntity.BLOCK: ScopeKind.BLOCK,
}


class MalformedCapture(Exception):
    """A captured subtree lacks a part its handler requires."""


def handles(
    category: SemanticCategory,
    entity: SemanticEntity,
    qualifier: str | None = None,
) -> Callable[[Callable[..., None]], Callable[..., None]]:
    """Register the decorated method as the handler for a capture tag."""

    def decorator(fn: Callable[..., None]) -> Callable[..., None]:
        tags: tuple[HandlerKey, ...] = getattr(fn, "_capture_tags", ())
        fn._capture_tags = (*tags, (category, entity, qualifier))  # type: ignore[attr-defined]
        return fn

    return decorator


def node_key(node: Node) -> NodeKey:
    return (node.start_byte, node.end_byte, node.type)


# =============================================================================
# Base builder
# =============================================================================


class SemanticIndexBuilder(ABC):
    """Per-file builder. One instance indexes exactly one file.

    Subclasses register capture handlers with ``@handles`` and implement the
    language hooks (member chains, callback call sites, type normalization).
    """

    family: ClassVar[str] = ""
    _handlers: ClassVar[dict[HandlerKey, Callable[..., None]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        names: dict[HandlerKey, str] = {}
        for base in reversed(cls.__mro__):
            for attr_name, attr in vars(base).items():
                for tag in getattr(attr, "_capture_tags", ()):
                    names[tag] = attr_name
        cls._handlers = {tag: getattr(cls, attr_name) for tag, attr_name in names.items()}

    def __init__(
        self,
        file_path: str,
        source: bytes,
        pack: LanguagePack,
        config: IndexerConfig | None = None,
    ) -> None:
        self.file_path = file_path
        self.source = source
        self.pack = pack
        self._log_unhandled = bool(config and config.log_unhandled_captures)

        self._root_scope_id: ScopeId = ""
        self._scopes: dict[ScopeId, LexicalScope] = {}
        self._scope_by_node: dict[NodeKey, ScopeId] = {}

        self._definitions: dict[SymbolId, Definition] = {}
        self._defs_by_node: dict[NodeKey, SymbolId] = {}
        self._seen_def_nodes: set[tuple[NodeKey, SymbolKind]] = set()
        self._names: dict[tuple[ScopeId, str], list[SymbolId]] = defaultdict(list)
        self._type_by_scope: dict[ScopeId, SymbolId] = {}
        self._callable_by_scope: dict[ScopeId, SymbolId] = {}
        self._members: dict[SymbolId, dict[str, SymbolId]] = defaultdict(dict)

        self._references: list[Reference] = []
        self._imports: list[ImportDefinition] = []
        self._exports: list[ExportEntry] = []
        self._wildcard_reexports: list[str] = []

        self._claimed: set[tuple[int, int]] = set()
        self._claimed_regions: list[tuple[int, int]] = []
        self._error_ranges: list[tuple[int, int]] = []
        self._bound_callables: set[NodeKey] = set()
        self._pending_decorators: dict[NodeKey, list[str]] = defaultdict(list)
        # node -> (export name or None for "use the definition's name", is_default)
        self._export_targets: dict[NodeKey, tuple[str | None, bool]] = {}
        # (export name, local name, location, is_default), bound in finish()
        self._local_exports: list[tuple[str, str, Location, bool]] = []
        self.unhandled: list[str] = []
        self.malformed = 0

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------

    def build(
        self,
        root_node: Node,
        captures: list[Capture],
        *,
        content_hash: str,
        error_count: int = 0,
    ) -> SemanticIndex:
        """Dispatch every capture and assemble the file's semantic index."""
        self._open_root(root_node)
        if root_node.has_error:
            self._collect_error_ranges(root_node)

        for capture in captures:
            node = capture.node
            if node.is_missing or self._in_error(node):
                continue
            handler = self._handlers.get(capture.tag.key)
            if handler is None and capture.tag.qualifier is not None:
                handler = self._handlers.get((capture.tag.category, capture.tag.entity, None))
            if handler is None:
                self._drop(capture.tag)
                continue
            try:
                handler(self, capture)
            except MalformedCapture as e:
                self.malformed += 1
                log.debug(
                    "capture.malformed",
                    path=self.file_path,
                    tag=str(capture.tag),
                    line=node.start_point[0] + 1,
                    reason=str(e),
                )

        self.finish()
        self._bind_exports()
        self._references.sort(key=lambda r: (r.location.start_line, r.location.start_col))

        return SemanticIndex(
            file_path=self.file_path,
            language=self.pack.name,
            content_hash=content_hash,
            root_scope_id=self._root_scope_id,
            scopes=self._scopes,
            definitions=self._definitions,
            references=self._references,
            imports=self._imports,
            exports=self._exports,
            wildcard_reexports=self._wildcard_reexports,
            error_count=error_count,
        )

    def _drop(self, tag: CaptureTag) -> None:
        self.unhandled.append(str(tag))
        if self._log_unhandled:
            log.debug("capture.unhandled", path=self.file_path, tag=str(tag))

    def _collect_error_ranges(self, root: Node) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR":
                self._error_ranges.append((node.start_byte, node.end_byte))
                continue
            if node.has_error:
                stack.extend(node.children)

    def _in_error(self, node: Node) -> bool:
        return any(s <= node.start_byte and node.end_byte <= e for s, e in self._error_ranges)

    def finish(self) -> None:  # noqa: B027
        """Language hook run after all captures are dispatched."""

    # -------------------------------------------------------------------------
    # Text and location helpers
    # -------------------------------------------------------------------------

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def loc(self, node: Node) -> Location:
        return Location.from_node(self.file_path, node)

    def field(self, node: Node, name: str) -> Node:
        """Required child by field name; missing means the subtree is malformed."""
        child = node.child_by_field_name(name)
        if child is None:
            raise MalformedCapture(f"{node.type} has no '{name}'")
        return child

    def claim(self, node: Node) -> None:
        self._claimed.add((node.start_byte, node.end_byte))

    def is_claimed(self, node: Node) -> bool:
        if (node.start_byte, node.end_byte) in self._claimed:
            return True
        return any(s <= node.start_byte and node.end_byte <= e for s, e in self._claimed_regions)

    def claim_region(self, node: Node) -> None:
        self._claimed_regions.append((node.start_byte, node.end_byte))

    # -------------------------------------------------------------------------
    # Scopes
    # -------------------------------------------------------------------------

    def _open_root(self, root_node: Node) -> None:
        location = self.loc(root_node)
        location = Location(self.file_path, 1, 0, location.end_line, location.end_col)
        scope_id = make_scope_id(ScopeKind.MODULE, location)
        self._scopes[scope_id] = LexicalScope(scope_id, ScopeKind.MODULE, location, None)
        self._scope_by_node[node_key(root_node)] = scope_id
        self._root_scope_id = scope_id

    def scope_of(self, node: Node) -> ScopeId:
        """Innermost scope strictly enclosing ``node``."""
        current = node.parent
        while current is not None:
            scope_id = self._scope_by_node.get(node_key(current))
            if scope_id is not None:
                return scope_id
            current = current.parent
        return self._root_scope_id

    def own_scope(self, node: Node) -> ScopeId | None:
        """Scope opened by ``node`` itself, if any."""
        return self._scope_by_node.get(node_key(node))

    def open_scope(self, node: Node, kind: ScopeKind, name: str | None = None) -> ScopeId:
        key = node_key(node)
        existing = self._scope_by_node.get(key)
        if existing is not None:
            return existing
        parent_id = self.scope_of(node)
        location = self.loc(node)
        scope_id = make_scope_id(kind, location)
        if scope_id not in self._scopes:
            self._scopes[scope_id] = LexicalScope(scope_id, kind, location, parent_id, name)
            self._scopes[parent_id].child_ids.append(scope_id)
        self._scope_by_node[key] = scope_id
        return scope_id

    def scope_kind_for(self, node: Node, entity: SemanticEntity) -> ScopeKind | None:
        """Scope kind a captured node opens, or None to open no scope."""
        return _ENTITY_SCOPE_KINDS.get(entity)

    @handles(SemanticCategory.SCOPE, SemanticEntity.FUNCTION)
    @handles(SemanticCategory.SCOPE, SemanticEntity.METHOD)
    @handles(SemanticCategory.SCOPE, SemanticEntity.CLASS)
    @handles(SemanticCategory.SCOPE, SemanticEntity.BLOCK)
    def _on_scope(self, capture: Capture) -> None:
        kind = self.scope_kind_for(capture.node, capture.tag.entity)
        if kind is None:
            return
        name_node = capture.node.child_by_field_name("name")
        self.open_scope(capture.node, kind, self.text(name_node) if name_node else None)

    def scope(self, scope_id: ScopeId) -> LexicalScope:
        return self._scopes[scope_id]

    def enclosing_type(self, scope_id: ScopeId) -> SymbolId | None:
        """Class/interface/enum whose body is the nearest class scope above."""
        current: ScopeId | None = scope_id
        while current is not None:
            scope = self._scopes[current]
            if scope.kind is ScopeKind.CLASS:
                return self._type_by_scope.get(current)
            current = scope.parent_id
        return None

    def enclosing_callable(self, scope_id: ScopeId) -> Definition | None:
        current: ScopeId | None = scope_id
        while current is not None:
            scope = self._scopes[current]
            if scope.is_callable:
                symbol_id = self._callable_by_scope.get(current)
                return self._definitions.get(symbol_id) if symbol_id else None
            current = scope.parent_id
        return None

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def add_definition(
        self,
        *,
        name: str,
        kind: SymbolKind,
        node: Node,
        name_node: Node | None = None,
        scope_id: ScopeId | None = None,
        body_node: Node | None = None,
        hoisted: bool | None = None,
        definition_cls: type[Definition] = Definition,
        **extra: Any,
    ) -> Definition | None:
        """Record a definition; returns None if this node already defined ``kind``."""
        key = node_key(node)
        if (key, kind) in self._seen_def_nodes:
            return None
        location = self.loc(node)
        symbol_id = make_symbol_id(kind, location, name)
        if symbol_id in self._definitions:
            raise InvariantViolation.duplicate_symbol(symbol_id, self.file_path, self.file_path)

        scope_id = scope_id or self.scope_of(node)
        body_scope_id = None
        if kind in CALLABLE_KINDS or kind in TYPE_KINDS:
            body_scope_id = self.own_scope(body_node if body_node is not None else node)

        definition = definition_cls(
            symbol_id=symbol_id,
            name=name,
            kind=kind,
            location=location,
            scope_id=scope_id,
            name_location=self.loc(name_node) if name_node is not None else None,
            body_scope_id=body_scope_id,
            hoisted=(kind in _HOISTED_KINDS) if hoisted is None else hoisted,
            **extra,
        )
        decorators = self._pending_decorators.pop(key, None)
        if decorators:
            definition.decorators.extend(decorators)
            definition.is_static = definition.is_static or bool(
                {"staticmethod", "classmethod"} & set(decorators)
            )

        self._seen_def_nodes.add((key, kind))
        self._definitions[symbol_id] = definition
        self._defs_by_node[key] = symbol_id
        if name_node is not None:
            self.claim(name_node)

        if definition.parent_type_id is not None and definition.is_member:
            self._members[definition.parent_type_id].setdefault(name, symbol_id)
        elif name != ANONYMOUS and not (
            isinstance(definition, ImportDefinition)
            and definition.import_kind is ImportKind.WILDCARD
        ):
            self._names[(scope_id, name)].append(symbol_id)

        if body_scope_id is not None:
            if kind in TYPE_KINDS:
                self._type_by_scope[body_scope_id] = symbol_id
            else:
                self._callable_by_scope[body_scope_id] = symbol_id

        export = self._export_targets.pop(key, None)
        if export is not None:
            export_name, is_default = export
            self.mark_exported(definition, export_name or name, is_default=is_default)
        return definition

    def definition_at(self, node: Node) -> Definition | None:
        symbol_id = self._defs_by_node.get(node_key(node))
        return self._definitions.get(symbol_id) if symbol_id else None

    def local_names(self, scope_id: ScopeId, name: str) -> list[Definition]:
        return [self._definitions[s] for s in self._names.get((scope_id, name), ())]

    def member(self, type_id: SymbolId, name: str) -> Definition | None:
        symbol_id = self._members.get(type_id, {}).get(name)
        return self._definitions.get(symbol_id) if symbol_id else None

    def bind_callable(self, node: Node) -> None:
        """Mark an anonymous callable node as already named by its binding."""
        self._bound_callables.add(node_key(node))

    def is_bound_callable(self, node: Node) -> bool:
        return node_key(node) in self._bound_callables

    def add_decorator(self, target: Node, name: str) -> None:
        self._pending_decorators[node_key(target)].append(name)

    # -------------------------------------------------------------------------
    # Imports / exports
    # -------------------------------------------------------------------------

    def add_import(
        self,
        *,
        name: str,
        node: Node,
        import_path: str,
        import_kind: ImportKind,
        original_name: str | None = None,
        name_node: Node | None = None,
    ) -> ImportDefinition | None:
        definition = self.add_definition(
            name=name,
            kind=SymbolKind.IMPORT,
            node=name_node if name_node is not None else node,
            name_node=name_node,
            scope_id=self.scope_of(node),
            hoisted=self.pack.hoisted_imports,
            definition_cls=ImportDefinition,
            import_path=import_path,
            import_kind=import_kind,
            original_name=original_name,
        )
        if definition is None:
            return None
        assert isinstance(definition, ImportDefinition)
        self._imports.append(definition)
        return definition

    def expect_export(self, node: Node, export_name: str | None = None, *, is_default: bool = False) -> None:
        """The definition later created for ``node`` is exported."""
        self._export_targets[node_key(node)] = (export_name, is_default)

    def mark_exported(self, definition: Definition, export_name: str, *, is_default: bool = False) -> None:
        definition.is_exported = True
        self._exports.append(
            ExportEntry(
                export_name="default" if is_default else export_name,
                location=definition.location,
                symbol_id=definition.symbol_id,
                is_default=is_default,
            )
        )

    def export_local(self, export_name: str, local_name: str, node: Node, *, is_default: bool = False) -> None:
        """Export a module-level name bound anywhere in the file."""
        self._local_exports.append((export_name, local_name, self.loc(node), is_default))

    def add_reexport(self, export_name: str, source: str, imported_name: str | None, node: Node) -> None:
        self._exports.append(
            ExportEntry(
                export_name=export_name,
                location=self.loc(node),
                reexport=ReExport(source=source, imported_name=imported_name),
                is_default=export_name == "default",
            )
        )

    def add_wildcard_reexport(self, source: str) -> None:
        if source not in self._wildcard_reexports:
            self._wildcard_reexports.append(source)

    def _bind_exports(self) -> None:
        for export_name, local_name, location, is_default in self._local_exports:
            candidates = self.local_names(self._root_scope_id, local_name)
            target = candidates[-1] if candidates else None
            if target is not None and not isinstance(target, ImportDefinition):
                target.is_exported = True
            self._exports.append(
                ExportEntry(
                    export_name=export_name,
                    location=location,
                    symbol_id=target.symbol_id if target is not None else None,
                    is_default=is_default,
                )
            )

    # -------------------------------------------------------------------------
    # References
    # -------------------------------------------------------------------------

    def add_reference(
        self,
        *,
        name: str,
        kind: ReferenceKind,
        node: Node,
        scope_id: ScopeId | None = None,
        **metadata: Any,
    ) -> Reference:
        reference = Reference(
            name=name,
            kind=kind,
            location=self.loc(node),
            scope_id=scope_id or self.scope_of(node),
            **metadata,
        )
        self._references.append(reference)
        self.claim(node)
        return reference

    def add_member_reference(self, *, kind: ReferenceKind, node: Node) -> Reference | None:
        """Reference for a member expression ``node`` (``a.b.c``)."""
        chain = self.member_chain(node)
        name_node = self.member_name_node(node)
        if name_node is None or len(chain) < 2:
            return None
        object_node = self.member_object_node(node)
        self.claim_member_chain(node)
        return self.add_reference(
            name=chain[-1],
            kind=kind,
            node=name_node,
            scope_id=self.scope_of(node),
            receiver_location=self.loc(object_node) if object_node is not None else None,
            property_chain=chain,
        )

    def callback_metadata(self, node: Node) -> dict[str, Any]:
        """``argument_of``/``argument_index`` for a node passed as a call argument."""
        site = self.argument_site(node)
        if site is None:
            return {}
        call_name_node, index = site
        return {"argument_of": self.loc(call_name_node), "argument_index": index}

    def callback_context(self, node: Node) -> CallbackContext | None:
        site = self.argument_site(node)
        if site is None:
            return None
        call_name_node, index = site
        return CallbackContext(
            call_location=self.loc(call_name_node),
            argument_index=index,
            callee_name=self.text(call_name_node),
        )

    # -------------------------------------------------------------------------
    # Types
    # -------------------------------------------------------------------------

    def type_from_annotation(self, node: Node | None) -> TypeInfo | None:
        if node is None:
            return None
        return normalize_type(self.text(node), TypeSource.ANNOTATION)

    # -------------------------------------------------------------------------
    # Language hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def member_chain(self, node: Node) -> tuple[str, ...]:
        """Dotted access path of a member expression; unknown roots map to ''."""

    @abstractmethod
    def member_name_node(self, node: Node) -> Node | None:
        """Node holding the accessed member name of a member expression."""

    @abstractmethod
    def member_object_node(self, node: Node) -> Node | None:
        """Receiver node of a member expression."""

    @abstractmethod
    def claim_member_chain(self, node: Node) -> None:
        """Claim a member expression and every nested member expression."""

    @abstractmethod
    def argument_site(self, node: Node) -> tuple[Node, int] | None:
        """(callee name node, argument index) if ``node`` is a call argument."""


# =============================================================================
# Type normalization
# =============================================================================

_ARRAY_WRAPPERS = ("list[", "List[", "Sequence[", "Iterable[", "tuple[", "set[", "Array<", "ReadonlyArray<")
_OPTIONAL_WRAPPERS = ("Optional[",)


def normalize_type(raw: str, source: TypeSource) -> TypeInfo | None:
    """Reduce an annotation to the base type name used for member lookup.

    Examples:
        >>> normalize_type("Optional[Repo]", TypeSource.ANNOTATION).type_name
        'Repo'
        >>> normalize_type("User[]", TypeSource.ANNOTATION).is_array
        True
    """
    t = raw.strip().lstrip(":").strip().strip("'\"")
    is_array = False

    for wrapper in _OPTIONAL_WRAPPERS:
        if t.startswith(wrapper) and t.endswith("]"):
            t = t[len(wrapper) : -1]
    if "|" in t:
        parts = [p.strip() for p in t.split("|")]
        non_null = [p for p in parts if p not in ("None", "null", "undefined")]
        t = non_null[0] if non_null else parts[0]
    if t.endswith("?"):
        t = t[:-1]
    if t.endswith("[]"):
        t = t[:-2]
        is_array = True
    for wrapper in _ARRAY_WRAPPERS:
        if t.startswith(wrapper):
            t = t[len(wrapper) : -1].split(",")[0]
            is_array = True
            break

    # Handle generics: Foo[T], Foo<T>
    for bracket in ("[", "<"):
        idx = t.find(bracket)
        if idx > 0:
            t = t[:idx]

    t = t.strip()
    if not t or not (t[0].isalpha() or t[0] == "_"):
        return None
    return TypeInfo(type_name=t, source=source, is_array=is_array)


_DOTTED_NAME = re.compile(r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")


def call_result_root(callee: str) -> str:
    """Member-chain root standing for the value ``callee(...)`` produces.

    ``Repo().save()`` and ``new Repo().save()`` both get the root ``"Repo()"``.
    A callee that is not a plain dotted name yields ``""`` (dynamic receiver).
    """
    return f"{callee}()" if _DOTTED_NAME.fullmatch(callee) else ""


# =============================================================================
# Builder Registry
# =============================================================================


class BuilderRegistry:
    """Registry of builder classes by language family."""

    def __init__(self) -> None:
        self._builders: dict[str, type[SemanticIndexBuilder]] = {}

    def register(self, builder_cls: type[SemanticIndexBuilder]) -> None:
        self._builders[builder_cls.family] = builder_cls

    def get(self, family: str) -> type[SemanticIndexBuilder] | None:
        return self._builders.get(family)

    def supported_families(self) -> list[str]:
        return sorted(self._builders)


# Global registry instance
_registry: BuilderRegistry | None = None


def get_registry() -> BuilderRegistry:
    """Get the global builder registry, initializing if needed."""
    global _registry
    if _registry is None:
        _registry = BuilderRegistry()
        _register_builtin_builders(_registry)
    return _registry


def _register_builtin_builders(registry: BuilderRegistry) -> None:
    # Import here to avoid circular imports
    from codetrace.index._internal.extraction.javascript import EcmaScriptBuilder
    from codetrace.index._internal.extraction.python import PythonBuilder
    from codetrace.index._internal.extraction.rust import RustBuilder

    registry.register(PythonBuilder)
    registry.register(EcmaScriptBuilder)
    registry.register(RustBuilder)


__all__ = [
    "BuilderRegistry",
    "MalformedCapture",
    "SemanticIndexBuilder",
    "call_result_root",
    "get_registry",
    "handles",
    "node_key",
    "normalize_type",
]
