"""Rust semantic index builder.

Handles:
- Functions, ``impl`` and trait methods (associated functions as static),
  closures, structs, unions, enums and their variants, traits, type aliases
- Struct fields as members; ``impl Type`` blocks attach their methods to a
  type declared in the same file, ``impl Trait for Type`` adds the trait as
  a parent of the type
- ``use`` trees (nested lists, ``self``, ``as`` aliases, globs) and
  ``mod name;`` declarations as imports; ``pub`` items and ``pub use`` as
  exports
- ``let`` bindings typed by annotation, struct literal, ``Type::new()`` or
  the callee's declared return type
- Calls, field and path chains (``self.shape.area()``, ``crate::geo::area()``),
  reads, writes and type references
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from codetrace.index._internal.extraction import (
    MalformedCapture,
    SemanticIndexBuilder,
    call_result_root,
    handles,
)
from codetrace.index._internal.extraction.captures import (
    Capture,
    SemanticCategory,
    SemanticEntity,
)
from codetrace.index.models import (
    ANONYMOUS,
    Definition,
    ExportEntry,
    ImportDefinition,
    ImportKind,
    ReferenceKind,
    ScopeId,
    ScopeKind,
    SymbolKind,
    TypeInfo,
    TypeSource,
)

if TYPE_CHECKING:
    from tree_sitter import Node

    from codetrace.config.models import IndexerConfig
    from codetrace.index._internal.parsing.packs import LanguagePack

log = structlog.get_logger(__name__)

# Path-like nodes: (receiver field, member field)
_PATH_NODES: dict[str, tuple[str, str]] = {
    "field_expression": ("value", "field"),
    "scoped_identifier": ("path", "name"),
    "scoped_type_identifier": ("path", "name"),
}
_MODULE_HEADS = frozenset({"crate", "self", "super"})
_USE_LEAVES = frozenset({"identifier", "scoped_identifier", "self", "crate", "super"})
_PATTERN_SKIP = frozenset({"scoped_identifier", "type_identifier", "scoped_type_identifier", "field_identifier"})


@dataclass
class _Impl:
    """An ``impl`` block waiting for its type to be known."""

    type_name: str
    trait_name: str | None
    scope_id: ScopeId  # scope the impl block sits in
    methods: list[Definition] = field(default_factory=list)


class RustBuilder(SemanticIndexBuilder):
    """Builds a SemanticIndex for one Rust source file."""

    family = "rust"

    def __init__(
        self,
        file_path: str,
        source: bytes,
        pack: LanguagePack,
        config: IndexerConfig | None = None,
    ) -> None:
        super().__init__(file_path, source, pack, config)
        self._impls: dict[ScopeId, _Impl] = {}

    # =========================================================================
    # Scopes
    # =========================================================================

    def scope_kind_for(self, node: Node, entity: SemanticEntity) -> ScopeKind | None:
        kind = super().scope_kind_for(node, entity)
        if node.type == "function_item" and self.scope(self.scope_of(node)).kind is ScopeKind.CLASS:
            return ScopeKind.METHOD
        return kind

    def _self_type(self, scope_id: ScopeId) -> str | None:
        """Name ``Self`` stands for inside ``scope_id``."""
        current: ScopeId | None = scope_id
        while current is not None:
            scope = self.scope(current)
            if scope.kind is ScopeKind.CLASS:
                impl = self._impls.get(current)
                if impl is not None:
                    return impl.type_name
                owner = self.enclosing_type(current)
                return self._definitions[owner].name if owner else None
            current = scope.parent_id
        return None

    def _is_root(self, scope_id: ScopeId) -> bool:
        return scope_id == self._root_scope_id

    # =========================================================================
    # Definitions
    # =========================================================================

    @handles(SemanticCategory.DEFINITION, SemanticEntity.FUNCTION)
    @handles(SemanticCategory.DEFINITION, SemanticEntity.METHOD)
    def _on_function(self, capture: Capture) -> None:
        # function_item, or function_signature_item inside a trait
        node = capture.node
        name_node = self.field(node, "name")
        scope_id = self.scope_of(node)
        impl = self._impls.get(scope_id)
        owner = None
        if impl is None and self.scope(scope_id).kind is ScopeKind.CLASS:
            owner = self.enclosing_type(scope_id)
        in_type = impl is not None or owner is not None

        if _is_pub(node) and self._is_root(scope_id):
            self.expect_export(node)
        return_type = self.type_from_annotation(node.child_by_field_name("return_type"))
        definition = self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.METHOD if in_type else SymbolKind.FUNCTION,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            parent_type_id=owner,
            return_type=return_type.type_name if return_type else None,
            is_private=impl is not None and impl.trait_name is None and not _is_pub(node),
            is_static=in_type and not _has_self_parameter(node),
        )
        if definition is not None and impl is not None:
            impl.methods.append(definition)

    @handles(SemanticCategory.DEFINITION, SemanticEntity.CLASS)
    def _on_struct(self, capture: Capture) -> None:
        self._define_type(capture.node, SymbolKind.CLASS)

    @handles(SemanticCategory.DEFINITION, SemanticEntity.ENUM)
    def _on_enum(self, capture: Capture) -> None:
        self._define_type(capture.node, SymbolKind.ENUM)

    @handles(SemanticCategory.DEFINITION, SemanticEntity.INTERFACE)
    def _on_trait(self, capture: Capture) -> None:
        node = capture.node
        supertraits: list[str] = []
        bounds = node.child_by_field_name("bounds")
        if bounds is not None:
            for child in bounds.named_children:
                info = rust_type(self.text(child))
                if info is not None and child.type != "lifetime":
                    supertraits.append(info.type_name)
        self._define_type(node, SymbolKind.INTERFACE, extends=supertraits)

    def _define_type(self, node: Node, kind: SymbolKind, **extra: object) -> None:
        name_node = self.field(node, "name")
        scope_id = self.scope_of(node)
        if _is_pub(node) and self._is_root(scope_id):
            self.expect_export(node)
        self.add_definition(
            name=self.text(name_node),
            kind=kind,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            **extra,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.CLASS, "impl")
    def _on_impl(self, capture: Capture) -> None:
        node = capture.node
        target = rust_type(self.text(self.field(node, "type")))
        trait_node = node.child_by_field_name("trait")
        trait = rust_type(self.text(trait_node)) if trait_node is not None else None
        scope_id = self.own_scope(node)
        if target is None or scope_id is None:
            raise MalformedCapture("impl without a nameable type")
        self._impls[scope_id] = _Impl(
            type_name=target.type_name,
            trait_name=trait.type_name if trait else None,
            scope_id=self.scope_of(node),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.TYPE_ALIAS)
    def _on_type_alias(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        scope_id = self.scope_of(node)
        if _is_pub(node) and self._is_root(scope_id):
            self.expect_export(node)
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.TYPE_ALIAS,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            type_info=self.type_from_annotation(node.child_by_field_name("type")),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.PROPERTY)
    def _on_field(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        scope_id = self.scope_of(node)
        owner = self.enclosing_type(scope_id)
        if owner is None:
            return
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.PROPERTY,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            parent_type_id=owner,
            type_info=self.type_from_annotation(node.child_by_field_name("type")),
            is_private=not _is_pub(node),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.ENUM_MEMBER)
    def _on_variant(self, capture: Capture) -> None:
        name_node = capture.node
        variant = name_node.parent
        if variant is None:
            raise MalformedCapture("enum variant name without variant")
        scope_id = self.scope_of(variant)
        owner = self.enclosing_type(scope_id)
        if owner is None:
            return
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.ENUM_MEMBER,
            node=variant,
            name_node=name_node,
            scope_id=scope_id,
            parent_type_id=owner,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.VARIABLE, "item")
    def _on_item_variable(self, capture: Capture) -> None:
        # const / static
        node = capture.node
        name_node = self.field(node, "name")
        scope_id = self.scope_of(node)
        if _is_pub(node) and self._is_root(scope_id):
            self.expect_export(node)
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.VARIABLE,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            hoisted=True,
            type_info=self.type_from_annotation(node.child_by_field_name("type")),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.VARIABLE)
    def _on_let(self, capture: Capture) -> None:
        node = capture.node
        pattern = self.field(node, "pattern")
        value = node.child_by_field_name("value")
        scope_id = self.scope_of(node)

        if pattern.type == "identifier" and value is not None and value.type == "closure_expression":
            self.bind_callable(value)
            self.add_definition(
                name=self.text(pattern),
                kind=SymbolKind.FUNCTION,
                node=node,
                name_node=pattern,
                scope_id=scope_id,
                body_node=value,
                hoisted=False,
            )
            return

        type_info = None
        if pattern.type == "identifier":
            type_info = self.type_from_annotation(node.child_by_field_name("type")) or self._infer_type(value)
        for ident in self._pattern_identifiers(pattern):
            self._bind_variable(ident, scope_id, type_info)

    @handles(SemanticCategory.DEFINITION, SemanticEntity.VARIABLE, "pattern")
    def _on_loop_pattern(self, capture: Capture) -> None:
        for ident in self._pattern_identifiers(capture.node):
            self._bind_variable(ident, self.scope_of(ident), None)

    def _bind_variable(self, ident: Node, scope_id: ScopeId, type_info: TypeInfo | None) -> None:
        # Each ``let`` shadows: a new binding, never a write.
        self.add_definition(
            name=self.text(ident),
            kind=SymbolKind.VARIABLE,
            node=ident,
            name_node=ident,
            scope_id=scope_id,
            hoisted=False,
            type_info=type_info,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.PARAMETER)
    def _on_parameter(self, capture: Capture) -> None:
        node = capture.node
        scope_id = self.scope_of(node)
        if node.type == "self_parameter":
            name_node = next((c for c in node.children if c.type == "self"), None)
            if name_node is None:
                raise MalformedCapture("self_parameter without self")
            self_type = self._self_type(scope_id)
            self.add_definition(
                name="self",
                kind=SymbolKind.PARAMETER,
                node=name_node,
                name_node=name_node,
                scope_id=scope_id,
                type_info=TypeInfo(self_type, TypeSource.ANNOTATION) if self_type else None,
            )
            return

        if node.type == "identifier":
            idents, type_info = [node], None
        else:
            pattern = self.field(node, "pattern")
            idents = self._pattern_identifiers(pattern)
            type_info = self.type_from_annotation(node.child_by_field_name("type")) if len(idents) == 1 else None
        for ident in idents:
            self.add_definition(
                name=self.text(ident),
                kind=SymbolKind.PARAMETER,
                node=ident,
                name_node=ident,
                scope_id=scope_id,
                type_info=type_info,
            )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.FUNCTION, "anonymous")
    def _on_closure(self, capture: Capture) -> None:
        node = capture.node
        if self.is_bound_callable(node):
            return
        self.add_definition(
            name=ANONYMOUS,
            kind=SymbolKind.FUNCTION,
            node=node,
            hoisted=False,
            callback=self.callback_context(node),
        )

    def _pattern_identifiers(self, node: Node) -> list[Node]:
        if node.type == "identifier":
            return [node]
        out: list[Node] = []
        named_type = node.child_by_field_name("type")  # Some(x), Point { x, .. }
        for child in node.named_children:
            if child.type in _PATTERN_SKIP or child == named_type:
                continue
            if child.type in ("identifier", "shorthand_field_identifier"):
                out.append(child)
            else:
                out.extend(self._pattern_identifiers(child))
        return out

    def _infer_type(self, value: Node | None) -> TypeInfo | None:
        """Type of ``x`` in ``let x = Circle::new()`` / ``Point { .. }`` / ``make()``."""
        while value is not None and value.type in ("reference_expression", "try_expression"):
            if value.type == "reference_expression":
                value = value.child_by_field_name("value")
            else:
                value = value.named_children[0] if value.named_children else None
        if value is None:
            return None
        scope_id = self.scope_of(value)
        if value.type == "identifier":
            return self._visible_type(value)
        if value.type == "struct_expression":
            name = value.child_by_field_name("name")
            return rust_type(self.text(name), TypeSource.CONSTRUCTOR, self._self_type(scope_id)) if name else None
        if value.type != "call_expression":
            return None
        function = value.child_by_field_name("function")
        if function is None:
            return None
        if function.type == "scoped_identifier":
            path = function.child_by_field_name("path")
            name = function.child_by_field_name("name")
            if path is not None and name is not None and self.text(name) == "new":
                return rust_type(self.text(path), TypeSource.CONSTRUCTOR, self._self_type(scope_id))
        callee = _dotted(self.text(function))
        if callee is None:
            return None
        if callee.split(".")[0] == "Self":
            self_type = self._self_type(scope_id)
            if self_type is None:
                return None
            callee = self_type + callee[len("Self") :]
        return TypeInfo(callee, TypeSource.CALL_RETURN)

    def _visible_type(self, ident: Node) -> TypeInfo | None:
        name = self.text(ident)
        scope_id: ScopeId | None = self.scope_of(ident)
        while scope_id is not None:
            candidates = self.local_names(scope_id, name)
            if candidates:
                return candidates[-1].type_info
            scope_id = self.scope(scope_id).parent_id
        return None

    # =========================================================================
    # Imports / exports
    # =========================================================================

    @handles(SemanticCategory.IMPORT, SemanticEntity.NAMED)
    def _on_use(self, capture: Capture) -> None:
        node = capture.node
        self.claim_region(node)
        argument = self.field(node, "argument")
        exported = _is_pub(node) and self._is_root(self.scope_of(node))
        for imp in self._use_tree(argument, [], node):
            if not exported:
                continue
            if imp.import_kind is ImportKind.WILDCARD:
                self.add_wildcard_reexport(imp.import_path)
            else:
                self._exports.append(ExportEntry(export_name=imp.name, location=imp.location, symbol_id=imp.symbol_id))

    def _use_tree(self, node: Node, prefix: list[str], statement: Node) -> list[ImportDefinition]:
        if node.type == "use_list":
            out: list[ImportDefinition] = []
            for child in node.named_children:
                out.extend(self._use_tree(child, prefix, statement))
            return out
        if node.type == "scoped_use_list":
            path = node.child_by_field_name("path")
            segments = prefix + (_segments(self.text(path)) if path is not None else [])
            return self._use_tree(self.field(node, "list"), segments, statement)
        if node.type == "use_wildcard":
            path = node.named_children[0] if node.named_children else None
            segments = prefix + (_segments(self.text(path)) if path is not None else [])
            imp = self.add_import(
                name="*",
                node=statement,
                import_path="::".join(segments),
                import_kind=ImportKind.WILDCARD,
                name_node=node,
            )
            return [imp] if imp is not None else []

        alias = None
        if node.type == "use_as_clause":
            alias = self.field(node, "alias")
            node = self.field(node, "path")
        if node.type not in _USE_LEAVES:
            return []
        segments = prefix + _segments(self.text(node))
        name_node = node.child_by_field_name("name") if node.type == "scoped_identifier" else node
        imp = self._bind_use(segments, alias or name_node or node, alias is not None, statement)
        return [imp] if imp is not None else []

    def _bind_use(self, segments: list[str], name_node: Node, aliased: bool, statement: Node) -> ImportDefinition | None:
        if segments and segments[-1] == "self":
            # use geo::{self} binds the module itself
            segments = segments[:-1]
            if not segments:
                return None
            return self.add_import(
                name=self.text(name_node) if aliased else segments[-1],
                node=statement,
                import_path="::".join(segments),
                import_kind=ImportKind.NAMESPACE,
                name_node=name_node,
            )
        if len(segments) == 1:
            return self.add_import(
                name=self.text(name_node),
                node=statement,
                import_path=segments[0],
                import_kind=ImportKind.NAMESPACE,
                name_node=name_node,
            )
        return self.add_import(
            name=self.text(name_node),
            node=statement,
            import_path="::".join(segments[:-1]),
            import_kind=ImportKind.NAMED,
            original_name=segments[-1],
            name_node=name_node,
        )

    @handles(SemanticCategory.IMPORT, SemanticEntity.NAMESPACE)
    def _on_mod(self, capture: Capture) -> None:
        node = capture.node
        if node.child_by_field_name("body") is not None:
            return  # inline module
        name_node = self.field(node, "name")
        name = self.text(name_node)
        imp = self.add_import(
            name=name,
            node=node,
            import_path=f"self::{name}",
            import_kind=ImportKind.NAMESPACE,
            name_node=name_node,
        )
        if imp is not None and _is_pub(node) and self._is_root(imp.scope_id):
            self._exports.append(ExportEntry(export_name=name, location=imp.location, symbol_id=imp.symbol_id))

    def finish(self) -> None:
        for impl in self._impls.values():
            owner = self._local_type(impl.type_name, impl.scope_id)
            if owner is None:
                log.debug("rust.impl_unattached", path=self.file_path, type=impl.type_name)
                continue
            if impl.trait_name and impl.trait_name not in owner.implements:
                owner.implements.append(impl.trait_name)
            for method in impl.methods:
                method.parent_type_id = owner.symbol_id

    def _local_type(self, name: str, scope_id: ScopeId) -> Definition | None:
        """Type ``name`` declared in this file and visible from ``scope_id``."""
        current: ScopeId | None = scope_id
        while current is not None:
            types = [d for d in self.local_names(current, name) if d.is_type]
            if types:
                return types[-1]
            current = self.scope(current).parent_id
        return None

    # =========================================================================
    # References
    # =========================================================================

    @handles(SemanticCategory.REFERENCE, SemanticEntity.CALL)
    def _on_call(self, capture: Capture) -> None:
        function = self.field(capture.node, "function")
        name = self.text(function)
        self.add_reference(
            name=name,
            kind=ReferenceKind.CALL,
            node=function,
            property_chain=(name,),
        )

    @handles(SemanticCategory.REFERENCE, SemanticEntity.CALL, "member")
    def _on_member_call(self, capture: Capture) -> None:
        self.add_member_reference(kind=ReferenceKind.CALL, node=self.field(capture.node, "function"))

    @handles(SemanticCategory.REFERENCE, SemanticEntity.CONSTRUCT)
    def _on_struct_literal(self, capture: Capture) -> None:
        name_node = self.field(capture.node, "name")
        name = self.text(name_node)
        if name == "Self":
            name = self._self_type(self.scope_of(name_node)) or ""
        if not name:
            return
        self.add_reference(
            name=name,
            kind=ReferenceKind.CONSTRUCT,
            node=name_node,
            property_chain=(name,),
            type_info=TypeInfo(name, TypeSource.CONSTRUCTOR),
        )

    @handles(SemanticCategory.REFERENCE, SemanticEntity.MEMBER_ACCESS)
    def _on_member_access(self, capture: Capture) -> None:
        node = capture.node
        if self.is_claimed(node):
            return
        self.add_member_reference(kind=ReferenceKind.MEMBER_ACCESS, node=node)

    @handles(SemanticCategory.REFERENCE, SemanticEntity.TYPE, "member")
    def _on_scoped_type(self, capture: Capture) -> None:
        node = capture.node
        if self.is_claimed(node):
            return
        self.add_member_reference(kind=ReferenceKind.TYPE, node=node)

    @handles(SemanticCategory.REFERENCE, SemanticEntity.WRITE)
    def _on_write(self, capture: Capture) -> None:
        if self.is_claimed(capture.node):
            return
        self.add_reference(name=self.text(capture.node), kind=ReferenceKind.WRITE, node=capture.node)

    @handles(SemanticCategory.REFERENCE, SemanticEntity.TYPE)
    def _on_type_reference(self, capture: Capture) -> None:
        node = capture.node
        name = self.text(node)
        if self.is_claimed(node) or name == "Self" or _in_attribute(node):
            return
        self.add_reference(
            name=name,
            kind=ReferenceKind.TYPE,
            node=node,
            type_info=TypeInfo(name, TypeSource.ANNOTATION),
        )

    @handles(SemanticCategory.REFERENCE, SemanticEntity.READ)
    def _on_read(self, capture: Capture) -> None:
        node = capture.node
        if self.is_claimed(node):
            return
        parent = node.parent
        if parent is not None:
            if parent.type in ("scoped_identifier", "scoped_type_identifier") and (
                parent.child_by_field_name("name") == node
            ):
                return
            if parent.type == "macro_invocation" and parent.child_by_field_name("macro") == node:
                return
        if _in_attribute(node):
            return
        self.add_reference(
            name=self.text(node),
            kind=ReferenceKind.READ,
            node=node,
            **self.callback_metadata(node),
        )

    # =========================================================================
    # Modifiers
    # =========================================================================

    @handles(SemanticCategory.MODIFIER, SemanticEntity.ASYNC)
    def _on_async(self, capture: Capture) -> None:
        modifiers = capture.node.parent
        function = modifiers.parent if modifiers is not None else None
        definition = self.definition_at(function) if function is not None else None
        if definition is not None:
            definition.is_async = True

    # =========================================================================
    # Types
    # =========================================================================

    def type_from_annotation(self, node: Node | None) -> TypeInfo | None:
        if node is None:
            return None
        return rust_type(self.text(node), TypeSource.ANNOTATION, self._self_type(self.scope_of(node)))

    # =========================================================================
    # Language hooks
    # =========================================================================

    def member_chain(self, node: Node) -> tuple[str, ...]:
        parts: list[str] = []
        current = node
        while current.type in _PATH_NODES:
            object_field, name_field = _PATH_NODES[current.type]
            name = current.child_by_field_name(name_field)
            obj = current.child_by_field_name(object_field)
            if name is None or obj is None:
                return ()
            parts.append(self.text(name))
            if current.type != "field_expression" and self._is_module_path(obj):
                parts.append("::".join(_segments(self.text(obj))) + "::")
                return tuple(reversed(parts))
            current = obj
        if current.type in ("identifier", "type_identifier", "self"):
            parts.append(self.text(current))
        elif current.type == "call_expression":
            callee = current.child_by_field_name("function")
            dotted = _dotted(self.text(callee)) if callee is not None else None
            parts.append(call_result_root(dotted) if dotted else "")
        else:
            parts.append("")
        return tuple(reversed(parts))

    def _is_module_path(self, node: Node) -> bool:
        if node.type in _MODULE_HEADS:
            return True
        return node.type == "scoped_identifier" and _segments(self.text(node))[0] in _MODULE_HEADS

    def member_name_node(self, node: Node) -> Node | None:
        spec = _PATH_NODES.get(node.type)
        return node.child_by_field_name(spec[1]) if spec else None

    def member_object_node(self, node: Node) -> Node | None:
        spec = _PATH_NODES.get(node.type)
        return node.child_by_field_name(spec[0]) if spec else None

    def claim_member_chain(self, node: Node) -> None:
        current: Node | None = node
        while current is not None and current.type in _PATH_NODES:
            self.claim(current)
            current = current.child_by_field_name(_PATH_NODES[current.type][0])

    def argument_site(self, node: Node) -> tuple[Node, int] | None:
        parent = node.parent
        if parent is None or parent.type != "arguments":
            return None
        call = parent.parent
        if call is None or call.type != "call_expression":
            return None
        function = call.child_by_field_name("function")
        if function is None:
            return None
        name_node = self.member_name_node(function) if function.type in _PATH_NODES else function
        if name_node is None:
            return None
        index = next((i for i, c in enumerate(parent.named_children) if c == node), 0)
        return name_node, index


# =============================================================================
# Helpers
# =============================================================================

_LEADING = re.compile(r"^(?:&\s*|'\w+\s+|mut\s+|dyn\s+|impl\s+)")
_WRAPPERS = ("Box<", "Rc<", "Arc<", "RefCell<", "Cell<", "Mutex<", "RwLock<", "Option<", "Result<")
_SEQUENCES = ("Vec<", "VecDeque<")
_PATH = re.compile(r"[A-Za-z_]\w*(?:::[A-Za-z_]\w*)*")


def rust_type(raw: str, source: TypeSource = TypeSource.ANNOTATION, self_type: str | None = None) -> TypeInfo | None:
    """Reduce a Rust type to the base type name used for member lookup.

    References, lifetimes, smart pointers, ``Option``/``Result`` and
    generic arguments are stripped; ``Vec<T>`` and slices mark an array.

    Examples:
        >>> rust_type("&'a mut Box<Circle>").type_name
        'Circle'
        >>> rust_type("Vec<shapes::Circle>").type_name
        'shapes.Circle'
        >>> rust_type("&[Circle]").is_array
        True
    """
    t = raw.strip()
    is_array = False
    while True:
        stripped = _LEADING.sub("", t, count=1).strip()
        if stripped != t:
            t = stripped
            continue
        wrapper = next((w for w in _WRAPPERS if t.startswith(w) and t.endswith(">")), None)
        if wrapper is not None:
            t = _first_argument(t[len(wrapper) : -1])
            continue
        sequence = next((s for s in _SEQUENCES if t.startswith(s) and t.endswith(">")), None)
        if sequence is not None:
            t = _first_argument(t[len(sequence) : -1])
            is_array = True
            continue
        if t.startswith("[") and t.endswith("]"):
            t = t[1:-1].split(";")[0].strip()
            is_array = True
            continue
        break

    idx = t.find("<")
    if idx > 0:
        t = t[:idx]
    if t == "Self":
        t = self_type or ""
    t = t.replace("::", ".").strip()
    if not t or not (t[0].isalpha() or t[0] == "_"):
        return None
    return TypeInfo(type_name=t, source=source, is_array=is_array)


def _first_argument(arguments: str) -> str:
    depth = 0
    for i, char in enumerate(arguments):
        if char in "<([":
            depth += 1
        elif char in ">)]":
            depth -= 1
        elif char == "," and depth == 0:
            return arguments[:i].strip()
    return arguments.strip()


def _segments(path: str) -> list[str]:
    return [s for s in path.replace(" ", "").split("::") if s]


def _dotted(callee: str) -> str | None:
    """``Circle::new`` as ``Circle.new``; None for callees that are not plain paths."""
    callee = callee.replace(" ", "")
    return callee.replace("::", ".") if _PATH.fullmatch(callee) else None


def _is_pub(node: Node) -> bool:
    return any(child.type == "visibility_modifier" for child in node.children)


def _has_self_parameter(node: Node) -> bool:
    parameters = node.child_by_field_name("parameters")
    return parameters is not None and any(c.type == "self_parameter" for c in parameters.named_children)


def _in_attribute(node: Node) -> bool:
    current = node.parent
    while current is not None:
        if current.type in ("attribute_item", "inner_attribute_item"):
            return True
        if current.type.endswith("_item") or current.type == "block":
            return False
        current = current.parent
    return False
