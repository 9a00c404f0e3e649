"""Python semantic index builder.

Handles:
- Functions, methods (``__init__`` as constructor), classes, lambdas
- Parameters with annotations, loop/with targets, assignments
- Class attributes and ``self.x = ...`` instance attributes as members
- ``import``/``from ... import`` (named, aliased, wildcard, relative)
- Public module names and ``__all__`` as the export list
- Calls, attribute chains (``self.repo.save()``), reads, writes, type refs
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from codetrace.index._internal.extraction import (
    MalformedCapture,
    SemanticIndexBuilder,
    call_result_root,
    handles,
    normalize_type,
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

_PATTERN_TYPES = frozenset({"pattern_list", "tuple_pattern", "list_pattern", "as_pattern_target"})


class PythonBuilder(SemanticIndexBuilder):
    """Builds a SemanticIndex for one Python module."""

    family = "python"

    _dunder_all: list[str] | None = None

    # =========================================================================
    # Scopes
    # =========================================================================

    def scope_kind_for(self, node: Node, entity: SemanticEntity) -> ScopeKind | None:
        kind = super().scope_kind_for(node, entity)
        if node.type == "function_definition" and self.scope(self.scope_of(node)).kind is ScopeKind.CLASS:
            name = node.child_by_field_name("name")
            if name is not None and self.text(name) == "__init__":
                return ScopeKind.CONSTRUCTOR
            return ScopeKind.METHOD
        return kind

    # =========================================================================
    # Definitions
    # =========================================================================

    @handles(SemanticCategory.DEFINITION, SemanticEntity.FUNCTION)
    def _on_function(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        name = self.text(name_node)
        scope_id = self.scope_of(node)
        owner = self.enclosing_type(scope_id) if self.scope(scope_id).kind is ScopeKind.CLASS else None

        kind = SymbolKind.FUNCTION
        if owner is not None:
            kind = SymbolKind.CONSTRUCTOR if name == "__init__" else SymbolKind.METHOD

        return_node = node.child_by_field_name("return_type")
        return_type = normalize_type(self.text(return_node), TypeSource.ANNOTATION) if return_node else None
        self.add_definition(
            name=name,
            kind=kind,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            parent_type_id=owner,
            return_type=return_type.type_name if return_type else None,
            is_private=_is_private(name),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.CLASS)
    def _on_class(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        bases: list[str] = []
        superclasses = node.child_by_field_name("superclasses")
        if superclasses is not None:
            for child in superclasses.named_children:
                if child.type in ("identifier", "attribute"):
                    bases.append(self.text(child))
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.CLASS,
            node=node,
            name_node=name_node,
            extends=bases,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.FUNCTION, "anonymous")
    def _on_lambda(self, capture: Capture) -> None:
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

    @handles(SemanticCategory.DEFINITION, SemanticEntity.PARAMETER)
    def _on_parameter(self, capture: Capture) -> None:
        node = capture.node
        type_info: TypeInfo | None = None
        if node.type == "identifier":
            name_node = node
        elif node.type == "typed_parameter":
            name_node = _first_identifier(node)
            type_info = self.type_from_annotation(node.child_by_field_name("type"))
        else:  # typed_default_parameter / default_parameter
            name_node = self.field(node, "name")
            type_info = self.type_from_annotation(node.child_by_field_name("type"))
        if name_node is None:
            raise MalformedCapture(f"parameter without name: {node.type}")

        name = self.text(name_node)
        scope_id = self.scope_of(node)
        if type_info is None and name in self.pack.self_names:
            type_info = self._implicit_self_type(scope_id)
        self.add_definition(
            name=name,
            kind=SymbolKind.PARAMETER,
            node=name_node,
            name_node=name_node,
            scope_id=scope_id,
            type_info=type_info,
        )

    def _implicit_self_type(self, scope_id: ScopeId) -> TypeInfo | None:
        scope = self.scope(scope_id)
        if scope.kind not in (ScopeKind.METHOD, ScopeKind.CONSTRUCTOR) or scope.parent_id is None:
            return None
        owner = self.enclosing_type(scope.parent_id)
        if owner is None:
            return None
        return TypeInfo(self._definitions[owner].name, TypeSource.ANNOTATION)

    @handles(SemanticCategory.DEFINITION, SemanticEntity.VARIABLE)
    def _on_target(self, capture: Capture) -> None:
        # for-loop, comprehension and with/except targets
        for ident in self._pattern_identifiers(capture.node):
            self.bind_name(ident)

    @handles(SemanticCategory.ASSIGNMENT, SemanticEntity.VARIABLE)
    def _on_assignment(self, capture: Capture) -> None:
        node = capture.node
        left = self.field(node, "left")
        right = node.child_by_field_name("right")
        annotation = node.child_by_field_name("type")
        type_info = self.type_from_annotation(annotation) or self._infer_type(right)

        if left.type == "identifier":
            scope_id = self.scope_of(node)
            if self.scope(scope_id).kind is ScopeKind.CLASS:
                self._class_attribute(left, node, scope_id, type_info, right)
            elif right is not None and right.type == "lambda":
                self.bind_callable(right)
                self.add_definition(
                    name=self.text(left),
                    kind=SymbolKind.FUNCTION,
                    node=node,
                    name_node=left,
                    scope_id=scope_id,
                    body_node=right,
                    hoisted=False,
                )
            else:
                self.bind_name(left, type_info=type_info)
        elif left.type in _PATTERN_TYPES:
            for ident in self._pattern_identifiers(left):
                self.bind_name(ident)
        elif left.type == "attribute":
            self._attribute_assignment(left, type_info)

    def _class_attribute(
        self,
        left: Node,
        node: Node,
        scope_id: ScopeId,
        type_info: TypeInfo | None,
        right: Node | None,
    ) -> None:
        owner = self.enclosing_type(scope_id)
        name = self.text(left)
        if owner is None or self.member(owner, name) is not None:
            self.add_reference(name=name, kind=ReferenceKind.WRITE, node=left)
            return
        if right is not None and right.type == "lambda":
            self.bind_callable(right)
            self.add_definition(
                name=name,
                kind=SymbolKind.METHOD,
                node=node,
                name_node=left,
                scope_id=scope_id,
                body_node=right,
                parent_type_id=owner,
                is_private=_is_private(name),
            )
            return
        self.add_definition(
            name=name,
            kind=SymbolKind.PROPERTY,
            node=left,
            name_node=left,
            scope_id=scope_id,
            parent_type_id=owner,
            type_info=type_info,
            is_private=_is_private(name),
        )

    def _attribute_assignment(self, left: Node, type_info: TypeInfo | None) -> None:
        chain = self.member_chain(left)
        scope_id = self.scope_of(left)
        owner = None
        if len(chain) == 2 and chain[0] in self.pack.self_names:
            method = self.enclosing_callable(scope_id)
            if method is not None and method.parent_type_id is not None:
                owner = method.parent_type_id
        name_node = self.field(left, "attribute")
        if owner is not None and self.member(owner, chain[1]) is None:
            self.claim_member_chain(left)
            class_def = self._definitions[owner]
            self.add_definition(
                name=chain[1],
                kind=SymbolKind.PROPERTY,
                node=left,
                name_node=name_node,
                scope_id=class_def.body_scope_id,
                parent_type_id=owner,
                type_info=type_info,
                is_private=_is_private(chain[1]),
            )
            return
        self.add_member_reference(kind=ReferenceKind.WRITE, node=left)

    def bind_name(self, ident: Node, type_info: TypeInfo | None = None) -> None:
        """Define ``ident`` in its scope, or record a write if already bound there."""
        name = self.text(ident)
        scope_id = self.scope_of(ident)
        if self.local_names(scope_id, name):
            self.add_reference(name=name, kind=ReferenceKind.WRITE, node=ident, scope_id=scope_id)
            return
        self.add_definition(
            name=name,
            kind=SymbolKind.VARIABLE,
            node=ident,
            name_node=ident,
            scope_id=scope_id,
            hoisted=False,
            type_info=type_info,
        )

    def _pattern_identifiers(self, node: Node) -> list[Node]:
        if node.type == "identifier":
            return [node]
        out: list[Node] = []
        for child in node.named_children:
            if child.type == "identifier":
                out.append(child)
            elif child.type in _PATTERN_TYPES or child.type in ("list_splat_pattern", "parenthesized_expression"):
                out.extend(self._pattern_identifiers(child))
        return out

    def _infer_type(self, value: Node | None) -> TypeInfo | None:
        """Type of ``x`` in ``x = Foo()`` / ``x = make()`` / ``x = typed_param``."""
        if value is None:
            return None
        if value.type == "identifier":
            return self._visible_type(value)
        if value.type != "call":
            return None
        function = value.child_by_field_name("function")
        if function is None or function.type not in ("identifier", "attribute"):
            return None
        return TypeInfo(self.text(function), TypeSource.CALL_RETURN)

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

    @handles(SemanticCategory.IMPORT, SemanticEntity.NAMESPACE)
    def _on_import(self, capture: Capture) -> None:
        node = capture.node
        self.claim_region(node)
        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                path_node = self.field(name_node, "name")
                alias = self.field(name_node, "alias")
                self.add_import(
                    name=self.text(alias),
                    node=node,
                    import_path=self.text(path_node),
                    import_kind=ImportKind.NAMESPACE,
                    name_node=alias,
                )
            else:
                dotted = self.text(name_node)
                first = name_node.named_children[0] if name_node.named_children else name_node
                head = dotted.split(".")[0]
                self.add_import(
                    name=head,
                    node=node,
                    import_path=head,
                    import_kind=ImportKind.NAMESPACE,
                    name_node=first,
                )

    @handles(SemanticCategory.IMPORT, SemanticEntity.NAMED)
    def _on_import_from(self, capture: Capture) -> None:
        node = capture.node
        self.claim_region(node)
        module_node = self.field(node, "module_name")
        module = self.text(module_node).replace(" ", "")

        for child in node.named_children:
            if child.type == "wildcard_import":
                self.add_import(
                    name="*",
                    node=node,
                    import_path=module,
                    import_kind=ImportKind.WILDCARD,
                    name_node=child,
                )
                return

        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                original = self.text(self.field(name_node, "name"))
                alias = self.field(name_node, "alias")
                bound, bound_node = self.text(alias), alias
            else:
                original = self.text(name_node)
                bound, bound_node = original, name_node
            self.add_import(
                name=bound,
                node=node,
                import_path=module,
                import_kind=ImportKind.NAMED,
                original_name=original,
                name_node=bound_node,
            )

    @handles(SemanticCategory.EXPORT, SemanticEntity.DECLARATION)
    def _on_dunder_all(self, capture: Capture) -> None:
        node = capture.node
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if left is None or right is None or self.text(left) != "__all__":
            return
        if right.type not in ("list", "tuple"):
            return
        names = [self.text(c).strip("'\"") for c in right.named_children if c.type == "string"]
        self._dunder_all = (self._dunder_all or []) + names

    def finish(self) -> None:
        root = self._root_scope_id
        latest: dict[str, Definition] = {}
        for definition in self._definitions.values():
            if definition.scope_id != root or definition.is_member:
                continue
            if isinstance(definition, ImportDefinition) and definition.import_kind is ImportKind.WILDCARD:
                continue
            latest[definition.name] = definition

        if self._dunder_all is not None:
            for name in self._dunder_all:
                target = latest.get(name)
                if target is not None:
                    if not isinstance(target, ImportDefinition):
                        target.is_exported = True
                    self._exports.append(
                        ExportEntry(export_name=name, location=target.location, symbol_id=target.symbol_id)
                    )
            return

        for name, definition in latest.items():
            if name.startswith("_") or isinstance(definition, ImportDefinition):
                continue
            if definition.kind is SymbolKind.PARAMETER:
                continue
            self.mark_exported(definition, name)

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
        function = self.field(capture.node, "function")
        self.add_member_reference(kind=ReferenceKind.CALL, node=function)

    @handles(SemanticCategory.REFERENCE, SemanticEntity.MEMBER_ACCESS)
    def _on_attribute(self, capture: Capture) -> None:
        node = capture.node
        if self.is_claimed(node):
            return
        self.add_member_reference(kind=ReferenceKind.MEMBER_ACCESS, node=node)

    @handles(SemanticCategory.REFERENCE, SemanticEntity.WRITE)
    def _on_write(self, capture: Capture) -> None:
        if self.is_claimed(capture.node):
            return
        self.add_reference(name=self.text(capture.node), kind=ReferenceKind.WRITE, node=capture.node)

    @handles(SemanticCategory.REFERENCE, SemanticEntity.TYPE)
    def _on_type_reference(self, capture: Capture) -> None:
        node = capture.node
        if self.is_claimed(node):
            return
        self.add_reference(
            name=self.text(node),
            kind=ReferenceKind.TYPE,
            node=node,
            type_info=TypeInfo(self.text(node), TypeSource.ANNOTATION),
        )

    @handles(SemanticCategory.REFERENCE, SemanticEntity.READ)
    def _on_read(self, capture: Capture) -> None:
        node = capture.node
        if self.is_claimed(node):
            return
        parent = node.parent
        if parent is not None:
            if parent.type == "attribute" and parent.child_by_field_name("attribute") == node:
                return
            if parent.type == "keyword_argument" and parent.child_by_field_name("name") == node:
                return
            if parent.type in ("global_statement", "nonlocal_statement"):
                return
        self.add_reference(
            name=self.text(node),
            kind=ReferenceKind.READ,
            node=node,
            **self.callback_metadata(node),
        )

    # =========================================================================
    # Decorators / modifiers / returns
    # =========================================================================

    @handles(SemanticCategory.DECORATOR, SemanticEntity.DECLARATION)
    def _on_decorator(self, capture: Capture) -> None:
        node = capture.node
        parent = node.parent
        if parent is None or parent.type != "decorated_definition":
            return
        target = parent.child_by_field_name("definition")
        if target is None:
            raise MalformedCapture("decorated_definition without definition")
        expression = node.named_children[0] if node.named_children else None
        if expression is None:
            return
        if expression.type == "call":
            expression = expression.child_by_field_name("function") or expression
        self.add_decorator(target, self.text(expression))

    @handles(SemanticCategory.MODIFIER, SemanticEntity.ASYNC)
    def _on_async(self, capture: Capture) -> None:
        parent = capture.node.parent
        definition = self.definition_at(parent) if parent is not None else None
        if definition is not None:
            definition.is_async = True

    @handles(SemanticCategory.RETURN, SemanticEntity.VALUE)
    def _on_return(self, capture: Capture) -> None:
        node = capture.node
        function = self.enclosing_callable(self.scope_of(node))
        if function is None or function.return_type is not None:
            return
        value = node.named_children[0] if node.named_children else None
        inferred = self._infer_type(value)
        if inferred is not None:
            function.return_type = inferred.type_name

    # =========================================================================
    # Language hooks
    # =========================================================================

    def member_chain(self, node: Node) -> tuple[str, ...]:
        parts: list[str] = []
        current = node
        while current.type == "attribute":
            attribute = current.child_by_field_name("attribute")
            obj = current.child_by_field_name("object")
            if attribute is None or obj is None:
                return ()
            parts.append(self.text(attribute))
            current = obj
        if current.type == "identifier":
            parts.append(self.text(current))
        elif current.type == "call":
            callee = _callee_text(self, current)
            parts.append("super" if callee == "super" else call_result_root(callee))
        else:
            parts.append("")
        return tuple(reversed(parts))

    def member_name_node(self, node: Node) -> Node | None:
        return node.child_by_field_name("attribute")

    def member_object_node(self, node: Node) -> Node | None:
        return node.child_by_field_name("object")

    def claim_member_chain(self, node: Node) -> None:
        current: Node | None = node
        while current is not None and current.type == "attribute":
            self.claim(current)
            current = current.child_by_field_name("object")

    def argument_site(self, node: Node) -> tuple[Node, int] | None:
        holder = node
        parent = node.parent
        if parent is not None and parent.type == "keyword_argument":
            holder, parent = parent, parent.parent
        if parent is None or parent.type != "argument_list":
            return None
        call = parent.parent
        if call is None or call.type != "call":
            return None
        function = call.child_by_field_name("function")
        if function is None:
            return None
        name_node = function.child_by_field_name("attribute") if function.type == "attribute" else function
        if name_node is None:
            return None
        index = next((i for i, c in enumerate(parent.named_children) if c == holder), 0)
        return name_node, index


def _is_private(name: str) -> bool:
    return name.startswith("_") and not (name.startswith("__") and name.endswith("__"))


def _first_identifier(node: Node) -> Node | None:
    for child in node.named_children:
        if child.type == "identifier":
            return child
        if child.type in ("list_splat_pattern", "dictionary_splat_pattern"):
            return _first_identifier(child)
    return None


def _callee_text(builder: SemanticIndexBuilder, call: Node) -> str:
    function = call.child_by_field_name("function")
    return builder.text(function) if function is not None else ""
