"""JavaScript / TypeScript / TSX semantic index builder.

Handles:
- Function declarations, arrow/function expressions (named by their
  ``const``/``let``/``var`` binding when bound), classes, methods,
  constructors, fields and ``this.x = ...`` properties
- TypeScript interfaces, type aliases, enums and members, typed
  parameters/fields/variables, constructor parameter properties,
  ``implements`` clauses, accessibility modifiers
- ES imports (default, named, namespace) and CommonJS ``require``
- Export declarations, export clauses, default exports, re-exports,
  ``export *`` and ``export * as ns``
- Calls, ``new`` expressions, member chains, reads, writes, type refs
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

    from codetrace.index.models import Definition

_FUNCTION_NODES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)
_CALLABLE_VALUES = frozenset({"arrow_function", "function_expression", "generator_function"})
_PATTERN_NODES = frozenset({"object_pattern", "array_pattern"})
# Call-like receivers and the field naming their callee
_CALL_ROOTS: dict[str, str] = {"call_expression": "function", "new_expression": "constructor"}


def _string_value(text: str) -> str:
    return text.strip().strip("'\"`")


class EcmaScriptBuilder(SemanticIndexBuilder):
    """Builds a SemanticIndex for one JavaScript, TypeScript or TSX module."""

    family = "javascript"

    # =========================================================================
    # Scopes
    # =========================================================================

    def scope_kind_for(self, node: Node, entity: SemanticEntity) -> ScopeKind | None:
        if node.type == "statement_block" and node.parent is not None and node.parent.type in _FUNCTION_NODES:
            return None  # the function scope already covers its body
        if node.type == "method_definition":
            name = node.child_by_field_name("name")
            if name is not None and self.text(name) == "constructor":
                return ScopeKind.CONSTRUCTOR
            return ScopeKind.METHOD
        return super().scope_kind_for(node, entity)

    # =========================================================================
    # Definitions
    # =========================================================================

    @handles(SemanticCategory.DEFINITION, SemanticEntity.FUNCTION)
    def _on_function(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.FUNCTION,
            node=node,
            name_node=name_node,
            return_type=self._return_type(node),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.FUNCTION, "anonymous")
    def _on_function_expression(self, capture: Capture) -> None:
        node = capture.node
        if self.is_bound_callable(node):
            return
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            # Named function expression: the name is only visible inside itself.
            self.add_definition(
                name=self.text(name_node),
                kind=SymbolKind.FUNCTION,
                node=node,
                name_node=name_node,
                scope_id=self.own_scope(node),
                hoisted=False,
                return_type=self._return_type(node),
                callback=self.callback_context(node),
            )
            return
        self.add_definition(
            name=ANONYMOUS,
            kind=SymbolKind.FUNCTION,
            node=node,
            hoisted=False,
            return_type=self._return_type(node),
            callback=self.callback_context(node),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.CLASS)
    def _on_class(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        extends: list[str] = []
        implements: list[str] = []
        for child in node.named_children:
            if child.type != "class_heritage":
                continue
            for clause in child.named_children:
                if clause.type == "extends_clause":
                    for value in clause.children_by_field_name("value"):
                        extends.append(self.text(value))
                elif clause.type == "implements_clause":
                    implements.extend(self._type_names(clause))
                elif clause.type in ("identifier", "member_expression"):
                    extends.append(self.text(clause))
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.CLASS,
            node=node,
            name_node=name_node,
            extends=extends,
            implements=implements,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.METHOD)
    def _on_method(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        name = self.text(name_node)
        scope_id = self.scope_of(node)
        owner = self.enclosing_type(scope_id) if self.scope(scope_id).kind is ScopeKind.CLASS else None
        if owner is None:
            # Object-literal method: callable, but not bound to any lexical name.
            self.add_definition(
                name=name,
                kind=SymbolKind.FUNCTION,
                node=node,
                name_node=name_node,
                scope_id=self.own_scope(node) or scope_id,
                hoisted=False,
                return_type=self._return_type(node),
            )
            return
        kind = SymbolKind.CONSTRUCTOR if name == "constructor" else SymbolKind.METHOD
        self.add_definition(
            name=name,
            kind=kind,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            parent_type_id=owner,
            return_type=self._return_type(node),
            is_private=name.startswith("#"),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.PROPERTY)
    def _on_field(self, capture: Capture) -> None:
        node = capture.node
        name_node = node.child_by_field_name("name") or node.child_by_field_name("property")
        if name_node is None:
            raise MalformedCapture(f"{node.type} without name")
        scope_id = self.scope_of(node)
        if self.scope(scope_id).kind is not ScopeKind.CLASS:
            return  # property signature of an inline object type
        owner = self.enclosing_type(scope_id)
        if owner is None:
            return
        name = self.text(name_node)
        value = node.child_by_field_name("value")
        is_static = any(c.type == "static" for c in node.children)
        if value is not None and value.type in _CALLABLE_VALUES:
            self.bind_callable(value)
            self.add_definition(
                name=name,
                kind=SymbolKind.METHOD,
                node=node,
                name_node=name_node,
                scope_id=scope_id,
                body_node=value,
                parent_type_id=owner,
                is_static=is_static,
                is_private=name.startswith("#"),
            )
            return
        self.add_definition(
            name=name,
            kind=SymbolKind.PROPERTY,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            parent_type_id=owner,
            type_info=self.type_from_annotation(node.child_by_field_name("type")) or self._infer_type(value),
            is_static=is_static,
            is_private=name.startswith("#"),
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.VARIABLE)
    def _on_variable(self, capture: Capture) -> None:
        node = capture.node
        if node.type == "identifier":
            self._on_loop_variable(node)
            return

        name_node = self.field(node, "name")
        value = node.child_by_field_name("value")
        declaration = node.parent
        is_var = declaration is not None and declaration.type == "variable_declaration"
        scope_id = self._var_scope(node) if is_var else self.scope_of(node)

        if name_node.type in _PATTERN_NODES:
            for ident in self._pattern_identifiers(name_node):
                self.add_definition(
                    name=self.text(ident),
                    kind=SymbolKind.VARIABLE,
                    node=ident,
                    name_node=ident,
                    scope_id=scope_id,
                    hoisted=False,
                )
            return

        name = self.text(name_node)
        if value is not None and value.type in _CALLABLE_VALUES:
            self.bind_callable(value)
            self.add_definition(
                name=name,
                kind=SymbolKind.FUNCTION,
                node=node,
                name_node=name_node,
                scope_id=scope_id,
                body_node=value,
                hoisted=False,
                return_type=self._return_type(value),
            )
            return

        required = self._require_specifier(value)
        if required is not None:
            self.claim_region(value)  # type: ignore[arg-type]
            self.add_import(
                name=name,
                node=node,
                import_path=required,
                import_kind=ImportKind.NAMESPACE,
                name_node=name_node,
            )
            return

        self.add_definition(
            name=name,
            kind=SymbolKind.VARIABLE,
            node=node,
            name_node=name_node,
            scope_id=scope_id,
            hoisted=False,
            type_info=self.type_from_annotation(node.child_by_field_name("type")) or self._infer_type(value),
        )

    def _on_loop_variable(self, ident: Node) -> None:
        loop = ident.parent
        if loop is None or loop.child_by_field_name("kind") is None:
            self.add_reference(name=self.text(ident), kind=ReferenceKind.WRITE, node=ident)
            return
        self.add_definition(
            name=self.text(ident),
            kind=SymbolKind.VARIABLE,
            node=ident,
            name_node=ident,
            hoisted=False,
        )

    def _var_scope(self, node: Node) -> ScopeId:
        """``var`` bindings belong to the nearest function or module scope."""
        scope_id = self.scope_of(node)
        scope = self.scope(scope_id)
        while scope.kind is ScopeKind.BLOCK and scope.parent_id is not None:
            scope = self.scope(scope.parent_id)
        return scope.id

    @handles(SemanticCategory.DEFINITION, SemanticEntity.PARAMETER)
    def _on_parameter(self, capture: Capture) -> None:
        node = capture.node
        type_info: TypeInfo | None = None
        if node.type in ("required_parameter", "optional_parameter"):
            pattern = self.field(node, "pattern")
            type_info = self.type_from_annotation(node.child_by_field_name("type"))
            if pattern.type == "this":
                return
            if pattern.type == "rest_pattern":
                pattern = pattern.named_children[0] if pattern.named_children else pattern
            if pattern.type in _PATTERN_NODES:
                for ident in self._pattern_identifiers(pattern):
                    self._define_parameter(ident, None)
            else:
                self._define_parameter(pattern, type_info)
            if pattern.type == "identifier" and self._is_parameter_property(node):
                self._define_parameter_property(node, pattern, type_info)
            return
        if node.type in _PATTERN_NODES:
            for ident in self._pattern_identifiers(node):
                self._define_parameter(ident, None)
            return
        self._define_parameter(node, type_info)

    def _define_parameter(self, ident: Node, type_info: TypeInfo | None) -> None:
        if ident.type not in ("identifier", "shorthand_property_identifier_pattern"):
            return
        self.add_definition(
            name=self.text(ident),
            kind=SymbolKind.PARAMETER,
            node=ident,
            name_node=ident,
            hoisted=False,
            type_info=type_info,
        )

    def _is_parameter_property(self, node: Node) -> bool:
        return any(c.type in ("accessibility_modifier", "readonly") for c in node.children)

    def _define_parameter_property(self, node: Node, ident: Node, type_info: TypeInfo | None) -> None:
        method = self.enclosing_callable(self.scope_of(node))
        if method is None or method.kind is not SymbolKind.CONSTRUCTOR or method.parent_type_id is None:
            return
        owner = method.parent_type_id
        modifier = next((c for c in node.children if c.type == "accessibility_modifier"), None)
        self.add_definition(
            name=self.text(ident),
            kind=SymbolKind.PROPERTY,
            node=node,
            name_node=ident,
            scope_id=self._definitions[owner].body_scope_id,
            parent_type_id=owner,
            type_info=type_info,
            is_private=modifier is not None and self.text(modifier) != "public",
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.INTERFACE)
    def _on_interface(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        extends: list[str] = []
        for child in node.named_children:
            if child.type == "extends_type_clause":
                extends.extend(self._type_names(child))
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.INTERFACE,
            node=node,
            name_node=name_node,
            extends=extends,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.TYPE_ALIAS)
    def _on_type_alias(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        value = node.child_by_field_name("value")
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.TYPE_ALIAS,
            node=node,
            name_node=name_node,
            type_info=normalize_type(self.text(value), TypeSource.ANNOTATION) if value is not None else None,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.ENUM)
    def _on_enum(self, capture: Capture) -> None:
        node = capture.node
        name_node = self.field(node, "name")
        self.add_definition(
            name=self.text(name_node),
            kind=SymbolKind.ENUM,
            node=node,
            name_node=name_node,
        )

    @handles(SemanticCategory.DEFINITION, SemanticEntity.ENUM_MEMBER)
    def _on_enum_member(self, capture: Capture) -> None:
        node = capture.node
        scope_id = self.scope_of(node)
        owner = self.enclosing_type(scope_id)
        if owner is None:
            raise MalformedCapture("enum member outside enum body")
        holder = node.parent if node.parent is not None and node.parent.type == "enum_assignment" else node
        self.add_definition(
            name=self.text(node),
            kind=SymbolKind.ENUM_MEMBER,
            node=holder,
            name_node=node,
            scope_id=scope_id,
            parent_type_id=owner,
            is_static=True,
        )

    # =========================================================================
    # Assignments
    # =========================================================================

    @handles(SemanticCategory.ASSIGNMENT, SemanticEntity.PROPERTY)
    def _on_this_assignment(self, capture: Capture) -> None:
        node = capture.node
        left = self.field(node, "left")
        right = node.child_by_field_name("right")
        property_node = self.field(left, "property")
        name = self.text(property_node)
        owner = self.enclosing_type(self.scope_of(node))
        if owner is None or self.member(owner, name) is not None:
            self.add_member_reference(kind=ReferenceKind.WRITE, node=left)
            return
        self.claim_member_chain(left)
        if right is not None and right.type in _CALLABLE_VALUES:
            self.bind_callable(right)
            self.add_definition(
                name=name,
                kind=SymbolKind.METHOD,
                node=left,
                name_node=property_node,
                scope_id=self._definitions[owner].body_scope_id,
                body_node=right,
                parent_type_id=owner,
            )
            return
        self.add_definition(
            name=name,
            kind=SymbolKind.PROPERTY,
            node=left,
            name_node=property_node,
            scope_id=self._definitions[owner].body_scope_id,
            parent_type_id=owner,
            type_info=self._infer_type(right),
            is_private=name.startswith("#"),
        )

    # =========================================================================
    # Imports / exports
    # =========================================================================

    @handles(SemanticCategory.IMPORT, SemanticEntity.NAMED)
    def _on_import(self, capture: Capture) -> None:
        node = capture.node
        self.claim_region(node)
        source = _string_value(self.text(self.field(node, "source")))
        for clause in node.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier":
                    self.add_import(
                        name=self.text(child),
                        node=node,
                        import_path=source,
                        import_kind=ImportKind.DEFAULT,
                        original_name="default",
                        name_node=child,
                    )
                elif child.type == "namespace_import":
                    ident = next((c for c in child.named_children if c.type == "identifier"), None)
                    if ident is None:
                        raise MalformedCapture("namespace import without name")
                    self.add_import(
                        name=self.text(ident),
                        node=node,
                        import_path=source,
                        import_kind=ImportKind.NAMESPACE,
                        name_node=ident,
                    )
                elif child.type == "named_imports":
                    for spec in child.named_children:
                        if spec.type != "import_specifier":
                            continue
                        original = self.field(spec, "name")
                        alias = spec.child_by_field_name("alias")
                        bound = alias if alias is not None else original
                        original_name = _string_value(self.text(original))
                        self.add_import(
                            name=self.text(bound),
                            node=node,
                            import_path=source,
                            import_kind=(
                                ImportKind.DEFAULT if original_name == "default" else ImportKind.NAMED
                            ),
                            original_name=original_name,
                            name_node=bound,
                        )

    @handles(SemanticCategory.EXPORT, SemanticEntity.DECLARATION)
    def _on_export(self, capture: Capture) -> None:
        node = capture.node
        source_node = node.child_by_field_name("source")
        source = _string_value(self.text(source_node)) if source_node is not None else None
        is_default = any(c.type == "default" for c in node.children)

        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            if declaration.type in ("lexical_declaration", "variable_declaration"):
                for declarator in declaration.named_children:
                    if declarator.type == "variable_declarator":
                        self._expect_declarator_export(declarator)
            else:
                self.expect_export(declaration, is_default=is_default)
            return

        value = node.child_by_field_name("value")
        if value is not None:
            if value.type == "identifier":
                self.export_local("default", self.text(value), node, is_default=True)
            else:
                # Anonymous default export: the definition created for it is the target.
                self.expect_export(value, "default", is_default=True)
            return

        for child in node.named_children:
            if child.type == "export_clause":
                self.claim_region(child)
                for spec in child.named_children:
                    if spec.type != "export_specifier":
                        continue
                    local = _string_value(self.text(self.field(spec, "name")))
                    alias = spec.child_by_field_name("alias")
                    exported = _string_value(self.text(alias)) if alias is not None else local
                    if source is not None:
                        self.add_reexport(exported, source, local, spec)
                    else:
                        self.export_local(exported, local, spec, is_default=exported == "default")
                return
            if child.type == "namespace_export" and source is not None:
                ident = next((c for c in child.named_children if c.type in ("identifier", "string")), None)
                if ident is None:
                    raise MalformedCapture("namespace export without name")
                self.add_reexport(_string_value(self.text(ident)), source, None, child)
                return

        if source is not None:
            self.add_wildcard_reexport(source)

    def _expect_declarator_export(self, declarator: Node) -> None:
        name_node = declarator.child_by_field_name("name")
        if name_node is None:
            return
        if name_node.type in _PATTERN_NODES:
            for ident in self._pattern_identifiers(name_node):
                self.expect_export(ident)
            return
        self.expect_export(declarator)

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
    def _on_new(self, capture: Capture) -> None:
        constructor = self.field(capture.node, "constructor")
        name = self.text(constructor)
        self.add_reference(
            name=name,
            kind=ReferenceKind.CONSTRUCT,
            node=constructor,
            property_chain=(name,),
            type_info=TypeInfo(name, TypeSource.CONSTRUCTOR),
        )

    @handles(SemanticCategory.REFERENCE, SemanticEntity.CONSTRUCT, "member")
    def _on_member_new(self, capture: Capture) -> None:
        self.add_member_reference(kind=ReferenceKind.CONSTRUCT, node=self.field(capture.node, "constructor"))

    @handles(SemanticCategory.REFERENCE, SemanticEntity.MEMBER_ACCESS)
    def _on_member_access(self, capture: Capture) -> None:
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
        if parent is not None and parent.type in ("labeled_statement", "break_statement", "continue_statement"):
            return
        self.add_reference(
            name=self.text(node),
            kind=ReferenceKind.READ,
            node=node,
            **self.callback_metadata(node),
        )

    # =========================================================================
    # Modifiers / returns
    # =========================================================================

    @handles(SemanticCategory.MODIFIER, SemanticEntity.STATIC)
    def _on_static(self, capture: Capture) -> None:
        definition = self._modified_definition(capture.node)
        if definition is not None:
            definition.is_static = True

    @handles(SemanticCategory.MODIFIER, SemanticEntity.ASYNC)
    def _on_async(self, capture: Capture) -> None:
        definition = self._modified_definition(capture.node)
        if definition is not None:
            definition.is_async = True

    @handles(SemanticCategory.MODIFIER, SemanticEntity.VISIBILITY)
    def _on_visibility(self, capture: Capture) -> None:
        definition = self._modified_definition(capture.node)
        if definition is not None:
            definition.is_private = self.text(capture.node) in ("private", "protected")

    def _modified_definition(self, modifier: Node) -> Definition | None:
        parent = modifier.parent
        return self.definition_at(parent) if parent is not None else None

    @handles(SemanticCategory.RETURN, SemanticEntity.VALUE)
    def _on_return(self, capture: Capture) -> None:
        node = capture.node
        function = self.enclosing_callable(self.scope_of(node))
        if function is None or function.return_type is not None:
            return
        value = node.named_children[0] if node.named_children else None
        inferred = self._infer_type(value)
        if inferred is not None and inferred.source is TypeSource.CONSTRUCTOR:
            function.return_type = inferred.type_name

    # =========================================================================
    # Helpers
    # =========================================================================

    def _return_type(self, node: Node) -> str | None:
        annotation = node.child_by_field_name("return_type")
        if annotation is None:
            return None
        info = normalize_type(self.text(annotation), TypeSource.ANNOTATION)
        return info.type_name if info is not None else None

    def _type_names(self, clause: Node) -> list[str]:
        names: list[str] = []
        for child in clause.named_children:
            if child.type == "generic_type":
                base = child.child_by_field_name("name")
                names.append(self.text(base) if base is not None else self.text(child))
            elif child.type in ("type_identifier", "identifier", "nested_type_identifier", "member_expression"):
                names.append(self.text(child))
        return names

    def _infer_type(self, value: Node | None) -> TypeInfo | None:
        """Static type implied by an initializer (``new Foo()``, ``make()``, typed name)."""
        if value is None:
            return None
        if value.type == "new_expression":
            constructor = value.child_by_field_name("constructor")
            if constructor is not None:
                return TypeInfo(self.text(constructor), TypeSource.CONSTRUCTOR)
        if value.type == "call_expression":
            function = value.child_by_field_name("function")
            if function is not None and function.type in ("identifier", "member_expression"):
                return TypeInfo(self.text(function), TypeSource.CALL_RETURN)
        if value.type == "identifier":
            name = self.text(value)
            scope_id: ScopeId | None = self.scope_of(value)
            while scope_id is not None:
                candidates = self.local_names(scope_id, name)
                if candidates:
                    return candidates[-1].type_info
                scope_id = self.scope(scope_id).parent_id
        if value.type in ("await_expression", "parenthesized_expression", "as_expression"):
            inner = value.named_children[0] if value.named_children else None
            return self._infer_type(inner)
        return None

    def _require_specifier(self, value: Node | None) -> str | None:
        if value is None or value.type != "call_expression":
            return None
        function = value.child_by_field_name("function")
        arguments = value.child_by_field_name("arguments")
        if function is None or arguments is None or self.text(function) != "require":
            return None
        first = arguments.named_children[0] if arguments.named_children else None
        if first is None or first.type != "string":
            return None
        return _string_value(self.text(first))

    def _pattern_identifiers(self, node: Node) -> list[Node]:
        out: list[Node] = []
        for child in node.named_children:
            if child.type in ("identifier", "shorthand_property_identifier_pattern"):
                out.append(child)
            elif child.type == "pair_pattern":
                value = child.child_by_field_name("value")
                if value is not None:
                    out.extend(self._pattern_identifiers_of(value))
            elif child.type in ("assignment_pattern", "object_assignment_pattern"):
                left = child.child_by_field_name("left")
                if left is not None:
                    out.extend(self._pattern_identifiers_of(left))
            elif child.type in _PATTERN_NODES or child.type == "rest_pattern":
                out.extend(self._pattern_identifiers(child))
        return out

    def _pattern_identifiers_of(self, node: Node) -> list[Node]:
        if node.type in ("identifier", "shorthand_property_identifier_pattern"):
            return [node]
        return self._pattern_identifiers(node)

    # =========================================================================
    # Language hooks
    # =========================================================================

    def member_chain(self, node: Node) -> tuple[str, ...]:
        parts: list[str] = []
        current = node
        while current.type == "member_expression":
            prop = current.child_by_field_name("property")
            obj = current.child_by_field_name("object")
            if prop is None or obj is None:
                return ()
            parts.append(self.text(prop))
            current = obj
        if current.type == "identifier":
            parts.append(self.text(current))
        elif current.type in ("this", "super"):
            parts.append(current.type)
        elif current.type in _CALL_ROOTS:
            callee = current.child_by_field_name(_CALL_ROOTS[current.type])
            parts.append(call_result_root(self.text(callee)) if callee is not None else "")
        else:
            parts.append("")
        return tuple(reversed(parts))

    def member_name_node(self, node: Node) -> Node | None:
        return node.child_by_field_name("property")

    def member_object_node(self, node: Node) -> Node | None:
        return node.child_by_field_name("object")

    def claim_member_chain(self, node: Node) -> None:
        current: Node | None = node
        while current is not None and current.type == "member_expression":
            self.claim(current)
            current = current.child_by_field_name("object")

    def argument_site(self, node: Node) -> tuple[Node, int] | None:
        parent = node.parent
        if parent is None or parent.type != "arguments":
            return None
        call = parent.parent
        if call is None:
            return None
        if call.type == "call_expression":
            target = call.child_by_field_name("function")
        elif call.type == "new_expression":
            target = call.child_by_field_name("constructor")
        else:
            return None
        if target is None:
            return None
        name_node = target.child_by_field_name("property") if target.type == "member_expression" else target
        if name_node is None:
            return None
        index = next((i for i, c in enumerate(parent.named_children) if c == node), 0)
        return name_node, index
