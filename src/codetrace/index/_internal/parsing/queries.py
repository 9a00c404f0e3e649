"""Tree-sitter queries driving semantic index construction.

Each pattern tags a syntax node with a capture name of the form
``category.entity[.qualifier]``:

  @scope.*       – node opens a lexical scope
  @definition.*  – node declares a symbol
  @reference.*   – node uses a name (call, read, write, type, ...)
  @import.*      – import statement, parsed by the builder
  @export.*      – export statement or ``__all__`` declaration
  @assignment.*  – assignment whose target may declare a member
  @return.*      – return statement (return-type inference)
  @decorator.*   – decorator attached to the following definition
  @modifier.*    – keyword modifier of the enclosing definition

Patterns are kept one per entry so that a pattern the installed grammar
rejects only disables itself. Capture names outside the vocabulary are
ignored by the builders.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

PYTHON_QUERIES: tuple[str, ...] = (
    # scopes
    "(function_definition) @scope.function",
    "(class_definition) @scope.class",
    "(lambda) @scope.function",
    "(list_comprehension) @scope.block",
    "(set_comprehension) @scope.block",
    "(dictionary_comprehension) @scope.block",
    "(generator_expression) @scope.block",
    # definitions
    "(function_definition name: (identifier)) @definition.function",
    "(class_definition name: (identifier)) @definition.class",
    "(lambda) @definition.function.anonymous",
    "(parameters (identifier) @definition.parameter)",
    "(lambda_parameters (identifier) @definition.parameter)",
    "(default_parameter name: (identifier) @definition.parameter)",
    "(typed_parameter) @definition.parameter",
    "(typed_default_parameter) @definition.parameter",
    "(parameters (list_splat_pattern (identifier) @definition.parameter))",
    "(parameters (dictionary_splat_pattern (identifier) @definition.parameter))",
    "(lambda_parameters (list_splat_pattern (identifier) @definition.parameter))",
    "(for_statement left: (_) @definition.variable)",
    "(for_in_clause left: (_) @definition.variable)",
    "(as_pattern alias: (as_pattern_target) @definition.variable)",
    # assignments
    "(assignment) @assignment.variable",
    "(augmented_assignment left: (identifier) @reference.write)",
    # imports / exports
    "(import_statement) @import.namespace",
    "(import_from_statement) @import.named",
    "(module (expression_statement (assignment) @export.declaration))",
    # references
    "(call function: (identifier)) @reference.call",
    "(call function: (attribute)) @reference.call.member",
    "(attribute) @reference.member_access",
    "(type (identifier) @reference.type)",
    "(generic_type (identifier) @reference.type)",
    "(identifier) @reference.read",
    # decorators / modifiers / returns
    "(decorator) @decorator.declaration",
    '(function_definition "async" @modifier.async)',
    "(return_statement) @return.value",
)


# ---------------------------------------------------------------------------
# JavaScript / TypeScript shared
# ---------------------------------------------------------------------------

_ECMASCRIPT_COMMON: tuple[str, ...] = (
    # scopes
    "(function_declaration) @scope.function",
    "(generator_function_declaration) @scope.function",
    "(function_expression) @scope.function",
    "(arrow_function) @scope.function",
    "(method_definition) @scope.method",
    "(class_declaration) @scope.class",
    "(statement_block) @scope.block",
    "(for_statement) @scope.block",
    "(for_in_statement) @scope.block",
    "(catch_clause) @scope.block",
    # definitions
    "(function_declaration name: (identifier)) @definition.function",
    "(generator_function_declaration name: (identifier)) @definition.function",
    "(method_definition) @definition.method",
    "(variable_declarator) @definition.variable",
    "(arrow_function parameter: (identifier) @definition.parameter)",
    "(catch_clause parameter: (identifier) @definition.parameter)",
    "(for_in_statement left: (identifier) @definition.variable)",
    "(arrow_function) @definition.function.anonymous",
    "(function_expression) @definition.function.anonymous",
    # assignments
    "(assignment_expression left: (member_expression object: (this))) @assignment.property",
    # imports / exports
    "(import_statement) @import.named",
    "(export_statement) @export.declaration",
    # references
    "(call_expression function: (identifier)) @reference.call",
    "(call_expression function: (member_expression)) @reference.call.member",
    "(new_expression constructor: (identifier)) @reference.construct",
    "(new_expression constructor: (member_expression)) @reference.construct.member",
    "(member_expression) @reference.member_access",
    "(assignment_expression left: (identifier) @reference.write)",
    "(augmented_assignment_expression left: (identifier) @reference.write)",
    "(update_expression argument: (identifier) @reference.write)",
    "(identifier) @reference.read",
    "(shorthand_property_identifier) @reference.read",
    # modifiers / returns
    '(method_definition "static" @modifier.static)',
    '(method_definition "async" @modifier.async)',
    '(function_declaration "async" @modifier.async)',
    "(return_statement) @return.value",
)

JAVASCRIPT_QUERIES: tuple[str, ...] = (
    *_ECMASCRIPT_COMMON,
    "(class_declaration name: (identifier)) @definition.class",
    "(field_definition) @definition.property",
    "(formal_parameters (identifier) @definition.parameter)",
    "(formal_parameters (assignment_pattern left: (identifier) @definition.parameter))",
    "(formal_parameters (rest_pattern (identifier) @definition.parameter))",
    "(formal_parameters (object_pattern) @definition.parameter)",
    "(formal_parameters (array_pattern) @definition.parameter)",
)

TYPESCRIPT_QUERIES: tuple[str, ...] = (
    *_ECMASCRIPT_COMMON,
    # scopes
    "(abstract_class_declaration) @scope.class",
    "(interface_declaration) @scope.class",
    "(enum_declaration) @scope.class",
    # definitions
    "(class_declaration name: (type_identifier)) @definition.class",
    "(abstract_class_declaration name: (type_identifier)) @definition.class",
    "(interface_declaration) @definition.interface",
    "(type_alias_declaration) @definition.type_alias",
    "(enum_declaration) @definition.enum",
    "(enum_body name: (property_identifier) @definition.enum_member)",
    "(enum_assignment name: (property_identifier) @definition.enum_member)",
    "(public_field_definition) @definition.property",
    "(property_signature) @definition.property",
    "(method_signature) @definition.method",
    "(abstract_method_signature) @definition.method",
    "(required_parameter) @definition.parameter",
    "(optional_parameter) @definition.parameter",
    # references
    "(type_identifier) @reference.type",
    # modifiers
    "(method_definition (accessibility_modifier) @modifier.visibility)",
    "(public_field_definition (accessibility_modifier) @modifier.visibility)",
)


# ---------------------------------------------------------------------------
# Rust
# ---------------------------------------------------------------------------

RUST_QUERIES: tuple[str, ...] = (
    # scopes
    "(function_item) @scope.function",
    "(closure_expression) @scope.function",
    "(struct_item) @scope.class",
    "(union_item) @scope.class",
    "(enum_item) @scope.class",
    "(trait_item) @scope.class",
    "(impl_item) @scope.class",
    "(block) @scope.block",
    "(for_expression) @scope.block",
    "(mod_item body: (declaration_list)) @scope.block",
    # definitions
    "(function_item) @definition.function",
    "(function_signature_item) @definition.method",
    "(struct_item) @definition.class",
    "(union_item) @definition.class",
    "(enum_item) @definition.enum",
    "(trait_item) @definition.interface",
    "(impl_item) @definition.class.impl",
    "(type_item) @definition.type_alias",
    "(field_declaration) @definition.property",
    "(enum_variant name: (identifier) @definition.enum_member)",
    "(const_item) @definition.variable.item",
    "(static_item) @definition.variable.item",
    "(let_declaration) @definition.variable",
    "(for_expression pattern: (_) @definition.variable.pattern)",
    "(parameters (parameter) @definition.parameter)",
    "(parameters (self_parameter) @definition.parameter)",
    "(closure_parameters (identifier) @definition.parameter)",
    "(closure_parameters (parameter) @definition.parameter)",
    "(closure_expression) @definition.function.anonymous",
    # imports / exports
    "(use_declaration) @import.named",
    "(mod_item) @import.namespace",
    # references
    "(call_expression function: (identifier)) @reference.call",
    "(call_expression function: (scoped_identifier)) @reference.call.member",
    "(call_expression function: (field_expression)) @reference.call.member",
    "(struct_expression name: (type_identifier)) @reference.construct",
    "(field_expression) @reference.member_access",
    "(scoped_identifier) @reference.member_access",
    "(scoped_type_identifier) @reference.type.member",
    "(assignment_expression left: (identifier) @reference.write)",
    "(compound_assignment_expr left: (identifier) @reference.write)",
    "(type_identifier) @reference.type",
    "(identifier) @reference.read",
    # modifiers
    '(function_modifiers "async" @modifier.async)',
)
