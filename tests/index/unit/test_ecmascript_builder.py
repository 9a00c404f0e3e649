"""Unit tests for the JavaScript / TypeScript semantic index builder.

Tests cover:
- Hoisting flags of declarations, bindings and imports
- Arrow/function expressions named by their binding, anonymous callbacks
- Classes: methods, constructors, fields, ``this.x`` properties,
  TypeScript parameter properties and modifiers
- TypeScript interfaces, type aliases and enums
- Imports: default, named, aliased, namespace, ``require``
- Exports: declarations, clauses, defaults, re-exports, ``export *``
- References: calls, ``new``, member chains, writes, callbacks
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from codetrace.index.models import (
    ANONYMOUS,
    ImportDefinition,
    ImportKind,
    ReferenceKind,
    ScopeKind,
    SemanticIndex,
    SymbolKind,
    TypeSource,
)

Indexer = Callable[..., SemanticIndex]


def _one(index: SemanticIndex, name: str, kind: SymbolKind | None = None):
    found = [d for d in index.definitions_named(name) if kind is None or d.kind is kind]
    assert len(found) == 1, f"expected one {name!r}, got {found}"
    return found[0]


def _refs(index: SemanticIndex, name: str, kind: ReferenceKind | None = None):
    return [r for r in index.references if r.name == name and (kind is None or r.kind is kind)]


def _export(index: SemanticIndex, name: str):
    found = [e for e in index.exports if e.export_name == name]
    assert len(found) == 1, f"expected one export {name!r}, got {found}"
    return found[0]


# -----------------------------------------------------------------------------
# Declarations
# -----------------------------------------------------------------------------


class TestDeclarations:
    """Functions, variables and hoisting."""

    def test_function_declaration_hoisted(self, index_source: Indexer) -> None:
        index = index_source("a.js", "function later() { return 1; }\n")
        later = _one(index, "later")
        assert later.kind is SymbolKind.FUNCTION
        assert later.hoisted is True
        assert later.body_scope_id is not None
        assert index.scopes[later.body_scope_id].kind is ScopeKind.FUNCTION

    def test_let_and_const_not_hoisted(self, index_source: Indexer) -> None:
        index = index_source("a.js", "let a = 1;\nconst b = 2;\nvar c = 3;\n")
        for name in ("a", "b", "c"):
            definition = _one(index, name)
            assert definition.kind is SymbolKind.VARIABLE
            assert definition.hoisted is False

    def test_var_belongs_to_function_scope(self, index_source: Indexer) -> None:
        """var inside a block binds in the enclosing function."""
        index = index_source("a.js", "function f() {\n  if (x) {\n    var v = 1;\n  }\n}\n")
        f = _one(index, "f")
        assert _one(index, "v").scope_id == f.body_scope_id

    def test_let_belongs_to_block(self, index_source: Indexer) -> None:
        index = index_source("a.js", "function f() {\n  if (x) {\n    let v = 1;\n  }\n}\n")
        v = _one(index, "v")
        assert index.scopes[v.scope_id].kind is ScopeKind.BLOCK

    def test_arrow_named_by_binding(self, index_source: Indexer) -> None:
        """const f = () => ... is a function called f."""
        index = index_source("a.js", "const double = (x) => x * 2;\n")
        double = _one(index, "double")
        assert double.kind is SymbolKind.FUNCTION
        assert double.hoisted is False
        assert double.body_scope_id is not None
        assert not index.definitions_named(ANONYMOUS)
        assert _one(index, "x").scope_id == double.body_scope_id

    def test_named_function_expression_scoped_to_itself(self, index_source: Indexer) -> None:
        index = index_source("a.js", "run(function tick() { tick(); });\n")
        tick = _one(index, "tick")
        assert tick.scope_id == tick.body_scope_id
        assert tick.callback is not None
        assert tick.callback.callee_name == "run"

    def test_anonymous_callback(self, index_source: Indexer) -> None:
        index = index_source("a.js", "items.forEach((x) => use(x));\n")
        (arrow,) = index.definitions_named(ANONYMOUS)
        assert arrow.kind is SymbolKind.FUNCTION
        assert arrow.callback.callee_name == "forEach"
        assert arrow.callback.argument_index == 0
        (call,) = _refs(index, "forEach", ReferenceKind.CALL)
        assert arrow.callback.call_location == call.location

    def test_destructuring(self, index_source: Indexer) -> None:
        index = index_source("a.js", "const { a, b: renamed, ...rest } = obj;\nconst [x, y] = pair;\n")
        for name in ("a", "renamed", "rest", "x", "y"):
            assert _one(index, name).kind is SymbolKind.VARIABLE

    def test_for_of_binding(self, index_source: Indexer) -> None:
        index = index_source("a.js", "for (const item of items) {\n  use(item);\n}\n")
        assert _one(index, "item").kind is SymbolKind.VARIABLE

    def test_catch_parameter(self, index_source: Indexer) -> None:
        index = index_source("a.js", "try { f(); } catch (err) { log(err); }\n")
        assert _one(index, "err").kind is SymbolKind.PARAMETER

    def test_new_infers_type(self, index_source: Indexer) -> None:
        index = index_source("a.js", "const repo = new Repo();\n")
        info = _one(index, "repo").type_info
        assert info.type_name == "Repo"
        assert info.source is TypeSource.CONSTRUCTOR

    def test_async_function(self, index_source: Indexer) -> None:
        index = index_source("a.js", "async function load() {}\n")
        assert _one(index, "load").is_async is True


# -----------------------------------------------------------------------------
# Classes
# -----------------------------------------------------------------------------


class TestClasses:
    """Class members."""

    def test_methods_and_constructor(self, index_source: Indexer) -> None:
        index = index_source(
            "a.js",
            """
            class Repo extends Base {
              constructor() {
                this.items = [];
              }
              save() {}
              static create() { return new Repo(); }
              #secret() {}
            }
            """,
        )
        repo = _one(index, "Repo")
        assert repo.kind is SymbolKind.CLASS
        assert repo.hoisted is True
        assert repo.extends == ["Base"]

        constructor = _one(index, "constructor")
        assert constructor.kind is SymbolKind.CONSTRUCTOR
        assert index.scopes[constructor.body_scope_id].kind is ScopeKind.CONSTRUCTOR
        save = _one(index, "save")
        assert save.kind is SymbolKind.METHOD
        assert save.parent_type_id == repo.symbol_id
        assert _one(index, "create").is_static is True
        assert _one(index, "create").return_type == "Repo"
        assert _one(index, "#secret").is_private is True

    def test_this_assignment_creates_property(self, index_source: Indexer) -> None:
        index = index_source(
            "a.js",
            """
            class Service {
              constructor() {
                this.repo = new Repo();
              }
              reset() {
                this.repo = null;
              }
            }
            """,
        )
        prop = _one(index, "repo", SymbolKind.PROPERTY)
        service = _one(index, "Service")
        assert prop.parent_type_id == service.symbol_id
        assert prop.scope_id == service.body_scope_id
        assert prop.type_info.type_name == "Repo"
        (write,) = _refs(index, "repo", ReferenceKind.WRITE)
        assert write.property_chain == ("this", "repo")

    def test_field_definitions(self, index_source: Indexer) -> None:
        index = index_source(
            "a.ts",
            """
            class Counter {
              private count: number = 0;
              handler = () => this.count;
            }
            """,
        )
        count = _one(index, "count", SymbolKind.PROPERTY)
        assert count.type_info.type_name == "number"
        assert count.is_private is True
        assert _one(index, "handler").kind is SymbolKind.METHOD

    def test_parameter_properties(self, index_source: Indexer) -> None:
        """constructor(private repo: Repo) declares a member."""
        index = index_source(
            "a.ts",
            """
            class Service {
              constructor(private repo: Repo, name: string) {}
            }
            """,
        )
        service = _one(index, "Service")
        prop = _one(index, "repo", SymbolKind.PROPERTY)
        assert prop.parent_type_id == service.symbol_id
        assert prop.type_info.type_name == "Repo"
        assert prop.is_private is True
        assert _one(index, "repo", SymbolKind.PARAMETER).type_info.type_name == "Repo"
        assert not [d for d in index.definitions_named("name") if d.kind is SymbolKind.PROPERTY]

    def test_implements_clause(self, index_source: Indexer) -> None:
        index = index_source("a.ts", "class Sql implements Store, Closeable<Sql> {}\n")
        assert _one(index, "Sql").implements == ["Store", "Closeable"]

    def test_object_literal_method_not_a_member(self, index_source: Indexer) -> None:
        index = index_source("a.js", "const api = {\n  fetch() { return 1; },\n};\n")
        fetch = _one(index, "fetch")
        assert fetch.kind is SymbolKind.FUNCTION
        assert fetch.parent_type_id is None


# -----------------------------------------------------------------------------
# TypeScript declarations
# -----------------------------------------------------------------------------


class TestTypeScriptDeclarations:
    """Interfaces, aliases and enums."""

    def test_interface(self, index_source: Indexer) -> None:
        index = index_source(
            "a.ts",
            """
            interface Store extends Base {
              save(item: Item): void;
              size: number;
            }
            """,
        )
        store = _one(index, "Store")
        assert store.kind is SymbolKind.INTERFACE
        assert store.hoisted is True
        assert store.extends == ["Base"]
        assert _one(index, "save").parent_type_id == store.symbol_id
        assert _one(index, "size").kind is SymbolKind.PROPERTY

    def test_type_alias(self, index_source: Indexer) -> None:
        index = index_source("a.ts", "type Handler = Repo;\n")
        alias = _one(index, "Handler")
        assert alias.kind is SymbolKind.TYPE_ALIAS
        assert alias.hoisted is True
        assert alias.type_info.type_name == "Repo"

    def test_enum(self, index_source: Indexer) -> None:
        index = index_source("a.ts", "enum Color { Red, Green = 2 }\n")
        color = _one(index, "Color")
        assert color.kind is SymbolKind.ENUM
        members = [d for d in index.definitions.values() if d.kind is SymbolKind.ENUM_MEMBER]
        assert sorted(m.name for m in members) == ["Green", "Red"]
        assert {m.parent_type_id for m in members} == {color.symbol_id}

    def test_type_references(self, index_source: Indexer) -> None:
        index = index_source("a.ts", "function f(r: Repo): Repo { return r; }\n")
        assert len(_refs(index, "Repo", ReferenceKind.TYPE)) == 2
        assert _one(index, "f").return_type == "Repo"
        assert _one(index, "r").type_info.type_name == "Repo"


# -----------------------------------------------------------------------------
# Imports
# -----------------------------------------------------------------------------


class TestImports:
    """ES and CommonJS imports."""

    def test_import_forms(self, index_source: Indexer) -> None:
        index = index_source(
            "a.js",
            'import React, { useState as use, Component } from "react";\nimport * as path from "node:path";\n',
        )
        react = _one(index, "React")
        assert isinstance(react, ImportDefinition)
        assert react.import_kind is ImportKind.DEFAULT
        assert react.import_path == "react"
        use = _one(index, "use")
        assert use.import_kind is ImportKind.NAMED
        assert use.original_name == "useState"
        assert _one(index, "Component").original_name == "Component"
        ns = _one(index, "path")
        assert ns.import_kind is ImportKind.NAMESPACE
        assert ns.import_path == "node:path"

    def test_imports_hoisted(self, index_source: Indexer) -> None:
        index = index_source("a.js", "import { add } from './math';\n")
        assert _one(index, "add").hoisted is True

    def test_require(self, index_source: Indexer) -> None:
        index = index_source("a.js", "const fs = require('fs');\n")
        fs = _one(index, "fs")
        assert isinstance(fs, ImportDefinition)
        assert fs.import_kind is ImportKind.NAMESPACE
        assert fs.import_path == "fs"

    def test_import_names_not_references(self, index_source: Indexer) -> None:
        index = index_source("a.js", "import { add } from './math';\n")
        assert index.references == []


# -----------------------------------------------------------------------------
# Exports
# -----------------------------------------------------------------------------


class TestExports:
    """Export statements."""

    def test_export_declarations(self, index_source: Indexer) -> None:
        index = index_source(
            "a.ts",
            """
            export function add(a: number, b: number): number { return a + b; }
            export const PI = 3.14, E = 2.71;
            export class Calc {}
            function hidden() {}
            """,
        )
        for name in ("add", "PI", "E", "Calc"):
            assert _one(index, name).is_exported is True
            assert _export(index, name).symbol_id == _one(index, name).symbol_id
        assert _one(index, "hidden").is_exported is False

    def test_export_clause(self, index_source: Indexer) -> None:
        index = index_source("a.js", "function helper() {}\nconst x = 1;\nexport { helper, x as value };\n")
        assert _export(index, "helper").symbol_id == _one(index, "helper").symbol_id
        assert _export(index, "value").symbol_id == _one(index, "x").symbol_id
        assert _one(index, "x").is_exported is True

    def test_default_exports(self, index_source: Indexer) -> None:
        index = index_source("a.js", "export default function main() {}\n")
        entry = _export(index, "default")
        assert entry.is_default is True
        assert entry.symbol_id == _one(index, "main").symbol_id

    def test_default_export_of_identifier(self, index_source: Indexer) -> None:
        index = index_source("a.js", "const app = 1;\nexport default app;\n")
        assert _export(index, "default").symbol_id == _one(index, "app").symbol_id

    def test_reexports(self, index_source: Indexer) -> None:
        index = index_source(
            "a.js",
            'export { X, Y as Z } from "./b";\nexport * from "./c";\nexport * as utils from "./d";\n',
        )
        x = _export(index, "X")
        assert x.symbol_id is None
        assert x.reexport.source == "./b"
        assert x.reexport.imported_name == "X"
        assert _export(index, "Z").reexport.imported_name == "Y"
        assert index.wildcard_reexports == ["./c"]
        utils = _export(index, "utils")
        assert utils.reexport.source == "./d"
        assert utils.reexport.imported_name is None


# -----------------------------------------------------------------------------
# References
# -----------------------------------------------------------------------------


class TestReferences:
    """Use sites."""

    def test_call_and_new(self, index_source: Indexer) -> None:
        index = index_source("a.js", "add(1, 2);\nconst r = new Repo();\n")
        (call,) = _refs(index, "add", ReferenceKind.CALL)
        assert call.location.start == (1, 0)
        (construct,) = _refs(index, "Repo", ReferenceKind.CONSTRUCT)
        assert construct.location.start == (2, 14)

    def test_member_call_chain(self, index_source: Indexer) -> None:
        index = index_source("a.js", "this.repo.save(item);\n")
        (call,) = _refs(index, "save", ReferenceKind.CALL)
        assert call.property_chain == ("this", "repo", "save")
        assert call.location.start == (1, 10)
        assert not _refs(index, "repo", ReferenceKind.MEMBER_ACCESS)

    def test_dynamic_receiver(self, index_source: Indexer) -> None:
        """Receivers that are neither names nor calls keep an empty root."""
        index = index_source("a.js", "items[0].run();\n")
        (call,) = _refs(index, "run", ReferenceKind.CALL)
        assert call.property_chain == ("", "run")

    @pytest.mark.parametrize(
        ("source", "chain"),
        [
            ("make().run();\n", ("make()", "run")),
            ("new Repo().save();\n", ("Repo()", "save")),
            ("api.client().get();\n", ("api.client()", "get")),
        ],
    )
    def test_call_result_receiver(self, index_source: Indexer, source: str, chain: tuple[str, ...]) -> None:
        index = index_source("a.js", source)
        (call,) = _refs(index, chain[-1], ReferenceKind.CALL)
        assert call.property_chain == chain

    def test_writes(self, index_source: Indexer) -> None:
        index = index_source("a.js", "let n = 0;\nn = 1;\nn += 2;\nn++;\n")
        writes = _refs(index, "n", ReferenceKind.WRITE)
        assert [w.location.start_line for w in writes] == [2, 3, 4]

    def test_named_callback_argument(self, index_source: Indexer) -> None:
        index = index_source("a.js", "function cb() {}\nitems.map(cb);\n")
        (read,) = _refs(index, "cb", ReferenceKind.READ)
        (call,) = _refs(index, "map", ReferenceKind.CALL)
        assert read.argument_of == call.location
        assert read.argument_index == 0

    def test_property_names_are_not_reads(self, index_source: Indexer) -> None:
        index = index_source("a.js", "console.log(value);\n")
        assert not _refs(index, "log", ReferenceKind.READ)
        assert [r.kind for r in _refs(index, "value")] == [ReferenceKind.READ]


class TestTsx:
    """TSX uses the TypeScript builder with the TSX grammar."""

    def test_component(self, index_source: Indexer) -> None:
        index = index_source("App.tsx", "export function App(): JSX.Element {\n  return <div>{title()}</div>;\n}\n")
        assert index.language == "tsx"
        assert _one(index, "App").is_exported is True
        assert _refs(index, "title", ReferenceKind.CALL)
