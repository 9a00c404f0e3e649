"""Unit tests for call graph construction.

Tests cover:
- Caller attribution (callables and module top level)
- Constructor targets for class calls
- Callbacks: external receivers and in-project receivers
- Entry-point rules: visibility, callers, self-recursion, hooks
- Unresolved-edge filtering
- Per-file call data invalidation
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

import pytest

from codetrace.config.models import CallGraphConfig
from codetrace.index._internal.indexing.graph import CallGraphBuilder
from codetrace.index._internal.indexing.module_mapping import ModuleMapper
from codetrace.index._internal.indexing.resolver import Resolver
from codetrace.index._internal.registry import ProjectRegistries
from codetrace.index.models import (
    CallGraph,
    ImportDefinition,
    ResolutionStatus,
    SemanticIndex,
    SymbolKind,
)

Indexer = Callable[..., SemanticIndex]


@dataclass
class GraphWorld:
    registries: ProjectRegistries
    builder: CallGraphBuilder
    indices: dict[str, SemanticIndex]

    def symbol(self, path: str, name: str) -> str:
        (definition,) = [
            d for d in self.indices[path].definitions_named(name) if not isinstance(d, ImportDefinition)
        ]
        return definition.symbol_id

    def anonymous(self, path: str) -> list[str]:
        return [d.symbol_id for d in self.indices[path].definitions.values() if d.is_anonymous and d.is_callable]

    def build(self, **kwargs) -> CallGraph:
        return self.builder.build(**kwargs)


@pytest.fixture
def graph_world(index_source: Indexer) -> Callable[..., GraphWorld]:
    def _build(files: Mapping[str, str], config: CallGraphConfig | None = None) -> GraphWorld:
        registries = ProjectRegistries()
        mapper = ModuleMapper()
        indices: dict[str, SemanticIndex] = {}
        for path, source in files.items():
            index = index_source(path, source)
            registries.update_file(path, index)
            mapper.add_file(path)
            indices[path] = index
        resolver = Resolver(registries, mapper)
        return GraphWorld(registries, CallGraphBuilder(registries, resolver, config), indices)

    return _build


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


class TestEdges:
    """Who calls whom."""

    def test_cross_file_call_from_top_level(self, graph_world) -> None:
        w = graph_world(
            {
                "math.ts": "export function add(a: number, b: number): number { return a + b; }\n",
                "app.ts": 'import { add } from "./math";\nadd(1, 2);\n',
            }
        )
        graph = w.build()
        add = w.symbol("math.ts", "add")
        assert graph.nodes[add].callers == {"module:app.ts"}
        assert graph.callers[add] == frozenset({"module:app.ts"})
        (edge,) = graph.top_level_calls["app.ts"]
        assert edge.callee_id == add
        assert edge.status is ResolutionStatus.RESOLVED

    def test_call_inside_function(self, graph_world) -> None:
        w = graph_world({"a.js": "function helper() {}\nexport function main() {\n  helper();\n}\n"})
        graph = w.build()
        main = w.symbol("a.js", "main")
        helper = w.symbol("a.js", "helper")
        assert graph.callees_of(main) == [helper]
        assert graph.nodes[helper].callers == {main}
        assert "a.js" not in graph.top_level_calls

    def test_class_call_targets_constructor(self, graph_world) -> None:
        w = graph_world({"a.js": "class Repo {\n  constructor() {}\n}\nconst r = new Repo();\n"})
        graph = w.build()
        constructor = w.symbol("a.js", "constructor")
        (edge,) = graph.top_level_calls["a.js"]
        assert edge.callee_id == constructor
        assert graph.nodes[constructor].definition.kind is SymbolKind.CONSTRUCTOR

    def test_python_class_call_targets_init(self, graph_world) -> None:
        w = graph_world({"a.py": "class Repo:\n    def __init__(self):\n        pass\n\nr = Repo()\n"})
        graph = w.build()
        (edge,) = graph.top_level_calls["a.py"]
        assert edge.callee_id == w.symbol("a.py", "__init__")

    def test_class_without_constructor_targets_class(self, graph_world) -> None:
        w = graph_world({"a.js": "class Plain {}\nnew Plain();\n"})
        graph = w.build()
        (edge,) = graph.top_level_calls["a.js"]
        assert edge.callee_id == w.symbol("a.js", "Plain")

    def test_unresolved_edges_can_be_dropped(self, graph_world) -> None:
        w = graph_world({"a.js": "export function main() {\n  missing();\n}\n"})
        main = w.symbol("a.js", "main")
        with_gaps = w.build()
        assert [e.status for e in with_gaps.nodes[main].outgoing] == [ResolutionStatus.UNRESOLVED]
        assert with_gaps.nodes[main].unresolved_calls
        without_gaps = w.build(include_unresolved=False)
        assert without_gaps.nodes[main].outgoing == []

    def test_builtin_call_is_external(self, graph_world) -> None:
        w = graph_world({"a.py": "def main():\n    print(1)\n"})
        graph = w.build()
        (edge,) = graph.nodes[w.symbol("a.py", "main")].outgoing
        assert edge.status is ResolutionStatus.EXTERNAL
        assert edge.callee_id is None


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------


class TestCallbacks:
    """Callables passed as arguments."""

    def test_callback_to_external_receiver(self, graph_world) -> None:
        w = graph_world(
            {"a.js": "export function main(items) {\n  items.forEach((x) => work(x));\n}\nfunction work(x) {}\n"}
        )
        graph = w.build()
        (arrow,) = w.anonymous("a.js")
        node = graph.nodes[arrow]
        assert node.is_callback
        assert node.callback_external
        assert arrow not in graph.entry_points
        assert graph.nodes[w.symbol("a.js", "work")].callers == {arrow}

    def test_callback_to_project_receiver(self, graph_world) -> None:
        w = graph_world({"a.js": "function run(fn) {\n  fn();\n}\nrun(() => work());\nfunction work() {}\n"})
        graph = w.build()
        run = w.symbol("a.js", "run")
        (arrow,) = w.anonymous("a.js")
        via_callback = [e for e in graph.nodes[run].outgoing if e.via_callback]
        assert [e.callee_id for e in via_callback] == [arrow]
        assert graph.nodes[arrow].callers == {run}
        assert graph.nodes[arrow].callback_external is False

    def test_named_callback_to_external_receiver(self, graph_world) -> None:
        w = graph_world(
            {"a.js": "function transform(x) {}\nexport function main(items) {\n  return items.map(transform);\n}\n"}
        )
        graph = w.build()
        node = graph.nodes[w.symbol("a.js", "transform")]
        assert node.is_callback
        assert node.callback_external


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


class TestEntryPoints:
    """Externally visible callables without in-project callers."""

    def test_exported_uncalled_function(self, graph_world) -> None:
        w = graph_world({"a.js": "export function main() {}\n"})
        assert w.build().entry_points == (w.symbol("a.js", "main"),)

    def test_called_function_is_not_entry(self, graph_world) -> None:
        w = graph_world({"a.js": "export function helper() {}\nhelper();\n"})
        assert w.build().entry_points == ()

    def test_private_uncalled_function_is_not_entry(self, graph_world) -> None:
        w = graph_world({"a.js": "function unused() {}\n"})
        assert w.build().entry_points == ()

    def test_self_recursion_does_not_count(self, graph_world) -> None:
        w = graph_world({"a.js": "export function loop(n) {\n  if (n) loop(n - 1);\n}\n"})
        graph = w.build()
        loop = w.symbol("a.js", "loop")
        assert graph.nodes[loop].callers == {loop}
        assert graph.entry_points == (loop,)

    def test_public_method_of_exported_class(self, graph_world) -> None:
        w = graph_world({"a.js": "export class Service {\n  run() {}\n  #hidden() {}\n}\n"})
        graph = w.build()
        assert w.symbol("a.js", "run") in graph.entry_points
        assert w.symbol("a.js", "#hidden") not in graph.entry_points

    def test_method_of_unexported_class(self, graph_world) -> None:
        w = graph_world({"a.js": "class Service {\n  run() {}\n}\n"})
        assert w.build().entry_points == ()

    def test_lifecycle_hook(self, graph_world) -> None:
        w = graph_world({"a.js": "class Widget {\n  connectedCallback() {}\n}\n"})
        assert w.build().entry_points == (w.symbol("a.js", "connectedCallback"),)

    def test_configured_hook(self, graph_world) -> None:
        w = graph_world(
            {"a.js": "function setup() {}\n"},
            config=CallGraphConfig(extra_lifecycle_hooks=["setup"]),
        )
        assert w.build().entry_points == (w.symbol("a.js", "setup"),)

    def test_framework_dunders_are_not_entries(self, graph_world) -> None:
        w = graph_world(
            {
                "a.py": (
                    "class _Hidden:\n"
                    "    def __str__(self):\n"
                    "        return 'hidden'\n"
                    "    def __repr__(self):\n"
                    "        return 'Hidden()'\n"
                )
            }
        )
        graph = w.build()
        assert w.symbol("a.py", "__str__") in graph.nodes
        assert graph.entry_points == ()

    def test_framework_dunder_of_public_class(self, graph_world) -> None:
        w = graph_world(
            {"a.py": "class Point:\n    def __eq__(self, other):\n        return True\n    def norm(self):\n        return 0\n"}
        )
        assert w.build().entry_points == (w.symbol("a.py", "norm"),)

    @pytest.mark.parametrize("hook", ["__init__", "__call__"])
    def test_traceable_dunders_are_entries(self, graph_world, hook: str) -> None:
        w = graph_world({"a.py": f"class _Hidden:\n    def {hook}(self):\n        pass\n"})
        assert w.build().entry_points == (w.symbol("a.py", hook),)

    def test_dunder_names_in_typescript_are_ordinary(self, graph_world) -> None:
        w = graph_world({"a.ts": "export class Box {\n  __str__(): string { return ''; }\n}\n"})
        assert w.symbol("a.ts", "__str__") in w.build().entry_points


# ---------------------------------------------------------------------------
# Body-less signatures
# ---------------------------------------------------------------------------


class TestSignatures:
    """Declarations without a body are not callable graph nodes."""

    def test_interface_method_signature(self, graph_world) -> None:
        w = graph_world(
            {
                "shapes.ts": (
                    "export interface Shape {\n"
                    "  area(): number;\n"
                    "}\n"
                    "export class Square implements Shape {\n"
                    "  area(): number { return 1; }\n"
                    "}\n"
                )
            }
        )
        graph = w.build()
        (signature,) = [
            d for d in w.indices["shapes.ts"].definitions_named("area") if d.body_scope_id is None
        ]
        assert signature.symbol_id not in graph.nodes
        assert signature.symbol_id not in graph.entry_points
        (method,) = [n for n in graph.nodes.values() if n.name == "area"]
        assert method.symbol_id in graph.entry_points

    def test_abstract_method(self, graph_world) -> None:
        w = graph_world(
            {
                "base.ts": (
                    "export abstract class Base {\n"
                    "  abstract draw(): void;\n"
                    "  render(): void { this.draw(); }\n"
                    "}\n"
                )
            }
        )
        graph = w.build()
        assert w.symbol("base.ts", "draw") not in graph.nodes
        assert graph.entry_points == (w.symbol("base.ts", "render"),)


# ---------------------------------------------------------------------------
# Invalidation
# ---------------------------------------------------------------------------


class TestInvalidation:
    """Per-file call data follows resolution provenance."""

    def test_dependency_change_drops_importer(self, graph_world) -> None:
        w = graph_world(
            {
                "math.ts": "export function add() {}\n",
                "app.ts": 'import { add } from "./math";\nadd();\n',
            }
        )
        w.build()
        assert w.builder.cached_files == 2
        assert w.builder.invalidate(["math.ts"]) == {"app.ts", "math.ts"}
        assert w.builder.cached_files == 0

    def test_unrelated_change_keeps_data(self, graph_world) -> None:
        w = graph_world({"a.js": "function f() {}\nf();\n", "b.js": "function g() {}\ng();\n"})
        w.build()
        assert w.builder.invalidate(["a.js"]) == {"a.js"}
        assert w.builder.cached_files == 1

    def test_misses_are_dropped(self, graph_world) -> None:
        w = graph_world({"a.js": "missing();\n", "b.js": "function g() {}\ng();\n"})
        w.build()
        assert w.builder.invalidate_misses() == {"a.js"}
        assert w.builder.cached_files == 1
