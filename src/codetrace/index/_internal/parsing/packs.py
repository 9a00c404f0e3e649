"""Unified LanguagePack: single source of truth for per-language config.

Every language codetrace indexes has exactly ONE LanguagePack that
consolidates:
- Grammar install metadata (package, module, loader function)
- File extension detection
- Semantic query patterns (capture-tagged S-expressions)
- Lifecycle hooks (runtime-invoked callables that start a trace)
- Framework hooks (runtime-invoked callables that are never entry points)
- Builtin names (resolve as external rather than unresolved)
- Module resolution flavour (dotted Python modules, relative JS specifiers,
  Rust ``crate::``/``super::`` paths)

The PACKS registry is the canonical lookup: ``PACKS["python"]``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath

from codetrace.index._internal.parsing.queries import (
    JAVASCRIPT_QUERIES,
    PYTHON_QUERIES,
    RUST_QUERIES,
    TYPESCRIPT_QUERIES,
)

# =========================================================================
# Dataclasses
# =========================================================================


@dataclass(frozen=True)
class LanguagePack:
    """Complete tree-sitter configuration for a single language."""

    # -- Identity --
    name: str  # Canonical language tag ("python", "tsx", ...)
    grammar_name: str  # Grammar key used for language caching
    family: str  # Builder family ("python", "javascript" or "rust")

    # -- Grammar install --
    grammar_package: str  # PyPI package ("tree-sitter-python")
    grammar_module: str  # Python import ("tree_sitter_python")
    # Non-standard function name (e.g. "language_typescript", "language_tsx")
    language_func: str | None = None

    # -- File detection --
    extensions: frozenset[str] = field(default_factory=frozenset)

    # -- Semantic queries (one S-expression per entry, compiled independently) --
    queries: tuple[str, ...] = ()

    # -- Call graph --
    lifecycle_hooks: frozenset[str] = field(default_factory=frozenset)
    framework_hooks: frozenset[str] = field(default_factory=frozenset)
    constructor_name: str | None = "constructor"  # None: a call to a type never runs a member

    # -- Resolution --
    builtins: frozenset[str] = field(default_factory=frozenset)
    module_style: str = "relative"  # "dotted" (Python), "relative" (JS/TS) or "rust"
    hoisted_imports: bool = True
    # Every module-level binding can be imported, exported or not
    importable_bindings: bool = False
    self_names: frozenset[str] = frozenset({"this"})

    @property
    def is_typed(self) -> bool:
        return self.name in ("typescript", "tsx")

    def is_framework_hook(self, name: str) -> bool:
        """True for callables only the runtime invokes (``__str__``, ``__eq__``)."""
        return name in self.framework_hooks and name not in self.lifecycle_hooks


# =========================================================================
# Builtins
# =========================================================================

_PYTHON_BUILTINS: frozenset[str] = frozenset(
    {
        "abs",
        "all",
        "any",
        "bool",
        "bytes",
        "callable",
        "dict",
        "dir",
        "enumerate",
        "Exception",
        "filter",
        "float",
        "format",
        "frozenset",
        "getattr",
        "hasattr",
        "hash",
        "id",
        "input",
        "int",
        "isinstance",
        "issubclass",
        "iter",
        "len",
        "list",
        "map",
        "max",
        "min",
        "next",
        "object",
        "open",
        "print",
        "property",
        "range",
        "repr",
        "reversed",
        "round",
        "set",
        "setattr",
        "sorted",
        "staticmethod",
        "classmethod",
        "str",
        "sum",
        "super",
        "tuple",
        "type",
        "ValueError",
        "TypeError",
        "KeyError",
        "RuntimeError",
        "zip",
    }
)

_JS_BUILTINS: frozenset[str] = frozenset(
    {
        "Array",
        "Boolean",
        "console",
        "Date",
        "Error",
        "JSON",
        "Map",
        "Math",
        "Number",
        "Object",
        "Promise",
        "Reflect",
        "RegExp",
        "Set",
        "String",
        "Symbol",
        "TypeError",
        "WeakMap",
        "clearInterval",
        "clearTimeout",
        "document",
        "fetch",
        "globalThis",
        "module",
        "parseFloat",
        "parseInt",
        "process",
        "queueMicrotask",
        "require",
        "setInterval",
        "setTimeout",
        "window",
    }
)

_JS_LIFECYCLE_HOOKS: frozenset[str] = frozenset(
    {
        "constructor",
        "connectedCallback",
        "disconnectedCallback",
        "attributeChangedCallback",
        "adoptedCallback",
        "componentDidMount",
        "componentDidUpdate",
        "componentWillUnmount",
        "render",
    }
)

_PYTHON_LIFECYCLE_HOOKS: frozenset[str] = frozenset(
    {
        "__init__",
        "__call__",
        "setUp",
        "tearDown",
    }
)

_PYTHON_FRAMEWORK_HOOKS: frozenset[str] = frozenset(
    {
        "__new__",
        "__del__",
        "__post_init__",
        "__init_subclass__",
        "__class_getitem__",
        "__set_name__",
        "__enter__",
        "__exit__",
        "__aenter__",
        "__aexit__",
        "__iter__",
        "__next__",
        "__aiter__",
        "__anext__",
        "__await__",
        "__getattr__",
        "__getattribute__",
        "__setattr__",
        "__delattr__",
        "__get__",
        "__set__",
        "__delete__",
        "__getitem__",
        "__setitem__",
        "__delitem__",
        "__contains__",
        "__len__",
        "__bool__",
        "__repr__",
        "__str__",
        "__format__",
        "__bytes__",
        "__hash__",
        "__eq__",
        "__ne__",
        "__lt__",
        "__le__",
        "__gt__",
        "__ge__",
        "__add__",
        "__sub__",
        "__mul__",
        "__truediv__",
        "__floordiv__",
        "__mod__",
        "__and__",
        "__or__",
        "__neg__",
    }
)

_RUST_BUILTINS: frozenset[str] = frozenset(
    {
        "alloc",
        "assert",
        "assert_eq",
        "Box",
        "Clone",
        "core",
        "Debug",
        "Default",
        "Err",
        "format",
        "HashMap",
        "HashSet",
        "None",
        "Ok",
        "Option",
        "panic",
        "println",
        "Rc",
        "Arc",
        "Result",
        "Some",
        "std",
        "String",
        "ToString",
        "Vec",
        "vec",
    }
)

_RUST_LIFECYCLE_HOOKS: frozenset[str] = frozenset({"main"})

# Trait methods the compiler or std calls on the user's behalf.
_RUST_FRAMEWORK_HOOKS: frozenset[str] = frozenset(
    {
        "as_ref",
        "borrow",
        "clone",
        "cmp",
        "default",
        "deref",
        "deref_mut",
        "drop",
        "eq",
        "fmt",
        "from",
        "hash",
        "index",
        "index_mut",
        "into_iter",
        "ne",
        "next",
        "partial_cmp",
    }
)


# =========================================================================
# Packs
# =========================================================================

PYTHON_PACK = LanguagePack(
    name="python",
    grammar_name="python",
    family="python",
    grammar_package="tree-sitter-python",
    grammar_module="tree_sitter_python",
    extensions=frozenset({"py", "pyi", "pyw"}),
    queries=PYTHON_QUERIES,
    lifecycle_hooks=_PYTHON_LIFECYCLE_HOOKS,
    framework_hooks=_PYTHON_FRAMEWORK_HOOKS,
    constructor_name="__init__",
    builtins=_PYTHON_BUILTINS,
    module_style="dotted",
    hoisted_imports=False,
    importable_bindings=True,
    self_names=frozenset({"self", "cls"}),
)

JAVASCRIPT_PACK = LanguagePack(
    name="javascript",
    grammar_name="javascript",
    family="javascript",
    grammar_package="tree-sitter-javascript",
    grammar_module="tree_sitter_javascript",
    extensions=frozenset({"js", "jsx", "mjs", "cjs"}),
    queries=JAVASCRIPT_QUERIES,
    lifecycle_hooks=_JS_LIFECYCLE_HOOKS,
    builtins=_JS_BUILTINS,
)

TYPESCRIPT_PACK = LanguagePack(
    name="typescript",
    grammar_name="typescript",
    family="javascript",
    grammar_package="tree-sitter-typescript",
    grammar_module="tree_sitter_typescript",
    language_func="language_typescript",
    extensions=frozenset({"ts", "mts", "cts"}),
    queries=TYPESCRIPT_QUERIES,
    lifecycle_hooks=_JS_LIFECYCLE_HOOKS,
    builtins=_JS_BUILTINS,
)

TSX_PACK = LanguagePack(
    name="tsx",
    grammar_name="tsx",
    family="javascript",
    grammar_package="tree-sitter-typescript",
    grammar_module="tree_sitter_typescript",
    language_func="language_tsx",
    extensions=frozenset({"tsx"}),
    queries=TYPESCRIPT_QUERIES,
    lifecycle_hooks=_JS_LIFECYCLE_HOOKS,
    builtins=_JS_BUILTINS,
)

RUST_PACK = LanguagePack(
    name="rust",
    grammar_name="rust",
    family="rust",
    grammar_package="tree-sitter-rust",
    grammar_module="tree_sitter_rust",
    extensions=frozenset({"rs"}),
    queries=RUST_QUERIES,
    lifecycle_hooks=_RUST_LIFECYCLE_HOOKS,
    framework_hooks=_RUST_FRAMEWORK_HOOKS,
    constructor_name=None,
    builtins=_RUST_BUILTINS,
    module_style="rust",
    importable_bindings=True,
    self_names=frozenset({"self", "Self"}),
)

_ALL_PACKS: tuple[LanguagePack, ...] = (
    PYTHON_PACK,
    JAVASCRIPT_PACK,
    TYPESCRIPT_PACK,
    TSX_PACK,
    RUST_PACK,
)

PACKS: dict[str, LanguagePack] = {pack.name: pack for pack in _ALL_PACKS}

# Extension -> Pack
_EXT_TO_PACK: dict[str, LanguagePack] = {}
for _pack in _ALL_PACKS:
    for _ext in _pack.extensions:
        _EXT_TO_PACK[_ext] = _pack


# =========================================================================
# Public API
# =========================================================================


def get_pack(name: str) -> LanguagePack | None:
    """Get a LanguagePack by language name."""
    return PACKS.get(name)


def get_pack_for_ext(ext: str) -> LanguagePack | None:
    """Get a LanguagePack for a file extension (without leading dot)."""
    return _EXT_TO_PACK.get(ext.lower().lstrip("."))


def detect_language(path: str) -> str | None:
    """Guess the language tag of ``path`` from its extension.

    Examples:
        >>> detect_language("src/app.ts")
        'typescript'
        >>> detect_language("README.md")
    """
    suffix = PurePosixPath(path.replace("\\", "/")).suffix
    if not suffix:
        return None
    pack = get_pack_for_ext(suffix)
    return pack.name if pack is not None else None
