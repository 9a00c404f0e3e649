"""Module specifier ↔ file path mapping.

Converts between import specifiers and project file paths:

- Python: dotted paths (``pkg.mod``, ``.sibling``, ``..pkg.mod``) against a
  module index built from the project's ``.py`` files, with an optional
  ``src.`` prefix (``src/pkg/mod.py`` is importable as ``pkg.mod``).
- JavaScript/TypeScript: relative specifiers (``./util``, ``../lib/index``)
  against the importer's directory, trying source extensions and
  ``index.*`` files. Bare specifiers (``react``, ``node:fs``) are external.
- Rust: ``crate::``, ``self::`` and ``super::`` paths against the crate root
  (the nearest ``lib.rs``/``main.rs``) or the importer's module directory,
  trying ``name.rs`` then ``name/mod.rs``. ``std``/``core``/``alloc`` are
  external.

Paths are treated as POSIX strings exactly as the caller supplied them.
"""

from __future__ import annotations

import posixpath

JS_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
_JS_RUNTIME_TO_SOURCE: dict[str, tuple[str, ...]] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}
_RUST_STD_CRATES = frozenset({"std", "core", "alloc"})
_RUST_ROOT_FILES = ("mod.rs", "lib.rs", "main.rs")


def path_to_module(path: str) -> str | None:
    """Convert a Python file path to a dotted module path.

    ``__init__.py`` maps to its package.

    Examples:
        >>> path_to_module("src/codetrace/index/ops.py")
        'src.codetrace.index.ops'
        >>> path_to_module("pkg/__init__.py")
        'pkg'
        >>> path_to_module("src/utils/helper.ts")
        >>> path_to_module("README.md")
    """
    if not path.endswith((".py", ".pyi")):
        return None
    module = path[: path.rfind(".")]
    if module.endswith("/__init__") or module == "__init__":
        module = module[: -len("__init__")].rstrip("/")
    module = module.replace("\\", "/").replace("/", ".").lstrip(".")
    return module or None


def module_to_candidate_paths(source_literal: str) -> list[str]:
    """Candidate module keys for a dotted import path.

    Keys are matched against ``path_to_module()`` output, which keeps any
    ``src.`` prefix, so the prefixed form is tried as well.
    """
    return [source_literal, f"src.{source_literal}"]


def resolve_module_to_path(source_literal: str, module_to_path_map: dict[str, str]) -> str | None:
    """Resolve a dotted module name to a file path, or None."""
    for candidate in module_to_candidate_paths(source_literal):
        if candidate in module_to_path_map:
            return module_to_path_map[candidate]
    return None


def build_module_index(file_paths: list[str]) -> dict[str, str]:
    """Map module key → file path for every Python file.

    A ``.py`` file takes precedence over a ``.pyi`` stub of the same module.
    """
    index: dict[str, str] = {}
    for fp in sorted(file_paths, key=lambda p: p.endswith(".py")):
        module_key = path_to_module(fp)
        if module_key:
            index[module_key] = fp
    return index


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith((".", "/"))


def rust_module_dir(path: str) -> str:
    """Directory holding the child modules of the Rust module file ``path``.

    Examples:
        >>> rust_module_dir("src/lib.rs")
        'src'
        >>> rust_module_dir("src/shapes.rs")
        'src/shapes'
    """
    directory, name = posixpath.split(path)
    if name in _RUST_ROOT_FILES:
        return directory
    return posixpath.join(directory, name[: -len(".rs")])


class ModuleMapper:
    """Resolves import specifiers to files of the current project.

    Lookups are memoized per (importer directory, specifier, style). Rust
    lookups depend on the importer file itself and are memoized per file. The
    memo is cleared whenever the set of files changes, since both hits and
    misses can depend on which files exist.
    """

    def __init__(self) -> None:
        self._files: set[str] = set()
        self._module_index: dict[str, str] | None = None
        self._memo: dict[tuple[str, str, str], str | None] = {}

    # -------------------------------------------------------------------------
    # File set
    # -------------------------------------------------------------------------

    def add_file(self, file_path: str) -> bool:
        """Register a file; returns True if the file set changed."""
        if file_path in self._files:
            return False
        self._files.add(file_path)
        self._invalidate()
        return True

    def remove_file(self, file_path: str) -> bool:
        if file_path not in self._files:
            return False
        self._files.discard(file_path)
        self._invalidate()
        return True

    def _invalidate(self) -> None:
        self._module_index = None
        self._memo.clear()

    @property
    def module_index(self) -> dict[str, str]:
        if self._module_index is None:
            self._module_index = build_module_index(list(self._files))
        return self._module_index

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, specifier: str, importer: str, module_style: str) -> str | None:
        """File path a specifier written in ``importer`` refers to, or None.

        Args:
            specifier: Module specifier as written in the import.
            importer: Path of the importing file.
            module_style: ``dotted`` (Python), ``relative`` (JavaScript/TypeScript)
                or ``rust``.
        """
        scope = importer if module_style == "rust" else posixpath.dirname(importer)
        key = (scope, specifier, module_style)
        if key in self._memo:
            return self._memo[key]
        if module_style == "dotted":
            result = self._resolve_python(specifier, importer)
        elif module_style == "rust":
            result = self._resolve_rust(specifier, importer)
        else:
            result = self._resolve_ecmascript(specifier, importer)
        self._memo[key] = result
        return result

    def submodule(self, package: str, name: str) -> str | None:
        """File of submodule ``name`` of a Python package or Rust module, or None.

        ``package`` is either the package's ``__init__`` file, a Rust module
        file or the directory of a namespace package. A nested namespace
        package is returned as its directory.
        """
        if package.endswith(".rs"):
            return self._rust_under(rust_module_dir(package), [name])
        if posixpath.basename(package) in ("__init__.py", "__init__.pyi"):
            directory = posixpath.dirname(package)
        elif package in self._files:
            return None
        else:
            directory = package
        base = posixpath.join(directory, name)
        found = self._first_existing((f"{base}.py", f"{base}.pyi", f"{base}/__init__.py"))
        if found is None and self._is_namespace_dir(base):
            return base
        return found

    def namespace_package(self, specifier: str, importer: str) -> str | None:
        """Directory of the namespace package (no ``__init__.py``) ``specifier`` names."""
        key = (posixpath.dirname(importer), specifier, "namespace")
        if key in self._memo:
            return self._memo[key]
        stem = "/".join(specifier.split("."))
        candidates = (stem, f"src/{stem}", posixpath.join(posixpath.dirname(importer), stem))
        result = next((c for c in candidates if self._is_namespace_dir(c)), None)
        self._memo[key] = result
        return result

    def _is_namespace_dir(self, directory: str) -> bool:
        prefix = f"{directory}/"
        return any(f.startswith(prefix) and f.endswith((".py", ".pyi")) for f in self._files)

    def _first_existing(self, candidates: tuple[str, ...] | list[str]) -> str | None:
        for candidate in candidates:
            if candidate in self._files:
                return candidate
        return None

    def _resolve_python(self, specifier: str, importer: str) -> str | None:
        if specifier.startswith("."):
            dots = len(specifier) - len(specifier.lstrip("."))
            remainder = specifier[dots:]
            base = posixpath.dirname(importer)
            for _ in range(dots - 1):
                base = posixpath.dirname(base)
            return self._python_under(base, remainder)

        found = resolve_module_to_path(specifier, self.module_index)
        if found is not None:
            return found
        # Sibling import of a script directory not laid out as a package.
        return self._python_under(posixpath.dirname(importer), specifier)

    def _python_under(self, base: str, dotted: str) -> str | None:
        if not dotted:
            return self._first_existing((posixpath.join(base, "__init__.py"),))
        stem = posixpath.join(base, *dotted.split("."))
        return self._first_existing((f"{stem}.py", f"{stem}.pyi", f"{stem}/__init__.py"))

    def _resolve_ecmascript(self, specifier: str, importer: str) -> str | None:
        if not is_relative_specifier(specifier):
            return None
        if specifier.startswith("/"):
            target = posixpath.normpath(specifier)
        else:
            target = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))

        candidates: list[str] = [target]
        stem, ext = posixpath.splitext(target)
        # ESM TypeScript imports name the emitted file: './util.js' -> util.ts
        candidates.extend(stem + source_ext for source_ext in _JS_RUNTIME_TO_SOURCE.get(ext, ()))
        candidates.extend(target + js_ext for js_ext in JS_EXTENSIONS)
        candidates.extend(posixpath.join(target, "index" + js_ext) for js_ext in JS_EXTENSIONS)
        return self._first_existing(candidates)

    def _resolve_rust(self, specifier: str, importer: str) -> str | None:
        segments = specifier.split("::")
        head = segments[0]
        if head == "crate":
            crate_root = self._rust_crate_root(importer)
            if crate_root is None:
                return None
            if len(segments) == 1:
                return crate_root
            return self._rust_under(posixpath.dirname(crate_root), segments[1:])

        if head in ("self", "super"):
            own = base = rust_module_dir(importer)
            rest = segments
            if rest[0] == "self":
                rest = rest[1:]
            while rest and rest[0] == "super":
                base = posixpath.dirname(base)
                rest = rest[1:]
            if not rest:
                return importer if base == own else self._rust_module_file(base)
            return self._rust_under(base, rest)

        if head in _RUST_STD_CRATES:
            return None
        bases = [rust_module_dir(importer)]
        crate_root = self._rust_crate_root(importer)
        if crate_root is not None:
            bases.append(posixpath.dirname(crate_root))
        # Sibling files of a directory without a crate root.
        bases.append(posixpath.dirname(importer))
        for base in bases:
            found = self._rust_under(base, segments)
            if found is not None:
                return found
        return None

    def _rust_under(self, base: str, segments: list[str]) -> str | None:
        stem = posixpath.join(base, *segments)
        return self._first_existing((f"{stem}.rs", f"{stem}/mod.rs"))

    def _rust_module_file(self, directory: str) -> str | None:
        """Module file whose child modules live in ``directory``."""
        candidates = [posixpath.join(directory, name) for name in _RUST_ROOT_FILES]
        if directory:
            candidates.append(f"{directory}.rs")
        return self._first_existing(candidates)

    def _rust_crate_root(self, importer: str) -> str | None:
        """Nearest ``lib.rs`` or ``main.rs`` at or above the importer's directory."""
        directory = posixpath.dirname(importer)
        while True:
            found = self._first_existing((posixpath.join(directory, "lib.rs"), posixpath.join(directory, "main.rs")))
            if found is not None or not directory:
                return found
            directory = posixpath.dirname(directory)
