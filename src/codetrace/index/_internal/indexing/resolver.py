"""Name resolution across scopes and files.

Resolution order for a bare name at a reference site:

1. Lexical walk from the reference's scope to the file's root
   (``scope_resolver.find_local_binding``), applying hoisting.
2. If the binding found is an import, follow it: map the module specifier
   to a project file, then resolve the imported name against that file's
   exports, following re-export chains transitively.
3. Wildcard imports of the module scope (``from m import *``).
4. Language builtins resolve as EXTERNAL.

Re-export chains are guarded by a visited set of (file, name) pairs and
by ``resolver.max_chain_depth``; a repeat is reported as UNRESOLVED and
never loops. Resolution never raises for a missing target.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from codetrace.config.models import ResolverConfig
from codetrace.index._internal.indexing.cache import ResolutionCache
from codetrace.index._internal.indexing.method_resolver import MethodResolver
from codetrace.index._internal.indexing.scope_resolver import find_local_binding
from codetrace.index._internal.parsing.packs import get_pack
from codetrace.index.models import (
    ImportDefinition,
    ImportKind,
    Resolution,
    ResolutionStatus,
    SymbolKind,
    is_module_symbol,
    module_path_of,
    module_symbol_id,
)

if TYPE_CHECKING:
    from codetrace.index._internal.indexing.module_mapping import ModuleMapper
    from codetrace.index._internal.parsing.packs import LanguagePack
    from codetrace.index._internal.registry import ProjectRegistries
    from codetrace.index.models import Definition, ExportEntry, Location, Reference, ScopeId, SymbolId

log = structlog.get_logger(__name__)


@dataclass
class _Trace:
    """Mutable state threaded through one resolution."""

    via: set[str] = field(default_factory=set)
    visited: set[tuple[str, str]] = field(default_factory=set)
    depth: int = 0

    def frozen_via(self) -> frozenset[str]:
        return frozenset(self.via)


class Resolver:
    """Maps names and references to defining SymbolIds.

    Reads registry state only; owns the resolution cache. Member access
    (``a.b.c``) is delegated to ``MethodResolver``, which calls back into
    this class for the root of the chain.
    """

    def __init__(
        self,
        registries: ProjectRegistries,
        mapper: ModuleMapper,
        config: ResolverConfig | None = None,
    ) -> None:
        self._registries = registries
        self._mapper = mapper
        self._config = config or ResolverConfig()
        self.cache = ResolutionCache(enabled=self._config.cache_enabled)
        self.members = MethodResolver(registries, self)

    @property
    def registries(self) -> ProjectRegistries:
        return self._registries

    def pack_for(self, file_path: str) -> LanguagePack | None:
        language = self._registries.language_of(file_path)
        return get_pack(language) if language else None

    def family_of(self, file_path: str) -> str:
        pack = self.pack_for(file_path)
        return pack.family if pack is not None else "javascript"

    def module_style_of(self, file_path: str) -> str:
        pack = self.pack_for(file_path)
        return pack.module_style if pack is not None else "relative"

    def module_at(self, specifier: str, importer: str) -> str | None:
        """Project file the module path ``specifier`` written in ``importer`` names."""
        return self._mapper.resolve(specifier, importer, self.module_style_of(importer))

    # =========================================================================
    # Entry points
    # =========================================================================

    def resolve_reference(self, reference: Reference) -> Resolution:
        """Resolve a use site to its target symbol."""
        if len(reference.property_chain) > 1:
            return self.members.resolve_chain(
                reference.property_chain,
                reference.scope_id,
                reference.location,
            )
        return self.resolve_name(reference.name, reference.scope_id, reference.location)

    def resolve_name(self, name: str, scope_id: ScopeId, location: Location) -> Resolution:
        """Resolve a bare name as seen from ``location`` inside ``scope_id``."""
        for key in ((scope_id, name, None), (scope_id, name, location.start)):
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        trace = _Trace(via={location.file_path})
        resolution, position_dependent = self._resolve_name(name, scope_id, location, trace)
        key = (scope_id, name, location.start if position_dependent else None)
        self.cache.put(key, resolution, location.file_path)
        return resolution

    def resolve_definition(self, definition: Definition) -> Resolution:
        """Final target of a definition; imports are followed, others are themselves."""
        if isinstance(definition, ImportDefinition):
            trace = _Trace(via={definition.file_path})
            return self._follow_import(definition, trace)
        return Resolution.resolved(definition.symbol_id, frozenset({definition.file_path}))

    def resolve_export(self, file_path: str, export_name: str) -> Resolution:
        """Resolve ``export_name`` as exported by ``file_path``."""
        return self._resolve_export(file_path, export_name, _Trace())

    def resolve_module_member(self, module_path: str, member: str, via: set[str] | None = None) -> Resolution:
        """Resolve ``ns.member`` where ``ns`` is the module ``module_path``."""
        trace = _Trace(via=set(via or ()))
        return self._module_member(module_path, member, trace)

    # =========================================================================
    # Lexical + import resolution
    # =========================================================================

    def _resolve_name(
        self,
        name: str,
        scope_id: ScopeId,
        location: Location,
        trace: _Trace,
    ) -> tuple[Resolution, bool]:
        file_path = location.file_path
        lookup = find_local_binding(self._registries, name, scope_id, location)
        definition = lookup.definition
        if definition is not None:
            if isinstance(definition, ImportDefinition):
                return self._follow_import(definition, trace), lookup.position_dependent
            return Resolution.resolved(definition.symbol_id, trace.frozen_via()), lookup.position_dependent

        root = self._registries.scopes.root_of(file_path)
        if root is not None:
            for wildcard in self._registries.imports.wildcards_in_scope(root):
                target = self._module_file(wildcard, trace)
                if target is None:
                    continue
                found = self._resolve_export(target, name, trace)
                if found.is_resolved:
                    return found, lookup.position_dependent

        pack = self.pack_for(file_path)
        if pack is not None and name in pack.builtins:
            return Resolution.external("builtins", trace.frozen_via()), lookup.position_dependent
        return (
            Resolution.unresolved(trace.frozen_via(), detail=f"no binding for {name!r}"),
            lookup.position_dependent,
        )

    def _module_file(self, imp: ImportDefinition, trace: _Trace, specifier: str | None = None) -> str | None:
        specifier = imp.import_path if specifier is None else specifier
        target = self._mapper.resolve(specifier, imp.file_path, self.module_style_of(imp.file_path))
        if target is not None:
            trace.via.add(target)
            self._registries.imports.link(imp.file_path, target)
        return target

    def _follow_import(self, imp: ImportDefinition, trace: _Trace) -> Resolution:
        trace.via.add(imp.file_path)
        target = self._module_file(imp, trace)

        if imp.import_kind is ImportKind.NAMESPACE:
            if target is None:
                if self.family_of(imp.file_path) == "python":
                    # ``import pkg.mod`` where pkg has no __init__.py
                    package = self._mapper.namespace_package(imp.import_path, imp.file_path)
                    if package is not None:
                        return Resolution.resolved(module_symbol_id(package), trace.frozen_via())
                return Resolution.external(imp.import_path, trace.frozen_via())
            return Resolution.resolved(module_symbol_id(target), trace.frozen_via())

        if imp.import_kind is ImportKind.DEFAULT:
            imported = "default"
        else:
            imported = imp.original_name or imp.name

        if target is None:
            if self.family_of(imp.file_path) == "python":
                # ``from pkg import mod`` where pkg has no __init__.py
                submodule = _join_python_module(imp.import_path, imported)
                sub_file = self._module_file(imp, trace, submodule)
                if sub_file is not None:
                    return Resolution.resolved(module_symbol_id(sub_file), trace.frozen_via())
            return Resolution.external(imp.import_path, trace.frozen_via())

        return self._module_member(target, imported, trace)

    def _module_member(self, module_path: str, member: str, trace: _Trace) -> Resolution:
        found = self._resolve_export(module_path, member, trace)
        if found.is_resolved or found.status is ResolutionStatus.EXTERNAL:
            return found
        submodule = self._mapper.submodule(module_path, member)
        if submodule is not None:
            trace.via.add(submodule)
            return Resolution.resolved(module_symbol_id(submodule), trace.frozen_via())
        return found

    # =========================================================================
    # Export chains
    # =========================================================================

    def _resolve_export(self, file_path: str, export_name: str, trace: _Trace) -> Resolution:
        key = (file_path, export_name)
        if key in trace.visited or trace.depth >= self._config.max_chain_depth:
            log.debug(
                "resolver.reexport_cycle",
                path=file_path,
                name=export_name,
                depth=trace.depth,
            )
            return Resolution.unresolved(trace.frozen_via(), detail="re-export cycle")
        trace.visited.add(key)
        trace.via.add(file_path)
        trace.depth += 1
        try:
            return self._resolve_export_step(file_path, export_name, trace)
        finally:
            trace.depth -= 1

    def _resolve_export_step(self, file_path: str, export_name: str, trace: _Trace) -> Resolution:
        if file_path not in self._registries:
            return Resolution.unresolved(trace.frozen_via(), detail=f"{file_path} is not loaded")

        entry = self._registries.exports.get(file_path, export_name)
        if entry is not None:
            found = self._resolve_entry(file_path, entry, trace)
            if found is not None:
                return found

        pack = self.pack_for(file_path)
        if pack is not None and pack.importable_bindings and export_name != "default":
            # Every module-level binding is importable, including imports.
            found = self._module_level_binding(file_path, export_name, trace)
            if found is not None:
                return found

        for source in self._registries.exports.wildcard_sources(file_path):
            target = self._mapper.resolve(source, file_path, self.module_style_of(file_path))
            if target is None:
                continue
            self._registries.imports.link(file_path, target)
            found = self._resolve_export(target, export_name, trace)
            if found.is_resolved:
                return found

        return Resolution.unresolved(trace.frozen_via(), detail=f"{export_name!r} not exported by {file_path}")

    def _resolve_entry(self, file_path: str, entry: ExportEntry, trace: _Trace) -> Resolution | None:
        if entry.reexport is not None:
            source = entry.reexport.source
            target = self._mapper.resolve(source, file_path, self.module_style_of(file_path))
            if target is None:
                return Resolution.external(source, trace.frozen_via())
            trace.via.add(target)
            self._registries.imports.link(file_path, target)
            if entry.reexport.imported_name is None:
                return Resolution.resolved(module_symbol_id(target), trace.frozen_via())
            return self._resolve_export(target, entry.reexport.imported_name, trace)

        if entry.symbol_id is None:
            return None
        definition = self._registries.definitions.get(entry.symbol_id)
        if definition is None:
            return None
        if isinstance(definition, ImportDefinition):
            return self._follow_import(definition, trace)
        return Resolution.resolved(definition.symbol_id, trace.frozen_via())

    def _module_level_binding(self, file_path: str, name: str, trace: _Trace) -> Resolution | None:
        root = self._registries.scopes.root_of(file_path)
        if root is None:
            return None
        candidates = self._registries.definitions.named_in_scope(root, name)
        if not candidates:
            for wildcard in self._registries.imports.wildcards_in_scope(root):
                target = self._module_file(wildcard, trace)
                if target is not None:
                    found = self._resolve_export(target, name, trace)
                    if found.is_resolved:
                        return found
            return None
        definition = candidates[-1]
        if isinstance(definition, ImportDefinition):
            return self._follow_import(definition, trace)
        return Resolution.resolved(definition.symbol_id, trace.frozen_via())

    # =========================================================================
    # Types
    # =========================================================================

    def resolve_type_name(
        self,
        type_name: str,
        scope_id: ScopeId,
        location: Location,
        via: set[str] | None = None,
    ) -> SymbolId | None:
        """SymbolId of the class/interface/enum ``type_name`` denotes, or None.

        Dotted names (``models.User``) are resolved through namespaces; type
        aliases are followed to the aliased type.
        """
        seen: set[str] = set()
        while True:
            parts = type_name.split(".")
            resolution = self.resolve_name(parts[0], scope_id, location)
            if via is not None:
                via.update(resolution.via)
            for part in parts[1:]:
                if not resolution.is_resolved or resolution.symbol_id is None:
                    return None
                if is_module_symbol(resolution.symbol_id):
                    resolution = self.resolve_module_member(module_path_of(resolution.symbol_id), part)
                    if via is not None:
                        via.update(resolution.via)
                else:
                    return None
            if not resolution.is_resolved or resolution.symbol_id is None:
                return None
            definition = self._registries.definitions.get(resolution.symbol_id)
            if definition is None:
                return None
            if definition.is_type:
                return definition.symbol_id
            if (
                definition.kind is SymbolKind.TYPE_ALIAS
                and definition.type_info is not None
                and definition.symbol_id not in seen
            ):
                seen.add(definition.symbol_id)
                type_name = definition.type_info.type_name
                scope_id = definition.scope_id
                location = definition.location
                continue
            return None


def _join_python_module(package: str, name: str) -> str:
    """Dotted path of submodule ``name`` of ``package`` (which may be relative)."""
    if package.endswith("."):
        return f"{package}{name}"
    return f"{package}.{name}"
