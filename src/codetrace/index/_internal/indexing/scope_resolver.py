"""Lexical scope-chain lookup.

Walks from a reference's scope toward its file's root, applying hoisting:
hoisted definitions (functions, classes, interfaces, enums, type aliases,
and JS imports) are visible anywhere in their declaring scope, while other
bindings are visible only after their declaration point. The positional
check stops applying once the ascent has left a callable body, since code
in a nested function runs after the enclosing scope has finished binding.

Class bodies are not visible from methods nested inside them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from codetrace.index.models import ScopeKind, module_symbol_id

if TYPE_CHECKING:
    from codetrace.index._internal.registry import ProjectRegistries
    from codetrace.index.models import Definition, Location, ScopeId, SymbolId


@dataclass(frozen=True, slots=True)
class LocalLookup:
    """Result of a lexical walk.

    ``position_dependent`` is True when the answer could differ for another
    reference to the same name from the same scope, i.e. a non-hoisted
    candidate was checked against the reference position.
    """

    definition: Definition | None
    position_dependent: bool
    crossed_callable: bool = False


def _declared_at(definition: Definition) -> tuple[int, int]:
    location = definition.name_location or definition.location
    return location.start


def _pick(candidates: list[Definition], location: Location, crossed: bool) -> Definition | None:
    if crossed:
        return candidates[-1]
    preceding = [c for c in candidates if _declared_at(c) < location.start]
    if preceding:
        return max(preceding, key=_declared_at)
    hoisted = [c for c in candidates if c.hoisted]
    return hoisted[-1] if hoisted else None


def find_local_binding(
    registries: ProjectRegistries,
    name: str,
    scope_id: ScopeId,
    location: Location,
) -> LocalLookup:
    """Find the definition ``name`` denotes at ``location`` inside ``scope_id``.

    First match along the ascent wins.
    """
    crossed = False
    position_dependent = False
    for scope in registries.scopes.ancestors(scope_id):
        if scope.kind is ScopeKind.CLASS and crossed:
            continue
        candidates = registries.definitions.named_in_scope(scope.id, name)
        if candidates:
            if not crossed and (len(candidates) > 1 or any(not c.hoisted for c in candidates)):
                position_dependent = True
            chosen = _pick(candidates, location, crossed)
            if chosen is not None:
                return LocalLookup(chosen, position_dependent, crossed)
        if scope.is_callable:
            crossed = True
    return LocalLookup(None, position_dependent, crossed)


def enclosing_type(registries: ProjectRegistries, scope_id: ScopeId) -> Definition | None:
    """Class (or interface/enum) whose body is the nearest class scope above.

    A class scope no type owns (a Rust ``impl`` block) stands for the type
    its methods were attached to.
    """
    below = None
    for scope in registries.scopes.ancestors(scope_id):
        if scope.kind is ScopeKind.CLASS:
            owner = registries.definitions.owner_of_scope(scope.id)
            if owner is None and below is not None:
                method = registries.definitions.owner_of_scope(below)
                if method is not None and method.parent_type_id is not None:
                    owner = registries.definitions.get(method.parent_type_id)
            if owner is not None and owner.is_type:
                return owner
            return None
        below = scope.id
    return None


def calling_context(registries: ProjectRegistries, scope_id: ScopeId, file_path: str) -> SymbolId:
    """SymbolId of the callable whose body contains ``scope_id``.

    Code outside every callable (module level, class bodies) is attributed
    to the synthetic ``module:<path>`` context.
    """
    for scope in registries.scopes.ancestors(scope_id):
        if scope.is_callable:
            owner = registries.definitions.owner_of_scope(scope.id)
            if owner is not None and owner.is_callable:
                return owner.symbol_id
    return module_symbol_id(file_path)
