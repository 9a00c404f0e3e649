"""Project-wide definition registry."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from codetrace.core.errors import InvariantViolation
from codetrace.index.models import ImportDefinition, ImportKind

if TYPE_CHECKING:
    from collections.abc import Iterator

    from codetrace.index.models import Definition, ScopeId, SemanticIndex, SymbolId


def is_lexically_bound(definition: Definition) -> bool:
    """True if the definition is reachable by bare name from its scope.

    Class members live in their type's member table, anonymous callables
    have no name, and a wildcard import binds nothing by itself.
    """
    if definition.is_anonymous:
        return False
    if definition.parent_type_id is not None and definition.is_member:
        return False
    return not (isinstance(definition, ImportDefinition) and definition.import_kind is ImportKind.WILDCARD)


class DefinitionRegistry:
    """Definitions keyed by SymbolId, with composite-key indexes built on insert.

    Indexes:
        - by id
        - by file (document order)
        - by (scope, name) for lexically bound names
        - by body scope (callable or type owning a scope)
    """

    def __init__(self) -> None:
        self._by_id: dict[SymbolId, Definition] = {}
        self._by_file: dict[str, list[SymbolId]] = {}
        self._by_scope_name: dict[tuple[ScopeId, str], list[SymbolId]] = defaultdict(list)
        self._by_body_scope: dict[ScopeId, SymbolId] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, symbol_id: object) -> bool:
        return symbol_id in self._by_id

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        """Replace every definition previously contributed by ``file_path``."""
        self.check_unique(file_path, index)
        self._purge(file_path)
        ids: list[SymbolId] = []
        for symbol_id, definition in index.definitions.items():
            self._by_id[symbol_id] = definition
            ids.append(symbol_id)
            if is_lexically_bound(definition):
                self._by_scope_name[(definition.scope_id, definition.name)].append(symbol_id)
            if definition.body_scope_id is not None:
                self._by_body_scope[definition.body_scope_id] = symbol_id
        self._by_file[file_path] = ids
        self._generation += 1

    def check_unique(self, file_path: str, index: SemanticIndex) -> None:
        """Raise if any of the file's SymbolIds is owned by another file."""
        for symbol_id in index.definitions:
            existing = self._by_id.get(symbol_id)
            if existing is not None and existing.file_path != file_path:
                raise InvariantViolation.duplicate_symbol(symbol_id, existing.file_path, file_path)

    def remove_file(self, file_path: str) -> None:
        if self._purge(file_path):
            self._generation += 1

    def _purge(self, file_path: str) -> bool:
        ids = self._by_file.pop(file_path, None)
        if ids is None:
            return False
        for symbol_id in ids:
            definition = self._by_id.pop(symbol_id, None)
            if definition is None:
                continue
            key = (definition.scope_id, definition.name)
            bucket = self._by_scope_name.get(key)
            if bucket is not None:
                if symbol_id in bucket:
                    bucket.remove(symbol_id)
                if not bucket:
                    del self._by_scope_name[key]
            if definition.body_scope_id is not None:
                self._by_body_scope.pop(definition.body_scope_id, None)
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, symbol_id: SymbolId) -> Definition | None:
        return self._by_id.get(symbol_id)

    def in_file(self, file_path: str) -> list[Definition]:
        return [self._by_id[s] for s in self._by_file.get(file_path, ())]

    def named_in_scope(self, scope_id: ScopeId, name: str) -> list[Definition]:
        """Lexically bound definitions of ``name`` declared directly in ``scope_id``."""
        return [self._by_id[s] for s in self._by_scope_name.get((scope_id, name), ())]

    def owner_of_scope(self, scope_id: ScopeId) -> Definition | None:
        """Callable or type whose body is ``scope_id``."""
        symbol_id = self._by_body_scope.get(scope_id)
        return self._by_id.get(symbol_id) if symbol_id else None

    def callables(self) -> Iterator[Definition]:
        return (d for d in self._by_id.values() if d.is_callable)

    def __iter__(self) -> Iterator[Definition]:
        return iter(self._by_id.values())
