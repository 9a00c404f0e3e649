"""Type member tables and inheritance edges."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codetrace.index.models import SemanticIndex, SymbolId


class TypeRegistry:
    """Class/interface/enum → member name → member SymbolId.

    Parent types are stored as the names written in the source
    (``extends Base``, ``class A(mod.Base)``); the resolver turns them into
    SymbolIds on demand from the type's declaring scope.
    """

    def __init__(self) -> None:
        self._members: dict[SymbolId, dict[str, SymbolId]] = {}
        self._parents: dict[SymbolId, tuple[str, ...]] = {}
        self._by_file: dict[str, list[SymbolId]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        self._purge(file_path)
        type_ids: list[SymbolId] = []
        for definition in index.definitions.values():
            if definition.is_type:
                type_ids.append(definition.symbol_id)
                self._members.setdefault(definition.symbol_id, {})
                self._parents[definition.symbol_id] = (*definition.extends, *definition.implements)
        for definition in index.definitions.values():
            if definition.parent_type_id is not None and definition.is_member:
                # First declaration of a member name wins (class body before self.x).
                self._members.setdefault(definition.parent_type_id, {}).setdefault(
                    definition.name, definition.symbol_id
                )
        self._by_file[file_path] = type_ids
        self._generation += 1

    def remove_file(self, file_path: str) -> None:
        if self._purge(file_path):
            self._generation += 1

    def _purge(self, file_path: str) -> bool:
        type_ids = self._by_file.pop(file_path, None)
        if type_ids is None:
            return False
        for type_id in type_ids:
            self._members.pop(type_id, None)
            self._parents.pop(type_id, None)
        return True

    def member(self, type_id: SymbolId, name: str) -> SymbolId | None:
        return self._members.get(type_id, {}).get(name)

    def members(self, type_id: SymbolId) -> dict[str, SymbolId]:
        return dict(self._members.get(type_id, {}))

    def parent_names(self, type_id: SymbolId) -> tuple[str, ...]:
        return self._parents.get(type_id, ())

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._members
