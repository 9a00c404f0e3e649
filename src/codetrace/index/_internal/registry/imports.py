"""Project-wide import registry."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from codetrace.index.models import ImportKind

if TYPE_CHECKING:
    from collections.abc import Iterator

    from codetrace.index.models import ImportDefinition, ScopeId, SemanticIndex


class ImportRegistry:
    """Import bindings per scope plus the reverse "who imports this file" map.

    The reverse map is filled by the resolver as it maps module specifiers
    to project files, so it only ever records links that were followed.
    """

    def __init__(self) -> None:
        self._by_file: dict[str, list[ImportDefinition]] = {}
        self._by_scope: dict[ScopeId, dict[str, ImportDefinition]] = defaultdict(dict)
        self._wildcards: dict[ScopeId, list[ImportDefinition]] = defaultdict(list)
        self._importers: dict[str, set[str]] = defaultdict(set)
        self._targets: dict[str, set[str]] = defaultdict(set)
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        self._purge(file_path)
        self._by_file[file_path] = list(index.imports)
        for imp in index.imports:
            if imp.import_kind is ImportKind.WILDCARD:
                self._wildcards[imp.scope_id].append(imp)
            else:
                self._by_scope[imp.scope_id][imp.name] = imp
        self._generation += 1

    def remove_file(self, file_path: str) -> None:
        if self._purge(file_path):
            self._generation += 1

    def _purge(self, file_path: str) -> bool:
        imports = self._by_file.pop(file_path, None)
        for target in self._targets.pop(file_path, set()):
            self._importers[target].discard(file_path)
        if imports is None:
            return False
        for imp in imports:
            self._by_scope.pop(imp.scope_id, None)
            self._wildcards.pop(imp.scope_id, None)
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def __iter__(self) -> Iterator[ImportDefinition]:
        for imports in self._by_file.values():
            yield from imports

    def in_file(self, file_path: str) -> list[ImportDefinition]:
        return self._by_file.get(file_path, [])

    def in_scope(self, scope_id: ScopeId, name: str) -> ImportDefinition | None:
        return self._by_scope.get(scope_id, {}).get(name)

    def wildcards_in_scope(self, scope_id: ScopeId) -> list[ImportDefinition]:
        return self._wildcards.get(scope_id, [])

    def link(self, importer: str, target: str) -> None:
        """Record that ``importer`` resolved one of its specifiers to ``target``."""
        if importer == target:
            return
        self._importers[target].add(importer)
        self._targets[importer].add(target)

    def importers_of(self, file_path: str) -> frozenset[str]:
        return frozenset(self._importers.get(file_path, ()))
