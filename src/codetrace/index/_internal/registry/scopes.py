"""Project-wide scope tree registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from codetrace.core.errors import InvariantViolation

if TYPE_CHECKING:
    from collections.abc import Iterator

    from codetrace.index.models import LexicalScope, ScopeId, SemanticIndex


class ScopeRegistry:
    """Every file's scope tree, addressable by scope id."""

    def __init__(self) -> None:
        self._scopes: dict[ScopeId, LexicalScope] = {}
        self._roots: dict[str, ScopeId] = {}
        self._by_file: dict[str, list[ScopeId]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        """Validate and install a file's scope tree, replacing the old one.

        Raises:
            InvariantViolation: The tree does not have exactly one root, a
                parent is missing, or following parents loops.
        """
        self.validate(file_path, index)
        self._purge(file_path)
        for scope_id, scope in index.scopes.items():
            self._scopes[scope_id] = scope
            if scope.parent_id is None:
                self._roots[file_path] = scope_id
        self._by_file[file_path] = list(index.scopes)
        self._generation += 1

    def validate(self, file_path: str, index: SemanticIndex) -> None:
        _validate_tree(file_path, index.scopes)

    def remove_file(self, file_path: str) -> None:
        if self._purge(file_path):
            self._generation += 1

    def _purge(self, file_path: str) -> bool:
        ids = self._by_file.pop(file_path, None)
        if ids is None:
            return False
        for scope_id in ids:
            self._scopes.pop(scope_id, None)
        self._roots.pop(file_path, None)
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, scope_id: ScopeId) -> LexicalScope | None:
        return self._scopes.get(scope_id)

    def root_of(self, file_path: str) -> ScopeId | None:
        return self._roots.get(file_path)

    def parent_of(self, scope_id: ScopeId) -> ScopeId | None:
        scope = self._scopes.get(scope_id)
        return scope.parent_id if scope is not None else None

    def children(self, scope_id: ScopeId) -> list[LexicalScope]:
        scope = self._scopes.get(scope_id)
        if scope is None:
            return []
        return [self._scopes[c] for c in scope.child_ids if c in self._scopes]

    def ancestors(self, scope_id: ScopeId) -> Iterator[LexicalScope]:
        """Yield ``scope_id`` and every enclosing scope up to the root."""
        current = self._scopes.get(scope_id)
        while current is not None:
            yield current
            current = self._scopes.get(current.parent_id) if current.parent_id else None

    def scope_at(self, file_path: str, line: int, col: int) -> ScopeId | None:
        """Innermost scope of ``file_path`` containing the position."""
        current = self._roots.get(file_path)
        if current is None:
            return None
        while True:
            inner = next(
                (c for c in self.children(current) if c.location.contains(line, col)),
                None,
            )
            if inner is None:
                return current
            current = inner.id

    def in_file(self, file_path: str) -> list[LexicalScope]:
        return [self._scopes[s] for s in self._by_file.get(file_path, ())]


def _validate_tree(file_path: str, scopes: dict[ScopeId, LexicalScope]) -> None:
    roots = [s.id for s in scopes.values() if s.parent_id is None]
    if len(roots) != 1:
        raise InvariantViolation.bad_root(file_path, roots)
    for scope in scopes.values():
        if scope.parent_id is not None and scope.parent_id not in scopes:
            raise InvariantViolation.bad_root(file_path, [*roots, scope.id])
        seen: set[ScopeId] = set()
        current: LexicalScope | None = scope
        while current is not None:
            if current.id in seen:
                raise InvariantViolation.scope_cycle(file_path, current.id)
            seen.add(current.id)
            current = scopes.get(current.parent_id) if current.parent_id else None
