"""Project-wide reference registry."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from codetrace.index.models import Reference, SemanticIndex


class ReferenceRegistry:
    """References by file (document order), by location key and by name."""

    def __init__(self) -> None:
        self._by_file: dict[str, list[Reference]] = {}
        self._by_location: dict[str, Reference] = {}
        self._by_name: dict[str, dict[str, list[Reference]]] = defaultdict(dict)
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        self._purge(file_path)
        self._by_file[file_path] = list(index.references)
        for reference in index.references:
            self._by_location[reference.location.key] = reference
            self._by_name[reference.name].setdefault(file_path, []).append(reference)
        self._generation += 1

    def remove_file(self, file_path: str) -> None:
        if self._purge(file_path):
            self._generation += 1

    def _purge(self, file_path: str) -> bool:
        references = self._by_file.pop(file_path, None)
        if references is None:
            return False
        for reference in references:
            self._by_location.pop(reference.location.key, None)
            per_file = self._by_name.get(reference.name)
            if per_file is not None:
                per_file.pop(file_path, None)
                if not per_file:
                    del self._by_name[reference.name]
        return True

    def in_file(self, file_path: str) -> list[Reference]:
        return self._by_file.get(file_path, [])

    def at(self, location_key: str) -> Reference | None:
        return self._by_location.get(location_key)

    def named(self, name: str) -> Iterator[Reference]:
        """Every reference spelled ``name``, across all files."""
        for references in self._by_name.get(name, {}).values():
            yield from references

    def at_position(self, file_path: str, line: int, col: int) -> Reference | None:
        """Smallest reference span of ``file_path`` containing the position."""
        best: Reference | None = None
        best_size: tuple[int, int] | None = None
        for reference in self._by_file.get(file_path, ()):
            loc = reference.location
            if not loc.contains(line, col):
                continue
            size = (loc.end_line - loc.start_line, loc.end_col - loc.start_col)
            if best_size is None or size < best_size:
                best, best_size = reference, size
        return best
