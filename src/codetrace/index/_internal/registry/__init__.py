"""Project registries: per-file semantic indexes aggregated project-wide."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from codetrace.index._internal.registry.definitions import DefinitionRegistry, is_lexically_bound
from codetrace.index._internal.registry.exports import ExportRegistry
from codetrace.index._internal.registry.imports import ImportRegistry
from codetrace.index._internal.registry.references import ReferenceRegistry
from codetrace.index._internal.registry.scopes import ScopeRegistry
from codetrace.index._internal.registry.types import TypeRegistry

if TYPE_CHECKING:
    from codetrace.index.models import SemanticIndex

log = structlog.get_logger(__name__)


class ProjectRegistries:
    """All registries, updated together one file at a time.

    ``update_file`` validates the incoming index against every invariant
    before touching any registry, so a rejected file leaves the project
    exactly as it was.
    """

    def __init__(self) -> None:
        self.definitions = DefinitionRegistry()
        self.scopes = ScopeRegistry()
        self.references = ReferenceRegistry()
        self.imports = ImportRegistry()
        self.exports = ExportRegistry()
        self.types = TypeRegistry()
        self._indices: dict[str, SemanticIndex] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        """Bumped on every file update or removal."""
        return self._generation

    @property
    def files(self) -> list[str]:
        return sorted(self._indices)

    def __contains__(self, file_path: object) -> bool:
        return file_path in self._indices

    def index_of(self, file_path: str) -> SemanticIndex | None:
        return self._indices.get(file_path)

    def language_of(self, file_path: str) -> str | None:
        index = self._indices.get(file_path)
        return index.language if index is not None else None

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        self.scopes.validate(file_path, index)
        self.definitions.check_unique(file_path, index)

        self.scopes.update_file(file_path, index)
        self.definitions.update_file(file_path, index)
        self.references.update_file(file_path, index)
        self.imports.update_file(file_path, index)
        self.exports.update_file(file_path, index)
        self.types.update_file(file_path, index)
        self._indices[file_path] = index
        self._generation += 1
        log.debug(
            "registries.file_updated",
            path=file_path,
            definitions=len(index.definitions),
            references=len(index.references),
            generation=self._generation,
        )

    def remove_file(self, file_path: str) -> bool:
        if self._indices.pop(file_path, None) is None:
            return False
        self.scopes.remove_file(file_path)
        self.definitions.remove_file(file_path)
        self.references.remove_file(file_path)
        self.imports.remove_file(file_path)
        self.exports.remove_file(file_path)
        self.types.remove_file(file_path)
        self._generation += 1
        log.debug("registries.file_removed", path=file_path, generation=self._generation)
        return True


__all__ = [
    "DefinitionRegistry",
    "ExportRegistry",
    "ImportRegistry",
    "ProjectRegistries",
    "ReferenceRegistry",
    "ScopeRegistry",
    "TypeRegistry",
    "is_lexically_bound",
]
