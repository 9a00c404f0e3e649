"""High-level orchestration of the semantic index.

This module implements ``Project``, the entry point for all index
operations and the only owner of registry state. It coordinates the
pipeline:

    content -> parse -> captures -> SemanticIndex -> registries
                                                  -> resolver (cached)
                                                  -> call graph (cached per file)

Resolutions and call-graph edges are derived views. They are computed
lazily on query and cached with their provenance (the files consulted to
produce them); an update to a file drops exactly the cached entries that
consulted it.

SERIALIZATION:
- _lock: one mutation or query at a time. Resolution fills caches, so
  queries are not read-only either.
- update_files() parses in a worker pool outside the lock and ingests
  results serially under it.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from codetrace.config.models import CodeTraceConfig
from codetrace.core.errors import IndexingError
from codetrace.index._internal.extraction import get_registry
from codetrace.index._internal.indexing import (
    CallGraphBuilder,
    FileIndexResult,
    ModuleMapper,
    Resolver,
    content_hash,
    index_file,
)
from codetrace.index._internal.parsing import TreeSitterParser, detect_language
from codetrace.index._internal.registry import ProjectRegistries
from codetrace.index.models import ImportDefinition, ImportKind, is_module_symbol

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from concurrent.futures import Future

    from codetrace.index.models import (
        CallGraph,
        Definition,
        Reference,
        SemanticIndex,
        SymbolId,
        TextEdit,
    )

log = structlog.get_logger(__name__)


@dataclass
class BatchResult:
    """Outcome of ``Project.update_files``."""

    indexed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # path -> error message
    cancelled: bool = False
    duration_seconds: float = 0.0


@dataclass
class ProjectStats:
    """Snapshot of project size and cache effectiveness."""

    files: int
    definitions: int
    references: int
    scopes: int
    generation: int
    cached_resolutions: int
    cache_hits: int
    cache_misses: int
    cache_invalidated: int
    cached_call_files: int


class Project:
    """In-memory semantic model of a set of source files.

    Usage::

        project = Project()
        project.update_file("src/math.ts", "export function add(a, b) { return a + b; }")
        project.update_file("src/app.ts", "import { add } from './math';\\nadd(1, 2);")

        definition = project.go_to_definition("src/app.ts", line=2, column=0)
        graph = project.get_call_graph()

    Positions are 1-indexed lines and 0-indexed (byte) columns. Queries
    that find nothing return None or an empty list; only invariant
    violations raise.
    """

    def __init__(self, config: CodeTraceConfig | None = None) -> None:
        self.config = config or CodeTraceConfig()

        self._lock = threading.RLock()
        self._parser = TreeSitterParser()
        self._registries = ProjectRegistries()
        self._mapper = ModuleMapper()
        self._resolver = Resolver(self._registries, self._mapper, self.config.resolver)
        self._graph = CallGraphBuilder(self._registries, self._resolver, self.config.call_graph)

        # Trees are kept for incremental reparse only.
        self._trees: dict[str, object] = {}
        # Builders register lazily; do it once before any worker thread runs.
        get_registry()

    # =========================================================================
    # Updates
    # =========================================================================

    def update_file(
        self,
        path: str,
        content: str | bytes,
        edit: TextEdit | None = None,
        language: str | None = None,
    ) -> bool:
        """Ingest or update one file.

        Args:
            path: Project-relative POSIX path. Used verbatim as the file's identity.
            content: Full new content of the file.
            edit: Edit region relative to the previously ingested content. When
                given, the file is reparsed incrementally from its previous tree.
            language: Language tag; detected from the extension when omitted.

        Returns:
            True if the file was (re)indexed, False if the content was unchanged.

        Raises:
            IndexingError: Unsupported language or grammar not installed.
            InvariantViolation: The new index would break symbol identity or
                the scope tree. The project is left unchanged.
        """
        source = self._prepare(path, content)
        language = self._language_for(path, language)
        with self._lock:
            if edit is None and self._is_unchanged(path, source, language):
                log.debug("project.file_unchanged", path=path)
                return False
            old_tree = None
            if edit is not None and self._registries.language_of(path) == language:
                old_tree = self._trees.get(path)
            result = index_file(
                path,
                source,
                language,
                self._parser,
                config=self.config.indexer,
                old_tree=old_tree,
                edit=edit,
            )
            self._ingest(path, result)
        return True

    def update_files(
        self,
        files: Mapping[str, str | bytes],
        *,
        should_stop: Callable[[], bool] | None = None,
    ) -> BatchResult:
        """Ingest many files, indexing them in parallel.

        Per-file indexing runs on ``indexer.max_workers`` threads; results are
        ingested one file at a time in sorted path order. ``should_stop`` is
        checked between files; once it returns True the remaining files are
        skipped and ``cancelled`` is set.

        Files with an unsupported language or a missing grammar are reported
        in ``failed``. Invariant violations propagate.
        """
        start = time.perf_counter()
        batch = BatchResult()

        pending: list[tuple[str, bytes, str]] = []
        with self._lock:
            for path in sorted(files):
                source = self._prepare(path, files[path])
                try:
                    language = self._language_for(path, None)
                except IndexingError as e:
                    batch.failed[path] = e.message
                    continue
                if self._is_unchanged(path, source, language):
                    batch.unchanged.append(path)
                else:
                    pending.append((path, source, language))

        futures: list[tuple[str, Future[FileIndexResult]]] = []
        with ThreadPoolExecutor(max_workers=self.config.indexer.max_workers) as pool:
            try:
                for path, source, language in pending:
                    futures.append(
                        (
                            path,
                            pool.submit(
                                index_file,
                                path,
                                source,
                                language,
                                self._parser,
                                config=self.config.indexer,
                            ),
                        )
                    )
                for path, future in futures:
                    if should_stop is not None and should_stop():
                        batch.cancelled = True
                        break
                    try:
                        result = future.result()
                    except IndexingError as e:
                        log.warning("project.file_failed", path=path, error=e.message)
                        batch.failed[path] = e.message
                        continue
                    with self._lock:
                        self._ingest(path, result)
                    batch.indexed.append(path)
            finally:
                for _, future in futures:
                    future.cancel()

        batch.duration_seconds = time.perf_counter() - start
        log.info(
            "project.batch_updated",
            indexed=len(batch.indexed),
            unchanged=len(batch.unchanged),
            failed=len(batch.failed),
            cancelled=batch.cancelled,
            duration_ms=round(batch.duration_seconds * 1000, 2),
        )
        return batch

    def remove_file(self, path: str) -> bool:
        """Purge every contribution of ``path``. Returns False if it was not loaded."""
        with self._lock:
            if not self._registries.remove_file(path):
                return False
            self._trees.pop(path, None)
            self._mapper.remove_file(path)
            self._invalidate(path, file_set_changed=True)
            log.info("project.file_removed", path=path, generation=self._registries.generation)
            return True

    def _prepare(self, path: str, content: str | bytes) -> bytes:
        source = content.encode("utf-8") if isinstance(content, str) else content
        limit = self.config.indexer.max_file_size_kb * 1024
        if len(source) > limit:
            log.warning("project.file_too_large", path=path, size=len(source), limit=limit)
            return b""
        return source

    def _language_for(self, path: str, language: str | None) -> str:
        language = language or detect_language(path)
        if language is None:
            raise IndexingError.unsupported_language(path, None)
        return language

    def _is_unchanged(self, path: str, source: bytes, language: str) -> bool:
        index = self._registries.index_of(path)
        return (
            index is not None
            and index.language == language
            and index.content_hash == content_hash(source)
        )

    def _ingest(self, path: str, result: FileIndexResult) -> None:
        existed = path in self._registries
        self._registries.update_file(path, result.index)
        self._trees[path] = result.parse.tree
        added = self._mapper.add_file(path)
        self._invalidate(path, file_set_changed=added)
        log.info(
            "project.file_indexed",
            path=path,
            language=result.index.language,
            action="updated" if existed else "added",
            definitions=len(result.index.definitions),
            references=len(result.index.references),
            parse_errors=result.index.error_count,
            generation=self._registries.generation,
        )

    def _invalidate(self, path: str, *, file_set_changed: bool) -> None:
        dropped = self._resolver.cache.invalidate_files([path])
        stale_files = self._graph.invalidate([path])
        if file_set_changed:
            dropped += self._resolver.cache.invalidate_misses()
            stale_files |= self._graph.invalidate_misses()
        log.debug(
            "project.invalidated",
            path=path,
            resolutions=dropped,
            call_files=len(stale_files),
            importers=len(self._registries.imports.importers_of(path)),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def files(self) -> list[str]:
        """Loaded file paths, sorted."""
        return self._registries.files

    def get_semantic_index(self, path: str) -> SemanticIndex | None:
        return self._registries.index_of(path)

    def get_definition(self, symbol_id: SymbolId) -> Definition | None:
        return self._registries.definitions.get(symbol_id)

    def go_to_definition(self, path: str, line: int, column: int) -> Definition | None:
        """Definition of the symbol at (line, column) of ``path``.

        On a use site, the reference is resolved. On a declaration's name,
        the declaration itself is returned, except that an import binding is
        followed to the imported definition when it is part of the project.
        Module namespaces have no definition and yield None.
        """
        with self._lock:
            symbol_id = self._symbol_at(path, line, column)
            if symbol_id is None:
                return None
            return self._registries.definitions.get(symbol_id)

    def find_references(self, path: str, line: int, column: int) -> list[Reference]:
        """Every reference in the project resolving to the symbol at (line, column).

        The declaration's own name site is not a reference and is excluded.
        Results are ordered by file, then position.
        """
        with self._lock:
            symbol_id = self._symbol_at(path, line, column)
            if symbol_id is None:
                return []
            target = self._registries.definitions.get(symbol_id)
            if target is None or target.is_anonymous:
                return []
            # Aliased, default and re-exported imports bind the symbol under other names.
            names = {target.name}
            names.update(
                imp.name
                for imp in self._registries.imports
                if imp.import_kind is not ImportKind.WILDCARD
                and self._resolver.resolve_definition(imp).symbol_id == symbol_id
            )
            found = [
                reference
                for name in sorted(names)
                for reference in self._registries.references.named(name)
                if reference.location != target.name_location
                and self._resolver.resolve_reference(reference).symbol_id == symbol_id
            ]
        found.sort(key=lambda r: (r.location.file_path, r.location.start))
        return found

    def _symbol_at(self, path: str, line: int, column: int) -> SymbolId | None:
        reference = self._registries.references.at_position(path, line, column)
        if reference is not None:
            resolution = self._resolver.resolve_reference(reference)
            if not resolution.is_resolved or resolution.symbol_id is None:
                log.debug(
                    "project.definition_not_found",
                    path=path,
                    line=line,
                    column=column,
                    status=resolution.status.value,
                    detail=resolution.detail,
                )
                return None
            if is_module_symbol(resolution.symbol_id):
                return None
            return resolution.symbol_id

        for definition in self._registries.definitions.in_file(path):
            if definition.name_location is None or not definition.name_location.contains(line, column):
                continue
            if isinstance(definition, ImportDefinition):
                resolution = self._resolver.resolve_definition(definition)
                if resolution.is_resolved and resolution.symbol_id and not is_module_symbol(resolution.symbol_id):
                    return resolution.symbol_id
            return definition.symbol_id
        return None

    def get_call_graph(self, include_unresolved: bool | None = None) -> CallGraph:
        """Project call graph as of the current registry generation.

        Args:
            include_unresolved: Keep unresolved and external calls on each
                node's outgoing list. Defaults to ``call_graph.include_unresolved``.
        """
        with self._lock:
            return self._graph.build(include_unresolved)

    def stats(self) -> ProjectStats:
        with self._lock:
            indices = [self._registries.index_of(path) for path in self._registries.files]
            cache_stats = self._resolver.cache.stats
            return ProjectStats(
                files=len(indices),
                definitions=len(self._registries.definitions),
                references=sum(len(i.references) for i in indices if i is not None),
                scopes=sum(len(i.scopes) for i in indices if i is not None),
                generation=self._registries.generation,
                cached_resolutions=len(self._resolver.cache),
                cache_hits=cache_stats.hits,
                cache_misses=cache_stats.misses,
                cache_invalidated=cache_stats.invalidated,
                cached_call_files=self._graph.cached_files,
            )
