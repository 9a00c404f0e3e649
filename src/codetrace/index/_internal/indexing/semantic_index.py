"""Single-file indexing: parse, query, build.

``index_file`` is the whole per-file stage of the pipeline. It reads only
the given content and writes only the returned ``SemanticIndex``, so calls
for different files may run concurrently. Aggregation into the project
registries happens afterwards, serially.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from codetrace.core.errors import IndexingError
from codetrace.index._internal.extraction import get_registry
from codetrace.index._internal.extraction.captures import order_captures
from codetrace.index._internal.parsing.packs import get_pack

if TYPE_CHECKING:
    from codetrace.config.models import IndexerConfig
    from codetrace.index._internal.parsing.treesitter import ParseResult, TreeSitterParser
    from codetrace.index.models import SemanticIndex, TextEdit

log = structlog.get_logger(__name__)


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


@dataclass
class FileIndexResult:
    """Output of indexing one file."""

    index: SemanticIndex
    parse: ParseResult
    unknown_captures: int = 0
    unhandled_captures: int = 0
    malformed_captures: int = 0
    duration_ms: float = 0.0


def index_file(
    file_path: str,
    content: bytes,
    language: str,
    parser: TreeSitterParser,
    *,
    config: IndexerConfig | None = None,
    old_tree: object | None = None,
    edit: TextEdit | None = None,
) -> FileIndexResult:
    """Build the semantic index of one file.

    Args:
        file_path: Project-relative path, used verbatim in every location.
        content: Full file content.
        language: Language tag (``python``, ``javascript``, ``typescript``, ``tsx``).
        parser: Shared parser adapter.
        config: Indexer settings.
        old_tree: Previous tree of this file, for incremental reparse.
        edit: Edit region between the previous and the new content.

    Returns:
        FileIndexResult carrying the index and the parse tree to keep for
        the next incremental reparse.

    Raises:
        IndexingError: Unknown language or grammar not installed.
    """
    pack = get_pack(language)
    if pack is None:
        raise IndexingError.unsupported_language(file_path, language)
    builder_cls = get_registry().get(pack.family)
    if builder_cls is None:
        raise IndexingError.unsupported_language(file_path, language)

    start = time.perf_counter()
    parsed = parser.parse(content, language, old_tree=old_tree, edit=edit)
    captures, unknown = order_captures(parser.run_queries(parsed))
    if unknown:
        log.debug("index.unknown_captures", path=file_path, names=sorted(set(unknown)))

    builder = builder_cls(file_path, content, pack, config)
    index = builder.build(
        parsed.root_node,
        captures,
        content_hash=content_hash(content),
        error_count=parsed.error_count,
    )
    duration_ms = (time.perf_counter() - start) * 1000

    log.debug(
        "index.file_indexed",
        path=file_path,
        language=language,
        definitions=len(index.definitions),
        references=len(index.references),
        scopes=len(index.scopes),
        parse_errors=parsed.error_count,
        incremental=parsed.incremental,
        duration_ms=round(duration_ms, 2),
    )
    return FileIndexResult(
        index=index,
        parse=parsed,
        unknown_captures=len(unknown),
        unhandled_captures=len(builder.unhandled),
        malformed_captures=builder.malformed,
        duration_ms=duration_ms,
    )
