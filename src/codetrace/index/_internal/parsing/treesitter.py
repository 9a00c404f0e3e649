"""Tree-sitter parsing adapter.

Produces concrete syntax trees for every supported language and runs the
language's semantic queries over them. Supports incremental re-parse: the
previous tree is edited in place (``Tree.edit``) and handed back to the
parser so unaffected subtrees are reused.

Grammars, compiled queries and per-language parsers are cached on the
adapter instance. A ``tree_sitter.Parser`` is not safe to share between
threads, so parsing creates a parser per call; languages and compiled
queries are immutable and shared.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
import tree_sitter
from tree_sitter import Query as _TSQuery
from tree_sitter import QueryCursor as _TSQueryCursor

from codetrace.core.errors import IndexingError
from codetrace.index._internal.parsing.packs import LanguagePack, get_pack

if TYPE_CHECKING:
    from codetrace.index.models import TextEdit

log = structlog.get_logger(__name__)


@dataclass
class ParseResult:
    """Result of parsing a file."""

    tree: Any  # Tree-sitter Tree (not serializable)
    language: str
    error_count: int
    total_nodes: int
    root_node: Any  # Tree-sitter Node
    incremental: bool = False


@dataclass
class TreeSitterParser:
    """
    Tree-sitter parser for semantic indexing.

    Usage::

        parser = TreeSitterParser()

        # Full parse
        result = parser.parse(source_bytes, "python")

        # Incremental parse after an edit
        result = parser.parse(new_bytes, "python", old_tree=result.tree, edit=edit)

        # Run the language's semantic queries
        for capture_name, node in parser.run_queries(result):
            ...
    """

    _languages: dict[str, Any] = field(default_factory=dict, repr=False)
    _queries: dict[str, list[Any]] = field(default_factory=dict, repr=False)

    def _get_pack(self, language: str) -> LanguagePack:
        pack = get_pack(language)
        if pack is None:
            raise IndexingError.unsupported_language("<unknown>", language)
        return pack

    def _get_language(self, pack: LanguagePack) -> Any:
        """Get or load a Tree-sitter language.

        Uses LanguagePack metadata for module/function resolution.
        """
        if pack.grammar_name in self._languages:
            return self._languages[pack.grammar_name]

        try:
            mod = importlib.import_module(pack.grammar_module)
        except ImportError as err:
            raise IndexingError.grammar_not_installed(pack.name, pack.grammar_module) from err

        lang_fn = getattr(mod, pack.language_func or "language", None)
        if lang_fn is None:
            raise IndexingError.grammar_not_installed(pack.name, pack.grammar_module)

        lang = tree_sitter.Language(lang_fn())
        self._languages[pack.grammar_name] = lang
        return lang

    def parse(
        self,
        content: bytes,
        language: str,
        *,
        old_tree: Any | None = None,
        edit: TextEdit | None = None,
    ) -> ParseResult:
        """
        Parse source bytes with Tree-sitter.

        Args:
            content: Full (new) file content.
            language: Language tag (see ``PACKS``).
            old_tree: Tree of the previous content, enabling incremental reparse.
            edit: Edit region between the previous and new content. Ignored
                  without ``old_tree``.

        Returns:
            ParseResult with tree and error info. Malformed input still yields
            a tree; ERROR and missing nodes are counted, never raised.
        """
        pack = self._get_pack(language)
        ts_lang = self._get_language(pack)
        parser = tree_sitter.Parser(ts_lang)

        incremental = old_tree is not None and edit is not None
        if incremental:
            old_tree.edit(
                start_byte=edit.start_byte,
                old_end_byte=edit.old_end_byte,
                new_end_byte=edit.new_end_byte,
                start_point=edit.start_point,
                old_end_point=edit.old_end_point,
                new_end_point=edit.new_end_point,
            )
            tree = parser.parse(content, old_tree)
        else:
            tree = parser.parse(content)

        # Count errors and total nodes
        error_count = 0
        total_nodes = 0
        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            total_nodes += 1
            if node.type == "ERROR" or node.is_missing:
                error_count += 1
            stack.extend(node.children)

        return ParseResult(
            tree=tree,
            language=language,
            error_count=error_count,
            total_nodes=total_nodes,
            root_node=tree.root_node,
            incremental=incremental,
        )

    def _compiled_queries(self, pack: LanguagePack) -> list[Any]:
        """Compile each semantic pattern of ``pack`` once.

        A pattern the installed grammar rejects is logged and skipped.
        """
        cached = self._queries.get(pack.name)
        if cached is not None:
            return cached

        ts_lang = self._get_language(pack)
        compiled: list[Any] = []
        for pattern in pack.queries:
            try:
                compiled.append(_TSQuery(ts_lang, pattern))
            except Exception as e:  # tree_sitter raises QueryError / NameError variants
                log.warning(
                    "query.compile_failed",
                    language=pack.name,
                    pattern=pattern,
                    error=str(e),
                )
        self._queries[pack.name] = compiled
        return compiled

    def run_queries(self, result: ParseResult) -> list[tuple[str, Any]]:
        """Run every semantic query of the result's language.

        Returns:
            ``(capture_name, node)`` pairs in no particular order. Duplicates
            are possible when patterns overlap; callers dedupe.
        """
        pack = self._get_pack(result.language)
        out: list[tuple[str, Any]] = []
        for query in self._compiled_queries(pack):
            cursor = _TSQueryCursor(query)
            captures: dict[str, list[Any]] = cursor.captures(result.root_node)
            for name, nodes in captures.items():
                for node in nodes:
                    out.append((name, node))
        return out

    def query_count(self, language: str) -> int:
        """Number of compiled patterns for ``language``."""
        return len(self._compiled_queries(self._get_pack(language)))
