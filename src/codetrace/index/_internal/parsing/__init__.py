"""Tree-sitter parsing for semantic indexing."""

from codetrace.index._internal.parsing.packs import (
    PACKS,
    LanguagePack,
    detect_language,
    get_pack,
    get_pack_for_ext,
)
from codetrace.index._internal.parsing.treesitter import (
    ParseResult,
    TreeSitterParser,
)

__all__ = [
    "PACKS",
    "LanguagePack",
    "ParseResult",
    "TreeSitterParser",
    "detect_language",
    "get_pack",
    "get_pack_for_ext",
]
