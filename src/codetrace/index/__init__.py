"""Index module - semantic indexing, name resolution and call graphs.

This module provides:
- Per-file indexing: Tree-sitter parsing and query-driven semantic indexes
- Project registries: definitions, scopes, imports, exports, type members
- Resolution: scope-chain walking, import/re-export chains, member access
- Call graph: resolved call edges, callbacks and entry points

Public API is in `codetrace.index.ops`:
- Project: Incremental update coordinator and query surface
- BatchResult, ProjectStats: Result types

Internal implementations are in `codetrace.index._internal/`.
"""

from codetrace.index.models import (
    ANONYMOUS,
    CallbackContext,
    CallEdge,
    CallGraph,
    CallGraphNode,
    Definition,
    ExportEntry,
    ImportDefinition,
    ImportKind,
    LexicalScope,
    Location,
    Reference,
    ReferenceKind,
    ReExport,
    Resolution,
    ResolutionStatus,
    ScopeId,
    ScopeKind,
    SemanticIndex,
    SymbolId,
    SymbolKind,
    TextEdit,
    TypeInfo,
    TypeSource,
)
from codetrace.index.ops import BatchResult, Project, ProjectStats

__all__ = [
    # Public API (ops.py)
    "Project",
    "BatchResult",
    "ProjectStats",
    # Identity
    "ANONYMOUS",
    "ScopeId",
    "SymbolId",
    "Location",
    # Enums
    "ImportKind",
    "ReferenceKind",
    "ResolutionStatus",
    "ScopeKind",
    "SymbolKind",
    "TypeSource",
    # Semantic index
    "CallbackContext",
    "Definition",
    "ExportEntry",
    "ImportDefinition",
    "LexicalScope",
    "ReExport",
    "Reference",
    "SemanticIndex",
    "TextEdit",
    "TypeInfo",
    # Resolution and call graph
    "CallEdge",
    "CallGraph",
    "CallGraphNode",
    "Resolution",
]
