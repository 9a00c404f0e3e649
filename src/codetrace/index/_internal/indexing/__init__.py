"""Indexing layers: per-file indexing, name resolution, call graph."""

from codetrace.index._internal.indexing.cache import CacheStats, ResolutionCache
from codetrace.index._internal.indexing.graph import CallGraphBuilder, FileCalls
from codetrace.index._internal.indexing.method_resolver import MethodResolver, Receiver, ReceiverKind
from codetrace.index._internal.indexing.module_mapping import (
    ModuleMapper,
    build_module_index,
    path_to_module,
    resolve_module_to_path,
)
from codetrace.index._internal.indexing.resolver import Resolver
from codetrace.index._internal.indexing.scope_resolver import (
    LocalLookup,
    calling_context,
    enclosing_type,
    find_local_binding,
)
from codetrace.index._internal.indexing.semantic_index import (
    FileIndexResult,
    content_hash,
    index_file,
)

__all__ = [
    # Per-file
    "FileIndexResult",
    "content_hash",
    "index_file",
    # Modules
    "ModuleMapper",
    "build_module_index",
    "path_to_module",
    "resolve_module_to_path",
    # Resolution
    "CacheStats",
    "LocalLookup",
    "MethodResolver",
    "Receiver",
    "ReceiverKind",
    "ResolutionCache",
    "Resolver",
    "calling_context",
    "enclosing_type",
    "find_local_binding",
    # Call graph
    "CallGraphBuilder",
    "FileCalls",
]
