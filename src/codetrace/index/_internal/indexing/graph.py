"""Call graph construction over resolved call references.

Per-file call data (edges plus callback markers) is computed from the
file's references and cached with the set of files its resolutions
consulted. The project-wide ``CallGraph`` is assembled from those per-file
pieces on demand.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from codetrace.config.models import CallGraphConfig
from codetrace.index._internal.indexing.scope_resolver import calling_context
from codetrace.index._internal.parsing.packs import get_pack
from codetrace.index.models import (
    CallEdge,
    CallGraph,
    CallGraphNode,
    ReferenceKind,
    ResolutionStatus,
    SymbolKind,
    is_module_symbol,
    module_path_of,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from codetrace.index._internal.indexing.resolver import Resolver
    from codetrace.index._internal.registry import ProjectRegistries
    from codetrace.index.models import Definition, Location, Reference, SymbolId

log = structlog.get_logger(__name__)

_CALL_KINDS = frozenset({ReferenceKind.CALL, ReferenceKind.CONSTRUCT})


@dataclass
class FileCalls:
    """Everything one file contributes to the call graph."""

    edges: list[CallEdge] = field(default_factory=list)
    callbacks: set[SymbolId] = field(default_factory=set)
    callback_external: set[SymbolId] = field(default_factory=set)
    via: set[str] = field(default_factory=set)
    has_misses: bool = False


class CallGraphBuilder:
    """Builds ``CallGraph`` snapshots from registry state.

    Usage::

        builder = CallGraphBuilder(registries, resolver)
        graph = builder.build()
        builder.invalidate(["src/app.ts"])  # after that file changes
    """

    def __init__(
        self,
        registries: ProjectRegistries,
        resolver: Resolver,
        config: CallGraphConfig | None = None,
    ) -> None:
        self._registries = registries
        self._resolver = resolver
        self._config = config or CallGraphConfig()
        self._file_calls: dict[str, FileCalls] = {}

    # =========================================================================
    # Invalidation
    # =========================================================================

    def invalidate(self, file_paths: Iterable[str]) -> set[str]:
        """Drop cached call data of every file whose provenance touches ``file_paths``."""
        changed = set(file_paths)
        dropped = {
            path
            for path, calls in self._file_calls.items()
            if path in changed or not calls.via.isdisjoint(changed)
        }
        for path in dropped:
            del self._file_calls[path]
        return dropped

    def invalidate_misses(self) -> set[str]:
        """Drop cached call data of files with calls that found no target."""
        dropped = {path for path, calls in self._file_calls.items() if calls.has_misses}
        for path in dropped:
            del self._file_calls[path]
        return dropped

    def clear(self) -> None:
        self._file_calls.clear()

    @property
    def cached_files(self) -> int:
        return len(self._file_calls)

    # =========================================================================
    # Per-file call data
    # =========================================================================

    def file_calls(self, file_path: str) -> FileCalls:
        cached = self._file_calls.get(file_path)
        if cached is not None:
            return cached
        calls = self._compute_file_calls(file_path)
        self._file_calls[file_path] = calls
        return calls

    def _compute_file_calls(self, file_path: str) -> FileCalls:
        calls = FileCalls(via={file_path})
        for reference in self._registries.references.in_file(file_path):
            if reference.kind in _CALL_KINDS:
                status, callee_id = self._call_target(reference, calls)
                calls.edges.append(
                    CallEdge(
                        caller_id=calling_context(self._registries, reference.scope_id, file_path),
                        callee_id=callee_id,
                        name=reference.name,
                        location=reference.location,
                        status=status,
                        kind=reference.kind,
                    )
                )
            elif reference.argument_of is not None:
                self._named_callback(reference, reference.argument_of, calls)

        for definition in self._registries.definitions.in_file(file_path):
            if definition.is_callable and definition.callback is not None:
                self._record_callback(
                    definition,
                    definition.callback.call_location,
                    definition.location,
                    calls,
                )
        return calls

    def _call_target(self, reference: Reference, calls: FileCalls) -> tuple[ResolutionStatus, SymbolId | None]:
        resolution = self._resolver.resolve_reference(reference)
        calls.via.update(resolution.via)
        if resolution.status is not ResolutionStatus.RESOLVED:
            calls.has_misses = True
        if not resolution.is_resolved or resolution.symbol_id is None:
            return resolution.status, None
        if is_module_symbol(resolution.symbol_id):
            return ResolutionStatus.UNRESOLVED, None
        target = self._registries.definitions.get(resolution.symbol_id)
        if target is None:
            return ResolutionStatus.UNRESOLVED, None
        if target.kind is SymbolKind.CLASS:
            pack = self._resolver.pack_for(target.file_path)
            constructor = (
                self._resolver.members.constructor_of(target.symbol_id, pack.constructor_name, calls.via)
                if pack is not None and pack.constructor_name
                else None
            )
            return ResolutionStatus.RESOLVED, constructor or target.symbol_id
        if target.is_callable:
            return ResolutionStatus.RESOLVED, target.symbol_id
        return ResolutionStatus.UNRESOLVED, None

    def _named_callback(self, reference: Reference, call_location: Location, calls: FileCalls) -> None:
        """A named callable passed as an argument (``items.map(transform)``)."""
        resolution = self._resolver.resolve_reference(reference)
        calls.via.update(resolution.via)
        if not resolution.is_resolved or resolution.symbol_id is None:
            return
        target = self._registries.definitions.get(resolution.symbol_id)
        if target is None or not target.is_callable:
            return
        self._record_callback(target, call_location, reference.location, calls)

    def _record_callback(
        self,
        callback: Definition,
        call_location: Location,
        at: Location,
        calls: FileCalls,
    ) -> None:
        calls.callbacks.add(callback.symbol_id)
        receiving = self._registries.references.at(call_location.key)
        if receiving is None or receiving.kind not in _CALL_KINDS:
            calls.callback_external.add(callback.symbol_id)
            return
        status, receiver_id = self._call_target(receiving, calls)
        if status is not ResolutionStatus.RESOLVED or receiver_id is None:
            calls.callback_external.add(callback.symbol_id)
            return
        receiver = self._registries.definitions.get(receiver_id)
        if receiver is None or not receiver.is_callable:
            return
        calls.edges.append(
            CallEdge(
                caller_id=receiver_id,
                callee_id=callback.symbol_id,
                name=callback.name,
                location=at,
                status=ResolutionStatus.RESOLVED,
                kind=ReferenceKind.CALL,
                via_callback=True,
            )
        )

    # =========================================================================
    # Graph assembly
    # =========================================================================

    def build(self, include_unresolved: bool | None = None) -> CallGraph:
        """Assemble the project call graph from (cached) per-file call data."""
        if include_unresolved is None:
            include_unresolved = self._config.include_unresolved

        # Body-less signatures are never called directly.
        nodes: dict[SymbolId, CallGraphNode] = {
            d.symbol_id: CallGraphNode(definition=d)
            for d in self._registries.definitions.callables()
            if d.body_scope_id is not None
        }
        callers: dict[SymbolId, set[SymbolId]] = defaultdict(set)
        top_level: dict[str, list[CallEdge]] = defaultdict(list)

        for file_path in self._registries.files:
            calls = self.file_calls(file_path)
            for edge in calls.edges:
                resolved = edge.status is ResolutionStatus.RESOLVED
                if not resolved and not include_unresolved:
                    continue
                caller = nodes.get(edge.caller_id)
                if caller is not None:
                    caller.outgoing.append(edge)
                elif is_module_symbol(edge.caller_id):
                    top_level[module_path_of(edge.caller_id)].append(edge)
                if resolved and edge.callee_id is not None:
                    callers[edge.callee_id].add(edge.caller_id)
                    callee = nodes.get(edge.callee_id)
                    if callee is not None:
                        callee.callers.add(edge.caller_id)
            for symbol_id in calls.callbacks:
                if symbol_id in nodes:
                    nodes[symbol_id].is_callback = True
            for symbol_id in calls.callback_external:
                if symbol_id in nodes:
                    nodes[symbol_id].callback_external = True

        for node in nodes.values():
            node.outgoing.sort(key=lambda e: (e.location.file_path, e.location.start))

        entry_points = tuple(sorted(s for s, node in nodes.items() if self._is_entry_point(node)))
        log.debug(
            "call_graph.built",
            nodes=len(nodes),
            entry_points=len(entry_points),
            cached_files=len(self._file_calls),
        )
        return CallGraph(
            nodes=nodes,
            entry_points=entry_points,
            callers={k: frozenset(v) for k, v in callers.items()},
            top_level_calls={k: tuple(v) for k, v in top_level.items()},
            generation=self._registries.generation,
        )

    def _is_entry_point(self, node: CallGraphNode) -> bool:
        if node.callback_external:
            return False
        if node.callers - {node.symbol_id}:
            return False
        pack = self._resolver.pack_for(node.definition.file_path)
        if pack is not None and pack.is_framework_hook(node.definition.name):
            return False
        return self.is_externally_visible(node.definition)

    def is_externally_visible(self, definition: Definition) -> bool:
        """Exported, a public method of an exported type, or a lifecycle hook."""
        if definition.is_exported:
            return True
        if definition.is_anonymous:
            return False
        language = self._registries.language_of(definition.file_path)
        pack = get_pack(language) if language else None
        hooks = set(self._config.extra_lifecycle_hooks)
        if pack is not None:
            hooks |= pack.lifecycle_hooks
        if definition.name in hooks:
            return True
        if definition.parent_type_id is not None and not definition.is_private:
            owner = self._registries.definitions.get(definition.parent_type_id)
            return owner is not None and owner.is_exported
        return False
