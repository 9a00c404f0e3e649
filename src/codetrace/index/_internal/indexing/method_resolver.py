"""Member access resolution: receivers, static types and inheritance.

A member chain such as ``self.repo.save`` is resolved left to right:

- the root is ``self``/``cls``/``this`` (the enclosing class), ``super``
  (the enclosing class's parents) or an ordinary name resolved lexically;
- a call root (``Repo()``, ``new Repo()``, ``make()``) is an instance of
  the class called, or of the called function's declared return type;
- a module path root (``crate::shapes::``, ``super::``) is the module file
  it names;
- a module namespace yields its exported member;
- a class yields its member, searching parent types when the class itself
  does not declare it;
- a variable, parameter or property yields the members of its static type
  (declared annotation, constructor inference or the declared return type
  of the function that produced it).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from codetrace.index._internal.indexing.scope_resolver import enclosing_type
from codetrace.index.models import (
    Resolution,
    SymbolKind,
    TypeSource,
    is_module_symbol,
    module_path_of,
    module_symbol_id,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from codetrace.index._internal.indexing.resolver import Resolver
    from codetrace.index._internal.registry import ProjectRegistries
    from codetrace.index.models import Definition, Location, ScopeId, SymbolId


class ReceiverKind(str, Enum):
    MODULE = "module"
    TYPE = "type"  # static access: ClassName.member
    INSTANCE = "instance"


@dataclass(frozen=True, slots=True)
class Receiver:
    """What the left-hand side of a member access denotes."""

    kind: ReceiverKind
    symbol_id: SymbolId  # module id or type id
    skip_own: bool = False  # super: start the lookup at the parents


class MethodResolver:
    """Resolves member chains against type-member tables and namespaces."""

    def __init__(self, registries: ProjectRegistries, resolver: Resolver) -> None:
        self._registries = registries
        self._resolver = resolver
        self._in_progress: set[SymbolId] = set()

    # =========================================================================
    # Chains
    # =========================================================================

    def resolve_chain(self, chain: tuple[str, ...], scope_id: ScopeId, location: Location) -> Resolution:
        """Resolve the last element of a member chain seen at ``location``."""
        key = (scope_id, ".".join(chain), location.start)
        cached = self._resolver.cache.get(key)
        if cached is not None:
            return cached
        via: set[str] = {location.file_path}
        resolution = self._resolve_chain(chain, scope_id, location, via)
        self._resolver.cache.put(key, resolution, location.file_path)
        return resolution

    def _resolve_chain(
        self,
        chain: tuple[str, ...],
        scope_id: ScopeId,
        location: Location,
        via: set[str],
    ) -> Resolution:
        receiver = self._root_receiver(chain[0], scope_id, location, via)
        if isinstance(receiver, Resolution):
            return receiver

        for position, part in enumerate(chain[1:], start=1):
            found = self._member_of(receiver, part, via)
            if not found.is_resolved or found.symbol_id is None:
                return found
            if position == len(chain) - 1:
                return found
            next_receiver = self.receiver_of_symbol(found.symbol_id, via)
            if next_receiver is None:
                return Resolution.unresolved(
                    frozenset(via), detail=f"no static type for {'.'.join(chain[: position + 1])}"
                )
            receiver = next_receiver
        return Resolution.unresolved(frozenset(via), detail="empty member chain")

    def _root_receiver(
        self,
        root: str,
        scope_id: ScopeId,
        location: Location,
        via: set[str],
    ) -> Receiver | Resolution:
        if not root:
            return Resolution.unresolved(frozenset(via), detail="dynamic receiver")
        if root.endswith("()"):
            # Repo().save() / new Repo().save() / make().run()
            type_id = self.call_result_type(root[:-2], scope_id, location, via)
            if type_id is None:
                return Resolution.unresolved(frozenset(via), detail=f"no static type for {root}")
            return Receiver(ReceiverKind.INSTANCE, type_id)
        if root.endswith("::"):
            # crate::shapes::area() / super::helper()
            module = self._resolver.module_at(root[:-2], location.file_path)
            if module is None:
                return Resolution.unresolved(frozenset(via), detail=f"no module {root[:-2]}")
            via.add(module)
            return Receiver(ReceiverKind.MODULE, module_symbol_id(module))

        pack = self._resolver.pack_for(location.file_path)
        self_names = pack.self_names if pack is not None else frozenset({"this"})
        if root in self_names or root == "super":
            owner = enclosing_type(self._registries, scope_id)
            if owner is None:
                return Resolution.unresolved(frozenset(via), detail=f"{root} outside a class")
            if root == "super":
                return Receiver(ReceiverKind.INSTANCE, owner.symbol_id, skip_own=True)
            kind = ReceiverKind.TYPE if root in ("cls", "Self") else ReceiverKind.INSTANCE
            return Receiver(kind, owner.symbol_id)

        resolution = self._resolver.resolve_name(root, scope_id, location)
        via.update(resolution.via)
        if not resolution.is_resolved or resolution.symbol_id is None:
            return Resolution(resolution.status, None, frozenset(via), resolution.detail)
        receiver = self.receiver_of_symbol(resolution.symbol_id, via)
        if receiver is None:
            return Resolution.unresolved(frozenset(via), detail=f"no static type for {root}")
        return receiver

    # =========================================================================
    # Receivers
    # =========================================================================

    def receiver_of_symbol(self, symbol_id: SymbolId, via: set[str]) -> Receiver | None:
        """What member access on ``symbol_id`` reaches into."""
        if is_module_symbol(symbol_id):
            return Receiver(ReceiverKind.MODULE, symbol_id)
        definition = self._registries.definitions.get(symbol_id)
        if definition is None:
            return None
        via.add(definition.file_path)
        if definition.is_type:
            return Receiver(ReceiverKind.TYPE, definition.symbol_id)
        type_id = self.static_type_of(definition, via)
        if type_id is None:
            return None
        return Receiver(ReceiverKind.INSTANCE, type_id)

    def static_type_of(self, definition: Definition, via: set[str]) -> SymbolId | None:
        """Type id of the value bound by ``definition``, if it can be inferred."""
        if definition.symbol_id in self._in_progress:
            return None
        self._in_progress.add(definition.symbol_id)
        try:
            return self._static_type_of(definition, via)
        finally:
            self._in_progress.discard(definition.symbol_id)

    def _static_type_of(self, definition: Definition, via: set[str]) -> SymbolId | None:
        if definition.kind is SymbolKind.TYPE_ALIAS and definition.type_info is not None:
            return self._resolver.resolve_type_name(
                definition.type_info.type_name, definition.scope_id, definition.location, via
            )
        info = definition.type_info
        if info is None:
            return None
        if info.source is not TypeSource.CALL_RETURN:
            return self._resolver.resolve_type_name(info.type_name, definition.scope_id, definition.location, via)

        # x = make() / x = Foo() / x = factory.build()
        return self.call_result_type(info.type_name, definition.scope_id, definition.location, via)

    def call_result_type(self, callee: str, scope_id: ScopeId, location: Location, via: set[str]) -> SymbolId | None:
        """Type of the value a call to ``callee`` produces.

        A class yields an instance of itself; a function yields its declared
        return type.
        """
        chain = tuple(callee.split("."))
        if len(chain) > 1:
            produced = self._resolve_chain(chain, scope_id, location, via)
        else:
            produced = self._resolver.resolve_name(chain[0], scope_id, location)
            via.update(produced.via)
        if not produced.is_resolved or produced.symbol_id is None:
            return None
        producer = self._registries.definitions.get(produced.symbol_id)
        if producer is None:
            return None
        if producer.is_type:
            return producer.symbol_id
        if producer.is_callable and producer.return_type:
            return self._resolver.resolve_type_name(producer.return_type, producer.scope_id, producer.location, via)
        return None

    # =========================================================================
    # Members
    # =========================================================================

    def _member_of(self, receiver: Receiver, name: str, via: set[str]) -> Resolution:
        if receiver.kind is ReceiverKind.MODULE:
            found = self._resolver.resolve_module_member(module_path_of(receiver.symbol_id), name, via)
            via.update(found.via)
            return Resolution(found.status, found.symbol_id, frozenset(via), found.detail)

        if receiver.skip_own:
            member_id = None
            for parent_id in self.parent_types(receiver.symbol_id, via):
                member_id = self.find_member(parent_id, name, via)
                if member_id is not None:
                    break
        else:
            member_id = self.find_member(receiver.symbol_id, name, via)
        if member_id is None:
            return Resolution.unresolved(frozenset(via), detail=f"no member {name!r}")
        return Resolution.resolved(member_id, frozenset(via))

    def find_member(
        self,
        type_id: SymbolId,
        name: str,
        via: set[str],
        visited: set[SymbolId] | None = None,
    ) -> SymbolId | None:
        """Member ``name`` of ``type_id`` or its nearest ancestor declaring it."""
        visited = set() if visited is None else visited
        if type_id in visited:
            return None
        visited.add(type_id)
        definition = self._registries.definitions.get(type_id)
        if definition is not None:
            via.add(definition.file_path)
        member_id = self._registries.types.member(type_id, name)
        if member_id is not None:
            return member_id
        for parent_id in self.parent_types(type_id, via):
            found = self.find_member(parent_id, name, via, visited)
            if found is not None:
                return found
        return None

    def parent_types(self, type_id: SymbolId, via: set[str]) -> Iterator[SymbolId]:
        """Resolved parent types (extends, then implements) of ``type_id``."""
        definition = self._registries.definitions.get(type_id)
        if definition is None:
            return
        for parent_name in self._registries.types.parent_names(type_id):
            parent_id = self._resolver.resolve_type_name(parent_name, definition.scope_id, definition.location, via)
            if parent_id is not None and parent_id != type_id:
                yield parent_id

    def constructor_of(self, type_id: SymbolId, constructor_name: str, via: set[str]) -> SymbolId | None:
        """Constructor a call to the class ``type_id`` runs, inherited ones included."""
        member_id = self.find_member(type_id, constructor_name, via)
        if member_id is None:
            return None
        member = self._registries.definitions.get(member_id)
        if member is None or not member.is_callable:
            return None
        return member_id
