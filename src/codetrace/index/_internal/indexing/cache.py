"""Resolution cache with provenance-based invalidation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from codetrace.index.models import ResolutionStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from codetrace.index.models import Resolution, ScopeId

# (scope, name or dotted chain, reference position or None)
CacheKey = tuple["ScopeId", str, "tuple[int, int] | None"]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidated: int = 0


class ResolutionCache:
    """Memoizes resolutions by (scope, name[, position]).

    Position is part of the key only when the answer depends on it.
    Each entry is indexed under every file in its provenance (``via``), so
    a change to any file it consulted drops it. Entries that found no target
    (EXTERNAL or UNRESOLVED) may depend on a file that does not exist yet,
    so they are also dropped whenever the project's file set changes.
    """

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self._entries: dict[CacheKey, Resolution] = {}
        self._by_file: dict[str, set[CacheKey]] = defaultdict(set)
        self._misses: set[CacheKey] = set()
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Resolution | None:
        if not self.enabled:
            return None
        found = self._entries.get(key)
        if found is None:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
        return found

    def put(self, key: CacheKey, resolution: Resolution, owner_file: str) -> None:
        if not self.enabled:
            return
        self._entries[key] = resolution
        self._by_file[owner_file].add(key)
        for file_path in resolution.via:
            self._by_file[file_path].add(key)
        if resolution.status is not ResolutionStatus.RESOLVED:
            self._misses.add(key)

    def invalidate_files(self, file_paths: Iterable[str]) -> int:
        """Drop every entry whose provenance includes one of ``file_paths``."""
        dropped = 0
        for file_path in file_paths:
            for key in self._by_file.pop(file_path, set()):
                if self._entries.pop(key, None) is not None:
                    dropped += 1
                self._misses.discard(key)
        self.stats.invalidated += dropped
        return dropped

    def invalidate_misses(self) -> int:
        dropped = 0
        for key in self._misses:
            if self._entries.pop(key, None) is not None:
                dropped += 1
        self._misses.clear()
        self.stats.invalidated += dropped
        return dropped

    def clear(self) -> None:
        self._entries.clear()
        self._by_file.clear()
        self._misses.clear()
