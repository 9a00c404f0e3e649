"""Project-wide export registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codetrace.index.models import ExportEntry, SemanticIndex


class ExportRegistry:
    """Named and default exports plus ``export *`` sources, per file."""

    def __init__(self) -> None:
        self._named: dict[str, dict[str, ExportEntry]] = {}
        self._default: dict[str, ExportEntry] = {}
        self._wildcards: dict[str, tuple[str, ...]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def update_file(self, file_path: str, index: SemanticIndex) -> None:
        named: dict[str, ExportEntry] = {}
        default: ExportEntry | None = None
        for entry in index.exports:
            if entry.is_default or entry.export_name == "default":
                default = entry
            else:
                # Later export statements of the same name win, as at runtime.
                named[entry.export_name] = entry
        self._named[file_path] = named
        if default is not None:
            self._default[file_path] = default
        else:
            self._default.pop(file_path, None)
        self._wildcards[file_path] = tuple(index.wildcard_reexports)
        self._generation += 1

    def remove_file(self, file_path: str) -> None:
        existed = self._named.pop(file_path, None) is not None
        self._default.pop(file_path, None)
        self._wildcards.pop(file_path, None)
        if existed:
            self._generation += 1

    def get(self, file_path: str, export_name: str) -> ExportEntry | None:
        if export_name == "default":
            return self._default.get(file_path)
        return self._named.get(file_path, {}).get(export_name)

    def names(self, file_path: str) -> list[str]:
        names = list(self._named.get(file_path, {}))
        if file_path in self._default:
            names.append("default")
        return names

    def wildcard_sources(self, file_path: str) -> tuple[str, ...]:
        return self._wildcards.get(file_path, ())

    def exported_symbols(self, file_path: str) -> set[str]:
        """SymbolIds directly exported by ``file_path`` (re-exports excluded)."""
        entries = list(self._named.get(file_path, {}).values())
        if file_path in self._default:
            entries.append(self._default[file_path])
        return {e.symbol_id for e in entries if e.symbol_id is not None}
