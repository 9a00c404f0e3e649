"""Shared fixtures for index tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from textwrap import dedent

import pytest

from codetrace.index._internal.indexing import FileIndexResult, index_file
from codetrace.index._internal.parsing import TreeSitterParser, detect_language
from codetrace.index.models import SemanticIndex
from codetrace.index.ops import Project


@pytest.fixture(scope="session")
def parser() -> TreeSitterParser:
    """One parser for the whole session; grammars and queries load once."""
    return TreeSitterParser()


@pytest.fixture
def index_source(parser: TreeSitterParser) -> Callable[..., SemanticIndex]:
    """Index a single source string; the language comes from the path."""

    def _index(path: str, source: str, language: str | None = None) -> SemanticIndex:
        language = language or detect_language(path)
        assert language is not None, f"no language for {path}"
        return index_file(path, dedent(source).lstrip("\n").encode("utf-8"), language, parser).index

    return _index


@pytest.fixture
def index_result(parser: TreeSitterParser) -> Callable[..., FileIndexResult]:
    """Like ``index_source`` but returns the full ``FileIndexResult``."""

    def _index(path: str, source: str, language: str | None = None) -> FileIndexResult:
        language = language or detect_language(path)
        assert language is not None, f"no language for {path}"
        return index_file(path, dedent(source).lstrip("\n").encode("utf-8"), language, parser)

    return _index


@pytest.fixture
def project() -> Project:
    return Project()


@pytest.fixture
def make_project() -> Callable[[Mapping[str, str]], Project]:
    """Build a project from ``{path: source}``; sources are dedented and a leading newline is dropped."""

    def _make(files: Mapping[str, str]) -> Project:
        p = Project()
        for path, source in files.items():
            p.update_file(path, dedent(source).lstrip("\n"))
        return p

    return _make

