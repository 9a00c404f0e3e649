"""codetrace error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index
- 9xxx: Internal

Ordinary "not found" outcomes are never errors: queries return ``None`` or
empty collections, and resolution gaps are first-class results. These types
cover caller mistakes (unsupported language), configuration problems and
invariant violations that would corrupt symbol identity.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Index (3xxx)
    INDEX_UNSUPPORTED_LANGUAGE = 3001
    INDEX_GRAMMAR_NOT_INSTALLED = 3002
    INDEX_DUPLICATE_SYMBOL = 3101
    INDEX_SCOPE_CYCLE = 3102
    INDEX_SCOPE_ROOT = 3103

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class CodeTraceError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CodeTraceError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class IndexingError(CodeTraceError):
    """Errors raised while ingesting a file."""

    @classmethod
    def unsupported_language(cls, path: str, language: str | None) -> "IndexingError":
        return cls(
            code=ErrorCode.INDEX_UNSUPPORTED_LANGUAGE,
            message=f"No language pack for {path} (language={language!r})",
            details={"path": path, "language": language},
        )

    @classmethod
    def grammar_not_installed(cls, language: str, module: str) -> "IndexingError":
        return cls(
            code=ErrorCode.INDEX_GRAMMAR_NOT_INSTALLED,
            message=f"Grammar for {language} is not installed (import {module} failed)",
            details={"language": language, "module": module},
        )


class InvariantViolation(CodeTraceError):
    """Identity or scope-tree invariant broken by the indexer or resolver.

    These always propagate: a duplicate SymbolId or a cyclic scope tree
    corrupts every later lookup.
    """

    @classmethod
    def duplicate_symbol(cls, symbol_id: str, first_file: str, second_file: str) -> "InvariantViolation":
        return cls(
            code=ErrorCode.INDEX_DUPLICATE_SYMBOL,
            message=f"Duplicate SymbolId {symbol_id}",
            details={"symbol_id": symbol_id, "first": first_file, "second": second_file},
        )

    @classmethod
    def scope_cycle(cls, file_path: str, scope_id: str) -> "InvariantViolation":
        return cls(
            code=ErrorCode.INDEX_SCOPE_CYCLE,
            message=f"Scope tree of {file_path} has a cycle through {scope_id}",
            details={"path": file_path, "scope_id": scope_id},
        )

    @classmethod
    def bad_root(cls, file_path: str, roots: list[str]) -> "InvariantViolation":
        return cls(
            code=ErrorCode.INDEX_SCOPE_ROOT,
            message=f"Scope tree of {file_path} must have exactly one root, found {len(roots)}",
            details={"path": file_path, "roots": roots},
        )


class InternalError(CodeTraceError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
