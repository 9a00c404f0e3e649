"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CODETRACE__SECTION__KEY)
3. Repo YAML (.codetrace/config.yaml)
4. Global YAML (~/.config/codetrace/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    CODETRACE__<SECTION>__<KEY>=<VALUE>

Examples:
    CODETRACE__LOGGING__LEVEL=DEBUG
    CODETRACE__INDEXER__MAX_WORKERS=4
    CODETRACE__RESOLVER__MAX_CHAIN_DEPTH=64
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CODETRACE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every dropped capture and resolution gap.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexerConfig(BaseModel):
    """Per-file indexing configuration.

    Env vars:
        CODETRACE__INDEXER__MAX_WORKERS: Parallel indexing workers for batch updates
        CODETRACE__INDEXER__LOG_UNHANDLED_CAPTURES: Log captures no handler accepts
    """

    max_workers: int = Field(
        default=4,
        description="Worker threads used by Project.update_files(). "
        "Indexing is per-file independent; registry ingestion stays serial.",
    )
    log_unhandled_captures: bool = Field(
        default=False,
        description="Emit a debug event for every capture tag without a handler.",
    )
    max_file_size_kb: int = Field(
        default=2048,
        description="Files larger than this are indexed as empty modules.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


class ResolverConfig(BaseModel):
    """Name resolution configuration.

    Env vars:
        CODETRACE__RESOLVER__CACHE_ENABLED: Cache (scope, name) resolutions
        CODETRACE__RESOLVER__MAX_CHAIN_DEPTH: Hard cap on import/re-export hops
    """

    cache_enabled: bool = Field(
        default=True,
        description="Cache resolutions per (scope, name). Entries are invalidated "
        "when any file on their resolution path changes.",
    )
    max_chain_depth: int = Field(
        default=32,
        description="Maximum re-export/import hops followed before giving up. "
        "Cycles are detected independently of this limit.",
    )

    @field_validator("max_chain_depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_chain_depth must be >= 1, got {v}")
        return v


class CallGraphConfig(BaseModel):
    """Call graph configuration.

    Env vars:
        CODETRACE__CALL_GRAPH__INCLUDE_UNRESOLVED: Keep unresolved edges on nodes
    """

    include_unresolved: bool = Field(
        default=True,
        description="Keep unresolved and external calls on each node's outgoing list.",
    )
    extra_lifecycle_hooks: list[str] = Field(
        default_factory=list,
        description="Additional callable names treated as externally invoked hooks.",
    )


class CodeTraceConfig(BaseModel):
    """Root configuration for codetrace.

    All settings can be configured via:
    1. Environment variables: CODETRACE__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    call_graph: CallGraphConfig = Field(default_factory=CallGraphConfig)
