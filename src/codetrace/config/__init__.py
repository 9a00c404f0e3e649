"""Config module exports."""

from codetrace.config.loader import load_config
from codetrace.config.models import (
    CallGraphConfig,
    CodeTraceConfig,
    IndexerConfig,
    LoggingConfig,
    LogOutputConfig,
    ResolverConfig,
)

__all__ = [
    "load_config",
    "CodeTraceConfig",
    "CallGraphConfig",
    "IndexerConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "ResolverConfig",
]
