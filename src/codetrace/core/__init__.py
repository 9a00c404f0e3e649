"""Core module exports."""

from codetrace.core.errors import (
    CodeTraceError,
    ConfigError,
    ErrorCode,
    IndexingError,
    InternalError,
    InvariantViolation,
)
from codetrace.core.logging import configure_logging, get_log_file_path, get_logger

__all__ = [
    # Errors
    "CodeTraceError",
    "ConfigError",
    "ErrorCode",
    "IndexingError",
    "InternalError",
    "InvariantViolation",
    # Logging
    "configure_logging",
    "get_log_file_path",
    "get_logger",
]
