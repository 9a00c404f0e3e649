"""Tests for config/models.py validators and defaults."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from codetrace.config.models import (
    CallGraphConfig,
    CodeTraceConfig,
    IndexerConfig,
    LoggingConfig,
    LogOutputConfig,
    ResolverConfig,
)


class TestDefaults:
    """Built-in defaults."""

    def test_root_defaults(self) -> None:
        config = CodeTraceConfig()
        assert config.logging.level == "INFO"
        assert config.indexer.max_workers == 4
        assert config.indexer.max_file_size_kb == 2048
        assert config.indexer.log_unhandled_captures is False
        assert config.resolver.cache_enabled is True
        assert config.resolver.max_chain_depth == 32
        assert config.call_graph.include_unresolved is True
        assert config.call_graph.extra_lifecycle_hooks == []

    def test_default_output_is_console_stderr(self) -> None:
        (output,) = LoggingConfig().outputs
        assert output.format == "console"
        assert output.destination == "stderr"
        assert output.level is None


class TestLogOutputConfig:
    """Destination validation."""

    @pytest.mark.parametrize("destination", ["stderr", "stdout"])
    def test_console_destinations(self, destination: str) -> None:
        assert LogOutputConfig(destination=destination).destination == destination

    def test_absolute_file_destination(self, tmp_path: Path) -> None:
        path = tmp_path / "codetrace.log"
        assert LogOutputConfig(destination=str(path)).destination == str(path)

    def test_relative_file_destination_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LogOutputConfig(destination="logs/codetrace.log")

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LogOutputConfig(format="xml")  # type: ignore[arg-type]


class TestValidators:
    """Numeric bounds."""

    @pytest.mark.parametrize("workers", [0, -1])
    def test_max_workers_must_be_positive(self, workers: int) -> None:
        with pytest.raises(ValidationError):
            IndexerConfig(max_workers=workers)

    def test_max_chain_depth_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ResolverConfig(max_chain_depth=0)
        assert ResolverConfig(max_chain_depth=1).max_chain_depth == 1

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="VERBOSE")  # type: ignore[arg-type]

    def test_extra_hooks(self) -> None:
        config = CallGraphConfig(extra_lifecycle_hooks=["setup", "teardown"])
        assert config.extra_lifecycle_hooks == ["setup", "teardown"]
