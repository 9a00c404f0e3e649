"""Tests for error types and codes."""

import pytest

from codetrace.core.errors import (
    CodeTraceError,
    ConfigError,
    ErrorCode,
    IndexingError,
    InternalError,
    InvariantViolation,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.CONFIG_FILE_NOT_FOUND, 2000),
            (ErrorCode.INDEX_UNSUPPORTED_LANGUAGE, 3000),
            (ErrorCode.INDEX_GRAMMAR_NOT_INSTALLED, 3000),
            (ErrorCode.INDEX_DUPLICATE_SYMBOL, 3000),
            (ErrorCode.INDEX_SCOPE_CYCLE, 3000),
            (ErrorCode.INDEX_SCOPE_ROOT, 3000),
            (ErrorCode.INTERNAL_ERROR, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        # Given
        error_code = code

        # When
        value = error_code.value

        # Then
        assert expected_range <= value < expected_range + 1000


class TestCodeTraceError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = CodeTraceError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        # Given
        error = CodeTraceError(code=ErrorCode.INTERNAL_ERROR, message="Something broke")

        # When
        result = str(error)

        # Then
        assert result == "[9001] INTERNAL_ERROR: Something broke"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        """Errors are ordinary exceptions."""
        with pytest.raises(CodeTraceError) as exc_info:
            raise IndexingError.unsupported_language("notes.txt", None)
        assert exc_info.value.error_name == "INDEX_UNSUPPORTED_LANGUAGE"


class TestConfigError:
    """ConfigError factory method tests."""

    def test_given_parse_failure_when_created_then_has_path(self) -> None:
        """parse_error records path and reason."""
        error = ConfigError.parse_error("/etc/codetrace.yaml", "bad indent")
        assert error.code is ErrorCode.CONFIG_PARSE_ERROR
        assert error.details == {"path": "/etc/codetrace.yaml", "reason": "bad indent"}
        assert "bad indent" in error.message

    def test_given_invalid_value_when_created_then_value_is_stringified(self) -> None:
        """invalid_value stores the offending value as text."""
        error = ConfigError.invalid_value("indexer.max_workers", 0, "must be >= 1")
        assert error.code is ErrorCode.CONFIG_INVALID_VALUE
        assert error.details["value"] == "0"
        assert "indexer.max_workers" in error.message

    def test_given_missing_file_when_created_then_code_set(self) -> None:
        error = ConfigError.file_not_found("/nope.yaml")
        assert error.code is ErrorCode.CONFIG_FILE_NOT_FOUND


class TestIndexingError:
    """IndexingError factory method tests."""

    def test_given_unknown_extension_when_created_then_details_recorded(self) -> None:
        error = IndexingError.unsupported_language("README.md", None)
        assert error.code is ErrorCode.INDEX_UNSUPPORTED_LANGUAGE
        assert error.details == {"path": "README.md", "language": None}

    def test_given_missing_grammar_when_created_then_names_module(self) -> None:
        error = IndexingError.grammar_not_installed("tsx", "tree_sitter_typescript")
        assert error.code is ErrorCode.INDEX_GRAMMAR_NOT_INSTALLED
        assert "tree_sitter_typescript" in error.message
        assert error.retryable is False


class TestInvariantViolation:
    """InvariantViolation factory method tests."""

    def test_given_duplicate_when_created_then_both_files_recorded(self) -> None:
        error = InvariantViolation.duplicate_symbol("function:a.py:1:0:2:8:f", "a.py", "b.py")
        assert error.code is ErrorCode.INDEX_DUPLICATE_SYMBOL
        assert error.details["first"] == "a.py"
        assert error.details["second"] == "b.py"

    def test_given_cycle_when_created_then_scope_recorded(self) -> None:
        error = InvariantViolation.scope_cycle("a.py", "scope:block:a.py:1:0:1:1")
        assert error.code is ErrorCode.INDEX_SCOPE_CYCLE
        assert error.details["scope_id"] == "scope:block:a.py:1:0:1:1"

    def test_given_two_roots_when_created_then_count_in_message(self) -> None:
        error = InvariantViolation.bad_root("a.py", ["r1", "r2"])
        assert error.code is ErrorCode.INDEX_SCOPE_ROOT
        assert "found 2" in error.message


class TestInternalError:
    """InternalError factory method tests."""

    def test_given_details_when_created_then_kept(self) -> None:
        error = InternalError.unexpected("builder crashed", path="a.py")
        assert error.code is ErrorCode.INTERNAL_ERROR
        assert error.details == {"path": "a.py"}
        assert error.message == "Internal error: builder crashed"
