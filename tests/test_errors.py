"""Unit tests for ingestkit_xlsx.errors -- error codes and exception wrapper."""

from __future__ import annotations

import pytest

from ingestkit_xlsx.errors import ErrorCode, IngestError, XLSXReadException


class TestErrorCode:
    """ErrorCode values are stable strings."""

    def test_values_equal_names(self):
        for member in ErrorCode:
            assert member.value == member.name

    def test_fatal_and_warning_prefixes(self):
        for member in ErrorCode:
            assert member.value.startswith(("E_", "W_"))

    def test_is_str(self):
        assert isinstance(ErrorCode.E_PARSE_STYLES, str)
        assert ErrorCode.E_PARSE_STYLES == "E_PARSE_STYLES"


class TestIngestError:
    """IngestError model defaults and location fields."""

    def test_defaults(self):
        error = IngestError(code=ErrorCode.E_PARSE_CORRUPT, message="bad")
        assert error.stage is None
        assert error.recoverable is False
        assert error.part_name is None
        assert error.cell_address is None

    def test_location_fields(self):
        error = IngestError(
            code=ErrorCode.E_PARSE_DUPLICATE_CELL,
            message="dup",
            stage="worksheet",
            part_name="xl/worksheets/sheet1.xml",
            cell_address="B2",
        )
        assert error.part_name == "xl/worksheets/sheet1.xml"
        assert error.cell_address == "B2"

    def test_serializes_code_as_string(self):
        error = IngestError(code=ErrorCode.W_SHEET_MISSING, message="gone")
        assert error.model_dump(mode="json")["code"] == "W_SHEET_MISSING"


class TestXLSXReadException:
    """The raisable wrapper carries its IngestError."""

    def test_wraps_error(self):
        exc = XLSXReadException(
            code=ErrorCode.E_PARSE_WORKSHEET,
            message="The XML entry could not be read",
            stage="worksheet",
        )
        assert isinstance(exc.error, IngestError)
        assert exc.code == ErrorCode.E_PARSE_WORKSHEET
        assert exc.message == "The XML entry could not be read"
        assert exc.stage == "worksheet"
        assert exc.recoverable is False

    def test_str_is_message(self):
        exc = XLSXReadException(code=ErrorCode.E_PARSE_STYLES, message="boom")
        assert "boom" in str(exc)

    def test_raise_and_catch(self):
        with pytest.raises(XLSXReadException, match="broken"):
            raise XLSXReadException(code=ErrorCode.E_PARSE_CORRUPT, message="broken")
